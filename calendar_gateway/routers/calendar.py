"""
Calendar Router - caller-facing endpoints for the calendar engine.

Endpoints:
==========
- GET    /calendar/calendars           → every calendar the user can access
- GET    /calendar/events              → events across calendars
- POST   /calendar/events              → create on the primary calendar
- PATCH  /calendar/events/{event_id}   → partial update on the primary calendar
- DELETE /calendar/events/{event_id}   → delete from the primary calendar

Errors:
=======
Every CalendarIntegrationError becomes an HTTPException whose detail is
{"kind": ..., "message": ...}:

    NoLinkedAccount, MissingAccessToken, AuthExpired        → 401
    InsufficientScope, InsufficientPermission,
    ApiNotEnabled, AccessDenied                             → 403
    RateLimited                                             → 429
    UpstreamFailure                                         → 502 (404 or 410 when Google said so)
"""

import logging
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status

from calendar_gateway.deps import get_calendar_service, get_current_user_id
from calendar_gateway.environments.base import CalendarIntegrationError, ErrorKind
from calendar_gateway.environments.google.calendar.schemas import (
    CalendarEvent,
    CalendarInfo,
    DeleteResult,
    EventDraft,
    EventPatch,
    TimeWindow,
)
from calendar_gateway.services.calendar_service import GoogleCalendarService


logger = logging.getLogger("calendar_gateway.routers.calendar")


# ---------------------------------------------------------------------------
# ROUTER SETUP
# ---------------------------------------------------------------------------
router = APIRouter(prefix="/calendar", tags=["calendar"])


# ---------------------------------------------------------------------------
# HELPER FUNCTIONS
# ---------------------------------------------------------------------------

ERROR_STATUS = {
    ErrorKind.NO_LINKED_ACCOUNT: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.MISSING_ACCESS_TOKEN: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.AUTH_EXPIRED: status.HTTP_401_UNAUTHORIZED,
    ErrorKind.INSUFFICIENT_SCOPE: status.HTTP_403_FORBIDDEN,
    ErrorKind.INSUFFICIENT_PERMISSION: status.HTTP_403_FORBIDDEN,
    ErrorKind.API_NOT_ENABLED: status.HTTP_403_FORBIDDEN,
    ErrorKind.ACCESS_DENIED: status.HTTP_403_FORBIDDEN,
    ErrorKind.RATE_LIMITED: status.HTTP_429_TOO_MANY_REQUESTS,
    ErrorKind.UPSTREAM_FAILURE: status.HTTP_502_BAD_GATEWAY,
}


def _to_http(error: CalendarIntegrationError) -> HTTPException:
    status_code = ERROR_STATUS[error.kind]
    # A missing or already-deleted event is relayed as Google reported it
    if error.kind == ErrorKind.UPSTREAM_FAILURE and error.status_code in (
        status.HTTP_404_NOT_FOUND,
        status.HTTP_410_GONE,
    ):
        status_code = error.status_code
    logger.warning(f"Calendar request failed: {error.kind.value} - {error.message}")
    return HTTPException(status_code=status_code, detail=error.to_dict())


# ---------------------------------------------------------------------------
# ENDPOINTS
# ---------------------------------------------------------------------------

@router.get("/calendars", response_model=List[CalendarInfo])
async def list_calendars(
    user_id: str = Depends(get_current_user_id),
    service: GoogleCalendarService = Depends(get_calendar_service),
):
    """List every calendar the user has access to."""
    try:
        return await service.list_calendars(user_id)
    except CalendarIntegrationError as e:
        raise _to_http(e)


@router.get("/events", response_model=List[CalendarEvent])
async def get_events(
    time_min: Optional[datetime] = Query(None, description="Lower bound, defaults to now"),
    time_max: Optional[datetime] = Query(None, description="Upper bound, unbounded if omitted"),
    calendar_id: Optional[List[str]] = Query(
        None, description="Calendars to read, in order; all calendars if omitted"
    ),
    user_id: str = Depends(get_current_user_id),
    service: GoogleCalendarService = Depends(get_calendar_service),
):
    """
    Get events across calendars.

    Events are grouped by calendar in the order the calendars were selected,
    then ordered by start time within each calendar.
    """
    window = TimeWindow(time_min=time_min, time_max=time_max)
    try:
        return await service.get_events(user_id, window=window, calendar_ids=calendar_id)
    except CalendarIntegrationError as e:
        raise _to_http(e)


@router.post("/events", response_model=CalendarEvent, status_code=status.HTTP_201_CREATED)
async def create_event(
    draft: EventDraft,
    user_id: str = Depends(get_current_user_id),
    service: GoogleCalendarService = Depends(get_calendar_service),
):
    """Create an event on the primary calendar."""
    try:
        return await service.create_event(user_id, draft)
    except CalendarIntegrationError as e:
        raise _to_http(e)


@router.patch("/events/{event_id}", response_model=CalendarEvent)
async def update_event(
    event_id: str,
    patch: EventPatch,
    user_id: str = Depends(get_current_user_id),
    service: GoogleCalendarService = Depends(get_calendar_service),
):
    """Update only the supplied fields of an event."""
    try:
        return await service.update_event(user_id, event_id, patch)
    except CalendarIntegrationError as e:
        raise _to_http(e)


@router.delete("/events/{event_id}", response_model=DeleteResult)
async def delete_event(
    event_id: str,
    user_id: str = Depends(get_current_user_id),
    service: GoogleCalendarService = Depends(get_calendar_service),
):
    """Delete an event from the primary calendar."""
    try:
        return await service.delete_event(user_id, event_id)
    except CalendarIntegrationError as e:
        raise _to_http(e)
