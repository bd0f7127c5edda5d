"""
Google Calendar API Client - one authenticated user's window onto Google Calendar.

This client is the transport under the calendar service. It knows how to
fetch single pages and perform single mutations; following pagination and
merging calendars is the service's job.

Key Features:
=============
1. Calendar-list and event-list pages (events expanded to single instances,
   ordered by start time)
2. Event insert / patch / delete
3. Silent token rotation: an access token that is known to be expired, or
   that Google rejects with 401, is refreshed once through the OAuth token
   endpoint. The new tokens are handed to the on_rotate callback.
4. Every non-2xx response becomes an APIError carrying Google's message and
   machine-readable reason

API Reference:
==============
- Events API: https://developers.google.com/calendar/api/v3/reference/events
- CalendarList API: https://developers.google.com/calendar/api/v3/reference/calendarList
- Errors: https://developers.google.com/calendar/api/guides/errors

Usage Example:
==============
    client = GoogleCalendarClient(
        access_token="ya29.xxx",
        refresh_token="1//xxx",
        on_rotate=lambda tokens: print("new token"),
    )
    page = await client.list_events_page("primary", time_min=datetime.now(timezone.utc))
"""

import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional, Tuple
from urllib.parse import quote

import httpx

from calendar_gateway.core.config import settings
from calendar_gateway.environments.base import APIError, OAuthTokens, TokenRefreshError
from calendar_gateway.environments.google.auth.client import GoogleAuthClient
from calendar_gateway.environments.google.calendar.schemas import (
    CalendarEvent,
    CalendarEventsResponse,
    CalendarListResponse,
)


logger = logging.getLogger("calendar_gateway.environments.google.calendar")

# Refresh a little before Google's stated expiry to absorb clock skew
EXPIRY_BUFFER = timedelta(minutes=5)

RotationHandler = Callable[[OAuthTokens], None]


def _google_rfc3339(value: datetime) -> str:
    """RFC3339 with an explicit offset; naive datetimes are taken as UTC."""
    normalized = value if value.tzinfo is not None else value.replace(tzinfo=timezone.utc)
    return normalized.astimezone(timezone.utc).isoformat().replace("+00:00", "Z")


def _parse_google_error(response: httpx.Response) -> Tuple[str, Optional[str]]:
    """
    Pull (message, reason) out of a Google error body.

    Google's v3 errors look like:
        {"error": {"code": 403, "message": "...", "status": "PERMISSION_DENIED",
                   "errors": [{"reason": "insufficientPermissions", ...}],
                   "details": [{"reason": "SERVICE_DISABLED", ...}]}}
    """
    try:
        payload = response.json()
    except ValueError:
        payload = None

    raw_text = " ".join(response.text.split())
    if not isinstance(payload, dict):
        return raw_text or f"HTTP {response.status_code}", None

    error_payload = payload.get("error")
    if isinstance(error_payload, str):
        return error_payload, None
    if not isinstance(error_payload, dict):
        return raw_text or f"HTTP {response.status_code}", None

    message = error_payload.get("message") or raw_text or f"HTTP {response.status_code}"

    reason = None
    for entry in error_payload.get("details") or []:
        if isinstance(entry, dict) and entry.get("reason"):
            reason = entry["reason"]
            break
    if reason is None:
        for entry in error_payload.get("errors") or []:
            if isinstance(entry, dict) and entry.get("reason"):
                reason = entry["reason"]
                break
    if reason is None:
        reason = error_payload.get("status")

    return message, reason


class GoogleCalendarClient:
    """
    Google Calendar API client bound to one user's token pair.

    Attributes:
        access_token: Current OAuth access token (replaced on rotation)
        refresh_token: Long-lived refresh token, if the user granted offline access
        expires_at: When access_token expires, if known
    """

    service_name = "calendar"

    def __init__(
        self,
        access_token: str,
        refresh_token: Optional[str] = None,
        expires_at: Optional[datetime] = None,
        on_rotate: Optional[RotationHandler] = None,
        auth_client: Optional[GoogleAuthClient] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the Calendar client.

        Args:
            access_token: Google OAuth access token with a calendar scope
            refresh_token: Refresh token used for silent rotation
            expires_at: Known expiry of access_token
            on_rotate: Called synchronously with the new tokens after every
                successful refresh. Must return quickly.
            auth_client: Token endpoint client (defaults to GoogleAuthClient())
            base_url: Calendar API root (defaults to settings)
            timeout: Per-request timeout in seconds (defaults to settings)
            transport: Optional httpx transport, used by tests
        """
        self.access_token = access_token
        self.refresh_token = refresh_token
        self.expires_at = expires_at
        self._on_rotate = on_rotate
        self._auth_client = auth_client or GoogleAuthClient(transport=transport)
        self.base_url = (base_url or settings.GOOGLE_CALENDAR_API_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else settings.GOOGLE_API_TIMEOUT
        self._transport = transport

    # -------------------------------------------------------------------------
    # TOKEN ROTATION
    # -------------------------------------------------------------------------

    def _expiry_utc(self) -> Optional[datetime]:
        expires_at = self.expires_at
        if expires_at is not None and expires_at.tzinfo is None:
            expires_at = expires_at.replace(tzinfo=timezone.utc)
        return expires_at

    def _token_is_stale(self) -> bool:
        expires_at = self._expiry_utc()
        if expires_at is None:
            return False
        return datetime.now(timezone.utc) >= expires_at - EXPIRY_BUFFER

    def _token_has_expired(self) -> bool:
        expires_at = self._expiry_utc()
        return expires_at is not None and datetime.now(timezone.utc) >= expires_at

    async def _rotate_tokens(self) -> None:
        """
        Trade the refresh token for a new access token and notify on_rotate.

        Raises:
            APIError: with status 401 when the token endpoint refused the
                grant, so the failure reads as expired authentication
                upstream. Without a status when the token endpoint could
                not be reached.
        """
        try:
            tokens = await self._auth_client.refresh_access_token(self.refresh_token)
        except TokenRefreshError as e:
            if e.status_code is None:
                raise APIError(f"Token refresh failed: {e}") from e
            raise APIError(
                "Access token expired and could not be refreshed",
                status_code=401,
                response=e.response,
                provider_message=e.provider_message,
                reason=e.reason,
            ) from e

        self.access_token = tokens.access_token
        self.expires_at = tokens.expires_at
        if tokens.refresh_token:
            self.refresh_token = tokens.refresh_token

        logger.info(
            "Rotated Google access token",
            extra={"rotated_refresh_token": tokens.refresh_token is not None},
        )

        if self._on_rotate is not None:
            try:
                self._on_rotate(tokens)
            except Exception:
                # Persisting rotated tokens must never fail the call in flight
                logger.exception("Token rotation handler failed")

    # -------------------------------------------------------------------------
    # HTTP
    # -------------------------------------------------------------------------

    def _get_headers(self) -> dict:
        """Get authorization headers for API requests."""
        return {
            "Authorization": f"Bearer {self.access_token}",
            "Accept": "application/json",
        }

    async def _send(
        self,
        method: str,
        url: str,
        params: Optional[dict],
        json_body: Optional[dict],
    ) -> httpx.Response:
        async with httpx.AsyncClient(transport=self._transport) as client:
            try:
                return await client.request(
                    method=method,
                    url=url,
                    headers=self._get_headers(),
                    params=params,
                    json=json_body,
                    timeout=self.timeout,
                )
            except httpx.RequestError as e:
                logger.error(f"Network error in Calendar API: {e}")
                raise APIError(f"Network error: {e}")

    async def _make_request(
        self,
        method: str,
        endpoint: str,
        params: Optional[dict] = None,
        json_body: Optional[dict] = None,
    ) -> Dict[str, Any]:
        """
        Make an authenticated request to the Calendar API.

        Args:
            method: HTTP method (GET, POST, PATCH, DELETE)
            endpoint: API endpoint path (e.g., "/calendars/primary/events")
            params: Query parameters
            json_body: JSON request body

        Returns:
            Parsed JSON response ({} for empty bodies)

        Raises:
            APIError: If the request fails
        """
        url = f"{self.base_url}{endpoint}"

        if self.refresh_token and self._token_is_stale():
            try:
                await self._rotate_tokens()
            except APIError as e:
                if self._token_has_expired():
                    raise
                # Still inside the buffer: the current token keeps working
                logger.warning(f"Early token refresh failed, using current token: {e}")

        response = await self._send(method, url, params, json_body)

        if response.status_code == 401 and self.refresh_token:
            logger.info("Calendar API: 401, refreshing access token once")
            await self._rotate_tokens()
            response = await self._send(method, url, params, json_body)

        if not 200 <= response.status_code < 300:
            message, reason = _parse_google_error(response)
            logger.error(
                f"Calendar API error: {response.status_code} - {message}",
                extra={"status_code": response.status_code, "reason": reason},
            )
            raise APIError(
                f"API request failed: {message}",
                status_code=response.status_code,
                response=response.text,
                provider_message=message,
                reason=reason,
            )

        if response.status_code == 204 or not response.content:
            return {}
        return response.json()

    # -------------------------------------------------------------------------
    # CALENDAR LIST
    # -------------------------------------------------------------------------

    async def list_calendars_page(self, page_token: Optional[str] = None) -> CalendarListResponse:
        """
        Fetch one page of the user's calendar list.

        Args:
            page_token: nextPageToken from the previous page

        Returns:
            CalendarListResponse with items and next_page_token
        """
        params: dict = {}
        if page_token:
            params["pageToken"] = page_token

        response_data = await self._make_request(
            method="GET",
            endpoint="/users/me/calendarList",
            params=params,
        )
        return CalendarListResponse(**response_data)

    # -------------------------------------------------------------------------
    # EVENTS
    # -------------------------------------------------------------------------

    async def list_events_page(
        self,
        calendar_id: str,
        time_min: datetime,
        time_max: Optional[datetime] = None,
        page_token: Optional[str] = None,
        page_size: Optional[int] = None,
    ) -> CalendarEventsResponse:
        """
        Fetch one page of events from a calendar.

        Recurring events are expanded into individual instances and the page
        is ordered by start time, so consecutive pages continue the ordering.

        Args:
            calendar_id: Calendar identifier
            time_min: Lower bound (inclusive of events ending after it)
            time_max: Upper bound, unbounded when None
            page_token: nextPageToken from the previous page
            page_size: maxResults (defaults to settings.GOOGLE_EVENTS_PAGE_SIZE)

        Returns:
            CalendarEventsResponse (events are not yet tagged with calendar_id)
        """
        params = {
            "timeMin": _google_rfc3339(time_min),
            "maxResults": page_size or settings.GOOGLE_EVENTS_PAGE_SIZE,
            "singleEvents": "true",
            "orderBy": "startTime",
        }
        if time_max is not None:
            params["timeMax"] = _google_rfc3339(time_max)
        if page_token:
            params["pageToken"] = page_token

        response_data = await self._make_request(
            method="GET",
            endpoint=f"/calendars/{quote(calendar_id, safe='')}/events",
            params=params,
        )
        return CalendarEventsResponse(**response_data)

    async def insert_event(self, calendar_id: str, body: dict) -> CalendarEvent:
        """Create an event and return Google's copy of it."""
        response_data = await self._make_request(
            method="POST",
            endpoint=f"/calendars/{quote(calendar_id, safe='')}/events",
            json_body=body,
        )
        return CalendarEvent(**response_data)

    async def patch_event(self, calendar_id: str, event_id: str, body: dict) -> CalendarEvent:
        """
        Partially update an event.

        PATCH semantics: fields absent from body are left as they are.
        """
        response_data = await self._make_request(
            method="PATCH",
            endpoint=f"/calendars/{quote(calendar_id, safe='')}/events/{quote(event_id, safe='')}",
            json_body=body,
        )
        return CalendarEvent(**response_data)

    async def delete_event(self, calendar_id: str, event_id: str) -> None:
        """
        Delete an event.

        A second delete of the same event fails with 404 (or 410); that error
        is raised like any other.
        """
        await self._make_request(
            method="DELETE",
            endpoint=f"/calendars/{quote(calendar_id, safe='')}/events/{quote(event_id, safe='')}",
        )
