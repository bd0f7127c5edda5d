"""
Google Calendar Schemas - Data structures for calendar operations.

Provider payloads are validated into these models as soon as they arrive, so
nothing past the calendar client handles raw JSON. Unknown provider fields
are ignored.

Reference: https://developers.google.com/calendar/api/v3/reference
"""

from datetime import datetime, timezone
from typing import Optional, List, Dict, Any
from pydantic import BaseModel, ConfigDict, Field, model_validator


class EventTime(BaseModel):
    """
    Event start or end time.

    Google Calendar API returns times in one of two formats:
    - dateTime: For timed events (e.g., "2024-01-15T10:00:00-05:00")
    - date: For all-day events (e.g., "2024-01-15")
    """
    model_config = ConfigDict(populate_by_name=True)

    date_time: Optional[datetime] = Field(None, alias="dateTime")
    date: Optional[str] = Field(None)  # YYYY-MM-DD format for all-day events
    time_zone: Optional[str] = Field(None, alias="timeZone")

    def is_all_day(self) -> bool:
        """Check if this is an all-day event (date only, no time)."""
        return self.date is not None and self.date_time is None

    def is_set(self) -> bool:
        return self.date_time is not None or self.date is not None

    def has_zone(self) -> bool:
        """False for a wall-clock dateTime with neither an offset nor a timeZone."""
        if self.date_time is None or self.time_zone:
            return True
        return self.date_time.tzinfo is not None

    def to_google(self) -> Dict[str, Any]:
        """Render in the shape the Events API expects in request bodies."""
        body: Dict[str, Any] = {}
        if self.date_time is not None:
            body["dateTime"] = self.date_time.isoformat()
        elif self.date is not None:
            body["date"] = self.date
        if self.time_zone:
            body["timeZone"] = self.time_zone
        return body


class EventAttendee(BaseModel):
    """A person invited to a calendar event."""
    model_config = ConfigDict(populate_by_name=True)

    email: str = Field(..., description="Attendee's email address")
    display_name: Optional[str] = Field(None, alias="displayName")
    response_status: Optional[str] = Field(None, alias="responseStatus")
    optional: Optional[bool] = Field(None)


class CalendarEvent(BaseModel):
    """
    A Google Calendar event.

    calendar_id is not part of Google's event resource: the aggregator sets
    it to the calendar the event was fetched from, so events merged from
    several calendars stay attributable.

    Reference: https://developers.google.com/calendar/api/v3/reference/events
    """
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., description="Unique event identifier")
    summary: Optional[str] = Field(None, description="Event title")
    description: Optional[str] = Field(None, description="Event description")
    location: Optional[str] = Field(None, description="Event location")

    start: Optional[EventTime] = Field(None, description="Event start time")
    end: Optional[EventTime] = Field(None, description="Event end time")

    # confirmed, tentative, cancelled
    status: Optional[str] = Field(None)

    attendees: List[EventAttendee] = Field(default_factory=list)

    html_link: Optional[str] = Field(None, alias="htmlLink")
    recurring_event_id: Optional[str] = Field(None, alias="recurringEventId")

    calendar_id: Optional[str] = Field(None, description="Calendar this event came from")

    def is_all_day(self) -> bool:
        """Check if this is an all-day event."""
        if self.start:
            return self.start.is_all_day()
        return False

    def attendee_emails(self) -> List[str]:
        return [attendee.email for attendee in self.attendees]

    def tagged(self, calendar_id: str) -> "CalendarEvent":
        """Copy of this event attributed to calendar_id."""
        return self.model_copy(update={"calendar_id": calendar_id})


class CalendarInfo(BaseModel):
    """
    Information about a Google Calendar (a calendar descriptor).

    Produced fresh by every calendar-list call.
    """
    model_config = ConfigDict(populate_by_name=True)

    id: str = Field(..., description="Calendar identifier (usually email)")
    summary: str = Field("", description="Calendar title")
    description: Optional[str] = Field(None)
    primary: bool = Field(False, description="Is this the primary calendar?")
    access_role: Optional[str] = Field(None, alias="accessRole")
    time_zone: Optional[str] = Field(None, alias="timeZone")
    background_color: Optional[str] = Field(None, alias="backgroundColor")


class CalendarEventsResponse(BaseModel):
    """One page from the Events list API."""
    model_config = ConfigDict(populate_by_name=True)

    summary: Optional[str] = Field(None, description="Calendar title")
    time_zone: Optional[str] = Field(None, alias="timeZone")
    access_role: Optional[str] = Field(None, alias="accessRole")
    items: List[CalendarEvent] = Field(default_factory=list)
    next_page_token: Optional[str] = Field(None, alias="nextPageToken")


class CalendarListResponse(BaseModel):
    """One page from the CalendarList API."""
    model_config = ConfigDict(populate_by_name=True)

    items: List[CalendarInfo] = Field(default_factory=list)
    next_page_token: Optional[str] = Field(None, alias="nextPageToken")


# ---------------------------------------------------------------------------
# QUERY WINDOW
# ---------------------------------------------------------------------------

class TimeWindow(BaseModel):
    """
    Bounds for an event query. Both ends are optional.

    time_min falls back to "now" when the query is issued. No ordering is
    enforced between the two; an inverted window just yields no events.
    """
    time_min: Optional[datetime] = None
    time_max: Optional[datetime] = None

    def resolved_time_min(self) -> datetime:
        return self.time_min or datetime.now(timezone.utc)


# ---------------------------------------------------------------------------
# MUTATION SCHEMAS
# ---------------------------------------------------------------------------

def _require_zones(*times: Optional[EventTime]) -> None:
    if any(t is not None and not t.has_zone() for t in times):
        raise ValueError("dateTime needs a UTC offset or a timeZone")


class EventDraft(BaseModel):
    """
    Everything needed to create an event.

    Example:
        EventDraft(
            summary="Team Meeting",
            start=EventTime(date_time=datetime(2025, 1, 15, 18, 0), time_zone="America/New_York"),
            end=EventTime(date_time=datetime(2025, 1, 15, 19, 0), time_zone="America/New_York"),
            attendees=["ana@example.com"],
        )
    """
    summary: str = Field(..., min_length=1, description="Event title/summary")
    description: Optional[str] = None
    location: Optional[str] = None
    start: EventTime
    end: EventTime
    attendees: List[str] = Field(default_factory=list, description="Attendee emails")

    @model_validator(mode="after")
    def _require_boundaries(self) -> "EventDraft":
        if not self.start.is_set() or not self.end.is_set():
            raise ValueError("start and end each need dateTime or date")
        _require_zones(self.start, self.end)
        return self

    def to_google_body(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "summary": self.summary,
            "start": self.start.to_google(),
            "end": self.end.to_google(),
        }
        if self.description is not None:
            body["description"] = self.description
        if self.location is not None:
            body["location"] = self.location
        if self.attendees:
            body["attendees"] = [{"email": email} for email in self.attendees]
        return body


class EventPatch(BaseModel):
    """
    Partial update for an existing event.

    Only fields the caller actually supplied are sent; Google leaves the rest
    of the event untouched.
    """
    summary: Optional[str] = None
    description: Optional[str] = None
    location: Optional[str] = None
    start: Optional[EventTime] = None
    end: Optional[EventTime] = None
    attendees: Optional[List[str]] = None

    @model_validator(mode="after")
    def _require_zoned_boundaries(self) -> "EventPatch":
        _require_zones(self.start, self.end)
        return self

    def has_changes(self) -> bool:
        return bool(self.model_fields_set)

    def to_google_body(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {}
        for name in self.model_fields_set:
            value = getattr(self, name)
            if name in ("start", "end") and value is not None:
                body[name] = value.to_google()
            elif name == "attendees" and value is not None:
                body[name] = [{"email": email} for email in value]
            else:
                body[name] = value
        return body


class DeleteResult(BaseModel):
    """Returned by delete_event."""
    success: bool = True
