"""
Google Calendar Module - Calendar API Integration

Features:
=========
- Page through calendar lists and event lists
- Create, patch and delete events
- Silent access-token rotation with a caller-supplied callback
"""

from calendar_gateway.environments.google.calendar.client import GoogleCalendarClient
from calendar_gateway.environments.google.calendar.schemas import (
    CalendarEvent,
    CalendarInfo,
    DeleteResult,
    EventAttendee,
    EventDraft,
    EventPatch,
    EventTime,
    TimeWindow,
)

__all__ = [
    "GoogleCalendarClient",
    "CalendarEvent",
    "CalendarInfo",
    "DeleteResult",
    "EventAttendee",
    "EventDraft",
    "EventPatch",
    "EventTime",
    "TimeWindow",
]
