"""
Google Environment Module - Google Calendar integration.

Architecture:
=============
google/
├── __init__.py           # Module exports
├── auth/                 # OAuth token refresh
│   ├── client.py
│   └── schemas.py
└── calendar/             # Google Calendar API
    ├── client.py         # Calendar API client (pages + mutations)
    └── schemas.py        # Calendar data structures

Usage:
======
    from calendar_gateway.environments.google import GoogleCalendarClient

    calendar = GoogleCalendarClient(access_token=token, refresh_token=refresh)
    page = await calendar.list_calendars_page()
"""

from calendar_gateway.environments.google.auth import GoogleAuthClient, CALENDAR_SCOPES
from calendar_gateway.environments.google.calendar import GoogleCalendarClient, CalendarEvent

__all__ = [
    "GoogleAuthClient",
    "GoogleCalendarClient",
    "CalendarEvent",
    "CALENDAR_SCOPES",
]
