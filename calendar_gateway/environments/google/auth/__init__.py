"""
Google Auth Module - token refresh for delegated Google credentials.

Scope Management:
=================
The consent flow stores whatever scopes the user granted. Calendar access
needs at least one of the capabilities in REQUIRED_CALENDAR_CAPABILITIES,
or the full CALENDAR_FULL_SCOPE.
"""

from calendar_gateway.environments.google.auth.client import GoogleAuthClient
from calendar_gateway.environments.google.auth.schemas import (
    GoogleTokenResponse,
    CALENDAR_SCOPES,
    CALENDAR_READ_CAPABILITY,
    CALENDAR_EVENTS_CAPABILITY,
    CALENDAR_FULL_SCOPE,
    REQUIRED_CALENDAR_CAPABILITIES,
)

__all__ = [
    "GoogleAuthClient",
    "GoogleTokenResponse",
    "CALENDAR_SCOPES",
    "CALENDAR_READ_CAPABILITY",
    "CALENDAR_EVENTS_CAPABILITY",
    "CALENDAR_FULL_SCOPE",
    "REQUIRED_CALENDAR_CAPABILITIES",
]
