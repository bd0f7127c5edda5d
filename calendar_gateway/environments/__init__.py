"""
Environments Module - external provider integrations.

Only Google Calendar is wired up. base.py holds the error taxonomy shared
by the provider clients and the calendar services.
"""

from calendar_gateway.environments.base import (
    APIError,
    CalendarIntegrationError,
    ErrorKind,
    OAuthTokens,
)

__all__ = [
    "APIError",
    "CalendarIntegrationError",
    "ErrorKind",
    "OAuthTokens",
]
