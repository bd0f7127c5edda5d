"""
Google OAuth Schemas - Data structures for Google token handling.

Reference: https://developers.google.com/identity/protocols/oauth2/scopes
"""

from datetime import datetime, timedelta, timezone
from typing import Optional, List
from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# OAUTH SCOPE CONSTANTS
# ---------------------------------------------------------------------------
# Scope strings are matched by substring against what the consent flow
# stored, so the short capability names are what the resolver checks.

CALENDAR_READ_CAPABILITY = "calendar.readonly"
CALENDAR_EVENTS_CAPABILITY = "calendar.events"

# Either one is enough: read-only integrations are valid
REQUIRED_CALENDAR_CAPABILITIES = (
    CALENDAR_READ_CAPABILITY,
    CALENDAR_EVENTS_CAPABILITY,
)

# The full calendar scope is a prefix of both capability scopes, so it is
# matched as a whole scope token rather than by substring
CALENDAR_FULL_SCOPE = "https://www.googleapis.com/auth/calendar"

# Full scopes requested by the consent flow
CALENDAR_SCOPES = [
    "https://www.googleapis.com/auth/calendar.readonly",
    "https://www.googleapis.com/auth/calendar.events",
]


# ---------------------------------------------------------------------------
# TOKEN RESPONSES
# ---------------------------------------------------------------------------

class GoogleTokenResponse(BaseModel):
    """
    Response from Google's token endpoint on refresh.

    Example response from Google:
    {
        "access_token": "ya29.a0AfB_byC...",
        "expires_in": 3599,
        "scope": "https://www.googleapis.com/auth/calendar.readonly",
        "token_type": "Bearer"
    }

    refresh_token is only present when Google rotates it.
    """
    access_token: str = Field(..., description="OAuth access token")
    token_type: str = Field(default="Bearer", description="Token type (usually Bearer)")
    expires_in: Optional[int] = Field(None, description="Seconds until expiration")
    refresh_token: Optional[str] = Field(None, description="New refresh token, if rotated")
    scope: Optional[str] = Field(None, description="Space-separated scopes granted")

    def get_scopes_list(self) -> List[str]:
        """Convert space-separated scope string to list."""
        if self.scope:
            return self.scope.split()
        return []

    def get_expires_at(self) -> Optional[datetime]:
        """Calculate expiration datetime from expires_in seconds."""
        if self.expires_in:
            return datetime.now(timezone.utc) + timedelta(seconds=self.expires_in)
        return None
