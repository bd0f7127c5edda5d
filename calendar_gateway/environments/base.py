"""
Base types shared by the Google environment clients and the calendar services.

Two layers of errors live here:

- APIError: raw transport failure from a provider HTTP call (status code,
  body, provider message). Only the provider clients raise it.
- CalendarIntegrationError and its subclasses: the small, actionable taxonomy
  surfaced to callers. The credential resolver raises the first three kinds
  before any remote call; the error classifier produces the rest from an
  APIError.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Optional, List, Any


# ---------------------------------------------------------------------------
# TRANSPORT ERRORS
# ---------------------------------------------------------------------------


class APIError(Exception):
    """Raised when an API call to the provider fails."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        response: Any = None,
        provider_message: Optional[str] = None,
        reason: Optional[str] = None,
    ):
        super().__init__(message)
        self.status_code = status_code
        self.response = response
        # error.message from Google's JSON error body, when there was one
        self.provider_message = provider_message
        # machine-readable code, e.g. "accessNotConfigured" or "SERVICE_DISABLED"
        self.reason = reason


class TokenRefreshError(APIError):
    """Raised when the token endpoint refuses to mint a new access token."""


# ---------------------------------------------------------------------------
# DOMAIN ERROR TAXONOMY
# ---------------------------------------------------------------------------


class ErrorKind(str, Enum):
    """Every failure a caller can see, by name."""

    NO_LINKED_ACCOUNT = "NoLinkedAccount"
    MISSING_ACCESS_TOKEN = "MissingAccessToken"
    INSUFFICIENT_SCOPE = "InsufficientScope"
    AUTH_EXPIRED = "AuthExpired"
    API_NOT_ENABLED = "ApiNotEnabled"
    INSUFFICIENT_PERMISSION = "InsufficientPermission"
    ACCESS_DENIED = "AccessDenied"
    RATE_LIMITED = "RateLimited"
    UPSTREAM_FAILURE = "UpstreamFailure"


class CalendarIntegrationError(Exception):
    """Base exception for every failure surfaced by the calendar gateway."""

    kind: ErrorKind = ErrorKind.UPSTREAM_FAILURE

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        provider_message: Optional[str] = None,
    ):
        super().__init__(message)
        self.message = message
        self.status_code = status_code
        self.provider_message = provider_message

    def to_dict(self) -> dict:
        return {"kind": self.kind.value, "message": self.message}


class NoLinkedAccountError(CalendarIntegrationError):
    kind = ErrorKind.NO_LINKED_ACCOUNT


class MissingAccessTokenError(CalendarIntegrationError):
    kind = ErrorKind.MISSING_ACCESS_TOKEN


class InsufficientScopeError(CalendarIntegrationError):
    kind = ErrorKind.INSUFFICIENT_SCOPE


class AuthExpiredError(CalendarIntegrationError):
    kind = ErrorKind.AUTH_EXPIRED


class ApiNotEnabledError(CalendarIntegrationError):
    kind = ErrorKind.API_NOT_ENABLED


class InsufficientPermissionError(CalendarIntegrationError):
    kind = ErrorKind.INSUFFICIENT_PERMISSION


class AccessDeniedError(CalendarIntegrationError):
    kind = ErrorKind.ACCESS_DENIED


class RateLimitedError(CalendarIntegrationError):
    kind = ErrorKind.RATE_LIMITED


class UpstreamFailureError(CalendarIntegrationError):
    kind = ErrorKind.UPSTREAM_FAILURE


# ---------------------------------------------------------------------------
# DATA STRUCTURES
# ---------------------------------------------------------------------------


@dataclass
class OAuthTokens:
    """
    Token data returned by the OAuth token endpoint.

    Handed to the rotation handler after a silent refresh. refresh_token is
    only set when Google actually issued a new one.
    """
    access_token: str
    token_type: str = "Bearer"
    refresh_token: Optional[str] = None
    expires_at: Optional[datetime] = None
    scopes: Optional[List[str]] = None
