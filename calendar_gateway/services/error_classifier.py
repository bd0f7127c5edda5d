"""
Error Classifier - maps provider failures onto the calendar error taxonomy.

Classification Order:
=====================
1. CalendarIntegrationError        → returned unchanged
2. APIError with status 401        → AuthExpired
3. APIError with a known reason    → ApiNotEnabled / InsufficientPermission / RateLimited
   (Google sends reasons like "accessNotConfigured" or "SERVICE_DISABLED")
4. APIError 403, message heuristics:
   "has not been used" / "not been enabled" → ApiNotEnabled
   "insufficient" / "scope"                 → InsufficientPermission
   anything else                            → AccessDenied
5. APIError 429                    → RateLimited
6. Everything else                 → UpstreamFailure

The message heuristics depend on Google's wording and are best effort;
reason codes win whenever Google sends one.

Reference: https://developers.google.com/calendar/api/guides/errors
"""

import logging
from typing import Optional

from calendar_gateway.environments.base import (
    APIError,
    AccessDeniedError,
    ApiNotEnabledError,
    AuthExpiredError,
    CalendarIntegrationError,
    InsufficientPermissionError,
    RateLimitedError,
    UpstreamFailureError,
)


logger = logging.getLogger("calendar_gateway.services.error_classifier")

ENABLE_API_URL = "https://console.cloud.google.com/apis/library/calendar-json.googleapis.com"

API_NOT_ENABLED_REASONS = frozenset({"accessNotConfigured", "SERVICE_DISABLED"})
INSUFFICIENT_PERMISSION_REASONS = frozenset({
    "insufficientPermissions",
    "ACCESS_TOKEN_SCOPE_INSUFFICIENT",
})
RATE_LIMIT_REASONS = frozenset({
    "rateLimitExceeded",
    "userRateLimitExceeded",
    "quotaExceeded",
    "RATE_LIMIT_EXCEEDED",
})

API_NOT_ENABLED_PHRASES = ("has not been used", "not been enabled")
INSUFFICIENT_PERMISSION_PHRASES = ("insufficient", "scope")


def _api_not_enabled(status_code: int, provider_message: Optional[str]) -> ApiNotEnabledError:
    return ApiNotEnabledError(
        "Google Calendar API is not enabled in your Google Cloud Console. "
        f"Please enable it at {ENABLE_API_URL}",
        status_code=status_code,
        provider_message=provider_message,
    )


def _insufficient_permission(
    status_code: int, provider_message: Optional[str]
) -> InsufficientPermissionError:
    return InsufficientPermissionError(
        "Insufficient permissions for Google Calendar. Please sign out and sign in "
        "again to grant calendar access.",
        status_code=status_code,
        provider_message=provider_message,
    )


def _rate_limited(status_code: int, provider_message: Optional[str]) -> RateLimitedError:
    return RateLimitedError(
        "Google Calendar API rate limit exceeded. Please try again later.",
        status_code=status_code,
        provider_message=provider_message,
    )


def classify_error(error: Exception) -> CalendarIntegrationError:
    """
    Classify any failure from a calendar operation.

    Args:
        error: Exception raised while talking to Google (or already classified)

    Returns:
        The CalendarIntegrationError to raise to the caller
    """
    if isinstance(error, CalendarIntegrationError):
        return error

    if not isinstance(error, APIError):
        logger.error(f"Unexpected calendar failure: {error!r}")
        return UpstreamFailureError(f"Google Calendar request failed: {error}")

    status_code = error.status_code
    provider_message = error.provider_message or str(error)
    reason = error.reason

    if status_code == 401:
        return AuthExpiredError(
            "Google Calendar authentication expired. Please sign out and sign in again.",
            status_code=status_code,
            provider_message=provider_message,
        )

    if reason in API_NOT_ENABLED_REASONS:
        return _api_not_enabled(status_code, provider_message)
    if reason in INSUFFICIENT_PERMISSION_REASONS:
        return _insufficient_permission(status_code, provider_message)
    if reason in RATE_LIMIT_REASONS:
        return _rate_limited(status_code, provider_message)

    if status_code == 403:
        lowered = provider_message.lower()
        if any(phrase in lowered for phrase in API_NOT_ENABLED_PHRASES):
            return _api_not_enabled(status_code, provider_message)
        if any(phrase in lowered for phrase in INSUFFICIENT_PERMISSION_PHRASES):
            return _insufficient_permission(status_code, provider_message)
        return AccessDeniedError(
            f"Google Calendar access denied. {provider_message}",
            status_code=status_code,
            provider_message=provider_message,
        )

    if status_code == 429:
        return _rate_limited(status_code, provider_message)

    return UpstreamFailureError(
        f"Google Calendar request failed: {provider_message}",
        status_code=status_code,
        provider_message=provider_message,
    )
