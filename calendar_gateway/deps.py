"""
Dependencies module - reusable FastAPI dependencies for route handlers.

get_current_user_id validates the caller's JWT. Tokens are issued by the
external authentication service; this service only verifies them.
"""

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt

from calendar_gateway.core.config import settings
from calendar_gateway.services.calendar_service import GoogleCalendarService, calendar_service

# HTTPBearer: Extracts tokens from the "Authorization: Bearer <token>" header
# and answers 403 itself when the header is missing
security = HTTPBearer()


def get_current_user_id(
    credentials: HTTPAuthorizationCredentials = Depends(security),
) -> str:
    """
    Validate the JWT and return its subject (the user identity).

    Raises:
        401 Unauthorized: If the token is invalid, expired, or has no "sub"
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

    try:
        payload = jwt.decode(
            credentials.credentials, settings.SECRET_KEY, algorithms=[settings.ALGORITHM]
        )
    except JWTError:
        raise credentials_exception

    user_id = payload.get("sub")
    if not user_id:
        raise credentials_exception
    return str(user_id)


def get_calendar_service() -> GoogleCalendarService:
    """Calendar service used by the routes (overridden in tests)."""
    return calendar_service
