"""
Test configuration and fixtures for pytest.

This module provides shared fixtures used across all tests:
- Test database (SQLite in-memory for speed)
- A fake Google Calendar / OAuth endpoint served through httpx.MockTransport
- Resolver and service wired to the fake endpoint
- Authentication helpers
"""

import json
import os
from datetime import datetime, timedelta, timezone
from typing import Dict, Generator, List, Optional, Tuple
from unittest.mock import MagicMock

# Settings are read at import time; keep the suite off PostgreSQL
os.environ.setdefault("DATABASE_URL", "sqlite://")
os.environ.setdefault("GOOGLE_CLIENT_ID", "test-client-id")
os.environ.setdefault("GOOGLE_CLIENT_SECRET", "test-client-secret")

import httpx
import pytest
from jose import jwt
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker, Session
from sqlalchemy.pool import StaticPool

from calendar_gateway.core.config import settings
from calendar_gateway.db.base import Base
from calendar_gateway.environments.google.auth.client import GoogleAuthClient
from calendar_gateway.models.oauth_credential import OAuthCredential
from calendar_gateway.monitoring.logger import CalendarMonitor
from calendar_gateway.services.calendar_service import GoogleCalendarService
from calendar_gateway.services.credential_resolver import CredentialResolver
from calendar_gateway.services.credential_store import CredentialRecord, CredentialStore


# ---------------------------------------------------------------------------
# TEST DATABASE SETUP
# ---------------------------------------------------------------------------
# StaticPool keeps the same in-memory connection across sessions and threads

engine = create_engine(
    "sqlite:///:memory:",
    connect_args={"check_same_thread": False},
    poolclass=StaticPool,
)

TestingSessionLocal = sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture(scope="function")
def db() -> Generator[Session, None, None]:
    """Fresh tables for each test function."""
    Base.metadata.create_all(bind=engine)
    session = TestingSessionLocal()
    try:
        yield session
    finally:
        session.close()
        Base.metadata.drop_all(bind=engine)


@pytest.fixture
def store(db: Session) -> CredentialStore:
    return CredentialStore(session_factory=TestingSessionLocal)


@pytest.fixture
def make_credential(db: Session):
    """Factory that inserts an OAuthCredential row."""
    def _make(
        user_id: str = "user-123",
        access_token: Optional[str] = "ya29.stored",
        refresh_token: Optional[str] = "1//stored-refresh",
        scope: Optional[str] = "openid https://www.googleapis.com/auth/calendar.readonly",
        expires_at: Optional[datetime] = None,
    ) -> OAuthCredential:
        credential = OAuthCredential(
            user_id=user_id,
            provider="google",
            access_token=access_token,
            refresh_token=refresh_token,
            scope=scope,
            expires_at=expires_at,
            updated_at=datetime(2025, 1, 1, tzinfo=timezone.utc),
        )
        db.add(credential)
        db.commit()
        return credential

    return _make


# ---------------------------------------------------------------------------
# FAKE GOOGLE
# ---------------------------------------------------------------------------

API_PREFIX = "/calendar/v3"


def make_event(event_id: str, start: str, summary: Optional[str] = None) -> dict:
    """Raw Google event resource starting at `start` (ISO string), one hour long."""
    start_dt = datetime.fromisoformat(start.replace("Z", "+00:00"))
    end_dt = start_dt + timedelta(hours=1)
    return {
        "id": event_id,
        "summary": summary or event_id,
        "status": "confirmed",
        "start": {"dateTime": start_dt.isoformat()},
        "end": {"dateTime": end_dt.isoformat()},
        "htmlLink": f"https://calendar.google.com/event?eid={event_id}",
    }


def google_error(status: int, message: str, reason: Optional[str] = None) -> Tuple[int, dict]:
    error: dict = {"code": status, "message": message}
    if reason:
        error["errors"] = [{"reason": reason, "message": message}]
    return status, {"error": error}


class FakeGoogle:
    """
    In-memory stand-in for the Calendar API and the OAuth token endpoint.

    calendar_pages / event_pages are lists of pages; a page token is just the
    index of the next page.
    """

    def __init__(self):
        self.calendar_pages: List[List[dict]] = [[]]
        self.event_pages: Dict[str, List[List[dict]]] = {}
        self.failures: Dict[str, Tuple[int, dict]] = {}
        self.token_response: Tuple[int, dict] = (
            200,
            {"access_token": "ya29.rotated", "expires_in": 3599, "token_type": "Bearer"},
        )
        # Token endpoint drops the connection instead of answering
        self.token_endpoint_down = False
        # Access tokens the API rejects with 401
        self.rejected_tokens: set = set()
        self.requests: List[httpx.Request] = []

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)

        if request.url.host == "oauth2.googleapis.com":
            if self.token_endpoint_down:
                raise httpx.ConnectError("connection refused", request=request)
            status, body = self.token_response
            return httpx.Response(status, json=body)

        token = request.headers["Authorization"].removeprefix("Bearer ")
        if token in self.rejected_tokens:
            return self._failure(google_error(401, "Invalid Credentials", "authError"))

        path = request.url.path[len(API_PREFIX):]
        page_token = request.url.params.get("pageToken")
        index = int(page_token) if page_token else 0

        if path == "/users/me/calendarList":
            if "calendarList" in self.failures:
                return self._failure(self.failures["calendarList"])
            return self._page(self.calendar_pages, index)

        # /calendars/{calendar_id}/events[/{event_id}]
        parts = path.split("/")
        calendar_id = parts[2]
        if calendar_id in self.failures:
            return self._failure(self.failures[calendar_id])

        if request.method == "GET":
            return self._page(self.event_pages.get(calendar_id, [[]]), index)
        if request.method == "POST":
            return httpx.Response(200, json={"id": "created-1", **json.loads(request.content)})
        if request.method == "PATCH":
            original = {"id": parts[4], "summary": "Original", "location": "Room 1"}
            return httpx.Response(200, json={**original, **json.loads(request.content)})
        if request.method == "DELETE":
            return httpx.Response(204)
        return httpx.Response(405)

    @staticmethod
    def _failure(failure: Tuple[int, dict]) -> httpx.Response:
        status, body = failure
        return httpx.Response(status, json=body)

    @staticmethod
    def _page(pages: List[List[dict]], index: int) -> httpx.Response:
        payload: dict = {"items": pages[index]}
        if index + 1 < len(pages):
            payload["nextPageToken"] = str(index + 1)
        return httpx.Response(200, json=payload)

    def api_requests(self, method: str = "GET") -> List[httpx.Request]:
        return [
            r for r in self.requests
            if r.url.host != "oauth2.googleapis.com" and r.method == method
        ]

    def event_list_requests(self, calendar_id: str) -> List[httpx.Request]:
        return [
            r for r in self.api_requests("GET")
            if r.url.path == f"{API_PREFIX}/calendars/{calendar_id}/events"
        ]

    def token_requests(self) -> List[httpx.Request]:
        return [r for r in self.requests if r.url.host == "oauth2.googleapis.com"]


@pytest.fixture
def google() -> FakeGoogle:
    return FakeGoogle()


@pytest.fixture
def transport(google: FakeGoogle) -> httpx.MockTransport:
    return httpx.MockTransport(google.handler)


@pytest.fixture
def auth_client(transport) -> GoogleAuthClient:
    return GoogleAuthClient(client_id="cid", client_secret="secret", transport=transport)


# ---------------------------------------------------------------------------
# ENGINE FIXTURES
# ---------------------------------------------------------------------------

@pytest.fixture
def credential_record() -> CredentialRecord:
    return CredentialRecord(
        user_id="user-123",
        access_token="ya29.valid",
        refresh_token="1//refresh",
        scope="openid email https://www.googleapis.com/auth/calendar.events",
        expires_at=None,
        updated_at=None,
    )


@pytest.fixture
def mock_store(credential_record) -> MagicMock:
    store = MagicMock(spec=CredentialStore)
    store.get.return_value = credential_record
    store.update.return_value = True
    return store


@pytest.fixture
def monitor() -> MagicMock:
    return MagicMock(spec=CalendarMonitor)


@pytest.fixture
def resolver(mock_store, auth_client, monitor, transport) -> CredentialResolver:
    return CredentialResolver(
        store=mock_store,
        auth_client=auth_client,
        monitor=monitor,
        transport=transport,
    )


@pytest.fixture
def service(resolver, monitor) -> GoogleCalendarService:
    return GoogleCalendarService(
        resolver=resolver,
        monitor=monitor,
        page_size=250,
        target_calendar_id="primary",
    )


# ---------------------------------------------------------------------------
# AUTH HELPERS
# ---------------------------------------------------------------------------

def bearer_for(user_id: str) -> Dict[str, str]:
    """Authorization header carrying a JWT for user_id."""
    token = jwt.encode({"sub": user_id}, settings.SECRET_KEY, algorithm=settings.ALGORITHM)
    return {"Authorization": f"Bearer {token}"}
