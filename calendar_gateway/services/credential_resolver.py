"""
Credential Resolver - turns a user identity into an authenticated Calendar client.

Resolution Steps:
=================
1. Load the user's CredentialRecord from the store
   → NoLinkedAccountError if there is none
2. Require an access token
   → MissingAccessTokenError otherwise
3. If a scope string was stored, require at least one calendar capability
   (read or events). Read-only grants are valid.
   → InsufficientScopeError otherwise
4. Build a GoogleCalendarClient bound to the token pair, with an on_rotate
   handler that persists rotated tokens in the background

Token Rotation:
===============
The calendar client calls on_rotate synchronously after a silent refresh.
The handler only schedules a task; the store write runs in a worker thread
and never blocks or fails the request that triggered it. Writes for the same
user are serialized, and only fields whose value changed are written.
"""

import asyncio
import logging
import weakref
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional, Set

import httpx

from calendar_gateway.environments.base import (
    InsufficientScopeError,
    MissingAccessTokenError,
    NoLinkedAccountError,
    OAuthTokens,
)
from calendar_gateway.environments.google.auth.client import GoogleAuthClient
from calendar_gateway.environments.google.auth.schemas import (
    CALENDAR_FULL_SCOPE,
    REQUIRED_CALENDAR_CAPABILITIES,
)
from calendar_gateway.environments.google.calendar.client import GoogleCalendarClient
from calendar_gateway.monitoring.logger import CalendarMonitor, calendar_monitor
from calendar_gateway.services.credential_store import (
    CredentialRecord,
    CredentialStore,
    credential_store,
)


logger = logging.getLogger("calendar_gateway.services.credential_resolver")


def has_calendar_capability(scope: str) -> bool:
    """True if the scope string grants read or write access to events."""
    if CALENDAR_FULL_SCOPE in scope.split():
        return True
    return any(capability in scope for capability in REQUIRED_CALENDAR_CAPABILITIES)


class TokenRotationPersister:
    """
    Writes rotated tokens back to the credential store.

    Each rotation becomes one detached asyncio task. Per-user locks keep two
    rotations for the same user from interleaving their writes. Nothing about
    a user outlives the client it was resolved for: the last-written values
    live in the handler closure and a lock is dropped once no write holds it.
    """

    def __init__(self, store: CredentialStore, monitor: CalendarMonitor = calendar_monitor):
        self._store = store
        self._monitor = monitor
        self._locks: weakref.WeakValueDictionary[str, asyncio.Lock] = (
            weakref.WeakValueDictionary()
        )
        self._tasks: Set[asyncio.Task] = set()

    def handler_for(
        self, user_id: str, record: CredentialRecord
    ) -> Callable[[OAuthTokens], None]:
        """
        Build the on_rotate callback for one resolved client.

        Args:
            user_id: Owner of the credential
            record: Snapshot the client was built from
        """
        # Values the store holds as far as this client knows
        known: Dict[str, Any] = {
            "access_token": record.access_token,
            "refresh_token": record.refresh_token,
            "expires_at": record.expires_at,
        }

        def on_rotate(tokens: OAuthTokens) -> None:
            task = asyncio.get_running_loop().create_task(
                self._persist(user_id, tokens, known)
            )
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)

        return on_rotate

    @staticmethod
    def _changed_fields(tokens: OAuthTokens, known: Dict[str, Any]) -> Dict[str, Any]:
        candidates: Dict[str, Any] = {"access_token": tokens.access_token}
        if tokens.refresh_token:
            candidates["refresh_token"] = tokens.refresh_token
        if tokens.expires_at is not None:
            candidates["expires_at"] = tokens.expires_at
        return {
            name: value
            for name, value in candidates.items()
            if known.get(name) != value
        }

    def _lock_for(self, user_id: str) -> asyncio.Lock:
        lock = self._locks.get(user_id)
        if lock is None:
            lock = asyncio.Lock()
            self._locks[user_id] = lock
        return lock

    async def _persist(self, user_id: str, tokens: OAuthTokens, known: Dict[str, Any]) -> None:
        lock = self._lock_for(user_id)
        async with lock:
            fields = self._changed_fields(tokens, known)
            if not fields:
                return
            try:
                await asyncio.to_thread(
                    self._store.update, user_id, fields, datetime.now(timezone.utc)
                )
            except Exception as e:
                logger.exception(f"Failed to persist rotated tokens for user {user_id}")
                self._monitor.log_rotation_failed(user_id, str(e))
                return
            known.update(fields)
            self._monitor.log_rotation_persisted(user_id, list(fields))

    async def wait_idle(self) -> None:
        """Wait for every scheduled write to finish (used at shutdown and in tests)."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


class CredentialResolver:
    """
    Resolves user identities to authenticated GoogleCalendarClient handles.

    The credential record is read fresh on every resolve; nothing is cached
    across calls.
    """

    def __init__(
        self,
        store: CredentialStore = credential_store,
        auth_client: Optional[GoogleAuthClient] = None,
        monitor: CalendarMonitor = calendar_monitor,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Args:
            store: Credential Store Adapter
            auth_client: Token endpoint client handed to every calendar client
            monitor: Observability collaborator
            transport: Optional httpx transport for the calendar clients (tests)
        """
        self._store = store
        self._auth_client = auth_client or GoogleAuthClient(transport=transport)
        self._monitor = monitor
        self._transport = transport
        self.rotation = TokenRotationPersister(store, monitor)

    async def resolve(self, user_id: str) -> GoogleCalendarClient:
        """
        Build an authenticated calendar client for a user.

        Raises:
            NoLinkedAccountError: No Google credential stored
            MissingAccessTokenError: Credential has no access token
            InsufficientScopeError: Scope grants no calendar capability
        """
        self._monitor.log_resolution_start(user_id)

        record = await asyncio.to_thread(self._store.get, user_id)
        try:
            self._check(record)
        except (NoLinkedAccountError, MissingAccessTokenError, InsufficientScopeError) as e:
            self._monitor.log_resolution_end(user_id, success=False, error_kind=e.kind.value)
            raise

        client = GoogleCalendarClient(
            access_token=record.access_token,
            refresh_token=record.refresh_token,
            expires_at=record.expires_at,
            on_rotate=self.rotation.handler_for(user_id, record),
            auth_client=self._auth_client,
            transport=self._transport,
        )

        self._monitor.log_resolution_end(
            user_id,
            success=True,
            has_refresh_token=record.refresh_token is not None,
        )
        return client

    @staticmethod
    def _check(record: Optional[CredentialRecord]) -> None:
        if record is None:
            raise NoLinkedAccountError(
                "No Google account linked. Please sign in with Google first."
            )
        if not record.access_token:
            raise MissingAccessTokenError(
                "No access token found. Please sign in again."
            )
        if record.scope and not has_calendar_capability(record.scope):
            raise InsufficientScopeError(
                "Calendar permissions not granted. Please sign out and sign in "
                "again to grant calendar access."
            )
