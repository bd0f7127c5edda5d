"""
Credential Store - read and patch a user's stored Google OAuth credential.

This is the only code that touches the oauth_credentials table. Callers get
an immutable CredentialRecord snapshot; the ORM row never leaves this module.

Usage:
======
    from calendar_gateway.services.credential_store import credential_store

    record = credential_store.get("user-123")
    credential_store.update(
        "user-123",
        {"access_token": "ya29.new"},
        datetime.now(timezone.utc),
    )
"""

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Callable, Dict, Optional

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from calendar_gateway.db.session import SessionLocal
from calendar_gateway.models.oauth_credential import OAuthCredential


logger = logging.getLogger("calendar_gateway.services.credential_store")

PROVIDER = "google"

# Only token fields may be patched through update()
UPDATABLE_FIELDS = frozenset({"access_token", "refresh_token", "expires_at", "scope"})


@dataclass(frozen=True)
class CredentialRecord:
    """Snapshot of one user's Google credential."""
    user_id: str
    access_token: Optional[str]
    refresh_token: Optional[str]
    scope: Optional[str]
    expires_at: Optional[datetime]
    updated_at: Optional[datetime]

    @classmethod
    def from_model(cls, credential: OAuthCredential) -> "CredentialRecord":
        return cls(
            user_id=credential.user_id,
            access_token=credential.access_token,
            refresh_token=credential.refresh_token,
            scope=credential.scope,
            expires_at=credential.expires_at,
            updated_at=credential.updated_at,
        )


class CredentialStore:
    """
    Credential Store Adapter backed by SQLAlchemy.

    Every call opens its own short-lived session, so the store is safe to use
    from worker threads.
    """

    def __init__(self, session_factory: Callable[[], Session] = SessionLocal):
        self._session_factory = session_factory

    def get(self, user_id: str) -> Optional[CredentialRecord]:
        """
        Load the Google credential for a user.

        Returns:
            CredentialRecord, or None when the user never linked an account
        """
        with self._session_factory() as db:
            credential = db.scalars(
                select(OAuthCredential).where(
                    OAuthCredential.user_id == user_id,
                    OAuthCredential.provider == PROVIDER,
                )
            ).first()
            if credential is None:
                return None
            return CredentialRecord.from_model(credential)

    def update(self, user_id: str, fields: Dict[str, Any], timestamp: datetime) -> bool:
        """
        Patch the given token fields and stamp updated_at in one statement.

        Args:
            user_id: Owner of the credential
            fields: Subset of access_token / refresh_token / expires_at / scope
            timestamp: Value written to updated_at

        Returns:
            True if a row was updated, False if the user has no credential

        Raises:
            ValueError: If fields names anything outside the token fields
        """
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Cannot update credential fields: {sorted(unknown)}")

        with self._session_factory() as db:
            result = db.execute(
                update(OAuthCredential)
                .where(
                    OAuthCredential.user_id == user_id,
                    OAuthCredential.provider == PROVIDER,
                )
                .values(**fields, updated_at=timestamp)
            )
            db.commit()

        updated = result.rowcount > 0
        if not updated:
            logger.warning(f"No Google credential to update for user {user_id}")
        return updated


# ---------------------------------------------------------------------------
# SINGLETON INSTANCE
# ---------------------------------------------------------------------------
credential_store = CredentialStore()
