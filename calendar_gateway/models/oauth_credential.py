"""
OAuth Credential model - stores a user's delegated Google tokens.

One row per (user, provider). The row is created by the external consent
flow and afterwards only touched by the credential store when the provider
client rotates tokens. The gateway never deletes it; unlinking an account is
handled elsewhere.

Example Usage:
    credential = OAuthCredential(
        user_id="user-123",
        provider="google",
        access_token="ya29.xxx",
        refresh_token="1//xxx",
        scope="openid https://www.googleapis.com/auth/calendar.readonly",
    )
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import String, DateTime, Text, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from calendar_gateway.db.base import Base


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class OAuthCredential(Base):
    """
    SQLAlchemy ORM model for the 'oauth_credentials' table.

    Key Features:
    - One provider per user (unique constraint on user_id + provider)
    - Access token is nullable: a record without one means the user has to
      sign in again
    - Scope is kept exactly as Google returned it (space-delimited)
    """

    __tablename__ = "oauth_credentials"
    __table_args__ = (
        UniqueConstraint("user_id", "provider", name="uq_oauth_credentials_user_provider"),
    )

    # ---------------------------------------------------------------------------
    # PRIMARY KEY
    # ---------------------------------------------------------------------------
    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)

    # ---------------------------------------------------------------------------
    # OWNER
    # ---------------------------------------------------------------------------
    # user_id: identity issued by the authentication service (opaque string)
    user_id: Mapped[str] = mapped_column(String(255), nullable=False, index=True)

    # provider: always "google" today
    provider: Mapped[str] = mapped_column(String(50), nullable=False, default="google")

    # ---------------------------------------------------------------------------
    # TOKEN DATA
    # ---------------------------------------------------------------------------
    access_token: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    refresh_token: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # scope: space-delimited scopes granted at consent time
    scope: Mapped[Optional[str]] = mapped_column(Text, nullable=True)

    # expires_at: when access_token stops working, if Google told us
    expires_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # ---------------------------------------------------------------------------
    # TIMESTAMPS
    # ---------------------------------------------------------------------------
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    # updated_at is stamped explicitly by the store on every token rotation
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow)

    def __repr__(self) -> str:
        return f"<OAuthCredential(user_id={self.user_id!r}, provider={self.provider!r})>"
