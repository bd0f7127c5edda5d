"""
Models package - SQLAlchemy ORM models.

Import models here so Base.metadata sees every table.
"""

from calendar_gateway.models.oauth_credential import OAuthCredential

__all__ = ["OAuthCredential"]
