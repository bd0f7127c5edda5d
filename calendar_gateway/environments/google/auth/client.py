"""
Google OAuth Client - refreshes delegated access tokens.

The consent flow (authorization URL, code exchange) belongs to the external
authentication service. The gateway only needs the refresh grant, which the
calendar client calls when an access token has expired.

References:
===========
- OAuth 2.0: https://developers.google.com/identity/protocols/oauth2
- Token endpoint: https://oauth2.googleapis.com/token
"""

import logging
from typing import Optional

import httpx

from calendar_gateway.core.config import settings
from calendar_gateway.environments.base import OAuthTokens, TokenRefreshError
from calendar_gateway.environments.google.auth.schemas import GoogleTokenResponse


logger = logging.getLogger("calendar_gateway.environments.google.auth")


class GoogleAuthClient:
    """
    Google OAuth 2.0 token client.

    Example Usage:
        client = GoogleAuthClient()
        tokens = await client.refresh_access_token(refresh_token="1//xxx")
    """

    provider_name = "google"

    def __init__(
        self,
        client_id: Optional[str] = None,
        client_secret: Optional[str] = None,
        token_url: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """
        Initialize the Google OAuth client.

        Args:
            client_id: Google OAuth Client ID (defaults to settings)
            client_secret: Google OAuth Client Secret (defaults to settings)
            token_url: Token endpoint (defaults to settings)
            transport: Optional httpx transport, used by tests
        """
        self.client_id = client_id or settings.GOOGLE_CLIENT_ID
        self.client_secret = client_secret or settings.GOOGLE_CLIENT_SECRET
        self.token_url = token_url or settings.GOOGLE_TOKEN_URL
        self._transport = transport

        if not self.client_id or not self.client_secret:
            logger.warning(
                "Google OAuth not configured. Set GOOGLE_CLIENT_ID and "
                "GOOGLE_CLIENT_SECRET in environment variables."
            )

    # -------------------------------------------------------------------------
    # TOKEN REFRESH
    # -------------------------------------------------------------------------

    async def refresh_access_token(self, refresh_token: str) -> OAuthTokens:
        """
        Use refresh token to get a new access token.

        Args:
            refresh_token: The refresh token from initial authorization

        Returns:
            OAuthTokens with the new access_token. refresh_token is only set
            when Google issued a new one.

        Raises:
            TokenRefreshError: If the refresh token is invalid or revoked,
                or the token endpoint is unreachable
        """
        refresh_data = {
            "client_id": self.client_id,
            "client_secret": self.client_secret,
            "refresh_token": refresh_token,
            "grant_type": "refresh_token",
        }

        logger.info("Refreshing access token")

        async with httpx.AsyncClient(transport=self._transport) as client:
            try:
                response = await client.post(
                    self.token_url,
                    data=refresh_data,
                    timeout=settings.GOOGLE_API_TIMEOUT,
                )
            except httpx.RequestError as e:
                logger.error(f"Network error during token refresh: {e}")
                raise TokenRefreshError(f"Network error: {e}")

        if response.status_code != 200:
            try:
                error_data = response.json()
            except ValueError:
                error_data = {}
            error_msg = error_data.get("error_description") or response.text
            logger.error(f"Token refresh failed: {error_msg}")
            raise TokenRefreshError(
                f"Token refresh failed: {error_msg}",
                status_code=response.status_code,
                response=response.text,
                provider_message=error_msg,
                reason=error_data.get("error"),
            )

        token_response = GoogleTokenResponse(**response.json())

        logger.info(
            "Successfully refreshed access token",
            extra={
                "expires_in": token_response.expires_in,
                "rotated_refresh_token": token_response.refresh_token is not None,
            },
        )

        return OAuthTokens(
            access_token=token_response.access_token,
            token_type=token_response.token_type,
            refresh_token=token_response.refresh_token,
            expires_at=token_response.get_expires_at(),
            scopes=token_response.get_scopes_list(),
        )
