"""
Lifecycle management for user-delegated Google OAuth credentials.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Optional, Sequence

from google.oauth2.credentials import Credentials

from app.clients.google_auth import GoogleOAuthClient, OAuthTokenExchangeError
from app.core.errors import (
    CredentialExchangeError,
    CredentialRefreshError,
    RevocationError,
)
from app.models.provisioning import OAuthCredential

logger = logging.getLogger(__name__)

NowFn = Callable[[], datetime]


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class CredentialManager:
    """Exchange, validate, refresh and revoke OAuth credentials.

    Nothing is persisted here and every effectful method makes at most one
    call to the identity provider.
    """

    REFRESH_WINDOW = timedelta(minutes=5)
    # Provider error code for a token that is already invalid or revoked.
    ALREADY_REVOKED = "invalid_token"

    def __init__(self, oauth_client: GoogleOAuthClient, *, now_fn: NowFn = utcnow) -> None:
        self._oauth = oauth_client
        self._now = now_fn

    def authorization_url(self, scopes: Optional[Sequence[str]] = None) -> str:
        return self._oauth.build_authorization_url(scopes)

    async def exchange_code(self, code: str) -> OAuthCredential:
        """Trade an authorization code for a credential that carries a refresh token."""
        issued_at = self._now()
        try:
            access_token, refresh_token, expires_in = (
                await self._oauth.exchange_authorization_code(code)
            )
        except OAuthTokenExchangeError as exc:
            logger.error("Authorization code exchange failed: %s", exc)
            raise CredentialExchangeError(
                "Failed to exchange authorization code."
            ) from exc

        logger.info(
            "Obtained tokens from authorization code",
            extra={
                "has_access_token": bool(access_token),
                "has_refresh_token": bool(refresh_token),
            },
        )
        if not refresh_token:
            raise CredentialExchangeError(
                "No refresh token was received. Please revoke access and "
                "authorize again with consent."
            )

        return OAuthCredential(
            refresh_token=refresh_token,
            access_token=access_token,
            expires_at=issued_at + timedelta(seconds=expires_in),
        )

    def is_expired(
        self, credential: OAuthCredential, now_fn: Optional[NowFn] = None
    ) -> bool:
        """True when the access token is missing an expiry or expires within five minutes."""
        if credential.expires_at is None:
            return True
        now = (now_fn or self._now)()
        return now >= credential.expires_at - self.REFRESH_WINDOW

    async def ensure_valid(self, credential: OAuthCredential) -> OAuthCredential:
        """Return ``credential`` unchanged when fresh, otherwise a refreshed copy."""
        if not self.is_expired(credential):
            logger.info("Using existing access token")
            return credential

        logger.info("Access token expired or missing, refreshing")
        refreshed_at = self._now()
        try:
            access_token, expires_in, rotated = await self._oauth.refresh_token(
                credential.refresh_token.get_secret_value()
            )
        except OAuthTokenExchangeError as exc:
            logger.error("Access token refresh failed: %s", exc)
            raise CredentialRefreshError(
                "Failed to refresh access token; re-authorization is required."
            ) from exc

        update: dict[str, Any] = {
            "access_token": access_token,
            "expires_at": refreshed_at + timedelta(seconds=expires_in),
        }
        if rotated:
            update["refresh_token"] = rotated
        refreshed = OAuthCredential.model_validate(
            {**credential.model_dump(), **update}
        )
        logger.info("Refreshed access token", extra=refreshed.describe())
        return refreshed

    async def revoke(self, token: str) -> None:
        """Invalidate ``token`` at the provider; an already-invalid token counts as revoked."""
        try:
            await self._oauth.revoke_token(token)
        except OAuthTokenExchangeError as exc:
            if exc.error_code == self.ALREADY_REVOKED:
                logger.info("Token was already revoked or expired")
                return
            logger.error("Token revocation failed: %s", exc)
            raise RevocationError("Failed to revoke token.") from exc
        logger.info("Token revoked successfully")

    def build_credentials_bundle(self, credential: OAuthCredential) -> str:
        """Serialize the ``authorized_user`` document the GCP provider authenticates with."""
        google_credentials = Credentials(
            token=None,
            refresh_token=credential.refresh_token.get_secret_value(),
            token_uri=GoogleOAuthClient.TOKEN_URL,
            client_id=self._oauth.client_id,
            client_secret=self._oauth.client_secret,
        )
        info = json.loads(google_credentials.to_json(strip=["token", "expiry", "scopes"]))
        info["type"] = "authorized_user"
        return json.dumps(info)


__all__ = ["CredentialManager", "utcnow"]
