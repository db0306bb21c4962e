"""
Google OAuth utilities.

Thin HTTP wrapper around Google's OAuth 2.0 endpoints. Each method performs
exactly one request; interpretation of the results belongs to
``app.services.credentials.CredentialManager``.
"""

from __future__ import annotations

from typing import Any, Dict, Optional, Sequence, Tuple
from urllib.parse import urlencode

import httpx

from fastapi import status

from app.core.config import GoogleSettings, OAuthSettings


class OAuthTokenExchangeError(Exception):
    """Raised when a Google OAuth endpoint returns an error."""

    def __init__(self, message: str, *, error_code: Optional[str] = None) -> None:
        super().__init__(message)
        self.error_code = error_code


def _error_from_response(response: httpx.Response) -> OAuthTokenExchangeError:
    error_code = None
    description = response.text
    try:
        payload = response.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict):
        error_code = payload.get("error")
        description = payload.get("error_description") or error_code or description
    return OAuthTokenExchangeError(
        f"Google OAuth endpoint returned {response.status_code}: {description}",
        error_code=error_code,
    )


class GoogleOAuthClient:
    """Build Google authorization URLs and talk to the token endpoints."""

    AUTH_BASE_URL = "https://accounts.google.com/o/oauth2/v2/auth"
    TOKEN_URL = "https://oauth2.googleapis.com/token"
    REVOKE_URL = "https://oauth2.googleapis.com/revoke"

    def __init__(
        self,
        google_settings: GoogleSettings,
        oauth_settings: OAuthSettings,
        *,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ) -> None:
        self._google = google_settings
        self._oauth = oauth_settings
        self._transport = transport

    @property
    def client_id(self) -> str:
        return self._google.client_id

    @property
    def client_secret(self) -> str:
        return self._google.client_secret

    def build_authorization_url(self, scopes: Optional[Sequence[str]] = None) -> str:
        """Construct the consent URL; offline access plus forced consent yields a refresh token."""
        params = {
            "client_id": self._google.client_id,
            "redirect_uri": str(self._google.redirect_uri),
            "response_type": "code",
            "scope": " ".join(scopes or self._oauth.scopes),
            "access_type": "offline",
            "prompt": "consent",
        }
        return f"{self.AUTH_BASE_URL}?{urlencode(params)}"

    async def _post(self, url: str, payload: Dict[str, Any]) -> httpx.Response:
        async with httpx.AsyncClient(
            timeout=self._oauth.http_timeout_seconds, transport=self._transport
        ) as client:
            return await client.post(url, data=payload)

    async def exchange_authorization_code(
        self, code: str
    ) -> Tuple[str, Optional[str], int]:
        """
        Exchange an authorization code for tokens.

        Returns a tuple of (access_token, refresh_token, expires_in_seconds).
        Google omits the refresh token when the user already granted offline
        access without a forced consent prompt, so it may be ``None``.
        """
        payload = {
            "code": code,
            "client_id": self._google.client_id,
            "client_secret": self._google.client_secret,
            "redirect_uri": str(self._google.redirect_uri),
            "grant_type": "authorization_code",
        }
        response = await self._post(self.TOKEN_URL, payload)
        if response.status_code != status.HTTP_200_OK:
            raise _error_from_response(response)

        token_payload = response.json()
        access_token = token_payload.get("access_token")
        expires_in = token_payload.get("expires_in")
        if not access_token or not expires_in:
            raise OAuthTokenExchangeError("Incomplete token payload returned from Google.")

        return access_token, token_payload.get("refresh_token"), int(expires_in)

    async def refresh_token(self, refresh_token: str) -> Tuple[str, int, Optional[str]]:
        """Refresh the access token; returns (access_token, expires_in, rotated_refresh_token)."""
        payload = {
            "client_id": self._google.client_id,
            "client_secret": self._google.client_secret,
            "refresh_token": refresh_token,
            "grant_type": "refresh_token",
        }
        response = await self._post(self.TOKEN_URL, payload)
        if response.status_code != status.HTTP_200_OK:
            raise _error_from_response(response)

        token_payload = response.json()
        access_token = token_payload.get("access_token")
        expires_in = token_payload.get("expires_in")
        if not access_token or not expires_in:
            raise OAuthTokenExchangeError("Incomplete refresh payload returned from Google.")

        return access_token, int(expires_in), token_payload.get("refresh_token")

    async def revoke_token(self, token: str) -> None:
        """Revoke an access or refresh token at Google."""
        response = await self._post(self.REVOKE_URL, {"token": token})
        if response.status_code != status.HTTP_200_OK:
            raise _error_from_response(response)


__all__ = [
    "GoogleOAuthClient",
    "OAuthTokenExchangeError",
]
