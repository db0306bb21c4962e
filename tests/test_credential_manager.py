try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import json
from datetime import datetime, timedelta, timezone

import pytest

from app.clients.google_auth import OAuthTokenExchangeError
from app.core.errors import (
    AuthenticationError,
    CredentialExchangeError,
    CredentialRefreshError,
    RevocationError,
)
from app.models.provisioning import OAuthCredential
from app.services.credentials import CredentialManager

NOW = datetime(2026, 1, 1, 12, 0, tzinfo=timezone.utc)


def _fixed_now() -> datetime:
    return NOW


class DummyOAuthClient:
    client_id = "client-id"
    client_secret = "client-secret"

    def __init__(
        self,
        *,
        refresh_token: str | None = "refresh-token",
        error: Exception | None = None,
    ) -> None:
        self.refresh_token_value = refresh_token
        self.error = error
        self.exchanged: list[str] = []
        self.refreshed: list[str] = []
        self.revoked: list[str] = []

    def build_authorization_url(self, scopes=None) -> str:
        return "https://accounts.example/auth?prompt=consent"

    async def exchange_authorization_code(self, code: str):
        self.exchanged.append(code)
        if self.error:
            raise self.error
        return "access-token", self.refresh_token_value, 3600

    async def refresh_token(self, refresh_token: str):
        self.refreshed.append(refresh_token)
        if self.error:
            raise self.error
        return "refreshed-access", 3600, None

    async def revoke_token(self, token: str) -> None:
        self.revoked.append(token)
        if self.error:
            raise self.error


def _credential(expires_in: timedelta | None) -> OAuthCredential:
    return OAuthCredential(
        refresh_token="refresh-token",
        access_token="access-token",
        expires_at=NOW + expires_in if expires_in is not None else None,
    )


def test_is_expired_without_expiry() -> None:
    manager = CredentialManager(DummyOAuthClient(), now_fn=_fixed_now)
    assert manager.is_expired(_credential(None)) is True


def test_is_expired_inside_refresh_window() -> None:
    manager = CredentialManager(DummyOAuthClient(), now_fn=_fixed_now)
    assert manager.is_expired(_credential(timedelta(minutes=4))) is True
    assert manager.is_expired(_credential(timedelta(minutes=5))) is True


def test_is_not_expired_outside_refresh_window() -> None:
    manager = CredentialManager(DummyOAuthClient(), now_fn=_fixed_now)
    assert manager.is_expired(_credential(timedelta(minutes=10))) is False


def test_is_expired_accepts_explicit_clock() -> None:
    manager = CredentialManager(DummyOAuthClient(), now_fn=_fixed_now)
    credential = _credential(timedelta(minutes=10))
    later = lambda: NOW + timedelta(minutes=6)  # noqa: E731
    assert manager.is_expired(credential, later) is True


@pytest.mark.asyncio
async def test_ensure_valid_returns_fresh_credential_untouched() -> None:
    oauth = DummyOAuthClient()
    manager = CredentialManager(oauth, now_fn=_fixed_now)
    credential = _credential(timedelta(minutes=30))

    assert await manager.ensure_valid(credential) is credential
    assert oauth.refreshed == []


@pytest.mark.asyncio
async def test_ensure_valid_refreshes_once_when_stale() -> None:
    oauth = DummyOAuthClient()
    manager = CredentialManager(oauth, now_fn=_fixed_now)

    refreshed = await manager.ensure_valid(_credential(timedelta(minutes=1)))

    assert oauth.refreshed == ["refresh-token"]
    assert refreshed.access_token is not None
    assert refreshed.access_token.get_secret_value() == "refreshed-access"
    assert refreshed.expires_at == NOW + timedelta(seconds=3600)
    assert refreshed.refresh_token.get_secret_value() == "refresh-token"


@pytest.mark.asyncio
async def test_ensure_valid_propagates_refresh_failure() -> None:
    oauth = DummyOAuthClient(error=OAuthTokenExchangeError("invalid_grant"))
    manager = CredentialManager(oauth, now_fn=_fixed_now)

    with pytest.raises(CredentialRefreshError) as excinfo:
        await manager.ensure_valid(_credential(None))

    assert isinstance(excinfo.value, AuthenticationError)
    assert len(oauth.refreshed) == 1


@pytest.mark.asyncio
async def test_exchange_code_builds_credential() -> None:
    oauth = DummyOAuthClient()
    manager = CredentialManager(oauth, now_fn=_fixed_now)

    credential = await manager.exchange_code("auth-code")

    assert oauth.exchanged == ["auth-code"]
    assert credential.refresh_token.get_secret_value() == "refresh-token"
    assert credential.expires_at == NOW + timedelta(hours=1)
    assert "refresh-token" not in repr(credential)


@pytest.mark.asyncio
async def test_exchange_code_without_refresh_token_requires_consent() -> None:
    oauth = DummyOAuthClient(refresh_token=None)
    manager = CredentialManager(oauth, now_fn=_fixed_now)

    with pytest.raises(CredentialExchangeError) as excinfo:
        await manager.exchange_code("auth-code")

    assert "No refresh token" in excinfo.value.message
    assert len(oauth.exchanged) == 1


@pytest.mark.asyncio
async def test_exchange_code_provider_error() -> None:
    oauth = DummyOAuthClient(error=OAuthTokenExchangeError("bad code"))
    manager = CredentialManager(oauth, now_fn=_fixed_now)

    with pytest.raises(CredentialExchangeError):
        await manager.exchange_code("auth-code")


@pytest.mark.asyncio
async def test_revoke_treats_invalid_token_as_revoked() -> None:
    oauth = DummyOAuthClient(
        error=OAuthTokenExchangeError("already revoked", error_code="invalid_token")
    )
    manager = CredentialManager(oauth, now_fn=_fixed_now)

    await manager.revoke("token")
    assert oauth.revoked == ["token"]


@pytest.mark.asyncio
async def test_revoke_surfaces_other_failures() -> None:
    oauth = DummyOAuthClient(error=OAuthTokenExchangeError("boom", error_code="server_error"))
    manager = CredentialManager(oauth, now_fn=_fixed_now)

    with pytest.raises(RevocationError):
        await manager.revoke("token")


def test_credentials_bundle_is_authorized_user_document() -> None:
    manager = CredentialManager(DummyOAuthClient(), now_fn=_fixed_now)

    bundle = json.loads(manager.build_credentials_bundle(_credential(None)))

    assert bundle["type"] == "authorized_user"
    assert bundle["refresh_token"] == "refresh-token"
    assert bundle["client_id"] == "client-id"
    assert bundle["client_secret"] == "client-secret"
    assert "token" not in bundle
