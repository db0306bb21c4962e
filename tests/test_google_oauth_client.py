try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from app.clients.google_auth import GoogleOAuthClient, OAuthTokenExchangeError
from app.core.config import GoogleSettings, OAuthSettings

pytestmark = pytest.mark.anyio


def _settings() -> tuple[GoogleSettings, OAuthSettings]:
    google = GoogleSettings(
        GOOGLE_CLIENT_ID="client",
        GOOGLE_CLIENT_SECRET="secret",
        GOOGLE_REDIRECT_URI="https://example.com/oauth2callback",
    )
    return google, OAuthSettings()


def _client(handler) -> tuple[GoogleOAuthClient, list[httpx.Request]]:
    seen: list[httpx.Request] = []

    def _record(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return handler(request)

    google, oauth = _settings()
    return GoogleOAuthClient(google, oauth, transport=httpx.MockTransport(_record)), seen


def _form(request: httpx.Request) -> dict[str, str]:
    return {key: values[0] for key, values in parse_qs(request.content.decode()).items()}


async def test_authorization_url_requests_offline_access_with_consent() -> None:
    client, _ = _client(lambda request: httpx.Response(200))
    url = urlparse(client.build_authorization_url())
    params = parse_qs(url.query)

    assert params["access_type"] == ["offline"]
    assert params["prompt"] == ["consent"]
    assert "https://www.googleapis.com/auth/bigquery" in params["scope"][0]
    assert params["redirect_uri"] == ["https://example.com/oauth2callback"]


async def test_exchange_returns_tokens() -> None:
    client, seen = _client(
        lambda request: httpx.Response(
            200,
            json={"access_token": "at", "refresh_token": "rt", "expires_in": 3599},
        )
    )

    assert await client.exchange_authorization_code("code-1") == ("at", "rt", 3599)
    assert len(seen) == 1
    form = _form(seen[0])
    assert form["grant_type"] == "authorization_code"
    assert form["code"] == "code-1"


async def test_exchange_tolerates_missing_refresh_token() -> None:
    client, _ = _client(
        lambda request: httpx.Response(200, json={"access_token": "at", "expires_in": 10})
    )

    assert await client.exchange_authorization_code("code-1") == ("at", None, 10)


async def test_refresh_error_carries_provider_code() -> None:
    client, _ = _client(
        lambda request: httpx.Response(
            400,
            json={"error": "invalid_grant", "error_description": "Token has been expired"},
        )
    )

    with pytest.raises(OAuthTokenExchangeError) as excinfo:
        await client.refresh_token("rt")

    assert excinfo.value.error_code == "invalid_grant"
    assert "Token has been expired" in str(excinfo.value)


async def test_revoke_posts_token() -> None:
    client, seen = _client(lambda request: httpx.Response(200))

    await client.revoke_token("rt")

    assert str(seen[0].url) == GoogleOAuthClient.REVOKE_URL
    assert _form(seen[0]) == {"token": "rt"}
