"""
Application configuration models and helpers.

Centralizes settings management so the FastAPI app, the provisioning services
and the operator scripts share a consistent configuration surface.
"""

from functools import lru_cache
from pathlib import Path
from typing import Annotated, Optional

import os

from pydantic import AliasChoices, AnyHttpUrl, Field, HttpUrl, field_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


def _load_env_file(path: str = ".env") -> None:
    """Best-effort load key=value pairs from a .env file into the environment."""
    env_path = Path(path)
    if not env_path.exists():
        return
    for raw_line in env_path.read_text().splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#"):
            continue
        key, sep, value = line.partition("=")
        if not sep:
            continue
        key = key.strip()
        if not key or key in os.environ:
            continue
        os.environ[key] = value.strip().strip('"').strip("'")


_load_env_file()


class GoogleSettings(BaseSettings):
    """OAuth client registration used against Google's identity platform."""

    model_config = SettingsConfigDict(populate_by_name=True, extra="ignore")

    client_id: str = Field(
        ..., validation_alias=AliasChoices("GOOGLE_CLIENT_ID", "CLIENT_ID")
    )
    client_secret: str = Field(
        ..., validation_alias=AliasChoices("GOOGLE_CLIENT_SECRET", "CLIENT_SECRET")
    )
    redirect_uri: AnyHttpUrl = Field(
        ..., validation_alias=AliasChoices("GOOGLE_REDIRECT_URI", "REDIRECT_URI")
    )


class OAuthSettings(BaseSettings):
    """OAuth flow configuration."""

    model_config = SettingsConfigDict(populate_by_name=True, extra="ignore")

    scopes: Annotated[tuple[str, ...], NoDecode] = Field(
        (
            "https://www.googleapis.com/auth/bigquery",
            "https://www.googleapis.com/auth/cloud-platform",
        ),
        validation_alias="OAUTH_SCOPES",
    )
    http_timeout_seconds: float = Field(10.0, validation_alias="OAUTH_HTTP_TIMEOUT")

    @field_validator("scopes", mode="before")
    @classmethod
    def _split_scopes(
        cls, value: str | tuple[str, ...] | list[str]
    ) -> tuple[str, ...]:
        """Support providing scopes as a comma-separated string."""
        if isinstance(value, tuple):
            return value
        if isinstance(value, list):
            return tuple(value)
        return tuple(scope.strip() for scope in value.split(",") if scope.strip())


class PulumiSettings(BaseSettings):
    """Settings for the Pulumi Automation API workspace."""

    model_config = SettingsConfigDict(populate_by_name=True, extra="ignore")

    access_token: Optional[str] = Field(None, validation_alias="PULUMI_ACCESS_TOKEN")
    project_name: str = Field("gbq-integration", validation_alias="PULUMI_PROJECT")
    work_dir: Optional[str] = Field(
        None,
        validation_alias="PULUMI_WORK_DIR",
        description="Optional workspace directory; Pulumi picks a temp dir when omitted.",
    )
    grantee_member: str = Field(
        "serviceAccount:integration@icustomer-warahouse.iam.gserviceaccount.com",
        validation_alias="GRANTEE_MEMBER",
        description="IAM member that receives access to the tenant dataset.",
    )
    grant_role: str = Field("roles/bigquery.dataViewer", validation_alias="GRANT_ROLE")


class AppSettings(BaseSettings):
    """Root settings object for the FastAPI application."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        populate_by_name=True,
        extra="ignore",
    )

    environment: str = Field("development", validation_alias="APP_ENV")
    log_level: str = Field("INFO", validation_alias="APP_LOG_LEVEL")
    frontend_base_url: Optional[HttpUrl] = Field(
        None,
        validation_alias=AliasChoices("FRONTEND_URL", "FRONTEND_BASE_URL"),
        description="Browser client that receives the OAuth callback redirect.",
    )
    provisioning_timeout_seconds: float = Field(
        900.0,
        validation_alias="PROVISIONING_TIMEOUT_SECONDS",
        description="Upper bound for a single grant request, apply included.",
    )
    oauth: OAuthSettings = Field(default_factory=OAuthSettings)
    google: GoogleSettings = Field(default_factory=GoogleSettings)
    pulumi: PulumiSettings = Field(default_factory=PulumiSettings)

    @property
    def frontend_callback_base(self) -> str:
        if self.frontend_base_url is None:
            return "http://localhost:5173"
        return str(self.frontend_base_url).rstrip("/")


@lru_cache()
def get_settings() -> AppSettings:
    """Return a cached settings object."""
    return AppSettings()  # type: ignore[call-arg]


__all__ = [
    "AppSettings",
    "GoogleSettings",
    "OAuthSettings",
    "PulumiSettings",
    "get_settings",
]
