"""
Domain models for credentials and provisioning runs.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, SecretStr, field_validator


class OAuthCredential(BaseModel):
    """A user-delegated Google OAuth credential.

    The refresh token is wrapped in ``SecretStr`` so it renders masked in
    ``repr``, logs and tracebacks. Refreshing produces an updated copy; the
    refresh token itself is never changed locally.
    """

    model_config = ConfigDict(frozen=True)

    refresh_token: SecretStr
    access_token: Optional[SecretStr] = None
    expires_at: Optional[datetime] = None

    @field_validator("expires_at")
    @classmethod
    def _ensure_utc(cls, value: Optional[datetime]) -> Optional[datetime]:
        if value is not None and value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    def describe(self) -> Dict[str, Any]:
        """Loggable summary carrying only presence flags and the expiry."""
        return {
            "has_refresh_token": bool(self.refresh_token.get_secret_value()),
            "has_access_token": self.access_token is not None,
            "expires_at": self.expires_at.isoformat() if self.expires_at else None,
        }


class ProvisioningRequest(BaseModel):
    """A grant request for one tenant project and dataset.

    Construction performs no format checks; the orchestrator validates the
    request before any collaborator is called.
    """

    model_config = ConfigDict(frozen=True)

    credential: OAuthCredential
    account_id: str = ""
    resource_id: str = ""


class StackHandle(BaseModel):
    """A named stack together with its lock state for the current call.

    ``stack`` holds the engine's stack object for the executor that opened
    the handle; it is never serialized.
    """

    name: str
    locked: bool = False
    stack: Any = Field(default=None, exclude=True, repr=False)


class ProvisioningResult(BaseModel):
    """Outcome of a successful provisioning call."""

    model_config = ConfigDict(frozen=True)

    stack_name: str
    outputs: Dict[str, Any] = Field(default_factory=dict)


__all__ = [
    "OAuthCredential",
    "ProvisioningRequest",
    "ProvisioningResult",
    "StackHandle",
]
