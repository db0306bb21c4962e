"""
Error taxonomy for the provisioning service.

Every failure raised by the orchestrator is a ``ProvisioningError`` carrying
enough context (stack name, tenant identifiers, step) for a caller to decide
whether to retry. The front controller maps the ``http_status`` and ``title``
attributes to the JSON error body.
"""

from __future__ import annotations

from http import HTTPStatus
from typing import Any


class ProvisioningError(Exception):
    """Base class for all typed provisioning failures."""

    http_status: int = HTTPStatus.INTERNAL_SERVER_ERROR
    title: str = "Internal Server Error"
    public_message: str = "Something went wrong"

    def __init__(self, message: str, **context: Any) -> None:
        super().__init__(message)
        self.message = message
        self.context = {key: value for key, value in context.items() if value is not None}

    @property
    def user_facing(self) -> bool:
        """True when the message is safe to return to the caller verbatim."""
        return self.http_status < HTTPStatus.INTERNAL_SERVER_ERROR

    def to_response(self) -> dict[str, str]:
        message = self.message if self.user_facing else self.public_message
        return {"error": self.title, "message": message}


class ValidationError(ProvisioningError):
    """Missing or malformed input; the caller must resubmit."""

    http_status = HTTPStatus.BAD_REQUEST
    title = "Validation Error"


class AuthenticationError(ProvisioningError):
    """The OAuth credential could not be exchanged or refreshed."""

    http_status = HTTPStatus.BAD_REQUEST
    title = "Authentication Error"


class CredentialExchangeError(AuthenticationError):
    """Raised when an authorization code cannot be turned into a credential."""


class CredentialRefreshError(AuthenticationError):
    """Raised when a stale access token cannot be refreshed."""


class ConfigurationError(ProvisioningError):
    """Secrets or settings could not be applied to the stack."""

    title = "Configuration Error"
    public_message = "Failed to configure the deployment stack"


class DeploymentError(ProvisioningError):
    """The infrastructure apply failed."""

    title = "Deployment Error"
    public_message = "Failed to grant access to BigQuery dataset"


class RevocationError(ProvisioningError):
    """Best-effort token revocation failed at the provider."""

    title = "Revocation Error"
    public_message = "Failed to revoke token"


__all__ = [
    "AuthenticationError",
    "ConfigurationError",
    "CredentialExchangeError",
    "CredentialRefreshError",
    "DeploymentError",
    "ProvisioningError",
    "RevocationError",
    "ValidationError",
]
