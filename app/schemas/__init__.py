"""Public schema exports."""

from .auth import OAuthCallbackResponse, RevokeRequest
from .provisioning import ErrorResponse, GrantAccessRequest, GrantAccessResponse

__all__ = [
    "ErrorResponse",
    "GrantAccessRequest",
    "GrantAccessResponse",
    "OAuthCallbackResponse",
    "RevokeRequest",
]
