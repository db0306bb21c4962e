"""Expose constructed client wrappers."""

from .google_auth import GoogleOAuthClient, OAuthTokenExchangeError
from .pulumi_stack import PulumiStackExecutor, StackExecutor

__all__ = [
    "GoogleOAuthClient",
    "OAuthTokenExchangeError",
    "PulumiStackExecutor",
    "StackExecutor",
]
