"""
Factory functions to provide shared clients and services as FastAPI dependencies.
"""

from functools import lru_cache

from app.clients import GoogleOAuthClient, PulumiStackExecutor
from app.core.config import AppSettings, get_settings
from app.services import (
    CredentialManager,
    ProvisioningOrchestrator,
    StackLockRegistry,
)


@lru_cache()
def _settings() -> AppSettings:
    """Internal helper to cache settings for client factories."""
    return get_settings()


def get_app_settings() -> AppSettings:
    """FastAPI dependency returning application settings."""
    return _settings()


@lru_cache()
def get_google_oauth_client() -> GoogleOAuthClient:
    """Create a singleton Google OAuth client."""
    settings = _settings()
    return GoogleOAuthClient(settings.google, settings.oauth)


@lru_cache()
def get_credential_manager() -> CredentialManager:
    """Provide the OAuth credential lifecycle manager."""
    return CredentialManager(get_google_oauth_client())


@lru_cache()
def get_stack_executor() -> PulumiStackExecutor:
    """Provide the Pulumi Automation API wrapper."""
    return PulumiStackExecutor(_settings().pulumi)


@lru_cache()
def get_stack_lock_registry() -> StackLockRegistry:
    """Provide the process-wide registry of per-stack locks."""
    return StackLockRegistry()


@lru_cache()
def get_provisioning_orchestrator() -> ProvisioningOrchestrator:
    """Build the orchestrator around the shared lock registry."""
    return ProvisioningOrchestrator(
        credential_manager=get_credential_manager(),
        executor=get_stack_executor(),
        locks=get_stack_lock_registry(),
    )


__all__ = [
    "get_app_settings",
    "get_credential_manager",
    "get_google_oauth_client",
    "get_provisioning_orchestrator",
    "get_stack_executor",
    "get_stack_lock_registry",
]
