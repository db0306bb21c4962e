"""Expose dependency helpers for FastAPI routers."""

from .clients import (
    get_app_settings,
    get_credential_manager,
    get_google_oauth_client,
    get_provisioning_orchestrator,
    get_stack_executor,
    get_stack_lock_registry,
)

__all__ = [
    "get_app_settings",
    "get_credential_manager",
    "get_google_oauth_client",
    "get_provisioning_orchestrator",
    "get_stack_executor",
    "get_stack_lock_registry",
]
