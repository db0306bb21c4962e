"""Service layer exports."""

from .credentials import CredentialManager
from .provisioning import ProvisioningOrchestrator, ProvisioningState
from .stack_locks import StackLockRegistry
from .stack_naming import compute_stack_name, parse_stack_name

__all__ = [
    "CredentialManager",
    "ProvisioningOrchestrator",
    "ProvisioningState",
    "StackLockRegistry",
    "compute_stack_name",
    "parse_stack_name",
]
