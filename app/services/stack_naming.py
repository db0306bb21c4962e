"""Deterministic stack names for tenant project/dataset pairs."""

from __future__ import annotations

import re
from typing import Tuple

from app.core.errors import ValidationError

STACK_PREFIX = "tenant-"
SEPARATOR = "."
MAX_STACK_NAME_LENGTH = 100

# Google Cloud project ids: 6-30 chars, lowercase letters, digits and hyphens.
ACCOUNT_ID_PATTERN = re.compile(r"^[a-z][a-z0-9-]{4,28}[a-z0-9]$")
# Dataset ids: letters, digits, underscores and hyphens. Neither pattern admits
# the separator, which keeps the mapping injective.
RESOURCE_ID_PATTERN = re.compile(r"^[A-Za-z0-9_-]+$")
STACK_NAME_PATTERN = re.compile(r"^[A-Za-z0-9_.-]+$")


def validate_account_id(account_id: str) -> str:
    if not account_id:
        raise ValidationError("Project ID is required.")
    if not ACCOUNT_ID_PATTERN.fullmatch(account_id):
        raise ValidationError(
            "Project ID must be 6-30 lowercase letters, digits or hyphens, "
            "start with a letter and not end with a hyphen.",
            account_id=account_id,
        )
    return account_id


def validate_resource_id(resource_id: str) -> str:
    if not resource_id:
        raise ValidationError("Dataset ID is required.")
    if not RESOURCE_ID_PATTERN.fullmatch(resource_id):
        raise ValidationError(
            "Dataset ID may only contain letters, digits, underscores or hyphens.",
            resource_id=resource_id,
        )
    return resource_id


def compute_stack_name(account_id: str, resource_id: str) -> str:
    """Map a tenant project and dataset to its stack name.

    The same pair always yields the same name, so repeated grants update the
    existing stack. Inputs that cannot be encoded within the engine's naming
    rules raise ``ValidationError``; nothing is truncated or substituted.
    """
    validate_account_id(account_id)
    validate_resource_id(resource_id)

    name = f"{STACK_PREFIX}{account_id}{SEPARATOR}{resource_id}"
    if len(name) > MAX_STACK_NAME_LENGTH:
        raise ValidationError(
            f"Dataset ID is too long; stack names are limited to "
            f"{MAX_STACK_NAME_LENGTH} characters.",
            account_id=account_id,
            resource_id=resource_id,
        )
    return name


def parse_stack_name(stack_name: str) -> Tuple[str, str]:
    """Recover ``(account_id, resource_id)`` from a name built by ``compute_stack_name``."""
    if not stack_name.startswith(STACK_PREFIX) or not STACK_NAME_PATTERN.fullmatch(
        stack_name
    ):
        raise ValidationError(f"Not a tenant stack name: {stack_name!r}")
    account_id, sep, resource_id = stack_name[len(STACK_PREFIX):].partition(SEPARATOR)
    if not sep:
        raise ValidationError(f"Not a tenant stack name: {stack_name!r}")
    validate_account_id(account_id)
    validate_resource_id(resource_id)
    return account_id, resource_id


__all__ = [
    "MAX_STACK_NAME_LENGTH",
    "compute_stack_name",
    "parse_stack_name",
    "validate_account_id",
    "validate_resource_id",
]
