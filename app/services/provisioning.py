"""
Provisioning orchestrator: grants a tenant dataset access through a stack.

One call to ``ProvisioningOrchestrator.provision`` walks the states below.
Any state may end in ``FAILED``; the per-stack lock is released on every
exit path, cancellation included.

    VALIDATING -> AUTHENTICATING -> LOCKING -> CONFIGURING -> APPLYING -> DONE
"""

from __future__ import annotations

import logging
import re
from enum import Enum
from typing import Any, Dict, Optional

from app.clients.pulumi_stack import StackExecutor
from app.core.errors import (
    AuthenticationError,
    ConfigurationError,
    DeploymentError,
    ProvisioningError,
    ValidationError,
)
from app.models.provisioning import (
    OAuthCredential,
    ProvisioningRequest,
    ProvisioningResult,
    StackHandle,
)
from app.services.credentials import CredentialManager
from app.services.stack_locks import StackLockRegistry
from app.services.stack_naming import compute_stack_name

logger = logging.getLogger(__name__)

MAX_REFRESH_TOKEN_LENGTH = 2048
_WHITESPACE = re.compile(r"\s")

CREDENTIALS_CONFIG_KEY = "gcp:credentials"
PROJECT_CONFIG_KEY = "gcp:project"
DATASET_CONFIG_KEY = "datasetId"


class ProvisioningState(str, Enum):
    VALIDATING = "validating"
    AUTHENTICATING = "authenticating"
    LOCKING = "locking"
    CONFIGURING = "configuring"
    APPLYING = "applying"
    DONE = "done"
    FAILED = "failed"


class ProvisioningOrchestrator:
    """Compose credential handling, stack naming, locking and the stack executor."""

    def __init__(
        self,
        credential_manager: CredentialManager,
        executor: StackExecutor,
        locks: StackLockRegistry,
    ) -> None:
        self._credentials = credential_manager
        self._executor = executor
        self._locks = locks

    async def provision(self, request: ProvisioningRequest) -> ProvisioningResult:
        """Grant access for ``request`` and return the stack outputs."""
        run = _ProvisioningRun(request)
        try:
            return await self._run(run)
        except ProvisioningError as exc:
            exc.context.setdefault("step", run.state.value)
            exc.context.setdefault("account_id", request.account_id or None)
            exc.context.setdefault("resource_id", request.resource_id or None)
            if run.stack_name:
                exc.context.setdefault("stack_name", run.stack_name)
            exc.context = {k: v for k, v in exc.context.items() if v is not None}
            run.transition(ProvisioningState.FAILED)
            logger.error(
                "Provisioning failed: %s",
                exc.message,
                extra={"provisioning": dict(exc.context)},
            )
            raise

    async def _run(self, run: "_ProvisioningRun") -> ProvisioningResult:
        request = run.request
        self._validate(request)

        run.transition(ProvisioningState.AUTHENTICATING)
        credential = await self._authenticate(request.credential)

        run.transition(ProvisioningState.LOCKING)
        run.stack_name = compute_stack_name(request.account_id, request.resource_id)
        async with self._locks.hold(run.stack_name):
            handle: Optional[StackHandle] = None
            try:
                run.transition(ProvisioningState.CONFIGURING)
                handle = await self._open(run.stack_name)
                handle.locked = True
                await self._configure(handle, request, credential)

                run.transition(ProvisioningState.APPLYING)
                outputs = await self._apply(handle)
            finally:
                if handle is not None:
                    handle.locked = False

        run.transition(ProvisioningState.DONE)
        logger.info(
            "Access granted for stack %s",
            run.stack_name,
            extra={"outputs": sorted(outputs)},
        )
        return ProvisioningResult(stack_name=run.stack_name, outputs=outputs)

    def _validate(self, request: ProvisioningRequest) -> None:
        refresh_token = request.credential.refresh_token.get_secret_value()
        if not refresh_token:
            raise ValidationError("Refresh token is required.")
        if len(refresh_token) > MAX_REFRESH_TOKEN_LENGTH or _WHITESPACE.search(
            refresh_token
        ):
            raise ValidationError("Refresh token is malformed.")
        compute_stack_name(request.account_id, request.resource_id)

    async def _authenticate(self, credential: OAuthCredential) -> OAuthCredential:
        try:
            return await self._credentials.ensure_valid(credential)
        except AuthenticationError:
            raise
        except Exception as exc:
            raise AuthenticationError(
                f"Credential validation failed: {exc}"
            ) from exc

    async def _open(self, stack_name: str) -> StackHandle:
        try:
            return await self._executor.open(stack_name)
        except ConfigurationError:
            raise
        except Exception as exc:
            raise ConfigurationError(
                f"Failed to open stack: {exc}", stack_name=stack_name
            ) from exc

    async def _configure(
        self,
        handle: StackHandle,
        request: ProvisioningRequest,
        credential: OAuthCredential,
    ) -> None:
        stack_name = handle.name
        try:
            await self._executor.configure_secret(
                handle,
                CREDENTIALS_CONFIG_KEY,
                self._credentials.build_credentials_bundle(credential),
            )
            await self._executor.configure_value(
                handle, PROJECT_CONFIG_KEY, request.account_id
            )
            await self._executor.configure_value(
                handle, DATASET_CONFIG_KEY, request.resource_id
            )
        except ConfigurationError:
            raise
        except Exception as exc:
            raise ConfigurationError(
                f"Failed to configure stack: {exc}", stack_name=stack_name
            ) from exc
        logger.info("Stack %s configured", stack_name)

    async def _apply(self, handle: StackHandle) -> Dict[str, Any]:
        progress = logging.getLogger(f"{__name__}.apply")

        def _forward(line: str) -> None:
            progress.info("[%s] %s", handle.name, line)

        try:
            return await self._executor.apply(handle, _forward)
        except DeploymentError:
            raise
        except Exception as exc:
            raise DeploymentError(str(exc), stack_name=handle.name) from exc


class _ProvisioningRun:
    """Mutable bookkeeping for a single ``provision`` call."""

    def __init__(self, request: ProvisioningRequest) -> None:
        self.request = request
        self.state = ProvisioningState.VALIDATING
        self.stack_name: Optional[str] = None

    def transition(self, state: ProvisioningState) -> None:
        logger.debug(
            "Provisioning %s/%s: %s -> %s",
            self.request.account_id,
            self.request.resource_id,
            self.state.value,
            state.value,
        )
        self.state = state


__all__ = [
    "ProvisioningOrchestrator",
    "ProvisioningState",
]
