"""
Pulumi Automation API wrapper for tenant stacks.

The Automation API is synchronous, so every engine call runs in a worker
thread. Progress lines emitted by ``pulumi up`` are handed back to the event
loop through a queue and forwarded to the caller one line at a time.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, AsyncIterator, Callable, Dict, Optional, Protocol

import pulumi
import pulumi_gcp as gcp
from pulumi import automation as auto

from app.core.config import PulumiSettings
from app.core.errors import ConfigurationError, DeploymentError
from app.models.provisioning import StackHandle

logger = logging.getLogger(__name__)

ProgressCallback = Callable[[str], None]

SECRET_OUTPUT_PLACEHOLDER = "[secret]"


class StackExecutor(Protocol):
    """Operations the orchestrator needs from the infrastructure engine."""

    async def open(self, stack_name: str) -> StackHandle: ...

    async def configure_secret(self, handle: StackHandle, key: str, value: str) -> None: ...

    async def configure_value(self, handle: StackHandle, key: str, value: str) -> None: ...

    async def apply(
        self, handle: StackHandle, on_progress: ProgressCallback
    ) -> Dict[str, Any]: ...


def build_dataset_access_program(member: str, role: str) -> Callable[[], None]:
    """Return an inline Pulumi program granting ``member`` ``role`` on one dataset.

    The target project and dataset come from stack configuration
    (``gcp:project`` and ``datasetId``) so one program serves every tenant.
    """

    def _program() -> None:
        project = pulumi.Config("gcp").require("project")
        dataset_id = pulumi.Config().require("datasetId")

        grant = gcp.bigquery.DatasetIamMember(
            "dataset-access",
            project=project,
            dataset_id=dataset_id,
            role=role,
            member=member,
        )

        pulumi.export("projectId", project)
        pulumi.export("datasetId", dataset_id)
        pulumi.export("role", grant.role)
        pulumi.export("member", grant.member)

    return _program


async def _drain(lines: "asyncio.Queue[Optional[str]]") -> AsyncIterator[str]:
    """Yield queued progress lines until the end-of-stream sentinel arrives."""
    while True:
        line = await lines.get()
        if line is None:
            return
        yield line


async def _run_engine_call(func: Callable[..., Any], *args: Any) -> Any:
    """Run a blocking engine call in a worker thread.

    The thread cannot be interrupted, so a cancelled caller waits for it to
    return before the cancellation propagates. The per-stack lock is
    therefore never released while an engine call still holds the stack.
    """
    call = asyncio.ensure_future(asyncio.to_thread(func, *args))
    try:
        return await asyncio.shield(call)
    except asyncio.CancelledError:
        await asyncio.wait({call})
        if call.exception() is not None:
            logger.warning("Engine call ended after cancellation with: %s", call.exception())
        raise


class PulumiStackExecutor:
    """Create, configure and deploy named stacks through a local workspace.

    The engine stack object travels on the ``StackHandle`` returned by
    ``open``, so nothing is retained once the caller drops the handle.
    """

    def __init__(
        self,
        settings: PulumiSettings,
        *,
        stack_factory: Optional[Callable[..., Any]] = None,
    ) -> None:
        self._settings = settings
        self._stack_factory = stack_factory or auto.create_or_select_stack
        self._program = build_dataset_access_program(
            member=settings.grantee_member, role=settings.grant_role
        )

    def _workspace_options(self) -> auto.LocalWorkspaceOptions:
        env_vars = {}
        if self._settings.access_token:
            env_vars["PULUMI_ACCESS_TOKEN"] = self._settings.access_token
        return auto.LocalWorkspaceOptions(
            work_dir=self._settings.work_dir,
            env_vars=env_vars,
        )

    async def open(self, stack_name: str) -> StackHandle:
        """Create the stack if needed, otherwise select the existing one."""
        if not self._settings.access_token:
            raise ConfigurationError(
                "PULUMI_ACCESS_TOKEN is not set.", stack_name=stack_name
            )

        def _create_or_select() -> Any:
            return self._stack_factory(
                stack_name=stack_name,
                project_name=self._settings.project_name,
                program=self._program,
                opts=self._workspace_options(),
            )

        try:
            stack = await _run_engine_call(_create_or_select)
        except auto.CommandError as exc:
            raise ConfigurationError(
                f"Could not create or select stack: {exc}", stack_name=stack_name
            ) from exc

        logger.info("Selected Pulumi stack %s", stack_name)
        return StackHandle(name=stack_name, stack=stack)

    def _stack_for(self, handle: StackHandle) -> Any:
        if handle.stack is None:
            raise ConfigurationError(
                "Stack has not been opened.", stack_name=handle.name
            )
        return handle.stack

    async def _set_config(
        self, handle: StackHandle, key: str, value: str, *, secret: bool
    ) -> None:
        stack = self._stack_for(handle)
        try:
            await _run_engine_call(
                stack.set_config, key, auto.ConfigValue(value=value, secret=secret)
            )
        except auto.CommandError as exc:
            raise ConfigurationError(
                f"Failed to set config {key}: {exc}", stack_name=handle.name
            ) from exc

    async def configure_secret(self, handle: StackHandle, key: str, value: str) -> None:
        """Store ``value`` encrypted in the stack config; the engine redacts it in output."""
        await self._set_config(handle, key, value, secret=True)
        logger.info("Configured secret %s on stack %s", key, handle.name)

    async def configure_value(self, handle: StackHandle, key: str, value: str) -> None:
        await self._set_config(handle, key, value, secret=False)
        logger.info("Configured %s=%s on stack %s", key, value, handle.name)

    async def apply(
        self, handle: StackHandle, on_progress: ProgressCallback
    ) -> Dict[str, Any]:
        """Run ``pulumi up`` and return plain output values.

        Cancelling the awaiting task asks the engine to cancel the update and
        waits for the worker thread to finish before re-raising.
        """
        stack = self._stack_for(handle)
        loop = asyncio.get_running_loop()
        lines: asyncio.Queue[Optional[str]] = asyncio.Queue()

        def _emit(line: str) -> None:
            loop.call_soon_threadsafe(lines.put_nowait, line.rstrip("\n"))

        def _run_up() -> Any:
            try:
                return stack.up(on_output=_emit)
            finally:
                loop.call_soon_threadsafe(lines.put_nowait, None)

        update = asyncio.ensure_future(asyncio.to_thread(_run_up))
        try:
            async for line in _drain(lines):
                on_progress(line)
            result = await asyncio.shield(update)
        except asyncio.CancelledError:
            await self._cancel_update(handle, stack, update)
            raise
        except auto.CommandError as exc:
            raise DeploymentError(str(exc), stack_name=handle.name) from exc

        logger.info(
            "Pulumi update for %s finished: %s",
            handle.name,
            getattr(result.summary, "result", "unknown"),
        )
        return {
            key: SECRET_OUTPUT_PLACEHOLDER if output.secret else output.value
            for key, output in result.outputs.items()
        }

    async def _cancel_update(
        self, handle: StackHandle, stack: Any, update: "asyncio.Future[Any]"
    ) -> None:
        logger.warning("Cancelling Pulumi update for %s", handle.name)
        try:
            await asyncio.to_thread(stack.cancel)
        except auto.CommandError as exc:
            logger.warning("Pulumi cancel for %s failed: %s", handle.name, exc)
        await asyncio.wait({update})
        if not update.cancelled() and update.exception() is not None:
            logger.warning(
                "Cancelled Pulumi update for %s ended with: %s",
                handle.name,
                update.exception(),
            )


__all__ = [
    "PulumiStackExecutor",
    "ProgressCallback",
    "SECRET_OUTPUT_PLACEHOLDER",
    "StackExecutor",
    "build_dataset_access_program",
]
