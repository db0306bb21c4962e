try:
    from . import _bootstrap  # noqa: F401
except Exception:  # pragma: no cover - fallback for direct execution
    import _bootstrap  # type: ignore # noqa: F401

import asyncio

import pytest

from app.services.stack_locks import StackLockRegistry

pytestmark = pytest.mark.anyio


async def test_same_name_is_serialized_in_arrival_order() -> None:
    registry = StackLockRegistry()
    order: list[str] = []
    first_inside = asyncio.Event()
    release_first = asyncio.Event()

    async def first() -> None:
        async with registry.hold("tenant-a.b"):
            order.append("first-in")
            first_inside.set()
            await release_first.wait()
            order.append("first-out")

    async def follower(label: str) -> None:
        async with registry.hold("tenant-a.b"):
            order.append(label)

    task = asyncio.create_task(first())
    await first_inside.wait()
    followers = [asyncio.create_task(follower(f"f{i}")) for i in range(3)]
    for _ in range(5):
        await asyncio.sleep(0)

    assert order == ["first-in"]
    assert registry.locked("tenant-a.b")

    release_first.set()
    await asyncio.gather(task, *followers)

    assert order == ["first-in", "first-out", "f0", "f1", "f2"]
    assert not registry.locked("tenant-a.b")
    assert len(registry) == 0


async def test_distinct_names_do_not_block() -> None:
    registry = StackLockRegistry()

    async with registry.hold("tenant-a.one"):
        async with registry.hold("tenant-a.two"):
            assert registry.locked("tenant-a.one")
            assert registry.locked("tenant-a.two")


async def test_lock_released_when_block_raises() -> None:
    registry = StackLockRegistry()

    with pytest.raises(RuntimeError):
        async with registry.hold("tenant-a.b"):
            raise RuntimeError("boom")

    assert not registry.locked("tenant-a.b")
    await asyncio.wait_for(_acquire_once(registry, "tenant-a.b"), timeout=1)


async def test_cancelled_waiter_does_not_leak() -> None:
    registry = StackLockRegistry()
    holder_inside = asyncio.Event()
    release = asyncio.Event()

    async def holder() -> None:
        async with registry.hold("tenant-a.b"):
            holder_inside.set()
            await release.wait()

    holding = asyncio.create_task(holder())
    await holder_inside.wait()
    waiter = asyncio.create_task(_acquire_once(registry, "tenant-a.b"))
    await asyncio.sleep(0)
    waiter.cancel()
    with pytest.raises(asyncio.CancelledError):
        await waiter

    release.set()
    await holding
    assert len(registry) == 0
    await asyncio.wait_for(_acquire_once(registry, "tenant-a.b"), timeout=1)


async def _acquire_once(registry: StackLockRegistry, name: str) -> None:
    async with registry.hold(name):
        pass
