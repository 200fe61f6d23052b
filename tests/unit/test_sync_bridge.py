from __future__ import annotations

import asyncio
import warnings

import pytest
from propdx.cli import sync_bridge


async def _value(value: int) -> int:
    await asyncio.sleep(0)
    return value


def test_await_sync_reuses_loop_without_resource_warning(
    recwarn: pytest.WarningsRecorder,
) -> None:
    warnings.simplefilter("always", ResourceWarning)

    assert sync_bridge.await_sync(_value(1)) == 1
    first_loop = sync_bridge._SHARED.loop
    assert sync_bridge.await_sync(_value(2)) == 2

    assert sync_bridge._SHARED.loop is first_loop
    assert not [w for w in recwarn if w.category is ResourceWarning]


def test_background_tasks_are_cancelled_between_calls() -> None:
    leaked: list[asyncio.Task[None]] = []

    async def _spawn() -> None:
        leaked.append(asyncio.create_task(asyncio.sleep(60)))
        await asyncio.sleep(0)

    sync_bridge.await_sync(_spawn())

    assert leaked[0].cancelled()
    assert sync_bridge.await_sync(_value(3)) == 3


def test_close_loop_resets_shared_loop() -> None:
    sync_bridge.await_sync(_value(4))
    loop = sync_bridge._SHARED.loop

    sync_bridge.close_loop()

    assert sync_bridge._SHARED.loop is None
    assert loop is not None and loop.is_closed()
    assert sync_bridge.await_sync(_value(5)) == 5
    sync_bridge.close_loop()
    sync_bridge.close_loop()


def test_await_sync_rejects_running_loop() -> None:
    async def _nested() -> None:
        coro = _value(6)
        try:
            sync_bridge.await_sync(coro)
        finally:
            coro.close()

    with pytest.raises(RuntimeError, match="running event loop"):
        asyncio.run(_nested())


def test_interrupt_cancels_in_flight_tasks() -> None:
    cleaned: list[str] = []

    async def _worker() -> None:
        try:
            await asyncio.sleep(60)
        finally:
            cleaned.append("worker")

    async def _interrupted_run() -> None:
        asyncio.create_task(_worker())
        await asyncio.sleep(0)
        raise KeyboardInterrupt

    with pytest.raises(KeyboardInterrupt):
        sync_bridge.await_sync(_interrupted_run())

    assert cleaned == ["worker"]
    assert sync_bridge.await_sync(_value(7)) == 7


def test_separate_shared_loops_are_independent() -> None:
    first = sync_bridge.SharedLoop()
    second = sync_bridge.SharedLoop()

    assert first.run(_value(8)) == 8
    assert second.run(_value(9)) == 9
    assert first.loop is not second.loop

    first.close()
    second.close()
    assert first.loop is None
