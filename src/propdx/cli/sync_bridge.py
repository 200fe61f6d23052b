"""Run diagnostic coroutines from synchronous Typer commands.

Every command in the process shares one event loop, closed at interpreter
exit. An interrupt while a run is in flight cancels the run task so probe
executors can kill their subprocesses before the interrupt propagates.
"""

from __future__ import annotations

import asyncio
import atexit
import logging
import threading
from collections.abc import Coroutine
from contextlib import suppress
from typing import Any, TypeVar

from propdx.infrastructure.logging import get_logger, log_event

T = TypeVar("T")

_LOGGER = get_logger("propdx.loop")


class SharedLoop:
    """Lazily created event loop reused by consecutive synchronous calls."""

    def __init__(self) -> None:
        self._loop: asyncio.AbstractEventLoop | None = None
        self._lock = threading.Lock()

    @property
    def loop(self) -> asyncio.AbstractEventLoop | None:
        return self._loop

    def _ensure_loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None or self._loop.is_closed():
            self._loop = asyncio.new_event_loop()
        return self._loop

    @staticmethod
    def _drain(loop: asyncio.AbstractEventLoop) -> int:
        pending = [task for task in asyncio.all_tasks(loop) if not task.done()]
        for task in pending:
            task.cancel()
        if pending:
            with suppress(Exception):
                loop.run_until_complete(asyncio.gather(*pending, return_exceptions=True))
        return len(pending)

    def run(self, coro: Coroutine[Any, Any, T]) -> T:
        with self._lock:
            try:
                asyncio.get_running_loop()
            except RuntimeError:
                pass
            else:
                raise RuntimeError("await_sync cannot be used inside a running event loop")

            loop = self._ensure_loop()
            asyncio.set_event_loop(loop)
            task = loop.create_task(coro)
            try:
                return loop.run_until_complete(task)
            except KeyboardInterrupt:
                log_event(
                    _LOGGER,
                    "run.interrupted",
                    level=logging.WARNING,
                    message="Cancelling the diagnostic run",
                )
                raise
            finally:
                leftover = self._drain(loop)
                if leftover:
                    log_event(_LOGGER, "loop.tasks_cancelled", level=logging.DEBUG, count=leftover)
                asyncio.set_event_loop(None)

    def close(self) -> None:
        loop, self._loop = self._loop, None
        if loop is None or loop.is_closed():
            return
        self._drain(loop)
        loop.close()


_SHARED = SharedLoop()


def await_sync(coro: Coroutine[Any, Any, T]) -> T:
    """Execute ``coro`` to completion on the shared loop."""

    return _SHARED.run(coro)


def close_loop() -> None:
    _SHARED.close()


atexit.register(close_loop)


__all__ = ["SharedLoop", "await_sync", "close_loop"]
