"""Single-timeline scheduling for capture and orchestration events."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Callable, Optional, Protocol

logger = logging.getLogger("voicedial")


class TimerHandle(Protocol):
    def cancel(self) -> None:
        ...


class Scheduler(Protocol):
    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        ...

    def call_soon_threadsafe(self, callback: Callable[[], None]) -> None:
        ...

    def run_blocking(
        self,
        fn: Callable[[], Any],
        on_done: Callable[[Any], None],
        on_error: Callable[[BaseException], None],
    ) -> None:
        ...


class AsyncioScheduler:
    """Runs every callback on one asyncio loop.

    Blocking work passed to ``run_blocking`` goes to the default executor and
    its outcome is delivered back on the loop.
    """

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None) -> None:
        self._loop = loop or asyncio.get_running_loop()

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        return self._loop

    def call_later(self, delay: float, callback: Callable[[], None]) -> TimerHandle:
        return self._loop.call_later(delay, callback)

    def call_soon_threadsafe(self, callback: Callable[[], None]) -> None:
        self._loop.call_soon_threadsafe(callback)

    def run_blocking(
        self,
        fn: Callable[[], Any],
        on_done: Callable[[Any], None],
        on_error: Callable[[BaseException], None],
    ) -> None:
        future = self._loop.run_in_executor(None, fn)

        def _deliver(fut: asyncio.Future) -> None:
            if fut.cancelled():
                on_error(asyncio.CancelledError())
                return
            exc = fut.exception()
            if exc is not None:
                on_error(exc)
            else:
                on_done(fut.result())

        future.add_done_callback(_deliver)
