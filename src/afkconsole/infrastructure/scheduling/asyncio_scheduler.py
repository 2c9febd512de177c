"""Scheduler implementation backed by the running asyncio event loop."""
from __future__ import annotations

import asyncio
from typing import Any, Callable


class AsyncioScheduler:
    """Schedule callbacks with ``loop.call_later``.

    The loop is resolved lazily so the scheduler can be built before the
    server starts; every call must then come from the loop thread.
    """

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None) -> None:
        self._loop = loop

    def call_later(
        self, delay: float, callback: Callable[..., Any], *args: Any
    ) -> asyncio.TimerHandle:
        loop = self._loop or asyncio.get_running_loop()
        return loop.call_later(max(0.0, delay), callback, *args)
