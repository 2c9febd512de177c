"""Timer primitives used by sessions and the registry.

Everything that happens later goes through a ``Scheduler``; the handles it
returns are collected in ``SessionTimers`` so a session exit cancels them
all in one call.
"""
from __future__ import annotations

from typing import Any, Callable, Iterable, Protocol, Sequence, Tuple


class TimerHandle(Protocol):
    def cancel(self) -> None:
        """Prevent the callback from running if it has not run yet."""


class Scheduler(Protocol):
    """Run callbacks on the event loop after a delay."""

    def call_later(self, delay: float, callback: Callable[..., Any], *args: Any) -> TimerHandle:
        """Schedule ``callback(*args)`` to run after ``delay`` seconds."""


class RecurringTimer:
    """Invoke ``callback`` every ``interval`` seconds until cancelled."""

    def __init__(self, scheduler: Scheduler, interval: float, callback: Callable[[], Any]) -> None:
        if interval <= 0:
            raise ValueError("A recurring timer needs a positive interval.")
        self._scheduler = scheduler
        self._interval = interval
        self._callback = callback
        self._cancelled = False
        self._handle: TimerHandle | None = scheduler.call_later(interval, self._fire)

    @property
    def interval(self) -> float:
        return self._interval

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None

    def _fire(self) -> None:
        if self._cancelled:
            return
        # Re-arm first so the callback may cancel the timer it runs under.
        self._handle = self._scheduler.call_later(self._interval, self._fire)
        self._callback()


class ScheduledPlan:
    """A set of offset callbacks cancelled together."""

    def __init__(
        self,
        scheduler: Scheduler,
        steps: Iterable[Tuple[float, Callable[[], Any]]],
    ) -> None:
        self._handles = [scheduler.call_later(max(0.0, offset), step) for offset, step in steps]

    def __len__(self) -> int:
        return len(self._handles)

    def cancel(self) -> None:
        for handle in self._handles:
            handle.cancel()
        self._handles = []


class SessionTimers:
    """Named timer slots owned by a single session.

    Setting a slot cancels whatever it held, so each slot holds at most one
    live timer.
    """

    def __init__(self) -> None:
        self._slots: dict[str, TimerHandle] = {}

    def set(self, name: str, handle: TimerHandle) -> None:
        self.cancel(name)
        self._slots[name] = handle

    def get(self, name: str) -> TimerHandle | None:
        return self._slots.get(name)

    def cancel(self, name: str) -> None:
        handle = self._slots.pop(name, None)
        if handle is not None:
            handle.cancel()

    def discard(self, name: str) -> None:
        """Forget ``name`` without cancelling it (used once a one-shot fired)."""

        self._slots.pop(name, None)

    def cancel_all(self) -> None:
        handles = list(self._slots.values())
        self._slots.clear()
        for handle in handles:
            handle.cancel()

    def names(self) -> Sequence[str]:
        return tuple(self._slots)

    def __contains__(self, name: object) -> bool:
        return name in self._slots

    def __len__(self) -> int:
        return len(self._slots)
