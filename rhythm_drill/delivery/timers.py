"""
Cancellable timer abstraction.

Every scheduled action returns a handle with cancel(). The session and the
playback scheduler only talk to the Timers protocol, so tests can drive
time explicitly while production code runs on the asyncio event loop.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable
from typing import Protocol


class Cancellable(Protocol):
    def cancel(self) -> None: ...


class Timers(Protocol):
    """Schedules zero-argument callbacks after a delay in milliseconds."""

    def call_later(self, delay_ms: float, callback: Callable[[], None]) -> Cancellable: ...


class AsyncioTimers:
    """Timers backed by the running asyncio loop."""

    def call_later(self, delay_ms: float, callback: Callable[[], None]) -> asyncio.TimerHandle:
        loop = asyncio.get_running_loop()
        return loop.call_later(max(0.0, delay_ms) / 1000.0, callback)


class TimerGroup:
    """
    Named timer handles that can be cancelled together.

    One slot per timer class (e.g. 'advance', 'autoplay'); scheduling into
    an occupied slot cancels the previous handle first.
    """

    def __init__(self, timers: Timers):
        self.timers = timers
        self._handles: dict[str, Cancellable] = {}

    def schedule(self, name: str, delay_ms: float, callback: Callable[[], None]) -> Cancellable:
        self.cancel(name)
        scheduled: list[Cancellable] = []

        def fire() -> None:
            if scheduled and self._handles.get(name) is scheduled[0]:
                del self._handles[name]
            callback()

        handle = self.timers.call_later(delay_ms, fire)
        scheduled.append(handle)
        self._handles[name] = handle
        return handle

    def cancel(self, name: str) -> bool:
        """Cancel one named timer. Returns True if one was pending."""
        handle = self._handles.pop(name, None)
        if handle is None:
            return False
        handle.cancel()
        return True

    def cancel_all(self) -> None:
        for handle in self._handles.values():
            handle.cancel()
        self._handles.clear()

    def is_pending(self, name: str) -> bool:
        return name in self._handles
