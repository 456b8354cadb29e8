"""Frame ticks and fixed-rate timers on an asyncio event loop.

Both return a handle with ``cancel()``; cancelling twice is harmless.
Timestamps passed to frame callbacks are milliseconds on the loop clock.
"""

import asyncio
from collections.abc import Callable
from typing import Protocol


class Cancellable(Protocol):
    def cancel(self) -> None: ...


class FrameSource(Protocol):
    """Host facility that calls back once, at the next display refresh."""

    def request_frame(self, callback: Callable[[float], None]) -> Cancellable: ...

    def now(self) -> float: ...


class IntervalSource(Protocol):
    """Host facility that calls back repeatedly at a fixed period.

    The callback receives the number of periods that elapsed since the previous
    call: 1 normally, more when the loop fell behind and deadlines were skipped.
    """

    def start_interval(self, interval_ms: float, callback: Callable[[int], None]) -> Cancellable: ...


class AsyncioFrameSource:
    """Frame requests paced at the display refresh rate."""

    def __init__(self, loop: asyncio.AbstractEventLoop | None = None, refresh_rate_hz: float = 60.0):
        self._loop = loop
        self.refresh_rate_hz = refresh_rate_hz

    @property
    def loop(self) -> asyncio.AbstractEventLoop:
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        return self._loop

    def now(self) -> float:
        return self.loop.time() * 1000.0

    def request_frame(self, callback: Callable[[float], None]) -> asyncio.TimerHandle:
        return self.loop.call_later(1.0 / self.refresh_rate_hz, lambda: callback(self.now()))


class IntervalHandle:
    """Repeating timer scheduled on absolute deadlines so the period does not drift."""

    def __init__(self, loop: asyncio.AbstractEventLoop, interval_ms: float, callback: Callable[[int], None]):
        self._loop = loop
        self._interval = interval_ms / 1000.0
        self._callback = callback
        self._deadline = loop.time() + self._interval
        self._handle: asyncio.TimerHandle | None = loop.call_at(self._deadline, self._fire)
        self.ticks = 0

    @property
    def active(self) -> bool:
        return self._handle is not None

    def _fire(self) -> None:
        if self._handle is None:
            return
        slots = 1
        self._deadline += self._interval
        # Skip deadlines we already missed instead of firing a burst
        now = self._loop.time()
        if self._deadline < now:
            missed = int((now - self._deadline) / self._interval) + 1
            self._deadline += missed * self._interval
            slots += missed
        self.ticks += slots
        self._handle = self._loop.call_at(self._deadline, self._fire)
        self._callback(slots)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None


class AsyncioIntervalTimer:
    def __init__(self, loop: asyncio.AbstractEventLoop | None = None):
        self._loop = loop

    def start_interval(self, interval_ms: float, callback: Callable[[int], None]) -> IntervalHandle:
        if interval_ms <= 0:
            raise ValueError(f"Interval must be positive, got {interval_ms}")
        loop = self._loop or asyncio.get_running_loop()
        return IntervalHandle(loop, interval_ms, callback)
