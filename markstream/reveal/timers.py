import asyncio
from typing import Callable, Optional

from markstream.reveal.base import RevealTimer


class AsyncioIntervalTimer(RevealTimer):
    """Repeating timer on the running asyncio event loop."""

    def __init__(self, loop: Optional[asyncio.AbstractEventLoop] = None):
        self._loop = loop
        self._handle: Optional[asyncio.TimerHandle] = None
        self._callback: Optional[Callable[[], None]] = None
        self._interval = 0.0

    def start(self, interval_ms: float, callback: Callable[[], None]) -> None:
        self.cancel()
        if self._loop is None:
            self._loop = asyncio.get_running_loop()
        self._interval = max(interval_ms, 0.0) / 1000
        self._callback = callback
        self._schedule()

    def _schedule(self) -> None:
        self._handle = self._loop.call_later(self._interval, self._fire)

    def _fire(self) -> None:
        callback = self._callback
        if callback is None:
            return
        # Re-arm before the callback so it can cancel us.
        self._schedule()
        callback()

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        self._callback = None

    @property
    def is_running(self) -> bool:
        return self._callback is not None


class ManualTimer(RevealTimer):
    """Timer advanced explicitly by the host, one tick per ``advance`` step.

    Useful when the host already has a frame loop (a ``rich.live.Live``
    refresh, a test) and wants reveal ticks to follow it.
    """

    def __init__(self):
        self._callback: Optional[Callable[[], None]] = None
        self.interval_ms: Optional[float] = None
        self.ticks = 0

    def start(self, interval_ms: float, callback: Callable[[], None]) -> None:
        self.interval_ms = interval_ms
        self._callback = callback

    def cancel(self) -> None:
        self._callback = None

    @property
    def is_running(self) -> bool:
        return self._callback is not None

    def advance(self, ticks: int = 1) -> int:
        """Fire up to ``ticks`` times; stops early once cancelled."""
        fired = 0
        for _ in range(ticks):
            if self._callback is None:
                break
            self._callback()
            self.ticks += 1
            fired += 1
        return fired
