"""Fixed-window rate limiter for outbound upstream requests.

One limiter is shared by every scan in the process and handed to the upstream
client. The window resets on its own every ``period_seconds`` and can be
reset explicitly with ``reset()``. Scans may run on different event loops
(each CLI call goes through ``asyncio.run``), so the wait lock is rebuilt
whenever the running loop changes.
"""

from __future__ import annotations

import asyncio
import time
from typing import Callable, Optional


class RateLimiter:
    def __init__(
        self,
        max_requests: int,
        period_seconds: float = 1.0,
        clock: Optional[Callable[[], float]] = None,
    ):
        if max_requests < 1:
            raise ValueError("max_requests must be at least 1")
        if period_seconds <= 0:
            raise ValueError("period_seconds must be positive")
        self.max_requests = max_requests
        self.period_seconds = period_seconds
        self._clock = clock or time.monotonic
        self._count = 0
        self._window_start: Optional[float] = None
        self._lock: Optional[asyncio.Lock] = None
        self._lock_loop: Optional[asyncio.AbstractEventLoop] = None
        self.total_acquired = 0

    def reset(self) -> None:
        self._count = 0
        self._window_start = None

    def _loop_lock(self) -> asyncio.Lock:
        loop = asyncio.get_running_loop()
        if self._lock is None or self._lock_loop is not loop:
            self._lock = asyncio.Lock()
            self._lock_loop = loop
        return self._lock

    def try_acquire(self) -> bool:
        """Take a slot in the current window without waiting."""
        now = self._clock()
        if self._window_start is None or now - self._window_start >= self.period_seconds:
            self._window_start = now
            self._count = 0
        if self._count >= self.max_requests:
            return False
        self._count += 1
        self.total_acquired += 1
        return True

    def _window_remaining(self) -> float:
        if self._window_start is None:
            return 0.0
        return self.period_seconds - (self._clock() - self._window_start)

    async def acquire(self) -> None:
        """Wait until a slot is free in the current window, then take it."""
        async with self._loop_lock():
            while not self.try_acquire():
                await asyncio.sleep(max(self._window_remaining(), 0.001))
