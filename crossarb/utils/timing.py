"""Timing utilities for per-phase scan diagnostics."""

import time
from contextlib import contextmanager
from typing import Callable, Dict, Iterator, Optional


class TimingTracker:
    """Track named phase durations for one scan."""

    def __init__(self, clock: Optional[Callable[[], float]] = None):
        self._clock = clock or time.perf_counter
        self._created = self._clock()
        self.timings: Dict[str, float] = {}

    def elapsed_ms(self) -> int:
        """Milliseconds since the tracker was created."""
        return int(round((self._clock() - self._created) * 1000))

    @contextmanager
    def phase(self, name: str) -> Iterator[None]:
        start = self._clock()
        try:
            yield
        finally:
            self.timings[name] = self._clock() - start

    def summary(self) -> Dict[str, str]:
        """Get all timings formatted as strings."""
        return {name: format_duration(seconds) for name, seconds in self.timings.items()}


def format_duration(seconds: float) -> str:
    """Format seconds into a human-readable string ("123ms", "1.23s", "5m 32.0s")."""
    if seconds < 0.001:
        return f"{seconds * 1000000:.0f}μs"
    elif seconds < 1:
        return f"{seconds * 1000:.0f}ms"
    elif seconds < 60:
        return f"{seconds:.2f}s"
    else:
        minutes = int(seconds // 60)
        secs = seconds % 60
        return f"{minutes}m {secs:.1f}s"
