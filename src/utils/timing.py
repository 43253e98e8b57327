"""Wall-clock timing for pipeline stages."""

from __future__ import annotations

import time
from collections.abc import Iterator
from contextlib import contextmanager


class ProcessingTimer:
    """Collects per-stage durations (milliseconds) for one pipeline run.

    Usage::

        timer = ProcessingTimer()
        with timer.stage("parsing"):
            ...
        timer.timings   # {"parsing": 12.4}
        timer.elapsed_ms()
    """

    def __init__(self) -> None:
        self._started = time.perf_counter()
        self._timings: dict[str, float] = {}

    @contextmanager
    def stage(self, name: str) -> Iterator[None]:
        start = time.perf_counter()
        try:
            yield
        finally:
            # Failed stages are recorded too so error reports show where time went.
            self._timings[name] = round((time.perf_counter() - start) * 1000, 3)

    @property
    def timings(self) -> dict[str, float]:
        return dict(self._timings)

    def elapsed_ms(self) -> int:
        """Total milliseconds since the timer was created."""
        return int((time.perf_counter() - self._started) * 1000)
