"""
Shared monotonic clock

Latency timers, the rate limiter and the reporters all read the same clock, so
timestamps taken in one component can be compared with those of another.
"""

import threading
import time
from typing import Callable, Optional


class PerfCounter:
    """Process-wide clock with the waiting helpers the stress loop needs."""

    _instance: Optional["PerfCounter"] = None
    _instance_lock = threading.Lock()

    def __init__(self, clock: Callable[[], float] = time.perf_counter,
                 sleep: Callable[[float], None] = time.sleep):
        self.perf_counter = clock
        self._sleep = sleep

    @classmethod
    def instance(cls) -> "PerfCounter":
        with cls._instance_lock:
            if cls._instance is None:
                cls._instance = cls()
            return cls._instance

    def elapsed_since(self, start: float) -> float:
        return self.perf_counter() - start

    def sleep_until(self, deadline: float) -> None:
        """Block the calling thread until the clock reaches deadline."""
        # time.sleep may return early, so re-check against the clock
        remaining = deadline - self.perf_counter()
        while remaining > 0:
            self._sleep(remaining)
            remaining = deadline - self.perf_counter()
