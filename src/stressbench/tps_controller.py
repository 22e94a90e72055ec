"""
Global rate limiter

Caps the aggregate number of operations issued per second by all workers:
1. One instance per process, shared by every ProfileRunner
2. Smooth pacing instead of a bursty token refill
3. Statistics on how much time callers spent throttled
"""

import logging
import threading
from dataclasses import dataclass

from .perf_counter import PerfCounter


@dataclass
class RateLimiterStats:
    """Rate limiter statistics data structure"""
    granted_permits: int = 0
    total_time: float = 0.0
    total_wait_time: float = 0.0
    actual_rate: float = 0.0
    target_rate: int = 0
    accuracy_percentage: float = 0.0


class RateLimiter:
    """
    A thread-safe pacing limiter shared by all worker threads.

    It keeps a single "next slot earliest allowed timestamp". Each acquire()
    reserves the slot at max(now, next_allowed_op_time) under the lock and
    advances it by one interval, then sleeps outside the lock until the
    reserved slot arrives. Slots missed during a stall are not replayed, so
    a stall is never followed by a catch-up burst.
    """

    def __init__(self, rate: int, name: str = "global"):
        """
        Initialize the limiter.

        Args:
            rate: Permits per second across all callers, must be positive.
            name: Identifier used for logging.
        """
        if rate <= 0:
            raise ValueError(f"Rate limiter needs a positive rate, got {rate}")
        self.name = name
        self.logger = logging.getLogger(f"RateLimiter.{self.name}")
        self.perf_counter = PerfCounter.instance()
        self._lock = threading.Lock()

        self.target_rate = rate
        self.operation_interval = 1.0 / rate
        self.next_allowed_op_time = self.perf_counter.perf_counter()

        self._start_time = None
        self._granted = 0
        self._total_wait_time = 0.0

        self.logger.info(f"Initialized with target rate: {self.target_rate}/s, interval: {self.operation_interval*1000:.3f} ms")

    def acquire(self) -> float:
        """
        Block until one permit is available.

        Returns:
            Seconds spent waiting.
        """
        with self._lock:
            now = self.perf_counter.perf_counter()
            if self._start_time is None:
                self._start_time = now
            slot = max(now, self.next_allowed_op_time)
            self.next_allowed_op_time = slot + self.operation_interval
            self._granted += 1

        waited = slot - now
        if waited > 0:
            self.perf_counter.sleep_until(slot)
            with self._lock:
                self._total_wait_time += waited
        return max(waited, 0.0)

    def reset(self):
        """Forget reserved slots and statistics."""
        with self._lock:
            self.next_allowed_op_time = self.perf_counter.perf_counter()
            self._start_time = None
            self._granted = 0
            self._total_wait_time = 0.0
        self.logger.debug("Rate limiter state has been reset.")

    def get_current_stats(self) -> RateLimiterStats:
        """Get current statistics"""
        with self._lock:
            if self._start_time is None or self._granted == 0:
                return RateLimiterStats(target_rate=self.target_rate)
            elapsed = self.perf_counter.elapsed_since(self._start_time)
            granted = self._granted
            waited = self._total_wait_time

        actual_rate = granted / elapsed if elapsed > 0 else 0.0
        return RateLimiterStats(
            granted_permits=granted,
            total_time=elapsed,
            total_wait_time=waited,
            actual_rate=actual_rate,
            target_rate=self.target_rate,
            accuracy_percentage=actual_rate / self.target_rate * 100
        )

    def __str__(self) -> str:
        return f"RateLimiter(rate={self.target_rate}, interval={self.operation_interval*1000:.3f}ms)"


def create_rate_limiter(rate: int):
    """Return a shared limiter for rate > 0, None when throttling is disabled."""
    if rate and rate > 0:
        return RateLimiter(rate)
    return None
