"""
Metrics recorded by the profile runners.

Timers and counters are internally synchronized so every worker thread and
every session I/O thread can update them concurrently. Reporters only ever
read snapshots.
"""

import logging
import threading
from collections import deque
from dataclasses import dataclass
from typing import Dict, List, Optional

import numpy as np

from .perf_counter import PerfCounter


class ReportingError(Exception):
    """A reporter failed to flush. Logged, never fatal."""
    pass


@dataclass
class TimerSnapshot:
    name: str
    count: int = 0
    errors: int = 0
    rate: float = 0.0
    mean_ms: float = 0.0
    p50_ms: float = 0.0
    p95_ms: float = 0.0
    p99_ms: float = 0.0
    p999_ms: float = 0.0


class Counter:

    def __init__(self, name: str):
        self.name = name
        self._value = 0
        self._lock = threading.Lock()

    def inc(self, amount: int = 1):
        with self._lock:
            self._value += amount

    @property
    def value(self) -> int:
        with self._lock:
            return self._value


class Timer:
    """
    Counts completed operations and keeps a sliding window of recent latencies
    for percentile calculation.
    """

    def __init__(self, name: str, window_size: int = 100_000):
        self.name = name
        self.perf_counter = PerfCounter.instance()
        self._lock = threading.Lock()
        self._count = 0
        self._errors = 0
        self._total_latency = 0.0
        self._latencies = deque(maxlen=window_size)
        self._start_time = self.perf_counter.perf_counter()

    def update(self, latency_seconds: float):
        with self._lock:
            self._count += 1
            self._total_latency += latency_seconds
            self._latencies.append(latency_seconds)

    def update_error(self, latency_seconds: float):
        with self._lock:
            self._count += 1
            self._errors += 1
            self._total_latency += latency_seconds

    @property
    def count(self) -> int:
        with self._lock:
            return self._count

    @property
    def errors(self) -> int:
        with self._lock:
            return self._errors

    def snapshot(self) -> TimerSnapshot:
        with self._lock:
            count, errors, total = self._count, self._errors, self._total_latency
            latencies = list(self._latencies)
        elapsed = self.perf_counter.elapsed_since(self._start_time)
        snap = TimerSnapshot(
            name=self.name,
            count=count,
            errors=errors,
            rate=count / elapsed if elapsed > 0 else 0.0,
            mean_ms=total / count * 1000 if count else 0.0,
        )
        if latencies:
            p50, p95, p99, p999 = np.percentile(latencies, [50, 95, 99, 99.9]) * 1000
            snap.p50_ms, snap.p95_ms, snap.p99_ms, snap.p999_ms = float(p50), float(p95), float(p99), float(p999)
        return snap


class Metrics:
    """
    Named timers and counters plus the reporters that serialize them.
    """

    def __init__(self, reporters: Optional[List] = None):
        self.logger = logging.getLogger("Metrics")
        self._lock = threading.Lock()
        self.timers: Dict[str, Timer] = {}
        self.counters: Dict[str, Counter] = {}
        self.reporters = list(reporters or [])
        self._stop_event = threading.Event()
        self._reporting_thread: Optional[threading.Thread] = None

    def timer(self, name: str) -> Timer:
        with self._lock:
            if name not in self.timers:
                self.timers[name] = Timer(name)
            return self.timers[name]

    def counter(self, name: str) -> Counter:
        with self._lock:
            if name not in self.counters:
                self.counters[name] = Counter(name)
            return self.counters[name]

    def snapshot(self) -> Dict[str, object]:
        with self._lock:
            timers = list(self.timers.values())
            counters = list(self.counters.values())
        return {
            "timers": {t.name: t.snapshot() for t in timers},
            "counters": {c.name: c.value for c in counters},
        }

    def report(self):
        """Run every reporter once. A failing reporter does not stop the others."""
        snapshot = self.snapshot()
        for reporter in self.reporters:
            try:
                reporter.report(snapshot)
            except ReportingError as e:
                self.logger.error(f"Reporter {reporter.__class__.__name__} failed: {e}")
            except Exception as e:
                error = ReportingError(f"{type(e).__name__}: {e}")
                self.logger.error(f"Reporter {reporter.__class__.__name__} failed: {error}", exc_info=True)

    def start_reporting(self, interval: float):
        if self._reporting_thread is not None:
            return
        self._stop_event.clear()
        self._reporting_thread = threading.Thread(target=self._reporting_loop, args=(interval,),
                                                  name="metrics-reporter", daemon=True)
        self._reporting_thread.start()
        self.logger.debug(f"Reporting every {interval}s to {len(self.reporters)} reporter(s)")

    def _reporting_loop(self, interval: float):
        while not self._stop_event.wait(interval):
            self.report()

    def stop_reporting(self):
        if self._reporting_thread is None:
            return
        self._stop_event.set()
        self._reporting_thread.join()
        self._reporting_thread = None
