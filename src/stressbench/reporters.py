"""
Metrics reporters: a single-line console summary and per-timer CSV files.
"""

import logging
import os
from dataclasses import asdict
from typing import Dict

import pandas as pd

from .metrics import ReportingError
from .perf_counter import PerfCounter


class ConsoleReporter:
    """Logs one summary line per report."""

    def __init__(self, logger: logging.Logger = None):
        self.logger = logger or logging.getLogger("ConsoleReporter")
        self.perf_counter = PerfCounter.instance()
        self.start_time = self.perf_counter.perf_counter()

    def format_line(self, snapshot: Dict) -> str:
        elapsed = self.perf_counter.elapsed_since(self.start_time)
        parts = [f"{elapsed:8.1f}s"]
        for name, timer in sorted(snapshot["timers"].items()):
            parts.append(
                f"{name}: {timer.count} ops ({timer.rate:.1f}/s, errors {timer.errors}) "
                f"p50 {timer.p50_ms:.2f}ms p99 {timer.p99_ms:.2f}ms"
            )
        for name, value in sorted(snapshot["counters"].items()):
            parts.append(f"{name}: {value}")
        return " | ".join(parts)

    def report(self, snapshot: Dict):
        try:
            self.logger.info(self.format_line(snapshot))
        except (KeyError, AttributeError, ValueError) as e:
            raise ReportingError(f"Could not format console report: {e}") from e


class CsvReporter:
    """
    Writes one CSV file per timer into output_dir. Each report appends one row
    per timer. Files left by an earlier run are replaced on the first report.
    """

    def __init__(self, output_dir: str, prefix: str = ""):
        self.output_dir = output_dir
        self.prefix = prefix
        self.perf_counter = PerfCounter.instance()
        self.start_time = self.perf_counter.perf_counter()
        self.logger = logging.getLogger("CsvReporter")
        self._started = set()

    def csv_path(self, timer_name: str) -> str:
        return os.path.join(self.output_dir, f"{self.prefix}{timer_name}.csv")

    def report(self, snapshot: Dict):
        elapsed = self.perf_counter.elapsed_since(self.start_time)
        try:
            os.makedirs(self.output_dir, exist_ok=True)
            for name, timer in snapshot["timers"].items():
                row = {"timestamp": pd.Timestamp.now(), "elapsed_seconds": round(elapsed, 3), **asdict(timer)}
                path = self.csv_path(name)
                first = path not in self._started
                pd.DataFrame([row]).to_csv(path, mode="w" if first else "a", header=first, index=False)
                self._started.add(path)
        except OSError as e:
            raise ReportingError(f"Failed to write CSV metrics to {self.output_dir}: {e}") from e
