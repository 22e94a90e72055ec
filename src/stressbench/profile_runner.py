import logging
import threading
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Optional

from .database_utils import OperationExecutionError
from .partition_keys import PartitionKeyGenerator
from .perf_counter import PerfCounter
from .stress_context import StressContext
from .workload import Operation, OperationKind, PreparedBundle, WorkloadProfile


def _outcome(future) -> Optional[BaseException]:
    if future.cancelled():
        return OperationExecutionError("Operation was cancelled")
    return future.exception()


class RunnerState(Enum):
    CREATED = "created"
    PREPARED = "prepared"
    RUNNING = "running"
    DRAINING = "draining"
    COMPLETE = "complete"


@dataclass
class RunnerStats:
    issued: Dict[OperationKind, int] = field(default_factory=lambda: {k: 0 for k in OperationKind})
    completed: Dict[OperationKind, int] = field(default_factory=lambda: {k: 0 for k in OperationKind})
    failed: Dict[OperationKind, int] = field(default_factory=lambda: {k: 0 for k in OperationKind})
    max_in_flight: int = 0
    elapsed_seconds: float = 0.0

    @property
    def total_issued(self) -> int:
        return sum(self.issued.values())

    @property
    def total_completed(self) -> int:
        return sum(self.completed.values())

    @property
    def total_failed(self) -> int:
        return sum(self.failed.values())


class ProfileRunner(threading.Thread):
    """
    Drives one worker's iterate-dispatch-record loop.

    Each iteration pulls a partition key, picks a mutation or a select, waits
    on the shared rate limiter (if any), takes one of the worker's concurrency
    permits and dispatches the statement asynchronously. The completion
    callback records the outcome and hands the permit back. Once the iteration
    count has been issued or the deadline has passed, the runner stops issuing
    and drains: it reacquires every permit, which can only happen after all
    in-flight operations have been recorded.
    """

    def __init__(self, context: StressContext, profile: WorkloadProfile, bundle: PreparedBundle,
                 partition_keys: PartitionKeyGenerator, iterations: int = 0, duration: float = 0,
                 start_barrier: Optional[threading.Barrier] = None):
        super().__init__(name=f"ProfileRunner-{context.worker_index}")
        if iterations > 0 and duration > 0:
            raise ValueError("iterations and duration are mutually exclusive")
        self.context = context
        self.profile = profile
        self.bundle = bundle
        self.partition_keys = partition_keys
        self.iterations = iterations
        self.duration = duration
        self.start_barrier = start_barrier

        self.logger = logging.getLogger(f"ProfileRunner.{context.worker_index}")
        self.perf_counter = PerfCounter.instance()
        self.permits = threading.BoundedSemaphore(context.concurrency_limit)
        self.stats = RunnerStats()
        self._stats_lock = threading.Lock()
        self._in_flight = 0

        self.runner = None
        self.state = RunnerState.CREATED
        self.error: Optional[BaseException] = None

        self._mutation_timer = context.metrics.timer(OperationKind.MUTATION.value)
        self._select_timer = context.metrics.timer(OperationKind.SELECT.value)
        self._errors = context.metrics.counter("errors")

    def prepare(self):
        """Build this worker's Runner from the shared prepared bundle."""
        self.runner = self.profile.get_runner(self.context, self.bundle)
        self.state = RunnerState.PREPARED
        self.logger.debug(f"Prepared runner {self.runner.__class__.__name__}")

    def run(self):
        try:
            self.prepare()
            if self.start_barrier is not None:
                self.start_barrier.wait()
            self.execute()
        except threading.BrokenBarrierError as e:
            self.error = e
            self.logger.error("Start barrier broken, another worker failed to prepare. Not running.")
        except Exception as e:
            self.error = e
            self.logger.error(f"Worker failed: {e}", exc_info=True)
            if self.start_barrier is not None:
                self.start_barrier.abort()

    def execute(self) -> RunnerStats:
        if self.state is not RunnerState.PREPARED:
            raise RuntimeError(f"Runner must be prepared before executing (state: {self.state.value})")

        self.state = RunnerState.RUNNING
        start = self.perf_counter.perf_counter()
        deadline = start + self.duration if self.duration > 0 else None
        if deadline is not None:
            self.logger.info(f"Running for {self.duration}s")
        else:
            self.logger.info(f"Running {self.iterations} iterations")

        try:
            while not self._termination_reached(deadline):
                operation = self._next_operation()

                if self.context.rate_limiter is not None:
                    self.context.rate_limiter.acquire()
                self.permits.acquire()

                # The waits above may have carried us past the deadline
                if deadline is not None and self.perf_counter.perf_counter() >= deadline:
                    self.permits.release()
                    break
                self._dispatch(operation)
        finally:
            self.state = RunnerState.DRAINING
            self.logger.debug(f"Draining {self._in_flight} in-flight operation(s)")
            self._drain()

            self.stats.elapsed_seconds = self.perf_counter.elapsed_since(start)
            self.state = RunnerState.COMPLETE
        self.logger.info(f"Execution finished. Issued {self.stats.total_issued}, failed {self.stats.total_failed} "
                         f"in {self.stats.elapsed_seconds:.2f}s")
        return self.stats

    def _termination_reached(self, deadline: Optional[float]) -> bool:
        if deadline is not None:
            return self.perf_counter.perf_counter() >= deadline
        return self.stats.total_issued >= self.iterations

    def _next_operation(self) -> Operation:
        partition_key = self.partition_keys.next()
        if self.context.rng.random() < self.context.read_rate:
            return self.runner.get_next_select(partition_key)
        return self.runner.get_next_mutation(partition_key)

    def _dispatch(self, operation: Operation):
        with self._stats_lock:
            self.stats.issued[operation.kind] += 1
            self._in_flight += 1
            self.stats.max_in_flight = max(self.stats.max_in_flight, self._in_flight)

        started = self.perf_counter.perf_counter()
        try:
            future = self.context.session.execute_async(operation.statement)
        except Exception as e:
            # Counted as a failed operation; the permit taken for it is returned by _complete
            self._complete(operation, started, e)
            return
        future.add_done_callback(lambda f: self._complete(operation, started, _outcome(f)))

    def _complete(self, operation: Operation, started: float, error: Optional[BaseException]):
        latency = self.perf_counter.elapsed_since(started)
        timer = self._mutation_timer if operation.kind is OperationKind.MUTATION else self._select_timer
        try:
            if error is None:
                timer.update(latency)
            else:
                timer.update_error(latency)
                self._errors.inc()
                self.logger.debug(f"{operation.kind.value} failed: {error}")
            with self._stats_lock:
                self._in_flight -= 1
                if error is None:
                    self.stats.completed[operation.kind] += 1
                else:
                    self.stats.failed[operation.kind] += 1
        finally:
            self.permits.release()

    def _drain(self):
        for _ in range(self.context.concurrency_limit):
            self.permits.acquire()
        for _ in range(self.context.concurrency_limit):
            self.permits.release()
