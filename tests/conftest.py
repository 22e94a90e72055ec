"""
Pytest configuration and shared fixtures for the stressbench test suite.
"""

import threading
import time
from concurrent.futures import Future, ThreadPoolExecutor

import pytest
from hypothesis import settings, Verbosity

from stressbench.database_utils import OperationExecutionError, PreparedStatement
from stressbench.generators import Registry
from stressbench.metrics import Metrics
from stressbench.stress_context import StressContext

settings.register_profile(
    "default",
    max_examples=50,
    verbosity=Verbosity.normal,
    deadline=None,
)

settings.register_profile(
    "ci",
    max_examples=200,
    verbosity=Verbosity.verbose,
    deadline=None,
)


def pytest_configure(config):
    if not config.getoption("hypothesis_profile", default=None):
        settings.load_profile("default")


class FakeSession:
    """
    In-memory session: statements complete on a background pool after a fixed
    delay. Tracks how many statements are in flight at once.
    """

    def __init__(self, delay: float = 0.0, fail_when=None, io_threads: int = 32):
        self.delay = delay
        self.fail_when = fail_when
        self.executed = []
        self.in_flight = 0
        self.max_in_flight = 0
        self._lock = threading.Lock()
        self._executor = ThreadPoolExecutor(max_workers=io_threads)
        self.closed = False

    def prepare(self, query):
        return PreparedStatement(query)

    def execute(self, statement):
        with self._lock:
            self.executed.append(statement)
        return []

    def _run(self, statement):
        try:
            if self.delay:
                time.sleep(self.delay)
            if self.fail_when is not None and self.fail_when(statement):
                raise OperationExecutionError("injected failure", statement)
            return []
        finally:
            with self._lock:
                self.in_flight -= 1

    def execute_async(self, statement) -> Future:
        with self._lock:
            self.executed.append(statement)
            self.in_flight += 1
            self.max_in_flight = max(self.max_in_flight, self.in_flight)
        return self._executor.submit(self._run, statement)

    def shutdown(self):
        self.closed = True
        self._executor.shutdown(wait=True)


class RecordingReporter:
    def __init__(self):
        self.snapshots = []

    def report(self, snapshot):
        self.snapshots.append(snapshot)


@pytest.fixture
def fake_session():
    session = FakeSession()
    yield session
    session.shutdown()


@pytest.fixture
def make_context():
    def factory(session, concurrency=4, read_rate=0.0, rate_limiter=None, registry=None,
                metrics=None, worker_index=0, seed=1234):
        return StressContext(
            session=session,
            worker_index=worker_index,
            metrics=metrics or Metrics(),
            registry=registry or Registry(),
            concurrency_limit=concurrency,
            read_rate=read_rate,
            rate_limiter=rate_limiter,
            seed=seed,
        )
    return factory
