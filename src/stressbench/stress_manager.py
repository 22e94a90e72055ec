import logging
import os
import threading
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional

from .config_loader import StressConfig
from .database_utils import Session, drop_keyspace
from .generators import Registry
from .metrics import Metrics
from .partition_keys import PartitionKeyGenerator
from .profile_runner import ProfileRunner, RunnerState
from .reporters import ConsoleReporter, CsvReporter
from .stress_context import StressContext
from .tps_controller import create_rate_limiter
from .workload import OperationKind, PreparedBundle, WorkloadProfile, create_profile


@dataclass
class RunSummary:
    profile: str
    threads: int
    issued: Dict[str, int] = field(default_factory=dict)
    completed: Dict[str, int] = field(default_factory=dict)
    failed: Dict[str, int] = field(default_factory=dict)
    max_in_flight: List[int] = field(default_factory=list)
    elapsed_seconds: float = 0.0
    metrics: Dict[str, object] = field(default_factory=dict)

    @property
    def total_issued(self) -> int:
        return sum(self.issued.values())

    @property
    def total_failed(self) -> int:
        return sum(self.failed.values())


class StressManager:
    """
    Orchestrates one stress run: schema, field registry and statement
    preparation happen once; then one ProfileRunner per thread prepares its
    runner, waits on a shared barrier and executes until the iteration count
    or deadline is reached. Final metrics are reported after every runner has
    drained.
    """

    def __init__(self, config: StressConfig,
                 session_factory: Optional[Callable[[str, int], object]] = None,
                 reporters: Optional[List] = None):
        self.config = config.validate()
        self.logger = logging.getLogger("StressManager")
        self.session_factory = session_factory or self._default_session_factory
        self.reporters = reporters

        self.profile: Optional[WorkloadProfile] = None
        self.registry: Optional[Registry] = None
        self.bundle: Optional[PreparedBundle] = None
        self.metrics: Optional[Metrics] = None
        self.runners: List[ProfileRunner] = []
        self.state = RunnerState.CREATED

    def _default_session_factory(self, name: str, io_threads: int) -> Session:
        return Session(self.config.db_path, io_threads=io_threads, name=name)

    def _default_reporters(self) -> List:
        reporters = [ConsoleReporter()]
        if self.config.csv:
            reporters.append(CsvReporter(self.config.output_dir, prefix=f"{self.config.profile}_{self.config.id}_"))
        return reporters

    @property
    def read_rate(self) -> float:
        if self.config.read_rate is not None:
            return self.config.read_rate
        return self.profile.default_read_rate

    def setup(self):
        """Apply schema, build the field registry and prepare statements, once."""
        if self.state is not RunnerState.CREATED:
            return
        self.profile = create_profile(self.config.profile)
        self.logger.info(f"Using profile {self.profile.name}: {self.profile.description}")
        self.registry = self.build_registry()

        if self.config.drop:
            self.logger.info(f"Dropping keyspace {self.config.db_path}")
            drop_keyspace(self.config.db_path, self.logger)
        if self.config.data_dir:
            os.makedirs(self.config.data_dir, exist_ok=True)

        bootstrap = self.session_factory("bootstrap", 1)
        try:
            self.apply_schema(bootstrap)
            self.logger.info("Preparing queries")
            self.bundle = self.profile.prepare(bootstrap)
        finally:
            bootstrap.shutdown()
        self.state = RunnerState.PREPARED

    def apply_schema(self, session):
        self.logger.info("Creating tables")
        for statement in self.profile.schema():
            self.logger.debug(statement)
            session.execute(statement)
        for statement in self.config.extra_sql:
            self.logger.info(f"Running additional statement: {statement}")
            session.execute(statement)

    def build_registry(self) -> Registry:
        """
        Raises:
            ConfigurationError: for malformed or unknown generator specs
            MissingGeneratorError: if a field of the profile cannot be resolved
        """
        registry = Registry.create(self.profile.get_field_generators(), self.config.field_overrides())

        declared = {(key.table, key.field) for key in self.profile.required_fields()}
        for table, field_name in self.config.field_overrides():
            if (table, field_name) not in declared:
                self.logger.warning(f"Override for {table}.{field_name} does not match any field of profile {self.profile.name}")
        for key in self.profile.required_fields():
            registry.get_generator(key.table, key.field)
        return registry

    def _create_runners(self) -> List[ProfileRunner]:
        config = self.config
        rate_limiter = create_rate_limiter(config.rate)
        barrier = threading.Barrier(config.threads)
        runners = []
        for index in range(config.threads):
            session = self.session_factory(f"worker-{index}", config.concurrency)
            context = StressContext(
                session=session,
                worker_index=index,
                metrics=self.metrics,
                registry=self.registry,
                concurrency_limit=config.concurrency,
                read_rate=self.read_rate,
                rate_limiter=rate_limiter,
                seed=config.seed,
            )
            key_seed = None if config.seed is None else f"{config.seed}-{index}-keys"
            partition_keys = PartitionKeyGenerator(config.partition_generator, config.partitions, config.id, key_seed)
            runners.append(ProfileRunner(context, self.profile, self.bundle, partition_keys,
                                         iterations=config.iterations, duration=config.duration,
                                         start_barrier=barrier))
        return runners

    def run(self) -> RunSummary:
        self.setup()
        config = self.config
        self.metrics = Metrics(self.reporters if self.reporters is not None else self._default_reporters())
        self.runners = self._create_runners()

        if config.duration:
            self.logger.info(f"Running {self.profile.name} for {config.duration}s on {config.threads} thread(s)")
        else:
            self.logger.info(f"Executing {config.iterations} operations per thread on {config.threads} thread(s)")
        self.logger.info(f"Concurrency {config.concurrency} per thread, read rate {self.read_rate}, "
                         f"rate limit {config.rate or 'disabled'}")

        self.metrics.start_reporting(config.report_interval)
        try:
            for runner in self.runners:
                runner.start()
            for runner in self.runners:
                runner.join()
        finally:
            self.metrics.stop_reporting()
            for runner in self.runners:
                runner.context.session.shutdown()

        self.metrics.report()
        self.state = RunnerState.COMPLETE

        failures = [r.error for r in self.runners if r.error is not None]
        if failures:
            # A broken barrier only echoes the real failure of another worker
            root = next((e for e in failures if not isinstance(e, threading.BrokenBarrierError)), failures[0])
            raise root

        summary = self._summarize()
        self.logger.info(f"Stress complete: {summary.total_issued} operations issued, "
                         f"{summary.total_failed} failed, {summary.elapsed_seconds:.2f}s")
        return summary

    def _summarize(self) -> RunSummary:
        summary = RunSummary(profile=self.profile.name, threads=self.config.threads)
        for kind in OperationKind:
            summary.issued[kind.value] = sum(r.stats.issued[kind] for r in self.runners)
            summary.completed[kind.value] = sum(r.stats.completed[kind] for r in self.runners)
            summary.failed[kind.value] = sum(r.stats.failed[kind] for r in self.runners)
        summary.max_in_flight = [r.stats.max_in_flight for r in self.runners]
        summary.elapsed_seconds = max((r.stats.elapsed_seconds for r in self.runners), default=0.0)
        summary.metrics = self.metrics.snapshot()
        return summary
