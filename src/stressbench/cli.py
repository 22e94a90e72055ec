import argparse
import logging
import sys
from typing import List, Optional

from rich.console import Console
from rich.table import Table

from .config_loader import ConfigLoader, ConfigurationError, PARTITION_GENERATORS
from .generators import MissingGeneratorError
from .stress_manager import RunSummary, StressManager
from .utils.log_file_handler import setup_run_logging
from .workload import PROFILES, create_profile

logger = logging.getLogger("stressbench")


class FieldOverrideAction(argparse.Action):
    """Collects repeated --field table.field=spec options into a dict."""

    def __call__(self, parser, namespace, values, option_string=None):
        key, sep, spec = values.partition("=")
        if not sep or not key or not spec:
            parser.error(f"{option_string} expects table.field=generator(args), got '{values}'")
        fields = dict(getattr(namespace, self.dest) or {})
        fields[key] = spec
        setattr(namespace, self.dest, fields)


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="stressbench",
        description="Load generator driving pluggable workload profiles against a database.",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    run = subparsers.add_parser("run", help="Run a stress profile",
                                formatter_class=argparse.ArgumentDefaultsHelpFormatter)
    run.add_argument("profile", help="Profile to run (see 'list')")
    # Defaults are None so that values from --config are only overridden when given
    run.add_argument("--config", help="JSON file with run settings; command-line options take precedence")
    run.add_argument("--keyspace", help="Keyspace (database file name) to use")
    run.add_argument("--data-dir", dest="data_dir", help="Directory holding keyspace files")
    run.add_argument("--id", help="Identifier for this run, used as partition key prefix. Make unique for concurrent runs.")
    run.add_argument("--partitions", "-p", help="Max value of the integer component of partition keys (accepts 10k, 1m)")
    run.add_argument("--readrate", "--reads", "-r", dest="read_rate", type=float,
                     help="Read rate 0-1. Defaults to the profile's own read rate")
    run.add_argument("--concurrency", "-c", help="Concurrent in-flight queries per thread")
    run.add_argument("--threads", "-t", type=int, help="Worker threads")
    run.add_argument("--iterations", "-i", "-n", help="Operations per thread (accepts 10k, 1m)")
    run.add_argument("--duration", "-d", help="Duration of the run, e.g. '1h 30m' or seconds")
    run.add_argument("--rate", help="Global rate limit in operations per second, 0 disables it")
    run.add_argument("--field", dest="fields", action=FieldOverrideAction, metavar="TABLE.FIELD=SPEC",
                     help="Override a field generator, e.g. --field keyvalue.value='book(20,40)'")
    run.add_argument("--partitiongenerator", "--pg", dest="partition_generator", choices=PARTITION_GENERATORS,
                     help="Method of generating partition keys")
    run.add_argument("--drop", action="store_true", default=None, help="Drop the keyspace before starting")
    run.add_argument("--sql", dest="extra_sql", action="append",
                     help="Additional statement to run after the schema is created (repeatable)")
    run.add_argument("--csv", action="store_true", default=None, help="Also write metrics to CSV files")
    run.add_argument("--output-dir", dest="output_dir", help="Directory for CSV metrics")
    run.add_argument("--report-interval", dest="report_interval", type=float, help="Seconds between metric reports")
    run.add_argument("--seed", type=int, help="Seed for reproducible key and operation sequences")
    run.add_argument("--log-level", dest="log_level", help="Logging level")
    run.add_argument("--log-dir", dest="log_dir", help="Also write logs under this directory")

    subparsers.add_parser("list", help="List available profiles")

    info = subparsers.add_parser("info", help="Show schema and defaults of a profile")
    info.add_argument("profile")
    return parser


def _run(args: argparse.Namespace) -> int:
    overrides = {key: value for key, value in vars(args).items() if key not in ("command", "config")}
    config = ConfigLoader(args.config).load_and_process(overrides)
    setup_run_logging(config.log_level, config.log_dir, run_id=config.id, profile_name=config.profile)

    summary = StressManager(config).run()
    print(f"Stress complete: {summary.total_issued} operations issued "
          f"({summary.issued}), {summary.total_failed} failed in {summary.elapsed_seconds:.2f}s")
    _print_summary_table(summary)
    return 0


def _print_summary_table(summary: RunSummary):
    """Print final per-operation latency figures"""
    table = Table(show_header=True, header_style="bold magenta",
                  title=f"{summary.profile} on {summary.threads} thread(s)")
    table.add_column("Operation", style="dim", width=12)
    for col_name in ("Count", "Errors", "Rate (ops/s)", "Mean (ms)", "P50 (ms)", "P95 (ms)", "P99 (ms)", "P99.9 (ms)"):
        table.add_column(col_name, justify="right", width=10)

    for name, timer in sorted(summary.metrics.get("timers", {}).items()):
        table.add_row(name, f"{timer.count:,}", f"{timer.errors:,}", f"{timer.rate:.2f}", f"{timer.mean_ms:.2f}",
                      f"{timer.p50_ms:.2f}", f"{timer.p95_ms:.2f}", f"{timer.p99_ms:.2f}", f"{timer.p999_ms:.2f}")
    Console().print(table)


def _list() -> int:
    for name, profile_cls in sorted(PROFILES.items()):
        print(f"{name:<24} {profile_cls.description}")
    return 0


def _info(name: str) -> int:
    profile = create_profile(name)
    print(f"Profile: {profile.name}")
    print(f"Description: {profile.description}")
    print(f"Default read rate: {profile.default_read_rate}")
    print("Schema:")
    for statement in profile.schema():
        print(statement)
    print("Field generators:")
    for key, generator in profile.get_field_generators().items():
        print(f"  {key}: {generator}")
    return 0


def main(argv: Optional[List[str]] = None) -> int:
    args = build_parser().parse_args(argv)
    try:
        if args.command == "list":
            return _list()
        if args.command == "info":
            return _info(args.profile)
        return _run(args)
    except (ConfigurationError, MissingGeneratorError) as e:
        logger.error(f"Cannot start stress run: {e}")
        print(f"error: {e}", file=sys.stderr)
        return 1


if __name__ == "__main__":
    sys.exit(main())
