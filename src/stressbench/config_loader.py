import json
import logging
import os
import re
from dataclasses import dataclass, field, fields
from typing import Dict, Any, List, Optional, Tuple


class ConfigurationError(Exception):
    """Raised for invalid run configuration. Fatal, raised before any workload runs."""
    pass


PARTITION_GENERATORS = ("random", "normal", "sequence")
DEFAULT_ITERATIONS = 1_000_000

_HUMAN_SUFFIXES = {"k": 1_000, "m": 1_000_000, "b": 1_000_000_000}
_DURATION_UNITS = {"d": 86400, "h": 3600, "m": 60, "s": 1}
_DURATION_PART = re.compile(r"(\d+)\s*([dhms])")

logger = logging.getLogger("ConfigLoader")


def parse_human_number(value) -> int:
    """Convert '10k', '1.5m', '2b' or a plain number into an int."""
    if isinstance(value, (int, float)):
        return int(value)
    text = str(value).strip().lower()
    if not text:
        raise ConfigurationError("Empty numeric value")
    multiplier = 1
    if text[-1] in _HUMAN_SUFFIXES:
        multiplier = _HUMAN_SUFFIXES[text[-1]]
        text = text[:-1]
    try:
        return int(float(text) * multiplier)
    except ValueError:
        raise ConfigurationError(f"Not a number: '{value}'")


def parse_duration(value) -> int:
    """Convert '1d 3h 15m 10s' (or bare seconds) into seconds."""
    if isinstance(value, (int, float)):
        return int(value)
    text = str(value).strip().lower()
    if text.isdigit():
        return int(text)
    parts = _DURATION_PART.findall(text)
    # Anything left over after removing the recognised parts is garbage
    if not parts or _DURATION_PART.sub("", text).strip():
        raise ConfigurationError(f"Invalid duration '{value}', expected a format like 1d 3h 15m 10s")
    return sum(int(amount) * _DURATION_UNITS[unit] for amount, unit in parts)


def split_field_key(key: str) -> Tuple[str, str]:
    """Split 'table.field' into its two components."""
    parts = key.split(".")
    if len(parts) != 2 or not all(parts):
        raise ConfigurationError(f"Field override '{key}' must have the form table.field")
    return parts[0], parts[1]


@dataclass
class StressConfig:
    """Holds the fully merged configuration of one stress run."""
    profile: str = ""
    keyspace: str = "stressbench"
    data_dir: str = "data"
    id: str = "001"
    partitions: int = 1_000_000
    read_rate: Optional[float] = None
    concurrency: int = 100
    threads: int = 1
    iterations: int = 0
    duration: int = 0
    rate: int = 0
    fields: Dict[str, str] = field(default_factory=dict)
    partition_generator: str = "random"
    drop: bool = False
    extra_sql: List[str] = field(default_factory=list)
    csv: bool = False
    output_dir: str = "results"
    report_interval: float = 1.0
    log_level: str = "INFO"
    log_dir: Optional[str] = None
    seed: Optional[int] = None

    @property
    def db_path(self) -> str:
        return os.path.join(self.data_dir, f"{self.keyspace}.sqlite")

    def validate(self) -> "StressConfig":
        """Check every constraint the engine relies on and apply defaults."""
        if self.duration > 0 and self.iterations > 0:
            raise ConfigurationError("Duration and iterations shouldn't be both set at the same time. Please pick just one.")
        if self.duration < 0 or self.iterations < 0:
            raise ConfigurationError("Duration and iterations must not be negative.")
        if self.partition_generator not in PARTITION_GENERATORS:
            raise ConfigurationError(f"Partition generator supports {', '.join(PARTITION_GENERATORS)}, got '{self.partition_generator}'.")
        if self.concurrency < 1:
            raise ConfigurationError(f"Concurrency must be at least 1, got {self.concurrency}.")
        if self.threads < 1:
            raise ConfigurationError(f"Threads must be at least 1, got {self.threads}.")
        if self.rate < 0:
            raise ConfigurationError(f"Rate must be >= 0 (0 disables the limiter), got {self.rate}.")
        if self.partitions < 1:
            raise ConfigurationError(f"Partitions must be at least 1, got {self.partitions}.")
        if self.read_rate is not None and not 0.0 <= self.read_rate <= 1.0:
            raise ConfigurationError(f"Read rate must be within [0, 1], got {self.read_rate}.")
        if self.report_interval <= 0:
            raise ConfigurationError(f"Report interval must be positive, got {self.report_interval}.")
        for key in self.fields:
            split_field_key(key)

        if self.duration == 0 and self.iterations == 0:
            self.iterations = DEFAULT_ITERATIONS
        return self

    def field_overrides(self) -> Dict[Tuple[str, str], str]:
        """Return the field overrides keyed by (table, field)."""
        return {split_field_key(key): spec for key, spec in self.fields.items()}


_NUMERIC_KEYS = {"partitions", "concurrency", "iterations", "rate"}


def build_config(values: Dict[str, Any]) -> StressConfig:
    """Create a StressConfig from a flat dict, converting human-readable values."""
    known = {f.name for f in fields(StressConfig)}
    unknown = set(values) - known
    if unknown:
        raise ConfigurationError(f"Unknown configuration keys: {', '.join(sorted(unknown))}")

    converted = dict(values)
    for key in _NUMERIC_KEYS & set(converted):
        converted[key] = parse_human_number(converted[key])
    if "duration" in converted:
        converted["duration"] = parse_duration(converted["duration"])
    if converted.get("read_rate") is not None:
        try:
            converted["read_rate"] = float(converted["read_rate"])
        except (TypeError, ValueError):
            raise ConfigurationError(f"Read rate must be a number, got '{converted['read_rate']}'")
    return StressConfig(**converted)


class ConfigLoader:
    """
    Loads a JSON configuration file and merges command-line values on top of it.
    """
    def __init__(self, config_file_path: Optional[str] = None):
        self.config_file_path = config_file_path
        self.config = self._load_config() if config_file_path else {}

    def _load_config(self) -> dict:
        if not os.path.exists(self.config_file_path):
            raise ConfigurationError(f"Configuration file not found: {self.config_file_path}")
        try:
            with open(self.config_file_path, 'r', encoding='utf-8') as f:
                loaded = json.load(f)
        except json.JSONDecodeError as e:
            raise ConfigurationError(f"Failed to parse configuration file: {self.config_file_path} - {e}")
        except OSError as e:
            raise ConfigurationError(f"Failed to read configuration file: {self.config_file_path} - {e}")
        if not isinstance(loaded, dict):
            raise ConfigurationError(f"Configuration file {self.config_file_path} must contain a JSON object")
        return loaded

    def load_and_process(self, overrides: Optional[Dict[str, Any]] = None) -> StressConfig:
        """
        Merge file values with overrides (None values are ignored), then validate.
        """
        merged = dict(self.config)
        file_fields = merged.get("fields", {})
        for key, value in (overrides or {}).items():
            if value is None:
                continue
            if key == "fields":
                merged["fields"] = {**file_fields, **value}
            else:
                merged[key] = value

        config = build_config(merged).validate()
        logger.debug(f"Loaded configuration: {config}")
        return config
