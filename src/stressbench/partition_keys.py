"""
Partition key generation

A generator hands out PartitionKey values for one worker under one of three
strategies: sequence, random (uniform) and normal (gaussian).
"""

import random
from dataclasses import dataclass
from typing import Iterator, Optional

from .config_loader import ConfigurationError, PARTITION_GENERATORS

# Standard deviation of the normal strategy as a fraction of max_partitions
NORMAL_STDDEV_FRACTION = 1.0 / 6


@dataclass(frozen=True)
class PartitionKey:
    id: int
    prefix: str

    def get_text(self) -> str:
        return f"{self.prefix}{self.id}"


class PartitionKeyGenerator:
    """
    Produces partition keys in [0, max_partitions) prefixed by the run id.

    Instances are owned by a single worker and are not thread-safe.
    """

    def __init__(self, strategy: str, max_partitions: int, prefix: str, seed: Optional[int] = None):
        if strategy not in PARTITION_GENERATORS:
            raise ConfigurationError(f"Unknown partition generator '{strategy}', expected one of {', '.join(PARTITION_GENERATORS)}")
        if max_partitions < 1:
            raise ConfigurationError(f"max_partitions must be at least 1, got {max_partitions}")
        self.strategy = strategy
        self.max_partitions = max_partitions
        self.prefix = prefix
        self.rng = random.Random(seed)
        self._current = 0
        self._next_id = {
            "sequence": self._sequence,
            "random": self._uniform,
            "normal": self._normal,
        }[strategy]

    @classmethod
    def sequence(cls, prefix: str, max_partitions: int) -> "PartitionKeyGenerator":
        return cls("sequence", max_partitions, prefix)

    @classmethod
    def random(cls, prefix: str, max_partitions: int, seed: Optional[int] = None) -> "PartitionKeyGenerator":
        return cls("random", max_partitions, prefix, seed)

    @classmethod
    def normal(cls, prefix: str, max_partitions: int, seed: Optional[int] = None) -> "PartitionKeyGenerator":
        return cls("normal", max_partitions, prefix, seed)

    def _sequence(self) -> int:
        value = self._current
        self._current = (self._current + 1) % self.max_partitions
        return value

    def _uniform(self) -> int:
        return self.rng.randrange(self.max_partitions)

    def _normal(self) -> int:
        mid = self.max_partitions / 2
        sample = int(self.rng.gauss(mid, self.max_partitions * NORMAL_STDDEV_FRACTION))
        return min(max(sample, 0), self.max_partitions - 1)

    def next(self) -> PartitionKey:
        return PartitionKey(self._next_id(), self.prefix)

    def __iter__(self) -> Iterator[PartitionKey]:
        while True:
            yield self.next()

    def __repr__(self) -> str:
        return f"PartitionKeyGenerator(strategy={self.strategy}, max_partitions={self.max_partitions}, prefix={self.prefix!r})"
