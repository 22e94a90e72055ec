"""
Tests for partition key generation strategies.
"""

import pytest
from hypothesis import given
from hypothesis import strategies as st

from stressbench.config_loader import ConfigurationError
from stressbench.partition_keys import PartitionKey, PartitionKeyGenerator


def test_sequence_wraps_after_max_partitions():
    generator = PartitionKeyGenerator.sequence("test", 3)
    ids = [generator.next().id for _ in range(5)]
    assert ids == [0, 1, 2, 0, 1]


@given(max_partitions=st.integers(min_value=1, max_value=500))
def test_sequence_cycles_without_repeats(max_partitions):
    generator = PartitionKeyGenerator.sequence("p", max_partitions)
    first_cycle = [generator.next().id for _ in range(max_partitions)]
    second_cycle = [generator.next().id for _ in range(max_partitions)]
    assert first_cycle == list(range(max_partitions))
    assert second_cycle == first_cycle


@pytest.mark.parametrize("strategy", ["random", "normal"])
@pytest.mark.parametrize("max_partitions", [1, 2, 7, 1000, 1_000_000])
def test_random_strategies_stay_in_range(strategy, max_partitions):
    generator = PartitionKeyGenerator(strategy, max_partitions, "run", seed=42)
    ids = [generator.next().id for _ in range(10_000)]
    assert min(ids) >= 0
    assert max(ids) < max_partitions


def test_normal_concentrates_around_the_middle():
    generator = PartitionKeyGenerator.normal("run", 1000, seed=7)
    ids = [generator.next().id for _ in range(10_000)]
    middle = sum(1 for i in ids if 250 <= i < 750)
    assert middle > 8000


def test_uniform_covers_small_range():
    generator = PartitionKeyGenerator.random("run", 10, seed=3)
    assert {generator.next().id for _ in range(1000)} == set(range(10))


def test_seeded_generators_are_reproducible():
    a = PartitionKeyGenerator.random("run", 1000, seed=99)
    b = PartitionKeyGenerator.random("run", 1000, seed=99)
    assert [a.next() for _ in range(50)] == [b.next() for _ in range(50)]


def test_key_text_uses_run_prefix():
    generator = PartitionKeyGenerator.sequence("run42.", 10)
    generator.next()
    key = generator.next()
    assert key == PartitionKey(1, "run42.")
    assert key.get_text() == "run42.1"


def test_generators_are_independent_per_worker():
    first = PartitionKeyGenerator.sequence("p", 5)
    second = PartitionKeyGenerator.sequence("p", 5)
    first.next()
    first.next()
    assert second.next().id == 0


def test_unknown_strategy_is_a_configuration_error():
    with pytest.raises(ConfigurationError):
        PartitionKeyGenerator("zipf", 10, "p")


def test_max_partitions_must_be_positive():
    with pytest.raises(ConfigurationError):
        PartitionKeyGenerator.sequence("p", 0)
