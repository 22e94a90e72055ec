"""
Profile tests against a real keyspace file: schema idempotence, statement
shapes and profile lookup.
"""

import random

import pytest

from stressbench.config_loader import ConfigurationError
from stressbench.database_utils import PreparedStatement, Session
from stressbench.generators import MissingGeneratorError, Registry
from stressbench.partition_keys import PartitionKey
from stressbench.workload import (
    PROFILES, BasicTimeSeries, CountersWide, KeyValue, OperationKind, TimeSeriesWithInClause, create_profile,
)
from stressbench.workload.time_series import IN_CLAUSE_WIDTH


@pytest.fixture
def session(tmp_path):
    with Session(str(tmp_path / "profiles.sqlite"), io_threads=2, name="test") as s:
        yield s


def runner_for(profile, session, make_context):
    registry = Registry.create(profile.get_field_generators())
    context = make_context(session, registry=registry)
    for statement in profile.schema():
        session.execute(statement)
    return profile.get_runner(context, profile.prepare(session))


@pytest.mark.parametrize("name", sorted(PROFILES))
def test_schema_can_be_applied_twice(session, name):
    profile = create_profile(name)
    for _ in range(2):
        for statement in profile.schema():
            session.execute(statement)


@pytest.mark.parametrize("name", sorted(PROFILES))
def test_mutation_and_select_execute(session, make_context, name):
    profile = create_profile(name)
    runner = runner_for(profile, session, make_context)
    key = PartitionKey(3, "test")

    mutation = runner.get_next_mutation(key)
    select = runner.get_next_select(key)
    assert mutation.kind is OperationKind.MUTATION
    assert select.kind is OperationKind.SELECT

    session.execute_async(mutation.statement).result(timeout=5)
    rows = session.execute_async(select.statement).result(timeout=5)
    assert len(rows) >= 1


def test_key_value_select_returns_written_value(session, make_context):
    runner = runner_for(KeyValue(), session, make_context)
    key = PartitionKey(42, "kv")
    mutation = runner.get_next_mutation(key)
    session.execute(mutation.statement)

    rows = session.execute(runner.get_next_select(key).statement)
    assert rows == [("kv42", mutation.statement.params[1])]
    assert 100 <= len(rows[0][1]) <= 200


def test_key_value_upsert_keeps_one_row_per_key(session, make_context):
    runner = runner_for(KeyValue(), session, make_context)
    key = PartitionKey(1, "kv")
    for _ in range(5):
        session.execute(runner.get_next_mutation(key).statement)
    assert session.execute("SELECT count(*) FROM keyvalue") == [(1,)]


def test_basic_time_series_select_is_newest_first_and_limited(session, make_context):
    profile = BasicTimeSeries(limit=3)
    runner = runner_for(profile, session, make_context)
    key = PartitionKey(7, "sensor")
    for _ in range(5):
        session.execute(runner.get_next_mutation(key).statement)

    rows = session.execute(runner.get_next_select(key).statement)
    assert len(rows) == 3
    timestamps = [row[1] for row in rows]
    assert timestamps == sorted(timestamps, reverse=True)


def test_in_clause_covers_neighbouring_partitions(session, make_context):
    runner = runner_for(TimeSeriesWithInClause(), session, make_context)
    for i in range(30):
        session.execute(runner.get_next_mutation(PartitionKey(i, "s")).statement)

    select = runner.get_next_select(PartitionKey(29, "s")).statement
    assert select.params[:IN_CLAUSE_WIDTH] == tuple(f"s{i}" for i in range(4, 30))
    sensors = {row[0] for row in session.execute(select)}
    assert sensors == {f"s{i}" for i in range(4, 30)}


def test_in_clause_clamps_low_ids_to_zero(session, make_context):
    runner = runner_for(TimeSeriesWithInClause(), session, make_context)
    select = runner.get_next_select(PartitionKey(2, "s")).statement
    ids = select.params[:IN_CLAUSE_WIDTH]
    assert len(ids) == IN_CLAUSE_WIDTH
    assert set(ids) == {"s0", "s1", "s2"}
    # Still a valid query
    session.execute(select)


def test_counters_increment_the_same_cell(session, make_context):
    profile = CountersWide(rows_per_partition=1)
    runner = runner_for(profile, session, make_context)
    key = PartitionKey(0, "c")
    for _ in range(4):
        session.execute(runner.get_next_mutation(key).statement)
    assert session.execute(runner.get_next_select(key).statement) == [("c0", 0, 4)]


def test_counter_cells_stay_within_partition_width():
    profile = CountersWide(rows_per_partition=10)
    bundle = profile.prepare(_PrepareOnly())
    runner = profile.get_runner(_Context(), bundle)
    clusters = {runner.get_next_mutation(PartitionKey(0, "c")).statement.params[1] for _ in range(500)}
    assert clusters <= set(range(10))
    assert len(clusters) == 10


class _PrepareOnly:
    def prepare(self, query):
        return PreparedStatement(query)


class _Context:
    rng = random.Random(5)
    registry = Registry()


@pytest.mark.parametrize("name", ["KeyValue", "KEYVALUE", "keyvalue"])
def test_create_profile_is_case_insensitive(name):
    assert isinstance(create_profile(name), KeyValue)


def test_create_profile_rejects_unknown_name():
    with pytest.raises(ConfigurationError, match="Available profiles"):
        create_profile("nosuchprofile")


def test_runner_requires_its_field_generators(session, make_context):
    profile = KeyValue()
    context = make_context(session, registry=Registry())
    with pytest.raises(MissingGeneratorError):
        profile.get_runner(context, profile.prepare(session))


def test_default_read_rates():
    assert KeyValue.default_read_rate == 0.5
    assert BasicTimeSeries.default_read_rate == 0.01
    assert TimeSeriesWithInClause.default_read_rate == 0.01
    assert CountersWide.default_read_rate == 0.05
