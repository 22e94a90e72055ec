"""
Time series profiles

Both profiles write sensor readings into one wide partition per sensor.
BasicTimeSeries reads the head of a single partition; TimeSeriesWithInClause
reads a window of neighbouring partitions with an IN list.
"""

import random
import time
from typing import Dict, List

from ..generators import FieldGenerator, FieldKey, RandomTextGenerator
from ..partition_keys import PartitionKey
from .base_profile import Operation, PreparedBundle, Runner, WorkloadProfile

TABLE = "sensor_data"
SENSOR_SCHEMA = f"""CREATE TABLE IF NOT EXISTS {TABLE} (
                        sensor_id TEXT,
                        timestamp INTEGER,
                        data TEXT,
                        PRIMARY KEY (sensor_id, timestamp)
                    ) WITHOUT ROWID"""
INSERT_QUERY = f"INSERT OR REPLACE INTO {TABLE} (sensor_id, timestamp, data) VALUES (?, ?, ?)"

# Partitions read by one IN-clause select: the key itself and the 25 before it
IN_CLAUSE_WIDTH = 26


class _SensorDataProfile(WorkloadProfile):
    default_read_rate = 0.01

    def schema(self) -> List[str]:
        return [SENSOR_SCHEMA]

    def get_field_generators(self) -> Dict[FieldKey, FieldGenerator]:
        return {FieldKey(TABLE, "data"): RandomTextGenerator(100, 200)}


class BasicTimeSeriesRunner(Runner):

    def __init__(self, bundle: PreparedBundle, data_field: FieldGenerator, rng: random.Random, limit: int):
        self.insert = bundle["insert"]
        self.select = bundle["select"]
        self.data_field = data_field
        self.rng = rng
        self.limit = limit

    def get_next_mutation(self, partition_key: PartitionKey) -> Operation:
        data = self.data_field.get_text(self.rng)
        return Operation.mutation(self.insert.bind(partition_key.get_text(), time.time_ns(), data))

    def get_next_select(self, partition_key: PartitionKey) -> Operation:
        return Operation.select(self.select.bind(partition_key.get_text(), self.limit))


class BasicTimeSeries(_SensorDataProfile):
    name = "basictimeseries"
    description = "Sensor readings appended per sensor; reads fetch the latest rows of one partition."

    def __init__(self, limit: int = 500):
        self.limit = limit

    def prepare(self, session) -> PreparedBundle:
        return PreparedBundle({
            "insert": session.prepare(INSERT_QUERY),
            "select": session.prepare(f"SELECT * FROM {TABLE} WHERE sensor_id = ? ORDER BY timestamp DESC LIMIT ?"),
        })

    def get_runner(self, context, bundle: PreparedBundle) -> Runner:
        data_field = context.registry.get_generator(TABLE, "data")
        return BasicTimeSeriesRunner(bundle, data_field, context.rng, self.limit)


class TimeSeriesWithInClauseRunner(BasicTimeSeriesRunner):

    def get_next_select(self, partition_key: PartitionKey) -> Operation:
        start_id = partition_key.id - (IN_CLAUSE_WIDTH - 1)
        # Keys below zero are clamped, so small ids repeat key 0 in the list
        ids = [f"{partition_key.prefix}{max(i, 0)}" for i in range(start_id, partition_key.id + 1)]
        return Operation.select(self.select.bind(*ids, time.time_ns()))


class TimeSeriesWithInClause(_SensorDataProfile):
    name = "timeserieswithinclause"
    description = "Sensor readings; reads span the 26 neighbouring partitions using an IN clause."

    def prepare(self, session) -> PreparedBundle:
        placeholders = ", ".join(["?"] * IN_CLAUSE_WIDTH)
        return PreparedBundle({
            "insert": session.prepare(INSERT_QUERY),
            "select": session.prepare(f"SELECT * FROM {TABLE} WHERE sensor_id IN ({placeholders}) AND timestamp < ?"),
        })

    def get_runner(self, context, bundle: PreparedBundle) -> Runner:
        data_field = context.registry.get_generator(TABLE, "data")
        return TimeSeriesWithInClauseRunner(bundle, data_field, context.rng, limit=0)
