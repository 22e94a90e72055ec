"""
Wide counter partitions: each mutation increments one cell of a wide row.
"""

import random
from typing import Dict, List

from ..generators import FieldGenerator, FieldKey
from ..partition_keys import PartitionKey
from .base_profile import Operation, PreparedBundle, Runner, WorkloadProfile

TABLE = "counters_wide"


class CountersWideRunner(Runner):

    def __init__(self, bundle: PreparedBundle, rng: random.Random, rows_per_partition: int):
        self.increment = bundle["increment"]
        self.select = bundle["select"]
        self.rng = rng
        self.rows_per_partition = rows_per_partition

    def get_next_mutation(self, partition_key: PartitionKey) -> Operation:
        cluster = self.rng.randrange(self.rows_per_partition)
        return Operation.mutation(self.increment.bind(partition_key.get_text(), cluster))

    def get_next_select(self, partition_key: PartitionKey) -> Operation:
        return Operation.select(self.select.bind(partition_key.get_text()))


class CountersWide(WorkloadProfile):
    name = "counterswide"
    description = "Counter increments spread over wide partitions; reads fetch a whole partition."
    default_read_rate = 0.05

    def __init__(self, rows_per_partition: int = 10_000):
        self.rows_per_partition = rows_per_partition

    def schema(self) -> List[str]:
        return [f"""CREATE TABLE IF NOT EXISTS {TABLE} (
                        key TEXT,
                        cluster INTEGER,
                        value INTEGER NOT NULL DEFAULT 0,
                        PRIMARY KEY (key, cluster)
                    )"""]

    def get_field_generators(self) -> Dict[FieldKey, FieldGenerator]:
        return {}

    def prepare(self, session) -> PreparedBundle:
        return PreparedBundle({
            "increment": session.prepare(
                f"INSERT INTO {TABLE} (key, cluster, value) VALUES (?, ?, 1) "
                f"ON CONFLICT (key, cluster) DO UPDATE SET value = value + 1"),
            "select": session.prepare(f"SELECT * FROM {TABLE} WHERE key = ?"),
        })

    def get_runner(self, context, bundle: PreparedBundle) -> Runner:
        return CountersWideRunner(bundle, context.rng, self.rows_per_partition)
