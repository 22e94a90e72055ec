"""
Key-value profile: point upserts and point reads on a single table.
"""

import random
from typing import Dict, List

from ..generators import FieldGenerator, FieldKey, RandomTextGenerator
from ..partition_keys import PartitionKey
from .base_profile import Operation, PreparedBundle, Runner, WorkloadProfile

TABLE = "keyvalue"


class KeyValueRunner(Runner):

    def __init__(self, bundle: PreparedBundle, value_field: FieldGenerator, rng: random.Random):
        self.insert = bundle["insert"]
        self.select = bundle["select"]
        self.value_field = value_field
        self.rng = rng

    def get_next_mutation(self, partition_key: PartitionKey) -> Operation:
        value = self.value_field.get_text(self.rng)
        return Operation.mutation(self.insert.bind(partition_key.get_text(), value))

    def get_next_select(self, partition_key: PartitionKey) -> Operation:
        return Operation.select(self.select.bind(partition_key.get_text()))


class KeyValue(WorkloadProfile):
    name = "keyvalue"
    description = "Point upserts and point reads on a single key-value table."
    default_read_rate = 0.5

    def schema(self) -> List[str]:
        return [f"""CREATE TABLE IF NOT EXISTS {TABLE} (
                        key TEXT PRIMARY KEY,
                        value TEXT
                    )"""]

    def get_field_generators(self) -> Dict[FieldKey, FieldGenerator]:
        return {FieldKey(TABLE, "value"): RandomTextGenerator(100, 200)}

    def prepare(self, session) -> PreparedBundle:
        return PreparedBundle({
            "insert": session.prepare(f"INSERT OR REPLACE INTO {TABLE} (key, value) VALUES (?, ?)"),
            "select": session.prepare(f"SELECT * FROM {TABLE} WHERE key = ?"),
        })

    def get_runner(self, context, bundle: PreparedBundle) -> Runner:
        value_field = context.registry.get_generator(TABLE, "value")
        return KeyValueRunner(bundle, value_field, context.rng)
