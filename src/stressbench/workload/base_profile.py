"""
Base workload profile abstract class
Base class for all stress profiles (key-value, time series, counters)
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Dict, List, Mapping

from ..database_utils import BoundStatement, PreparedStatement
from ..generators import FieldGenerator, FieldKey
from ..partition_keys import PartitionKey


class OperationKind(Enum):
    MUTATION = "mutations"
    SELECT = "selects"


@dataclass(frozen=True)
class Operation:
    """One bound, ready-to-execute statement and its read/write classification."""
    kind: OperationKind
    statement: BoundStatement

    @classmethod
    def mutation(cls, statement: BoundStatement) -> "Operation":
        return cls(OperationKind.MUTATION, statement)

    @classmethod
    def select(cls, statement: BoundStatement) -> "Operation":
        return cls(OperationKind.SELECT, statement)


@dataclass(frozen=True)
class PreparedBundle:
    """Immutable set of prepared statements returned by WorkloadProfile.prepare()."""
    statements: Mapping[str, PreparedStatement]

    def __getitem__(self, name: str) -> PreparedStatement:
        return self.statements[name]


class Runner(ABC):
    """
    Turns a partition key into an Operation. Built once per worker; must not
    write shared mutable state while binding statements.
    """

    @abstractmethod
    def get_next_mutation(self, partition_key: PartitionKey) -> Operation:
        pass

    @abstractmethod
    def get_next_select(self, partition_key: PartitionKey) -> Operation:
        pass


class WorkloadProfile(ABC):
    """Base abstract class for all workload profiles"""

    name = ""
    description = ""
    default_read_rate = 0.01

    @abstractmethod
    def schema(self) -> List[str]:
        """Idempotent DDL statements creating the profile's tables"""
        pass

    @abstractmethod
    def get_field_generators(self) -> Dict[FieldKey, FieldGenerator]:
        """Default generator for every field the profile fills"""
        pass

    @abstractmethod
    def prepare(self, session) -> PreparedBundle:
        """Prepare reusable statements. Called exactly once, before any runner is built"""
        pass

    @abstractmethod
    def get_runner(self, context, bundle: PreparedBundle) -> Runner:
        """Build the runner for one worker"""
        pass

    def required_fields(self) -> List[FieldKey]:
        return list(self.get_field_generators())

    def __repr__(self) -> str:
        return f"{self.__class__.__name__}(name={self.name!r})"
