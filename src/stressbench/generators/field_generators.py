"""
Field generators: value-producing strategies for one schema column.

Generators are built once at startup and shared read-only by all workers;
randomness comes from the random module's thread-safe global functions or
from a caller-supplied rng, never from per-instance mutable state.
"""

import random
import string
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional

# Public-domain opening of "Moby Dick", used by BookGenerator
_BOOK_TEXT = (
    "Call me Ishmael. Some years ago never mind how long precisely having little or no money "
    "in my purse and nothing particular to interest me on shore I thought I would sail about a "
    "little and see the watery part of the world. It is a way I have of driving off the spleen "
    "and regulating the circulation. Whenever I find myself growing grim about the mouth whenever "
    "it is a damp drizzly November in my soul whenever I find myself involuntarily pausing before "
    "coffin warehouses and bringing up the rear of every funeral I meet and especially whenever my "
    "hypos get such an upper hand of me that it requires a strong moral principle to prevent me "
    "from deliberately stepping into the street and methodically knocking peoples hats off then I "
    "account it high time to get to sea as soon as I can."
)
BOOK_WORDS = _BOOK_TEXT.split()

FIRST_NAMES = [
    "James", "Mary", "Robert", "Patricia", "John", "Jennifer", "Michael", "Linda", "David",
    "Elizabeth", "William", "Barbara", "Richard", "Susan", "Joseph", "Jessica", "Thomas", "Sarah",
    "Charles", "Karen", "Wei", "Aiko", "Mateo", "Amara", "Priya", "Olga", "Kwame", "Sofia",
]
LAST_NAMES = [
    "Smith", "Johnson", "Williams", "Brown", "Jones", "Garcia", "Miller", "Davis", "Rodriguez",
    "Martinez", "Hernandez", "Lopez", "Gonzalez", "Wilson", "Anderson", "Thomas", "Taylor",
    "Moore", "Jackson", "Martin", "Nguyen", "Kim", "Singh", "Okafor", "Ivanova", "Rossi",
]


class FieldGenerator(ABC):
    """Produces a value for one field."""

    name = ""
    description = ""

    @abstractmethod
    def generate(self, rng: Optional[random.Random] = None) -> Any:
        pass

    def get_text(self, rng: Optional[random.Random] = None) -> str:
        return str(self.generate(rng))

    def get_int(self, rng: Optional[random.Random] = None) -> int:
        return int(self.generate(rng))


def _source(rng):
    return rng if rng is not None else random


@dataclass(frozen=True)
class RandomTextGenerator(FieldGenerator):
    """Random lowercase text with a length between min and max."""
    min: int = 100
    max: int = 200

    name = "random"
    description = "Random lowercase text, random(min,max) characters long."

    def __post_init__(self):
        _check_bounds(self.min, self.max)

    def generate(self, rng=None) -> str:
        r = _source(rng)
        length = r.randint(self.min, self.max)
        return "".join(r.choices(string.ascii_lowercase, k=length))


@dataclass(frozen=True)
class BookGenerator(FieldGenerator):
    """A run of consecutive words from a bundled passage."""
    min: int = 20
    max: int = 50

    name = "book"
    description = "Consecutive words from a book passage, book(min,max) words long."

    def __post_init__(self):
        _check_bounds(self.min, self.max)

    def generate(self, rng=None) -> str:
        r = _source(rng)
        count = r.randint(self.min, self.max)
        start = r.randrange(len(BOOK_WORDS))
        return " ".join(BOOK_WORDS[(start + i) % len(BOOK_WORDS)] for i in range(count))


@dataclass(frozen=True)
class IntGenerator(FieldGenerator):
    min: int = 0
    max: int = 1_000_000

    name = "int"
    description = "Uniform integer, int(min,max) inclusive."

    def __post_init__(self):
        if self.min > self.max:
            raise ValueError(f"min ({self.min}) must not exceed max ({self.max})")

    def generate(self, rng=None) -> int:
        return _source(rng).randint(self.min, self.max)


@dataclass(frozen=True)
class FixedGenerator(FieldGenerator):
    value: Any = ""

    name = "fixed"
    description = "Always the same value, fixed(value)."

    def generate(self, rng=None) -> Any:
        return self.value


@dataclass(frozen=True)
class FirstNameGenerator(FieldGenerator):
    name = "firstname"
    description = "A first name from a bundled list."

    def generate(self, rng=None) -> str:
        return _source(rng).choice(FIRST_NAMES)


@dataclass(frozen=True)
class LastNameGenerator(FieldGenerator):
    name = "lastname"
    description = "A last name from a bundled list."

    def generate(self, rng=None) -> str:
        return _source(rng).choice(LAST_NAMES)


def _check_bounds(low: int, high: int):
    if low < 0:
        raise ValueError(f"min must not be negative, got {low}")
    if low > high:
        raise ValueError(f"min ({low}) must not exceed max ({high})")
