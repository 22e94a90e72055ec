"""
Field generator registry

Resolves a (table, field) pair to a FieldGenerator. Profile defaults are
keyed by field name alone, user overrides by (table, field); an override
always shadows the default.
"""

import logging
import re
from dataclasses import dataclass
from typing import Callable, Dict, List, Tuple

from ..config_loader import ConfigurationError
from .field_generators import (
    FieldGenerator, RandomTextGenerator, BookGenerator, IntGenerator,
    FixedGenerator, FirstNameGenerator, LastNameGenerator,
)


class UnknownGeneratorError(ConfigurationError):
    """A generator spec names a generator that does not exist."""
    pass


class MissingGeneratorError(Exception):
    """No override or default generator is registered for a field."""
    pass


@dataclass(frozen=True)
class FieldKey:
    table: str
    field: str

    def __str__(self):
        return f"{self.table}.{self.field}"


_SPEC_PATTERN = re.compile(r"^\s*([A-Za-z_][A-Za-z0-9_]*)\s*(?:\((.*)\))?\s*$", re.DOTALL)


def _int_args(name: str, arity: int) -> Callable[[List[str]], Tuple[int, ...]]:
    def convert(args: List[str]) -> Tuple[int, ...]:
        if len(args) != arity:
            raise ConfigurationError(f"Generator '{name}' takes {arity} argument(s), got {len(args)}")
        try:
            return tuple(int(a) for a in args)
        except ValueError:
            raise ConfigurationError(f"Generator '{name}' expects integer arguments, got {args}")
    return convert


def _fixed_value(args: List[str]) -> Tuple:
    if len(args) != 1:
        raise ConfigurationError(f"Generator 'fixed' takes 1 argument, got {len(args)}")
    raw = args[0].strip("'\"")
    try:
        return (int(raw),)
    except ValueError:
        return (raw,)


def _no_args(name: str):
    def convert(args: List[str]) -> Tuple:
        if args:
            raise ConfigurationError(f"Generator '{name}' takes no arguments, got {len(args)}")
        return ()
    return convert


GENERATOR_FACTORIES = {
    "random": (RandomTextGenerator, _int_args("random", 2)),
    "book": (BookGenerator, _int_args("book", 2)),
    "int": (IntGenerator, _int_args("int", 2)),
    "fixed": (FixedGenerator, _fixed_value),
    "firstname": (FirstNameGenerator, _no_args("firstname")),
    "lastname": (LastNameGenerator, _no_args("lastname")),
}


def create_generator(spec: str) -> FieldGenerator:
    """
    Build a generator from a spec string such as 'random(100,200)' or 'fixed(42)'.
    """
    match = _SPEC_PATTERN.match(spec or "")
    if not match:
        raise ConfigurationError(f"Malformed generator spec '{spec}', expected name(arg, ...)")
    name, raw_args = match.group(1).lower(), match.group(2)
    if name not in GENERATOR_FACTORIES:
        raise UnknownGeneratorError(f"Unknown generator '{name}' in spec '{spec}'. Known generators: {', '.join(sorted(GENERATOR_FACTORIES))}")

    args = [a.strip() for a in raw_args.split(",")] if raw_args and raw_args.strip() else []
    generator_cls, convert = GENERATOR_FACTORIES[name]
    try:
        return generator_cls(*convert(args))
    except ValueError as e:
        raise ConfigurationError(f"Invalid arguments for generator spec '{spec}': {e}")


class Registry:
    """
    Populated once before any worker starts; read-only afterwards, so lookups
    from worker threads need no locking.
    """

    def __init__(self):
        self.defaults: Dict[str, FieldGenerator] = {}
        self.overrides: Dict[FieldKey, FieldGenerator] = {}
        self.logger = logging.getLogger("FieldRegistry")

    @classmethod
    def create(cls, defaults=None, overrides=None) -> "Registry":
        """
        Args:
            defaults: Mapping field name (or FieldKey) -> FieldGenerator
            overrides: Mapping (table, field) -> generator spec string
        """
        registry = cls()
        for key, generator in (defaults or {}).items():
            registry.set_default(key.field if isinstance(key, FieldKey) else key, generator)
        for (table, field_name), spec in (overrides or {}).items():
            registry.set_override(table, field_name, create_generator(spec))
        return registry

    def set_default(self, field_name: str, generator: FieldGenerator):
        self.defaults[field_name] = generator
        self.logger.debug(f"Default generator for '{field_name}': {generator}")

    def set_override(self, table: str, field_name: str, generator: FieldGenerator):
        key = FieldKey(table, field_name)
        self.overrides[key] = generator
        self.logger.info(f"Override generator for '{key}': {generator}")

    def get_generator(self, table: str, field_name: str) -> FieldGenerator:
        override = self.overrides.get(FieldKey(table, field_name))
        if override is not None:
            return override
        default = self.defaults.get(field_name)
        if default is not None:
            return default
        raise MissingGeneratorError(f"No generator registered for field '{table}.{field_name}'")

    def contains(self, table: str, field_name: str) -> bool:
        return FieldKey(table, field_name) in self.overrides or field_name in self.defaults
