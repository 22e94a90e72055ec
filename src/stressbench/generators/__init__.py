# Field generator module initialization
from .field_generators import (
    FieldGenerator, RandomTextGenerator, BookGenerator, IntGenerator,
    FixedGenerator, FirstNameGenerator, LastNameGenerator,
)
from .registry import (
    Registry, FieldKey, create_generator, GENERATOR_FACTORIES,
    UnknownGeneratorError, MissingGeneratorError,
)

__all__ = [
    'FieldGenerator', 'RandomTextGenerator', 'BookGenerator', 'IntGenerator',
    'FixedGenerator', 'FirstNameGenerator', 'LastNameGenerator',
    'Registry', 'FieldKey', 'create_generator', 'GENERATOR_FACTORIES',
    'UnknownGeneratorError', 'MissingGeneratorError',
]
