"""
Tests for field generator resolution and generator spec parsing.
"""

import random

import pytest

from stressbench.config_loader import ConfigurationError
from stressbench.generators import (
    BookGenerator, FieldKey, FixedGenerator, IntGenerator, MissingGeneratorError,
    RandomTextGenerator, Registry, UnknownGeneratorError, create_generator,
)
from stressbench.generators.field_generators import BOOK_WORDS, FIRST_NAMES, LAST_NAMES


class TestRegistryPrecedence:

    def test_override_shadows_default(self):
        registry = Registry.create(
            defaults={"col": RandomTextGenerator(1, 5)},
            overrides={("table", "col"): "fixed(42)"},
        )
        generator = registry.get_generator("table", "col")
        assert generator == FixedGenerator(42)
        assert generator.generate() == 42

    def test_override_is_scoped_to_its_table(self):
        default = RandomTextGenerator(1, 5)
        registry = Registry.create(
            defaults={"col": default},
            overrides={("table", "col"): "fixed(42)"},
        )
        assert registry.get_generator("other", "col") is default

    def test_default_applies_to_any_table(self):
        default = IntGenerator(0, 10)
        registry = Registry()
        registry.set_default("col", default)
        assert registry.get_generator("a", "col") is default
        assert registry.get_generator("b", "col") is default

    def test_defaults_accept_field_keys(self):
        default = IntGenerator(0, 10)
        registry = Registry.create(defaults={FieldKey("t", "col"): default})
        assert registry.get_generator("t", "col") is default

    def test_missing_generator(self):
        registry = Registry()
        with pytest.raises(MissingGeneratorError):
            registry.get_generator("table", "nothing")

    def test_contains(self):
        registry = Registry.create(defaults={"a": IntGenerator()}, overrides={("t", "b"): "int(1,2)"})
        assert registry.contains("x", "a")
        assert registry.contains("t", "b")
        assert not registry.contains("x", "b")


class TestCreateGenerator:

    @pytest.mark.parametrize("spec, expected", [
        ("random(10,20)", RandomTextGenerator(10, 20)),
        ("book( 3 , 9 )", BookGenerator(3, 9)),
        ("int(0,100)", IntGenerator(0, 100)),
        ("fixed(42)", FixedGenerator(42)),
        ("fixed(hello)", FixedGenerator("hello")),
        ("fixed('quoted')", FixedGenerator("quoted")),
        ("RANDOM(1,2)", RandomTextGenerator(1, 2)),
    ])
    def test_parses_specs(self, spec, expected):
        assert create_generator(spec) == expected

    def test_no_argument_generators(self):
        assert create_generator("firstname()").generate() in FIRST_NAMES
        assert create_generator("lastname").generate() in LAST_NAMES

    def test_unknown_generator(self):
        with pytest.raises(UnknownGeneratorError):
            create_generator("gibberish(1,2)")

    def test_unknown_generator_is_a_configuration_error(self):
        with pytest.raises(ConfigurationError):
            Registry.create(overrides={("t", "f"): "nope()"})

    @pytest.mark.parametrize("spec", ["random(1)", "random(a,b)", "int(5,1)", "random(9,2)", "firstname(1)", "fixed()", "(1,2)", ""])
    def test_rejects_bad_specs(self, spec):
        with pytest.raises(ConfigurationError):
            create_generator(spec)


class TestFieldGenerators:

    def test_random_text_length_within_bounds(self):
        generator = RandomTextGenerator(5, 8)
        rng = random.Random(1)
        for _ in range(500):
            value = generator.generate(rng)
            assert 5 <= len(value) <= 8
            assert value.isalpha() and value.islower()

    def test_book_word_count_within_bounds(self):
        generator = BookGenerator(2, 4)
        rng = random.Random(2)
        for _ in range(500):
            words = generator.generate(rng).split()
            assert 2 <= len(words) <= 4
            assert all(word in BOOK_WORDS for word in words)

    def test_int_within_bounds(self):
        generator = IntGenerator(-3, 3)
        values = {generator.generate(random.Random(i)) for i in range(200)}
        assert values <= set(range(-3, 4))

    def test_text_and_int_conversions(self):
        generator = FixedGenerator(7)
        assert generator.get_text() == "7"
        assert generator.get_int() == 7

    def test_generators_are_immutable(self):
        generator = RandomTextGenerator(1, 2)
        with pytest.raises(AttributeError):
            generator.min = 5
