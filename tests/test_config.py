"""
Tests for docmap.config module.

Covers:
- NamingStrategy conversions
- DiscriminatorStyle
- MapperOptions validation and copies
- MapperOptions.from_env() parsing
"""

import pytest

from docmap.config import DiscriminatorStyle, MapperOptions, NamingStrategy
from docmap.errors import ConfigurationError


class SensorReading:
    pass


class TestNamingStrategy:
    """Test stored name conversions."""

    @pytest.mark.parametrize(
        "strategy,expected",
        [
            (NamingStrategy.IDENTITY, "SensorReading"),
            (NamingStrategy.LOWER_CASE, "sensorreading"),
            (NamingStrategy.SNAKE_CASE, "sensor_reading"),
            (NamingStrategy.KEBAB_CASE, "sensor-reading"),
            (NamingStrategy.CAMEL_CASE, "sensorReading"),
        ],
    )
    def test_class_names(self, strategy, expected):
        assert strategy.apply("SensorReading") == expected

    def test_snake_case_splits_acronyms(self):
        """Acronyms end where the next word starts."""
        assert NamingStrategy.SNAKE_CASE.apply("HTTPRequestLog") == "http_request_log"

    def test_camel_case_from_snake_case(self):
        assert NamingStrategy.CAMEL_CASE.apply("start_temp") == "startTemp"


class TestDiscriminatorStyle:
    def test_simple_uses_class_name(self):
        assert DiscriminatorStyle.SIMPLE.apply(SensorReading) == "SensorReading"

    def test_qualified_includes_module(self):
        assert DiscriminatorStyle.QUALIFIED.apply(SensorReading) == f"{__name__}.SensorReading"


class TestMapperOptions:
    """Test option defaults and validation."""

    def test_defaults(self):
        options = MapperOptions()

        assert options.discriminator_key == "_t"
        assert options.discriminator is DiscriminatorStyle.SIMPLE
        assert options.store_nulls is False
        assert options.store_empties is False

    def test_is_frozen(self):
        options = MapperOptions()

        with pytest.raises(Exception):
            options.store_nulls = True

    def test_replace_returns_copy(self):
        options = MapperOptions()
        changed = options.replace(store_nulls=True)

        assert changed.store_nulls is True
        assert options.store_nulls is False

    @pytest.mark.parametrize("key", ["", "$type", "class.name"])
    def test_rejects_invalid_discriminator_key(self, key):
        with pytest.raises(ConfigurationError):
            MapperOptions(discriminator_key=key)


class TestFromEnv:
    """Test loading options from environment variables."""

    def test_empty_environment_gives_defaults(self):
        assert MapperOptions.from_env(environ={}) == MapperOptions()

    def test_parses_booleans_and_enums(self):
        environ = {
            "DOCMAP_STORE_NULLS": "true",
            "DOCMAP_MAP_SUB_PACKAGES": "0",
            "DOCMAP_COLLECTION_NAMING": "SNAKE_CASE",
            "DOCMAP_DISCRIMINATOR_KEY": "className",
        }

        options = MapperOptions.from_env(environ=environ)

        assert options.store_nulls is True
        assert options.map_sub_packages is False
        assert options.collection_naming is NamingStrategy.SNAKE_CASE
        assert options.discriminator_key == "className"

    def test_custom_prefix(self):
        options = MapperOptions.from_env(prefix="APP_", environ={"APP_STORE_EMPTIES": "yes"})

        assert options.store_empties is True

    def test_bad_boolean_raises(self):
        with pytest.raises(ConfigurationError, match="store_nulls"):
            MapperOptions.from_env(environ={"DOCMAP_STORE_NULLS": "maybe"})

    def test_bad_enum_raises(self):
        with pytest.raises(ConfigurationError, match="discriminator"):
            MapperOptions.from_env(environ={"DOCMAP_DISCRIMINATOR": "fancy"})
