"""
Tests for configuration loading.
"""

from pathlib import Path

import pytest
from pydantic import ValidationError

from slotengine.config import EngineConfig

EXAMPLE_CONFIG = Path(__file__).parent.parent / "config.example.yaml"


def test_defaults():
    config = EngineConfig()

    assert config.timezone == "Europe/Paris"
    assert config.slot_interval_minutes == 15
    assert config.horizon_days == 60
    assert config.batch_concurrency == 10
    assert config.data_file is None


def test_back_to_back_generator():
    generator = EngineConfig(slot_interval_minutes=None).build_slot_generator()

    assert generator.interval_minutes is None
    assert generator.timezone == "Europe/Paris"


@pytest.mark.parametrize(
    "field, value",
    [
        ("timezone", "Mars/Olympus"),
        ("slot_interval_minutes", 0),
        ("horizon_days", 0),
        ("batch_concurrency", -1),
    ],
)
def test_invalid_values(field, value):
    with pytest.raises(ValidationError):
        EngineConfig(**{field: value})


def test_load_example_config():
    config = EngineConfig.load_from_yaml(EXAMPLE_CONFIG)

    assert config.timezone == "Europe/Paris"
    assert config.data_file == EXAMPLE_CONFIG.parent / "data.example.json"
    assert config.data_file.exists()


def test_relative_data_file_follows_config(tmp_path):
    config_file = tmp_path / "config.yaml"
    config_file.write_text("timezone: Europe/Berlin\ndata_file: data/providers.json\n", encoding="utf-8")

    config = EngineConfig.load_from_yaml(config_file)

    assert config.timezone == "Europe/Berlin"
    assert config.data_file == tmp_path / "data" / "providers.json"


def test_missing_config_file(tmp_path):
    with pytest.raises(FileNotFoundError, match="Config file not found"):
        EngineConfig.load_from_yaml(tmp_path / "config.yaml")


def test_invalid_yaml(tmp_path):
    config_file = tmp_path / "config.yaml"
    config_file.write_text("timezone: [unclosed\n", encoding="utf-8")

    with pytest.raises(ValueError, match="Invalid YAML"):
        EngineConfig.load_from_yaml(config_file)


def test_root_must_be_a_mapping(tmp_path):
    config_file = tmp_path / "config.yaml"
    config_file.write_text("- timezone\n", encoding="utf-8")

    with pytest.raises(ValueError, match="mapping"):
        EngineConfig.load_from_yaml(config_file)
