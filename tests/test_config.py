"""Tests for venue configuration loading and validation."""

from pathlib import Path

import pytest

from cfdsim.core.config import VenueConfig
from cfdsim.core.utils import CONFIG_DIR, load_config, setup_logging


def test_defaults_match_reference_venue():
    config = VenueConfig()
    assert config.leverage == 20
    assert config.spread == 0.005
    assert config.starting_price == 150.0
    assert config.seed_history_length == 200
    assert config.extreme_move_probability == 0.02
    assert (config.extreme_multiplier_min, config.extreme_multiplier_max) == (3.0, 7.0)


def test_sample_yaml_round_trips_to_defaults():
    raw = load_config(CONFIG_DIR / "config.sample.yaml")
    assert VenueConfig.from_dict(raw) == VenueConfig()


def test_missing_file_falls_back_to_sample(tmp_path):
    raw = load_config(tmp_path / "missing.yaml")
    assert raw["trading"]["leverage"] == 20


def test_from_dict_overrides_and_defaults(tmp_path):
    path = tmp_path / "config.yaml"
    path.write_text("trading:\n  leverage: 50\nmarket:\n  random_seed: 3\n", encoding="utf-8")
    config = VenueConfig.from_dict(load_config(path))
    assert config.leverage == 50
    assert config.random_seed == 3
    assert config.spread == 0.005


@pytest.mark.parametrize(
    "overrides",
    [
        {"leverage": 0},
        {"leverage": 2.5},
        {"spread": 1.0},
        {"starting_price": -1.0},
        {"seed_history_length": 0},
        {"extreme_multiplier_min": 8.0},
        {"candle_interval_seconds": 0},
        {"initial_regime": "sideways"},
    ],
)
def test_invalid_values_raise(overrides):
    with pytest.raises(ValueError):
        VenueConfig(**overrides)


def test_non_mapping_yaml_rejected(tmp_path: Path):
    path = tmp_path / "config.yaml"
    path.write_text("- a\n- b\n", encoding="utf-8")
    with pytest.raises(ValueError):
        load_config(path)


def test_unknown_log_level_rejected():
    with pytest.raises(ValueError):
        setup_logging({"logging": {"level": "chatty"}})
