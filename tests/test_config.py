import pytest
from pydantic import ValidationError

from simcore.config import MAX_TRIBES_COUNT, SimulationConfig, load_config


def test_defaults_mirror_design_variables():
    config = SimulationConfig()
    assert config.map_width == 200
    assert config.map_height == 150
    assert config.max_tribes == MAX_TRIBES_COUNT
    assert config.tick_rate == 1.0
    assert config.event_ttl == 300.0
    assert config.autosave_interval == 100
    assert config.enforce_research_cost is True
    assert config.seed is None


def test_config_is_frozen_and_strict():
    config = SimulationConfig()
    with pytest.raises(ValidationError):
        config.map_width = 10
    with pytest.raises(ValidationError):
        SimulationConfig(bogus=1)
    with pytest.raises(ValidationError):
        SimulationConfig(event_chance=1.5)


def test_load_config(tmp_path):
    path = tmp_path / "sim.toml"
    path.write_text("[simulation]\nseed = 12.5\nmax_tribes = 20\nmap_width = 64\n", encoding="utf-8")
    config = load_config(path)
    assert config.seed == 12.5
    assert config.max_tribes == 20
    assert config.map_width == 64
    assert config.map_height == 150


def test_load_config_missing(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "absent.toml")
