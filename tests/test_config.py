"""Tests for configuration loading."""

import pytest

from league_history import config


@pytest.fixture(autouse=True)
def clean_config(monkeypatch):
    for var in ("SLEEPER_LEAGUE_IDS", "LEAGUE_IDS", "SLEEPER_LEAGUE_ID", "SLEEPER_SEASON"):
        monkeypatch.delenv(var, raising=False)
    monkeypatch.setattr(config, "_load_yaml_config", lambda: {})
    config.get_config.cache_clear()
    yield
    config.get_config.cache_clear()


def test_parse_league_ids_skips_malformed_entries():
    assert config.parse_league_ids("2023:abc, 2024:def,bogus,x:1") == {2023: "abc", 2024: "def"}


def test_env_league_ids_override_yaml(monkeypatch):
    monkeypatch.setattr(config, "_load_yaml_config", lambda: {"league_ids": {2023: "yaml-23", 2024: "yaml-24"}})
    monkeypatch.setenv("SLEEPER_LEAGUE_IDS", "2024:env-24")

    assert config.get_league_ids() == {2023: "yaml-23", 2024: "env-24"}


def test_single_league_id_needs_season(monkeypatch):
    monkeypatch.setenv("SLEEPER_LEAGUE_ID", "solo")
    assert config.get_league_ids() == {}

    config.get_config.cache_clear()
    monkeypatch.setenv("SLEEPER_SEASON", "2025")
    assert config.get_league_ids() == {2025: "solo"}


def test_placeholder_values_are_ignored(monkeypatch):
    monkeypatch.setenv("SLEEPER_LEAGUE_IDS", "your_league_ids_here")
    assert config.get_league_ids() == {}
    assert any("No Sleeper league ids" in issue for issue in config.validate_config())


def test_engine_settings_from_yaml_section(monkeypatch):
    monkeypatch.setattr(config, "_load_yaml_config", lambda: {
        "engine": {
            "max_retries": 5,
            "taxi_limits": {"max_slots": 4, "max_qb": 2},
            "cache_ttls": {"matchups": 30},
            "activation_window_days": ["Sat", "Sun"],
            "not_a_setting": 1,
        }
    })
    settings = config.get_engine_settings()

    assert settings.max_retries == 5
    assert settings.taxi_limits.max_slots == 4
    assert settings.cache_ttls["matchups"] == 30.0
    assert settings.cache_ttls["players"] == config.DEFAULT_CACHE_TTLS["players"]
    assert settings.activation_window_days == ("Sat", "Sun")


def test_engine_settings_overrides_win():
    settings = config.get_engine_settings({"request_timeout": 5})
    assert settings.request_timeout == 5
    assert settings.taxi_limits == config.TaxiLimits(max_slots=3, max_qb=1)


def test_default_cache_ttls_are_not_shared():
    a = config.EngineSettings()
    a.cache_ttls["matchups"] = 1
    assert config.EngineSettings().cache_ttls["matchups"] == config.DEFAULT_CACHE_TTLS["matchups"]
