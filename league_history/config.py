"""
Configuration loader for league ids and engine settings.

Supports loading from:
1. Built-in defaults
2. YAML config file (config/league.yaml)
3. Environment variables (.env.local or process environment)

Environment Variable Aliases (checked in order):
- League ids: SLEEPER_LEAGUE_IDS ("2023:991521604930772992,2024:111..."),
  then SLEEPER_LEAGUE_ID together with SLEEPER_SEASON

Usage:
    from league_history.config import get_league_ids, get_engine_settings

    league_ids = get_league_ids()       # {2023: "9915...", 2024: "1116..."}
    settings = get_engine_settings()    # EngineSettings(...)
"""

import logging
import os
from dataclasses import dataclass, field
from functools import lru_cache
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import yaml

logger = logging.getLogger(__name__)

# Project root directory
PROJECT_ROOT = Path(__file__).parent.parent
CONFIG_PATH = PROJECT_ROOT / "config" / "league.yaml"

DEFAULT_CACHE_TTLS = {
    "league": 30 * 60,
    "users": 30 * 60,
    "rosters": 10 * 60,
    "matchups": 5 * 60,
    "transactions": 5 * 60,
    "brackets": 30 * 60,
    "state": 10 * 60,
    "players": 12 * 60 * 60,
    "stats": 15 * 60,
}


def _load_env_file(env_file: Path = PROJECT_ROOT / ".env.local"):
    """Load environment variables from .env.local if it exists."""
    if env_file.exists():
        with open(env_file, "r") as f:
            for line in f:
                line = line.strip()
                if line and not line.startswith("#") and "=" in line:
                    key, _, value = line.partition("=")
                    key = key.strip()
                    value = value.strip()
                    # Remove quotes if present
                    if value.startswith('"') and value.endswith('"'):
                        value = value[1:-1]
                    elif value.startswith("'") and value.endswith("'"):
                        value = value[1:-1]
                    os.environ.setdefault(key, value)


def _load_yaml_config(config_file: Path = CONFIG_PATH) -> Dict[str, Any]:
    """Load configuration from the YAML file."""
    if config_file.exists():
        with open(config_file, "r") as f:
            return yaml.safe_load(f) or {}
    return {}


# Load env file on module import
_load_env_file()


ENV_VAR_ALIASES = {
    "league_ids": [
        "SLEEPER_LEAGUE_IDS",  # Primary: "2023:id,2024:id"
        "LEAGUE_IDS",          # Short alias
    ],
    "league_id": [
        "SLEEPER_LEAGUE_ID",
    ],
}


def _get_env_with_aliases(alias_key):
    """
    Get an environment variable value, checking multiple aliases.
    Returns (value, var_name) tuple or (None, None) if not found.
    """
    aliases = ENV_VAR_ALIASES.get(alias_key, [])
    for var_name in aliases:
        value = os.getenv(var_name)
        if value and not _is_placeholder(value):
            return value, var_name
    return None, None


def _is_placeholder(value):
    """Check if a value is a placeholder that should be ignored."""
    if not value:
        return True
    value_lower = value.lower()
    return (
        value_lower.startswith("your_") or
        value_lower.startswith("your-") or
        "your_league_id" in value_lower or
        value == "changeme" or
        value == "placeholder"
    )


def parse_league_ids(raw: str) -> Dict[int, str]:
    """Parse "2023:abc,2024:def" into {2023: "abc", 2024: "def"}."""
    out: Dict[int, str] = {}
    for chunk in raw.split(","):
        chunk = chunk.strip()
        if not chunk or ":" not in chunk:
            continue
        season, _, league_id = chunk.partition(":")
        try:
            out[int(season.strip())] = league_id.strip()
        except ValueError:
            logger.warning(f"Ignoring malformed league id entry: {chunk!r}")
    return out


@dataclass
class TaxiLimits:
    """Restricted-slot quotas for the practice squad."""
    max_slots: int = 3
    max_qb: int = 1


@dataclass
class EngineSettings:
    """Tunables for the gateway, the fan-out, and the eligibility rules."""
    request_timeout: float = 30.0
    max_retries: int = 3
    backoff_base: float = 0.5
    backoff_cap: float = 8.0
    rate_limit_per_second: float = 10.0
    cache_ttls: Dict[str, float] = field(default_factory=lambda: dict(DEFAULT_CACHE_TTLS))
    empty_grace: float = 600.0
    max_workers: int = 8
    weeks_per_season: int = 18
    taxi_limits: TaxiLimits = field(default_factory=TaxiLimits)
    activation_window_days: Tuple[str, ...] = ("Thu", "Fri", "Sat", "Sun", "Mon")
    activation_timezone: str = "America/New_York"
    team_names: Dict[str, str] = field(default_factory=dict)
    user_agent: str = "league-history/1.0"


@lru_cache(maxsize=1)
def get_config():
    """
    Get the full configuration dictionary.
    Merges YAML config with environment variables (env vars take precedence).
    """
    config = _load_yaml_config()

    league_ids_raw, _ = _get_env_with_aliases("league_ids")
    single_id, _ = _get_env_with_aliases("league_id")

    league_ids: Dict[int, str] = {}
    for season, league_id in (config.get("league_ids") or {}).items():
        league_ids[int(season)] = str(league_id)
    if league_ids_raw:
        league_ids.update(parse_league_ids(league_ids_raw))
    elif single_id:
        season = os.getenv("SLEEPER_SEASON")
        if season and season.isdigit():
            league_ids[int(season)] = single_id
        else:
            logger.warning("SLEEPER_LEAGUE_ID is set without SLEEPER_SEASON; ignoring it")

    config["league_ids"] = league_ids
    return config


def get_league_ids() -> Dict[int, str]:
    """Season -> Sleeper league id, sorted chronologically."""
    ids = get_config().get("league_ids", {})
    return {season: ids[season] for season in sorted(ids)}


def get_engine_settings(overrides: Optional[Dict[str, Any]] = None) -> EngineSettings:
    """Build EngineSettings from the `engine` section of the config."""
    section = dict(get_config().get("engine") or {})
    if overrides:
        section.update(overrides)

    settings = EngineSettings()
    for key, value in section.items():
        if key == "taxi_limits" and isinstance(value, dict):
            settings.taxi_limits = TaxiLimits(**value)
        elif key == "cache_ttls" and isinstance(value, dict):
            settings.cache_ttls.update({k: float(v) for k, v in value.items()})
        elif key == "activation_window_days":
            settings.activation_window_days = tuple(value)
        elif key == "team_names" and isinstance(value, dict):
            settings.team_names = {str(k): str(v) for k, v in value.items()}
        elif hasattr(settings, key):
            setattr(settings, key, value)
        else:
            logger.warning(f"Unknown engine setting ignored: {key}")
    return settings


def validate_config() -> List[str]:
    """
    Validate that required settings are configured.
    Returns a list of issues (empty if all is well).
    """
    issues = []

    if not get_league_ids():
        issues.append(
            "No Sleeper league ids configured. Set one of: "
            + ", ".join(ENV_VAR_ALIASES["league_ids"])
            + f", or add league_ids to {CONFIG_PATH}"
        )

    settings = get_engine_settings()
    if settings.max_retries < 0:
        issues.append("engine.max_retries must be >= 0")
    if settings.request_timeout <= 0:
        issues.append("engine.request_timeout must be > 0")

    return issues


if __name__ == "__main__":
    print("=== Configuration Test ===\n")

    print("League ids:")
    for season, league_id in get_league_ids().items():
        print(f"  {season}: {league_id}")
    print()

    issues = validate_config()
    if issues:
        print("Configuration issues:")
        for issue in issues:
            print(f"  - {issue}")
    else:
        print("Configuration OK.")
