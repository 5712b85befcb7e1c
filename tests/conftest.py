"""
Pytest configuration for league history tests.

Provides a fake clock, a scripted fake HTTP session, and an in-memory
gateway so no test touches the network.
"""

from __future__ import annotations

import threading
from typing import Any, Dict, List, Optional

import pytest
import requests

from league_history.config import EngineSettings
from league_history.errors import DataAbsentError


class FakeClock:
    """Monotonic clock advanced by hand."""

    def __init__(self, start: float = 1000.0):
        self.now = start

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


class FakeResponse:
    def __init__(self, status_code: int = 200, payload: Any = None, headers: Optional[Dict[str, str]] = None):
        self.status_code = status_code
        self._payload = payload
        self.headers = headers or {}

    def json(self):
        if isinstance(self._payload, Exception):
            raise self._payload
        return self._payload

    def raise_for_status(self):
        if self.status_code >= 400:
            raise requests.HTTPError(f"HTTP {self.status_code}")


class FakeSession:
    """
    Returns scripted responses per URL suffix, in order.

    A scripted item may be a FakeResponse or an exception instance to raise.
    The last item for a URL repeats once the script runs out.
    """

    def __init__(self, script: Optional[Dict[str, List[Any]]] = None):
        self.script = script or {}
        self.headers: Dict[str, str] = {}
        self.calls: List[str] = []
        self.on_call = None

    def get(self, url: str, timeout: float = None):
        self.calls.append(url)
        if self.on_call is not None:
            self.on_call(url)
        for suffix, items in self.script.items():
            if url.endswith(suffix):
                item = items.pop(0) if len(items) > 1 else items[0]
                if isinstance(item, Exception):
                    raise item
                return item
        return FakeResponse(404)


class FakeGateway:
    """
    In-memory stand-in for SleeperClient.

    ``failures`` maps (method, season, week) to an exception raised instead
    of returning data.
    """

    def __init__(
        self,
        seasons: Dict[int, Dict[str, Any]],
        players: Optional[Dict[str, Dict[str, Any]]] = None,
        nfl_state: Optional[Dict[str, Any]] = None,
        settings: Optional[EngineSettings] = None,
    ):
        self.seasons = seasons
        self.league_ids = {season: f"league-{season}" for season in seasons}
        self.settings = settings or EngineSettings(max_workers=4, weeks_per_season=4)
        self.players_meta = players or {}
        self.nfl_state = nfl_state or {}
        self.failures: Dict[tuple, Exception] = {}
        self.calls: List[tuple] = []
        self._lock = threading.Lock()

    def _check(self, key: tuple):
        with self._lock:
            self.calls.append(key)
        if key in self.failures:
            raise self.failures[key]
        if len(key) > 1 and key[1] not in self.seasons:
            raise DataAbsentError(f"No league for {key[1]}")

    def get_season_rosters(self, season):
        self._check(("rosters", season))
        return self.seasons[season].get("rosters", [])

    def get_season_users(self, season):
        self._check(("users", season))
        return self.seasons[season].get("users", [])

    def get_league_settings(self, season):
        self._check(("league", season))
        return {
            "season": season,
            "playoff_start_week": self.seasons[season].get("playoff_start_week", 15),
            "scoring_rules": self.seasons[season].get("scoring_rules", {}),
        }

    def get_weekly_results(self, season, week):
        self._check(("matchups", season, week))
        return self.seasons[season].get("matchups", {}).get(week, [])

    def get_transactions(self, season, week):
        self._check(("transactions", season, week))
        return self.seasons[season].get("transactions", {}).get(week, [])

    def get_brackets(self, season):
        self._check(("brackets", season))
        return self.seasons[season].get("brackets", {"championship": [], "consolation": []})

    def get_nfl_state(self):
        self._check(("state",))
        return self.nfl_state

    def get_players(self):
        self._check(("players",))
        return self.players_meta

    def get_player_weekly_stats(self, season, week):
        self._check(("stats", season, week))
        return self.seasons[season].get("stats", {}).get(week, {})


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def fast_settings():
    """Settings with near-zero backoff and no rate limiting."""
    return EngineSettings(
        max_retries=2,
        backoff_base=0.001,
        backoff_cap=0.002,
        rate_limit_per_second=0,
    )
