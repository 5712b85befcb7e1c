"""
Sleeper API Client

Read-only gateway to the Sleeper fantasy API, one league id per season:
- League settings (playoff start week, scoring rules)
- Rosters and users (franchise identity)
- Weekly matchups (scores, starters, per-player points)
- Transactions (adds/drops per leg)
- Winners/losers playoff brackets
- NFL state, player metadata, weekly raw stats

Documentation: https://docs.sleeper.com

Usage:
    from league_history.lib.sleeper_client import SleeperClient

    client = SleeperClient({2024: "1116504942988107776"})
    rows = client.get_weekly_results(2024, 3)
    brackets = client.get_brackets(2024)
"""

from __future__ import annotations

import logging
import random
import threading
import time
from typing import Any, Dict, Hashable, List, Optional

import requests

from league_history.config import EngineSettings
from league_history.errors import DataAbsentError, FetchCancelled, TransientFetchError
from league_history.lib.cache import TTLCache

logger = logging.getLogger(__name__)

RETRYABLE_STATUS = {408, 429, 500, 502, 503, 504}


class SleeperClient:
    """
    Client for the Sleeper public API (v1).

    Handles timeouts, retries with jittered exponential backoff, rate
    limiting, cooperative cancellation and read-through caching, and maps
    raw payloads to the boundary shapes the engine consumes.
    """

    BASE_URL = "https://api.sleeper.app/v1"

    def __init__(
        self,
        league_ids: Dict[int, str],
        settings: Optional[EngineSettings] = None,
        cache: Optional[TTLCache] = None,
        session: Optional[requests.Session] = None,
        cancel_event: Optional[threading.Event] = None,
    ):
        """
        Initialize the Sleeper client.

        Args:
            league_ids: Season -> Sleeper league id
            settings: Engine settings (timeouts, retries, TTLs)
            cache: Injected cache; a private TTLCache is created when omitted
            session: requests.Session to reuse (tests pass a fake)
            cancel_event: Set it to cancel in-flight and future requests
        """
        self.league_ids = dict(league_ids)
        self.settings = settings or EngineSettings()
        self.cache = cache if cache is not None else TTLCache(empty_grace=self.settings.empty_grace)
        self.cancel_event = cancel_event if cancel_event is not None else threading.Event()

        self.session = session if session is not None else requests.Session()
        self.session.headers.update({"User-Agent": self.settings.user_agent})

        self._rate_lock = threading.Lock()
        self._last_request_time = 0.0

    # -------------------------------------------------------------------------
    # HTTP core
    # -------------------------------------------------------------------------

    def _league_id(self, season: int) -> str:
        league_id = self.league_ids.get(int(season))
        if not league_id:
            raise DataAbsentError(f"No league configured for season {season}")
        return league_id

    def _rate_limit(self):
        """Enforce a minimum spacing between API calls across threads."""
        if self.settings.rate_limit_per_second <= 0:
            return
        window = 1.0 / self.settings.rate_limit_per_second
        with self._rate_lock:
            elapsed = time.monotonic() - self._last_request_time
            if elapsed < window:
                sleep_time = window - elapsed
                logger.debug(f"Rate limiting: sleeping {sleep_time:.2f}s")
                time.sleep(sleep_time)
            self._last_request_time = time.monotonic()

    def _backoff_delay(self, attempt: int, retry_after: Optional[float] = None) -> float:
        """Exponential backoff with jitter, capped; Retry-After wins when larger."""
        base = min(self.settings.backoff_cap, self.settings.backoff_base * (2 ** attempt))
        delay = base * random.uniform(0.5, 1.0)
        if retry_after is not None:
            delay = max(delay, min(retry_after, self.settings.backoff_cap))
        return delay

    def _check_cancelled(self, endpoint: str):
        if self.cancel_event.is_set():
            raise FetchCancelled(f"Request cancelled: {endpoint}")

    def _make_request(self, endpoint: str) -> Any:
        """
        Make an API request with retries, backoff and cancellation.

        Returns:
            Decoded JSON (a null body becomes None)

        Raises:
            DataAbsentError: 404
            FetchCancelled: cancel signal set before or during the request
            TransientFetchError: network error, undecodable body or retryable
                status that outlasts the retry budget
            requests.HTTPError: non-retryable client error
        """
        url = f"{self.BASE_URL}/{endpoint}"
        attempts = self.settings.max_retries + 1
        last_status: Optional[int] = None
        last_error: Optional[str] = None

        for attempt in range(attempts):
            self._check_cancelled(endpoint)
            self._rate_limit()

            retry_after: Optional[float] = None
            try:
                logger.debug(f"API Request: {endpoint} (attempt {attempt + 1})")
                response = self.session.get(url, timeout=self.settings.request_timeout)
            except requests.exceptions.HTTPError:
                raise
            except requests.exceptions.RequestException as e:
                # Timeouts, resets, truncated or undecodable bodies
                last_status, last_error = None, f"{type(e).__name__}: {e}"
            else:
                status = response.status_code
                if status == 404:
                    raise DataAbsentError(f"Not found: {endpoint}")
                if status not in RETRYABLE_STATUS:
                    response.raise_for_status()
                    try:
                        return response.json()
                    except ValueError as e:
                        last_status, last_error = status, f"invalid JSON body: {e}"
                else:
                    last_status, last_error = status, f"HTTP {status}"
                    header = response.headers.get("Retry-After") if response.headers else None
                    if header and str(header).isdigit():
                        retry_after = float(header)

            if attempt < attempts - 1:
                delay = self._backoff_delay(attempt, retry_after)
                logger.warning(f"Request failed ({last_error}), retrying {endpoint} in {delay:.2f}s")
                # Waiting on the event lets cancellation interrupt the sleep
                if self.cancel_event.wait(delay):
                    raise FetchCancelled(f"Request cancelled during backoff: {endpoint}")

        raise TransientFetchError(
            f"Giving up on {endpoint} after {attempts} attempts: {last_error}",
            resource=endpoint,
            status_code=last_status,
            attempts=attempts,
        )

    def _cached(self, resource: str, key: Hashable, endpoint: str) -> Any:
        """Read-through cache keyed per resource type with that type's TTL."""
        cache_key = (resource, key)
        cached = self.cache.get(cache_key)
        if cached is not None:
            logger.debug(f"Cache hit: {cache_key}")
            return cached

        data = self._make_request(endpoint)
        ttl = self.settings.cache_ttls.get(resource)
        return self.cache.set(cache_key, data, ttl=ttl)

    # =========================================================================
    # LEAGUE ENDPOINTS
    # =========================================================================

    def get_league_settings(self, season: int) -> Dict[str, Any]:
        """
        Get the playoff start week and scoring rules for a season.

        Returns:
            {"season", "playoff_start_week", "scoring_rules", "roster_positions",
             "taxi_slots"}
        """
        league_id = self._league_id(season)
        league = self._cached("league", league_id, f"league/{league_id}") or {}
        settings = league.get("settings") or {}
        start = settings.get("playoff_week_start") or settings.get("playoff_start_week") or 15
        return {
            "season": int(season),
            "playoff_start_week": int(start),
            "scoring_rules": {
                str(k): float(v)
                for k, v in (league.get("scoring_settings") or {}).items()
                if isinstance(v, (int, float))
            },
            "roster_positions": list(league.get("roster_positions") or []),
            "taxi_slots": settings.get("taxi_slots"),
        }

    def get_season_users(self, season: int) -> List[Dict[str, Any]]:
        """Users of a season's league: user_id, display_name, team_name."""
        league_id = self._league_id(season)
        users = self._cached("users", league_id, f"league/{league_id}/users") or []
        return [
            {
                "user_id": u.get("user_id"),
                "display_name": u.get("display_name") or u.get("username"),
                "team_name": (u.get("metadata") or {}).get("team_name"),
            }
            for u in users
        ]

    def get_season_rosters(self, season: int) -> List[Dict[str, Any]]:
        """
        Get all rosters for a season.

        Returns:
            [{"franchise_id", "owner_id", "team_name", "player_ids",
              "slot_assignments": {"starters", "reserve", "taxi"}}]
        """
        league_id = self._league_id(season)
        rosters = self._cached("rosters", league_id, f"league/{league_id}/rosters") or []
        out = []
        for r in rosters:
            meta = r.get("metadata") or {}
            out.append({
                "franchise_id": r.get("roster_id"),
                "owner_id": r.get("owner_id"),
                "team_name": meta.get("team_name") or meta.get("nickname"),
                "player_ids": [p for p in (r.get("players") or []) if p],
                "slot_assignments": {
                    "starters": [p for p in (r.get("starters") or []) if p and p != "0"],
                    "reserve": [p for p in (r.get("reserve") or []) if p],
                    "taxi": [p for p in (r.get("taxi") or []) if p],
                },
            })
        return out

    def get_weekly_results(self, season: int, week: int) -> List[Dict[str, Any]]:
        """
        Get one week's matchup rows.

        Returns:
            [{"franchise_id", "matchup_id", "points", "players_points",
              "starters", "players"}]
        """
        league_id = self._league_id(season)
        rows = self._cached("matchups", (league_id, week), f"league/{league_id}/matchups/{week}") or []
        out = []
        for row in rows:
            if "roster_id" not in row:
                continue
            points = row.get("custom_points")
            if points is None:
                points = row.get("points")
            out.append({
                "franchise_id": row.get("roster_id"),
                "matchup_id": row.get("matchup_id"),
                "points": float(points or 0.0),
                "players_points": {
                    str(pid): float(pts or 0.0)
                    for pid, pts in (row.get("players_points") or {}).items()
                },
                "starters": [p for p in (row.get("starters") or []) if p and p != "0"],
                "players": [p for p in (row.get("players") or []) if p],
            })
        return out

    def get_transactions(self, season: int, week: int) -> List[Dict[str, Any]]:
        """
        Get one leg's transactions.

        Returns:
            [{"transaction_id", "type", "status", "created", "adds", "drops", "leg"}]
        """
        league_id = self._league_id(season)
        rows = self._cached(
            "transactions", (league_id, week), f"league/{league_id}/transactions/{week}"
        ) or []
        return [
            {
                "transaction_id": t.get("transaction_id"),
                "type": t.get("type"),
                "status": t.get("status"),
                "created": int(t.get("created") or 0),
                "adds": {str(k): v for k, v in (t.get("adds") or {}).items()},
                "drops": {str(k): v for k, v in (t.get("drops") or {}).items()},
                "leg": int(t.get("leg") or week),
            }
            for t in rows
        ]

    def _bracket(self, league_id: str, side: str) -> List[Dict[str, Any]]:
        try:
            return self._cached("brackets", (league_id, side), f"league/{league_id}/{side}") or []
        except DataAbsentError:
            # Seasons before the playoffs are seeded have no bracket yet
            return []
        except (TransientFetchError, requests.HTTPError) as e:
            logger.warning(f"Bracket {side} unavailable for league {league_id}: {e}")
            return []

    def get_brackets(self, season: int) -> Dict[str, List[Dict[str, Any]]]:
        """Championship (winners) and consolation (losers) bracket pairs."""
        league_id = self._league_id(season)
        return {
            "championship": self._bracket(league_id, "winners_bracket"),
            "consolation": self._bracket(league_id, "losers_bracket"),
        }

    # =========================================================================
    # NFL ENDPOINTS
    # =========================================================================

    def get_nfl_state(self) -> Dict[str, Any]:
        """Current NFL season/week as Sleeper reports it."""
        return self._cached("state", "nfl", "state/nfl") or {}

    def get_players(self) -> Dict[str, Dict[str, Any]]:
        """All NFL player metadata keyed by Sleeper player id (large download)."""
        return self._cached("players", "nfl", "players/nfl") or {}

    def get_player_weekly_stats(self, season: int, week: int) -> Dict[str, Dict[str, float]]:
        """Raw weekly stat lines keyed by player id."""
        data = self._cached("stats", (season, week), f"stats/nfl/regular/{season}/{week}") or {}
        if isinstance(data, list):
            # Newer responses are a list of {"player_id", "stats": {...}}
            return {
                str(row.get("player_id")): dict(row.get("stats") or {})
                for row in data
                if row.get("player_id")
            }
        return {str(pid): dict(stats or {}) for pid, stats in data.items()}
