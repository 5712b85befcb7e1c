"""
Event Normalizer

Converts raw gateway payloads into the canonical per-season stream:
- Transactions -> time-ordered Acquisition/Release events
- Weekly rows -> GamePlayed pairings plus a WeeklyLineup per franchise
- Bracket games -> flattened championship/consolation participant sets

Only completed roster-moving transactions count. Unplayed (0-0) pairings
and byes never become games, but their lineups are still emitted so the
eligibility machine can see pending starts.

Usage:
    events = normalize_transactions(2024, raw_txns, directory)
    games, lineups = pair_weekly_results(2024, 3, rows, directory, snapshot)
    brackets = flatten_brackets(2024, client.get_brackets(2024), directory)
"""

from __future__ import annotations

import json
import logging
from collections import defaultdict
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

from league_history.league.franchises import FranchiseDirectory
from league_history.league.models import (
    ROSTER_TRANSACTION_TYPES,
    Acquisition,
    BracketSets,
    GamePlayed,
    Release,
    RosterEvent,
    WeeklyLineup,
    event_order_key,
)

logger = logging.getLogger(__name__)

# Per-roster lineup snapshot: {"starters": [...], "bench": [...], "reserve": [...]}
SnapshotTeams = Dict[int, Dict[str, List[str]]]


# =============================================================================
# TRANSACTIONS
# =============================================================================

def normalize_transactions(
    season: int,
    transactions: Iterable[Dict[str, Any]],
    directory: FranchiseDirectory,
) -> List[RosterEvent]:
    """Completed roster moves as events sorted by (season, ts, gain-before-loss)."""
    events: List[RosterEvent] = []
    skipped = 0

    for txn in transactions:
        if txn.get("status") != "complete" or txn.get("type") not in ROSTER_TRANSACTION_TYPES:
            skipped += 1
            continue
        ts = int(txn.get("created") or 0)
        week = int(txn.get("leg") or 0)
        via = str(txn["type"])

        for player, roster_id in (txn.get("adds") or {}).items():
            owner = directory.owner_for(season, roster_id)
            if owner is None:
                logger.warning(f"Season {season}: add of {player} to unknown roster {roster_id}")
                continue
            events.append(Acquisition(str(player), owner, int(roster_id), season, week, ts, via))

        for player, roster_id in (txn.get("drops") or {}).items():
            owner = directory.owner_for(season, roster_id)
            if owner is None:
                logger.warning(f"Season {season}: drop of {player} from unknown roster {roster_id}")
                continue
            events.append(Release(str(player), owner, int(roster_id), season, week, ts, via))

    events.sort(key=event_order_key)
    logger.debug(f"Season {season}: {len(events)} roster events ({skipped} transactions skipped)")
    return events


# =============================================================================
# WEEKLY RESULTS
# =============================================================================

def _lineup_for(
    season: int,
    week: int,
    owner_id: str,
    row: Dict[str, Any],
    opponent_points: float,
    snapshot: Optional[SnapshotTeams],
) -> WeeklyLineup:
    roster_id = int(row["franchise_id"])
    extra = (snapshot or {}).get(roster_id)
    if extra and (extra.get("starters") or extra.get("bench") or extra.get("reserve")):
        return WeeklyLineup(
            season=season,
            week=week,
            owner_id=owner_id,
            roster_id=roster_id,
            starters=tuple(p for p in extra.get("starters", []) if p),
            bench=tuple(p for p in extra.get("bench", []) if p),
            reserve=tuple(p for p in extra.get("reserve", []) if p),
            points=float(row.get("points") or 0.0),
            opponent_points=opponent_points,
            players_points=dict(row.get("players_points") or {}),
            from_snapshot=True,
        )

    # Weekly "players" can include taxi entries, so only starters are trusted here
    return WeeklyLineup(
        season=season,
        week=week,
        owner_id=owner_id,
        roster_id=roster_id,
        starters=tuple(p for p in row.get("starters", []) if p),
        points=float(row.get("points") or 0.0),
        opponent_points=opponent_points,
        players_points=dict(row.get("players_points") or {}),
    )


def pair_weekly_results(
    season: int,
    week: int,
    rows: Iterable[Dict[str, Any]],
    directory: FranchiseDirectory,
    snapshot: Optional[SnapshotTeams] = None,
) -> Tuple[List[GamePlayed], List[WeeklyLineup]]:
    """
    Pair one week's rows by matchup id.

    Returns:
        (games, lineups) where games exclude byes and 0-0 pairings
    """
    by_matchup: Dict[Any, List[Dict[str, Any]]] = defaultdict(list)
    singles: List[Dict[str, Any]] = []
    for row in rows:
        if row.get("franchise_id") is None:
            continue
        if row.get("matchup_id") is None:
            singles.append(row)
        else:
            by_matchup[row["matchup_id"]].append(row)

    games: List[GamePlayed] = []
    lineups: List[WeeklyLineup] = []

    for row in singles:
        owner = directory.owner_for(season, row["franchise_id"])
        if owner:
            lineups.append(_lineup_for(season, week, owner, row, 0.0, snapshot))

    for matchup_id in sorted(by_matchup, key=str):
        pair = by_matchup[matchup_id]
        if len(pair) != 2:
            logger.warning(
                f"Season {season} week {week}: matchup {matchup_id} has {len(pair)} sides, "
                f"not pairing it"
            )
            for row in pair:
                owner = directory.owner_for(season, row["franchise_id"])
                if owner:
                    lineups.append(_lineup_for(season, week, owner, row, 0.0, snapshot))
            continue

        a, b = sorted(pair, key=lambda r: int(r["franchise_id"]))
        owner_a = directory.owner_for(season, a["franchise_id"])
        owner_b = directory.owner_for(season, b["franchise_id"])
        points_a = float(a.get("points") or 0.0)
        points_b = float(b.get("points") or 0.0)

        if owner_a:
            lineups.append(_lineup_for(season, week, owner_a, a, points_b, snapshot))
        if owner_b:
            lineups.append(_lineup_for(season, week, owner_b, b, points_a, snapshot))

        if not owner_a or not owner_b:
            logger.warning(f"Season {season} week {week}: matchup {matchup_id} has an unmapped roster")
            continue
        if points_a + points_b == 0:
            continue

        games.append(GamePlayed(
            season=season,
            week=week,
            owner_a=owner_a,
            points_a=points_a,
            owner_b=owner_b,
            points_b=points_b,
            roster_a=int(a["franchise_id"]),
            roster_b=int(b["franchise_id"]),
        ))

    return games, lineups


# =============================================================================
# BRACKETS
# =============================================================================

def _participants(season: int, games: Iterable[Dict[str, Any]], directory: FranchiseDirectory) -> frozenset:
    owners = set()
    for game in games:
        for side in ("t1", "t2"):
            roster_id = game.get(side)
            # Unseeded slots are {"w": m} / {"l": m} references, not roster ids
            if isinstance(roster_id, int):
                owner = directory.owner_for(season, roster_id)
                if owner:
                    owners.add(owner)
    return frozenset(owners)


def flatten_brackets(
    season: int,
    brackets: Dict[str, List[Dict[str, Any]]],
    directory: FranchiseDirectory,
) -> BracketSets:
    """Participant owner ids across all rounds of each bracket."""
    return BracketSets(
        championship=_participants(season, brackets.get("championship") or [], directory),
        consolation=_participants(season, brackets.get("consolation") or [], directory),
    )


# =============================================================================
# LINEUP SNAPSHOTS
# =============================================================================

class SnapshotSource:
    """Optional source of authoritative weekly starters/bench/reserve."""

    def load(self, season: int, week: int) -> Optional[SnapshotTeams]:
        raise NotImplementedError


class JsonSnapshotStore(SnapshotSource):
    """
    Reads ``<dir>/<season>-W<week>.json`` files shaped as
    ``{"teams": [{"rosterId", "starters", "bench", "reserve"}]}``.
    """

    def __init__(self, directory: Path):
        self.directory = Path(directory)

    def load(self, season: int, week: int) -> Optional[SnapshotTeams]:
        path = self.directory / f"{season}-W{week}.json"
        if not path.exists():
            return None
        try:
            with open(path, "r") as f:
                payload = json.load(f)
        except (OSError, json.JSONDecodeError) as e:
            logger.warning(f"Unreadable lineup snapshot {path}: {e}")
            return None

        teams: SnapshotTeams = {}
        for team in payload.get("teams") or []:
            if team.get("rosterId") is None:
                continue
            teams[int(team["rosterId"])] = {
                "starters": list(team.get("starters") or []),
                "bench": list(team.get("bench") or []),
                "reserve": list(team.get("reserve") or []),
            }
        return teams
