#!/usr/bin/env python3
"""
League History Engine

Loads every configured season from the Sleeper API, normalizes it into the
canonical event stream, and answers the history queries:
- Roster timelines and taxi eligibility per franchise
- Classified games, record book, split records, head-to-head
- Season scoring totals and awards
- Win-probability calibration

Seasons load concurrently, and each season fans out its weekly fetches.
A failed fetch never aborts a query; it becomes a Gap on the result.

Usage:
    # All-time record book
    python -m league_history.history --records

    # Taxi squad check for one franchise
    python -m league_history.history --eligibility "Double Trouble" --season 2025

    # Season scoring leaders and awards
    python -m league_history.history --totals 2024 --awards 2024

    # Dump everything computed to JSON
    python -m league_history.history --records --h2h --out history.json
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import asdict, is_dataclass
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional, Tuple

import pandas as pd
import requests

from league_history.config import EngineSettings, get_engine_settings, get_league_ids, validate_config
from league_history.errors import DataAbsentError, TransientFetchError
from league_history.league.awards import SeasonAwards, resolve_awards
from league_history.league.calibration import WinProbabilityModel, build_dataset, train
from league_history.league.classify import classify_games
from league_history.league.eligibility import (
    ActivationWindow,
    EligibilityReport,
    build_eligibility_report,
    compute_eligibility,
)
from league_history.league.franchises import FranchiseDirectory
from league_history.league.models import (
    GameCategory,
    GameRecord,
    Gap,
    RosterSnapshot,
    Season,
    SeasonData,
)
from league_history.league.normalize import (
    SnapshotSource,
    flatten_brackets,
    normalize_transactions,
    pair_weekly_results,
)
from league_history.league.records import (
    HeadToHead,
    RecordBook,
    SplitRecord,
    compute_head_to_head,
    compute_record_book,
    compute_split_records,
    count_playoff_appearances,
    top_scoring_weeks,
)
from league_history.league.roster_timeline import RosterTimeline, reconstruct_roster_timeline
from league_history.league.scoring import SeasonTotals, compute_season_totals
from league_history.lib.sleeper_client import SleeperClient

logger = logging.getLogger(__name__)

# Failures that degrade a step into a gap; FetchCancelled always propagates
DEGRADED_ERRORS = (TransientFetchError, requests.HTTPError)

# A prior season with gaps in any of these cannot feed rookie inference
PRIOR_ACTIVITY_RESOURCES = ("matchups", "scoring", "stats")


def _fetch(season: int, resource: str, fn: Callable[[], Any], gaps: List[Gap], week: Optional[int] = None,
           default: Any = None) -> Any:
    """Run one gateway call, recording a gap instead of raising on failure."""
    try:
        return fn()
    except DataAbsentError:
        return default
    except DEGRADED_ERRORS as e:
        logger.warning(f"Season {season}{'' if week is None else f' week {week}'}: {resource} failed: {e}")
        gaps.append(Gap(season=season, week=week, resource=resource, reason=str(e)))
        return default


class LeagueHistory:
    """
    Facade over the gateway and the pure history functions.

    Features:
    - Concurrent per-season loading with per-week fan-out
    - Owner-id keyed franchise identity across seasons
    - Gaps for every season/week/resource that could not be resolved
    """

    def __init__(
        self,
        client: SleeperClient,
        seasons: Optional[List[int]] = None,
        settings: Optional[EngineSettings] = None,
        snapshot_source: Optional[SnapshotSource] = None,
        now: Optional[datetime] = None,
    ):
        self.client = client
        self.seasons = sorted(seasons if seasons is not None else client.league_ids)
        self.settings = settings or client.settings
        self.snapshot_source = snapshot_source
        self.now = now
        self.directory = FranchiseDirectory(self.settings.team_names)

        self._data: Dict[int, SeasonData] = {}
        self._roster_rows: Dict[int, List[Dict[str, Any]]] = {}
        self._players: Optional[Dict[str, Dict[str, Any]]] = None
        self._nfl_state: Optional[Dict[str, Any]] = None
        self._global_gaps: List[Gap] = []

        # Stats tracking
        self.stats = {
            "seasons_loaded": 0,
            "weeks_loaded": 0,
            "games": 0,
            "roster_events": 0,
            "gaps": 0,
        }

    # =========================================================================
    # LOADING
    # =========================================================================

    def _load_identity(self, season: int) -> Tuple[int, List[Dict[str, Any]], List[Dict[str, Any]], List[Gap]]:
        gaps: List[Gap] = []
        rosters = _fetch(season, "rosters", lambda: self.client.get_season_rosters(season), gaps, default=[])
        users = _fetch(season, "users", lambda: self.client.get_season_users(season), gaps, default=[])
        return season, rosters, users, gaps

    def _load_week(self, season: int, week: int):
        gaps: List[Gap] = []
        rows = _fetch(season, "matchups", lambda: self.client.get_weekly_results(season, week), gaps, week)
        txns = _fetch(season, "transactions", lambda: self.client.get_transactions(season, week), gaps, week)
        snapshot = self.snapshot_source.load(season, week) if self.snapshot_source else None
        return week, rows, txns, snapshot, gaps

    def _load_season(self, season: int, identity_gaps: List[Gap]) -> SeasonData:
        gaps: List[Gap] = list(identity_gaps)
        league = _fetch(season, "league", lambda: self.client.get_league_settings(season), gaps, default={})
        start = int(league.get("playoff_start_week") or 15)
        data = SeasonData(
            season=Season(year=season, playoff_start_week=start, regular_weeks=start - 1),
            scoring_rules=dict(league.get("scoring_rules") or {}),
        )

        brackets = _fetch(season, "brackets", lambda: self.client.get_brackets(season), gaps, default={})
        data.brackets = flatten_brackets(season, brackets, self.directory)

        weeks = range(1, self.settings.weeks_per_season + 1)
        results = []
        with ThreadPoolExecutor(max_workers=self.settings.max_workers) as executor:
            futures = [executor.submit(self._load_week, season, week) for week in weeks]
            for future in as_completed(futures):
                results.append(future.result())

        raw_txns: List[Dict[str, Any]] = []
        for week, rows, txns, snapshot, week_gaps in sorted(results, key=lambda r: r[0]):
            gaps.extend(week_gaps)
            if rows is not None:
                games, lineups = pair_weekly_results(season, week, rows, self.directory, snapshot)
                data.games.extend(games)
                data.lineups.extend(lineups)
            raw_txns.extend(txns or [])
        data.events = normalize_transactions(season, raw_txns, self.directory)

        for row in self._roster_rows.get(season, []):
            owner = self.directory.owner_for(season, row.get("franchise_id"))
            if owner is None:
                continue
            slots = row.get("slot_assignments") or {}
            data.rosters.append(RosterSnapshot(
                owner_id=owner,
                roster_id=int(row["franchise_id"]),
                player_ids=tuple(row.get("player_ids") or ()),
                starters=tuple(slots.get("starters") or ()),
                reserve=tuple(slots.get("reserve") or ()),
                taxi=tuple(slots.get("taxi") or ()),
            ))

        data.gaps = gaps
        logger.info(
            f"Season {season}: {len(data.games)} games, {len(data.events)} roster events, "
            f"{len(gaps)} gaps"
        )
        return data

    def load(self, force: bool = False) -> Dict[int, SeasonData]:
        """Fetch and normalize every season (once unless ``force``)."""
        if self._data and not force:
            return self._data

        workers = max(1, min(self.settings.max_workers, len(self.seasons) or 1))

        # Identity first: normalization needs every season's roster -> owner table
        identity: Dict[int, List[Gap]] = {}
        users: Dict[int, List[Dict[str, Any]]] = {}
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = [executor.submit(self._load_identity, s) for s in self.seasons]
            for future in as_completed(futures):
                season, rosters, season_users, gaps = future.result()
                identity[season] = gaps
                users[season] = season_users
                self._roster_rows[season] = rosters
        for season in self.seasons:
            self.directory.add_season(season, self._roster_rows.get(season, []), users.get(season, []))

        data: Dict[int, SeasonData] = {}
        with ThreadPoolExecutor(max_workers=workers) as executor:
            futures = {executor.submit(self._load_season, s, identity.get(s, [])): s for s in self.seasons}
            for future in as_completed(futures):
                season = futures[future]
                data[season] = future.result()

        self._data = {s: data[s] for s in sorted(data)}
        self.stats["seasons_loaded"] = len(self._data)
        self.stats["weeks_loaded"] = sum(
            self.settings.weeks_per_season - len(d.weeks_with_gaps("matchups")) for d in self._data.values()
        )
        self.stats["games"] = sum(len(d.games) for d in self._data.values())
        self.stats["roster_events"] = sum(len(d.events) for d in self._data.values())
        self.stats["gaps"] = len(self.gaps())
        return self._data

    def season_data(self, season: int) -> Optional[SeasonData]:
        return self.load().get(season)

    def gaps(self, season: Optional[int] = None) -> List[Gap]:
        out = [g for d in self._data.values() for g in d.gaps] + self._global_gaps
        if season is not None:
            out = [g for g in out if g.season == season]
        return out

    def players(self) -> Dict[str, Dict[str, Any]]:
        if self._players is None:
            self._players = _fetch(0, "players", self.client.get_players, self._global_gaps, default={})
        return self._players

    def current_week(self) -> Optional[Tuple[int, int]]:
        """(season, week) of the live NFL week, or None when unknown."""
        if self._nfl_state is None:
            self._nfl_state = _fetch(0, "state", self.client.get_nfl_state, self._global_gaps, default={})
        state = self._nfl_state
        try:
            season, week = int(state.get("season") or 0), int(state.get("week") or 0)
        except (TypeError, ValueError):
            return None
        return (season, week) if season and week else None

    # =========================================================================
    # QUERIES
    # =========================================================================

    def _all(self, attr: str, seasons: Optional[List[int]] = None) -> list:
        data = self.load()
        picked = seasons if seasons is not None else list(data)
        return [item for s in picked if s in data for item in getattr(data[s], attr)]

    def reconstruct_roster_timeline(self, owner_id: str, seasons: Optional[List[int]] = None) -> RosterTimeline:
        return reconstruct_roster_timeline(self._all("events", seasons), owner_id, seasons)

    def classify_games(self, seasons: Optional[List[int]] = None) -> List[GameRecord]:
        data = self.load()
        records: List[GameRecord] = []
        for season in seasons if seasons is not None else list(data):
            if season in data:
                d = data[season]
                records.extend(classify_games(d.games, d.season.playoff_start_week, d.brackets))
        return records

    def compute_eligibility(self, owner_id: str, season: Optional[int] = None) -> EligibilityReport:
        """Taxi report for a franchise's roster in ``season`` (latest by default)."""
        data = self.load()
        if season is None:
            season = max(data) if data else max(self.seasons, default=0)
        upto = [s for s in data if s <= season]

        current = self.current_week()
        window = ActivationWindow(
            days=tuple(self.settings.activation_window_days),
            timezone=self.settings.activation_timezone,
        )
        statuses = compute_eligibility(
            self._all("events", upto),
            self._all("lineups", upto),
            owner_id,
            current_week=current,
            window=window,
            now=self.now,
        )

        season_data = data.get(season)
        roster = season_data.roster_of(owner_id) if season_data else None
        current_starters: Tuple[str, ...] = ()
        if season_data is not None and current and current[0] == season:
            for lu in season_data.lineups:
                if lu.owner_id == owner_id and lu.week == current[1]:
                    current_starters = lu.starters

        return build_eligibility_report(
            owner_id,
            season,
            roster,
            statuses,
            self.players(),
            self.settings.taxi_limits,
            current_starters=current_starters,
            team_name=self.directory.canonical_name(owner_id),
            gaps=[g for g in self.gaps() if g.season in upto or g.season == 0],
        )

    def compute_record_book(self, category: Optional[GameCategory] = None) -> RecordBook:
        return compute_record_book(self.classify_games(), category=category, gaps=self.gaps())

    def compute_season_totals(self, season: int, weeks: Optional[List[int]] = None) -> SeasonTotals:
        data = self.season_data(season)
        if data is None:
            return SeasonTotals(season=season, gaps=[Gap(season, "season", "not loaded")])

        missing = set(data.weeks_with_gaps("matchups"))
        provider: Dict[int, Optional[Dict[str, float]]] = {}
        for lu in data.lineups:
            if lu.week in missing:
                continue
            week_points = provider.setdefault(lu.week, {})
            week_points.update(lu.players_points)
        if weeks is None:
            weeks = sorted({lu.week for lu in data.lineups if lu.played} | missing)

        gaps: List[Gap] = []

        def stats_loader(week: int):
            return _fetch(
                season, "stats", lambda: self.client.get_player_weekly_stats(season, week), gaps, week
            )

        totals = compute_season_totals(
            season, weeks, provider, stats_loader, data.scoring_rules,
            gaps=[g for g in data.gaps if g.resource == "matchups"],
        )
        totals.gaps.extend(gaps)
        return totals

    def resolve_awards(self, season: int) -> SeasonAwards:
        """MVP / ROY over the regular season (weeks before the playoff start)."""
        data = self.season_data(season)
        if data is None:
            return SeasonAwards(season=season, gaps=[Gap(season, "season", "not loaded")])
        regular = list(range(1, data.season.playoff_start_week))
        totals = self.compute_season_totals(season, regular)

        gaps = list(totals.gaps)
        prior: Dict[int, set] = {}
        for prev in (season - 1, season - 2):
            prev_data = self._data.get(prev)
            if prev_data is None:
                continue
            prev_totals = self.compute_season_totals(prev)
            # Activity from a partially fetched season cannot prove a player is new
            missing = sorted({g.resource for g in prev_totals.gaps if g.resource in PRIOR_ACTIVITY_RESOURCES})
            if missing or not prev_data.games:
                reason = f"missing {', '.join(missing)}" if missing else "no games recorded"
                logger.warning(f"Season {season}: rookie inference skips {prev} ({reason})")
                gaps.append(Gap(prev, "awards", f"prior season incomplete for rookie inference: {reason}"))
                continue
            prior[prev] = {pid for pid, pts in prev_totals.totals.items() if pts != 0}

        return resolve_awards(season, totals.totals, self.players(), prior, gaps=gaps)

    def split_records(self) -> Dict[str, Dict[str, SplitRecord]]:
        return compute_split_records(self.classify_games())

    def head_to_head(self) -> HeadToHead:
        return compute_head_to_head(self.classify_games())

    def top_scoring_weeks(self, category: Optional[GameCategory] = None, top: int = 10) -> pd.DataFrame:
        df = top_scoring_weeks(self.classify_games(), category=category, top=top)
        if not df.empty:
            df["team"] = df["owner_id"].map(self.directory.canonical_name)
        return df

    def playoff_appearances(self) -> Dict[str, int]:
        return count_playoff_appearances({s: d.brackets for s, d in self.load().items()})

    def train_win_probability(self) -> WinProbabilityModel:
        dataset = build_dataset(self._all("games"), self._all("lineups"), self.players())
        return train(dataset)


# =============================================================================
# OUTPUT HELPERS
# =============================================================================

def to_jsonable(value: Any) -> Any:
    """Dataclasses, enums, tuples and DataFrames into plain JSON types."""
    if isinstance(value, pd.DataFrame):
        return value.to_dict(orient="records")
    if is_dataclass(value) and not isinstance(value, type):
        return to_jsonable(asdict(value))
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, dict):
        return {str(k): to_jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [to_jsonable(v) for v in value]
    return value


def _when(entry_season: int, entry_week: int) -> str:
    return f"{entry_season} W{entry_week}"


def _print_record_book(history: LeagueHistory, book: RecordBook) -> None:
    name = history.directory.canonical_name
    print("\n=== Record Book ===")
    print(f"Games scanned: {book.games_counted}")
    for e in book.highest_scores:
        print(f"Highest score: {e.points:.2f} - {name(e.owner_id)} ({_when(e.season, e.week)})")
    for e in book.lowest_scores:
        print(f"Lowest score: {e.points:.2f} - {name(e.owner_id)} ({_when(e.season, e.week)})")
    for e in book.biggest_victories:
        print(f"Biggest victory: {e.margin:.2f} - {name(e.winner_id)} over {name(e.loser_id)} "
              f"({_when(e.season, e.week)})")
    for e in book.closest_victories:
        print(f"Closest victory: {e.margin:.2f} - {name(e.winner_id)} over {name(e.loser_id)} "
              f"({_when(e.season, e.week)})")
    for e in book.highest_combined:
        print(f"Highest combined: {e.combined:.2f} - {name(e.owner_a)} vs {name(e.owner_b)} "
              f"({_when(e.season, e.week)})")
    for label, streak in (("win", book.longest_win_streak), ("losing", book.longest_losing_streak)):
        if streak:
            print(f"Longest {label} streak: {streak.length} - {name(streak.owner_id)} "
                  f"({_when(*streak.start)} to {_when(*streak.end)})")
    if book.weekly_high_counts:
        print("Weekly highs:")
        for owner, count in book.weekly_high_counts.items():
            print(f"  {name(owner)}: {count}")


def _print_gaps(gaps: List[Gap]) -> None:
    if gaps:
        print(f"\nUnresolved ({len(gaps)}):")
        for g in gaps:
            week = "" if g.week is None else f" W{g.week}"
            print(f"  - {g.season}{week} {g.resource}: {g.reason}")


def main():
    parser = argparse.ArgumentParser(
        description="League history: records, taxi eligibility, scoring totals and awards"
    )
    parser.add_argument(
        "--records", action="store_true",
        help="Print the all-time record book"
    )
    parser.add_argument(
        "--eligibility", metavar="OWNER",
        help="Taxi eligibility report for an owner id or team name"
    )
    parser.add_argument(
        "--season", type=int,
        help="Season for --eligibility (default: latest)"
    )
    parser.add_argument(
        "--totals", type=int, metavar="SEASON",
        help="Print season scoring leaders"
    )
    parser.add_argument(
        "--awards", type=int, metavar="SEASON",
        help="Resolve MVP / Rookie of the Year"
    )
    parser.add_argument(
        "--h2h", action="store_true",
        help="Print head-to-head never-beaten list"
    )
    parser.add_argument(
        "--out", type=Path,
        help="Write everything computed to a JSON file"
    )
    parser.add_argument(
        "-v", "--verbose", action="store_true",
        help="Verbose output"
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(levelname)s - %(message)s"
    )
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)

    if not any([args.records, args.eligibility, args.totals, args.awards, args.h2h]):
        parser.print_help()
        print("\nError: Must specify at least one of --records, --eligibility, --totals, --awards, --h2h")
        sys.exit(1)

    issues = validate_config()
    if issues:
        for issue in issues:
            print(f"Configuration issue: {issue}")
        sys.exit(1)

    settings = get_engine_settings()
    client = SleeperClient(get_league_ids(), settings)
    history = LeagueHistory(client, settings=settings)
    history.load()
    name = history.directory.canonical_name
    output: Dict[str, Any] = {}

    if args.records:
        book = history.compute_record_book()
        _print_record_book(history, book)
        output["record_book"] = book
        output["playoff_appearances"] = history.playoff_appearances()
        output["top_weeks"] = history.top_scoring_weeks()

    if args.eligibility:
        owner = history.directory.resolve_owner(args.eligibility)
        if owner is None:
            print(f"\nError: Unknown franchise {args.eligibility!r}")
            sys.exit(1)
        report = history.compute_eligibility(owner, args.season)
        print(f"\n=== Taxi: {report.team_name} ({report.season}) ===")
        print(f"On taxi: {report.counts.get('total', 0)} (QBs: {report.counts.get('qbs', 0)})")
        for p in report.taxi:
            since = "" if p.since_ts is None else datetime.fromtimestamp(
                p.since_ts / 1000, tz=timezone.utc).strftime("%Y-%m-%d")
            status = p.ineligible_reason or ("Pending activation" if p.pending_at else "Eligible")
            print(f"  {p.name or p.player_id} ({p.position or '?'}) since {since or 'draft'}: {status}")
        print(f"Compliant: {report.compliant}")
        for v in report.violations:
            print(f"  - {v.code}: {v.detail} {v.players}")
        output["eligibility"] = report

    if args.totals:
        totals = history.compute_season_totals(args.totals)
        players = history.players()
        print(f"\n=== Scoring Leaders {args.totals} ===")
        for _, row in totals.to_frame().head(15).iterrows():
            meta = players.get(row["player_id"]) or {}
            label = f"{meta.get('first_name') or ''} {meta.get('last_name') or ''}".strip() or row["player_id"]
            print(f"  {label}: {totals.display(row['player_id'])}")
        computed = [w for w, s in totals.strategy_by_week.items() if s != "provider"]
        if computed:
            print(f"Weeks scored from raw stats: {computed}")
        output["totals"] = totals

    if args.awards:
        awards = history.resolve_awards(args.awards)
        print(f"\n=== Awards {args.awards} ===")
        print("MVP: " + (", ".join(f"{w.name or w.player_id} ({w.points:.2f})" for w in awards.mvp) or "none"))
        print("ROY: " + (", ".join(f"{w.name or w.player_id} ({w.points:.2f})" for w in awards.roy) or "none"))
        output["awards"] = awards

    if args.h2h:
        h2h = history.head_to_head()
        print("\n=== Never Beaten ===")
        for item in h2h.never_beaten:
            print(f"  {name(item['team'])} is 0-{item['meetings']} vs {name(item['vs'])}")
        output["head_to_head"] = h2h

    _print_gaps(history.gaps())

    if args.out:
        output["gaps"] = history.gaps()
        args.out.parent.mkdir(parents=True, exist_ok=True)
        with open(args.out, "w") as f:
            json.dump(to_jsonable(output), f, indent=2, default=str)
        logger.info(f"Wrote {args.out}")

    # Print summary
    stats = history.stats
    print("\n=== Summary ===")
    print(f"Seasons loaded: {stats['seasons_loaded']}")
    print(f"Games: {stats['games']}")
    print(f"Roster events: {stats['roster_events']}")
    print(f"Gaps: {stats['gaps']}")


if __name__ == "__main__":
    main()
