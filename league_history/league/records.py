"""
Record Book Aggregator

One linear scan over the chronological, classified game stream produces:
- Highest / lowest single-team score (each side judged on its own score)
- Biggest / closest victory margin (ties have no winner and are skipped)
- Highest combined score
- Longest win / losing streak per franchise, carried across seasons
- Weekly-high tallies (every franchise tied at the week's max is credited)

Extremes keep co-leaders; streaks keep the first one found on an exact tie.

Also here: per-franchise split records, the head-to-head matrix, top
scoring weeks as a DataFrame, and playoff appearance counts.

Usage:
    book = compute_record_book(records)
    book.highest_scoring_game.points
    book.longest_win_streak.length

    splits = compute_split_records(records)
    h2h = compute_head_to_head(records)
    top = top_scoring_weeks(records, category=GameCategory.PLAYOFF, top=5)
"""

from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Optional, Tuple

import pandas as pd

from league_history.league.models import BracketSets, GameCategory, GameRecord, Gap, Outcome

logger = logging.getLogger(__name__)

SPLIT_BUCKETS = ("regular", "playoff", "consolation", "all")


# =============================================================================
# RECORD BOOK
# =============================================================================

@dataclass(frozen=True)
class ScoreEntry:
    owner_id: str
    points: float
    season: int
    week: int
    opponent_id: str
    opponent_points: float


@dataclass(frozen=True)
class MarginEntry:
    winner_id: str
    loser_id: str
    margin: float
    winner_points: float
    loser_points: float
    season: int
    week: int


@dataclass(frozen=True)
class CombinedEntry:
    owner_a: str
    points_a: float
    owner_b: str
    points_b: float
    combined: float
    season: int
    week: int


@dataclass(frozen=True)
class StreakEntry:
    owner_id: str
    outcome: Outcome
    length: int
    start: Tuple[int, int]
    end: Tuple[int, int]


@dataclass
class RecordBook:
    """League-wide records; extremes are lists so co-leaders survive."""
    category: Optional[GameCategory] = None
    games_counted: int = 0
    highest_scores: List[ScoreEntry] = field(default_factory=list)
    lowest_scores: List[ScoreEntry] = field(default_factory=list)
    biggest_victories: List[MarginEntry] = field(default_factory=list)
    closest_victories: List[MarginEntry] = field(default_factory=list)
    highest_combined: List[CombinedEntry] = field(default_factory=list)
    longest_win_streak: Optional[StreakEntry] = None
    longest_losing_streak: Optional[StreakEntry] = None
    weekly_high_counts: Dict[str, int] = field(default_factory=dict)
    gaps: List[Gap] = field(default_factory=list)

    @property
    def highest_scoring_game(self) -> Optional[ScoreEntry]:
        return self.highest_scores[0] if self.highest_scores else None

    @property
    def lowest_scoring_game(self) -> Optional[ScoreEntry]:
        return self.lowest_scores[0] if self.lowest_scores else None

    @property
    def biggest_victory(self) -> Optional[MarginEntry]:
        return self.biggest_victories[0] if self.biggest_victories else None

    @property
    def closest_victory(self) -> Optional[MarginEntry]:
        return self.closest_victories[0] if self.closest_victories else None


def _update_extreme(entries: List, entry, value: float, current: Optional[float], higher: bool) -> float:
    """Replace on a strictly better value, append on a tie; returns the best value."""
    if current is None or (value > current if higher else value < current):
        entries[:] = [entry]
        return value
    if value == current:
        entries.append(entry)
    return current


def _ordered(records: Iterable[GameRecord]) -> List[GameRecord]:
    # sorted() is stable, so same-week games keep their source order
    return sorted(records, key=lambda r: (r.season, r.week))


def _scan_streaks(
    owner_id: str,
    timeline: List[Tuple[int, int, Outcome]],
    best_w: Optional[StreakEntry],
    best_l: Optional[StreakEntry],
) -> Tuple[Optional[StreakEntry], Optional[StreakEntry]]:
    cur_w = cur_l = 0
    start_w: Optional[Tuple[int, int]] = None
    start_l: Optional[Tuple[int, int]] = None

    for season, week, outcome in timeline:
        if outcome is Outcome.WIN:
            cur_w += 1
            if cur_w == 1:
                start_w = (season, week)
            cur_l, start_l = 0, None
            if best_w is None or cur_w > best_w.length:
                best_w = StreakEntry(owner_id, Outcome.WIN, cur_w, start_w, (season, week))
        elif outcome is Outcome.LOSS:
            cur_l += 1
            if cur_l == 1:
                start_l = (season, week)
            cur_w, start_w = 0, None
            if best_l is None or cur_l > best_l.length:
                best_l = StreakEntry(owner_id, Outcome.LOSS, cur_l, start_l, (season, week))
        else:
            cur_w = cur_l = 0
            start_w = start_l = None
    return best_w, best_l


def compute_record_book(
    records: Iterable[GameRecord],
    category: Optional[GameCategory] = None,
    gaps: Optional[List[Gap]] = None,
) -> RecordBook:
    """
    Scan classified games once and build the record book.

    Args:
        records: Classified games from any number of seasons
        category: Restrict to one category; None means every game,
            ambiguous ones included
        gaps: Unresolved seasons/weeks to carry on the result
    """
    book = RecordBook(category=category, gaps=list(gaps or []))
    best_high: Optional[float] = None
    best_low: Optional[float] = None
    best_big: Optional[float] = None
    best_close: Optional[float] = None
    best_combined: Optional[float] = None

    timelines: Dict[str, List[Tuple[int, int, Outcome]]] = {}
    week_scores: Dict[Tuple[int, int], List[Tuple[str, float]]] = defaultdict(list)

    for rec in _ordered(records):
        if category is not None and rec.category is not category:
            continue
        book.games_counted += 1

        for owner, points, opponent, opp_points in rec.sides():
            entry = ScoreEntry(owner, points, rec.season, rec.week, opponent, opp_points)
            best_high = _update_extreme(book.highest_scores, entry, points, best_high, higher=True)
            best_low = _update_extreme(book.lowest_scores, entry, points, best_low, higher=False)
            week_scores[(rec.season, rec.week)].append((owner, points))
            timelines.setdefault(owner, []).append((rec.season, rec.week, rec.outcome_for(owner)))

        if not rec.is_tie:
            winner_pts, loser_pts = max(rec.points_a, rec.points_b), min(rec.points_a, rec.points_b)
            margin = MarginEntry(rec.winner, rec.loser, rec.margin, winner_pts, loser_pts, rec.season, rec.week)
            best_big = _update_extreme(book.biggest_victories, margin, rec.margin, best_big, higher=True)
            best_close = _update_extreme(book.closest_victories, margin, rec.margin, best_close, higher=False)

        combined = CombinedEntry(
            rec.owner_a, rec.points_a, rec.owner_b, rec.points_b, rec.combined, rec.season, rec.week
        )
        best_combined = _update_extreme(book.highest_combined, combined, rec.combined, best_combined, higher=True)

    for owner_id, timeline in timelines.items():
        book.longest_win_streak, book.longest_losing_streak = _scan_streaks(
            owner_id, timeline, book.longest_win_streak, book.longest_losing_streak
        )

    counts: Dict[str, int] = defaultdict(int)
    for scores in week_scores.values():
        top = max(points for _, points in scores)
        for owner, points in scores:
            if points == top:
                counts[owner] += 1
    book.weekly_high_counts = dict(sorted(counts.items(), key=lambda kv: (-kv[1], kv[0])))

    logger.info(
        f"Record book ({category.value if category else 'all games'}): {book.games_counted} games scanned"
    )
    return book


# =============================================================================
# SPLIT RECORDS
# =============================================================================

@dataclass
class SplitRecord:
    wins: int = 0
    losses: int = 0
    ties: int = 0
    points_for: float = 0.0
    points_against: float = 0.0

    @property
    def games(self) -> int:
        return self.wins + self.losses + self.ties

    @property
    def win_pct(self) -> float:
        if not self.games:
            return 0.0
        return round((self.wins + 0.5 * self.ties) / self.games, 4)


def compute_split_records(records: Iterable[GameRecord]) -> Dict[str, Dict[str, SplitRecord]]:
    """owner -> bucket -> W/L/T and PF/PA; ambiguous games only land in 'all'."""
    splits: Dict[str, Dict[str, SplitRecord]] = {}
    for rec in _ordered(records):
        for owner, points, _, opp_points in rec.sides():
            buckets = splits.setdefault(owner, {b: SplitRecord() for b in SPLIT_BUCKETS})
            targets = ["all"]
            if rec.category is not GameCategory.AMBIGUOUS:
                targets.append(rec.category.value)
            outcome = rec.outcome_for(owner)
            for name in targets:
                split = buckets[name]
                if outcome is Outcome.WIN:
                    split.wins += 1
                elif outcome is Outcome.LOSS:
                    split.losses += 1
                else:
                    split.ties += 1
                split.points_for = round(split.points_for + points, 2)
                split.points_against = round(split.points_against + opp_points, 2)
    return splits


# =============================================================================
# HEAD TO HEAD
# =============================================================================

@dataclass
class H2HCell:
    meetings: int = 0
    wins: Dict[str, int] = field(default_factory=lambda: {b: 0 for b in SPLIT_BUCKETS})
    losses: Dict[str, int] = field(default_factory=lambda: {b: 0 for b in SPLIT_BUCKETS})
    ties: int = 0
    last_meeting: Optional[Tuple[int, int]] = None
    first_win_at: Optional[Tuple[int, int]] = None


@dataclass
class HeadToHead:
    owners: List[str] = field(default_factory=list)
    matrix: Dict[str, Dict[str, H2HCell]] = field(default_factory=dict)
    never_beaten: List[Dict[str, object]] = field(default_factory=list)


def compute_head_to_head(records: Iterable[GameRecord]) -> HeadToHead:
    """
    Pairwise franchise matrix in chronological order.

    ``matrix[a][b]`` is a's record against b. The never-beaten list holds
    every (team, vs) pair that has met at least once without a win for team.
    """
    ordered = _ordered(records)
    owners = sorted({o for r in ordered for o in (r.owner_a, r.owner_b)})
    h2h = HeadToHead(
        owners=owners,
        matrix={a: {b: H2HCell() for b in owners if b != a} for a in owners},
    )

    for rec in ordered:
        if rec.owner_a == rec.owner_b:
            continue
        cell_ab = h2h.matrix[rec.owner_a][rec.owner_b]
        cell_ba = h2h.matrix[rec.owner_b][rec.owner_a]
        when = (rec.season, rec.week)
        for cell in (cell_ab, cell_ba):
            cell.meetings += 1
            cell.last_meeting = when
        if rec.is_tie:
            cell_ab.ties += 1
            cell_ba.ties += 1
            continue

        win_cell, lose_cell = (cell_ab, cell_ba) if rec.winner == rec.owner_a else (cell_ba, cell_ab)
        if win_cell.wins["all"] == 0:
            win_cell.first_win_at = when
        buckets = ["all"]
        if rec.category is not GameCategory.AMBIGUOUS:
            buckets.append(rec.category.value)
        for bucket in buckets:
            win_cell.wins[bucket] += 1
            lose_cell.losses[bucket] += 1

    for a in owners:
        for b, cell in h2h.matrix[a].items():
            if cell.meetings > 0 and cell.wins["all"] == 0:
                h2h.never_beaten.append({
                    "team": a, "vs": b, "meetings": cell.meetings, "last_meeting": cell.last_meeting,
                })
    return h2h


# =============================================================================
# TOP WEEKS / APPEARANCES
# =============================================================================

def top_scoring_weeks(
    records: Iterable[GameRecord],
    category: Optional[GameCategory] = None,
    top: int = 10,
) -> pd.DataFrame:
    """Highest single-team weekly scores as a DataFrame."""
    rows = []
    for rec in records:
        if category is not None and rec.category is not category:
            continue
        for owner, points, opponent, opp_points in rec.sides():
            rows.append({
                "season": rec.season,
                "week": rec.week,
                "owner_id": owner,
                "points": points,
                "opponent_id": opponent,
                "opponent_points": opp_points,
                "result": rec.outcome_for(owner).value,
                "category": rec.category.value,
            })

    columns = ["season", "week", "owner_id", "points", "opponent_id", "opponent_points", "result", "category"]
    if not rows:
        return pd.DataFrame(columns=columns)
    df = pd.DataFrame(rows, columns=columns)
    df = df.sort_values(["points", "season", "week"], ascending=[False, True, True], kind="mergesort")
    return df.head(top).reset_index(drop=True)


def count_playoff_appearances(brackets_by_season: Dict[int, BracketSets]) -> Dict[str, int]:
    """Once per owner per season with a championship-bracket slot."""
    counts: Dict[str, int] = defaultdict(int)
    for season in sorted(brackets_by_season):
        for owner in brackets_by_season[season].championship:
            counts[owner] += 1
    return dict(sorted(counts.items(), key=lambda kv: (-kv[1], kv[0])))
