"""
Custom Scoring Aggregator

Per-player season totals under the league's own point values.

Strategies, per week, in priority order:
1. provider  - sum the per-player points the provider already computed for
               every matchup row (exact parity, bonuses included)
2. computed  - raw weekly stats x league multipliers, vectorised with pandas;
               only linear rules, so conditional bonuses can diverge

Each weekly addition is rounded to 4 decimals; display truncates to 2.

Usage:
    totals = compute_season_totals(
        2024, range(1, 18), provider_points, stats_loader, rules
    )
    totals.totals["4046"]        # 312.4
    totals.display("4046")       # "312.40"
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Callable, Dict, Iterable, List, Mapping, Optional

import pandas as pd

from league_history.league.models import Gap

logger = logging.getLogger(__name__)

ACCUMULATION_DECIMALS = 4
DISPLAY_DECIMALS = 2

STRATEGY_PROVIDER = "provider"
STRATEGY_COMPUTED = "computed"

WeeklyPoints = Dict[str, float]
RawStats = Dict[str, Dict[str, float]]


def truncate_points(value: float, places: int = DISPLAY_DECIMALS) -> float:
    """Truncate toward zero (12.349 -> 12.34)."""
    factor = 10 ** places
    # Round first so 0.29 * 100 = 28.999... still truncates to 0.29
    return math.trunc(round(value * factor, 6)) / factor


def accumulate(totals: Dict[str, float], week_points: Mapping[str, float]) -> None:
    """Add one week's points into running totals with fixed rounding."""
    for player, points in week_points.items():
        totals[player] = round(totals.get(player, 0.0) + float(points), ACCUMULATION_DECIMALS)


def _col(df: pd.DataFrame, name: str) -> pd.Series:
    """Return numeric series for column; missing -> zeros."""
    if name not in df.columns:
        return pd.Series(0.0, index=df.index, dtype="float64")
    return pd.to_numeric(df[name], errors="coerce").fillna(0.0)


def score_raw_stats(stats: RawStats, rules: Mapping[str, float]) -> WeeklyPoints:
    """
    Vectorised linear scoring: each stat value times its multiplier.

    Stats without a rule and rules without a stat both contribute zero.
    """
    if not stats or not rules:
        return {}
    df = pd.DataFrame.from_dict(stats, orient="index")
    points = pd.Series(0.0, index=df.index, dtype="float64")
    for stat_key, multiplier in rules.items():
        points = points + float(multiplier) * _col(df, stat_key)
    points = points.round(ACCUMULATION_DECIMALS)
    return {str(pid): float(pts) for pid, pts in points.items() if pts != 0}


@dataclass
class SeasonTotals:
    """Season point totals plus how each week was sourced."""
    season: int
    weeks: List[int] = field(default_factory=list)
    totals: Dict[str, float] = field(default_factory=dict)
    strategy_by_week: Dict[int, str] = field(default_factory=dict)
    gaps: List[Gap] = field(default_factory=list)

    def display(self, player: str) -> str:
        return f"{truncate_points(self.totals.get(player, 0.0)):.{DISPLAY_DECIMALS}f}"

    def to_frame(self) -> pd.DataFrame:
        df = pd.DataFrame(
            [{"player_id": p, "points": v} for p, v in self.totals.items()],
            columns=["player_id", "points"],
        )
        return df.sort_values(["points", "player_id"], ascending=[False, True]).reset_index(drop=True)


def compute_season_totals(
    season: int,
    weeks: Iterable[int],
    provider_points: Mapping[int, Optional[WeeklyPoints]],
    stats_loader: Optional[Callable[[int], Optional[RawStats]]] = None,
    rules: Optional[Mapping[str, float]] = None,
    gaps: Optional[List[Gap]] = None,
) -> SeasonTotals:
    """
    Sum per-player points over the requested weeks.

    Args:
        season: Season year
        weeks: Weeks to include
        provider_points: week -> player -> points; None or missing when the
            week's matchups could not be fetched
        stats_loader: week -> raw stat lines, used when provider points are missing
        rules: Stat key -> multiplier for the computed strategy
        gaps: Prior gaps for this season to carry along

    Returns:
        SeasonTotals; weeks neither strategy could resolve are listed as gaps
    """
    result = SeasonTotals(season=season, weeks=sorted(set(weeks)), gaps=list(gaps or []))

    for week in result.weeks:
        week_points = provider_points.get(week)
        if week_points:
            accumulate(result.totals, week_points)
            result.strategy_by_week[week] = STRATEGY_PROVIDER
            continue

        raw = None
        if stats_loader is not None and rules:
            raw = stats_loader(week)
        if raw:
            accumulate(result.totals, score_raw_stats(raw, rules))
            result.strategy_by_week[week] = STRATEGY_COMPUTED
            logger.info(f"Season {season} week {week}: using computed scoring from raw stats")
        else:
            result.gaps.append(Gap(season=season, week=week, resource="scoring", reason="no points source"))

    logger.debug(
        f"Season {season}: totals for {len(result.totals)} players over "
        f"{len(result.strategy_by_week)}/{len(result.weeks)} weeks"
    )
    return result
