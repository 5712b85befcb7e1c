"""
Awards Resolver

MVP and Rookie of the Year from a season's scoring totals.

- Eligible positions: QB, RB, WR, TE, K (team defenses never win)
- Co-winners: every player within AWARD_EPSILON of the top total
- No winner at all until the top total exceeds MIN_AWARD_POINTS
- Rookies come from ``rookie_year`` metadata; when no eligible player has
  it, a player with no recorded activity in the two prior seasons counts as
  a rookie; otherwise no Rookie of the Year is declared
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Mapping, Optional, Set

from league_history.league.models import Gap

logger = logging.getLogger(__name__)

ELIGIBLE_POSITIONS = ("QB", "RB", "WR", "TE", "K")
AWARD_EPSILON = 1e-6
MIN_AWARD_POINTS = 0.01

ROOKIES_FROM_METADATA = "metadata"
ROOKIES_INFERRED = "inferred"


@dataclass(frozen=True)
class AwardWinner:
    player_id: str
    points: float
    name: Optional[str] = None
    position: Optional[str] = None


@dataclass
class SeasonAwards:
    season: int
    mvp: List[AwardWinner] = field(default_factory=list)
    roy: List[AwardWinner] = field(default_factory=list)
    rookie_source: Optional[str] = None
    gaps: List[Gap] = field(default_factory=list)


def _position(meta: Mapping[str, Any]) -> Optional[str]:
    position = meta.get("position")
    if not position:
        positions = meta.get("fantasy_positions") or []
        position = positions[0] if positions else None
    return str(position).upper() if position else None


def _name(meta: Mapping[str, Any]) -> Optional[str]:
    name = f"{meta.get('first_name') or ''} {meta.get('last_name') or ''}".strip()
    return name or meta.get("full_name")


def eligible_players(totals: Mapping[str, float], players: Mapping[str, Mapping[str, Any]]) -> List[str]:
    return [pid for pid in totals if _position(players.get(pid) or {}) in ELIGIBLE_POSITIONS]


def top_scorers(
    totals: Mapping[str, float],
    candidates: Iterable[str],
    players: Mapping[str, Mapping[str, Any]],
) -> List[AwardWinner]:
    """Everyone tied (within epsilon) at the candidates' max, if it clears the floor."""
    pool = [(pid, totals.get(pid, 0.0)) for pid in candidates]
    if not pool:
        return []
    best = max(points for _, points in pool)
    if best <= MIN_AWARD_POINTS:
        return []
    winners = [
        AwardWinner(
            player_id=pid,
            points=points,
            name=_name(players.get(pid) or {}),
            position=_position(players.get(pid) or {}),
        )
        for pid, points in pool
        if abs(points - best) <= AWARD_EPSILON
    ]
    return sorted(winners, key=lambda w: w.player_id)


def _rookie_year(meta: Mapping[str, Any]) -> Optional[int]:
    value = meta.get("rookie_year")
    try:
        return int(value) if value not in (None, "") else None
    except (TypeError, ValueError):
        return None


def resolve_awards(
    season: int,
    totals: Mapping[str, float],
    players: Mapping[str, Mapping[str, Any]],
    prior_activity: Optional[Mapping[int, Set[str]]] = None,
    gaps: Optional[List[Gap]] = None,
) -> SeasonAwards:
    """
    Resolve MVP and Rookie of the Year for one season.

    Args:
        season: Season year
        totals: player -> season points
        players: Player metadata (position, rookie_year, names)
        prior_activity: season -> players with recorded points that season;
            used for rookie inference and needs both prior seasons present
        gaps: Unresolved weeks carried from the totals
    """
    awards = SeasonAwards(season=season, gaps=list(gaps or []))
    eligible = eligible_players(totals, players)
    awards.mvp = top_scorers(totals, eligible, players)

    rookies = [pid for pid in eligible if _rookie_year(players.get(pid) or {}) == season]
    if rookies:
        awards.rookie_source = ROOKIES_FROM_METADATA
    elif prior_activity is not None and all(s in prior_activity for s in (season - 1, season - 2)):
        seen = set(prior_activity[season - 1]) | set(prior_activity[season - 2])
        rookies = [pid for pid in eligible if pid not in seen]
        if rookies:
            awards.rookie_source = ROOKIES_INFERRED
    else:
        logger.info(f"Season {season}: no rookie metadata and no prior seasons to infer from")

    if rookies:
        awards.roy = top_scorers(totals, rookies, players)

    logger.info(
        f"Season {season} awards: MVP {[w.player_id for w in awards.mvp]}, "
        f"ROY {[w.player_id for w in awards.roy]} ({awards.rookie_source or 'none'})"
    )
    return awards
