"""
Canonical league data model.

Everything here is an immutable value derived from upstream facts; nothing is
persisted. Franchise identity is always the stable owner id; season-scoped
roster ids travel alongside it but are never used as keys across seasons.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, FrozenSet, List, Optional, Tuple, Union

# Transaction types that move players between rosters
ROSTER_TRANSACTION_TYPES = ("trade", "waiver", "free_agent", "commissioner")


class GameCategory(str, Enum):
    """Classification of a played pairing."""
    REGULAR = "regular"
    PLAYOFF = "playoff"
    CONSOLATION = "consolation"
    AMBIGUOUS = "ambiguous"


class Outcome(str, Enum):
    WIN = "W"
    LOSS = "L"
    TIE = "T"


@dataclass(frozen=True)
class Season:
    """Season shape, immutable per fetch."""
    year: int
    playoff_start_week: int = 15
    regular_weeks: int = 14


@dataclass(frozen=True)
class Gap:
    """A season/week/resource the engine could not resolve."""
    season: int
    resource: str
    reason: str
    week: Optional[int] = None


# =============================================================================
# EVENTS
# =============================================================================

@dataclass(frozen=True)
class Acquisition:
    """A player joining a franchise's controlled roster."""
    player: str
    owner_id: str
    roster_id: int
    season: int
    week: int
    ts: int
    via: str = "free_agent"


@dataclass(frozen=True)
class Release:
    """A player leaving a franchise's controlled roster."""
    player: str
    owner_id: str
    roster_id: int
    season: int
    week: int
    ts: int
    via: str = "free_agent"


@dataclass(frozen=True)
class GamePlayed:
    """A head-to-head pairing with a non-zero combined score."""
    season: int
    week: int
    owner_a: str
    points_a: float
    owner_b: str
    points_b: float
    roster_a: Optional[int] = None
    roster_b: Optional[int] = None


RosterEvent = Union[Acquisition, Release]


def event_order_key(event: RosterEvent) -> Tuple[int, int, int]:
    """(season, ts, acquisitions first) so a same-instant gain/loss ends as the loss."""
    return (event.season, event.ts, 0 if isinstance(event, Acquisition) else 1)


# =============================================================================
# DERIVED RECORDS
# =============================================================================

@dataclass(frozen=True)
class GameRecord:
    """A classified game. ``category`` is only ever set by the classifier."""
    season: int
    week: int
    owner_a: str
    points_a: float
    owner_b: str
    points_b: float
    category: GameCategory
    category_inferred: bool = False

    @property
    def combined(self) -> float:
        return round(self.points_a + self.points_b, 2)

    @property
    def margin(self) -> float:
        return round(abs(self.points_a - self.points_b), 2)

    @property
    def is_tie(self) -> bool:
        return self.points_a == self.points_b

    @property
    def winner(self) -> Optional[str]:
        if self.is_tie:
            return None
        return self.owner_a if self.points_a > self.points_b else self.owner_b

    @property
    def loser(self) -> Optional[str]:
        if self.is_tie:
            return None
        return self.owner_b if self.points_a > self.points_b else self.owner_a

    def outcome_for(self, owner_id: str) -> Outcome:
        if self.is_tie:
            return Outcome.TIE
        return Outcome.WIN if self.winner == owner_id else Outcome.LOSS

    def sides(self) -> Tuple[Tuple[str, float, str, float], Tuple[str, float, str, float]]:
        """Both perspectives as (owner, points, opponent, opponent_points)."""
        return (
            (self.owner_a, self.points_a, self.owner_b, self.points_b),
            (self.owner_b, self.points_b, self.owner_a, self.points_a),
        )


@dataclass(frozen=True)
class WeeklyLineup:
    """
    One franchise's roster disposition for one week.

    ``from_snapshot`` marks an authoritative starters/bench/reserve snapshot;
    without one only ``starters`` is trusted.
    """
    season: int
    week: int
    owner_id: str
    roster_id: int
    starters: Tuple[str, ...] = ()
    bench: Tuple[str, ...] = ()
    reserve: Tuple[str, ...] = ()
    points: float = 0.0
    opponent_points: float = 0.0
    players_points: Dict[str, float] = field(default_factory=dict, compare=False, hash=False)
    from_snapshot: bool = False

    @property
    def played(self) -> bool:
        """A matchup counts as played once either side has scored."""
        return self.points > 0 or self.opponent_points > 0


@dataclass(frozen=True)
class BracketSets:
    """Bracket participants flattened across all rounds, as owner ids."""
    championship: FrozenSet[str] = frozenset()
    consolation: FrozenSet[str] = frozenset()

    @property
    def consolation_exposed(self) -> bool:
        return bool(self.consolation)


@dataclass(frozen=True)
class RosterSnapshot:
    """A franchise's current roster with its slot assignments."""
    owner_id: str
    roster_id: int
    player_ids: Tuple[str, ...] = ()
    starters: Tuple[str, ...] = ()
    reserve: Tuple[str, ...] = ()
    taxi: Tuple[str, ...] = ()


@dataclass
class SeasonData:
    """
    Immutable-by-convention partial result for one season.

    Produced by one season's fan-out and only read afterwards; merging into
    cross-season accumulators happens after every fetch has resolved.
    """
    season: Season
    scoring_rules: Dict[str, float] = field(default_factory=dict)
    events: List[RosterEvent] = field(default_factory=list)
    games: List[GamePlayed] = field(default_factory=list)
    lineups: List[WeeklyLineup] = field(default_factory=list)
    brackets: BracketSets = field(default_factory=BracketSets)
    rosters: List[RosterSnapshot] = field(default_factory=list)
    gaps: List[Gap] = field(default_factory=list)

    @property
    def year(self) -> int:
        return self.season.year

    def roster_of(self, owner_id: str) -> Optional[RosterSnapshot]:
        for roster in self.rosters:
            if roster.owner_id == owner_id:
                return roster
        return None

    def weeks_with_gaps(self, resource: str) -> List[int]:
        return sorted({g.week for g in self.gaps if g.resource == resource and g.week is not None})
