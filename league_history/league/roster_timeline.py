"""
Roster Timeline Reconstructor

Replays Acquisition/Release events for one franchise across seasons and
answers, per player, "when did this franchise most recently acquire them?".

Each player's ownership is a two-state machine (ABSENT / HELD) driven by two
transition functions. A release at or after the current acquisition purges
it; a same-instant gain and loss resolves to the loss because events are
ordered gain-before-loss.

Usage:
    timeline = reconstruct_roster_timeline(events, owner_id="3380...")
    acq = timeline.last_acquisition("4046")   # Acquisition or None
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Dict, Iterable, List, Optional, Tuple

from league_history.league.models import Acquisition, Release, RosterEvent, event_order_key

logger = logging.getLogger(__name__)


class OwnershipState(str, Enum):
    ABSENT = "absent"
    HELD = "held"


@dataclass(frozen=True)
class PlayerTenure:
    """Ownership state of one player with respect to one franchise."""
    player: str
    state: OwnershipState = OwnershipState.ABSENT
    acquisition: Optional[Acquisition] = None

    @property
    def held(self) -> bool:
        return self.state is OwnershipState.HELD


def apply_acquisition(tenure: PlayerTenure, event: Acquisition) -> PlayerTenure:
    """Keep the later of the current and the new acquisition."""
    if tenure.held and tenure.acquisition is not None and tenure.acquisition.ts >= event.ts:
        return tenure
    return PlayerTenure(player=tenure.player, state=OwnershipState.HELD, acquisition=event)


def apply_release(tenure: PlayerTenure, event: Release) -> PlayerTenure:
    """Purge the acquisition when the release is at or after it."""
    if not tenure.held or tenure.acquisition is None:
        return PlayerTenure(player=tenure.player)
    if event.ts >= tenure.acquisition.ts:
        return PlayerTenure(player=tenure.player)
    return tenure


def apply_event(tenure: PlayerTenure, event: RosterEvent) -> PlayerTenure:
    if isinstance(event, Acquisition):
        return apply_acquisition(tenure, event)
    return apply_release(tenure, event)


@dataclass
class RosterTimeline:
    """Per-player ordered events and final tenure for one franchise."""
    owner_id: str
    seasons: Tuple[int, ...] = ()
    events_by_player: Dict[str, List[RosterEvent]] = field(default_factory=dict)
    tenures: Dict[str, PlayerTenure] = field(default_factory=dict)

    def last_acquisition(self, player: str) -> Optional[Acquisition]:
        tenure = self.tenures.get(player)
        return tenure.acquisition if tenure is not None and tenure.held else None

    def current_players(self) -> List[str]:
        return sorted(p for p, t in self.tenures.items() if t.held)

    def as_dict(self) -> Dict[str, Optional[Dict[str, int]]]:
        """player -> {ts, season, week} of the most recent acquisition, or None."""
        out: Dict[str, Optional[Dict[str, int]]] = {}
        for player in sorted(self.tenures):
            acq = self.last_acquisition(player)
            out[player] = None if acq is None else {"ts": acq.ts, "season": acq.season, "week": acq.week}
        return out


def reconstruct_roster_timeline(
    events: Iterable[RosterEvent],
    owner_id: str,
    seasons: Optional[Iterable[int]] = None,
) -> RosterTimeline:
    """
    Replay one franchise's roster events chronologically.

    Args:
        events: Events from any number of seasons (any order)
        owner_id: Stable franchise identity
        seasons: Restrict to these seasons (all when None)

    Returns:
        RosterTimeline with per-player tenure after the last event
    """
    season_filter = set(seasons) if seasons is not None else None
    mine = [
        e for e in events
        if e.owner_id == owner_id and (season_filter is None or e.season in season_filter)
    ]
    mine.sort(key=event_order_key)

    timeline = RosterTimeline(
        owner_id=owner_id,
        seasons=tuple(sorted(season_filter)) if season_filter is not None else tuple(sorted({e.season for e in mine})),
    )
    for event in mine:
        timeline.events_by_player.setdefault(event.player, []).append(event)
        tenure = timeline.tenures.get(event.player, PlayerTenure(player=event.player))
        timeline.tenures[event.player] = apply_event(tenure, event)

    logger.debug(
        f"Timeline for {owner_id}: {len(mine)} events, {len(timeline.current_players())} players held"
    )
    return timeline
