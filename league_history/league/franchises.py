"""
Franchise Directory

Joins stable owner ids and season-scoped roster ids through one lookup table
per season. Roster ids are reused across unrelated franchises between seasons,
so every cross-season key in the engine is the owner id.

Usage:
    directory = FranchiseDirectory(name_overrides={"3380...": "Double Trouble"})
    directory.add_season(2024, client.get_season_rosters(2024), client.get_season_users(2024))

    owner = directory.owner_for(2024, roster_id=5)
    name = directory.canonical_name(owner)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)


@dataclass
class Franchise:
    """Persistent team identity across seasons."""
    owner_id: str
    canonical_name: str
    roster_id_by_season: Dict[int, int] = field(default_factory=dict)


@dataclass
class _SeasonTable:
    owner_by_roster: Dict[int, str] = field(default_factory=dict)
    roster_by_owner: Dict[str, int] = field(default_factory=dict)
    team_names: Dict[str, str] = field(default_factory=dict)
    display_names: Dict[str, str] = field(default_factory=dict)


class FranchiseDirectory:
    """Season-scoped roster id <-> stable owner id lookup with canonical names."""

    def __init__(self, name_overrides: Optional[Dict[str, str]] = None):
        self.name_overrides = dict(name_overrides or {})
        self._seasons: Dict[int, _SeasonTable] = {}
        self._names: Dict[str, str] = {}

    def add_season(
        self,
        season: int,
        rosters: List[Dict[str, Any]],
        users: Optional[List[Dict[str, Any]]] = None,
    ) -> None:
        """Register one season's rosters (and optionally its users)."""
        table = _SeasonTable()
        users_by_id = {str(u.get("user_id")): u for u in (users or []) if u.get("user_id")}

        for roster in rosters:
            roster_id = roster.get("franchise_id")
            owner_id = roster.get("owner_id")
            if roster_id is None:
                continue
            if not owner_id:
                logger.warning(f"Season {season}: roster {roster_id} has no owner, skipping")
                continue
            owner_id = str(owner_id)
            table.owner_by_roster[int(roster_id)] = owner_id
            table.roster_by_owner[owner_id] = int(roster_id)

            user = users_by_id.get(owner_id, {})
            team_name = roster.get("team_name") or user.get("team_name")
            if team_name:
                table.team_names[owner_id] = str(team_name)
            if user.get("display_name"):
                table.display_names[owner_id] = str(user["display_name"])

        self._seasons[int(season)] = table
        self._names.clear()
        logger.debug(f"Season {season}: {len(table.owner_by_roster)} franchises registered")

    # -------------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------------

    def seasons(self) -> List[int]:
        return sorted(self._seasons)

    def owner_for(self, season: int, roster_id: Optional[int]) -> Optional[str]:
        if roster_id is None:
            return None
        table = self._seasons.get(int(season))
        if table is None:
            return None
        try:
            return table.owner_by_roster.get(int(roster_id))
        except (TypeError, ValueError):
            return None

    def roster_for(self, season: int, owner_id: str) -> Optional[int]:
        table = self._seasons.get(int(season))
        if table is None:
            return None
        return table.roster_by_owner.get(owner_id)

    def owners(self) -> List[str]:
        """Every owner id seen in any season, sorted for stable output."""
        seen = set()
        for table in self._seasons.values():
            seen.update(table.roster_by_owner)
        return sorted(seen)

    def canonical_name(self, owner_id: str) -> str:
        """
        Resolve the display name used for a franchise in every season.

        Order: configured override, latest season's team name, latest display
        name, then a generic label.
        """
        if owner_id in self._names:
            return self._names[owner_id]

        name = self.name_overrides.get(owner_id)
        if not name:
            for season in sorted(self._seasons, reverse=True):
                name = self._seasons[season].team_names.get(owner_id)
                if name:
                    break
        if not name:
            for season in sorted(self._seasons, reverse=True):
                name = self._seasons[season].display_names.get(owner_id)
                if name:
                    break
        name = name or f"Owner {owner_id}"
        self._names[owner_id] = name
        return name

    def franchise(self, owner_id: str) -> Franchise:
        return Franchise(
            owner_id=owner_id,
            canonical_name=self.canonical_name(owner_id),
            roster_id_by_season={
                season: table.roster_by_owner[owner_id]
                for season, table in sorted(self._seasons.items())
                if owner_id in table.roster_by_owner
            },
        )

    def resolve_owner(self, key: str) -> Optional[str]:
        """Accept an owner id or a canonical team name (case-insensitive)."""
        owners = self.owners()
        if key in owners:
            return key
        lowered = key.strip().lower()
        for owner_id in owners:
            if self.canonical_name(owner_id).lower() == lowered:
                return owner_id
        return None
