"""
Game Classifier

Labels every played pairing as regular season, championship bracket
(playoff), consolation bracket, or ambiguous. The label is a pure function
of the week, the season's playoff start week and the flattened bracket
participant sets; it is never taken from the source data.

When the consolation bracket is not exposed, any post-season pairing with
neither side in the championship set is labelled consolation. That fallback
can mislabel leagues with byes or uneven bracket sizes, so records produced
by it carry ``category_inferred=True``.
"""

from __future__ import annotations

import logging
from typing import AbstractSet, Iterable, List, Optional

from league_history.errors import InvariantViolation
from league_history.league.models import BracketSets, GameCategory, GamePlayed, GameRecord

logger = logging.getLogger(__name__)


def classify_game(
    week: int,
    owner_a: str,
    owner_b: str,
    playoff_start_week: int,
    championship: AbstractSet[str],
    consolation: Optional[AbstractSet[str]] = None,
) -> GameCategory:
    """Category for one pairing; deterministic in its arguments."""
    if week < playoff_start_week:
        return GameCategory.REGULAR

    a_in_champ = owner_a in championship
    b_in_champ = owner_b in championship
    if a_in_champ and b_in_champ:
        return GameCategory.PLAYOFF

    if consolation:
        if owner_a in consolation and owner_b in consolation:
            return GameCategory.CONSOLATION
    elif not a_in_champ and not b_in_champ:
        return GameCategory.CONSOLATION

    return GameCategory.AMBIGUOUS


def classify_games(
    games: Iterable[GamePlayed],
    playoff_start_week: int,
    brackets: BracketSets,
) -> List[GameRecord]:
    """
    Classify a season's games.

    Ambiguous games are logged and kept; aggregators drop them from
    category-specific views but still count them in all-time totals.
    """
    records: List[GameRecord] = []
    for game in games:
        category = classify_game(
            game.week,
            game.owner_a,
            game.owner_b,
            playoff_start_week,
            brackets.championship,
            brackets.consolation,
        )
        inferred = category is GameCategory.CONSOLATION and not brackets.consolation_exposed
        if category is GameCategory.AMBIGUOUS:
            violation = InvariantViolation(
                f"Mixed bracket membership for {game.owner_a} vs {game.owner_b}",
                season=game.season,
                week=game.week,
            )
            logger.warning(f"Season {game.season} week {game.week}: {violation}")

        records.append(GameRecord(
            season=game.season,
            week=game.week,
            owner_a=game.owner_a,
            points_a=game.points_a,
            owner_b=game.owner_b,
            points_b=game.points_b,
            category=category,
            category_inferred=inferred,
        ))
    return records
