"""Tests for game classification."""

import pytest

from league_history.league.classify import classify_game, classify_games
from league_history.league.models import BracketSets, GameCategory

from factories import OWNER_A, OWNER_B, OWNER_C, OWNER_D, game

CHAMP = frozenset({OWNER_A, OWNER_B})
CONSOLATION = frozenset({OWNER_C, OWNER_D})


@pytest.mark.parametrize(
    "week, a, b, consolation, expected",
    [
        (14, OWNER_A, OWNER_C, CONSOLATION, GameCategory.REGULAR),
        (15, OWNER_A, OWNER_B, CONSOLATION, GameCategory.PLAYOFF),
        (16, OWNER_C, OWNER_D, CONSOLATION, GameCategory.CONSOLATION),
        (15, OWNER_A, OWNER_C, CONSOLATION, GameCategory.AMBIGUOUS),
        (15, OWNER_C, OWNER_D, frozenset(), GameCategory.CONSOLATION),
        (15, OWNER_A, OWNER_C, frozenset(), GameCategory.AMBIGUOUS),
        (15, OWNER_C, "owner-x", CONSOLATION, GameCategory.AMBIGUOUS),
    ],
)
def test_classify_game(week, a, b, consolation, expected):
    assert classify_game(week, a, b, 15, CHAMP, consolation) is expected


def test_classification_is_deterministic():
    results = {classify_game(16, OWNER_A, OWNER_C, 15, CHAMP, CONSOLATION) for _ in range(20)}
    assert len(results) == 1


def test_fallback_consolation_is_flagged_inferred():
    records = classify_games(
        [game(16, 90, 80, OWNER_C, OWNER_D), game(16, 120, 100, OWNER_A, OWNER_B)],
        15,
        BracketSets(championship=CHAMP),
    )
    assert [(r.category, r.category_inferred) for r in records] == [
        (GameCategory.CONSOLATION, True),
        (GameCategory.PLAYOFF, False),
    ]


def test_exposed_consolation_is_not_inferred():
    records = classify_games([game(16, 90, 80, OWNER_C, OWNER_D)], 15, BracketSets(CHAMP, CONSOLATION))
    assert records[0].category is GameCategory.CONSOLATION
    assert not records[0].category_inferred


def test_ambiguous_games_are_kept_and_logged(caplog):
    records = classify_games([game(15, 100, 90, OWNER_A, OWNER_C)], 15, BracketSets(CHAMP, CONSOLATION))
    assert records[0].category is GameCategory.AMBIGUOUS
    assert "Mixed bracket membership" in caplog.text
