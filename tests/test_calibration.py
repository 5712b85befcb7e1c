"""Tests for win-probability calibration."""

import pytest

from league_history.league.calibration import (
    MIN_BUCKET_SAMPLES,
    P_EPSILON,
    SAMPLE_FRACTIONS,
    CalibrationDataset,
    WinProbabilityModel,
    CalibrationBucket,
    apply,
    build_dataset,
    raw_probability,
    train,
)

from factories import OWNER_A, OWNER_B, game, lineup

PLAYERS = {"qb": {"position": "QB"}, "rb": {"position": "RB"}, "te": {"position": "TE"}}


def identity_model():
    return WinProbabilityModel(buckets=[CalibrationBucket(lo=0.0, hi=1.01)])


def test_raw_probability_is_even_for_even_game():
    assert raw_probability(50.0, 50.0, (30.0, 100.0), (30.0, 100.0), 0.5) == pytest.approx(0.5)
    assert raw_probability(120.0, 60.0, (0.0, 0.0), (0.0, 0.0), 0.0) > 0.99


def test_dataset_has_one_sample_per_fraction_per_game():
    games = [game(1, 110.0, 100.0), game(2, 90.0, 90.0), game(3, 0.0, 0.0)]
    lineups = [lineup(1, ["qb", "rb"]), lineup(1, ["te"], owner=OWNER_B)]
    dataset = build_dataset(games, lineups, PLAYERS)

    assert len(dataset) == 2 * len(SAMPLE_FRACTIONS)
    assert dataset.fractions[:5] == list(SAMPLE_FRACTIONS)
    assert set(dataset.y[:5]) == {1.0}
    assert set(dataset.y[5:]) == {0.5}


def test_small_buckets_stay_identity():
    model = train(build_dataset([game(1, 110.0, 100.0)], [], PLAYERS))
    assert len(model.buckets) == 5
    assert all((b.a, b.b) == (1.0, 0.0) for b in model.buckets)
    assert all(b.n == 1 for b in model.buckets)


def test_buckets_with_enough_samples_are_fitted():
    games = [
        game(week, 120.0, 90.0) if week % 3 else game(week, 95.0, 110.0, owner_a=OWNER_A)
        for week in range(1, MIN_BUCKET_SAMPLES + 3)
    ]
    model = train(build_dataset(games, [], PLAYERS))

    assert all(b.n == len(games) for b in model.buckets)
    assert any((b.a, b.b) != (1.0, 0.0) for b in model.buckets)
    assert model.trained_at


def test_empty_dataset_trains_identity_model():
    model = train(CalibrationDataset())
    assert all(b.n == 0 and b.a == 1.0 for b in model.buckets)


def test_apply_identity_and_clamping():
    model = identity_model()
    assert apply(0.62, 0.5, model) == pytest.approx(0.62)
    assert apply(1.0, 0.5, model) <= 1 - P_EPSILON
    assert apply(0.0, 0.5, model) >= P_EPSILON


def test_bucket_lookup_covers_the_edges():
    model = train(CalibrationDataset())
    assert model.bucket_for(1.0).lo == 0.8
    assert model.bucket_for(0.0).hi == 0.2
    assert model.bucket_for(0.5).lo == 0.4
