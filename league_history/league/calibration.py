"""
Win-Probability Calibration

Fits Platt scaling (p = sigmoid(a * logit(p_raw) + b)) per bucket of
fraction-of-game-remaining, from completed matchups replayed at synthetic
checkpoints. The raw probability is a normal approximation built from
positional scoring defaults.

The fitting procedure is separate from its consumers:
    dataset = build_dataset(games, lineups, players)
    model = train(dataset)
    p = apply(0.62, fraction_remaining=0.5, model=model)
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Mapping, Sequence, Tuple

import numpy as np
from scipy.stats import norm

from league_history.league.models import GamePlayed, WeeklyLineup

logger = logging.getLogger(__name__)

POS_DEFAULT_MEAN = {"QB": 18.0, "RB": 13.0, "WR": 13.0, "TE": 8.0, "K": 8.0, "DEF": 8.0}
POS_DEFAULT_SD = {"QB": 8.0, "RB": 7.0, "WR": 7.0, "TE": 5.0, "K": 4.0, "DEF": 6.0}
FALLBACK_MEAN = 10.0
FALLBACK_SD = 6.0

SAMPLE_FRACTIONS = (0.9, 0.7, 0.5, 0.3, 0.1)
BUCKET_RANGES: Tuple[Tuple[float, float], ...] = (
    (0.8, 1.01),
    (0.6, 0.8),
    (0.4, 0.6),
    (0.2, 0.4),
    (0.0, 0.2),
)
MIN_BUCKET_SAMPLES = 10
TRAIN_STEPS = 300
LEARNING_RATE = 0.05
P_EPSILON = 1e-6


def _clamp(p):
    return np.clip(p, P_EPSILON, 1 - P_EPSILON)


def _logit(p):
    p = _clamp(p)
    return np.log(p / (1 - p))


def _sigmoid(z):
    return 1.0 / (1.0 + np.exp(-z))


@dataclass
class CalibrationBucket:
    lo: float
    hi: float
    a: float = 1.0
    b: float = 0.0
    n: int = 0

    def contains(self, fraction: float) -> bool:
        return self.lo <= fraction < self.hi


@dataclass
class WinProbabilityModel:
    buckets: List[CalibrationBucket] = field(default_factory=list)
    trained_at: str = ""
    pos_mean: Dict[str, float] = field(default_factory=lambda: dict(POS_DEFAULT_MEAN))
    pos_sd: Dict[str, float] = field(default_factory=lambda: dict(POS_DEFAULT_SD))

    def bucket_for(self, fraction: float) -> CalibrationBucket:
        for bucket in self.buckets:
            if bucket.contains(fraction):
                return bucket
        return self.buckets[0]


@dataclass
class CalibrationDataset:
    """Logit of the raw probability and the observed outcome per sample."""
    fractions: List[float] = field(default_factory=list)
    z: List[float] = field(default_factory=list)
    y: List[float] = field(default_factory=list)

    def __len__(self) -> int:
        return len(self.z)


# =============================================================================
# DATASET
# =============================================================================

def _positional_prior(starters: Sequence[str], players: Mapping[str, Mapping[str, Any]]) -> Tuple[float, float]:
    """Sum of positional means and variances across a lineup."""
    mean = var = 0.0
    for pid in starters:
        pos = str((players.get(pid) or {}).get("position") or "").upper()
        mean += POS_DEFAULT_MEAN.get(pos, FALLBACK_MEAN)
        var += POS_DEFAULT_SD.get(pos, FALLBACK_SD) ** 2
    return mean, var


def raw_probability(
    current_a: float,
    current_b: float,
    prior_a: Tuple[float, float],
    prior_b: Tuple[float, float],
    fraction_remaining: float,
) -> float:
    """P(a finishes ahead) from current scores plus expected remaining output."""
    pred_a = current_a + prior_a[0] * fraction_remaining
    pred_b = current_b + prior_b[0] * fraction_remaining
    var_diff = (prior_a[1] + prior_b[1]) * max(0.05, fraction_remaining)
    k = np.sqrt(max(1.0, var_diff))
    return float(norm.cdf((pred_a - pred_b) / k))


def build_dataset(
    games: Iterable[GamePlayed],
    lineups: Iterable[WeeklyLineup],
    players: Mapping[str, Mapping[str, Any]],
) -> CalibrationDataset:
    """Replay each completed game at every sample fraction."""
    starters_by_key = {(lu.season, lu.week, lu.owner_id): lu.starters for lu in lineups}
    dataset = CalibrationDataset()

    for game in games:
        if game.points_a == 0 and game.points_b == 0:
            continue
        y = 1.0 if game.points_a > game.points_b else 0.0 if game.points_a < game.points_b else 0.5
        prior_a = _positional_prior(starters_by_key.get((game.season, game.week, game.owner_a), ()), players)
        prior_b = _positional_prior(starters_by_key.get((game.season, game.week, game.owner_b), ()), players)

        for t in SAMPLE_FRACTIONS:
            completed = 1 - t
            p_raw = raw_probability(game.points_a * completed, game.points_b * completed, prior_a, prior_b, t)
            dataset.fractions.append(t)
            dataset.z.append(float(_logit(p_raw)))
            dataset.y.append(y)

    logger.info(f"Calibration dataset: {len(dataset)} samples")
    return dataset


# =============================================================================
# TRAIN / APPLY
# =============================================================================

def fit_platt(z: np.ndarray, y: np.ndarray, steps: int = TRAIN_STEPS, lr: float = LEARNING_RATE) -> Tuple[float, float]:
    """Single-feature logistic regression by batch gradient descent from (1, 0)."""
    a, b = 1.0, 0.0
    for _ in range(steps):
        err = _sigmoid(a * z + b) - y
        a -= lr * float(np.mean(err * z))
        b -= lr * float(np.mean(err))
    return a, b


def train(dataset: CalibrationDataset) -> WinProbabilityModel:
    """Fit one (a, b) per bucket; buckets with too few samples stay identity."""
    fractions = np.asarray(dataset.fractions, dtype=float)
    z = np.asarray(dataset.z, dtype=float)
    y = np.asarray(dataset.y, dtype=float)

    model = WinProbabilityModel(trained_at=datetime.now(timezone.utc).isoformat())
    for lo, hi in BUCKET_RANGES:
        mask = (fractions >= lo) & (fractions < hi)
        bucket = CalibrationBucket(lo=lo, hi=hi, n=int(mask.sum()))
        if bucket.n >= MIN_BUCKET_SAMPLES:
            bucket.a, bucket.b = fit_platt(z[mask], y[mask])
        model.buckets.append(bucket)
        logger.debug(f"Bucket [{lo}, {hi}): n={bucket.n} a={bucket.a:.4f} b={bucket.b:.4f}")
    return model


def apply(raw_p: float, fraction_remaining: float, model: WinProbabilityModel) -> float:
    """Calibrated probability, clamped away from 0 and 1."""
    bucket = model.bucket_for(fraction_remaining)
    p = _sigmoid(bucket.a * _logit(raw_p) + bucket.b)
    return float(_clamp(p))
