"""
Error types shared across the league history engine.

The engine never lets a single failed fetch abort a whole computation:
transient failures are retried by the gateway and then surface as gaps,
absent data is an empty result, and invariant violations are logged and
excluded from category-specific aggregates.
"""

from __future__ import annotations

from typing import Optional


class LeagueHistoryError(Exception):
    """Base exception for league history errors."""
    pass


class TransientFetchError(LeagueHistoryError):
    """Raised when a retryable fetch still fails after the retry budget."""

    def __init__(
        self,
        message: str,
        resource: Optional[str] = None,
        status_code: Optional[int] = None,
        attempts: int = 0,
    ):
        super().__init__(message)
        self.resource = resource
        self.status_code = status_code
        self.attempts = attempts


class FetchCancelled(LeagueHistoryError):
    """Raised when the cooperative cancel signal is set. Never retried."""
    pass


class DataAbsentError(LeagueHistoryError):
    """The upstream has nothing for this request (e.g. no league that season)."""
    pass


class InvariantViolation(LeagueHistoryError):
    """A source fact contradicts a model invariant (e.g. mixed bracket membership)."""

    def __init__(self, message: str, season: Optional[int] = None, week: Optional[int] = None):
        super().__init__(message)
        self.season = season
        self.week = week
