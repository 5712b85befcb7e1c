"""
League Derivation Module

Pure functions over the normalized per-season event stream.

Modules:
    models.py - Events, classified games, lineups, gaps
    franchises.py - Owner id <-> season roster id directory
    normalize.py - Raw payloads to canonical events
    roster_timeline.py - Most-recent-acquisition replay
    classify.py - Regular / playoff / consolation labelling
    eligibility.py - Taxi squad activation state machine and report
    records.py - Record book, splits, head-to-head
    scoring.py - Custom scoring season totals
    awards.py - MVP / Rookie of the Year
    calibration.py - Win-probability Platt scaling
"""

from league_history.league.awards import resolve_awards
from league_history.league.classify import classify_game, classify_games
from league_history.league.eligibility import build_eligibility_report, compute_eligibility
from league_history.league.records import compute_record_book
from league_history.league.roster_timeline import reconstruct_roster_timeline
from league_history.league.scoring import compute_season_totals

__all__ = [
    "reconstruct_roster_timeline",
    "classify_game",
    "classify_games",
    "compute_eligibility",
    "build_eligibility_report",
    "compute_record_book",
    "compute_season_totals",
    "resolve_awards",
]
