"""
League history engine for a Sleeper dynasty league.

Reconstructs roster ownership and taxi-squad eligibility from transaction
history, classifies every game, and builds the record book, season scoring
totals and awards across all configured seasons.

Modules:
    config: League ids and engine settings (YAML + environment)
    errors: Exception types shared across the engine
    history: LeagueHistory facade and the ``league-history`` CLI
    lib: Sleeper API gateway and its TTL cache
    league: Pure derivation functions over the normalized event stream
"""

__version__ = "1.0.0"
