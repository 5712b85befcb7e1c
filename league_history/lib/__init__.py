"""
Gateway modules for the league history engine.

Modules:
    sleeper_client: Resilient Sleeper API client (retry, backoff, cancel)
    cache: Injectable read-through TTL cache
"""

from league_history.lib.cache import CacheEntry, TTLCache
from league_history.lib.sleeper_client import SleeperClient

__all__ = [
    "CacheEntry",
    "TTLCache",
    "SleeperClient",
]
