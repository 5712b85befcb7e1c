"""
Read-through TTL cache for upstream responses.

The cache is injected into the gateway so the host process controls its
lifetime, and the clock is injectable so expiry is testable without sleeping.

Empty-value suspicion: the Sleeper API occasionally answers with an empty
list for a resource that was populated moments earlier. When a fresh value is
empty but the previous value for the same key was non-empty and was stored
within ``empty_grace`` seconds, the stale non-empty value is kept.

Usage:
    from league_history.lib.cache import TTLCache

    cache = TTLCache(default_ttl=300)
    value = cache.get(("matchups", 2024, 3))
    if value is None:
        value = cache.set(("matchups", 2024, 3), fetch(), ttl=120)
"""

from __future__ import annotations

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Hashable, Optional

logger = logging.getLogger(__name__)


@dataclass
class CacheEntry:
    """A cached value with its storage and expiry times (clock seconds)."""
    value: Any
    stored_at: float
    expires_at: float


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    try:
        return len(value) == 0
    except TypeError:
        return False


class TTLCache:
    """
    Thread-safe in-memory cache with per-entry TTL.

    Features:
    - Explicit get/set/invalidate
    - Per-call TTL override (per resource type in the gateway)
    - Stale non-empty values preferred over sudden empties within a grace window
    """

    def __init__(
        self,
        default_ttl: float = 300.0,
        clock: Callable[[], float] = time.monotonic,
        empty_grace: float = 600.0,
    ):
        self.default_ttl = default_ttl
        self.empty_grace = empty_grace
        self._clock = clock
        self._entries: Dict[Hashable, CacheEntry] = {}
        self._lock = threading.Lock()

        # Stats tracking
        self.stats = {
            "hits": 0,
            "misses": 0,
            "stale_kept": 0,
        }

    def get(self, key: Hashable) -> Optional[Any]:
        """Return the cached value, or None when missing or expired."""
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is None or entry.expires_at <= now:
                self.stats["misses"] += 1
                return None
            self.stats["hits"] += 1
            return entry.value

    def get_entry(self, key: Hashable) -> Optional[CacheEntry]:
        """Return the raw entry even if it has expired."""
        with self._lock:
            return self._entries.get(key)

    def set(self, key: Hashable, value: Any, ttl: Optional[float] = None) -> Any:
        """
        Store a value and return the value actually retained.

        The return value differs from ``value`` only when a suspicious empty
        replaced a recent non-empty entry.
        """
        now = self._clock()
        ttl = self.default_ttl if ttl is None else ttl
        with self._lock:
            previous = self._entries.get(key)
            if (
                _is_empty(value)
                and previous is not None
                and not _is_empty(previous.value)
                and now - previous.stored_at <= self.empty_grace
            ):
                self.stats["stale_kept"] += 1
                logger.warning(
                    f"Upstream returned empty for {key!r}; keeping value cached "
                    f"{now - previous.stored_at:.0f}s ago"
                )
                # Keep the original stored_at so the grace window stays bounded
                previous.expires_at = now + ttl
                return previous.value

            self._entries[key] = CacheEntry(value=value, stored_at=now, expires_at=now + ttl)
            return value

    def invalidate(self, key: Optional[Hashable] = None) -> None:
        """Drop one key, or everything when key is None."""
        with self._lock:
            if key is None:
                self._entries.clear()
            else:
                self._entries.pop(key, None)

    def __len__(self) -> int:
        with self._lock:
            return len(self._entries)
