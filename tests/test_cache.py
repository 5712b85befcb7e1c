"""Tests for the read-through TTL cache."""

from league_history.lib.cache import TTLCache


class TestExpiry:

    def test_get_returns_value_until_ttl(self, clock):
        cache = TTLCache(default_ttl=60, clock=clock)
        cache.set("k", [1, 2])
        clock.advance(59)
        assert cache.get("k") == [1, 2]
        clock.advance(1)
        assert cache.get("k") is None

    def test_per_call_ttl_overrides_default(self, clock):
        cache = TTLCache(default_ttl=60, clock=clock)
        cache.set("k", "v", ttl=5)
        clock.advance(6)
        assert cache.get("k") is None

    def test_expired_entry_still_visible_as_raw_entry(self, clock):
        cache = TTLCache(default_ttl=1, clock=clock)
        cache.set("k", "v")
        clock.advance(10)
        entry = cache.get_entry("k")
        assert entry is not None and entry.value == "v"

    def test_stats_count_hits_and_misses(self, clock):
        cache = TTLCache(clock=clock)
        cache.get("missing")
        cache.set("k", 1)
        cache.get("k")
        assert cache.stats["hits"] == 1
        assert cache.stats["misses"] == 1


class TestEmptySuspicion:

    def test_recent_non_empty_value_survives_sudden_empty(self, clock):
        cache = TTLCache(default_ttl=30, clock=clock, empty_grace=600)
        cache.set("rosters", [{"roster_id": 1}])
        clock.advance(45)

        kept = cache.set("rosters", [])

        assert kept == [{"roster_id": 1}]
        assert cache.get("rosters") == [{"roster_id": 1}]
        assert cache.stats["stale_kept"] == 1

    def test_empty_accepted_after_grace_window(self, clock):
        cache = TTLCache(default_ttl=30, clock=clock, empty_grace=600)
        cache.set("rosters", [{"roster_id": 1}])
        clock.advance(601)

        assert cache.set("rosters", []) == []
        assert cache.get("rosters") == []

    def test_grace_window_measured_from_original_store(self, clock):
        cache = TTLCache(default_ttl=30, clock=clock, empty_grace=100)
        cache.set("k", [1])
        clock.advance(60)
        cache.set("k", [])
        clock.advance(60)
        assert cache.set("k", []) == []

    def test_empty_replacing_empty_is_plain_set(self, clock):
        cache = TTLCache(clock=clock)
        cache.set("k", [])
        assert cache.set("k", {}) == {}
        assert cache.stats["stale_kept"] == 0


def test_invalidate_one_and_all(clock):
    cache = TTLCache(clock=clock)
    cache.set("a", 1)
    cache.set("b", 2)
    cache.invalidate("a")
    assert cache.get("a") is None
    assert len(cache) == 1
    cache.invalidate()
    assert len(cache) == 0
