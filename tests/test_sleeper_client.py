"""Tests for the Sleeper gateway: retries, cancellation, caching, payload mapping."""

import threading

import pytest
import requests

from league_history.errors import DataAbsentError, FetchCancelled, TransientFetchError
from league_history.lib.cache import TTLCache
from league_history.lib.sleeper_client import SleeperClient

from conftest import FakeResponse, FakeSession

LEAGUE = "L1"


def make_client(script, settings, cancel_event=None, cache=None):
    session = FakeSession(script)
    client = SleeperClient({2024: LEAGUE}, settings, cache=cache, session=session, cancel_event=cancel_event)
    return client, session


# =========================================================================
# Retry and backoff
# =========================================================================


class TestRetries:

    def test_retries_server_error_then_succeeds(self, fast_settings):
        client, session = make_client(
            {f"league/{LEAGUE}/users": [FakeResponse(503), FakeResponse(200, [{"user_id": "u1"}])]},
            fast_settings,
        )
        users = client.get_season_users(2024)
        assert users[0]["user_id"] == "u1"
        assert len(session.calls) == 2

    def test_connection_error_is_retryable(self, fast_settings):
        client, session = make_client(
            {f"league/{LEAGUE}/users": [requests.exceptions.ConnectionError("reset"), FakeResponse(200, [])]},
            fast_settings,
        )
        assert client.get_season_users(2024) == []
        assert len(session.calls) == 2

    def test_truncated_body_is_retryable(self, fast_settings):
        broken = requests.exceptions.ChunkedEncodingError("Connection broken: IncompleteRead")
        client, session = make_client(
            {f"league/{LEAGUE}/users": [broken, FakeResponse(200, [{"user_id": "u1"}])]},
            fast_settings,
        )
        assert client.get_season_users(2024)[0]["user_id"] == "u1"
        assert len(session.calls) == 2

    def test_persistent_transport_error_becomes_transient(self, fast_settings):
        broken = requests.exceptions.ContentDecodingError("bad gzip")
        client, session = make_client({f"league/{LEAGUE}/users": [broken]}, fast_settings)
        with pytest.raises(TransientFetchError) as exc:
            client.get_season_users(2024)
        assert "ContentDecodingError" in str(exc.value)
        assert exc.value.status_code is None
        assert len(session.calls) == fast_settings.max_retries + 1

    def test_invalid_json_body_becomes_transient(self, fast_settings):
        client, session = make_client(
            {f"league/{LEAGUE}/users": [FakeResponse(200, ValueError("Expecting value"))]},
            fast_settings,
        )
        with pytest.raises(TransientFetchError) as exc:
            client.get_season_users(2024)
        assert exc.value.status_code == 200
        assert "invalid JSON body" in str(exc.value)
        assert len(session.calls) == fast_settings.max_retries + 1

    def test_gives_up_after_retry_budget(self, fast_settings):
        client, session = make_client({f"league/{LEAGUE}/users": [FakeResponse(429)]}, fast_settings)
        with pytest.raises(TransientFetchError) as exc:
            client.get_season_users(2024)
        assert exc.value.attempts == fast_settings.max_retries + 1
        assert exc.value.status_code == 429
        assert len(session.calls) == fast_settings.max_retries + 1

    def test_not_found_is_absent_not_retried(self, fast_settings):
        client, session = make_client({}, fast_settings)
        with pytest.raises(DataAbsentError):
            client.get_season_users(2024)
        assert len(session.calls) == 1

    def test_client_error_is_not_retried(self, fast_settings):
        client, session = make_client({f"league/{LEAGUE}/users": [FakeResponse(403)]}, fast_settings)
        with pytest.raises(requests.HTTPError):
            client.get_season_users(2024)
        assert len(session.calls) == 1

    def test_unconfigured_season_is_absent(self, fast_settings):
        client, session = make_client({}, fast_settings)
        with pytest.raises(DataAbsentError):
            client.get_season_rosters(2019)
        assert session.calls == []

    def test_backoff_is_capped(self, fast_settings, monkeypatch):
        monkeypatch.setattr("league_history.lib.sleeper_client.random.uniform", lambda a, b: 1.0)
        client, _ = make_client({}, fast_settings)
        assert client._backoff_delay(0) == pytest.approx(0.001)
        assert client._backoff_delay(10) == pytest.approx(fast_settings.backoff_cap)

    def test_backoff_jitter_never_exceeds_base(self, fast_settings, monkeypatch):
        monkeypatch.setattr("league_history.lib.sleeper_client.random.uniform", lambda a, b: a)
        client, _ = make_client({}, fast_settings)
        assert client._backoff_delay(0) == pytest.approx(0.0005)


# =========================================================================
# Cancellation
# =========================================================================


class TestCancellation:

    def test_cancelled_before_request_makes_no_call(self, fast_settings):
        cancel = threading.Event()
        cancel.set()
        client, session = make_client({f"league/{LEAGUE}/users": [FakeResponse(200, [])]}, fast_settings, cancel)
        with pytest.raises(FetchCancelled):
            client.get_season_users(2024)
        assert session.calls == []

    def test_cancel_during_backoff_is_not_retried(self, fast_settings):
        cancel = threading.Event()
        client, session = make_client({f"league/{LEAGUE}/users": [FakeResponse(503)]}, fast_settings, cancel)
        session.on_call = lambda url: cancel.set()

        with pytest.raises(FetchCancelled):
            client.get_season_users(2024)
        assert len(session.calls) == 1


# =========================================================================
# Caching and payload mapping
# =========================================================================


class TestPayloads:

    def test_second_read_is_served_from_cache(self, fast_settings):
        client, session = make_client(
            {f"league/{LEAGUE}/rosters": [FakeResponse(200, [{"roster_id": 1, "owner_id": "o1"}])]},
            fast_settings,
        )
        client.get_season_rosters(2024)
        client.get_season_rosters(2024)
        assert len(session.calls) == 1

    def test_injected_cache_is_used(self, fast_settings, clock):
        cache = TTLCache(clock=clock)
        client, _ = make_client(
            {f"league/{LEAGUE}/rosters": [FakeResponse(200, [{"roster_id": 1, "owner_id": "o1"}])]},
            fast_settings,
            cache=cache,
        )
        client.get_season_rosters(2024)
        assert len(cache) == 1

    def test_weekly_results_prefer_custom_points(self, fast_settings):
        rows = [
            {"roster_id": 1, "matchup_id": 1, "points": 100.0, "custom_points": 104.5,
             "starters": ["p1", "0"], "players": ["p1", "p2"], "players_points": {"p1": 20.5}},
            {"roster_id": 2, "matchup_id": 1, "points": 88.0, "custom_points": None,
             "starters": ["p3"], "players": ["p3"]},
        ]
        client, _ = make_client({f"league/{LEAGUE}/matchups/3": [FakeResponse(200, rows)]}, fast_settings)
        out = client.get_weekly_results(2024, 3)

        assert out[0]["points"] == 104.5
        assert out[0]["starters"] == ["p1"]
        assert out[0]["players_points"] == {"p1": 20.5}
        assert out[1]["points"] == 88.0

    def test_league_settings_defaults_playoff_start(self, fast_settings):
        league = {"settings": {}, "scoring_settings": {"pass_td": 4, "rec": 1.0, "bonus": "x"}}
        client, _ = make_client({f"league/{LEAGUE}": [FakeResponse(200, league)]}, fast_settings)
        settings = client.get_league_settings(2024)
        assert settings["playoff_start_week"] == 15
        assert settings["scoring_rules"] == {"pass_td": 4.0, "rec": 1.0}

    def test_missing_bracket_side_is_empty(self, fast_settings):
        winners = [{"r": 1, "m": 1, "t1": 1, "t2": 2, "w": 1, "l": 2}]
        client, _ = make_client(
            {f"league/{LEAGUE}/winners_bracket": [FakeResponse(200, winners)]}, fast_settings
        )
        brackets = client.get_brackets(2024)
        assert brackets["championship"] == winners
        assert brackets["consolation"] == []

    def test_failing_bracket_side_is_empty(self, fast_settings):
        client, _ = make_client(
            {
                f"league/{LEAGUE}/winners_bracket": [FakeResponse(200, [{"t1": 1, "t2": 2}])],
                f"league/{LEAGUE}/losers_bracket": [FakeResponse(500)],
            },
            fast_settings,
        )
        assert client.get_brackets(2024)["consolation"] == []

    def test_transactions_keep_leg_and_adds(self, fast_settings):
        txns = [{"transaction_id": "t1", "type": "waiver", "status": "complete", "created": 1700,
                 "adds": {"p1": 3}, "drops": None, "leg": 5}]
        client, _ = make_client({f"league/{LEAGUE}/transactions/5": [FakeResponse(200, txns)]}, fast_settings)
        out = client.get_transactions(2024, 5)
        assert out == [{"transaction_id": "t1", "type": "waiver", "status": "complete", "created": 1700,
                        "adds": {"p1": 3}, "drops": {}, "leg": 5}]

    def test_weekly_stats_accept_list_shape(self, fast_settings):
        stats = [{"player_id": "p1", "stats": {"pass_yd": 300}}]
        client, _ = make_client({"stats/nfl/regular/2024/2": [FakeResponse(200, stats)]}, fast_settings)
        assert client.get_player_weekly_stats(2024, 2) == {"p1": {"pass_yd": 300}}
