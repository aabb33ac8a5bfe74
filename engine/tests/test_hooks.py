"""Tests for hooks.py and notification failure isolation."""

from __future__ import annotations

import fnmatch
import json
from unittest.mock import MagicMock, patch

from league_xp.db import Notification
from league_xp.hooks import (
    Hooks,
    NullBroadcaster,
    NullCache,
    RedisBroadcaster,
    RedisCache,
    defer_until_commit,
    league_key,
    match_key,
    player_key,
)
from league_xp.services.notifications import notify_motm_vote
from league_xp.services.stats import submit_stats
from league_xp.services.votes import record_vote


class TestDeferredHooks:
    """Hooks run only after the outermost transaction commits."""

    def test_runs_after_commit(self, session, world):
        fn = MagicMock()
        world.home[1].xp = 5
        defer_until_commit(session, "test", fn, "a")

        fn.assert_not_called()
        session.commit()
        fn.assert_called_once_with("a")

    def test_dropped_on_rollback(self, session, world):
        fn = MagicMock()
        world.home[1].xp = 5
        defer_until_commit(session, "test", fn)

        session.rollback()
        session.commit()

        fn.assert_not_called()

    def test_savepoint_rollback_keeps_queue(self, session, world):
        fn = MagicMock()
        savepoint = session.begin_nested()
        defer_until_commit(session, "test", fn)
        savepoint.rollback()
        session.commit()
        fn.assert_called_once()

    def test_failure_is_swallowed(self, session, world):
        failing = MagicMock(side_effect=RuntimeError("cache down"))
        after = MagicMock()
        world.home[1].xp = 5
        defer_until_commit(session, "failing", failing)
        defer_until_commit(session, "after", after)

        session.commit()

        failing.assert_called_once()
        after.assert_called_once()
        assert world.home[1].xp == 5


class TestHooksFromServices:
    """Mutating services invalidate caches and broadcast after commit."""

    def test_vote_invalidates_and_broadcasts(self, session, world, make_match):
        match = make_match()
        hooks = Hooks(cache=MagicMock(), broadcaster=MagicMock())

        record_vote(session, match.id, world.away[1].id, world.home[1].id, hooks)
        hooks.broadcaster.publish.assert_not_called()
        session.commit()

        invalidated = {c.args[0] for c in hooks.cache.invalidate_by_prefix.call_args_list}
        assert invalidated == {
            league_key(world.league.id),
            match_key(match.id),
            player_key(world.home[1].id),
        }
        hooks.broadcaster.publish.assert_called_once_with(
            "vote_updated",
            {
                "matchId": match.id,
                "leagueId": world.league.id,
                "playerId": world.home[1].id,
                "action": "vote_updated",
            },
        )

    def test_broken_cache_does_not_block_broadcast(self, session, world, make_match):
        match = make_match()
        cache = MagicMock()
        cache.invalidate_by_prefix.side_effect = ConnectionError("redis down")
        hooks = Hooks(cache=cache, broadcaster=MagicMock())

        submit_stats(session, match.id, world.home[1].id, {"goals": 1}, hooks)
        session.commit()

        hooks.broadcaster.publish.assert_called_once()
        assert hooks.broadcaster.publish.call_args.args[0] == "stats_updated"

    def test_failed_write_fires_nothing(self, session, world, make_match):
        match = make_match()
        hooks = Hooks(cache=MagicMock(), broadcaster=MagicMock())

        record_vote(session, match.id, world.away[1].id, world.home[1].id, hooks)
        session.rollback()

        hooks.cache.invalidate_by_prefix.assert_not_called()
        hooks.broadcaster.publish.assert_not_called()


class TestNotificationIsolation:
    def test_failed_notification_returns_zero(self, session, world, make_match):
        match = make_match()
        with patch("league_xp.services.notifications.Notification", side_effect=RuntimeError("boom")):
            assert notify_motm_vote(session, match, world.home[1].id) == 0

        world.home[1].xp = 7
        session.commit()
        assert world.home[1].xp == 7
        assert session.query(Notification).count() == 0

    def test_vote_survives_notification_failure(self, session, world, make_match, publish):
        match = make_match()
        publish(match, 1, 0)
        with patch("league_xp.services.notifications.Notification", side_effect=RuntimeError("boom")):
            record_vote(session, match.id, world.away[1].id, world.home[1].id)
        session.commit()
        assert world.home[1].xp == 32


class TestNullBackends:
    def test_null_cache(self):
        cache = NullCache()
        cache.set("k", 1)
        assert cache.get("k") is None
        assert cache.invalidate_by_prefix("k") == 0

    def test_null_broadcaster(self):
        assert NullBroadcaster().publish("x", {}) is None


class TestRedisBackends:
    """Redis-backed hooks with a mocked client."""

    def test_cache_round_trip_uses_namespace(self):
        client = MagicMock()
        with patch("redis.from_url", return_value=client):
            cache = RedisCache("redis://localhost:6379/0", namespace="lx", default_ttl=60)

        cache.set("league:1:leaderboard:50", [{"playerId": 1}])
        key, raw = client.set.call_args.args
        assert key == "lx:league:1:leaderboard:50"
        assert json.loads(raw) == [{"playerId": 1}]
        assert client.set.call_args.kwargs["ex"] == 60

        client.get.return_value = raw
        assert cache.get("league:1:leaderboard:50") == [{"playerId": 1}]

    def test_invalidate_by_prefix(self):
        client = MagicMock()
        client.scan_iter.return_value = iter([b"lx:match:3:stats", b"lx:match:3:votes"])
        client.delete.return_value = 3
        with patch("redis.from_url", return_value=client):
            cache = RedisCache("redis://localhost:6379/0", namespace="lx", default_ttl=60)

        assert cache.invalidate_by_prefix("match:3") == 3
        client.scan_iter.assert_called_once_with(match="lx:match:3:*", count=500)
        client.delete.assert_called_once_with("lx:match:3", b"lx:match:3:stats", b"lx:match:3:votes")

    def test_invalidate_stops_at_segment_boundary(self):
        client = MagicMock()
        client.scan_iter.return_value = iter([b"lx:league:1:leaderboard:50"])
        client.delete.return_value = 1
        with patch("redis.from_url", return_value=client):
            cache = RedisCache("redis://localhost:6379/0", namespace="lx", default_ttl=60)

        cache.invalidate_by_prefix(league_key(1))

        pattern = client.scan_iter.call_args.kwargs["match"]
        assert pattern == "lx:league:1:*"
        assert not fnmatch.fnmatchcase("lx:league:10:leaderboard:50", pattern)
        assert not fnmatch.fnmatchcase("lx:league:11", pattern)
        assert fnmatch.fnmatchcase("lx:league:1:leaderboard:50", pattern)
        assert "lx:league:10" not in client.delete.call_args.args

    def test_invalidate_nothing(self):
        client = MagicMock()
        client.scan_iter.return_value = iter([])
        client.delete.return_value = 0
        with patch("redis.from_url", return_value=client):
            cache = RedisCache("redis://localhost:6379/0", namespace="lx", default_ttl=60)
        assert cache.invalidate_by_prefix("player:1") == 0
        client.delete.assert_called_once_with("lx:player:1")

    def test_broadcaster_publishes_json(self):
        client = MagicMock()
        with patch("redis.from_url", return_value=client):
            broadcaster = RedisBroadcaster("redis://localhost:6379/0", channel="events")

        broadcaster.publish("match_updated", {"matchId": 1})

        channel, raw = client.publish.call_args.args
        assert channel == "events"
        message = json.loads(raw)
        assert message["event"] == "match_updated"
        assert message["payload"] == {"matchId": 1}
        assert "ts" in message
