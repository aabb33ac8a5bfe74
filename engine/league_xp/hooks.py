"""Cache-invalidation and realtime-broadcast hooks.

The engine depends only on the CacheBackend and Broadcaster protocols.
Calls are queued on the session and run after the outermost transaction
commits; a rollback drops them. Hook failures are logged and swallowed,
never raised into the caller.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Protocol

from sqlalchemy import event
from sqlalchemy.orm import Session, SessionTransaction

from .logging import logger
from .utils.datetime_utils import now_utc

_PENDING_KEY = "league_xp.pending_hooks"


class CacheBackend(Protocol):
    def get(self, key: str) -> Any | None: ...

    def set(self, key: str, value: Any, ttl_seconds: int | None = None) -> None: ...

    def invalidate_by_prefix(self, prefix: str) -> int: ...


class Broadcaster(Protocol):
    def publish(self, event_name: str, payload: dict[str, Any]) -> None: ...


class NullCache:
    def get(self, key: str) -> Any | None:
        return None

    def set(self, key: str, value: Any, ttl_seconds: int | None = None) -> None:
        return None

    def invalidate_by_prefix(self, prefix: str) -> int:
        return 0


class NullBroadcaster:
    def publish(self, event_name: str, payload: dict[str, Any]) -> None:
        return None


class RedisCache:
    """Response cache stored in Redis as JSON, namespaced by a key prefix."""

    def __init__(self, redis_url: str, *, namespace: str, default_ttl: int) -> None:
        import redis

        self._client = redis.from_url(redis_url)
        self._namespace = namespace
        self._default_ttl = default_ttl

    def _key(self, key: str) -> str:
        return f"{self._namespace}:{key}"

    def get(self, key: str) -> Any | None:
        raw = self._client.get(self._key(key))
        if raw is None:
            return None
        return json.loads(raw)

    def set(self, key: str, value: Any, ttl_seconds: int | None = None) -> None:
        self._client.set(
            self._key(key), json.dumps(value, default=str), ex=ttl_seconds or self._default_ttl
        )

    def invalidate_by_prefix(self, prefix: str) -> int:
        """Drop ``prefix`` itself and every key nested under ``prefix:``.

        Matching stops at the segment delimiter, so ``league:1`` leaves
        ``league:10:...`` alone.
        """
        base = self._key(prefix.rstrip(":"))
        keys = [base, *self._client.scan_iter(match=f"{base}:*", count=500)]
        return int(self._client.delete(*keys))


class RedisBroadcaster:
    """Publish realtime match events on a Redis pub/sub channel."""

    def __init__(self, redis_url: str, *, channel: str) -> None:
        import redis

        self._client = redis.from_url(redis_url)
        self._channel = channel

    def publish(self, event_name: str, payload: dict[str, Any]) -> None:
        message = {"event": event_name, "payload": payload, "ts": now_utc().isoformat()}
        self._client.publish(self._channel, json.dumps(message, default=str))


def league_key(league_id: int) -> str:
    return f"league:{league_id}"


def match_key(match_id: int) -> str:
    return f"match:{match_id}"


def player_key(player_id: int) -> str:
    return f"player:{player_id}"


def defer_until_commit(session: Session, label: str, fn: Callable[..., Any], *args: Any) -> None:
    """Queue ``fn(*args)`` to run once the session's transaction commits."""
    session.info.setdefault(_PENDING_KEY, []).append((label, fn, args))


@event.listens_for(Session, "after_commit")
def _run_pending_hooks(session: Session) -> None:
    pending = session.info.pop(_PENDING_KEY, [])
    for label, fn, args in pending:
        try:
            fn(*args)
        except Exception as exc:
            logger.warning("hook_failed", hook=label, error=str(exc))


@event.listens_for(Session, "after_transaction_end")
def _drop_pending_hooks(session: Session, transaction: SessionTransaction) -> None:
    # Only the outermost transaction; savepoint rollbacks keep the queue
    if transaction.parent is None:
        session.info.pop(_PENDING_KEY, None)


@dataclass
class Hooks:
    """Collaborators injected into every mutating engine call."""

    cache: CacheBackend = field(default_factory=NullCache)
    broadcaster: Broadcaster = field(default_factory=NullBroadcaster)

    def invalidate(self, session: Session, prefixes: Iterable[str]) -> None:
        for prefix in sorted(set(prefixes)):
            defer_until_commit(session, "cache_invalidate", self.cache.invalidate_by_prefix, prefix)

    def broadcast(
        self,
        session: Session,
        action: str,
        *,
        match_id: int,
        league_id: int,
        player_id: int | None = None,
    ) -> None:
        payload = {
            "matchId": match_id,
            "leagueId": league_id,
            "playerId": player_id,
            "action": action,
        }
        defer_until_commit(session, f"broadcast:{action}", self.broadcaster.publish, action, payload)


def default_hooks() -> Hooks:
    """Build Redis-backed hooks from settings."""
    from .config import settings

    return Hooks(
        cache=RedisCache(
            settings.redis_url,
            namespace=settings.cache_key_prefix,
            default_ttl=settings.cache_ttl_seconds,
        ),
        broadcaster=RedisBroadcaster(settings.redis_url, channel=settings.realtime_channel),
    )
