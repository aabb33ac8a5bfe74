"""Shared query helpers: row locks and race-safe get-or-create."""

from __future__ import annotations

from typing import Any, Iterable, TypeVar

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from ..db import Match, Player
from ..errors import NotFoundError
from ..logging import logger

T = TypeVar("T")


def lock_match(session: Session, match_id: int) -> Match:
    """Load a match with ``FOR UPDATE``, refreshing any cached state.

    Every mutating operation starts here, which serializes writers per match
    and guarantees the flags and goals read afterwards are current.
    """
    match = (
        session.query(Match)
        .filter(Match.id == match_id)
        .with_for_update()
        .populate_existing()
        .one_or_none()
    )
    if match is None:
        raise NotFoundError(f"Match {match_id} not found")
    return match


def get_match(session: Session, match_id: int) -> Match:
    match = session.get(Match, match_id)
    if match is None:
        raise NotFoundError(f"Match {match_id} not found")
    return match


def lock_players(session: Session, player_ids: Iterable[int]) -> dict[int, Player]:
    """Lock player rows in ascending id order so concurrent settlements can't deadlock."""
    ids = sorted(set(player_ids))
    if not ids:
        return {}
    players = (
        session.query(Player)
        .filter(Player.id.in_(ids))
        .order_by(Player.id)
        .with_for_update()
        .populate_existing()
        .all()
    )
    found = {player.id: player for player in players}
    missing = [pid for pid in ids if pid not in found]
    if missing:
        raise NotFoundError(f"Players not found: {missing}")
    return found


def get_or_create(
    session: Session,
    model: type[T],
    *,
    defaults: dict[str, Any] | None = None,
    **lookup: Any,
) -> tuple[T, bool]:
    """Fetch a row by its unique key or insert it.

    The insert runs inside a SAVEPOINT; if a concurrent transaction wins the
    race the unique constraint fires and the winner's row is read instead.
    """
    instance = session.query(model).filter_by(**lookup).one_or_none()
    if instance is not None:
        return instance, False

    try:
        with session.begin_nested():
            instance = model(**lookup, **(defaults or {}))
            session.add(instance)
            session.flush()
        return instance, True
    except IntegrityError:
        logger.info("get_or_create_race", model=model.__name__, **lookup)
        instance = session.query(model).filter_by(**lookup).populate_existing().one()
        return instance, False
