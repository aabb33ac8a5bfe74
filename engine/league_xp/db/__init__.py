"""Database models and session management.

Import models from their respective modules:
    from league_xp.db.matches import Match, PlayerMatchStatistic, Vote
    from league_xp.db.league import League, Player

Session management:
    from league_xp.db import get_session
"""

from __future__ import annotations

from contextlib import contextmanager
from typing import Iterator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from ..config import settings
from ..logging import logger
from .base import Base
from .league import League, Player, league_admins
from .matches import (
    Match,
    MatchGuest,
    MatchStatus,
    PlayerMatchStatistic,
    TeamSide,
    Vote,
    match_away_players,
    match_home_players,
)
from .notifications import Notification, NotificationType

# Lazy-loaded engine and session factory to avoid connecting at import time.
_engine: Engine | None = None
_SessionLocal: sessionmaker[Session] | None = None


def _get_engine() -> Engine:
    """Get or create the database engine (lazy initialization)."""
    global _engine
    if _engine is None:
        _engine = create_engine(
            settings.database_url,
            echo=settings.sql_echo,
            future=True,
            pool_pre_ping=True,
        )
    return _engine


def _get_session_factory() -> sessionmaker[Session]:
    global _SessionLocal
    if _SessionLocal is None:
        _SessionLocal = sessionmaker(
            bind=_get_engine(),
            autoflush=False,
            autocommit=False,
            expire_on_commit=False,
            class_=Session,
        )
    return _SessionLocal


@contextmanager
def get_session() -> Iterator[Session]:
    """
    Provide a transactional database session context manager.

    Every engine operation takes the session it yields and runs inside its
    transaction; the whole block commits on success or rolls back on any
    exception, so XP totals and ``xp_awarded`` always change together.

    Usage:
        with get_session() as session:
            confirm_result(session, match_id, caller_id)
    """
    session = _get_session_factory()()
    try:
        yield session
        session.commit()
    except Exception as exc:
        session.rollback()
        logger.exception("db_session_rollback", error=str(exc))
        raise
    finally:
        session.close()


def init_db() -> None:
    """Create tables if they don't exist (dev only; migrations preferred)."""
    if settings.environment in {"production", "staging"}:
        raise RuntimeError(
            "init_db is disabled in production/staging. Run Alembic migrations instead."
        )
    Base.metadata.create_all(_get_engine())


def close_db() -> None:
    global _engine, _SessionLocal
    if _engine is not None:
        _engine.dispose()
        _engine = None
        _SessionLocal = None


__all__ = [
    "Base",
    "League",
    "Player",
    "Match",
    "MatchGuest",
    "MatchStatus",
    "Notification",
    "NotificationType",
    "PlayerMatchStatistic",
    "TeamSide",
    "Vote",
    "league_admins",
    "match_home_players",
    "match_away_players",
    "get_session",
    "init_db",
    "close_db",
]
