"""Read-only XP rankings and total-XP reconciliation.

Rankings sum ``xp_awarded`` over published matches: the stat rows already
hold the settled figure, so nothing here re-applies the rate table.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..db import League, Match, MatchStatus, Player, PlayerMatchStatistic
from ..errors import NotFoundError
from ..hooks import Hooks, league_key
from ..logging import logger
from ..utils.datetime_utils import year_bounds
from ..utils.db_queries import lock_players
from .achievements import marker_xp


def _published_stats(session: Session):
    return (
        session.query(PlayerMatchStatistic)
        .join(Match, Match.id == PlayerMatchStatistic.match_id)
        .filter(Match.status == MatchStatus.result_published.value)
    )


def league_xp_leaderboard(
    session: Session,
    league_id: int,
    limit: int = 50,
    hooks: Hooks | None = None,
) -> list[dict[str, Any]]:
    """Players ranked by XP earned in one league's published matches."""
    hooks = hooks or Hooks()
    cache_key = f"{league_key(league_id)}:leaderboard:{limit}"
    cached = hooks.cache.get(cache_key)
    if cached is not None:
        return cached

    if session.get(League, league_id) is None:
        raise NotFoundError(f"League {league_id} not found")

    xp_total = func.sum(PlayerMatchStatistic.xp_awarded).label("xp")
    played = func.count(PlayerMatchStatistic.id).label("matches")
    rows = (
        session.query(Player, xp_total, played)
        .join(PlayerMatchStatistic, PlayerMatchStatistic.player_id == Player.id)
        .join(Match, Match.id == PlayerMatchStatistic.match_id)
        .filter(
            Match.league_id == league_id,
            Match.status == MatchStatus.result_published.value,
        )
        .group_by(Player.id)
        .order_by(xp_total.desc(), Player.id)
        .limit(limit)
        .all()
    )

    leaderboard = [
        {
            "rank": rank,
            "playerId": player.id,
            "name": player.display_name,
            "xp": int(xp or 0),
            "matches": int(matches),
        }
        for rank, (player, xp, matches) in enumerate(rows, start=1)
    ]
    hooks.cache.set(cache_key, leaderboard)
    return leaderboard


def player_xp_summary(
    session: Session,
    player_id: int,
    league_id: int | None = None,
    year: int | None = None,
) -> dict[str, Any]:
    player = session.get(Player, player_id)
    if player is None:
        raise NotFoundError(f"Player {player_id} not found")

    query = _published_stats(session).filter(PlayerMatchStatistic.player_id == player_id)
    if league_id is not None:
        query = query.filter(Match.league_id == league_id)
    if year is not None:
        start, end = year_bounds(year)
        query = query.filter(Match.start >= start, Match.start < end)

    total, matches = query.with_entities(
        func.coalesce(func.sum(PlayerMatchStatistic.xp_awarded), 0),
        func.count(PlayerMatchStatistic.id),
    ).one()
    total, matches = int(total), int(matches)
    return {
        "playerId": player_id,
        "leagueId": league_id,
        "year": year,
        "matchXp": total,
        "matches": matches,
        "averageXp": round(total / matches, 2) if matches else 0.0,
        "totalXp": player.xp,
        "achievements": sorted(player.achievement_set()),
    }


def recalculate_total_xp(session: Session, player_id: int) -> tuple[int, int]:
    """Rebuild ``player.xp`` from settled match XP plus badge XP.

    Returns (previous_total, recalculated_total).
    """
    player = lock_players(session, [player_id])[player_id]
    match_xp = (
        _published_stats(session)
        .filter(PlayerMatchStatistic.player_id == player_id)
        .with_entities(func.coalesce(func.sum(PlayerMatchStatistic.xp_awarded), 0))
        .scalar()
    )
    badge_total = sum(marker_xp(marker) for marker in player.achievement_set())
    previous = player.xp
    player.xp = max(0, int(match_xp or 0) + badge_total)
    session.flush()
    if player.xp != previous:
        logger.warning(
            "xp_drift_repaired",
            player_id=player_id,
            previous_xp=previous,
            recalculated_xp=player.xp,
        )
    return previous, player.xp
