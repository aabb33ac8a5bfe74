"""Per-match player statistics.

Admins may submit stats for anyone on the match (including guests), players
only for themselves. Edits on a published match re-settle the touched
players in the same transaction.
"""

from __future__ import annotations

from typing import Any

from sqlalchemy.orm import Session

from ..db import Match, Player, PlayerMatchStatistic
from ..errors import PermissionDeniedError, ValidationError
from ..hooks import Hooks, league_key, match_key, player_key
from ..logging import logger
from ..models.schemas import GuestPlayer, RegisteredPlayer, StatSubmission, normalize_stat_payload
from ..utils.db_queries import get_match, lock_match, lock_players
from .identity import canonical_player_id, resolve_player_ref
from .settlement import lock_stat_row, resettle_players


def _target_for(
    session: Session, match: Match, submission: StatSubmission, caller_id: int, is_admin: bool
) -> int:
    ref = submission.player_ref()
    if ref is None:
        ref = RegisteredPlayer(player_id=caller_id)

    if not is_admin:
        if isinstance(ref, GuestPlayer) or ref.player_id != caller_id:
            raise PermissionDeniedError("You can only submit your own stats")
    elif isinstance(ref, RegisteredPlayer):
        # Admin payloads may carry a guest id in playerId
        ref = resolve_player_ref(session, match, ref.player_id)

    player_id = canonical_player_id(session, match, ref)
    if match.side_of(player_id) is None:
        raise ValidationError(f"Player {player_id} is not on a roster for match {match.id}")
    return player_id


def submit_stats(
    session: Session,
    match_id: int,
    caller_id: int,
    body: Any,
    hooks: Hooks | None = None,
) -> list[PlayerMatchStatistic]:
    hooks = hooks or Hooks()
    submissions = normalize_stat_payload(body)
    if not submissions:
        raise ValidationError("No stats provided")

    match = lock_match(session, match_id)
    is_admin = match.league.is_admin(caller_id)

    targets: dict[int, StatSubmission] = {}
    for submission in submissions:
        targets[_target_for(session, match, submission, caller_id, is_admin)] = submission

    player_ids = sorted(targets)
    if match.is_published:
        lock_players(session, player_ids)

    rows: list[PlayerMatchStatistic] = []
    for player_id in player_ids:
        stat = lock_stat_row(session, match.id, player_id)
        for name, value in targets[player_id].stat_values().items():
            setattr(stat, name, value)
        rows.append(stat)
    session.flush()

    resettle_players(session, match, player_ids, hooks)

    logger.info(
        "stats_submitted",
        match_id=match_id,
        by=caller_id,
        players=player_ids,
        published=match.is_published,
    )
    hooks.invalidate(
        session,
        [league_key(match.league_id), match_key(match_id), *(player_key(pid) for pid in player_ids)],
    )
    for player_id in player_ids:
        hooks.broadcast(
            session,
            "stats_updated",
            match_id=match_id,
            league_id=match.league_id,
            player_id=player_id,
        )
    return rows


def get_match_stats(session: Session, match_id: int) -> list[dict[str, Any]]:
    match = get_match(session, match_id)
    rows = (
        session.query(PlayerMatchStatistic, Player)
        .join(Player, Player.id == PlayerMatchStatistic.player_id)
        .filter(PlayerMatchStatistic.match_id == match_id)
        .order_by(PlayerMatchStatistic.player_id)
        .all()
    )
    stats = []
    for stat, player in rows:
        side = match.side_of(player.id)
        stats.append(
            {
                "playerId": player.id,
                "name": player.display_name,
                "team": side.value if side else None,
                "goals": stat.goals,
                "assists": stat.assists,
                "cleanSheets": stat.clean_sheets,
                "penalties": stat.penalties,
                "freeKicks": stat.free_kicks,
                "yellowCards": stat.yellow_cards,
                "redCards": stat.red_cards,
                "defence": stat.defence,
                "impact": stat.impact,
                "minutesPlayed": stat.minutes_played,
                "rating": stat.rating,
                "xpAwarded": stat.xp_awarded,
            }
        )
    return stats
