"""Idempotent, delta-based XP settlement.

For each (match, player) the engine recomputes the XP the match is worth
now, compares it with ``xp_awarded`` on the stat row (what was already
paid), and moves the player's running total by the difference. Re-running
with unchanged inputs moves nothing; editing stats A -> B moves exactly
xp(B) - xp(A).

Lock order within a transaction: match row, then player rows in ascending
id, then the stat row.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable

from sqlalchemy.orm import Session

from ..db import Match, MatchStatus, PlayerMatchStatistic
from ..errors import InvalidTransitionError, ValidationError
from ..hooks import Hooks, league_key, match_key, player_key
from ..logging import logger
from ..utils.db_queries import get_match, get_or_create, lock_match, lock_players
from ..xp_table import SettlementInputs, XPBreakdown, compute_match_xp, determine_result
from .achievements import award_achievements
from .tally import votes_received


@dataclass
class SettlementResult:
    match_id: int
    player_id: int
    new_xp: int
    previous_xp: int
    delta: int
    # Player's running total after the delta (None for previews)
    player_xp: int | None
    breakdown: XPBreakdown


def lock_stat_row(session: Session, match_id: int, player_id: int) -> PlayerMatchStatistic:
    """Get (or create with zeroes) the stat row for a (match, player) and lock it."""
    stat, _ = get_or_create(
        session, PlayerMatchStatistic, match_id=match_id, player_id=player_id
    )
    return (
        session.query(PlayerMatchStatistic)
        .filter(PlayerMatchStatistic.id == stat.id)
        .with_for_update()
        .populate_existing()
        .one()
    )


def build_inputs(
    session: Session,
    match: Match,
    player_id: int,
    stat: PlayerMatchStatistic | None,
) -> SettlementInputs:
    side = match.side_of(player_id)
    if side is None:
        raise ValidationError(f"Player {player_id} is not on a roster for match {match.id}")
    scored, conceded = match.goals_for(side)
    return SettlementInputs(
        result=determine_result(scored, conceded),
        goals=stat.goals if stat else 0,
        assists=stat.assists if stat else 0,
        clean_sheets=stat.clean_sheets if stat else 0,
        votes_received=votes_received(session, match.id, player_id),
        defensive_impact_pick=player_id in match.defensive_impact_ids(),
        mentality_pick=player_id in match.mentality_ids(),
    )


def settle_player(
    session: Session,
    match: Match,
    player_id: int,
    *,
    preview: bool = False,
) -> SettlementResult:
    """Recompute one player's XP for a match and apply the delta.

    ``preview`` computes the figures without creating rows or touching the
    player's total, and is allowed before publication.
    """
    if not preview and not match.is_published:
        raise InvalidTransitionError(
            match.status,
            MatchStatus.result_published.value,
            f"Match {match.id} is not published; XP cannot be settled",
        )

    if preview:
        stat = (
            session.query(PlayerMatchStatistic)
            .filter_by(match_id=match.id, player_id=player_id)
            .one_or_none()
        )
        player = None
    else:
        player = lock_players(session, [player_id])[player_id]
        stat = lock_stat_row(session, match.id, player_id)

    breakdown = compute_match_xp(build_inputs(session, match, player_id, stat))
    new_xp = breakdown.total
    previous_xp = stat.xp_awarded if stat else 0
    delta = new_xp - previous_xp

    if player is None:
        return SettlementResult(match.id, player_id, new_xp, previous_xp, delta, None, breakdown)

    player.xp = max(0, player.xp + delta)
    stat.xp_awarded = new_xp
    session.flush()

    logger.info(
        "xp_settled",
        match_id=match.id,
        player_id=player_id,
        new_xp=new_xp,
        previous_xp=previous_xp,
        delta=delta,
        total_xp=player.xp,
    )
    return SettlementResult(match.id, player_id, new_xp, previous_xp, delta, player.xp, breakdown)


def _invalidate_settled(session: Session, match: Match, player_ids: Iterable[int], hooks: Hooks) -> None:
    prefixes = [league_key(match.league_id), match_key(match.id)]
    prefixes.extend(player_key(pid) for pid in player_ids)
    hooks.invalidate(session, prefixes)


def resettle_players(
    session: Session,
    match: Match,
    player_ids: Iterable[int | None],
    hooks: Hooks | None = None,
    *,
    award: bool = True,
) -> list[SettlementResult]:
    """Re-settle the given players after an edit. No-op unless the match is published."""
    if not match.is_published:
        return []
    ids = sorted({pid for pid in player_ids if pid is not None})
    if not ids:
        return []

    lock_players(session, ids)
    results = [settle_player(session, match, pid) for pid in ids]
    if award:
        for pid in ids:
            award_achievements(session, pid)
    _invalidate_settled(session, match, ids, hooks or Hooks())
    return results


def settle_match(
    session: Session,
    match_id: int,
    hooks: Hooks | None = None,
    *,
    award: bool = True,
) -> list[SettlementResult]:
    """Settle every roster player of a published match.

    Players without a stat row get a zero row so every participant carries
    an ``xp_awarded`` figure.
    """
    match = lock_match(session, match_id)
    if not match.is_published:
        raise InvalidTransitionError(
            match.status,
            MatchStatus.result_published.value,
            f"Match {match_id} is not published; XP cannot be settled",
        )
    results = resettle_players(session, match, match.participant_ids, hooks, award=award)
    logger.info(
        "match_settled",
        match_id=match_id,
        players=len(results),
        total_delta=sum(r.delta for r in results),
    )
    return results


def xp_breakdown(session: Session, match_id: int, player_id: int) -> dict[str, Any]:
    """Itemised XP for a player in a match, next to the amount already credited."""
    match = get_match(session, match_id)
    preview = settle_player(session, match, player_id, preview=True)
    return {
        "matchId": match_id,
        "playerId": player_id,
        "status": match.status,
        "result": preview.breakdown.result.value,
        "lines": preview.breakdown.as_dict(),
        "total": preview.new_xp,
        "xpAwarded": preview.previous_xp,
        "pending": preview.delta,
    }
