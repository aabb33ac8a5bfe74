"""Notification records produced by match events.

Rows are written inside a SAVEPOINT: a failed insert is rolled back to the
savepoint and logged, leaving the caller's transaction (and any XP it moved)
intact.
"""

from __future__ import annotations

from typing import Any, Iterable

from sqlalchemy.orm import Session

from ..db import Match, Notification, NotificationType
from ..logging import logger


def _score_line(match: Match) -> str:
    home = "" if match.home_goals is None else match.home_goals
    away = "" if match.away_goals is None else match.away_goals
    return f"{match.home_team_name} {home} - {away} {match.away_team_name}"


def _match_meta(match: Match, **extra: Any) -> dict[str, Any]:
    meta: dict[str, Any] = {"matchId": match.id, "leagueId": match.league_id}
    meta.update(extra)
    return meta


def notify(
    session: Session,
    player_ids: Iterable[int | None],
    notification_type: NotificationType,
    *,
    title: str,
    body: str,
    meta: dict[str, Any],
) -> int:
    """Create one notification per recipient. Returns the number written (0 on failure)."""
    recipients = sorted({pid for pid in player_ids if pid is not None})
    if not recipients:
        return 0
    try:
        with session.begin_nested():
            for player_id in recipients:
                session.add(
                    Notification(
                        player_id=player_id,
                        type=notification_type.value,
                        title=title,
                        body=body,
                        meta=meta,
                    )
                )
            session.flush()
    except Exception as exc:
        logger.warning(
            "notification_failed",
            type=notification_type.value,
            recipients=recipients,
            error=str(exc),
        )
        return 0
    return len(recipients)


def send_captain_confirmations(session: Session, match: Match) -> int:
    return notify(
        session,
        [match.home_captain_id, match.away_captain_id],
        NotificationType.result_confirmation_request,
        title="Confirm result",
        body=_score_line(match),
        meta=_match_meta(match, homeGoals=match.home_goals, awayGoals=match.away_goals),
    )


def notify_captain_confirmed(session: Session, match: Match, captain_id: int) -> int:
    return notify(
        session,
        [captain_id],
        NotificationType.captain_confirmed,
        title="Result confirmed",
        body="Thanks for confirming the match result.",
        meta=_match_meta(match),
    )


def notify_captain_revision(
    session: Session, match: Match, captain_id: int, home_goals: int, away_goals: int
) -> int:
    # League admins only; the opposing captain is not told
    admin_ids = [admin.id for admin in match.league.admins]
    return notify(
        session,
        admin_ids,
        NotificationType.captain_revision_suggested,
        title="Revision suggested",
        body=(
            f"Captain suggests {home_goals}-{away_goals} for "
            f"{match.home_team_name} vs {match.away_team_name}"
        ),
        meta=_match_meta(
            match, homeGoals=home_goals, awayGoals=away_goals, suggestedBy=captain_id
        ),
    )


def notify_result_published(session: Session, match: Match) -> int:
    return notify(
        session,
        match.participant_ids,
        NotificationType.result_published,
        title="Result published",
        body=_score_line(match),
        meta=_match_meta(match, homeGoals=match.home_goals, awayGoals=match.away_goals),
    )


def notify_motm_vote(session: Session, match: Match, candidate_id: int) -> int:
    return notify(
        session,
        [candidate_id],
        NotificationType.motm_vote,
        title="You received a MOTM vote",
        body=f"Someone voted you Man of the Match in {match.home_team_name} vs {match.away_team_name}",
        meta=_match_meta(match),
    )
