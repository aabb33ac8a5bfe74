"""Match result lifecycle.

SCHEDULED -> RESULT_UPLOADED -> RESULT_PUBLISHED, with a captain detour
through REVISION_REQUESTED that an admin resolves by re-uploading. A match
is published only when both captains have confirmed the uploaded score, and
publication is the only thing that triggers XP settlement for the whole
match.
"""

from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable

from sqlalchemy.orm import Session

from ..db import League, Match, MatchGuest, MatchStatus, Player, TeamSide
from ..errors import InvalidTransitionError, NotFoundError, PermissionDeniedError, ValidationError
from ..hooks import Hooks, league_key, match_key
from ..logging import logger
from ..models.schemas import GuestEntry, parse_captain_pick
from ..utils.datetime_utils import ensure_utc, now_utc
from ..utils.db_queries import get_match, lock_match
from . import notifications
from .settlement import resettle_players, settle_match

_TRANSITIONS: dict[MatchStatus, frozenset[MatchStatus]] = {
    MatchStatus.scheduled: frozenset({MatchStatus.result_uploaded}),
    MatchStatus.result_uploaded: frozenset(
        {
            MatchStatus.result_uploaded,
            MatchStatus.revision_requested,
            MatchStatus.result_published,
        }
    ),
    MatchStatus.revision_requested: frozenset(
        {MatchStatus.result_uploaded, MatchStatus.revision_requested}
    ),
    # Goals are locked once published
    MatchStatus.result_published: frozenset(),
}

PICK_COLUMNS = {"defence": "defensive_impact", "influence": "mentality"}


def resolve_transition(current: str | MatchStatus, target: MatchStatus) -> MatchStatus:
    """Return ``target`` if the lifecycle allows ``current -> target``."""
    try:
        state = MatchStatus(current)
    except ValueError as exc:
        raise InvalidTransitionError(str(current), target.value, f"Unknown match status {current!r}") from exc
    if target not in _TRANSITIONS[state]:
        raise InvalidTransitionError(state.value, target.value)
    return target


def _validate_goals(value: Any, label: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{label} must be a whole number")
    if value < 0:
        raise ValidationError(f"{label} cannot be negative")
    return value


def _require_admin(match: Match, caller_id: int) -> None:
    if not match.league.is_admin(caller_id):
        raise PermissionDeniedError("Only league admins can do this")


def _require_captain(match: Match, caller_id: int) -> TeamSide:
    side = match.captain_side(caller_id)
    if side is None:
        raise PermissionDeniedError("Only a team captain can do this")
    return side


def _changed(session: Session, match: Match, hooks: Hooks) -> None:
    hooks.invalidate(session, [league_key(match.league_id), match_key(match.id)])
    hooks.broadcast(session, "match_updated", match_id=match.id, league_id=match.league_id)


def _load_players(session: Session, ids: set[int]) -> list[Player]:
    players = session.query(Player).filter(Player.id.in_(ids)).order_by(Player.id).all() if ids else []
    missing = sorted(ids - {p.id for p in players})
    if missing:
        raise NotFoundError(f"Players not found: {missing}")
    return players


def schedule_match(
    session: Session,
    league_id: int,
    start: datetime | None,
    end: datetime | None,
    home_player_ids: Iterable[int],
    away_player_ids: Iterable[int],
    home_captain_id: int | None = None,
    away_captain_id: int | None = None,
    *,
    caller_id: int | None = None,
    home_team_name: str = "Home",
    away_team_name: str = "Away",
    location: str | None = None,
    season_id: int | None = None,
    guests: Iterable[GuestEntry | dict[str, Any]] = (),
    hooks: Hooks | None = None,
) -> Match:
    league = session.get(League, league_id)
    if league is None:
        raise NotFoundError(f"League {league_id} not found")
    if caller_id is not None and not league.is_admin(caller_id):
        raise PermissionDeniedError("Only league admins can schedule matches")

    if start is None or end is None:
        raise ValidationError("Match start and end are required")
    start, end = ensure_utc(start), ensure_utc(end)
    if end <= start:
        raise ValidationError("Match end must be after its start")

    home_ids, away_ids = set(home_player_ids), set(away_player_ids)
    overlap = home_ids & away_ids
    if overlap:
        raise ValidationError(f"Players cannot be on both teams: {sorted(overlap)}")
    if home_captain_id is not None and home_captain_id not in home_ids:
        raise ValidationError("Home captain must be on the home roster")
    if away_captain_id is not None and away_captain_id not in away_ids:
        raise ValidationError("Away captain must be on the away roster")

    guest_entries = [g if isinstance(g, GuestEntry) else GuestEntry.model_validate(g) for g in guests]

    match = Match(
        league_id=league_id,
        season_id=season_id,
        start=start,
        end=end,
        location=location,
        home_team_name=home_team_name,
        away_team_name=away_team_name,
        home_captain_id=home_captain_id,
        away_captain_id=away_captain_id,
        status=MatchStatus.scheduled.value,
        home_captain_confirmed=False,
        away_captain_confirmed=False,
    )
    match.home_players = _load_players(session, home_ids)
    match.away_players = _load_players(session, away_ids)
    session.add(match)
    session.flush()

    for entry in guest_entries:
        session.add(
            MatchGuest(
                match_id=match.id,
                team=entry.team,
                first_name=entry.first_name,
                last_name=entry.last_name,
                shirt_number=entry.shirt_number,
            )
        )
    session.flush()

    logger.info(
        "match_scheduled",
        match_id=match.id,
        league_id=league_id,
        home_players=len(home_ids),
        away_players=len(away_ids),
        guests=len(guest_entries),
    )
    _changed(session, match, hooks or Hooks())
    return match


def upload_result(
    session: Session,
    match_id: int,
    caller_id: int,
    home_goals: Any,
    away_goals: Any,
    hooks: Hooks | None = None,
) -> Match:
    """Admin enters (or re-enters) the score and asks both captains to confirm it."""
    match = lock_match(session, match_id)
    _require_admin(match, caller_id)
    home = _validate_goals(home_goals, "Home goals")
    away = _validate_goals(away_goals, "Away goals")
    target = resolve_transition(match.status, MatchStatus.result_uploaded)

    match.home_goals = home
    match.away_goals = away
    match.status = target.value
    match.result_uploaded_at = now_utc()
    match.home_captain_confirmed = False
    match.away_captain_confirmed = False
    match.suggested_home_goals = None
    match.suggested_away_goals = None
    match.suggested_by_captain_id = None
    session.flush()

    notifications.send_captain_confirmations(session, match)
    logger.info("result_uploaded", match_id=match_id, home_goals=home, away_goals=away, by=caller_id)
    _changed(session, match, hooks or Hooks())
    return match


def confirm_result(
    session: Session,
    match_id: int,
    caller_id: int,
    hooks: Hooks | None = None,
) -> Match:
    """A captain confirms the uploaded score; the second confirmation publishes it."""
    hooks = hooks or Hooks()
    match = lock_match(session, match_id)
    side = _require_captain(match, caller_id)
    if match.status != MatchStatus.result_uploaded.value:
        raise InvalidTransitionError(
            match.status,
            MatchStatus.result_published.value,
            "Result must be uploaded before captains can confirm it",
        )

    if side is TeamSide.home:
        match.home_captain_confirmed = True
    else:
        match.away_captain_confirmed = True
    session.flush()
    notifications.notify_captain_confirmed(session, match, caller_id)
    logger.info("captain_confirmed", match_id=match_id, captain_id=caller_id, side=side.value)

    if match.home_captain_confirmed and match.away_captain_confirmed:
        match.status = resolve_transition(match.status, MatchStatus.result_published).value
        match.result_published_at = now_utc()
        session.flush()
        results = settle_match(session, match_id, hooks)
        notifications.notify_result_published(session, match)
        logger.info(
            "match_published",
            match_id=match_id,
            home_goals=match.home_goals,
            away_goals=match.away_goals,
            players_settled=len(results),
        )

    _changed(session, match, hooks)
    return match


def suggest_revision(
    session: Session,
    match_id: int,
    caller_id: int,
    home_goals: Any,
    away_goals: Any,
    hooks: Hooks | None = None,
) -> Match:
    """A captain disputes the uploaded score; admins are told, goals stay as they are."""
    match = lock_match(session, match_id)
    _require_captain(match, caller_id)
    home = _validate_goals(home_goals, "Home goals")
    away = _validate_goals(away_goals, "Away goals")
    target = resolve_transition(match.status, MatchStatus.revision_requested)

    match.status = target.value
    match.suggested_home_goals = home
    match.suggested_away_goals = away
    match.suggested_by_captain_id = caller_id
    session.flush()

    notifications.notify_captain_revision(session, match, caller_id, home, away)
    logger.info(
        "revision_suggested",
        match_id=match_id,
        captain_id=caller_id,
        suggested_home_goals=home,
        suggested_away_goals=away,
    )
    _changed(session, match, hooks or Hooks())
    return match


def set_captain_pick(
    session: Session,
    match_id: int,
    caller_id: int,
    category: str,
    player_id: int,
    hooks: Hooks | None = None,
) -> dict[str, dict[str, int | None]]:
    """Captain picks their side's defensive-impact ("defence") or mentality ("influence") player."""
    hooks = hooks or Hooks()
    pick = parse_captain_pick({"category": category, "player_id": player_id})
    match = lock_match(session, match_id)
    side = _require_captain(match, caller_id)
    if match.side_of(pick.player_id) is not side:
        raise ValidationError("Captains can only pick players from their own team")

    column = f"{side.value}_{PICK_COLUMNS[pick.category]}_id"
    previous = getattr(match, column)
    if previous != pick.player_id:
        setattr(match, column, pick.player_id)
        session.flush()
        resettle_players(session, match, [previous, pick.player_id], hooks)
        logger.info(
            "captain_pick_set",
            match_id=match_id,
            captain_id=caller_id,
            category=pick.category,
            player_id=pick.player_id,
            previous_player_id=previous,
        )
        _changed(session, match, hooks)
    return _picks(match)


def _picks(match: Match) -> dict[str, dict[str, int | None]]:
    return {
        side.value: {
            category: getattr(match, f"{side.value}_{column}_id")
            for category, column in PICK_COLUMNS.items()
        }
        for side in TeamSide
    }


def get_captain_picks(session: Session, match_id: int) -> dict[str, dict[str, int | None]]:
    return _picks(get_match(session, match_id))
