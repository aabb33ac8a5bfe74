"""Player-or-guest identity resolution.

Stats may target a registered player or a guest added to one match. Guests
are mirrored into ``players`` on first use so the ledger and settlement only
ever see canonical player ids.
"""

from __future__ import annotations

from sqlalchemy.orm import Session

from ..db import Match, MatchGuest, Player, TeamSide
from ..errors import NotFoundError, ValidationError
from ..logging import logger
from ..models.schemas import GuestPlayer, RegisteredPlayer
from ..utils.db_queries import get_or_create

GUEST_PROVIDER = "guest"


def resolve_player_ref(session: Session, match: Match, raw_id: int) -> RegisteredPlayer | GuestPlayer:
    """Classify a bare id: registered players win, then guests of this match."""
    if session.get(Player, raw_id) is not None:
        return RegisteredPlayer(player_id=raw_id)
    guest = (
        session.query(MatchGuest)
        .filter(MatchGuest.id == raw_id, MatchGuest.match_id == match.id)
        .one_or_none()
    )
    if guest is not None:
        return GuestPlayer(guest_id=guest.id)
    raise NotFoundError(f"Player {raw_id} not found")


def _guest_for_match(session: Session, match: Match, guest_id: int) -> MatchGuest:
    guest = (
        session.query(MatchGuest)
        .filter(MatchGuest.id == guest_id, MatchGuest.match_id == match.id)
        .one_or_none()
    )
    if guest is None:
        raise NotFoundError(f"Guest {guest_id} not found for match {match.id}")
    return guest


def mirror_guest(session: Session, match: Match, guest: MatchGuest) -> Player:
    """Return the player row mirroring ``guest``, creating it and rostering it if needed."""
    try:
        side = TeamSide(guest.team)
    except ValueError as exc:
        raise ValidationError(f"Guest {guest.id} has unknown team {guest.team!r}") from exc

    player, created = get_or_create(
        session,
        Player,
        provider=GUEST_PROVIDER,
        provider_id=str(guest.id),
        defaults={
            "first_name": guest.first_name or "Guest",
            "last_name": guest.last_name or "Player",
        },
    )
    if created:
        logger.info("guest_mirrored", match_id=match.id, guest_id=guest.id, player_id=player.id)

    if match.side_of(player.id) is None:
        roster = match.home_players if side is TeamSide.home else match.away_players
        roster.append(player)
        session.flush()
    return player


def canonical_player_id(session: Session, match: Match, ref: RegisteredPlayer | GuestPlayer) -> int:
    if isinstance(ref, RegisteredPlayer):
        return ref.player_id
    guest = _guest_for_match(session, match, ref.guest_id)
    return mirror_guest(session, match, guest).id
