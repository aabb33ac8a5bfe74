"""MOTM voting.

A voter holds at most one live vote per match. Changing a vote deletes the
old row and inserts the new one in the same transaction; the tally is
always recomputed from live rows.
"""

from __future__ import annotations

from dataclasses import dataclass, field

from sqlalchemy.orm import Session

from ..db import Vote
from ..errors import PermissionDeniedError, ValidationError
from ..hooks import Hooks, league_key, match_key, player_key
from ..logging import logger
from ..utils.db_queries import lock_match
from .notifications import notify_motm_vote
from .settlement import resettle_players
from .tally import current_vote, motm_leaders, tally_votes, votes_received

__all__ = [
    "VoteOutcome",
    "motm_leader",
    "motm_leaders",
    "record_vote",
    "tally_votes",
    "votes_received",
]


@dataclass
class VoteOutcome:
    match_id: int
    voter_id: int
    previous_candidate_id: int | None
    candidate_id: int | None
    tally: dict[int, int] = field(default_factory=dict)

    @property
    def changed(self) -> bool:
        return self.previous_candidate_id != self.candidate_id


def motm_leader(session: Session, match_id: int) -> int | None:
    """Outright vote leader, or None when nobody was voted for or the top is tied."""
    leaders = motm_leaders(session, match_id)
    return leaders[0] if len(leaders) == 1 else None


def record_vote(
    session: Session,
    match_id: int,
    voter_id: int,
    candidate_id: int | None,
    hooks: Hooks | None = None,
) -> VoteOutcome:
    """Cast, change or (with ``candidate_id=None``) withdraw a MOTM vote."""
    hooks = hooks or Hooks()
    if candidate_id is not None and candidate_id == voter_id:
        raise ValidationError("You cannot vote for yourself")

    match = lock_match(session, match_id)
    participants = match.participant_ids
    if voter_id not in participants:
        raise PermissionDeniedError(f"Player {voter_id} did not play in match {match_id}")
    if candidate_id is not None and candidate_id not in participants:
        raise ValidationError(f"Player {candidate_id} is not on a roster for match {match_id}")

    previous = current_vote(session, match_id, voter_id)
    if previous is None and candidate_id is None:
        return VoteOutcome(match_id, voter_id, None, None, tally_votes(session, match_id))
    if previous == candidate_id:
        return VoteOutcome(match_id, voter_id, previous, candidate_id, tally_votes(session, match_id))

    session.query(Vote).filter(Vote.match_id == match_id, Vote.voter_id == voter_id).delete(
        synchronize_session=False
    )
    if candidate_id is not None:
        session.add(Vote(match_id=match_id, voter_id=voter_id, voted_for_id=candidate_id))
    session.flush()

    resettle_players(session, match, [previous, candidate_id], hooks)

    if candidate_id is not None:
        notify_motm_vote(session, match, candidate_id)

    tally = tally_votes(session, match_id)
    logger.info(
        "vote_recorded",
        match_id=match_id,
        voter_id=voter_id,
        previous_candidate_id=previous,
        candidate_id=candidate_id,
        tally=tally,
    )

    prefixes = [league_key(match.league_id), match_key(match_id)]
    prefixes.extend(player_key(pid) for pid in (previous, candidate_id) if pid is not None)
    hooks.invalidate(session, prefixes)
    hooks.broadcast(
        session,
        "vote_updated",
        match_id=match_id,
        league_id=match.league_id,
        player_id=candidate_id,
    )
    return VoteOutcome(match_id, voter_id, previous, candidate_id, tally)
