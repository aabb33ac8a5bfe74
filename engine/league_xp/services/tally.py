"""Read-side MOTM vote tally.

Counts are always derived by grouping live vote rows. There is no counter
column to drift when votes are deleted or switched.
"""

from __future__ import annotations

from typing import Iterable

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..db import Vote


def tally_votes(session: Session, match_id: int) -> dict[int, int]:
    """Return {candidate_id: votes} for a match."""
    rows = (
        session.query(Vote.voted_for_id, func.count(Vote.id))
        .filter(Vote.match_id == match_id)
        .group_by(Vote.voted_for_id)
        .all()
    )
    return {candidate_id: int(count) for candidate_id, count in rows}


def votes_received(session: Session, match_id: int, player_id: int) -> int:
    count = (
        session.query(func.count(Vote.id))
        .filter(Vote.match_id == match_id, Vote.voted_for_id == player_id)
        .scalar()
    )
    return int(count or 0)


def votes_received_by_match(
    session: Session, player_id: int, match_ids: Iterable[int]
) -> dict[int, int]:
    ids = list(match_ids)
    if not ids:
        return {}
    rows = (
        session.query(Vote.match_id, func.count(Vote.id))
        .filter(Vote.voted_for_id == player_id, Vote.match_id.in_(ids))
        .group_by(Vote.match_id)
        .all()
    )
    return {match_id: int(count) for match_id, count in rows}


def motm_leaders(session: Session, match_id: int) -> list[int]:
    """Candidates sharing the highest vote count (empty when nobody was voted for)."""
    tally = tally_votes(session, match_id)
    if not tally:
        return []
    top = max(tally.values())
    return sorted(candidate for candidate, count in tally.items() if count == top)


def current_vote(session: Session, match_id: int, voter_id: int) -> int | None:
    """Candidate the voter currently backs, if any."""
    return (
        session.query(Vote.voted_for_id)
        .filter(Vote.match_id == match_id, Vote.voter_id == voter_id)
        .scalar()
    )
