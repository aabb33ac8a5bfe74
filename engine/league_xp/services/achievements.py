"""Achievement badges derived from a player's published match history.

Evaluation is pure and always safe to repeat. Crediting badge XP is a
separate step guarded by the marker list on the player row: a marker is
written together with its XP, so each badge (or badge level) pays once.

Streak scopes:
- league: win, scoring and assist streaks are computed inside each league
  and the best league wins. A run never continues across leagues.
- overall: MOTM and clean-sheet-win streaks use the whole history.
Hat-tricks are counted per league, and a badge level unlocks for every
three of them.
"""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, Iterable, Sequence

from sqlalchemy import or_, select
from sqlalchemy.orm import Session

from ..config import settings
from ..db import Match, MatchStatus, PlayerMatchStatistic, match_away_players, match_home_players
from ..logging import logger
from ..utils.datetime_utils import ensure_utc
from ..utils.db_queries import lock_players
from ..xp_table import TeamResult, determine_result
from .tally import votes_received_by_match

HAT_TRICK_GOALS = 3
HAT_TRICKS_PER_LEVEL = 3


class StreakScope(str, Enum):
    league = "league"
    overall = "overall"


@dataclass(frozen=True)
class MatchRecord:
    """One published match from a single player's point of view."""

    match_id: int
    league_id: int
    start: datetime
    goals: int
    assists: int
    result: TeamResult
    conceded: int
    votes_received: int

    @property
    def won(self) -> bool:
        return self.result is TeamResult.win


PREDICATES: dict[str, Callable[[MatchRecord], bool]] = {
    "win": lambda m: m.won,
    "scoring": lambda m: m.goals >= 1,
    "assist": lambda m: m.assists >= 1,
    "motm": lambda m: m.votes_received >= 1,
    "clean_sheet_win": lambda m: m.won and m.conceded == 0,
    "hat_trick": lambda m: m.goals >= HAT_TRICK_GOALS,
}

METRIC_SCOPES: dict[str, StreakScope] = {
    "win": StreakScope.league,
    "scoring": StreakScope.league,
    "assist": StreakScope.league,
    "motm": StreakScope.overall,
    "clean_sheet_win": StreakScope.overall,
    "hat_trick": StreakScope.league,
}


@dataclass(frozen=True)
class Badge:
    id: str
    name: str
    metric: str
    threshold: int
    xp: int
    # "streak": consecutive matches; "count": repeatable every `threshold` matches
    kind: str = "streak"


BADGES: tuple[Badge, ...] = (
    Badge("win_streak_3", "On a Roll", "win", 3, 20),
    Badge("win_streak_5", "Unbeatable", "win", 5, 50),
    Badge("scoring_streak_3", "Hot Boots", "scoring", 3, 20),
    Badge("scoring_streak_5", "Goal Machine", "scoring", 5, 50),
    Badge("assist_streak_3", "Playmaker", "assist", 3, 20),
    Badge("motm_streak_3", "Crowd Favourite", "motm", 3, 30),
    Badge("clean_sheet_streak_3", "Brick Wall", "clean_sheet_win", 3, 30),
    Badge("hat_trick_hero", "Hat-trick Hero", "hat_trick", HAT_TRICKS_PER_LEVEL, 25, kind="count"),
)

BADGES_BY_ID = {badge.id: badge for badge in BADGES}


def badge_xp(badge: Badge) -> int:
    return settings.achievement_xp.get(badge.id, badge.xp)


def marker_for(badge: Badge, level: int | None = None) -> str:
    return badge.id if level is None else f"{badge.id}:{level}"


def marker_xp(marker: str) -> int:
    """XP credited for a persisted marker (0 for unknown/retired badges)."""
    badge = BADGES_BY_ID.get(marker.split(":", 1)[0])
    return badge_xp(badge) if badge else 0


def longest_streak(history: Sequence[MatchRecord], predicate: Callable[[MatchRecord], bool]) -> int:
    """Longest run of consecutive matches satisfying ``predicate``."""
    best = current = 0
    for record in history:
        if predicate(record):
            current += 1
            best = max(best, current)
        else:
            current = 0
    return best


def split_by_league(history: Iterable[MatchRecord]) -> dict[int, list[MatchRecord]]:
    leagues: dict[int, list[MatchRecord]] = defaultdict(list)
    for record in history:
        leagues[record.league_id].append(record)
    return dict(leagues)


def _chronological(history: Iterable[MatchRecord]) -> list[MatchRecord]:
    return sorted(history, key=lambda m: (ensure_utc(m.start), m.match_id))


def streak_for(history: Sequence[MatchRecord], metric: str) -> int:
    predicate = PREDICATES[metric]
    ordered = _chronological(history)
    if METRIC_SCOPES[metric] is StreakScope.overall:
        return longest_streak(ordered, predicate)
    return max(
        (longest_streak(matches, predicate) for matches in split_by_league(ordered).values()),
        default=0,
    )


def hat_trick_count(history: Sequence[MatchRecord]) -> int:
    """Hat-tricks in the player's best league."""
    return max(
        (sum(1 for m in matches if PREDICATES["hat_trick"](m)) for matches in split_by_league(history).values()),
        default=0,
    )


def count_level(count: int, per_level: int = HAT_TRICKS_PER_LEVEL) -> int:
    return count // per_level


@dataclass
class AchievementReport:
    streaks: dict[str, int] = field(default_factory=dict)
    hat_tricks: int = 0
    # Every (marker, badge) the history currently qualifies for
    unlocked: list[tuple[str, Badge]] = field(default_factory=list)

    @property
    def unlocked_markers(self) -> list[str]:
        return [marker for marker, _ in self.unlocked]

    @property
    def hat_trick_level(self) -> int:
        return count_level(self.hat_tricks)


def evaluate_achievements(history: Sequence[MatchRecord]) -> AchievementReport:
    report = AchievementReport()
    for metric in ("win", "scoring", "assist", "motm", "clean_sheet_win"):
        report.streaks[metric] = streak_for(history, metric)
    report.hat_tricks = hat_trick_count(history)

    for badge in BADGES:
        if badge.kind == "count":
            levels = count_level(report.hat_tricks, badge.threshold)
            report.unlocked.extend((marker_for(badge, level), badge) for level in range(1, levels + 1))
        elif report.streaks.get(badge.metric, 0) >= badge.threshold:
            report.unlocked.append((marker_for(badge), badge))
    return report


def load_match_history(session: Session, player_id: int) -> list[MatchRecord]:
    """Chronological RESULT_PUBLISHED matches the player appeared in, across all leagues."""
    home_match_ids = select(match_home_players.c.match_id).where(
        match_home_players.c.player_id == player_id
    )
    away_match_ids = select(match_away_players.c.match_id).where(
        match_away_players.c.player_id == player_id
    )
    matches = (
        session.query(Match)
        .filter(Match.status == MatchStatus.result_published.value)
        .filter(or_(Match.id.in_(home_match_ids), Match.id.in_(away_match_ids)))
        .order_by(Match.start, Match.id)
        .all()
    )
    if not matches:
        return []

    match_ids = [m.id for m in matches]
    stats = {
        stat.match_id: stat
        for stat in session.query(PlayerMatchStatistic).filter(
            PlayerMatchStatistic.player_id == player_id,
            PlayerMatchStatistic.match_id.in_(match_ids),
        )
    }
    votes = votes_received_by_match(session, player_id, match_ids)

    history: list[MatchRecord] = []
    for match in matches:
        side = match.side_of(player_id)
        if side is None:
            continue
        scored, conceded = match.goals_for(side)
        stat = stats.get(match.id)
        history.append(
            MatchRecord(
                match_id=match.id,
                league_id=match.league_id,
                start=match.start,
                goals=stat.goals if stat else 0,
                assists=stat.assists if stat else 0,
                result=determine_result(scored, conceded),
                conceded=conceded,
                votes_received=votes.get(match.id, 0),
            )
        )
    return history


def award_achievements(session: Session, player_id: int) -> list[str]:
    """Credit XP for newly unlocked badges. Returns the markers awarded by this call.

    Markers are never removed, so a badge that later stops qualifying (after a
    stat correction) keeps its XP.
    """
    player = lock_players(session, [player_id])[player_id]
    report = evaluate_achievements(load_match_history(session, player_id))

    owned = player.achievement_set()
    awarded: list[str] = []
    credited = 0
    for marker, badge in report.unlocked:
        if marker in owned:
            continue
        owned.add(marker)
        awarded.append(marker)
        credited += badge_xp(badge)

    if awarded:
        player.achievements = [*(player.achievements or []), *awarded]
        player.xp = max(0, player.xp + credited)
        session.flush()
        logger.info(
            "achievements_awarded",
            player_id=player_id,
            markers=awarded,
            xp=credited,
            total_xp=player.xp,
        )
    return awarded
