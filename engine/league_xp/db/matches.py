"""Match, roster, statistic and vote models."""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    Column,
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Table,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base
from .league import League, Player


class MatchStatus(str, Enum):
    """Result lifecycle of a match.

    Happy path: SCHEDULED → RESULT_UPLOADED → RESULT_PUBLISHED
    A captain may divert RESULT_UPLOADED to REVISION_REQUESTED; the admin
    re-uploads to return it to RESULT_UPLOADED.
    """

    scheduled = "SCHEDULED"
    result_uploaded = "RESULT_UPLOADED"
    revision_requested = "REVISION_REQUESTED"
    result_published = "RESULT_PUBLISHED"


class TeamSide(str, Enum):
    home = "home"
    away = "away"


match_home_players = Table(
    "match_home_players",
    Base.metadata,
    Column("match_id", Integer, ForeignKey("matches.id", ondelete="CASCADE"), primary_key=True),
    Column("player_id", Integer, ForeignKey("players.id", ondelete="CASCADE"), primary_key=True),
)

match_away_players = Table(
    "match_away_players",
    Base.metadata,
    Column("match_id", Integer, ForeignKey("matches.id", ondelete="CASCADE"), primary_key=True),
    Column("player_id", Integer, ForeignKey("players.id", ondelete="CASCADE"), primary_key=True),
)


class Match(Base):
    """A scheduled league match and its result-confirmation state."""

    __tablename__ = "matches"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    league_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("leagues.id", ondelete="CASCADE"), nullable=False, index=True
    )
    season_id: Mapped[int | None] = mapped_column(Integer, nullable=True, index=True)
    start: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    end: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    location: Mapped[str | None] = mapped_column(String(200), nullable=True)
    home_team_name: Mapped[str] = mapped_column(String(100), nullable=False, default="Home")
    away_team_name: Mapped[str] = mapped_column(String(100), nullable=False, default="Away")

    home_captain_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("players.id"), nullable=True
    )
    away_captain_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("players.id"), nullable=True
    )

    home_goals: Mapped[int | None] = mapped_column(Integer, nullable=True)
    away_goals: Mapped[int | None] = mapped_column(Integer, nullable=True)
    status: Mapped[str] = mapped_column(
        String(32), nullable=False, default=MatchStatus.scheduled.value, index=True
    )

    home_captain_confirmed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    away_captain_confirmed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    suggested_home_goals: Mapped[int | None] = mapped_column(Integer, nullable=True)
    suggested_away_goals: Mapped[int | None] = mapped_column(Integer, nullable=True)
    suggested_by_captain_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("players.id"), nullable=True
    )
    result_uploaded_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )
    result_published_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # Captain picks, one of each per side
    home_defensive_impact_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("players.id"), nullable=True
    )
    away_defensive_impact_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("players.id"), nullable=True
    )
    home_mentality_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("players.id"), nullable=True
    )
    away_mentality_id: Mapped[int | None] = mapped_column(
        Integer, ForeignKey("players.id"), nullable=True
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    league: Mapped[League] = relationship("League")
    home_players: Mapped[list[Player]] = relationship("Player", secondary=match_home_players)
    away_players: Mapped[list[Player]] = relationship("Player", secondary=match_away_players)

    __table_args__ = (
        CheckConstraint("home_goals IS NULL OR home_goals >= 0", name="ck_matches_home_goals"),
        CheckConstraint("away_goals IS NULL OR away_goals >= 0", name="ck_matches_away_goals"),
        Index("idx_matches_league_start", "league_id", "start"),
    )

    @property
    def home_player_ids(self) -> set[int]:
        return {p.id for p in self.home_players}

    @property
    def away_player_ids(self) -> set[int]:
        return {p.id for p in self.away_players}

    @property
    def participant_ids(self) -> set[int]:
        return self.home_player_ids | self.away_player_ids

    @property
    def has_goals(self) -> bool:
        return self.home_goals is not None and self.away_goals is not None

    @property
    def is_published(self) -> bool:
        return self.status == MatchStatus.result_published.value

    def side_of(self, player_id: int) -> TeamSide | None:
        if player_id in self.home_player_ids:
            return TeamSide.home
        if player_id in self.away_player_ids:
            return TeamSide.away
        return None

    def captain_side(self, player_id: int) -> TeamSide | None:
        if self.home_captain_id is not None and self.home_captain_id == player_id:
            return TeamSide.home
        if self.away_captain_id is not None and self.away_captain_id == player_id:
            return TeamSide.away
        return None

    def goals_for(self, side: TeamSide) -> tuple[int, int]:
        """Return (scored, conceded) for a side, treating missing goals as 0."""
        home = self.home_goals or 0
        away = self.away_goals or 0
        return (home, away) if side is TeamSide.home else (away, home)

    def defensive_impact_ids(self) -> set[int]:
        return {pid for pid in (self.home_defensive_impact_id, self.away_defensive_impact_id) if pid}

    def mentality_ids(self) -> set[int]:
        return {pid for pid in (self.home_mentality_id, self.away_mentality_id) if pid}


class MatchGuest(Base):
    """Unregistered player added to one match's roster by the organiser."""

    __tablename__ = "match_guests"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    match_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("matches.id", ondelete="CASCADE"), nullable=False, index=True
    )
    team: Mapped[str] = mapped_column(String(10), nullable=False)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False, default="Guest")
    last_name: Mapped[str] = mapped_column(String(100), nullable=False, default="Player")
    shirt_number: Mapped[str | None] = mapped_column(String(10), nullable=True)


class PlayerMatchStatistic(Base):
    """Raw stats for one player in one match plus the XP already credited for them."""

    __tablename__ = "player_match_statistics"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    match_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("matches.id", ondelete="CASCADE"), nullable=False, index=True
    )
    player_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("players.id", ondelete="CASCADE"), nullable=False, index=True
    )
    goals: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    assists: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    clean_sheets: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    penalties: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    free_kicks: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    yellow_cards: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    red_cards: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    defence: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    impact: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    minutes_played: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    rating: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    # Authoritative "already paid" XP for this (match, player); deltas are computed against it
    xp_awarded: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    match: Mapped[Match] = relationship("Match")
    player: Mapped[Player] = relationship("Player")

    __table_args__ = (
        UniqueConstraint("match_id", "player_id", name="uq_player_match_statistics_match_player"),
    )


class Vote(Base):
    """A voter's single live MOTM vote for a match."""

    __tablename__ = "votes"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    match_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("matches.id", ondelete="CASCADE"), nullable=False, index=True
    )
    voter_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("players.id", ondelete="CASCADE"), nullable=False
    )
    voted_for_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("players.id", ondelete="CASCADE"), nullable=False, index=True
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    __table_args__ = (
        UniqueConstraint("match_id", "voter_id", name="uq_votes_match_voter"),
        CheckConstraint("voter_id <> voted_for_id", name="ck_votes_no_self_vote"),
    )
