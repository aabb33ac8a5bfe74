"""League and player models."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Table,
    func,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, JSONType

league_admins = Table(
    "league_admins",
    Base.metadata,
    Column("league_id", Integer, ForeignKey("leagues.id", ondelete="CASCADE"), primary_key=True),
    Column("player_id", Integer, ForeignKey("players.id", ondelete="CASCADE"), primary_key=True),
)


class League(Base):
    """A recreational league. Only read here: admin checks and league scoping."""

    __tablename__ = "leagues"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )

    admins: Mapped[list["Player"]] = relationship("Player", secondary=league_admins)

    def is_admin(self, player_id: int) -> bool:
        return any(admin.id == player_id for admin in self.admins)


class Player(Base):
    """Registered player (or a mirrored guest) holding the running XP total."""

    __tablename__ = "players"

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    xp: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    # Badge ids already credited; treated as a set
    achievements: Mapped[list[str]] = mapped_column(JSONType, nullable=False, default=list)
    provider: Mapped[str | None] = mapped_column(String(20), nullable=True)
    provider_id: Mapped[str | None] = mapped_column(String(100), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    __table_args__ = (
        Index("idx_players_provider", "provider", "provider_id", unique=True),
    )

    @property
    def display_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()

    def achievement_set(self) -> set[str]:
        return set(self.achievements or [])

    def to_summary(self) -> dict[str, Any]:
        return {"id": self.id, "name": self.display_name, "xp": self.xp}
