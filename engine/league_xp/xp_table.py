"""XP rate table and the per-match XP formula.

This is the only place XP for a (match, player) is computed. Settlement,
breakdown views and reporting all call compute_match_xp; nothing else
multiplies rates.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from pydantic import BaseModel, Field, model_validator


class TeamResult(str, Enum):
    """Result of a match from one team's point of view."""

    win = "win"
    draw = "draw"
    lose = "lose"


class RateByResult(BaseModel):
    """Per-unit XP that depends on the player's team result.

    ``draw`` falls back to the ``lose`` rate when not configured: only a win
    earns the higher rate.
    """

    win: int
    lose: int
    draw: int | None = None

    @model_validator(mode="after")
    def _default_draw(self) -> RateByResult:
        if self.draw is None:
            self.draw = self.lose
        return self

    def for_result(self, result: TeamResult) -> int:
        if result is TeamResult.win:
            return self.win
        if result is TeamResult.draw:
            return self.draw  # type: ignore[return-value]
        return self.lose


class XPRateTable(BaseModel):
    winning_team: int = 30
    draw: int = 15
    losing_team: int = 10
    clean_sheet: int = 5
    goal: RateByResult = Field(default_factory=lambda: RateByResult(win=3, lose=2))
    assist: RateByResult = Field(default_factory=lambda: RateByResult(win=2, lose=1))
    motm_vote: RateByResult = Field(default_factory=lambda: RateByResult(win=2, lose=1))
    defensive_impact: RateByResult = Field(default_factory=lambda: RateByResult(win=2, lose=1))
    mentality: RateByResult = Field(default_factory=lambda: RateByResult(win=2, lose=2))

    def base_for(self, result: TeamResult) -> int:
        if result is TeamResult.win:
            return self.winning_team
        if result is TeamResult.draw:
            return self.draw
        return self.losing_team


def determine_result(team_goals: int, opponent_goals: int) -> TeamResult:
    if team_goals > opponent_goals:
        return TeamResult.win
    if team_goals < opponent_goals:
        return TeamResult.lose
    return TeamResult.draw


@dataclass(frozen=True)
class SettlementInputs:
    """Everything the formula needs for one player in one match."""

    result: TeamResult
    goals: int = 0
    assists: int = 0
    clean_sheets: int = 0
    votes_received: int = 0
    defensive_impact_pick: bool = False
    mentality_pick: bool = False


@dataclass
class XPBreakdown:
    result: TeamResult
    lines: list[tuple[str, int]] = field(default_factory=list)

    @property
    def total(self) -> int:
        return sum(xp for _, xp in self.lines)

    def as_dict(self) -> dict[str, int]:
        return dict(self.lines)


def compute_match_xp(inputs: SettlementInputs, table: XPRateTable | None = None) -> XPBreakdown:
    """Compute the XP a player has earned for one match.

    Base XP by result, plus goals/assists at the result rate, clean sheets at
    a flat rate, votes received at the result rate, and each captain pick the
    player holds. There is no separate MOTM-winner bonus.
    """
    if table is None:
        from .config import settings

        table = settings.xp_table

    result = inputs.result
    breakdown = XPBreakdown(result=result)
    breakdown.lines.append((f"result_{result.value}", table.base_for(result)))

    if inputs.goals > 0:
        breakdown.lines.append(("goals", inputs.goals * table.goal.for_result(result)))
    if inputs.assists > 0:
        breakdown.lines.append(("assists", inputs.assists * table.assist.for_result(result)))
    if inputs.clean_sheets > 0:
        breakdown.lines.append(("clean_sheets", inputs.clean_sheets * table.clean_sheet))
    if inputs.votes_received > 0:
        breakdown.lines.append(
            ("motm_votes", inputs.votes_received * table.motm_vote.for_result(result))
        )
    if inputs.defensive_impact_pick:
        breakdown.lines.append(("defensive_impact", table.defensive_impact.for_result(result)))
    if inputs.mentality_pick:
        breakdown.lines.append(("mentality", table.mentality.for_result(result)))

    return breakdown
