"""Tests for xp_table.py module."""

from __future__ import annotations

import pytest

from league_xp.xp_table import (
    RateByResult,
    SettlementInputs,
    TeamResult,
    XPRateTable,
    compute_match_xp,
    determine_result,
)


class TestDetermineResult:
    """Tests for determine_result function."""

    @pytest.mark.parametrize(
        ("scored", "conceded", "expected"),
        [
            (3, 0, TeamResult.win),
            (0, 3, TeamResult.lose),
            (2, 2, TeamResult.draw),
            (0, 0, TeamResult.draw),
        ],
    )
    def test_result_from_goals(self, scored, conceded, expected):
        assert determine_result(scored, conceded) is expected


class TestRateByResult:
    """Tests for RateByResult model."""

    def test_draw_defaults_to_lose_rate(self):
        rate = RateByResult(win=3, lose=2)
        assert rate.draw == 2
        assert rate.for_result(TeamResult.draw) == 2

    def test_explicit_draw_rate(self):
        rate = RateByResult(win=3, lose=1, draw=2)
        assert rate.for_result(TeamResult.win) == 3
        assert rate.for_result(TeamResult.draw) == 2
        assert rate.for_result(TeamResult.lose) == 1


class TestComputeMatchXP:
    """Tests for compute_match_xp function."""

    def test_winning_scorer_with_votes_and_mentality_pick(self):
        """Home wins 3-0; 2 goals, 1 assist, 2 votes, mentality pick is 44 XP."""
        inputs = SettlementInputs(
            result=TeamResult.win,
            goals=2,
            assists=1,
            votes_received=2,
            mentality_pick=True,
        )

        breakdown = compute_match_xp(inputs, XPRateTable())

        assert breakdown.as_dict() == {
            "result_win": 30,
            "goals": 6,
            "assists": 2,
            "motm_votes": 4,
            "mentality": 2,
        }
        assert breakdown.total == 44

    def test_one_goal_less_is_three_xp_less(self):
        table = XPRateTable()
        two = compute_match_xp(SettlementInputs(result=TeamResult.win, goals=2), table)
        one = compute_match_xp(SettlementInputs(result=TeamResult.win, goals=1), table)
        assert two.total - one.total == 3

    def test_base_only(self):
        table = XPRateTable()
        assert compute_match_xp(SettlementInputs(result=TeamResult.win), table).total == 30
        assert compute_match_xp(SettlementInputs(result=TeamResult.draw), table).total == 15
        assert compute_match_xp(SettlementInputs(result=TeamResult.lose), table).total == 10

    def test_draw_pays_lose_rates(self):
        inputs = SettlementInputs(result=TeamResult.draw, goals=1, assists=1, votes_received=1)
        breakdown = compute_match_xp(inputs, XPRateTable())
        assert breakdown.total == 15 + 2 + 1 + 1

    def test_clean_sheets_are_flat(self):
        table = XPRateTable()
        win = compute_match_xp(SettlementInputs(result=TeamResult.win, clean_sheets=1), table)
        lose = compute_match_xp(SettlementInputs(result=TeamResult.lose, clean_sheets=1), table)
        assert win.as_dict()["clean_sheets"] == lose.as_dict()["clean_sheets"] == 5

    def test_picks_are_independent(self):
        inputs = SettlementInputs(
            result=TeamResult.lose, defensive_impact_pick=True, mentality_pick=True
        )
        breakdown = compute_match_xp(inputs, XPRateTable())
        assert breakdown.as_dict() == {"result_lose": 10, "defensive_impact": 1, "mentality": 2}

    def test_uses_configured_table_by_default(self):
        from league_xp.config import settings

        breakdown = compute_match_xp(SettlementInputs(result=TeamResult.win))
        assert breakdown.total == settings.xp_table.winning_team

    def test_custom_table(self):
        table = XPRateTable(winning_team=50, goal=RateByResult(win=10, lose=5))
        breakdown = compute_match_xp(SettlementInputs(result=TeamResult.win, goals=2), table)
        assert breakdown.total == 70
