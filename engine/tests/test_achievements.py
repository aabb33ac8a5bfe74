"""Tests for services/achievements.py module."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from league_xp.db import League
from league_xp.services.achievements import (
    MatchRecord,
    award_achievements,
    evaluate_achievements,
    hat_trick_count,
    load_match_history,
    longest_streak,
    marker_xp,
    streak_for,
)
from league_xp.services.stats import submit_stats
from league_xp.xp_table import TeamResult

BASE = datetime(2026, 1, 4, 10, 0, tzinfo=timezone.utc)


def record(
    day: int,
    *,
    league: int = 1,
    result: TeamResult = TeamResult.lose,
    goals: int = 0,
    assists: int = 0,
    conceded: int = 1,
    votes: int = 0,
) -> MatchRecord:
    return MatchRecord(
        match_id=day,
        league_id=league,
        start=BASE + timedelta(days=day),
        goals=goals,
        assists=assists,
        result=result,
        conceded=conceded,
        votes_received=votes,
    )


class TestLongestStreak:
    """Tests for longest_streak function."""

    def test_longest_run(self):
        history = [
            record(i, result=TeamResult.win if c == "W" else TeamResult.lose)
            for i, c in enumerate("WWLWWWL")
        ]
        assert longest_streak(history, lambda m: m.won) == 3

    def test_empty(self):
        assert longest_streak([], lambda m: True) == 0

    def test_history_is_ordered_by_start(self):
        # Out-of-order input: days 2, 0, 1 all wins, day 3 a loss in between chronologically
        history = [
            record(2, result=TeamResult.win),
            record(3, result=TeamResult.lose),
            record(0, result=TeamResult.win),
            record(1, result=TeamResult.win),
        ]
        assert streak_for(history, "win") == 3


class TestStreakScopes:
    """League-scoped streaks never continue across leagues; MOTM and clean sheets do."""

    def test_win_streak_is_per_league(self):
        history = [
            record(0, league=1, result=TeamResult.win),
            record(1, league=2, result=TeamResult.win),
            record(2, league=1, result=TeamResult.win),
            record(3, league=2, result=TeamResult.lose),
        ]
        assert streak_for(history, "win") == 2

    def test_win_streak_survives_other_league_losses(self):
        history = [
            record(0, league=1, result=TeamResult.win),
            record(1, league=2, result=TeamResult.lose),
            record(2, league=1, result=TeamResult.win),
            record(3, league=1, result=TeamResult.win),
        ]
        assert streak_for(history, "win") == 3

    def test_motm_streak_spans_leagues(self):
        history = [record(0, league=1, votes=1), record(1, league=2, votes=2), record(2, league=3, votes=1)]
        report = evaluate_achievements(history)
        assert report.streaks["motm"] == 3
        assert "motm_streak_3" in report.unlocked_markers

    def test_clean_sheet_win_needs_win_and_zero_conceded(self):
        history = [
            record(0, league=1, result=TeamResult.win, conceded=0),
            record(1, league=2, result=TeamResult.win, conceded=0),
            record(2, league=1, result=TeamResult.draw, conceded=0),
            record(3, league=1, result=TeamResult.win, conceded=0),
        ]
        assert streak_for(history, "clean_sheet_win") == 2

    def test_scoring_and_assist_streaks(self):
        history = [record(i, goals=1, assists=1 if i < 2 else 0) for i in range(5)]
        report = evaluate_achievements(history)
        assert report.streaks["scoring"] == 5
        assert report.streaks["assist"] == 2
        assert {"scoring_streak_3", "scoring_streak_5"} <= set(report.unlocked_markers)
        assert "assist_streak_3" not in report.unlocked_markers


class TestHatTricks:
    """Hat-trick badge levels unlock at multiples of three within one league."""

    @pytest.mark.parametrize(
        ("hat_tricks", "markers"),
        [
            (2, []),
            (3, ["hat_trick_hero:1"]),
            (5, ["hat_trick_hero:1"]),
            (6, ["hat_trick_hero:1", "hat_trick_hero:2"]),
        ],
    )
    def test_levels(self, hat_tricks, markers):
        history = [record(i, goals=3) for i in range(hat_tricks)]
        report = evaluate_achievements(history)
        assert [m for m in report.unlocked_markers if m.startswith("hat_trick")] == markers

    def test_counted_per_league(self):
        history = [record(i, league=1 + i % 2, goals=4) for i in range(4)]
        assert hat_trick_count(history) == 2
        assert evaluate_achievements(history).hat_trick_level == 0

    def test_two_goals_is_not_a_hat_trick(self):
        assert hat_trick_count([record(i, goals=2) for i in range(9)]) == 0


class TestMarkerXP:
    def test_known_and_unknown_markers(self):
        assert marker_xp("win_streak_3") == 20
        assert marker_xp("hat_trick_hero:2") == 25
        assert marker_xp("retired_badge") == 0


class TestAwardAchievements:
    """Tests for award_achievements against the database."""

    def test_three_wins_award_badge_once(self, session, world, make_match, publish):
        for _ in range(3):
            publish(make_match(), 2, 1)

        player = world.home[3]
        assert "win_streak_3" in player.achievements
        assert player.xp == 3 * 30 + 20

        assert award_achievements(session, player.id) == []
        session.commit()
        assert player.xp == 110
        assert player.achievements.count("win_streak_3") == 1

    def test_losers_get_nothing(self, session, world, make_match, publish):
        for _ in range(3):
            publish(make_match(), 2, 1)
        assert world.away[3].achievements == []

    def test_history_spans_leagues(self, session, world, make_match, publish):
        other = League(name="Midweek League", admins=[world.admin])
        session.add(other)
        session.commit()

        publish(make_match(), 1, 0)
        publish(make_match(league=other), 1, 0)

        history = load_match_history(session, world.home[1].id)
        assert [m.league_id for m in history] == [world.league.id, other.id]
        assert all(m.won and m.conceded == 0 for m in history)

    def test_unpublished_matches_are_ignored(self, session, world, make_match):
        make_match()
        assert load_match_history(session, world.home[1].id) == []

    def test_hat_trick_badge_after_third_hat_trick(self, session, world, make_match, publish):
        scorer = world.home[1]
        for i in range(3):
            match = make_match()
            submit_stats(session, match.id, world.admin.id, {"playerId": scorer.id, "goals": 3})
            session.commit()
            publish(match, 3, 1)
            expected = [] if i < 2 else ["hat_trick_hero:1"]
            assert [m for m in scorer.achievements if m.startswith("hat_trick")] == expected
