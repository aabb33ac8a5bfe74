"""Engine operations. Each takes a caller-owned Session and runs inside its transaction."""

from .match_lifecycle import (
    confirm_result,
    get_captain_picks,
    resolve_transition,
    schedule_match,
    set_captain_pick,
    suggest_revision,
    upload_result,
)
from .rankings import league_xp_leaderboard, player_xp_summary, recalculate_total_xp
from .settlement import resettle_players, settle_match, settle_player, xp_breakdown
from .stats import get_match_stats, submit_stats
from .votes import motm_leader, record_vote, tally_votes, votes_received

__all__ = [
    "confirm_result",
    "get_captain_picks",
    "get_match_stats",
    "league_xp_leaderboard",
    "motm_leader",
    "player_xp_summary",
    "recalculate_total_xp",
    "record_vote",
    "resettle_players",
    "resolve_transition",
    "schedule_match",
    "set_captain_pick",
    "settle_match",
    "settle_player",
    "submit_stats",
    "suggest_revision",
    "tally_votes",
    "upload_result",
    "votes_received",
    "xp_breakdown",
]
