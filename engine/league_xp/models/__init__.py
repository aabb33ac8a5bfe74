"""Typed request models used at the engine boundary."""

from .schemas import (
    CaptainPickCategory,
    CaptainPickRequest,
    GuestEntry,
    GuestPlayer,
    PlayerRef,
    RegisteredPlayer,
    StatSubmission,
    normalize_stat_payload,
    parse_captain_pick,
)

__all__ = [
    "CaptainPickCategory",
    "CaptainPickRequest",
    "GuestEntry",
    "GuestPlayer",
    "PlayerRef",
    "RegisteredPlayer",
    "StatSubmission",
    "normalize_stat_payload",
    "parse_captain_pick",
]
