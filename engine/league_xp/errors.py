"""Exceptions raised by the league XP engine.

Callers (the HTTP layer) map these onto status codes: ValidationError -> 400,
PermissionDeniedError -> 403, NotFoundError -> 404, InvalidTransitionError -> 409.
"""

from __future__ import annotations


class LeagueXPError(Exception):
    """Base class for engine errors."""


class ValidationError(LeagueXPError):
    """Request data is malformed or violates a domain rule."""


class PermissionDeniedError(LeagueXPError):
    """Caller lacks the role required for the operation."""


class NotFoundError(LeagueXPError):
    """A referenced match, player or guest does not exist."""


class InvalidTransitionError(LeagueXPError):
    """Operation is not allowed in the match's current status."""

    def __init__(self, current: str, target: str, message: str | None = None) -> None:
        self.current = current
        self.target = target
        super().__init__(message or f"Cannot move match from {current} to {target}")
