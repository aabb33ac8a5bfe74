"""Structured logging for the league XP engine.

Every state change in the engine emits one JSON line with a snake_case
event name and keyword context, for example::

    {"message": "xp_settled", "match_id": 7, "player_id": 12, "delta": -3, ...}

Settlement, vote, lifecycle and repair events carry the ids needed to
replay an XP movement from the logs alone. Hook and notification failures
are logged at warning level because the engine swallows them.
"""

from __future__ import annotations

import logging

import structlog

from .config import settings

SERVICE_NAME = "league-xp"


def resolve_log_level(level: str | None, environment: str) -> int:
    """Explicit LOG_LEVEL wins; otherwise production logs INFO and everything else DEBUG."""
    if not level:
        return logging.INFO if environment.lower() == "production" else logging.DEBUG
    return logging._nameToLevel.get(level.strip().upper(), logging.INFO)


def configure_logging(level: int | None = None) -> None:
    if level is None:
        level = resolve_log_level(settings.log_level, settings.environment)
    logging.basicConfig(level=level)
    structlog.configure(
        processors=[
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.add_log_level,
            structlog.processors.EventRenamer("message"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.JSONRenderer(),
        ],
        wrapper_class=structlog.make_filtering_bound_logger(level),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
    )


configure_logging()

logger = structlog.get_logger(SERVICE_NAME).bind(
    service=SERVICE_NAME,
    environment=settings.environment,
)
