"""Datetime helpers.

All datetimes stored by the engine are UTC. Some backends (SQLite) hand
timezone-aware columns back as naive values; ``ensure_utc`` normalizes them
before comparison.
"""

from __future__ import annotations

from datetime import date, datetime, timezone


def now_utc() -> datetime:
    """Get the current time in UTC, timezone-aware."""
    return datetime.now(timezone.utc)


def ensure_utc(value: datetime) -> datetime:
    """Treat naive datetimes as UTC and convert aware ones to UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def year_bounds(year: int) -> tuple[datetime, datetime]:
    """Return [start, end) UTC datetimes covering a calendar year."""
    start = datetime.combine(date(year, 1, 1), datetime.min.time()).replace(tzinfo=timezone.utc)
    end = datetime.combine(date(year + 1, 1, 1), datetime.min.time()).replace(tzinfo=timezone.utc)
    return start, end
