"""Tests for logging.py level resolution."""

from __future__ import annotations

import logging

import pytest

from league_xp.logging import resolve_log_level


class TestResolveLogLevel:
    @pytest.mark.parametrize(
        ("level", "environment", "expected"),
        [
            (None, "production", logging.INFO),
            (None, "development", logging.DEBUG),
            ("", "staging", logging.DEBUG),
            (" warning ", "production", logging.WARNING),
            ("error", "development", logging.ERROR),
            ("chatty", "development", logging.INFO),
        ],
    )
    def test_levels(self, level, environment, expected):
        assert resolve_log_level(level, environment) == expected
