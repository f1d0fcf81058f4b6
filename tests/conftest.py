"""
Shared pytest fixtures for the extraction tests.

The conftest patches the Config singleton at import time so every module
sees schema defaults instead of whatever config.json sits in the working
directory.
"""

import sys
from pathlib import Path

# Ensure project root is on sys.path so imports work from tests/
sys.path.insert(0, str(Path(__file__).parent.parent))

from common.config import Config

_test_config = Config.__new__(Config)
_test_config._config = {"paths": {}}
Config._instance = _test_config

import pytest

from common.models import LeaderboardEntry, PrizeRow, StrategyResult


def _entries(source, rows):
    """rows: (rank, username, wager) or (rank, username, wager, prize) tuples."""
    entries = []
    for row in rows:
        rank, username, wager = row[:3]
        prize = row[3] if len(row) > 3 else 0.0
        entries.append(LeaderboardEntry(rank=rank, username=username, wager=wager, prize=prize, source=source))
    return entries


@pytest.fixture
def make_entries():
    return _entries


@pytest.fixture
def make_result():
    def factory(source, rows, confidence=80.0, prizes=None, total_prize_pool=0.0):
        return StrategyResult(
            entries=_entries(source, rows),
            prizes=[PrizeRow(rank=r, prize=p) for r, p in (prizes or [])],
            confidence=confidence,
            total_prize_pool=total_prize_pool,
        )
    return factory


@pytest.fixture
def ten_rows():
    """A clean ten-row leaderboard with strictly decreasing wagers."""
    names = ["alpha", "bravo", "charlie", "delta", "echo", "foxtrot", "golf", "hotel", "india", "juliet"]
    return [(i + 1, name, 50000.0 - i * 4000) for i, name in enumerate(names)]


class FakeStrategy:
    """Minimal strategy double: returns a canned result or raises."""

    def __init__(self, name, result=None, priority=1.0, error=None, applicable=True, deferred=False):
        self.name = name
        self.priority = priority
        self.deferred = deferred
        self._result = result
        self._error = error
        self._applicable = applicable
        self.calls = 0

    def can_extract(self, data):
        return self._applicable

    async def extract(self, data):
        self.calls += 1
        if self._error is not None:
            raise self._error
        return self._result


@pytest.fixture
def fake_strategy():
    return FakeStrategy


class FakePage:
    """Async page double for strategies that query a live page."""

    def __init__(self, html="", elements=None, screenshot_bytes=b"png"):
        self._html = html
        self._elements = elements or []
        self._screenshot = screenshot_bytes
        self.screenshots = 0

    async def content(self):
        return self._html

    async def evaluate(self, script):
        return self._elements

    async def screenshot(self, full_page=False):
        self.screenshots += 1
        return self._screenshot


@pytest.fixture
def fake_page():
    return FakePage
