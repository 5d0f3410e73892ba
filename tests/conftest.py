"""
Pytest Configuration and Fixtures.

This file configures pytest and provides shared fixtures for all tests.
"""
import random
import sys
from datetime import date, datetime
from pathlib import Path

import pytest

# Add project root to path
PROJECT_ROOT = Path(__file__).parent.parent
sys.path.insert(0, str(PROJECT_ROOT))

from compass.core.mastery import TopicStatus  # noqa: E402
from compass.core.models import MemoryState, Subject, TimerSession, Topic  # noqa: E402


def pytest_configure(config):
    """Configure pytest markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests (use a SQLite database)")
    config.addinivalue_line("markers", "smoke: Smoke tests for CLI commands")
    config.addinivalue_line("markers", "slow: Slow tests")


def pytest_collection_modifyitems(config, items):
    """Automatically mark tests based on their location."""
    for item in items:
        # Mark based on test file location
        if "unit" in str(item.fspath):
            item.add_marker(pytest.mark.unit)
        elif "integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
        elif "smoke" in str(item.fspath):
            item.add_marker(pytest.mark.smoke)


@pytest.fixture
def today():
    """Fixed reference date (a Wednesday)."""
    return date(2025, 1, 15)


@pytest.fixture
def rng():
    """Deterministic random source."""
    return random.Random(42)


@pytest.fixture
def make_memory(today):
    """Factory for memory states reviewed relative to ``today``."""

    def _make(stability=10.0, difficulty=5.0, days_ago=0, review_count=3, lapses=0):
        return MemoryState(
            stability=stability,
            difficulty=difficulty,
            last_review_date=date.fromordinal(today.toordinal() - days_ago),
            review_count=review_count,
            lapses=lapses,
        )

    return _make


@pytest.fixture
def make_topic():
    """Factory for topics."""
    counter = iter(range(1, 10_000))

    def _make(name=None, subject_id="anatomy", status=TopicStatus.UNTOUCHED, **kwargs):
        number = next(counter)
        return Topic(
            id=kwargs.pop("id", f"{subject_id}-{number:02d}"),
            subject_id=subject_id,
            name=name or f"Topic {number}",
            status=status,
            **kwargs,
        )

    return _make


@pytest.fixture
def make_subject():
    """Factory for subjects."""

    def _make(topics=(), subject_id="anatomy", name="Anatomy", exam_date=None):
        return Subject(id=subject_id, name=name, exam_date=exam_date, topics=tuple(topics))

    return _make


@pytest.fixture
def make_session():
    """Factory for timer sessions starting at a naive local time."""
    counter = iter(range(1, 10_000))

    def _make(start, duration=30.0, subject_id="anatomy", topic_id=None):
        if isinstance(start, date) and not isinstance(start, datetime):
            start = datetime(start.year, start.month, start.day, 10, 0)
        return TimerSession(
            id=f"session-{next(counter)}",
            start_time=start,
            duration=duration,
            subject_id=subject_id,
            topic_id=topic_id,
        )

    return _make
