"""
Core Mastery Module.

Qualitative topic status ladder shared by the scheduler, the predictor and
the CLI.

Design:
- TopicStatus: ordered enum for the color-coded topic states
- DECAY_RULES: how an unreviewed topic slides down the ladder over time
- apply_status_decay: pure function applying those rules to a topic
"""

from __future__ import annotations

from dataclasses import replace
from datetime import date, datetime
from enum import IntEnum
from typing import TYPE_CHECKING, Iterable

if TYPE_CHECKING:
    from compass.core.models import Topic


class TopicStatus(IntEnum):
    """
    Topic status, ordered from no coverage to solid coverage.

    Drives the UI colors and feeds the readiness predictor as a coarse
    coverage signal independent of the memory state.
    """

    UNTOUCHED = 0  # gray
    STRUGGLING = 1  # orange
    LEARNING = 2  # yellow
    MASTERED = 3  # green

    @classmethod
    def from_average_grade(cls, average: float) -> TopicStatus:
        """
        Convert an average quiz mark (2-6 scale) to a status.

        Args:
            average: Mean of the topic's quiz marks

        Returns:
            MASTERED from 5.5, LEARNING from 4.5, otherwise STRUGGLING
        """
        if average >= 5.5:
            return cls.MASTERED
        elif average >= 4.5:
            return cls.LEARNING
        return cls.STRUGGLING

    @classmethod
    def parse(cls, value: object) -> TopicStatus:
        """Accept a status, its name, its value or its legacy color."""
        if isinstance(value, TopicStatus):
            return value
        if isinstance(value, int) and not isinstance(value, bool):
            return cls(value)
        if isinstance(value, str):
            key = value.strip().lower()
            if key in _COLOR_ALIASES:
                return _COLOR_ALIASES[key]
            try:
                return cls[key.upper()]
            except KeyError:
                raise ValueError(f"Unknown topic status: {value!r}") from None
        raise ValueError(f"Unknown topic status: {value!r}")

    @property
    def display_name(self) -> str:
        """Human-readable name."""
        return self.name.replace("_", " ").title()

    @property
    def weight(self) -> float:
        """Contribution of a topic in this status to weighted progress."""
        return {
            TopicStatus.UNTOUCHED: 0.0,
            TopicStatus.STRUGGLING: 0.3,
            TopicStatus.LEARNING: 0.7,
            TopicStatus.MASTERED: 1.0,
        }[self]

    @property
    def color(self) -> str:
        """Rich color for CLI display."""
        return {
            TopicStatus.UNTOUCHED: "dim",
            TopicStatus.STRUGGLING: "dark_orange",
            TopicStatus.LEARNING: "yellow",
            TopicStatus.MASTERED: "green",
        }[self]


_COLOR_ALIASES = {
    "gray": TopicStatus.UNTOUCHED,
    "orange": TopicStatus.STRUGGLING,
    "yellow": TopicStatus.LEARNING,
    "green": TopicStatus.MASTERED,
}


# ============================================================================
# Status Decay
# ============================================================================

# Checked in order; the first rule whose threshold is reached applies.
DECAY_RULES: dict[TopicStatus, tuple[tuple[int, TopicStatus], ...]] = {
    TopicStatus.MASTERED: (
        (18, TopicStatus.STRUGGLING),
        (10, TopicStatus.LEARNING),
    ),
    TopicStatus.LEARNING: (
        (14, TopicStatus.UNTOUCHED),
        (7, TopicStatus.STRUGGLING),
    ),
    TopicStatus.STRUGGLING: (
        (12, TopicStatus.UNTOUCHED),
    ),
    TopicStatus.UNTOUCHED: (),
}


def decayed_status(status: TopicStatus, days_since_review: int) -> TopicStatus:
    """Status after ``days_since_review`` days without a review."""
    for min_days, new_status in DECAY_RULES[status]:
        if days_since_review >= min_days:
            return new_status
    return status


def apply_status_decay(topic: Topic, as_of: date | datetime) -> Topic:
    """
    Return the topic with its status decayed for the time since it was last
    studied (graded review or quiz mark, whichever is later).

    Topics that were never reviewed or quizzed keep their status.
    """
    last_review = topic.last_studied
    if last_review is None:
        return topic
    if isinstance(as_of, datetime):
        as_of = as_of.date()

    new_status = decayed_status(topic.status, max(0, (as_of - last_review).days))
    if new_status == topic.status:
        return topic
    return replace(topic, status=new_status)


def count_statuses(topics: Iterable[Topic]) -> dict[TopicStatus, int]:
    """Count topics per status (every status present, zero-filled)."""
    counts = {status: 0 for status in TopicStatus}
    for topic in topics:
        counts[topic.status] += 1
    return counts
