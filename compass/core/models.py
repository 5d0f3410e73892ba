"""
Core domain models.

Plain dataclasses shared by the memory model, scheduler, aggregator and
predictor. Values are frozen; operations return updated copies via
``dataclasses.replace`` instead of mutating their inputs.
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from datetime import date, datetime
from enum import IntEnum

from compass.core.errors import InvalidGrade
from compass.core.mastery import TopicStatus


class Grade(IntEnum):
    """Self-rated recall quality of a review."""

    AGAIN = 1  # Forgot
    HARD = 2  # Recalled with serious effort
    GOOD = 3  # Recalled normally
    EASY = 4  # Effortless

    @classmethod
    def parse(cls, value: object) -> Grade:
        """
        Coerce an int, name or Grade into a Grade.

        Raises:
            InvalidGrade: for anything outside Again/Hard/Good/Easy
        """
        if isinstance(value, Grade):
            return value
        if isinstance(value, bool):
            raise InvalidGrade(value)
        if isinstance(value, int):
            try:
                return cls(value)
            except ValueError:
                raise InvalidGrade(value, "expected 1-4") from None
        if isinstance(value, str):
            name = value.strip().upper()
            if name.isdigit():
                return cls.parse(int(name))
            try:
                return cls[name]
            except KeyError:
                raise InvalidGrade(value) from None
        raise InvalidGrade(value)

    @classmethod
    def from_quiz_score(cls, score_percent: float) -> Grade:
        """
        Map a quiz percentage to a review grade.

        <60 Again, 60-74 Hard, 75-89 Good, 90+ Easy.
        """
        if (
            isinstance(score_percent, bool)
            or not isinstance(score_percent, (int, float))
            or not math.isfinite(score_percent)
            or not 0 <= score_percent <= 100
        ):
            raise InvalidGrade(score_percent, "quiz score must be 0-100")
        if score_percent < 60:
            return cls.AGAIN
        if score_percent < 75:
            return cls.HARD
        if score_percent < 90:
            return cls.GOOD
        return cls.EASY

    @property
    def is_success(self) -> bool:
        return self is not Grade.AGAIN


@dataclass(frozen=True)
class MemoryState:
    """FSRS memory state of a topic. Absent (None) until the first review."""

    stability: float  # Days until retrievability falls to 90%
    difficulty: float  # 1 (easy) to 10 (hard)
    last_review_date: date | None
    review_count: int = 0
    lapses: int = 0


@dataclass(frozen=True)
class ReviewEvent:
    """One grading event in a topic's append-only history."""

    date: date
    grade: Grade
    previous_interval: int
    new_interval: int


@dataclass(frozen=True)
class Topic:
    """A learning topic owned by a subject."""

    id: str
    subject_id: str
    name: str
    status: TopicStatus = TopicStatus.UNTOUCHED
    grades: tuple[float, ...] = ()  # Quiz marks on the 2-6 scale
    has_material: bool = False
    memory: MemoryState | None = None
    reviews: tuple[ReviewEvent, ...] = ()
    archived: bool = False
    last_activity: date | None = None  # Last graded review or quiz mark

    def __post_init__(self):
        object.__setattr__(self, "grades", tuple(self.grades))
        object.__setattr__(self, "reviews", tuple(self.reviews))

    @property
    def average_grade(self) -> float | None:
        if not self.grades:
            return None
        return sum(self.grades) / len(self.grades)

    @property
    def last_review_date(self) -> date | None:
        return self.memory.last_review_date if self.memory else None

    @property
    def last_studied(self) -> date | None:
        """Most recent of the last quiz mark and the last graded review."""
        dates = [d for d in (self.last_activity, self.last_review_date) if d is not None]
        return max(dates) if dates else None

    @property
    def review_count(self) -> int:
        return self.memory.review_count if self.memory else 0


@dataclass(frozen=True)
class Subject:
    """A subject with its topics and optional exam date."""

    id: str
    name: str
    exam_date: date | None = None
    topics: tuple[Topic, ...] = ()
    color: str = "#666666"

    def __post_init__(self):
        object.__setattr__(self, "topics", tuple(self.topics))

    @property
    def active_topics(self) -> tuple[Topic, ...]:
        return tuple(t for t in self.topics if not t.archived)


# Readiness only needs the exam date and topics, which Subject carries.
SubjectExamContext = Subject


@dataclass(frozen=True)
class TimerSession:
    """A finished study session recorded by the timer."""

    id: str
    start_time: datetime  # Naive values are local time
    duration: float  # Minutes
    subject_id: str
    topic_id: str | None = None


@dataclass(frozen=True)
class StudyGoals:
    """Daily/weekly/monthly study-time goals in minutes."""

    daily_minutes: int = 240
    weekly_minutes: int = 1200
    monthly_minutes: int = 4800
    weekend_daily_minutes: int | None = None
    use_weekend_hours: bool = False
    vacation_mode: bool = False
    vacation_multiplier: float = 0.4


@dataclass
class AppData:
    """Everything the persistence collaborator loads and saves."""

    subjects: list[Subject] = field(default_factory=list)
    timer_sessions: list[TimerSession] = field(default_factory=list)
    study_goals: StudyGoals = field(default_factory=StudyGoals)

    def find_topic(self, topic_id: str) -> tuple[Subject, Topic] | None:
        """Locate a topic and its owning subject by id."""
        for subject in self.subjects:
            for topic in subject.topics:
                if topic.id == topic_id:
                    return subject, topic
        return None

    def replace_topic(self, updated: Topic) -> None:
        """Swap in an updated topic (the new authoritative value)."""
        for index, subject in enumerate(self.subjects):
            if subject.id != updated.subject_id:
                continue
            topics = tuple(updated if t.id == updated.id else t for t in subject.topics)
            self.subjects[index] = replace(subject, topics=topics)
            return
        raise KeyError(updated.subject_id)
