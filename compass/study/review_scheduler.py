"""
Review Scheduler.

Applies graded reviews to topics and sorts topics into review buckets.

Bucket rules (first match wins):
- never_reviewed: no memory state yet
- overdue: retrievability below 0.5, or the scheduled review date has passed
- due: retrievability below 0.85, or the review is scheduled for today
- upcoming: review scheduled within the next few days
- fresh: everything else
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timedelta
from typing import Iterable, Mapping

from loguru import logger

from compass.core.errors import InvalidGrade
from compass.core.mastery import TopicStatus
from compass.core.models import Grade, ReviewEvent, Topic
from compass.study.memory_model import MemoryModel, validate_state

OVERDUE_RETRIEVABILITY = 0.5
DUE_RETRIEVABILITY = 0.85
UPCOMING_WINDOW_DAYS = 3

MIN_QUIZ_MARK = 2.0
MAX_QUIZ_MARK = 6.0


@dataclass
class QueueEntry:
    """A topic placed in the review queue."""

    topic: Topic
    retrievability: float
    next_review: date | None
    days_until_review: int
    exam_date: date | None = None


@dataclass
class ReviewQueue:
    """Topics grouped by review urgency. Each bucket is sorted most urgent first."""

    overdue: list[QueueEntry] = field(default_factory=list)
    due: list[QueueEntry] = field(default_factory=list)
    upcoming: list[QueueEntry] = field(default_factory=list)
    fresh: list[QueueEntry] = field(default_factory=list)
    never_reviewed: list[QueueEntry] = field(default_factory=list)

    def counts(self) -> dict[str, int]:
        return {
            "never_reviewed": len(self.never_reviewed),
            "overdue": len(self.overdue),
            "due": len(self.due),
            "upcoming": len(self.upcoming),
            "fresh": len(self.fresh),
        }

    def urgent(self) -> list[QueueEntry]:
        """Entries that need attention now: new content, then overdue, then due."""
        return [*self.never_reviewed, *self.overdue, *self.due]

    def __len__(self) -> int:
        return sum(self.counts().values())


class ReviewScheduler:
    """
    Grades topics and classifies them for review.

    ``grade_topic`` is the only code path that writes a topic's memory
    state; everything else reads it.
    """

    def __init__(self, memory_model: MemoryModel | None = None):
        self.memory_model = memory_model or MemoryModel()

    def grade_topic(
        self,
        topic: Topic,
        grade: Grade | int | str,
        as_of: date | datetime,
    ) -> Topic:
        """
        Apply a graded review and return the updated topic.

        Raises:
            InvalidGrade: grade outside Again/Hard/Good/Easy (topic untouched)
            InvalidState: the topic's current memory state is malformed
        """
        grade = Grade.parse(grade)
        review_date = as_of.date() if isinstance(as_of, datetime) else as_of

        previous_interval = 0
        if topic.memory is not None:
            validate_state(topic.memory)
            previous_interval = self.memory_model.next_review_interval(topic.memory)

        memory = self.memory_model.next_state(topic.memory, grade, review_date)
        new_interval = self.memory_model.next_review_interval(memory)

        event = ReviewEvent(
            date=review_date,
            grade=grade,
            previous_interval=previous_interval,
            new_interval=new_interval,
        )
        logger.debug(
            "Graded {} as {}: S={:.2f} D={:.2f} interval {}d -> {}d",
            topic.id,
            grade.name,
            memory.stability,
            memory.difficulty,
            previous_interval,
            new_interval,
        )
        return replace(
            topic,
            memory=memory,
            reviews=(*topic.reviews, event),
            last_activity=review_date,
        )

    def grade_topic_from_score(
        self,
        topic: Topic,
        score_percent: float,
        as_of: date | datetime,
    ) -> Topic:
        """Grade a topic from a quiz percentage (see Grade.from_quiz_score)."""
        return self.grade_topic(topic, Grade.from_quiz_score(score_percent), as_of)

    def record_quiz_mark(
        self,
        topic: Topic,
        mark: float,
        as_of: date | datetime,
    ) -> Topic:
        """
        Record a quiz mark (2-6 scale) and recompute the topic status.

        The mark counts as study activity on ``as_of`` and restarts the
        status decay clock.

        Raises:
            InvalidGrade: mark outside [2, 6]
        """
        if (
            isinstance(mark, bool)
            or not isinstance(mark, (int, float))
            or not math.isfinite(mark)
            or not MIN_QUIZ_MARK <= mark <= MAX_QUIZ_MARK
        ):
            raise InvalidGrade(mark, "quiz mark must be 2-6")

        grades = (*topic.grades, float(mark))
        status = TopicStatus.from_average_grade(sum(grades) / len(grades))
        marked_on = as_of.date() if isinstance(as_of, datetime) else as_of
        return replace(topic, grades=grades, status=status, last_activity=marked_on)

    def classify(
        self,
        topics: Iterable[Topic],
        as_of: date | datetime,
        exam_dates: Mapping[str, date] | None = None,
    ) -> ReviewQueue:
        """Sort topics into review buckets as of ``as_of``."""
        today = as_of.date() if isinstance(as_of, datetime) else as_of
        exam_dates = exam_dates or {}
        queue = ReviewQueue()
        upcoming_limit = today + timedelta(days=UPCOMING_WINDOW_DAYS)

        for topic in topics:
            exam_date = exam_dates.get(topic.subject_id)
            if topic.memory is None:
                queue.never_reviewed.append(
                    QueueEntry(topic, 0.0, None, 0, exam_date)
                )
                continue

            r = self.memory_model.retrievability(topic.memory, today)
            next_review = self.memory_model.next_review_date(topic.memory)
            entry = QueueEntry(
                topic=topic,
                retrievability=r,
                next_review=next_review,
                days_until_review=max(0, (next_review - today).days),
                exam_date=exam_date,
            )

            if r < OVERDUE_RETRIEVABILITY or next_review < today:
                queue.overdue.append(entry)
            elif r < DUE_RETRIEVABILITY or next_review == today:
                queue.due.append(entry)
            elif next_review <= upcoming_limit:
                queue.upcoming.append(entry)
            else:
                queue.fresh.append(entry)

        for bucket in (
            queue.overdue,
            queue.due,
            queue.upcoming,
            queue.fresh,
            queue.never_reviewed,
        ):
            bucket.sort(key=_urgency_key)
        return queue


def _urgency_key(entry: QueueEntry) -> tuple:
    # Missing exam dates sort after every real date
    return (
        entry.retrievability,
        entry.exam_date is None,
        entry.exam_date or date.max,
        entry.topic.name,
    )
