"""
Analytics Facade.

Bundles the memory model, scheduler, session aggregator and readiness
predictor into the read-only views the CLI displays. Archived topics are
excluded and topic statuses are decayed for time since last studied before
anything is computed.
"""

from __future__ import annotations

import random
from dataclasses import dataclass, field, replace
from datetime import date, datetime, tzinfo
from typing import Iterable

from loguru import logger

from compass.core.mastery import TopicStatus, apply_status_decay, count_statuses
from compass.core.models import AppData, Subject
from compass.study import session_aggregator as sessions_agg
from compass.study.memory_model import MemoryModel
from compass.study.readiness import ExamPrediction, ExamStatus, ReadinessPredictor
from compass.study.review_scheduler import ReviewScheduler

RECENT_DAYS = 7


@dataclass(frozen=True)
class MemoryOverviewEntry:
    topic_id: str
    topic_name: str
    subject_id: str
    subject_name: str
    retrievability: float
    stability: float
    next_review: date | None


@dataclass(frozen=True)
class NextExam:
    subject_id: str
    subject_name: str
    exam_date: date
    days_until: int
    readiness: float
    status: ExamStatus


@dataclass
class Dashboard:
    """Everything shown on the study dashboard."""

    as_of: date
    queue_counts: dict[str, int]
    memory_overview: list[MemoryOverviewEntry]
    next_exam: NextExam | None
    predictions: list[ExamPrediction]
    recent_days: list[sessions_agg.DailyMinutes]
    calendar: list[sessions_agg.CalendarDay]
    goals: dict[str, sessions_agg.GoalProgress]
    summary: sessions_agg.SessionSummary
    status_counts: dict[TopicStatus, int] = field(default_factory=dict)


class AnalyticsFacade:
    """Read-only analytics over the full app data."""

    def __init__(
        self,
        memory_model: MemoryModel | None = None,
        predictor: ReadinessPredictor | None = None,
        tz: str | tzinfo | None = None,
        trials: int = 1000,
    ):
        self.memory_model = memory_model or MemoryModel()
        self.predictor = predictor or ReadinessPredictor(self.memory_model)
        self.scheduler = ReviewScheduler(self.memory_model)
        self.tz = tz
        self.trials = trials

    @classmethod
    def from_settings(cls, settings) -> AnalyticsFacade:
        memory_model = MemoryModel.from_settings(settings)
        return cls(
            memory_model=memory_model,
            predictor=ReadinessPredictor(memory_model),
            tz=settings.timezone,
            trials=settings.simulation_trials,
        )

    def active_subjects(self, subjects: Iterable[Subject], as_of: date | datetime) -> list[Subject]:
        """Subjects with archived topics removed and statuses decayed."""
        return [
            replace(
                subject,
                topics=tuple(apply_status_decay(t, as_of) for t in subject.active_topics),
            )
            for subject in subjects
        ]

    def memory_overview(
        self,
        subjects: Iterable[Subject],
        as_of: date | datetime,
    ) -> list[MemoryOverviewEntry]:
        """Reviewed topics with their recall probability, weakest first."""
        entries = []
        for subject in subjects:
            for topic in subject.active_topics:
                if topic.memory is None:
                    continue
                entries.append(
                    MemoryOverviewEntry(
                        topic_id=topic.id,
                        topic_name=topic.name,
                        subject_id=subject.id,
                        subject_name=subject.name,
                        retrievability=self.memory_model.retrievability(topic.memory, as_of),
                        stability=topic.memory.stability,
                        next_review=self.memory_model.next_review_date(topic.memory),
                    )
                )
        entries.sort(key=lambda e: (e.retrievability, e.topic_name))
        return entries

    def next_exam(self, subjects: Iterable[Subject], as_of: date | datetime) -> NextExam | None:
        """Readiness for the nearest exam that has not passed yet."""
        today = sessions_agg.local_day(as_of, self.tz)
        upcoming = [s for s in subjects if s.exam_date is not None and s.exam_date >= today]
        if not upcoming:
            return None

        subject = min(upcoming, key=lambda s: (s.exam_date, s.name))
        days = self.predictor.days_until_exam(subject, today)
        readiness = self.predictor.readiness_percent(subject, today)
        return NextExam(
            subject_id=subject.id,
            subject_name=subject.name,
            exam_date=subject.exam_date,
            days_until=days,
            readiness=readiness,
            status=self.predictor.status(readiness, days),
        )

    def dashboard(
        self,
        app_data: AppData,
        as_of: date | datetime,
        rng: random.Random | None = None,
    ) -> Dashboard:
        """Build the full dashboard as of ``as_of``."""
        today = sessions_agg.local_day(as_of, self.tz)
        subjects = self.active_subjects(app_data.subjects, today)
        topics = [t for s in subjects for t in s.topics]
        exam_dates = {s.id: s.exam_date for s in subjects if s.exam_date is not None}
        sessions = app_data.timer_sessions

        queue = self.scheduler.classify(topics, today, exam_dates)
        predictions = [
            self.predictor.predict(s, today, trials=self.trials, rng=rng)
            for s in subjects
        ]
        logger.debug(
            "Dashboard for {}: {} subjects, {} topics, {} sessions",
            today,
            len(subjects),
            len(topics),
            len(sessions),
        )

        return Dashboard(
            as_of=today,
            queue_counts=queue.counts(),
            memory_overview=self.memory_overview(subjects, today),
            next_exam=self.next_exam(subjects, today),
            predictions=predictions,
            recent_days=sessions_agg.minutes_by_day(sessions, RECENT_DAYS, today, self.tz),
            calendar=sessions_agg.study_calendar(sessions, sessions_agg.CALENDAR_DAYS, today, self.tz),
            goals=sessions_agg.goal_progress(sessions, app_data.study_goals, today, self.tz),
            summary=sessions_agg.summarize(sessions, today, self.tz),
            status_counts=count_statuses(topics),
        )
