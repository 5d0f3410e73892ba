"""
Readiness Predictor for exam preparation.

Combines three signals per subject:
- Coverage: share of topics at the mastered status
- Retention: average retrievability from the memory model
- Urgency: how close the exam is

Recent study consistency is reported alongside as an explained factor.

into a 0-100 readiness score, a predicted grade on the 2-6 scale, a
categorical risk status and a Monte-Carlo grade band.

Readiness formula:

    base      = 100 * (COVERAGE_WEIGHT * coverage + RETENTION_WEIGHT * avg_R)
    urgency   = max(0, 1 - days_until / URGENCY_HORIZON_DAYS)
    readiness = base * (1 - URGENCY_PENALTY * urgency * (1 - coverage))

Close to the exam, uncovered material weighs more heavily.
"""

from __future__ import annotations

import math
import random
import statistics
from dataclasses import dataclass, field
from datetime import date, datetime
from enum import Enum

from compass.core.mastery import TopicStatus
from compass.core.models import Subject, Topic
from compass.study.memory_model import MemoryModel

# =============================================================================
# CONSTANTS
# =============================================================================

COVERAGE_WEIGHT = 0.5
RETENTION_WEIGHT = 0.5

URGENCY_HORIZON_DAYS = 30  # Urgency starts building a month out
URGENCY_PENALTY = 0.3

READY_THRESHOLD = 85.0
ON_TRACK_THRESHOLD = 60.0
AT_RISK_THRESHOLD = 35.0
URGENCY_OVERRIDE_DAYS = 3

MIN_GRADE = 2.0
MAX_GRADE = 6.0
NEUTRAL_GRADE = 3.5  # Assumed topic average without any quiz marks
PASSING_GRADE = 3.0

PERFORMANCE_WEIGHT = 0.6
READINESS_GRADE_WEIGHT = 0.4
MAX_QUIZ_WEIGHT = 20  # A topic's quiz count stops adding weight here

CONSISTENCY_WINDOW_DAYS = 7  # A topic studied this recently counts as regular review
CONSISTENCY_GOOD = 0.5
CONSISTENCY_LOW = 0.3

BASE_GRADE_SPREAD = 1.0  # Std dev of a topic that was never reviewed
WORST_CASE_PERCENTILE = 5
BEST_CASE_PERCENTILE = 95


class ExamStatus(str, Enum):
    """Categorical exam readiness, best first."""

    READY = "ready"
    ON_TRACK = "on_track"
    AT_RISK = "at_risk"
    BEHIND = "behind"

    @property
    def display_name(self) -> str:
        return self.value.replace("_", " ").title()

    @property
    def color(self) -> str:
        """Rich color for CLI display."""
        return {
            ExamStatus.READY: "green",
            ExamStatus.ON_TRACK: "cyan",
            ExamStatus.AT_RISK: "yellow",
            ExamStatus.BEHIND: "red",
        }[self]

    @property
    def severity(self) -> int:
        return list(ExamStatus).index(self)


class FactorImpact(str, Enum):
    POSITIVE = "positive"
    NEUTRAL = "neutral"
    NEGATIVE = "negative"


@dataclass(frozen=True)
class GradeFactor:
    """One explained input of the prediction."""

    name: str
    label: str
    value: float
    max_value: float
    impact: FactorImpact


@dataclass(frozen=True)
class SimulationResult:
    best_case: float
    worst_case: float
    expected: float
    std_dev: float
    critical_topics: tuple[str, ...] = ()


@dataclass(frozen=True)
class ExamPrediction:
    """Everything the predictor knows about one subject's exam."""

    subject_id: str
    subject_name: str
    exam_date: date | None
    days_until_exam: int | None
    coverage: float
    weighted_progress: float
    average_retrievability: float
    consistency: float
    readiness: float
    predicted_grade: float
    status: ExamStatus
    simulation: SimulationResult
    factors: list[GradeFactor] = field(default_factory=list)
    tips: list[str] = field(default_factory=list)


def _as_date(value: date | datetime) -> date:
    return value.date() if isinstance(value, datetime) else value


def _clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))


def _nearest_rank(sorted_values: list[float], percentile: float) -> float:
    rank = max(1, math.ceil(percentile / 100 * len(sorted_values)))
    return sorted_values[rank - 1]


class ReadinessPredictor:
    """
    Predicts exam readiness for a subject.

    Total over well-formed input: subjects without topics or exams yield
    zero coverage, no urgency and the minimum simulated grade instead of
    raising.
    """

    def __init__(self, memory_model: MemoryModel | None = None):
        self.memory_model = memory_model or MemoryModel()

    # -------------------------------------------------------------------------
    # Signals
    # -------------------------------------------------------------------------

    def coverage(
        self,
        subject: Subject,
        threshold: TopicStatus = TopicStatus.MASTERED,
    ) -> float:
        """Percentage of topics at or above ``threshold``."""
        topics = subject.topics
        if not topics:
            return 0.0
        covered = sum(1 for t in topics if t.status >= threshold)
        return covered / len(topics) * 100

    def weighted_progress(self, subject: Subject) -> float:
        """Status-weighted progress in percent (partial credit below mastered)."""
        topics = subject.topics
        if not topics:
            return 0.0
        return sum(t.status.weight for t in topics) / len(topics) * 100

    def average_retrievability(self, subject: Subject, as_of: date | datetime) -> float:
        """Mean retrievability over all topics; never-reviewed topics count as 0."""
        topics = subject.topics
        if not topics:
            return 0.0
        total = sum(self.memory_model.retrievability(t.memory, as_of) for t in topics)
        return total / len(topics)

    def consistency(self, subject: Subject, as_of: date | datetime) -> float:
        """Share of topics (0-1) studied within the last CONSISTENCY_WINDOW_DAYS days."""
        topics = subject.topics
        if not topics:
            return 0.0
        today = _as_date(as_of)
        recent = sum(
            1
            for t in topics
            if t.last_studied is not None
            and (today - t.last_studied).days <= CONSISTENCY_WINDOW_DAYS
        )
        return recent / len(topics)

    def days_until_exam(self, subject: Subject, as_of: date | datetime) -> int | None:
        """Whole days until the exam; None without an exam date, 0 once it has passed."""
        if subject.exam_date is None:
            return None
        return max(0, (subject.exam_date - _as_date(as_of)).days)

    def readiness_percent(self, subject: Subject, as_of: date | datetime) -> float:
        """Readiness score in [0, 100]."""
        cov = self.coverage(subject) / 100
        avg_r = self.average_retrievability(subject, as_of)
        base = 100 * (COVERAGE_WEIGHT * cov + RETENTION_WEIGHT * avg_r)

        days = self.days_until_exam(subject, as_of)
        urgency = 0.0 if days is None else max(0.0, 1 - days / URGENCY_HORIZON_DAYS)
        score = base * (1 - URGENCY_PENALTY * urgency * (1 - cov))
        return _clamp(score, 0.0, 100.0)

    # -------------------------------------------------------------------------
    # Grades
    # -------------------------------------------------------------------------

    def performance_grade(self, subject: Subject) -> float:
        """Quiz-count-weighted average of topic grade averages."""
        weighted = 0.0
        weights = 0
        for topic in subject.topics:
            if not topic.grades:
                continue
            weight = min(len(topic.grades), MAX_QUIZ_WEIGHT)
            weighted += topic.average_grade * weight
            weights += weight
        if weights == 0:
            return NEUTRAL_GRADE
        return weighted / weights

    def predicted_grade(self, subject: Subject, as_of: date | datetime) -> float:
        """
        Predicted exam grade on the 2-6 scale, rounded to the nearest 0.25.

        Blends quiz performance with the grade implied by readiness
        (0% -> 2, 100% -> 6).
        """
        readiness_grade = MIN_GRADE + (MAX_GRADE - MIN_GRADE) * self.readiness_percent(subject, as_of) / 100
        blended = (
            PERFORMANCE_WEIGHT * self.performance_grade(subject)
            + READINESS_GRADE_WEIGHT * readiness_grade
        )
        return round(_clamp(blended, MIN_GRADE, MAX_GRADE) * 4) / 4

    def status(self, readiness_percent: float, days_until: int | None) -> ExamStatus:
        """
        Risk status from readiness, escalated when the exam is imminent.

        Within URGENCY_OVERRIDE_DAYS of the exam anything short of ready is
        at least at risk.
        """
        if readiness_percent >= READY_THRESHOLD:
            return ExamStatus.READY
        elif readiness_percent >= ON_TRACK_THRESHOLD:
            status = ExamStatus.ON_TRACK
        elif readiness_percent >= AT_RISK_THRESHOLD:
            status = ExamStatus.AT_RISK
        else:
            status = ExamStatus.BEHIND

        if days_until is not None and days_until <= URGENCY_OVERRIDE_DAYS:
            if status.severity < ExamStatus.AT_RISK.severity:
                status = ExamStatus.AT_RISK
        return status

    # -------------------------------------------------------------------------
    # Simulation
    # -------------------------------------------------------------------------

    @staticmethod
    def _topic_distribution(topic: Topic) -> tuple[float, float]:
        mean = topic.average_grade if topic.grades else NEUTRAL_GRADE
        sigma = BASE_GRADE_SPREAD / math.sqrt(1 + topic.review_count)
        return mean, sigma

    def simulate(
        self,
        subject: Subject,
        trials: int,
        rng: random.Random | None = None,
    ) -> SimulationResult:
        """
        Monte-Carlo grade band.

        Each trial samples every topic from a normal distribution around its
        grade average, narrower for well-reviewed topics, and averages them.
        Pass a seeded ``rng`` for reproducible results.
        """
        topics = subject.topics
        if not topics or trials < 1:
            return SimulationResult(MIN_GRADE, MIN_GRADE, MIN_GRADE, 0.0)

        rng = rng or random.Random()
        distributions = [self._topic_distribution(t) for t in topics]

        outcomes = []
        for _ in range(trials):
            total = sum(
                _clamp(rng.gauss(mean, sigma), MIN_GRADE, MAX_GRADE)
                for mean, sigma in distributions
            )
            outcomes.append(total / len(distributions))
        outcomes.sort()

        lower_bounds = sorted(
            (mean - 2 * sigma, topic.name)
            for topic, (mean, sigma) in zip(topics, distributions)
            if mean - 2 * sigma < PASSING_GRADE
        )

        return SimulationResult(
            best_case=round(_nearest_rank(outcomes, BEST_CASE_PERCENTILE), 2),
            worst_case=round(_nearest_rank(outcomes, WORST_CASE_PERCENTILE), 2),
            expected=round(statistics.fmean(outcomes), 2),
            std_dev=round(statistics.pstdev(outcomes), 3),
            critical_topics=tuple(name for _, name in lower_bounds),
        )

    # -------------------------------------------------------------------------
    # Full prediction
    # -------------------------------------------------------------------------

    def predict(
        self,
        subject: Subject,
        as_of: date | datetime,
        trials: int = 1000,
        rng: random.Random | None = None,
    ) -> ExamPrediction:
        """Bundle every readiness signal for one subject."""
        coverage = self.coverage(subject)
        progress = self.weighted_progress(subject)
        avg_r = self.average_retrievability(subject, as_of)
        readiness = self.readiness_percent(subject, as_of)
        days = self.days_until_exam(subject, as_of)
        performance = self.performance_grade(subject)
        consistency = self.consistency(subject, as_of)

        factors = self._factors(progress, avg_r, performance, consistency, days)
        return ExamPrediction(
            subject_id=subject.id,
            subject_name=subject.name,
            exam_date=subject.exam_date,
            days_until_exam=days,
            coverage=coverage,
            weighted_progress=progress,
            average_retrievability=avg_r,
            consistency=consistency,
            readiness=readiness,
            predicted_grade=self.predicted_grade(subject, as_of),
            status=self.status(readiness, days),
            simulation=self.simulate(subject, trials, rng),
            factors=factors,
            tips=self._tips(progress, avg_r, performance, consistency, days),
        )

    @staticmethod
    def _time_factor(days: int | None) -> float:
        if days is None:
            return 1.0
        if days <= 3:
            return 0.7
        elif days <= 7:
            return 0.85
        elif days <= 14:
            return 0.95
        return 1.0

    def _factors(
        self,
        progress: float,
        avg_r: float,
        performance: float,
        consistency: float,
        days: int | None,
    ) -> list[GradeFactor]:
        def impact(value: float, good: float, fair: float) -> FactorImpact:
            if value >= good:
                return FactorImpact.POSITIVE
            elif value >= fair:
                return FactorImpact.NEUTRAL
            return FactorImpact.NEGATIVE

        retention = avg_r * 100
        time_factor = self._time_factor(days)
        return [
            GradeFactor("coverage", "Material coverage", round(progress), 100, impact(progress, 70, 40)),
            GradeFactor("retention", "Memory retention", round(retention), 100, impact(retention, 80, 50)),
            GradeFactor("mastery", "Average quiz grade", round(performance, 2), MAX_GRADE, impact(performance, 5.0, 4.0)),
            GradeFactor(
                "consistency",
                "Review consistency",
                round(consistency * 100),
                100,
                impact(consistency, CONSISTENCY_GOOD, CONSISTENCY_LOW),
            ),
            GradeFactor("time", "Time to exam", round(time_factor * 100), 100, impact(time_factor, 0.95, 0.85)),
        ]

    def _tips(
        self,
        progress: float,
        avg_r: float,
        performance: float,
        consistency: float,
        days: int | None,
    ) -> list[str]:
        tips = []
        if progress < 50:
            tips.append("Focus on the topics you have not started yet.")
        if performance < 4.5:
            tips.append("Take more quizzes to raise your average grade.")
        if consistency < CONSISTENCY_LOW:
            tips.append("Review regularly, at least 3-4 topics a week.")
        if avg_r < 0.7:
            tips.append("Many topics are at risk of being forgotten. Review the overdue ones first.")
        if days is not None and days <= 7:
            tips.append("The exam is close. Maximize your study hours.")
        if not tips:
            tips.append("Keep up the good work!")
        return tips
