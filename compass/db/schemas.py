"""
Stored document schema.

Validates the JSON document kept in the ``app_state`` table and converts
it to and from the core dataclasses. Field names are camelCase on disk
(``timerSessions``, ``startTime``) and accept snake_case on input.
"""

from __future__ import annotations

from datetime import date, datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from compass.core.mastery import TopicStatus
from compass.core.models import (
    AppData,
    Grade,
    MemoryState,
    ReviewEvent,
    StudyGoals,
    Subject,
    TimerSession,
    Topic,
)

SCHEMA_VERSION = 1


class _Document(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class MemoryStateSchema(_Document):
    stability: float = Field(..., gt=0)
    difficulty: float = Field(..., ge=1, le=10)
    last_review_date: date
    review_count: int = Field(0, ge=0)
    lapses: int = Field(0, ge=0)


class ReviewEventSchema(_Document):
    review_date: date = Field(..., alias="date")
    grade: Grade
    previous_interval: int = Field(0, ge=0)
    new_interval: int = Field(..., ge=1)

    @field_validator("grade", mode="before")
    @classmethod
    def _parse_grade(cls, value):
        return Grade.parse(value)


class TopicSchema(_Document):
    id: str
    name: str
    status: TopicStatus = TopicStatus.UNTOUCHED
    grades: list[float] = Field(default_factory=list)
    has_material: bool = False
    memory: MemoryStateSchema | None = None
    reviews: list[ReviewEventSchema] = Field(default_factory=list)
    archived: bool = False
    last_activity: date | None = None

    @field_validator("status", mode="before")
    @classmethod
    def _parse_status(cls, value):
        return TopicStatus.parse(value)

    @field_validator("grades")
    @classmethod
    def _check_grades(cls, value: list[float]) -> list[float]:
        for mark in value:
            if not 2 <= mark <= 6:
                raise ValueError(f"quiz mark {mark} outside 2-6")
        return value


class SubjectSchema(_Document):
    id: str
    name: str
    exam_date: date | None = None
    color: str = "#666666"
    topics: list[TopicSchema] = Field(default_factory=list)


class TimerSessionSchema(_Document):
    id: str
    start_time: datetime
    duration: float
    subject_id: str
    topic_id: str | None = None


class StudyGoalsSchema(_Document):
    daily_minutes: int = Field(240, ge=0)
    weekly_minutes: int = Field(1200, ge=0)
    monthly_minutes: int = Field(4800, ge=0)
    weekend_daily_minutes: int | None = Field(None, ge=0)
    use_weekend_hours: bool = False
    vacation_mode: bool = False
    vacation_multiplier: float = Field(0.4, ge=0, le=1)


class AppDataDocument(_Document):
    """Root document: everything the app persists."""

    schema_version: int = SCHEMA_VERSION
    subjects: list[SubjectSchema] = Field(default_factory=list)
    timer_sessions: list[TimerSessionSchema] = Field(default_factory=list)
    study_goals: StudyGoalsSchema = Field(default_factory=StudyGoalsSchema)

    def to_domain(self) -> AppData:
        subjects = []
        for subject in self.subjects:
            topics = [
                Topic(
                    id=t.id,
                    subject_id=subject.id,
                    name=t.name,
                    status=t.status,
                    grades=tuple(t.grades),
                    has_material=t.has_material,
                    memory=MemoryState(**t.memory.model_dump()) if t.memory else None,
                    reviews=tuple(
                        ReviewEvent(
                            date=r.review_date,
                            grade=r.grade,
                            previous_interval=r.previous_interval,
                            new_interval=r.new_interval,
                        )
                        for r in t.reviews
                    ),
                    archived=t.archived,
                    last_activity=t.last_activity,
                )
                for t in subject.topics
            ]
            subjects.append(
                Subject(
                    id=subject.id,
                    name=subject.name,
                    exam_date=subject.exam_date,
                    topics=tuple(topics),
                    color=subject.color,
                )
            )

        return AppData(
            subjects=subjects,
            timer_sessions=[TimerSession(**s.model_dump()) for s in self.timer_sessions],
            study_goals=StudyGoals(**self.study_goals.model_dump()),
        )

    @classmethod
    def from_domain(cls, data: AppData) -> AppDataDocument:
        subjects = [
            SubjectSchema(
                id=subject.id,
                name=subject.name,
                exam_date=subject.exam_date,
                color=subject.color,
                topics=[
                    TopicSchema(
                        id=t.id,
                        name=t.name,
                        status=t.status,
                        grades=list(t.grades),
                        has_material=t.has_material,
                        memory=_memory_schema(t.memory),
                        reviews=[
                            ReviewEventSchema(
                                review_date=r.date,
                                grade=r.grade,
                                previous_interval=r.previous_interval,
                                new_interval=r.new_interval,
                            )
                            for r in t.reviews
                        ],
                        archived=t.archived,
                        last_activity=t.last_activity,
                    )
                    for t in subject.topics
                ],
            )
            for subject in data.subjects
        ]
        sessions = [
            TimerSessionSchema(
                id=s.id,
                start_time=s.start_time,
                duration=s.duration,
                subject_id=s.subject_id,
                topic_id=s.topic_id,
            )
            for s in data.timer_sessions
        ]
        goals = data.study_goals
        return cls(
            subjects=subjects,
            timer_sessions=sessions,
            study_goals=StudyGoalsSchema(
                daily_minutes=goals.daily_minutes,
                weekly_minutes=goals.weekly_minutes,
                monthly_minutes=goals.monthly_minutes,
                weekend_daily_minutes=goals.weekend_daily_minutes,
                use_weekend_hours=goals.use_weekend_hours,
                vacation_mode=goals.vacation_mode,
                vacation_multiplier=goals.vacation_multiplier,
            ),
        )


def _memory_schema(memory: MemoryState | None) -> MemoryStateSchema | None:
    if memory is None:
        return None
    return MemoryStateSchema(
        stability=memory.stability,
        difficulty=memory.difficulty,
        last_review_date=memory.last_review_date,
        review_count=memory.review_count,
        lapses=memory.lapses,
    )
