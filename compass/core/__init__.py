"""
Core Module - Shared domain models and error types.

Components:
- models: Grade, MemoryState, ReviewEvent, Topic, Subject, TimerSession, AppData
- mastery: TopicStatus ladder and status decay rules
- errors: InvalidGrade, InvalidState and friends

All study engines (compass/study/) import their data types from here.
"""

from compass.core.errors import (
    CompassError,
    InvalidGrade,
    InvalidState,
    QuestionGenerationError,
    StorageError,
)
from compass.core.mastery import TopicStatus, apply_status_decay, count_statuses
from compass.core.models import (
    AppData,
    Grade,
    MemoryState,
    ReviewEvent,
    StudyGoals,
    Subject,
    SubjectExamContext,
    TimerSession,
    Topic,
)

__all__ = [
    # Models
    "AppData",
    "Grade",
    "MemoryState",
    "ReviewEvent",
    "StudyGoals",
    "Subject",
    "SubjectExamContext",
    "TimerSession",
    "Topic",
    # Status
    "TopicStatus",
    "apply_status_decay",
    "count_statuses",
    # Errors
    "CompassError",
    "InvalidGrade",
    "InvalidState",
    "QuestionGenerationError",
    "StorageError",
]
