"""
Study Engines.

Provides the pure computation behind the CLI:
- Memory model (FSRS-style forgetting curve)
- Review scheduling and review queues
- Study-time aggregation (series, streaks, goals)
- Exam readiness and grade prediction
"""

from compass.study.memory_model import MemoryModel
from compass.study.readiness import (
    ExamPrediction,
    ExamStatus,
    ReadinessPredictor,
    SimulationResult,
)
from compass.study.review_scheduler import ReviewQueue, ReviewScheduler

__all__ = [
    "MemoryModel",
    "ReviewScheduler",
    "ReviewQueue",
    "ReadinessPredictor",
    "ExamPrediction",
    "ExamStatus",
    "SimulationResult",
]
