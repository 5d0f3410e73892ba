"""External service clients."""

from compass.integrations.question_client import (
    GeneratedQuestion,
    QuestionClient,
    QuizOutcome,
)

__all__ = ["GeneratedQuestion", "QuestionClient", "QuizOutcome"]
