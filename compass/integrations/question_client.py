"""
Question Generation Client

HTTP client for the external quiz service that turns study material into
practice questions. The quiz score then feeds the review scheduler.

Usage:
    with QuestionClient.from_settings(get_settings()) as client:
        questions = client.generate(material, count=5)
    outcome = QuizOutcome(correct=4, total=5)
    topic = scheduler.grade_topic_from_score(topic, outcome.score_percent, today)
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Literal

import httpx
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field, ValidationError

from compass.core.errors import QuestionGenerationError

DEFAULT_TIMEOUT = 30.0


class GeneratedQuestion(BaseModel):
    """One question returned by the quiz service."""

    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    type: Literal["multiple_choice", "open", "case_study"]
    text: str = Field(..., alias="question", min_length=1)
    options: list[str] = Field(default_factory=list)
    correct_answer: str = Field(..., alias="correctAnswer")
    explanation: str | None = None


class _QuizResponse(BaseModel):
    model_config = ConfigDict(extra="ignore")

    questions: list[GeneratedQuestion]


@dataclass(frozen=True)
class QuizOutcome:
    """Result of answering a generated quiz."""

    correct: int
    total: int

    def __post_init__(self):
        if self.total < 0 or not 0 <= self.correct <= max(self.total, 0):
            raise ValueError(f"Invalid quiz outcome {self.correct}/{self.total}")

    @property
    def score_percent(self) -> float:
        if self.total == 0:
            return 0.0
        return self.correct / self.total * 100


class QuestionClient:
    """
    HTTP client for the quiz generation API.

    Supports:
    - API key authentication (X-API-Key header)
    - Response validation into GeneratedQuestion models
    """

    def __init__(
        self,
        base_url: str,
        api_key: str | None = None,
        timeout: float = DEFAULT_TIMEOUT,
        transport: httpx.BaseTransport | None = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.Client | None = None

    @classmethod
    def from_settings(cls, settings) -> QuestionClient:
        if not settings.has_quiz_api_configured():
            raise QuestionGenerationError("Quiz API is not configured (set QUIZ_API_URL)")
        return cls(
            settings.quiz_api_url,
            api_key=settings.quiz_api_key,
            timeout=settings.quiz_timeout_seconds,
        )

    def __enter__(self) -> QuestionClient:
        self._ensure_client()
        return self

    def __exit__(self, *args: Any) -> None:
        self.close()

    def _ensure_client(self) -> httpx.Client:
        if self._client is None:
            headers = {"Content-Type": "application/json"}
            if self.api_key:
                headers["X-API-Key"] = self.api_key
            self._client = httpx.Client(
                base_url=self.base_url,
                headers=headers,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._client

    def close(self) -> None:
        if self._client:
            self._client.close()
            self._client = None

    def generate(self, material: str, count: int = 5) -> list[GeneratedQuestion]:
        """
        Generate ``count`` questions from ``material``.

        Raises:
            QuestionGenerationError: on empty input, HTTP failures or a
                malformed response
        """
        if not material or not material.strip():
            raise QuestionGenerationError("Material is empty")
        if count < 1:
            raise QuestionGenerationError(f"Question count must be positive, got {count}")

        client = self._ensure_client()
        try:
            response = client.post("/api/quiz", json={"material": material, "count": count})
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as e:
            logger.warning(f"Quiz API returned {e.response.status_code}")
            raise QuestionGenerationError(
                f"Quiz API returned HTTP {e.response.status_code}"
            ) from e
        except httpx.HTTPError as e:
            logger.warning(f"Quiz API request failed: {e}")
            raise QuestionGenerationError(f"Quiz API request failed: {e}") from e
        except ValueError as e:
            raise QuestionGenerationError("Quiz API returned invalid JSON") from e

        try:
            questions = _QuizResponse.model_validate(payload).questions
        except ValidationError as e:
            raise QuestionGenerationError(f"Malformed quiz response: {e}") from e

        logger.info(f"Generated {len(questions)} questions")
        return questions
