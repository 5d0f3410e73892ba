"""
Error taxonomy for study-compass.

Library code raises these; the CLI boundary turns them into messages.
Empty input is never an error: aggregators return zero-valued results.
"""

from __future__ import annotations


class CompassError(Exception):
    """Base class for all study-compass errors."""


class InvalidGrade(CompassError, ValueError):
    """Grade value outside the defined set. Raised before any state change."""

    def __init__(self, value: object, reason: str | None = None):
        self.value = value
        message = f"Invalid grade: {value!r}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)


class InvalidState(CompassError, ValueError):
    """Malformed memory state (negative stability, NaN difficulty, ...)."""


class StorageError(CompassError):
    """The persistence collaborator could not load or save app data."""


class QuestionGenerationError(CompassError):
    """The question-generation service failed or returned malformed data."""
