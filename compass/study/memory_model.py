"""
Memory Model - FSRS-style forgetting curve.

Answers three questions for a topic's memory state:
1. How likely is recall right now? (retrievability)
2. What is the state after a graded review? (next state)
3. When should the next review happen? (next interval)

Forgetting curve (power law):

    R(t, S) = (1 + t / (9 * S)) ** -1

so that R == 0.9 exactly when t == S. Stability S is therefore "days until
recall probability drops to 90%".

Every function here is pure: the same state, grade and date always produce
the same result.
"""

from __future__ import annotations

import math
from dataclasses import replace
from datetime import date, datetime, timedelta

from compass.core.errors import InvalidState
from compass.core.models import Grade, MemoryState

# =============================================================================
# FSRS CONSTANTS
# =============================================================================

DECAY_SCALE = 9.0
STABILITY_EPSILON = 0.1  # Days; keeps the curve away from division by zero
MIN_DIFFICULTY = 1.0
MAX_DIFFICULTY = 10.0

DEFAULT_TARGET_RETENTION = 0.90  # Review when recall drops to 90%
DEFAULT_MAXIMUM_INTERVAL = 365  # Cap at 1 year

# First review seeds: a harder first grade means lower stability and
# higher difficulty.
INITIAL_STABILITY = {
    Grade.AGAIN: 0.4,
    Grade.HARD: 0.6,
    Grade.GOOD: 2.4,
    Grade.EASY: 5.8,
}
INITIAL_DIFFICULTY = {
    Grade.AGAIN: 8.0,
    Grade.HARD: 6.5,
    Grade.GOOD: 5.0,
    Grade.EASY: 3.5,
}

# Difficulty update: bounded delta per grade, then a small pull toward the
# Good seed so difficulty cannot drift forever.
DIFFICULTY_DELTA = {
    Grade.AGAIN: 1.5,
    Grade.HARD: 0.5,
    Grade.GOOD: 0.0,
    Grade.EASY: -1.0,
}
DIFFICULTY_MEAN_REVERSION = 0.05

# Successful recall: S' = S * (1 + e^w * (11 - D) * S^-k * (e^((1 - R) * g) - 1) * m)
RECALL_GROWTH_EXP = 1.5  # w
STABILITY_SATURATION = 0.12  # k: big stabilities grow proportionally slower
RETRIEVABILITY_GAIN = 1.0  # g: reviewing later (lower R) earns more growth
HARD_PENALTY = 0.3
EASY_BONUS = 2.6
MIN_RECALL_GROWTH = {
    Grade.HARD: 1.0,
    Grade.GOOD: 1.1,
    Grade.EASY: 1.3,
}

# Lapse: S' = min(L * D^-a * ((S + 1)^b - 1) * e^((1 - R) * c), S * LAPSE_SHRINK)
LAPSE_SCALE = 2.0  # L
LAPSE_DIFFICULTY_EXP = 0.1  # a
LAPSE_STABILITY_EXP = 0.3  # b
LAPSE_RETRIEVABILITY_GAIN = 1.0  # c
LAPSE_SHRINK = 0.5


# =============================================================================
# Helpers
# =============================================================================


def _to_date(value: date | datetime) -> date:
    if isinstance(value, datetime):
        return value.date()
    return value


def _clamp_difficulty(value: float) -> float:
    return max(MIN_DIFFICULTY, min(MAX_DIFFICULTY, value))


def validate_state(state: MemoryState) -> None:
    """
    Reject malformed memory states.

    Raises:
        InvalidState: for NaN/infinite/non-positive stability, difficulty
            outside [1, 10], negative counters or a missing review date
    """
    if not isinstance(state.stability, (int, float)) or not math.isfinite(state.stability):
        raise InvalidState(f"stability must be a finite number, got {state.stability!r}")
    if state.stability <= 0:
        raise InvalidState(f"stability must be positive, got {state.stability}")
    if not isinstance(state.difficulty, (int, float)) or not math.isfinite(state.difficulty):
        raise InvalidState(f"difficulty must be a finite number, got {state.difficulty!r}")
    if not MIN_DIFFICULTY <= state.difficulty <= MAX_DIFFICULTY:
        raise InvalidState(f"difficulty must be within [1, 10], got {state.difficulty}")
    if state.review_count < 0 or state.lapses < 0:
        raise InvalidState("review_count and lapses cannot be negative")
    if state.last_review_date is None:
        raise InvalidState("a reviewed state must carry its last review date")


def elapsed_days(state: MemoryState, as_of: date | datetime) -> int:
    """Calendar days since the last review; future dates count as 0."""
    return max(0, (_to_date(as_of) - state.last_review_date).days)


def forgetting_curve(stability: float, days: float) -> float:
    """R(t, S) = (1 + t / (9 S))^-1 with S floored at the epsilon."""
    stability = max(stability, STABILITY_EPSILON)
    return 1.0 / (1.0 + max(0.0, days) / (DECAY_SCALE * stability))


# =============================================================================
# Memory Model
# =============================================================================


class MemoryModel:
    """
    FSRS-style memory model.

    Calculates recall probability, post-review state and optimal review
    intervals for a target retention.
    """

    def __init__(
        self,
        target_retention: float = DEFAULT_TARGET_RETENTION,
        maximum_interval: int = DEFAULT_MAXIMUM_INTERVAL,
    ):
        if not 0.0 < target_retention < 1.0:
            raise ValueError(f"target_retention must be in (0, 1), got {target_retention}")
        if maximum_interval < 1:
            raise ValueError(f"maximum_interval must be >= 1, got {maximum_interval}")
        self.target_retention = target_retention
        self.maximum_interval = maximum_interval

    @classmethod
    def from_settings(cls, settings) -> MemoryModel:
        """Build a model from the application settings."""
        return cls(**settings.get_memory_config())

    def retrievability(self, state: MemoryState | None, as_of: date | datetime) -> float:
        """
        Probability of recall at ``as_of``.

        Returns 0.0 for a topic that was never reviewed ("review needed,
        no data").
        """
        if state is None:
            return 0.0
        validate_state(state)
        return forgetting_curve(state.stability, elapsed_days(state, as_of))

    def next_state(
        self,
        state: MemoryState | None,
        grade: Grade,
        as_of: date | datetime,
    ) -> MemoryState:
        """
        Process a graded review and return the new memory state.

        First review seeds stability/difficulty from the grade; later reviews
        grow stability on recall and shrink it sharply on a lapse.
        """
        grade = Grade.parse(grade)
        review_date = _to_date(as_of)

        if state is None:
            return MemoryState(
                stability=INITIAL_STABILITY[grade],
                difficulty=INITIAL_DIFFICULTY[grade],
                last_review_date=review_date,
                review_count=1,
                lapses=0,
            )

        validate_state(state)
        r = forgetting_curve(state.stability, elapsed_days(state, review_date))
        difficulty = self._next_difficulty(state.difficulty, grade)

        if grade is Grade.AGAIN:
            stability = self._next_forget_stability(state.difficulty, state.stability, r)
            lapses = state.lapses + 1
        else:
            stability = self._next_recall_stability(state.difficulty, state.stability, r, grade)
            lapses = state.lapses

        return replace(
            state,
            stability=max(STABILITY_EPSILON, stability),
            difficulty=difficulty,
            last_review_date=review_date,
            review_count=state.review_count + 1,
            lapses=lapses,
        )

    def next_review_interval(self, state: MemoryState) -> int:
        """
        Days until retrievability falls to the target retention.

        Solves (1 + t / (9 S))^-1 = r for t, rounded up, within
        [1, maximum_interval].
        """
        validate_state(state)
        stability = max(state.stability, STABILITY_EPSILON)
        interval = DECAY_SCALE * stability * (1.0 / self.target_retention - 1.0)
        # Guard against float noise turning an exact day count into the next one
        days = math.ceil(round(interval, 9))
        return max(1, min(self.maximum_interval, days))

    def next_review_date(self, state: MemoryState | None) -> date | None:
        """Date the next review falls due, or None if never reviewed."""
        if state is None:
            return None
        return state.last_review_date + timedelta(days=self.next_review_interval(state))

    def days_until_review(self, state: MemoryState | None, as_of: date | datetime) -> int:
        """Days until the topic is due; 0 when due, overdue or never reviewed."""
        due = self.next_review_date(state)
        if due is None:
            return 0
        return max(0, (due - _to_date(as_of)).days)

    # -------------------------------------------------------------------------
    # FSRS formulas
    # -------------------------------------------------------------------------

    def _next_difficulty(self, d: float, grade: Grade) -> float:
        """Bounded delta by grade, pulled slightly back toward the Good seed."""
        shifted = d + DIFFICULTY_DELTA[grade]
        reverted = (
            (1 - DIFFICULTY_MEAN_REVERSION) * shifted
            + DIFFICULTY_MEAN_REVERSION * INITIAL_DIFFICULTY[Grade.GOOD]
        )
        return _clamp_difficulty(reverted)

    def _next_recall_stability(self, d: float, s: float, r: float, grade: Grade) -> float:
        """Calculate new stability after successful recall."""
        modifier = 1.0
        if grade is Grade.HARD:
            modifier = HARD_PENALTY
        elif grade is Grade.EASY:
            modifier = EASY_BONUS

        growth = 1 + (
            math.exp(RECALL_GROWTH_EXP)
            * (11 - d)
            * math.pow(s, -STABILITY_SATURATION)
            * (math.exp((1 - r) * RETRIEVABILITY_GAIN) - 1)
            * modifier
        )
        return s * max(growth, MIN_RECALL_GROWTH[grade])

    def _next_forget_stability(self, d: float, s: float, r: float) -> float:
        """Calculate new stability after forgetting."""
        relearned = (
            LAPSE_SCALE
            * math.pow(d, -LAPSE_DIFFICULTY_EXP)
            * (math.pow(s + 1, LAPSE_STABILITY_EXP) - 1)
            * math.exp((1 - r) * LAPSE_RETRIEVABILITY_GAIN)
        )
        return min(relearned, s * LAPSE_SHRINK)


# =============================================================================
# MODULE-LEVEL CONVENIENCES
# =============================================================================

_default_model = MemoryModel()


def retrievability(state: MemoryState | None, as_of: date | datetime) -> float:
    """Retrievability using the default model."""
    return _default_model.retrievability(state, as_of)


def next_state(state: MemoryState | None, grade: Grade, as_of: date | datetime) -> MemoryState:
    """Next state using the default model."""
    return _default_model.next_state(state, grade, as_of)


def next_review_interval(state: MemoryState) -> int:
    """Next interval using the default model (90% target retention)."""
    return _default_model.next_review_interval(state)
