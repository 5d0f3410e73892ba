"""
Unit tests for the FSRS-style memory model.

Covers the forgetting curve, first-review seeding, stability/difficulty
updates and interval calculation. No I/O.
"""

import math
from datetime import date, datetime, timedelta

import pytest

from compass.core.errors import InvalidGrade, InvalidState
from compass.core.models import Grade, MemoryState
from compass.study import memory_model
from compass.study.memory_model import (
    INITIAL_DIFFICULTY,
    INITIAL_STABILITY,
    MAX_DIFFICULTY,
    MIN_DIFFICULTY,
    STABILITY_EPSILON,
    MemoryModel,
)


@pytest.fixture
def model():
    return MemoryModel()


class TestRetrievability:
    def test_never_reviewed_is_zero(self, model, today):
        assert model.retrievability(None, today) == 0.0

    def test_full_recall_on_review_day(self, model, make_memory, today):
        assert model.retrievability(make_memory(days_ago=0), today) == 1.0

    def test_ninety_percent_after_stability_days(self, model, make_memory, today):
        state = make_memory(stability=10.0, days_ago=10)
        assert model.retrievability(state, today) == pytest.approx(0.9)

    def test_decay_is_strictly_monotonic(self, model, make_memory, today):
        state = make_memory(stability=5.0, days_ago=0)
        values = [model.retrievability(state, today + timedelta(days=d)) for d in range(60)]
        assert all(later < earlier for earlier, later in zip(values, values[1:]))
        assert all(0.0 < r <= 1.0 for r in values)

    def test_future_review_date_counts_as_zero_elapsed(self, model, today):
        state = MemoryState(10.0, 5.0, today + timedelta(days=3), 1, 0)
        assert model.retrievability(state, today) == 1.0

    def test_accepts_datetime(self, model, make_memory, today):
        state = make_memory(stability=10.0, days_ago=10)
        as_of = datetime(today.year, today.month, today.day, 23, 59)
        assert model.retrievability(state, as_of) == pytest.approx(0.9)


class TestFirstReview:
    @pytest.mark.parametrize("grade", list(Grade))
    def test_seeds_from_grade(self, model, today, grade):
        state = model.next_state(None, grade, today)
        assert state.stability == INITIAL_STABILITY[grade]
        assert state.difficulty == INITIAL_DIFFICULTY[grade]
        assert state.last_review_date == today
        assert state.review_count == 1
        assert state.lapses == 0

    def test_harder_first_grade_means_lower_stability(self, model, today):
        stabilities = [model.next_state(None, g, today).stability for g in Grade]
        assert stabilities == sorted(stabilities)

    def test_review_resets_urgency(self, model, today):
        state = model.next_state(None, Grade.GOOD, today)
        assert model.retrievability(state, today) == 1.0


class TestSubsequentReviews:
    def test_on_time_good_review_grows_stability(self, model, make_memory, today):
        state = make_memory(stability=10.0, difficulty=5.0, days_ago=10)
        new = model.next_state(state, Grade.GOOD, today)
        assert new.stability == pytest.approx(31.45, abs=0.05)
        assert new.review_count == state.review_count + 1
        assert new.last_review_date == today

    def test_grade_orders_stability_growth(self, model, make_memory, today):
        state = make_memory(stability=10.0, difficulty=5.0, days_ago=10)
        hard = model.next_state(state, Grade.HARD, today).stability
        good = model.next_state(state, Grade.GOOD, today).stability
        easy = model.next_state(state, Grade.EASY, today).stability
        assert state.stability <= hard < good < easy

    def test_same_day_review_applies_minimum_growth(self, model, make_memory, today):
        state = make_memory(stability=10.0, difficulty=5.0, days_ago=0)
        assert model.next_state(state, Grade.GOOD, today).stability == pytest.approx(11.0)
        assert model.next_state(state, Grade.EASY, today).stability == pytest.approx(13.0)
        assert model.next_state(state, Grade.HARD, today).stability == pytest.approx(10.0)

    def test_lapse_shrinks_stability_and_counts(self, model, make_memory, today):
        state = make_memory(stability=10.0, difficulty=5.0, days_ago=10)
        new = model.next_state(state, Grade.AGAIN, today)
        assert new.stability <= state.stability * 0.5
        assert new.lapses == state.lapses + 1

    def test_repeated_again_keeps_shrinking(self, model, make_memory, today):
        state = make_memory(stability=10.0, difficulty=5.0, days_ago=0)
        history = [state.stability]
        for _ in range(3):
            state = model.next_state(state, Grade.AGAIN, today)
            history.append(state.stability)
        assert all(later < earlier for earlier, later in zip(history, history[1:]))
        assert state.lapses == 3

    def test_stability_never_drops_below_epsilon(self, model, make_memory, today):
        state = make_memory(stability=1.0, difficulty=9.0)
        for _ in range(10):
            state = model.next_state(state, Grade.AGAIN, today)
            assert state.stability >= STABILITY_EPSILON

    def test_difficulty_stays_bounded(self, model, make_memory, today):
        hard_state = make_memory(difficulty=5.0)
        easy_state = make_memory(difficulty=5.0)
        for _ in range(50):
            hard_state = model.next_state(hard_state, Grade.AGAIN, today)
            easy_state = model.next_state(easy_state, Grade.EASY, today)
            assert MIN_DIFFICULTY <= hard_state.difficulty <= MAX_DIFFICULTY
            assert MIN_DIFFICULTY <= easy_state.difficulty <= MAX_DIFFICULTY
        assert hard_state.difficulty == MAX_DIFFICULTY
        assert easy_state.difficulty == MIN_DIFFICULTY

    def test_good_pulls_difficulty_toward_center(self, model, make_memory, today):
        state = make_memory(difficulty=9.0)
        assert model.next_state(state, Grade.GOOD, today).difficulty < 9.0

    def test_input_state_is_not_mutated(self, model, make_memory, today):
        state = make_memory(stability=10.0, days_ago=5)
        snapshot = MemoryState(**vars(state))
        model.next_state(state, Grade.EASY, today)
        assert state == snapshot

    def test_deterministic(self, model, make_memory, today):
        state = make_memory(stability=7.0, difficulty=6.0, days_ago=4)
        assert model.next_state(state, Grade.HARD, today) == model.next_state(state, Grade.HARD, today)


class TestNextReviewInterval:
    def test_interval_equals_stability_at_ninety_percent(self, model, make_memory):
        assert model.next_review_interval(make_memory(stability=10.0)) == 10

    def test_rounds_up(self, model, today):
        state = model.next_state(None, Grade.GOOD, today)  # S = 2.4
        assert model.next_review_interval(state) == 3

    def test_at_least_one_day(self, model, make_memory):
        assert model.next_review_interval(make_memory(stability=0.1)) == 1

    def test_capped_at_maximum(self, model, make_memory):
        assert model.next_review_interval(make_memory(stability=1000.0)) == 365

    def test_lower_target_retention_means_longer_interval(self, make_memory):
        relaxed = MemoryModel(target_retention=0.8)
        assert relaxed.next_review_interval(make_memory(stability=10.0)) == 23

    def test_next_review_date_and_days_until(self, model, make_memory, today):
        state = make_memory(stability=10.0, days_ago=4)
        assert model.next_review_date(state) == today + timedelta(days=6)
        assert model.days_until_review(state, today) == 6
        assert model.days_until_review(state, today + timedelta(days=30)) == 0

    def test_never_reviewed_has_no_review_date(self, model, today):
        assert model.next_review_date(None) is None
        assert model.days_until_review(None, today) == 0


class TestValidation:
    @pytest.mark.parametrize(
        "stability, difficulty",
        [
            (0.0, 5.0),
            (-1.0, 5.0),
            (math.nan, 5.0),
            (math.inf, 5.0),
            (10.0, math.nan),
            (10.0, 0.5),
            (10.0, 11.0),
        ],
    )
    def test_malformed_state_raises(self, model, today, stability, difficulty):
        state = MemoryState(stability, difficulty, today, 1, 0)
        with pytest.raises(InvalidState):
            model.retrievability(state, today)
        with pytest.raises(InvalidState):
            model.next_state(state, Grade.GOOD, today)

    def test_negative_counters_raise(self, model, today):
        with pytest.raises(InvalidState):
            model.next_review_interval(MemoryState(10.0, 5.0, today, -1, 0))
        with pytest.raises(InvalidState):
            model.next_review_interval(MemoryState(10.0, 5.0, today, 1, -2))

    def test_state_without_review_date_raises(self, model, today):
        with pytest.raises(InvalidState):
            model.retrievability(MemoryState(10.0, 5.0, None), today)

    @pytest.mark.parametrize("grade", [0, 5, -1, "perfect", None, 2.5, True])
    def test_invalid_grade_raises(self, model, make_memory, today, grade):
        with pytest.raises(InvalidGrade):
            model.next_state(make_memory(), grade, today)

    def test_grade_names_are_accepted(self, model, today):
        assert model.next_state(None, "easy", today) == model.next_state(None, Grade.EASY, today)

    @pytest.mark.parametrize("retention", [0.0, 1.0, 1.5, -0.1])
    def test_rejects_bad_target_retention(self, retention):
        with pytest.raises(ValueError):
            MemoryModel(target_retention=retention)

    def test_rejects_bad_maximum_interval(self):
        with pytest.raises(ValueError):
            MemoryModel(maximum_interval=0)


class TestModuleFunctions:
    def test_module_level_helpers_use_defaults(self, today):
        state = memory_model.next_state(None, Grade.GOOD, today)
        assert memory_model.retrievability(state, today + timedelta(days=3)) < 1.0
        assert memory_model.next_review_interval(state) == 3

    def test_from_settings(self):
        class FakeSettings:
            def get_memory_config(self):
                return {"target_retention": 0.85, "maximum_interval": 100}

        model = MemoryModel.from_settings(FakeSettings())
        assert model.target_retention == 0.85
        assert model.maximum_interval == 100


def test_elapsed_days_uses_calendar_days(make_memory, today):
    state = make_memory(days_ago=3)
    assert memory_model.elapsed_days(state, datetime(2025, 1, 15, 0, 1)) == 3
    assert memory_model.elapsed_days(state, date(2025, 1, 10)) == 0
