"""
Unit tests for the ReviewScheduler.

Grading goes through the memory model and appends review history;
classification sorts topics into urgency buckets.
"""

from datetime import datetime, timedelta

import pytest

from compass.core.errors import InvalidGrade, InvalidState
from compass.core.mastery import TopicStatus, apply_status_decay
from compass.core.models import Grade, MemoryState
from compass.study.memory_model import MemoryModel
from compass.study.review_scheduler import ReviewQueue, ReviewScheduler


@pytest.fixture
def scheduler():
    return ReviewScheduler(MemoryModel())


class TestGradeTopic:
    def test_first_review_creates_memory_and_history(self, scheduler, make_topic, today):
        topic = make_topic("Heart")
        graded = scheduler.grade_topic(topic, Grade.GOOD, today)

        assert graded.memory is not None
        assert graded.memory.review_count == 1
        assert len(graded.reviews) == 1
        event = graded.reviews[0]
        assert event.date == today
        assert event.grade is Grade.GOOD
        assert event.previous_interval == 0
        assert event.new_interval == 3

    def test_second_review_records_previous_interval(self, scheduler, make_topic, today):
        topic = scheduler.grade_topic(make_topic(), Grade.GOOD, today)
        topic = scheduler.grade_topic(topic, Grade.GOOD, today + timedelta(days=3))

        assert [e.previous_interval for e in topic.reviews] == [0, 3]
        assert topic.reviews[1].new_interval > topic.reviews[0].new_interval
        assert topic.memory.review_count == 2

    def test_original_topic_is_unchanged(self, scheduler, make_topic, today):
        topic = make_topic()
        scheduler.grade_topic(topic, Grade.EASY, today)
        assert topic.memory is None
        assert topic.reviews == ()

    def test_invalid_grade_leaves_topic_untouched(self, scheduler, make_topic, make_memory, today):
        topic = make_topic(memory=make_memory())
        with pytest.raises(InvalidGrade):
            scheduler.grade_topic(topic, 7, today)
        assert topic.reviews == ()

    def test_malformed_state_raises(self, scheduler, make_topic, today):
        topic = make_topic(memory=MemoryState(-1.0, 5.0, today, 1, 0))
        with pytest.raises(InvalidState):
            scheduler.grade_topic(topic, Grade.GOOD, today)

    def test_accepts_grade_names(self, scheduler, make_topic, today):
        graded = scheduler.grade_topic(make_topic(), "again", today)
        assert graded.reviews[-1].grade is Grade.AGAIN

    def test_review_makes_topic_fresh(self, scheduler, make_topic, make_memory, today):
        topic = make_topic(memory=make_memory(stability=2.0, days_ago=30))
        assert len(scheduler.classify([topic], today).overdue) == 1

        graded = scheduler.grade_topic(topic, Grade.GOOD, today)
        queue = scheduler.classify([graded], today)
        assert queue.overdue == [] and queue.due == []


class TestGradeFromScore:
    @pytest.mark.parametrize(
        "score, grade",
        [(0, Grade.AGAIN), (59.9, Grade.AGAIN), (60, Grade.HARD), (74, Grade.HARD),
         (75, Grade.GOOD), (89, Grade.GOOD), (90, Grade.EASY), (100, Grade.EASY)],
    )
    def test_score_maps_to_grade(self, scheduler, make_topic, today, score, grade):
        graded = scheduler.grade_topic_from_score(make_topic(), score, today)
        assert graded.reviews[-1].grade is grade

    @pytest.mark.parametrize("score", [-1, 101, float("nan")])
    def test_out_of_range_score_raises(self, scheduler, make_topic, today, score):
        with pytest.raises(InvalidGrade):
            scheduler.grade_topic_from_score(make_topic(), score, today)


class TestRecordQuizMark:
    def test_mark_updates_grades_and_status(self, scheduler, make_topic, today):
        topic = scheduler.record_quiz_mark(make_topic(), 6, today)
        assert topic.grades == (6.0,)
        assert topic.status is TopicStatus.MASTERED

        topic = scheduler.record_quiz_mark(topic, 3, today)
        assert topic.average_grade == 4.5
        assert topic.status is TopicStatus.LEARNING

    def test_low_average_is_struggling(self, scheduler, make_topic, today):
        topic = scheduler.record_quiz_mark(make_topic(), 3.5, today)
        assert topic.status is TopicStatus.STRUGGLING

    @pytest.mark.parametrize("mark", [1.5, 6.5, float("nan"), True])
    def test_invalid_mark_raises(self, scheduler, make_topic, today, mark):
        with pytest.raises(InvalidGrade):
            scheduler.record_quiz_mark(make_topic(), mark, today)

    def test_mark_records_activity_date(self, scheduler, make_topic, today):
        topic = scheduler.record_quiz_mark(make_topic(), 5, datetime(2025, 1, 15, 18, 30))
        assert topic.last_activity == today
        assert topic.last_studied == today

    def test_mark_restarts_decay_clock(self, scheduler, make_topic, make_memory, today):
        stale = make_topic(status=TopicStatus.LEARNING, memory=make_memory(days_ago=20))
        marked = scheduler.record_quiz_mark(stale, 6, today)

        assert marked.status is TopicStatus.MASTERED
        assert apply_status_decay(marked, today).status is TopicStatus.MASTERED

    def test_marked_topic_without_reviews_decays(self, scheduler, make_topic, today):
        marked = scheduler.record_quiz_mark(make_topic(), 6, today - timedelta(days=18))

        assert marked.memory is None
        assert apply_status_decay(marked, today).status is TopicStatus.STRUGGLING

    def test_grading_records_activity_date(self, scheduler, make_topic, today):
        graded = scheduler.grade_topic(make_topic(), Grade.GOOD, today)
        assert graded.last_activity == today


class TestClassify:
    def test_empty_input(self, scheduler, today):
        queue = scheduler.classify([], today)
        assert isinstance(queue, ReviewQueue)
        assert len(queue) == 0
        assert queue.urgent() == []

    def test_buckets(self, scheduler, make_topic, make_memory, today):
        # S=10: interval 10 days. Reviewed 15 days ago: R~0.857 but past due.
        overdue_by_date = make_topic("Overdue date", memory=make_memory(stability=10.0, days_ago=15))
        # S=1: 30 days later R = 1 / (1 + 30/9) ~ 0.23
        overdue_by_recall = make_topic("Forgotten", memory=make_memory(stability=1.0, days_ago=30))
        # S=10, due exactly today
        due_today = make_topic("Due today", memory=make_memory(stability=10.0, days_ago=10))
        # S=20: interval 20, reviewed 18 days ago -> due in 2 days, R ~0.91
        upcoming = make_topic("Upcoming", memory=make_memory(stability=20.0, days_ago=18))
        fresh = make_topic("Fresh", memory=make_memory(stability=30.0, days_ago=1))
        new = make_topic("New")

        queue = scheduler.classify(
            [overdue_by_date, overdue_by_recall, due_today, upcoming, fresh, new], today
        )

        assert [e.topic.name for e in queue.overdue] == ["Forgotten", "Overdue date"]
        assert [e.topic.name for e in queue.due] == ["Due today"]
        assert [e.topic.name for e in queue.upcoming] == ["Upcoming"]
        assert [e.topic.name for e in queue.fresh] == ["Fresh"]
        assert [e.topic.name for e in queue.never_reviewed] == ["New"]
        assert queue.counts() == {
            "never_reviewed": 1,
            "overdue": 2,
            "due": 1,
            "upcoming": 1,
            "fresh": 1,
        }

    def test_low_recall_before_due_date_is_due(self, scheduler, make_topic, make_memory, today):
        # Target retention 0.5 pushes the due date far out; R=0.8 still counts as due.
        relaxed = ReviewScheduler(MemoryModel(target_retention=0.5))
        # S=4, 9 days: R = 1 / (1 + 9/36) = 0.8
        topic = make_topic(memory=make_memory(stability=4.0, days_ago=9))
        queue = relaxed.classify([topic], today)
        assert len(queue.due) == 1
        assert queue.due[0].retrievability == pytest.approx(0.8)

    def test_never_reviewed_has_zero_recall(self, scheduler, make_topic, today):
        entry = scheduler.classify([make_topic()], today).never_reviewed[0]
        assert entry.retrievability == 0.0
        assert entry.next_review is None

    def test_ties_broken_by_exam_date_then_name(self, scheduler, make_topic, today):
        later = make_topic("A later exam", subject_id="physiology")
        sooner = make_topic("Z sooner exam", subject_id="anatomy")
        no_exam = make_topic("B no exam", subject_id="histology")
        same_exam = make_topic("Y sooner exam", subject_id="anatomy")

        queue = scheduler.classify(
            [later, sooner, no_exam, same_exam],
            today,
            exam_dates={"anatomy": today + timedelta(days=5), "physiology": today + timedelta(days=20)},
        )
        assert [e.topic.name for e in queue.never_reviewed] == [
            "Y sooner exam",
            "Z sooner exam",
            "A later exam",
            "B no exam",
        ]

    def test_urgent_order(self, scheduler, make_topic, make_memory, today):
        overdue = make_topic("Overdue", memory=make_memory(stability=1.0, days_ago=30))
        due = make_topic("Due", memory=make_memory(stability=10.0, days_ago=10))
        new = make_topic("New")
        fresh = make_topic("Fresh", memory=make_memory(stability=30.0, days_ago=1))

        urgent = scheduler.classify([fresh, due, overdue, new], today).urgent()
        assert [e.topic.name for e in urgent] == ["New", "Overdue", "Due"]
