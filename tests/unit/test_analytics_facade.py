"""
Unit tests for the AnalyticsFacade dashboard views.
"""

import random
from datetime import timedelta

import pytest

from compass.analytics import AnalyticsFacade
from compass.core.mastery import TopicStatus
from compass.core.models import AppData, StudyGoals, Subject
from compass.study.readiness import ExamStatus


@pytest.fixture
def facade():
    return AnalyticsFacade(trials=200)


@pytest.fixture
def app_data(make_topic, make_memory, make_session, today):
    anatomy = Subject(
        id="anatomy",
        name="Anatomy",
        exam_date=today + timedelta(days=10),
        topics=[
            make_topic("Heart", subject_id="anatomy", status=TopicStatus.MASTERED,
                       grades=(6,), memory=make_memory(stability=20.0, days_ago=2)),
            make_topic("Lungs", subject_id="anatomy", memory=make_memory(stability=1.0, days_ago=20)),
            make_topic("Kidneys", subject_id="anatomy"),
            make_topic("Archived", subject_id="anatomy", archived=True, memory=make_memory(days_ago=50)),
        ],
    )
    physiology = Subject(
        id="physiology",
        name="Physiology",
        exam_date=today + timedelta(days=40),
        topics=[make_topic("Cells", subject_id="physiology")],
    )
    history = Subject(
        id="history",
        name="History",
        exam_date=today - timedelta(days=5),
        topics=[make_topic("Old exam", subject_id="history")],
    )
    sessions = [
        make_session(today, 60, "anatomy"),
        make_session(today - timedelta(days=1), 30, "physiology"),
    ]
    return AppData(
        subjects=[anatomy, physiology, history],
        timer_sessions=sessions,
        study_goals=StudyGoals(daily_minutes=120),
    )


class TestMemoryOverview:
    def test_reviewed_active_topics_sorted_by_recall(self, facade, app_data, today):
        overview = facade.memory_overview(app_data.subjects, today)
        assert [e.topic_name for e in overview] == ["Lungs", "Heart"]
        assert overview[0].retrievability < overview[1].retrievability
        assert overview[1].subject_name == "Anatomy"
        assert overview[1].next_review is not None


class TestNextExam:
    def test_nearest_upcoming_exam(self, facade, app_data, today):
        nearest = facade.next_exam(app_data.subjects, today)
        assert nearest.subject_id == "anatomy"
        assert nearest.days_until == 10
        assert isinstance(nearest.status, ExamStatus)

    def test_no_upcoming_exam(self, facade, today):
        assert facade.next_exam([Subject(id="x", name="X")], today) is None


class TestDashboard:
    def test_dashboard(self, facade, app_data, today):
        dashboard = facade.dashboard(app_data, today, random.Random(1))

        assert dashboard.as_of == today
        # Archived topic excluded: 5 active topics
        assert sum(dashboard.status_counts.values()) == 5
        assert dashboard.queue_counts["never_reviewed"] == 3
        assert dashboard.queue_counts["overdue"] == 1
        assert len(dashboard.predictions) == 3
        assert len(dashboard.recent_days) == 7
        assert dashboard.recent_days[-1].minutes == 60
        assert len(dashboard.calendar) == 90
        assert dashboard.goals["daily"].percentage == 50.0
        assert dashboard.summary.current_streak == 2
        assert dashboard.next_exam.subject_id == "anatomy"

    def test_status_decay_applied(self, facade, make_topic, make_memory, today):
        data = AppData(
            subjects=[
                Subject(
                    id="anatomy",
                    name="Anatomy",
                    topics=[make_topic(status=TopicStatus.MASTERED, memory=make_memory(days_ago=20))],
                )
            ]
        )
        dashboard = facade.dashboard(data, today, random.Random(1))
        assert dashboard.status_counts[TopicStatus.STRUGGLING] == 1
        assert dashboard.status_counts[TopicStatus.MASTERED] == 0

    def test_empty_app_data(self, facade, today):
        dashboard = facade.dashboard(AppData(), today)
        assert dashboard.predictions == []
        assert dashboard.next_exam is None
        assert dashboard.summary.total_sessions == 0
        assert all(count == 0 for count in dashboard.queue_counts.values())


def test_from_settings():
    class FakeSettings:
        timezone = "UTC"
        simulation_trials = 50

        def get_memory_config(self):
            return {"target_retention": 0.85, "maximum_interval": 180}

    facade = AnalyticsFacade.from_settings(FakeSettings())
    assert facade.trials == 50
    assert facade.tz == "UTC"
    assert facade.predictor.memory_model is facade.memory_model
    assert facade.memory_model.maximum_interval == 180


class TestActiveSubjects:
    def test_fresh_quiz_mark_is_not_decayed(self, facade, make_topic, make_memory, today):
        stale = make_topic(status=TopicStatus.LEARNING, memory=make_memory(days_ago=20))
        marked = facade.scheduler.record_quiz_mark(stale, 6.0, today)
        subjects = facade.active_subjects([Subject(id="anatomy", name="Anatomy", topics=[marked])], today)
        assert subjects[0].topics[0].status is TopicStatus.MASTERED

    def test_quiz_only_topic_decays(self, facade, make_topic, today):
        topic = make_topic(status=TopicStatus.MASTERED, grades=(6,), last_activity=today - timedelta(days=10))
        subjects = facade.active_subjects([Subject(id="anatomy", name="Anatomy", topics=[topic])], today)
        assert subjects[0].topics[0].status is TopicStatus.LEARNING
