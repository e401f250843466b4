"""Tests for data model classes."""
from datetime import date

from study_quest.models import BADGES, BADGES_BY_ID, Exam, Subject, Task, UserState


def test_subject_creation():
    s = Subject(name="Math", workbook_pages=50, range="ch. 1-3")
    assert s.name == "Math"
    assert s.workbook_pages == 50
    assert s.range == "ch. 1-3"


def test_subject_default_range():
    assert Subject(name="English", workbook_pages=40).range == ""


def test_exam_defaults():
    e = Exam(id="ex1", name="Midterms", date=date(2026, 11, 1), subjects=[])
    assert e.created_at is None


def test_task_defaults():
    t = Task(
        id="t1", exam_id="ex1", title="Math p.1-5", subject_name="Math",
        scheduled_date=date(2026, 10, 17), priority="low", estimated_minutes=15, type="study",
    )
    assert t.completed is False
    assert t.completed_at is None
    assert t.earned_exp is None


def test_user_state_defaults():
    u = UserState()
    assert u.level == 1
    assert u.exp == 0
    assert u.current_streak == 0
    assert u.max_streak == 0
    assert u.last_study_date is None
    assert u.streak_protection == 1
    assert u.total_tasks_completed == 0
    assert u.badges == frozenset()
    assert u.version == 0


def test_badges_ascending():
    thresholds = [b.threshold for b in BADGES]
    assert thresholds == sorted(thresholds) == [3, 7, 14, 30]
    assert BADGES_BY_ID["silver_streak"].threshold == 7
