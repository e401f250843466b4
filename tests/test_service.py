# tests/test_service.py
from datetime import timedelta

import pytest

from study_quest.events import EventBus, EventRecorder, TaskCompleted, LeveledUp, BadgeEarned, StreakRecord
from study_quest.models import Subject, UserState
from study_quest.service import create_exam, new_exam, protect_streak, set_task_completed
from study_quest.store import ConcurrentUpdateError, MemoryUserStateStore
from study_quest.validation import ValidationError


def setup_exam(stores, now, days=14, subjects=None):
    exam_store, task_store, _ = stores
    subjects = subjects or [Subject(name="Math", workbook_pages=30)]
    exam = new_exam("Finals", now.date() + timedelta(days=days), subjects, now)
    create_exam(exam_store, task_store, exam, now)
    return exam


def todays_tasks(task_store, now):
    return [t for t in task_store.load() if t.scheduled_date == now.date()]


def test_create_exam_stores_exam_and_tasks(stores, now):
    exam_store, task_store, _ = stores
    exam = setup_exam(stores, now)
    assert exam_store.get(exam.id) == exam
    assert len(task_store.load(exam.id)) == 14


def test_create_exam_appends_to_existing_tasks(stores, now):
    _, task_store, _ = stores
    setup_exam(stores, now)
    setup_exam(stores, now, days=7)
    assert len(task_store.load()) == 14 + 7


def test_create_exam_rejects_invalid_exam(stores, now):
    exam_store, task_store, _ = stores
    exam = new_exam("Finals", now.date() + timedelta(days=10), [], now)
    with pytest.raises(ValidationError):
        create_exam(exam_store, task_store, exam, now)
    assert exam_store.load() == []
    assert task_store.load() == []


def test_complete_unknown_task_is_noop(stores, now):
    _, task_store, user_store = stores
    result = set_task_completed(task_store, user_store, "missing", True, now)
    assert result.leveled_up is False
    assert result.user_state == UserState()
    assert user_store.load().version == 0


def test_complete_task_updates_state_task_and_events(stores, now):
    _, task_store, user_store = stores
    setup_exam(stores, now)
    bus = EventBus()
    recorder = EventRecorder(bus)
    task = todays_tasks(task_store, now)[0]

    result = set_task_completed(task_store, user_store, task.id, True, now, bus=bus)

    assert result.exp_gained == 10
    saved = user_store.load()
    assert saved.exp == 10
    assert saved.current_streak == 1
    assert saved.version == 1
    stored_task = next(t for t in task_store.load() if t.id == task.id)
    assert stored_task.completed is True
    assert stored_task.completed_at == now
    assert stored_task.earned_exp == 10
    assert recorder.events == [
        TaskCompleted(task_id=task.id, exp_gained=10),
        StreakRecord(new_streak=1),
    ]


def test_repeat_completion_is_noop(stores, now):
    _, task_store, user_store = stores
    setup_exam(stores, now)
    task = todays_tasks(task_store, now)[0]
    set_task_completed(task_store, user_store, task.id, True, now)
    result = set_task_completed(task_store, user_store, task.id, True, now)
    assert result.exp_gained == 0
    assert user_store.load().exp == 10


def test_uncheck_and_recheck_same_day_does_not_double_award(stores, now):
    _, task_store, user_store = stores
    setup_exam(stores, now)
    bus = EventBus()
    recorder = EventRecorder(bus)
    task = todays_tasks(task_store, now)[0]
    set_task_completed(task_store, user_store, task.id, True, now, bus=bus)
    set_task_completed(task_store, user_store, task.id, False, now, bus=bus)

    unchecked = next(t for t in task_store.load() if t.id == task.id)
    assert unchecked.completed is False
    assert unchecked.earned_exp is None
    assert user_store.load().exp == 10  # exp is kept

    set_task_completed(task_store, user_store, task.id, True, now + timedelta(hours=1), bus=bus)
    state = user_store.load()
    assert state.exp == 10
    assert state.total_tasks_completed == 1
    assert len([e for e in recorder.events if isinstance(e, TaskCompleted)]) == 1
    rechecked = next(t for t in task_store.load() if t.id == task.id)
    assert rechecked.completed is True
    assert rechecked.earned_exp == 10


def test_two_tasks_same_day_increment_streak_once(stores, now):
    _, task_store, user_store = stores
    setup_exam(stores, now, subjects=[
        Subject(name="Math", workbook_pages=30), Subject(name="English", workbook_pages=30),
    ])
    bus = EventBus()
    recorder = EventRecorder(bus)
    first, second = todays_tasks(task_store, now)
    set_task_completed(task_store, user_store, first.id, True, now, bus=bus)
    set_task_completed(task_store, user_store, second.id, True, now + timedelta(minutes=5), bus=bus)
    state = user_store.load()
    assert state.current_streak == 1
    assert state.total_tasks_completed == 2
    assert len([e for e in recorder.events if isinstance(e, StreakRecord)]) == 1


def test_level_up_event(stores, now):
    _, task_store, user_store = stores
    user_store.save(UserState(exp=95))
    setup_exam(stores, now)
    bus = EventBus()
    recorder = EventRecorder(bus)
    task = todays_tasks(task_store, now)[0]
    result = set_task_completed(task_store, user_store, task.id, True, now, bus=bus)
    assert result.leveled_up is True
    assert result.new_level == 2
    assert LeveledUp(new_level=2) in recorder.events


def test_badge_event(stores, now):
    _, task_store, user_store = stores
    user_store.save(UserState(
        current_streak=2, max_streak=2, last_study_date=now.date() - timedelta(days=1),
    ))
    setup_exam(stores, now)
    bus = EventBus()
    recorder = EventRecorder(bus)
    task = todays_tasks(task_store, now)[0]
    set_task_completed(task_store, user_store, task.id, True, now, bus=bus)
    assert BadgeEarned(badge_id="bronze_streak") in recorder.events
    assert StreakRecord(new_streak=3) in recorder.events
    assert user_store.load().badges == {"bronze_streak"}


def test_failing_subscriber_does_not_break_completion(stores, now):
    _, task_store, user_store = stores
    setup_exam(stores, now)
    bus = EventBus()

    def broken(event):
        raise RuntimeError("toast failed")

    bus.subscribe(TaskCompleted, broken)
    task = todays_tasks(task_store, now)[0]
    result = set_task_completed(task_store, user_store, task.id, True, now, bus=bus)
    assert result.exp_gained == 10
    assert user_store.load().exp == 10


def test_stale_writer_is_rejected(stores, now):
    _, task_store, user_store = stores
    setup_exam(stores, now)
    other_tab = MemoryUserStateStore(records=user_store.records)
    stale = other_tab.load()
    task = todays_tasks(task_store, now)[0]
    set_task_completed(task_store, user_store, task.id, True, now)
    with pytest.raises(ConcurrentUpdateError):
        other_tab.save(stale)
    assert user_store.load().exp == 10


def test_rejected_completion_leaves_task_unchecked(stores, now):
    _, task_store, _ = stores
    setup_exam(stores, now)

    class RacingStore(MemoryUserStateStore):
        def save(self, state):
            raise ConcurrentUpdateError("changed")

    task = todays_tasks(task_store, now)[0]
    with pytest.raises(ConcurrentUpdateError):
        set_task_completed(task_store, RacingStore(), task.id, True, now)
    assert not next(t for t in task_store.load() if t.id == task.id).completed


def test_protect_streak(stores, today):
    _, _, user_store = stores
    state, used = protect_streak(user_store, today)
    assert used is True
    assert state.streak_protection == 0
    assert user_store.load().last_study_date == today
    state, used = protect_streak(user_store, today)
    assert used is False
