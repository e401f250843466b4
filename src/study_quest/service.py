"""Wires the stores to schedule generation and the progression engine."""
import logging
import uuid
from dataclasses import replace
from datetime import date, datetime
from typing import Optional

from study_quest.events import EventBus, TaskCompleted, LeveledUp, BadgeEarned, StreakRecord
from study_quest.models import Exam, Subject, Task, UserState
from study_quest.progression import (
    BADGE_POLICY_FIRST_UNOWNED, CompletionResult, calculate_exp, complete_task,
    use_streak_protection,
)
from study_quest.scheduler import generate_schedule
from study_quest.validation import validate_exam

logger = logging.getLogger(__name__)


def new_exam(name: str, exam_date: date, subjects: list[Subject], now: datetime) -> Exam:
    return Exam(
        id=uuid.uuid4().hex[:12],
        name=name.strip() if name else name,
        date=exam_date,
        subjects=subjects,
        created_at=now,
    )


def create_exam(exam_store, task_store, exam: Exam, now: datetime) -> list[Task]:
    """Validate and store an exam, then append its generated tasks.

    Raises:
        ValidationError: the exam is rejected before anything is written.
    """
    validate_exam(exam)
    if exam.created_at is None:
        exam = replace(exam, created_at=now)
    tasks = generate_schedule(exam, now.date())
    exam_store.save(exam)
    task_store.save(tasks)
    logger.info("Created exam %s (%s) with %d tasks", exam.id, exam.name, len(tasks))
    return tasks


def _publish(bus: Optional[EventBus], task: Task, result: CompletionResult) -> None:
    if bus is None:
        return
    bus.publish(TaskCompleted(task_id=task.id, exp_gained=result.exp_gained))
    if result.leveled_up:
        bus.publish(LeveledUp(new_level=result.new_level))
    if result.streak is not None:
        for badge_id in result.streak.earned_badges:
            bus.publish(BadgeEarned(badge_id=badge_id))
        if result.streak.is_new_record:
            bus.publish(StreakRecord(new_streak=result.streak.new_streak))


def set_task_completed(
    task_store,
    user_store,
    task_id: str,
    completed: bool,
    now: datetime,
    bus: Optional[EventBus] = None,
    badge_policy: str = BADGE_POLICY_FIRST_UNOWNED,
) -> CompletionResult:
    """Check or uncheck a task and apply progression for a real completion.

    An unknown task id, a repeated check, and an uncheck all leave the user
    state untouched. Re-checking a task on the same day it was last
    completed restores its exp label without awarding anything again.

    Raises:
        ConcurrentUpdateError: the user state changed under us; nothing
            was written.
    """
    tasks = task_store.load()
    task = next((t for t in tasks if t.id == task_id), None)
    state = user_store.load()
    if task is None:
        logger.warning("Ignoring completion of unknown task %s", task_id)
        return CompletionResult(user_state=state)

    if not completed:
        if task.completed:
            task_store.save([replace(task, completed=False, earned_exp=None)])
        return CompletionResult(user_state=state)

    if task.completed:
        return CompletionResult(user_state=state)

    exp = calculate_exp(task)
    already_counted = (
        task.completed_at is not None and task.completed_at.date() == now.date()
    )
    done = replace(task, completed=True, completed_at=now, earned_exp=exp)
    if already_counted:
        logger.debug("Task %s re-checked on the same day, no progression", task_id)
        task_store.save([done])
        return CompletionResult(user_state=state)

    result = complete_task(state, done, tasks, now, badge_policy)
    saved = user_store.save(result.user_state)
    task_store.save([done])
    result = replace(result, user_state=saved)
    _publish(bus, done, result)
    return result


def protect_streak(user_store, today: date) -> tuple[UserState, bool]:
    state, used = use_streak_protection(user_store.load(), today)
    if used:
        state = user_store.save(state)
    return state, used
