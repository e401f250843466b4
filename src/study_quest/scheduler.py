"""Study plan allocation: turn an exam into a day-by-day task list."""
import logging
import math
from datetime import date, timedelta

from study_quest.models import (
    Exam, Task, PRIORITY_HIGH, PRIORITY_MEDIUM, PRIORITY_LOW,
    TASK_STUDY, TASK_REVIEW, TASK_FINAL_REVIEW,
)

logger = logging.getLogger(__name__)

DAILY_STUDY_MINUTES = 120
MINUTES_PER_PAGE = 3
MAX_REVIEW_DAYS = 3
REVIEW_TIME_RATIO = 0.7
FINAL_REVIEW_MINUTES = 30
URGENT_DAYS = 5


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def days_until_exam(exam_date: date, today: date) -> int:
    return (exam_date - today).days


def is_urgent(exam_date: date, today: date) -> bool:
    """An exam fewer than URGENT_DAYS away is planned in urgent mode."""
    return days_until_exam(exam_date, today) < URGENT_DAYS


def get_priority(progress: float) -> str:
    if progress > 0.8:
        return PRIORITY_HIGH
    elif progress > 0.4:
        return PRIORITY_MEDIUM
    return PRIORITY_LOW


def get_page_range(day: int, pages: int, study_days: int) -> tuple[int, int]:
    start = day * pages // study_days + 1
    end = min((day + 1) * pages // study_days, pages)
    return start, end


def plan_subjects(exam: Exam, today: date) -> list[dict]:
    """Per-subject time budget before any task is emitted.

    Each plan carries the subject, its daily minutes after the global
    adjustment, and the split of the study window into new-material days
    and trailing review days.
    """
    study_days = max(days_until_exam(exam.date, today) - 1, 1)
    plans = []
    for subject in exam.subjects:
        total_minutes = subject.workbook_pages * MINUTES_PER_PAGE
        review_days = min(MAX_REVIEW_DAYS, study_days // 3)
        plans.append({
            "subject": subject,
            "daily_minutes": math.ceil(total_minutes / study_days),
            "review_days": review_days,
            "study_days": study_days - review_days,
        })

    total_daily_minutes = sum(p["daily_minutes"] for p in plans)
    ratio = 1.0
    if total_daily_minutes > DAILY_STUDY_MINUTES:
        ratio = DAILY_STUDY_MINUTES / total_daily_minutes
    for p in plans:
        p["adjustment_ratio"] = ratio
        p["adjusted_minutes"] = max(1, _round_half_up(p["daily_minutes"] * ratio))
    return plans


def generate_schedule(exam: Exam, today: date) -> list[Task]:
    """Generate the full task list for an exam, sorted by date.

    Args:
        exam: A validated exam (non-empty subjects, pages >= 1).
        today: The creation day; the first study task lands on it.

    Returns:
        Study, review and final review tasks. Nothing is scheduled on or
        after the exam date.
    """
    plans = plan_subjects(exam, today)
    if is_urgent(exam.date, today):
        logger.info(
            "Exam %s is %d day(s) away, planning in urgent mode",
            exam.id, days_until_exam(exam.date, today),
        )
    if plans and plans[0]["adjustment_ratio"] < 1:
        logger.debug("Scaling daily minutes by %.3f to fit %d minutes",
                     plans[0]["adjustment_ratio"], DAILY_STUDY_MINUTES)

    tasks = []
    for index, plan in enumerate(plans):
        subject = plan["subject"]
        minutes = plan["adjusted_minutes"]
        study_days = plan["study_days"]

        for day in range(study_days):
            task_date = today + timedelta(days=day)
            if task_date >= exam.date:
                break
            start, end = get_page_range(day, subject.workbook_pages, study_days)
            tasks.append(Task(
                id=f"{exam.id}-{index}-study-{day}",
                exam_id=exam.id,
                title=f"{subject.name} p.{start}-{end}",
                subject_name=subject.name,
                scheduled_date=task_date,
                priority=get_priority((day + 1) / study_days),
                estimated_minutes=minutes,
                type=TASK_STUDY,
            ))

        for review_day in range(plan["review_days"]):
            review_date = today + timedelta(days=study_days + review_day)
            if review_date >= exam.date:
                break
            tasks.append(Task(
                id=f"{exam.id}-{index}-review-{review_day}",
                exam_id=exam.id,
                title=f"{subject.name} review (full range)",
                subject_name=subject.name,
                scheduled_date=review_date,
                priority=PRIORITY_HIGH,
                estimated_minutes=max(1, _round_half_up(minutes * REVIEW_TIME_RATIO)),
                type=TASK_REVIEW,
            ))

    final_review_date = exam.date - timedelta(days=1)
    if final_review_date >= today:
        for index, subject in enumerate(exam.subjects):
            tasks.append(Task(
                id=f"{exam.id}-{index}-final-review",
                exam_id=exam.id,
                title=f"{subject.name} final check",
                subject_name=subject.name,
                scheduled_date=final_review_date,
                priority=PRIORITY_HIGH,
                estimated_minutes=FINAL_REVIEW_MINUTES,
                type=TASK_FINAL_REVIEW,
            ))

    # sorted() is stable: same-day tasks keep subject order
    tasks = sorted(tasks, key=lambda t: t.scheduled_date)
    logger.debug("Generated %d tasks for exam %s", len(tasks), exam.id)
    return tasks


def get_tasks_for_date(tasks: list[Task], day: date) -> list[Task]:
    return [t for t in tasks if t.scheduled_date == day]


def get_today_tasks(tasks: list[Task], today: date) -> list[Task]:
    """Convenience wrapper for the tasks scheduled today."""
    return get_tasks_for_date(tasks, today)
