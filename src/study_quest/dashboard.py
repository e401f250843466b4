"""Dashboard summaries: today's progress, streak, level and upcoming exams."""
from datetime import date, datetime

from study_quest.models import BADGES, Exam, Task, UserState
from study_quest.progression import check_streak_status, level_progress
from study_quest.scheduler import days_until_exam, get_today_tasks, is_urgent


def get_countdown_label(days: int) -> str:
    if days <= 0:
        return "today"
    elif days == 1:
        return "tomorrow"
    return f"in {days} days"


def get_urgency_color(days: int) -> str:
    if days <= 3:
        return "red"
    elif days <= 7:
        return "yellow"
    return "green"


def get_upcoming_exams(exams: list[Exam], today: date) -> list[dict]:
    results = []
    for exam in sorted(exams, key=lambda e: e.date):
        days = days_until_exam(exam.date, today)
        if days < 0:
            continue
        results.append({
            "exam_id": exam.id,
            "name": exam.name,
            "date": exam.date,
            "days": days,
            "label": get_countdown_label(days),
            "color": get_urgency_color(days),
            "urgent": is_urgent(exam.date, today),
            "subjects": [s.name for s in exam.subjects],
        })
    return results


def get_today_summary(tasks: list[Task], today: date) -> dict:
    todays = get_today_tasks(tasks, today)
    done = [t for t in todays if t.completed]
    total = len(todays)
    return {
        "total": total,
        "completed": len(done),
        "progress": round(len(done) / total * 100, 1) if total else 0.0,
        "planned_minutes": sum(t.estimated_minutes for t in todays),
        "remaining_minutes": sum(t.estimated_minutes for t in todays if not t.completed),
        "earned_exp": sum(t.earned_exp or 0 for t in done),
    }


def get_streak_summary(state: UserState, now: datetime) -> dict:
    status = check_streak_status(state, now)
    return {
        "current_streak": state.current_streak,
        "max_streak": state.max_streak,
        "is_at_risk": status.is_at_risk,
        "hours_left": round(status.hours_left, 1),
        "streak_protection": state.streak_protection,
        "badges": [b.label for b in BADGES if b.id in state.badges],
    }


def get_user_stats(state: UserState) -> dict:
    stats = level_progress(state)
    stats["total_tasks_completed"] = state.total_tasks_completed
    return stats
