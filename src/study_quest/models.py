"""Data classes for the study plan and progression domain model."""
from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Optional

PRIORITY_HIGH = "high"
PRIORITY_MEDIUM = "medium"
PRIORITY_LOW = "low"

TASK_STUDY = "study"
TASK_REVIEW = "review"
TASK_FINAL_REVIEW = "final_review"

INITIAL_STREAK_PROTECTION = 1


@dataclass
class Subject:
    name: str
    workbook_pages: int
    range: str = ""


@dataclass
class Exam:
    id: str
    name: str
    date: date
    subjects: list[Subject]
    created_at: Optional[datetime] = None


@dataclass
class Task:
    id: str
    exam_id: str
    title: str
    subject_name: str
    scheduled_date: date
    priority: str
    estimated_minutes: int
    type: str
    completed: bool = False
    completed_at: Optional[datetime] = None
    earned_exp: Optional[int] = None


@dataclass
class UserState:
    level: int = 1
    exp: int = 0
    current_streak: int = 0
    max_streak: int = 0
    last_study_date: Optional[date] = None
    streak_protection: int = INITIAL_STREAK_PROTECTION
    total_tasks_completed: int = 0
    badges: frozenset = field(default_factory=frozenset)
    version: int = 0


@dataclass(frozen=True)
class Badge:
    id: str
    threshold: int
    label: str


# Ascending by threshold; progression relies on this order.
BADGES = (
    Badge("bronze_streak", 3, "3-day streak"),
    Badge("silver_streak", 7, "1-week streak"),
    Badge("gold_streak", 14, "2-week streak"),
    Badge("platinum_streak", 30, "1-month streak"),
)

BADGES_BY_ID = {badge.id: badge for badge in BADGES}
