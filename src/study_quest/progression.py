"""Experience, levels, streaks and badges.

Every function here is pure: it takes a UserState snapshot plus an explicit
"today" or "now" and returns a new UserState alongside a result record.
Nothing reads the wall clock and nothing touches storage; see
study_quest.service for the code that loads and saves state.
"""
import logging
from dataclasses import dataclass, replace
from datetime import date, datetime, time, timedelta
from typing import Optional

from study_quest.models import (
    BADGES, Task, UserState, PRIORITY_HIGH, PRIORITY_MEDIUM,
    TASK_FINAL_REVIEW, TASK_REVIEW,
)

logger = logging.getLogger(__name__)

BASE_EXP = 10
EXP_PER_LEVEL = 100
LONG_TASK_MINUTES = 60
AT_RISK_HOURS = 23
STREAK_WINDOW_HOURS = 24

# Award only the lowest newly crossed, unowned badge per update.
BADGE_POLICY_FIRST_UNOWNED = "first_unowned"
# Award every crossed, unowned badge in one pass.
BADGE_POLICY_ALL = "all"


@dataclass(frozen=True)
class ExpResult:
    leveled_up: bool
    new_level: Optional[int] = None


@dataclass(frozen=True)
class StreakResult:
    new_streak: int
    is_new_record: bool = False
    earned_badges: tuple = ()
    changed: bool = False

    @property
    def earned_badge(self) -> Optional[str]:
        return self.earned_badges[-1] if self.earned_badges else None


@dataclass(frozen=True)
class CompletionResult:
    user_state: UserState
    exp_gained: int = 0
    leveled_up: bool = False
    new_level: Optional[int] = None
    streak: Optional[StreakResult] = None


@dataclass(frozen=True)
class StreakStatus:
    is_at_risk: bool
    hours_left: float


def calculate_exp(task: Task) -> int:
    exp = BASE_EXP
    if task.priority == PRIORITY_HIGH:
        exp += 10
    elif task.priority == PRIORITY_MEDIUM:
        exp += 5
    if task.type == TASK_FINAL_REVIEW:
        exp += 15
    elif task.type == TASK_REVIEW:
        exp += 5
    if task.estimated_minutes > LONG_TASK_MINUTES:
        exp += 10
    return exp


def level_for_exp(exp: int) -> int:
    return exp // EXP_PER_LEVEL + 1


def add_experience_points(state: UserState, points: int) -> tuple[UserState, ExpResult]:
    new_exp = state.exp + points
    # Level never drops, even for a hand-edited exp value.
    new_level = max(level_for_exp(new_exp), state.level)
    leveled_up = new_level > state.level
    if leveled_up:
        logger.info("Level up: %d -> %d", state.level, new_level)
    result = ExpResult(
        leveled_up=leveled_up,
        new_level=new_level if leveled_up else None,
    )
    return replace(state, exp=new_exp, level=new_level), result


def level_progress(state: UserState) -> dict:
    """Progress through the current level, for progress bars."""
    into_level = state.exp % EXP_PER_LEVEL
    return {
        "level": state.level,
        "exp": state.exp,
        "exp_into_level": into_level,
        "exp_to_next_level": EXP_PER_LEVEL - into_level,
        "progress": into_level / EXP_PER_LEVEL,
    }


def newly_earned_badges(
    streak: int, owned: frozenset, policy: str = BADGE_POLICY_FIRST_UNOWNED,
) -> tuple:
    earned = []
    for badge in BADGES:
        if streak >= badge.threshold and badge.id not in owned:
            earned.append(badge.id)
            if policy == BADGE_POLICY_FIRST_UNOWNED:
                break
    return tuple(earned)


def next_streak(state: UserState, today: date) -> Optional[int]:
    """The streak after studying today, or None when today already counted."""
    last = state.last_study_date
    if last is None:
        return 1
    if last >= today:
        return None
    if last == today - timedelta(days=1):
        return state.current_streak + 1
    return 1


def update_streak(
    state: UserState,
    tasks: list[Task],
    today: date,
    badge_policy: str = BADGE_POLICY_FIRST_UNOWNED,
) -> tuple[UserState, StreakResult]:
    """Advance the study streak if a task scheduled today is completed.

    Completing a second task on the same day leaves the streak unchanged.
    """
    unchanged = StreakResult(new_streak=state.current_streak)
    if not any(t.completed and t.scheduled_date == today for t in tasks):
        return state, unchanged

    new_streak = next_streak(state, today)
    if new_streak is None:
        return state, unchanged

    is_new_record = new_streak > state.max_streak
    earned = newly_earned_badges(new_streak, state.badges, badge_policy)
    for badge_id in earned:
        logger.info("Badge earned: %s (streak %d)", badge_id, new_streak)

    new_state = replace(
        state,
        current_streak=new_streak,
        max_streak=max(new_streak, state.max_streak),
        last_study_date=today,
        badges=state.badges | frozenset(earned),
    )
    logger.debug("Streak %d -> %d", state.current_streak, new_streak)
    return new_state, StreakResult(
        new_streak=new_streak,
        is_new_record=is_new_record,
        earned_badges=earned,
        changed=True,
    )


def complete_task(
    state: UserState,
    task: Task,
    tasks: list[Task],
    now: datetime,
    badge_policy: str = BADGE_POLICY_FIRST_UNOWNED,
) -> CompletionResult:
    """Apply one meaningful task completion to the user state.

    Args:
        state: The current user state.
        task: The task being completed.
        tasks: The task list the streak check looks at; the completed task
            replaces its own entry.
        now: Completion time; its date is "today".
        badge_policy: BADGE_POLICY_FIRST_UNOWNED or BADGE_POLICY_ALL.
    """
    exp = calculate_exp(task)
    done = replace(task, completed=True)
    view = [done if t.id == task.id else t for t in tasks]
    if not any(t.id == task.id for t in tasks):
        view.append(done)

    state, exp_result = add_experience_points(state, exp)
    state = replace(state, total_tasks_completed=state.total_tasks_completed + 1)
    state, streak = update_streak(state, view, now.date(), badge_policy)
    return CompletionResult(
        user_state=state,
        exp_gained=exp,
        leveled_up=exp_result.leveled_up,
        new_level=exp_result.new_level,
        streak=streak,
    )


def use_streak_protection(state: UserState, today: date) -> tuple[UserState, bool]:
    """Spend one protection token to count today as a study day."""
    if state.streak_protection <= 0:
        return state, False
    logger.info("Streak protection used, %d token(s) left", state.streak_protection - 1)
    return replace(
        state,
        streak_protection=state.streak_protection - 1,
        last_study_date=today,
    ), True


def check_streak_status(state: UserState, now: datetime) -> StreakStatus:
    if state.last_study_date is None:
        return StreakStatus(is_at_risk=False, hours_left=float(STREAK_WINDOW_HOURS))
    since = datetime.combine(state.last_study_date, time(), tzinfo=now.tzinfo)
    hours = (now - since).total_seconds() / 3600
    return StreakStatus(
        is_at_risk=hours >= AT_RISK_HOURS,
        hours_left=max(0.0, STREAK_WINDOW_HOURS - hours),
    )
