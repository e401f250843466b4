"""Interactive CLI application."""
import logging
import os
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from pathlib import Path

from rich.console import Console
from rich.logging import RichHandler
from rich.panel import Panel
from rich.prompt import Prompt, IntPrompt, Confirm
from rich.table import Table

from study_quest.dashboard import (
    get_today_summary, get_streak_summary, get_upcoming_exams, get_user_stats,
)
from study_quest.db import DEFAULT_DB_PATH, DEFAULT_USER_ID
from study_quest.events import EventBus, TaskCompleted, LeveledUp, BadgeEarned, StreakRecord
from study_quest.importer import import_exam
from study_quest.models import BADGES_BY_ID, Subject, PRIORITY_HIGH, PRIORITY_MEDIUM
from study_quest.scheduler import get_today_tasks
from study_quest.service import create_exam, new_exam, protect_streak, set_task_completed
from study_quest.store import SqliteExamStore, SqliteTaskStore, SqliteUserStateStore
from study_quest.validation import MAX_SUBJECTS, ValidationError

console = Console()

PRIORITY_COLORS = {PRIORITY_HIGH: "red", PRIORITY_MEDIUM: "yellow"}


@dataclass
class AppContext:
    exams: SqliteExamStore
    tasks: SqliteTaskStore
    users: SqliteUserStateStore
    bus: EventBus = field(default_factory=EventBus)

    def close(self) -> None:
        for store in (self.exams, self.tasks, self.users):
            store.close()


def open_context(db_path: str = DEFAULT_DB_PATH, user_id: str = DEFAULT_USER_ID) -> AppContext:
    ctx = AppContext(
        exams=SqliteExamStore(db_path, user_id).open(),
        tasks=SqliteTaskStore(db_path, user_id).open(),
        users=SqliteUserStateStore(db_path, user_id).open(),
    )
    ctx.bus.subscribe(TaskCompleted, lambda e: console.print(f"[green]+{e.exp_gained} EXP[/green]"))
    ctx.bus.subscribe(LeveledUp, lambda e: console.print(
        f"[bold magenta]Level up! You are now level {e.new_level}.[/bold magenta]"))
    ctx.bus.subscribe(BadgeEarned, lambda e: console.print(
        f"[bold yellow]Badge earned: {BADGES_BY_ID[e.badge_id].label}[/bold yellow]"))
    ctx.bus.subscribe(StreakRecord, lambda e: console.print(
        f"[bold cyan]New streak record: {e.new_streak} days![/bold cyan]"))
    return ctx


def show_welcome():
    console.print(Panel(
        "[bold]StudyQuest[/bold]\n[dim]Exam study planner[/dim]",
        title="Welcome", border_style="blue",
    ))


def show_menu():
    console.print("\n[bold]Commands:[/bold]")
    commands = [
        ("today", "Today's tasks"),
        ("complete", "Check off a task"),
        ("uncomplete", "Uncheck a task"),
        ("exam", "Add an exam and plan it"),
        ("import", "Add an exam from a JSON/YAML file"),
        ("plan", "Full schedule for an exam"),
        ("exams", "Upcoming exams"),
        ("stats", "Level, streak and badges"),
        ("protect", "Use a streak protection token"),
        ("quit", "Exit"),
    ]
    for cmd, desc in commands:
        console.print(f"  [cyan]{cmd:<14}[/cyan] {desc}")


def task_table(tasks: list, title: str, show_date: bool = False) -> Table:
    table = Table(title=title)
    table.add_column("#", justify="right")
    if show_date:
        table.add_column("Date")
    table.add_column("Task")
    table.add_column("Priority")
    table.add_column("Min", justify="right")
    table.add_column("Done")
    for i, t in enumerate(tasks, 1):
        color = PRIORITY_COLORS.get(t.priority, "dim")
        row = [str(i)]
        if show_date:
            row.append(t.scheduled_date.isoformat())
        row += [
            t.title,
            f"[{color}]{t.priority}[/{color}]",
            str(t.estimated_minutes),
            f"[green]+{t.earned_exp} EXP[/green]" if t.completed else "",
        ]
        table.add_row(*row)
    return table


def cmd_today(ctx: AppContext, today: date):
    tasks = ctx.tasks.load()
    todays = get_today_tasks(tasks, today)
    if not todays:
        console.print("[yellow]Nothing scheduled today.[/yellow]")
        return []
    summary = get_today_summary(tasks, today)
    console.print(task_table(todays, f"Today ({today.isoformat()})"))
    console.print(f"  {summary['completed']}/{summary['total']} done "
                  f"([bold]{summary['progress']:.0f}%[/bold]), "
                  f"{summary['remaining_minutes']} min left")
    return todays


def _pick_today_task(ctx: AppContext, today: date, pick_completed: bool):
    todays = cmd_today(ctx, today)
    candidates = [t for t in todays if t.completed == pick_completed]
    if not candidates:
        return None
    choice = IntPrompt.ask("Task number", choices=[str(i) for i, t in enumerate(todays, 1) if t in candidates])
    return todays[choice - 1]


def cmd_complete(ctx: AppContext, now: datetime):
    task = _pick_today_task(ctx, now.date(), pick_completed=False)
    if task is None:
        console.print("[green]All of today's tasks are done![/green]")
        return
    set_task_completed(ctx.tasks, ctx.users, task.id, True, now, bus=ctx.bus)


def cmd_uncomplete(ctx: AppContext, now: datetime):
    task = _pick_today_task(ctx, now.date(), pick_completed=True)
    if task is None:
        console.print("[yellow]No completed tasks today.[/yellow]")
        return
    set_task_completed(ctx.tasks, ctx.users, task.id, False, now, bus=ctx.bus)
    console.print(f"[dim]Unchecked {task.title}[/dim]")


def cmd_exam(ctx: AppContext, now: datetime):
    name = Prompt.ask("Exam name")
    default_date = (now.date() + timedelta(days=14)).isoformat()
    raw_date = Prompt.ask("Exam date (YYYY-MM-DD)", default=default_date)
    try:
        exam_date = date.fromisoformat(raw_date)
    except ValueError:
        console.print(f"[red]Invalid date: {raw_date}[/red]")
        return
    subjects = []
    while len(subjects) < MAX_SUBJECTS:
        subject_name = Prompt.ask(f"Subject {len(subjects) + 1} name")
        scope = Prompt.ask("Exam range", default="")
        pages = IntPrompt.ask("Workbook pages", default=30)
        subjects.append(Subject(name=subject_name, workbook_pages=pages, range=scope))
        if len(subjects) == MAX_SUBJECTS or not Confirm.ask("Add another subject?", default=False):
            break
    exam = new_exam(name, exam_date, subjects, now)
    tasks = create_exam(ctx.exams, ctx.tasks, exam, now)
    console.print(f"[green]Planned {exam.name}: {len(tasks)} tasks until {exam.date.isoformat()}[/green]")


def cmd_import(ctx: AppContext, now: datetime):
    file_path = Prompt.ask("File path")
    if not Path(file_path).exists():
        console.print(f"[red]File not found: {file_path}[/red]")
        return
    result = import_exam(ctx.exams, ctx.tasks, file_path, now)
    console.print(f"[green]Imported {result['name']} from {result['filename']} "
                  f"({result['subjects']} subjects, {result['tasks']} tasks)[/green]")


def cmd_exams(ctx: AppContext, today: date):
    upcoming = get_upcoming_exams(ctx.exams.load(), today)
    if not upcoming:
        console.print("[yellow]No upcoming exams. Use 'exam' to add one.[/yellow]")
        return upcoming
    table = Table(title="Upcoming Exams")
    table.add_column("#", justify="right")
    table.add_column("Exam", style="cyan")
    table.add_column("Date")
    table.add_column("When")
    table.add_column("Subjects")
    for i, e in enumerate(upcoming, 1):
        table.add_row(
            str(i), e["name"], e["date"].isoformat(),
            f"[{e['color']}]{e['label']}[/{e['color']}]", ", ".join(e["subjects"]),
        )
    console.print(table)
    return upcoming


def cmd_plan(ctx: AppContext, today: date):
    upcoming = cmd_exams(ctx, today)
    if not upcoming:
        return
    choice = IntPrompt.ask("Exam number", choices=[str(i) for i in range(1, len(upcoming) + 1)])
    exam = upcoming[choice - 1]
    tasks = ctx.tasks.load(exam["exam_id"])
    console.print(task_table(tasks, f"Plan: {exam['name']}", show_date=True))


def cmd_stats(ctx: AppContext, now: datetime):
    state = ctx.users.load()
    stats = get_user_stats(state)
    streak = get_streak_summary(state, now)
    bar_filled = int(stats["progress"] * 20)
    bar = f"[magenta]{'█' * bar_filled}{'░' * (20 - bar_filled)}[/magenta]"
    console.print(Panel(
        f"Level [bold]{stats['level']}[/bold]  {bar}  {stats['exp_to_next_level']} EXP to next\n"
        f"Total EXP: {stats['exp']}  |  Tasks done: {stats['total_tasks_completed']}",
        title="Progress", border_style="blue",
    ))
    warning = ""
    if streak["is_at_risk"]:
        warning = f"\n[red]Streak at risk! {streak['hours_left']}h left[/red]"
    console.print(
        f"  Streak: [bold]{streak['current_streak']}[/bold] days  |  "
        f"Best: [bold]{streak['max_streak']}[/bold]  |  "
        f"Protection tokens: [bold]{streak['streak_protection']}[/bold]{warning}"
    )
    if streak["badges"]:
        console.print("  Badges: " + ", ".join(streak["badges"]))


def cmd_protect(ctx: AppContext, today: date):
    state, used = protect_streak(ctx.users, today)
    if used:
        console.print(f"[green]Streak protected for today. {state.streak_protection} token(s) left.[/green]")
    else:
        console.print("[yellow]No streak protection tokens left.[/yellow]")


def setup_logging() -> None:
    level = os.environ.get("STUDY_QUEST_LOG_LEVEL", "WARNING").upper()
    logging.basicConfig(
        level=level, format="%(message)s", datefmt="[%X]",
        handlers=[RichHandler(console=console, show_path=False)],
    )


def main():
    setup_logging()
    ctx = open_context()
    show_welcome()

    try:
        while True:
            show_menu()
            choice = Prompt.ask("\n[bold]>[/bold]", default="today").strip().lower()
            now = datetime.now()
            try:
                if choice == "today":
                    cmd_today(ctx, now.date())
                elif choice == "complete":
                    cmd_complete(ctx, now)
                elif choice == "uncomplete":
                    cmd_uncomplete(ctx, now)
                elif choice == "exam":
                    cmd_exam(ctx, now)
                elif choice == "import":
                    cmd_import(ctx, now)
                elif choice == "plan":
                    cmd_plan(ctx, now.date())
                elif choice == "exams":
                    cmd_exams(ctx, now.date())
                elif choice == "stats":
                    cmd_stats(ctx, now)
                elif choice == "protect":
                    cmd_protect(ctx, now.date())
                elif choice in ("quit", "exit", "q"):
                    console.print("[dim]Good luck on your exam![/dim]")
                    break
                else:
                    console.print("[red]Unknown command. Try again.[/red]")
            except KeyboardInterrupt:
                console.print("\n[dim]Use 'quit' to exit.[/dim]")
            except ValidationError as e:
                for problem in e.problems:
                    console.print(f"[red]{problem}[/red]")
            except Exception as e:
                logging.getLogger(__name__).debug("Command %s failed", choice, exc_info=True)
                console.print(f"[red]Error: {e}[/red]")
    finally:
        ctx.close()


if __name__ == "__main__":
    main()
