"""Exam, task and user-state repositories.

Each store is bound to one user id and has an explicit lifecycle:
open() before use, close() after (or use it as a context manager).
User-state writes are optimistic: a save only succeeds when the stored
version still matches the version the state was loaded with.
"""
import json
import logging
import sqlite3
from dataclasses import replace
from datetime import date, datetime
from typing import Optional

from study_quest.db import get_connection, init_db, DEFAULT_DB_PATH, DEFAULT_USER_ID
from study_quest.models import Exam, Subject, Task, UserState

logger = logging.getLogger(__name__)


class StoreClosedError(RuntimeError):
    """Raised when a store is used outside open()/close()."""


class ConcurrentUpdateError(RuntimeError):
    """Raised when a user state was changed by another writer since it was loaded."""


def _iso(value) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _parse_date(value: Optional[str]) -> Optional[date]:
    return date.fromisoformat(value) if value else None


def _parse_datetime(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


class SqliteStore:
    def __init__(self, db_path: str = DEFAULT_DB_PATH, user_id: str = DEFAULT_USER_ID):
        self.db_path = db_path
        self.user_id = user_id
        self._conn = None

    def open(self):
        if self._conn is None:
            init_db(self.db_path)
            self._conn = get_connection(self.db_path)
        return self

    def close(self) -> None:
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def __enter__(self):
        return self.open()

    def __exit__(self, exc_type, exc, tb):
        self.close()

    @property
    def conn(self) -> sqlite3.Connection:
        if self._conn is None:
            raise StoreClosedError(f"{type(self).__name__} is not open")
        return self._conn


class SqliteExamStore(SqliteStore):
    def _row_to_exam(self, row) -> Exam:
        subjects = self.conn.execute(
            "SELECT * FROM subjects WHERE exam_id = ? ORDER BY position", (row["id"],)
        ).fetchall()
        return Exam(
            id=row["id"],
            name=row["name"],
            date=date.fromisoformat(row["exam_date"]),
            subjects=[
                Subject(name=s["name"], workbook_pages=s["workbook_pages"], range=s["range_text"])
                for s in subjects
            ],
            created_at=_parse_datetime(row["created_at"]),
        )

    def load(self) -> list[Exam]:
        rows = self.conn.execute(
            "SELECT * FROM exams WHERE user_id = ? ORDER BY exam_date, created_at",
            (self.user_id,),
        ).fetchall()
        return [self._row_to_exam(r) for r in rows]

    def get(self, exam_id: str) -> Optional[Exam]:
        row = self.conn.execute(
            "SELECT * FROM exams WHERE id = ? AND user_id = ?", (exam_id, self.user_id)
        ).fetchone()
        return self._row_to_exam(row) if row else None

    def save(self, exam: Exam) -> None:
        conn = self.conn
        conn.execute(
            """INSERT INTO exams (id, user_id, name, exam_date, created_at) VALUES (?, ?, ?, ?, ?)
            ON CONFLICT(id) DO UPDATE SET name=excluded.name, exam_date=excluded.exam_date""",
            (exam.id, self.user_id, exam.name, exam.date.isoformat(), _iso(exam.created_at)),
        )
        conn.execute("DELETE FROM subjects WHERE exam_id = ?", (exam.id,))
        for position, subject in enumerate(exam.subjects):
            conn.execute(
                """INSERT INTO subjects (exam_id, position, name, range_text, workbook_pages)
                VALUES (?, ?, ?, ?, ?)""",
                (exam.id, position, subject.name, subject.range, subject.workbook_pages),
            )
        conn.commit()


class SqliteTaskStore(SqliteStore):
    @staticmethod
    def _row_to_task(row) -> Task:
        return Task(
            id=row["id"],
            exam_id=row["exam_id"],
            title=row["title"],
            subject_name=row["subject_name"],
            scheduled_date=date.fromisoformat(row["scheduled_date"]),
            priority=row["priority"],
            estimated_minutes=row["estimated_minutes"],
            type=row["task_type"],
            completed=bool(row["completed"]),
            completed_at=_parse_datetime(row["completed_at"]),
            earned_exp=row["earned_exp"],
        )

    def load(self, exam_id: Optional[str] = None) -> list[Task]:
        sql = "SELECT * FROM tasks WHERE user_id = ?"
        params = [self.user_id]
        if exam_id is not None:
            sql += " AND exam_id = ?"
            params.append(exam_id)
        # rowid keeps insertion order for same-day tasks
        rows = self.conn.execute(sql + " ORDER BY scheduled_date, rowid", params).fetchall()
        return [self._row_to_task(r) for r in rows]

    def save(self, tasks: list[Task]) -> None:
        """Insert new tasks and update existing ones by id."""
        conn = self.conn
        for t in tasks:
            conn.execute(
                """INSERT INTO tasks (id, user_id, exam_id, title, subject_name, scheduled_date,
                priority, estimated_minutes, task_type, completed, completed_at, earned_exp)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET completed=excluded.completed,
                completed_at=excluded.completed_at, earned_exp=excluded.earned_exp""",
                (t.id, self.user_id, t.exam_id, t.title, t.subject_name,
                 t.scheduled_date.isoformat(), t.priority, t.estimated_minutes, t.type,
                 int(t.completed), _iso(t.completed_at), t.earned_exp),
            )
        conn.commit()


class SqliteUserStateStore(SqliteStore):
    def load(self) -> UserState:
        row = self.conn.execute(
            "SELECT * FROM user_state WHERE user_id = ?", (self.user_id,)
        ).fetchone()
        if not row:
            return UserState()
        return UserState(
            level=row["level"],
            exp=row["exp"],
            current_streak=row["current_streak"],
            max_streak=row["max_streak"],
            last_study_date=_parse_date(row["last_study_date"]),
            streak_protection=row["streak_protection"],
            total_tasks_completed=row["total_tasks_completed"],
            badges=frozenset(json.loads(row["badges"])),
            version=row["version"],
        )

    def save(self, state: UserState) -> UserState:
        """Write the state if nobody else has since it was loaded.

        Returns:
            The saved state with its version bumped.

        Raises:
            ConcurrentUpdateError: the stored version moved on.
        """
        conn = self.conn
        values = (
            state.level, state.exp, state.current_streak, state.max_streak,
            _iso(state.last_study_date), state.streak_protection,
            state.total_tasks_completed, json.dumps(sorted(state.badges)),
        )
        if state.version == 0:
            try:
                conn.execute(
                    """INSERT INTO user_state (level, exp, current_streak, max_streak,
                    last_study_date, streak_protection, total_tasks_completed, badges,
                    user_id, version) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, 1)""",
                    values + (self.user_id,),
                )
            except sqlite3.IntegrityError as e:
                conn.rollback()
                raise ConcurrentUpdateError(
                    f"user state for {self.user_id!r} was created by another writer"
                ) from e
        else:
            cursor = conn.execute(
                """UPDATE user_state SET level=?, exp=?, current_streak=?, max_streak=?,
                last_study_date=?, streak_protection=?, total_tasks_completed=?, badges=?,
                version=version + 1
                WHERE user_id = ? AND version = ?""",
                values + (self.user_id, state.version),
            )
            if cursor.rowcount == 0:
                conn.rollback()
                logger.warning("Rejected stale write for user %s at version %d",
                               self.user_id, state.version)
                raise ConcurrentUpdateError(
                    f"user state for {self.user_id!r} changed since version {state.version}"
                )
        conn.commit()
        return replace(state, version=state.version + 1)


class MemoryStore:
    """Base for dict-backed stores; records may be shared between instances."""

    def __init__(self, records: Optional[dict] = None, user_id: str = DEFAULT_USER_ID):
        self.records = records if records is not None else {}
        self.user_id = user_id

    def open(self):
        return self

    def close(self) -> None:
        pass

    def __enter__(self):
        return self.open()

    def __exit__(self, exc_type, exc, tb):
        self.close()


class MemoryExamStore(MemoryStore):
    def load(self) -> list[Exam]:
        exams = self.records.get(self.user_id, {})
        return sorted(exams.values(), key=lambda e: e.date)

    def get(self, exam_id: str) -> Optional[Exam]:
        return self.records.get(self.user_id, {}).get(exam_id)

    def save(self, exam: Exam) -> None:
        self.records.setdefault(self.user_id, {})[exam.id] = exam


class MemoryTaskStore(MemoryStore):
    def load(self, exam_id: Optional[str] = None) -> list[Task]:
        tasks = list(self.records.get(self.user_id, {}).values())
        if exam_id is not None:
            tasks = [t for t in tasks if t.exam_id == exam_id]
        return sorted(tasks, key=lambda t: t.scheduled_date)

    def save(self, tasks: list[Task]) -> None:
        stored = self.records.setdefault(self.user_id, {})
        for t in tasks:
            stored[t.id] = t


class MemoryUserStateStore(MemoryStore):
    def load(self) -> UserState:
        return self.records.get(self.user_id, UserState())

    def save(self, state: UserState) -> UserState:
        current = self.records.get(self.user_id)
        current_version = current.version if current is not None else 0
        if current_version != state.version:
            logger.warning("Rejected stale write for user %s at version %d",
                           self.user_id, state.version)
            raise ConcurrentUpdateError(
                f"user state for {self.user_id!r} changed since version {state.version}"
            )
        saved = replace(state, version=state.version + 1)
        self.records[self.user_id] = saved
        return saved
