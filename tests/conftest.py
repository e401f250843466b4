from datetime import date, datetime

import pytest

from study_quest.store import MemoryExamStore, MemoryTaskStore, MemoryUserStateStore


@pytest.fixture
def tmp_db(tmp_path):
    """Provide a temporary SQLite database path for tests."""
    db_path = str(tmp_path / "test_quest.db")
    return db_path


@pytest.fixture
def today():
    return date(2026, 10, 17)


@pytest.fixture
def now():
    return datetime(2026, 10, 17, 19, 30)


@pytest.fixture
def stores():
    """In-memory exam, task and user-state stores."""
    return MemoryExamStore(), MemoryTaskStore(), MemoryUserStateStore()
