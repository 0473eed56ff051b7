"""
Pytest fixtures shared by the store and state tests.
Uses a temporary SQLite database with two users (admin and normal) so tests can exercise owner-scoped
filtering, plus a LocalStore over in-memory key-value storage.
"""
from datetime import datetime
from pathlib import Path

import bcrypt
import pytest

from database_manager import DatabaseManager
from entities import Project, Shift, TimeEntry
from local_store import MemoryStorage, LocalStore
from utils import to_epoch_ms


@pytest.fixture(autouse=True)
def _no_database_url(monkeypatch):
    """Keep tests on the temporary SQLite file even if DATABASE_URL is exported."""
    monkeypatch.delenv("DATABASE_URL", raising=False)


@pytest.fixture
def db_path(tmp_path: Path) -> Path:
    """A temporary SQLite database path (same path for all managers in a test)."""
    return tmp_path / "test_cronosheet.db"


@pytest.fixture
def db_no_user(db_path: Path) -> DatabaseManager:
    """Database manager with no current_user_id (for init_db and sign-up)."""
    dm = DatabaseManager(db_path=db_path)
    dm.init_db()
    return dm


@pytest.fixture
def db_with_two_users(db_no_user: DatabaseManager):
    """
    Register two users and create their profiles; return (db_no_user, user1_id, user2_id).
    user1 gets the first profile and so becomes an approved admin; user2 waits for approval.
    """
    pw1 = bcrypt.hashpw(b"admin123", bcrypt.gensalt()).decode("utf-8")
    user1_id = db_no_user.create_auth_user("admin@example.com", pw1)
    assert db_no_user.for_user(user1_id).create_profile(user1_id, "admin@example.com") is not None
    pw2 = bcrypt.hashpw(b"user2pass", bcrypt.gensalt()).decode("utf-8")
    user2_id = db_no_user.create_auth_user("user2@example.com", pw2)
    assert db_no_user.for_user(user2_id).create_profile(user2_id, "user2@example.com") is not None
    return db_no_user, user1_id, user2_id


@pytest.fixture
def db_user1(db_with_two_users) -> DatabaseManager:
    """Database manager scoped to user1 (admin)."""
    db, user1_id, _ = db_with_two_users
    return db.for_user(user1_id)


@pytest.fixture
def db_user2(db_with_two_users) -> DatabaseManager:
    """Database manager scoped to user2."""
    db, _, user2_id = db_with_two_users
    return db.for_user(user2_id)


@pytest.fixture
def storage() -> MemoryStorage:
    return MemoryStorage()


@pytest.fixture
def local_store(storage: MemoryStorage) -> LocalStore:
    """Local store with no signed-in user."""
    return LocalStore(storage)


@pytest.fixture
def project() -> Project:
    return Project(
        id="p1",
        name="Reception",
        color="#6366f1",
        default_hourly_rate=10.0,
        shifts=[Shift(id="s1", name="Mattina", start_time="07:00", end_time="15:00")],
    )


def make_entry(
    project_id: str,
    start: datetime,
    hours: float,
    *,
    entry_id: str | None = None,
    rate: float | None = 10.0,
    description: str = "",
) -> TimeEntry:
    """Closed entry starting at start (local time) and lasting hours."""
    start_ms = to_epoch_ms(start)
    duration = hours * 3600
    return TimeEntry(
        id=entry_id or f"e-{start_ms}",
        project_id=project_id,
        start_time=start_ms,
        end_time=start_ms + int(duration * 1000),
        duration=duration,
        description=description,
        hourly_rate=rate,
    )
