"""
Database manager for Cronosheet: profiles, projects (clients) and time entries.
Supports local SQLite (default) or remote PostgreSQL via DATABASE_URL.
Multi-user: every read and write is scoped to current_user_id; admin-wide profile access checks the
caller's own profile role.
"""
import logging
import os
from pathlib import Path
from datetime import datetime, timedelta
from contextlib import contextmanager
from typing import Generator

from sqlalchemy import Engine, create_engine, event, func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import sessionmaker, Session

from entities import (
    ROLE_ADMIN,
    ROLES,
    STATUS_TRIAL,
    SUBSCRIPTION_STATUSES,
    TRIAL_DAYS,
    Expense,
    Project,
    Shift,
    TimeEntry,
    UserProfile,
)
from models import AuthUser, Base, ProfileRow, ProjectRow, TimeEntryRow
from utils import generate_id

logger = logging.getLogger(__name__)


# --- Row <-> entity translation ---


def _row_to_project(row: ProjectRow) -> Project:
    return Project(
        id=row.id,
        name=row.name,
        color=row.color or "#6366f1",
        default_hourly_rate=float(row.default_hourly_rate or 0.0),
        shifts=[
            Shift(
                id=str(s.get("id") or ""),
                name=s.get("name") or "",
                start_time=s.get("start_time") or "",
                end_time=s.get("end_time") or "",
            )
            for s in (row.shifts or [])
        ],
        user_id=row.user_id,
    )


def _project_columns(project: Project) -> dict:
    return {
        "name": project.name,
        "color": project.color,
        "default_hourly_rate": float(project.default_hourly_rate or 0.0),
        "shifts": [
            {"id": s.id, "name": s.name, "start_time": s.start_time, "end_time": s.end_time}
            for s in project.shifts
        ],
    }


def _row_to_entry(row: TimeEntryRow) -> TimeEntry:
    return TimeEntry(
        id=row.id,
        description=row.description or "",
        project_id=row.project_id,
        start_time=int(row.start_time),
        end_time=int(row.end_time) if row.end_time is not None else None,
        duration=float(row.duration or 0.0),
        hourly_rate=float(row.hourly_rate) if row.hourly_rate is not None else None,
        expenses=[
            Expense(id=str(x.get("id") or ""), description=x.get("description") or "", amount=float(x.get("amount") or 0.0))
            for x in (row.expenses or [])
        ],
        is_night_shift=bool(row.is_night_shift),
        user_id=row.user_id,
    )


def _entry_columns(entry: TimeEntry) -> dict:
    return {
        "project_id": entry.project_id,
        "description": entry.description or "",
        "start_time": int(entry.start_time),
        "end_time": int(entry.end_time) if entry.end_time is not None else None,
        "duration": float(entry.duration or 0.0),
        "hourly_rate": float(entry.hourly_rate) if entry.hourly_rate is not None else None,
        "expenses": [{"id": x.id, "description": x.description, "amount": float(x.amount)} for x in entry.expenses],
        "is_night_shift": bool(entry.is_night_shift),
    }


def _row_to_profile(row: ProfileRow) -> UserProfile:
    return UserProfile(
        id=row.id,
        email=row.email,
        full_name=row.full_name,
        role=row.role,
        subscription_status=row.subscription_status,
        trial_ends_at=row.trial_ends_at,
        is_approved=bool(row.is_approved),
    )


class DatabaseManager:
    """Database as an object: owns engine and sessions, exposes store operations as methods."""

    def __init__(
        self,
        db_path: Path | str | None = None,
        database_url: str | None = None,
        current_user_id: str | None = None,
        *,
        engine: Engine | None = None,
    ) -> None:
        self._current_user_id = current_user_id
        if engine is not None:
            self._engine = engine
        else:
            url = database_url or os.environ.get("DATABASE_URL")
            if url:
                self._engine = create_engine(url, echo=False)
            else:
                if db_path is None:
                    db_path = Path(__file__).resolve().parent / "cronosheet.db"
                self._engine = create_engine(f"sqlite:///{db_path}", echo=False)
            self._setup_sqlite_foreign_keys()
        self._session_factory = sessionmaker(
            bind=self._engine, autocommit=False, autoflush=False, expire_on_commit=False
        )

    @property
    def current_user_id(self) -> str | None:
        """Current user id for this manager (read-only)."""
        return self._current_user_id

    def for_user(self, user_id: str | None) -> "DatabaseManager":
        """Manager bound to user_id, sharing this engine."""
        return DatabaseManager(current_user_id=user_id, engine=self._engine)

    def backend_description(self) -> str:
        if self._engine.dialect.name == "postgresql":
            return "PostgreSQL (remote)"
        return "SQLite (local)"

    def _setup_sqlite_foreign_keys(self) -> None:
        """SQLite enforces ON DELETE CASCADE only with foreign_keys enabled per connection."""
        if self._engine.dialect.name != "sqlite":
            return

        @event.listens_for(self._engine, "connect")
        def _enable_foreign_keys(dbapi_connection, connection_record):
            cursor = dbapi_connection.cursor()
            try:
                cursor.execute("PRAGMA foreign_keys=ON")
            finally:
                cursor.close()

    @contextmanager
    def _session(self) -> Generator[Session, None, None]:
        """Yield a new session (context manager)."""
        session = self._session_factory()
        try:
            yield session
        finally:
            session.close()

    def _require_user(self) -> None:
        """Raise if current_user_id is not set (required for profiles, projects, time entries)."""
        if self._current_user_id is None:
            raise ValueError("Current user is not set.")

    def _is_admin(self, session: Session) -> bool:
        """Return True if the current user's profile has the admin role."""
        if self._current_user_id is None:
            return False
        row = session.get(ProfileRow, self._current_user_id)
        return row is not None and row.role == ROLE_ADMIN

    def current_user_is_admin(self) -> bool:
        if self._current_user_id is None:
            return False
        with self._session() as session:
            return self._is_admin(session)

    def init_db(self) -> None:
        """Create tables if they do not exist."""
        Base.metadata.create_all(self._engine)

    # --- Auth hooks (work without current_user_id) ---

    def get_login_credentials(self, email: str) -> tuple[str, str] | None:
        """Return (user_id, password_hash) for the email (case-insensitive), or None."""
        with self._session() as session:
            user = (
                session.query(AuthUser)
                .filter(func.lower(AuthUser.email) == (email or "").strip().lower())
                .first()
            )
            if user is None:
                return None
            return (user.id, user.password_hash)

    def create_auth_user(self, email: str, password_hash: str) -> str:
        """Register credentials; returns the new user id. Raises ValueError if the email is taken."""
        email = (email or "").strip()
        if self.get_login_credentials(email) is not None:
            raise ValueError("Email already registered.")
        with self._session() as session:
            user = AuthUser(id=generate_id(), email=email, password_hash=password_hash)
            session.add(user)
            try:
                session.commit()
            except IntegrityError:
                session.rollback()
                raise ValueError("Email already registered.") from None
            return user.id

    # --- Profiles ---

    def get_profile(self, user_id: str) -> UserProfile | None:
        """Return the profile (own row, or any row for admin)."""
        self._require_user()
        with self._session() as session:
            if user_id != self._current_user_id and not self._is_admin(session):
                return None
            row = session.get(ProfileRow, user_id)
            return _row_to_profile(row) if row else None

    def create_profile(self, user_id: str, email: str) -> UserProfile | None:
        """Create the caller's profile if missing (idempotent). New profiles wait for admin approval,
        except the first profile in an empty database, which becomes an approved admin."""
        self._require_user()
        if user_id != self._current_user_id:
            logger.warning("Refusing to create profile %s for user %s", user_id, self._current_user_id)
            return None
        existing = self.get_profile(user_id)
        if existing:
            return existing
        try:
            with self._session() as session:
                first = session.query(ProfileRow).count() == 0
                row = ProfileRow(
                    id=user_id,
                    email=email,
                    role=ROLE_ADMIN if first else "user",
                    subscription_status=STATUS_TRIAL,
                    trial_ends_at=datetime.now() + timedelta(days=TRIAL_DAYS),
                    is_approved=first,
                )
                session.add(row)
                session.commit()
                if first:
                    logger.info("Bootstrapped first profile %s as admin", email)
                return _row_to_profile(row)
        except SQLAlchemyError:
            logger.exception("Error creating profile for %s", email)
            return None

    def update_own_profile(self, *, full_name: str | None = None) -> UserProfile | None:
        """Update self-editable fields of the caller's profile."""
        self._require_user()
        try:
            with self._session() as session:
                row = session.get(ProfileRow, self._current_user_id)
                if row is None:
                    return None
                if full_name is not None:
                    row.full_name = full_name.strip() or None
                session.commit()
                return _row_to_profile(row)
        except SQLAlchemyError:
            logger.exception("Error updating profile %s", self._current_user_id)
            return None

    def get_all_profiles(self) -> list[UserProfile]:
        """All profiles, newest first (admin only; empty list otherwise)."""
        self._require_user()
        try:
            with self._session() as session:
                if not self._is_admin(session):
                    logger.warning("Non-admin %s asked for all profiles", self._current_user_id)
                    return []
                rows = session.query(ProfileRow).order_by(ProfileRow.created_at.desc()).all()
                return [_row_to_profile(r) for r in rows]
        except SQLAlchemyError:
            logger.exception("Error fetching all profiles")
            return []

    def update_profile_admin(
        self,
        profile_id: str,
        *,
        is_approved: bool | None = None,
        subscription_status: str | None = None,
        role: str | None = None,
    ) -> None:
        """Change approval, plan or role of any profile (admin only). Raises ValueError."""
        self._require_user()
        if subscription_status is not None and subscription_status not in SUBSCRIPTION_STATUSES:
            raise ValueError(f"Unknown subscription status: {subscription_status}")
        if role is not None and role not in ROLES:
            raise ValueError(f"Unknown role: {role}")
        with self._session() as session:
            if not self._is_admin(session):
                raise ValueError("Only admin can update other users.")
            row = session.get(ProfileRow, profile_id)
            if row is None:
                raise ValueError("User not found.")
            if is_approved is not None:
                row.is_approved = is_approved
            if subscription_status is not None:
                row.subscription_status = subscription_status
            if role is not None:
                row.role = role
            session.commit()

    def delete_profile_admin(self, profile_id: str) -> None:
        """Delete a user: credentials, profile and, by cascade, projects and entries (admin only). Raises ValueError."""
        self._require_user()
        if profile_id == self._current_user_id:
            raise ValueError("You cannot delete your own profile.")
        with self._session() as session:
            if not self._is_admin(session):
                raise ValueError("Only admin can delete users.")
            row = session.get(ProfileRow, profile_id)
            if row is None:
                raise ValueError("User not found.")
            auth_user = session.get(AuthUser, profile_id)
            session.delete(auth_user if auth_user is not None else row)
            session.commit()

    # --- Projects ---

    def _project_query(self, session: Session):
        return session.query(ProjectRow).filter(ProjectRow.user_id == self._current_user_id)

    def _entry_query(self, session: Session):
        return session.query(TimeEntryRow).filter(TimeEntryRow.user_id == self._current_user_id)

    def get_projects(self) -> list[Project]:
        """Return the caller's projects, oldest first."""
        self._require_user()
        try:
            with self._session() as session:
                rows = self._project_query(session).order_by(ProjectRow.created_at.asc()).all()
                return [_row_to_project(r) for r in rows]
        except SQLAlchemyError:
            logger.exception("Error fetching projects")
            return []

    def save_project(self, project: Project) -> Project | None:
        """Insert or update (by id) one of the caller's projects. Returns the stored project or None."""
        self._require_user()
        try:
            with self._session() as session:
                row = session.get(ProjectRow, project.id) if project.id else None
                if row is not None and row.user_id != self._current_user_id:
                    logger.warning("Project %s belongs to another user", project.id)
                    return None
                if row is None:
                    row = ProjectRow(id=project.id or generate_id(), user_id=self._current_user_id)
                    session.add(row)
                for key, value in _project_columns(project).items():
                    setattr(row, key, value)
                session.commit()
                return _row_to_project(row)
        except SQLAlchemyError:
            logger.exception("Error saving project %s", project.id)
            return None

    def delete_project(self, project_id: str) -> None:
        """Delete one of the caller's projects; its time entries go with it."""
        self._require_user()
        try:
            with self._session() as session:
                row = self._project_query(session).filter(ProjectRow.id == project_id).first()
                if row is None:
                    logger.warning("Project %s not found for deletion", project_id)
                    return
                session.delete(row)
                session.commit()
        except SQLAlchemyError:
            logger.exception("Error deleting project %s", project_id)

    # --- Time entries ---

    def get_entries(self) -> list[TimeEntry]:
        """Return the caller's time entries, newest first."""
        self._require_user()
        try:
            with self._session() as session:
                rows = self._entry_query(session).order_by(TimeEntryRow.start_time.desc()).all()
                return [_row_to_entry(r) for r in rows]
        except SQLAlchemyError:
            logger.exception("Error fetching entries")
            return []

    def save_entry(self, entry: TimeEntry) -> TimeEntry | None:
        """Insert or update (by id) one of the caller's entries. The project must be the caller's."""
        self._require_user()
        try:
            with self._session() as session:
                if self._project_query(session).filter(ProjectRow.id == entry.project_id).first() is None:
                    logger.warning("Project %s not found for entry %s", entry.project_id, entry.id)
                    return None
                row = session.get(TimeEntryRow, entry.id) if entry.id else None
                if row is not None and row.user_id != self._current_user_id:
                    logger.warning("Time entry %s belongs to another user", entry.id)
                    return None
                if row is None:
                    row = TimeEntryRow(id=entry.id or generate_id(), user_id=self._current_user_id)
                    session.add(row)
                for key, value in _entry_columns(entry).items():
                    setattr(row, key, value)
                session.commit()
                return _row_to_entry(row)
        except SQLAlchemyError:
            logger.exception("Error saving entry %s", entry.id)
            return None

    def delete_entry(self, entry_id: str) -> None:
        self._require_user()
        try:
            with self._session() as session:
                deleted = (
                    self._entry_query(session)
                    .filter(TimeEntryRow.id == entry_id)
                    .delete(synchronize_session=False)
                )
                session.commit()
                if not deleted:
                    logger.warning("Time entry %s not found for deletion", entry_id)
        except SQLAlchemyError:
            logger.exception("Error deleting entry %s", entry_id)
