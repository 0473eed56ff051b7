"""
Application state for a signed-in user: profile, projects and entries as full in-memory copies.
Every mutation awaits the write, then reloads both collections; there are no optimistic updates.
"""
import asyncio
import logging
from datetime import date

from auth import Session
from entities import Expense, Project, TimeEntry, UserProfile
from utils import build_entry_times, elapsed_seconds, generate_id, is_night_shift, now_ms

logger = logging.getLogger(__name__)


def load_profile(store, session: Session) -> UserProfile | None:
    """Fetch the signed-in user's profile, creating it on first login."""
    profile = store.get_profile(session.user_id)
    if profile is None:
        logger.info("Profile missing for %s; creating it", session.email)
        profile = store.create_profile(session.user_id, session.email)
    return profile


def build_entry(
    project: Project,
    day: date,
    start_hm: str,
    end_hm: str,
    *,
    description: str = "",
    expenses: list[Expense] | None = None,
    night_shift: bool | None = None,
    hourly_rate: float | None = None,
    existing: TimeEntry | None = None,
) -> TimeEntry:
    """Entry from the form fields. New entries take a snapshot of the project's default rate;
    edits keep the entry's own rate unless hourly_rate is given."""
    start_ms, end_ms, duration = build_entry_times(day, start_hm, end_hm)
    if hourly_rate is None:
        if existing is not None and existing.project_id == project.id:
            hourly_rate = existing.hourly_rate
        else:
            hourly_rate = project.default_hourly_rate
    return TimeEntry(
        id=existing.id if existing else generate_id(),
        description=description,
        project_id=project.id,
        start_time=start_ms,
        end_time=end_ms,
        duration=duration,
        hourly_rate=hourly_rate,
        expenses=list(expenses or []),
        is_night_shift=is_night_shift(start_hm, end_hm) if night_shift is None else night_shift,
        user_id=existing.user_id if existing else None,
    )


class AppState:
    def __init__(self, store, profile: UserProfile) -> None:
        self.store = store
        self.profile = profile
        self.projects: list[Project] = []
        self.entries: list[TimeEntry] = []
        self.loading = False

    async def reload(self) -> None:
        """Fetch projects and entries in parallel and replace both lists."""
        self.loading = True
        try:
            projects, entries = await asyncio.gather(
                asyncio.to_thread(self.store.get_projects),
                asyncio.to_thread(self.store.get_entries),
            )
        finally:
            self.loading = False
        self.projects = projects
        self.entries = entries

    def project_by_id(self, project_id: str) -> Project | None:
        return next((p for p in self.projects if p.id == project_id), None)

    def running_entry(self) -> TimeEntry | None:
        """Newest entry without an end time."""
        running = [e for e in self.entries if e.end_time is None]
        return max(running, key=lambda e: e.start_time) if running else None

    async def save_entry(self, entry: TimeEntry) -> TimeEntry | None:
        saved = await asyncio.to_thread(self.store.save_entry, entry)
        await self.reload()
        return saved

    async def delete_entry(self, entry_id: str) -> None:
        await asyncio.to_thread(self.store.delete_entry, entry_id)
        await self.reload()

    async def save_project(self, project: Project) -> Project | None:
        saved = await asyncio.to_thread(self.store.save_project, project)
        await self.reload()
        return saved

    async def delete_project(self, project_id: str) -> None:
        await asyncio.to_thread(self.store.delete_project, project_id)
        await self.reload()

    async def start_timer(self, project_id: str, description: str = "", now: int | None = None) -> TimeEntry:
        """Open a new running entry. Raises ValueError if a timer is already running or the project is unknown."""
        if self.running_entry() is not None:
            raise ValueError("A timer is already running.")
        project = self.project_by_id(project_id)
        if project is None:
            raise ValueError("Project not found.")
        entry = TimeEntry(
            id=generate_id(),
            description=description or "",
            project_id=project.id,
            start_time=now if now is not None else now_ms(),
            end_time=None,
            duration=0.0,
            hourly_rate=project.default_hourly_rate,
        )
        saved = await self.save_entry(entry)
        if saved is None:
            raise ValueError("Could not start the timer.")
        return saved

    async def stop_timer(self, now: int | None = None) -> TimeEntry | None:
        """Close the running entry; returns it, or None when nothing is running."""
        entry = self.running_entry()
        if entry is None:
            return None
        end = now if now is not None else now_ms()
        entry.end_time = end
        entry.duration = elapsed_seconds(entry, end)
        return await self.save_entry(entry)
