"""
Pytest suite for app_state.py: profile loading, entry building, reload-after-write and the timer.
"""
import asyncio
from datetime import date, datetime

import pytest

from app_state import AppState, build_entry, load_profile
from auth import Session
from database_manager import DatabaseManager
from entities import Expense, Project
from utils import calculate_earnings, to_epoch_ms


@pytest.fixture
def state(db_user1: DatabaseManager) -> AppState:
    profile = db_user1.get_profile(db_user1.current_user_id)
    return AppState(db_user1, profile)


@pytest.fixture
def site() -> Project:
    return Project(id="site", name="Reception", default_hourly_rate=20.0)


class TestLoadProfile:
    def test_creates_missing_profile(self, db_no_user: DatabaseManager):
        uid = db_no_user.create_auth_user("first@example.com", "hash")
        profile = load_profile(db_no_user.for_user(uid), Session(user_id=uid, email="first@example.com"))
        assert profile.email == "first@example.com"
        assert profile.is_admin

    def test_returns_existing(self, db_user2: DatabaseManager):
        uid = db_user2.current_user_id
        profile = load_profile(db_user2, Session(user_id=uid, email="ignored@example.com"))
        assert profile.email == "user2@example.com"


class TestBuildEntry:
    def test_new_entry_snapshots_project_rate(self, site: Project):
        e = build_entry(site, date(2024, 6, 10), "08:00", "10:00")
        assert e.hourly_rate == 20.0
        assert e.duration == 7200
        assert calculate_earnings(e) == pytest.approx(40.0)

    def test_rate_change_is_not_retroactive(self, site: Project):
        e = build_entry(site, date(2024, 6, 10), "08:00", "10:00")
        site.default_hourly_rate = 30.0
        assert calculate_earnings(e) == pytest.approx(40.0)
        edited = build_entry(site, date(2024, 6, 10), "08:00", "11:00", existing=e)
        assert edited.id == e.id
        assert edited.hourly_rate == 20.0

    def test_switching_project_takes_new_rate(self, site: Project):
        e = build_entry(site, date(2024, 6, 10), "08:00", "10:00")
        other = Project(id="other", name="Pattuglia", default_hourly_rate=12.5)
        assert build_entry(other, date(2024, 6, 10), "08:00", "10:00", existing=e).hourly_rate == 12.5

    def test_night_shift_detected_unless_given(self, site: Project):
        assert build_entry(site, date(2024, 6, 10), "22:00", "06:00").is_night_shift
        assert not build_entry(site, date(2024, 6, 10), "22:00", "06:00", night_shift=False).is_night_shift

    def test_expenses_and_explicit_rate(self, site: Project):
        e = build_entry(
            site,
            date(2024, 6, 10),
            "08:00",
            "09:00",
            expenses=[Expense(id="x", amount=3.5)],
            hourly_rate=15.0,
        )
        assert calculate_earnings(e) == pytest.approx(18.5)


class TestAppState:
    def test_save_reloads_both_collections(self, state: AppState, site: Project):
        async def scenario():
            await state.save_project(site)
            await state.save_entry(build_entry(site, date(2024, 6, 10), "08:00", "10:00"))

        asyncio.run(scenario())
        assert [p.id for p in state.projects] == ["site"]
        assert len(state.entries) == 1
        assert not state.loading

    def test_stored_rate_survives_project_rate_change(self, state: AppState, site: Project):
        async def scenario():
            await state.save_project(site)
            await state.save_entry(build_entry(site, date(2024, 6, 10), "08:00", "10:00"))
            site.default_hourly_rate = 50.0
            await state.save_project(site)

        asyncio.run(scenario())
        assert state.project_by_id("site").default_hourly_rate == 50.0
        assert calculate_earnings(state.entries[0]) == pytest.approx(40.0)

    def test_delete_project_removes_entries(self, state: AppState, site: Project):
        async def scenario():
            await state.save_project(site)
            await state.save_entry(build_entry(site, date(2024, 6, 10), "08:00", "10:00"))
            await state.delete_project("site")

        asyncio.run(scenario())
        assert state.projects == []
        assert state.entries == []

    def test_timer_start_and_stop(self, state: AppState, site: Project):
        start = to_epoch_ms(datetime(2024, 6, 10, 8, 0))

        async def scenario():
            await state.save_project(site)
            running = await state.start_timer("site", "Apertura", now=start)
            assert state.running_entry().id == running.id
            with pytest.raises(ValueError, match="already running"):
                await state.start_timer("site", now=start)
            return await state.stop_timer(now=start + 90 * 60 * 1000)

        stopped = asyncio.run(scenario())
        assert stopped.duration == 5400
        assert stopped.hourly_rate == 20.0
        assert state.running_entry() is None
        assert state.entries[0].end_time == start + 5_400_000

    def test_timer_needs_known_project(self, state: AppState):
        with pytest.raises(ValueError, match="Project not found"):
            asyncio.run(state.start_timer("missing"))

    def test_stop_without_timer(self, state: AppState):
        assert asyncio.run(state.stop_timer()) is None
