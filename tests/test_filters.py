"""
Pytest suite for filters.py: year / month / project predicate and available periods.
"""
from datetime import date, datetime

from entities import Project
from filters import EntryFilter, available_periods, months_of_year

from conftest import make_entry


def _projects():
    return [Project(id="a", name="A"), Project(id="b", name="B")]


def _entries():
    return [
        make_entry("a", datetime(2024, 1, 15, 9), 1, entry_id="a-jan"),
        make_entry("b", datetime(2024, 2, 3, 9), 2, entry_id="b-feb"),
        make_entry("a", datetime(2023, 12, 20, 9), 3, entry_id="a-dec23"),
    ]


class TestEntryFilter:
    def test_default_selects_all_projects_and_current_year(self):
        f = EntryFilter.default(_projects(), today=date(2024, 5, 1))
        assert f.year == "2024"
        assert f.months == frozenset()
        assert f.project_ids == {"a", "b"}

    def test_empty_months_fall_back_to_year(self):
        f = EntryFilter.default(_projects(), today=date(2024, 5, 1))
        assert [e.id for e in f.apply(_entries())] == ["a-jan", "b-feb"]

    def test_months_override_year(self):
        f = EntryFilter(year="2024", months=frozenset({"2023-12"}), project_ids=frozenset({"a", "b"}))
        assert [e.id for e in f.apply(_entries())] == ["a-dec23"]

    def test_empty_project_selection_matches_nothing(self):
        f = EntryFilter(year="2024", months=frozenset({"2024-01", "2024-02"}), project_ids=frozenset())
        assert f.apply(_entries()) == []

    def test_project_subset(self):
        f = EntryFilter(year="2024", project_ids=frozenset({"b"}))
        assert [e.id for e in f.apply(_entries())] == ["b-feb"]

    def test_apply_is_idempotent(self):
        f = EntryFilter(year="2024", months=frozenset({"2024-01"}), project_ids=frozenset({"a"}))
        once = f.apply(_entries())
        assert f.apply(once) == once

    def test_toggles(self):
        f = EntryFilter.default(_projects(), today=date(2024, 5, 1))
        f = f.toggle_project("a").toggle_month("2024-02")
        assert f.project_ids == {"b"}
        assert f.months == {"2024-02"}
        f = f.toggle_month("2024-02")
        assert f.months == frozenset()

    def test_select_all_and_clear(self):
        f = EntryFilter(year="2024").select_all_projects(_projects())
        assert f.project_ids == {"a", "b"}
        assert f.clear_projects().project_ids == frozenset()

    def test_with_year_drops_other_years_months(self):
        f = EntryFilter(year="2024", months=frozenset({"2024-01", "2023-12"}))
        assert f.with_year("2023").months == {"2023-12"}


class TestAvailablePeriods:
    def test_collects_distinct_keys_newest_first(self):
        years, months = available_periods(_entries(), today=date(2024, 5, 1))
        assert years == ["2024", "2023"]
        assert months == ["2024-02", "2024-01", "2023-12"]

    def test_current_year_always_offered(self):
        years, months = available_periods([], today=date(2025, 1, 1))
        assert years == ["2025"]
        assert months == []

    def test_months_of_year(self):
        assert months_of_year(["2024-02", "2024-01", "2023-12"], "2024") == ["2024-02", "2024-01"]
