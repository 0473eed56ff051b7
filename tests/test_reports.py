"""
Pytest suite for reports.py: lookback windows, per-project shares and per-day series.
"""
from datetime import date, datetime

import pytest

from entities import Project
from reports import LAST_14_DAYS, LAST_7_DAYS, MONTH_TO_DATE, build_report, entry_seconds, window_start

from conftest import make_entry

TODAY = date(2024, 6, 20)


def _projects():
    return [
        Project(id="a", name="Reception", color="#6366f1"),
        Project(id="b", name="Pattuglia", color="#10b981"),
        Project(id="c", name="Idle"),
    ]


def _entries():
    return [
        make_entry("a", datetime(2024, 6, 20, 8), 2, entry_id="today"),
        make_entry("b", datetime(2024, 6, 18, 22), 5, entry_id="night"),
        make_entry("a", datetime(2024, 6, 14, 8), 1, entry_id="last-week"),
        make_entry("a", datetime(2024, 6, 1, 8), 4, entry_id="first"),
        make_entry("b", datetime(2024, 5, 31, 8), 8, entry_id="may"),
    ]


class TestWindowStart:
    def test_windows(self):
        assert window_start(LAST_7_DAYS, TODAY) == date(2024, 6, 14)
        assert window_start(LAST_14_DAYS, TODAY) == date(2024, 6, 7)
        assert window_start(MONTH_TO_DATE, TODAY) == date(2024, 6, 1)

    def test_unknown_window(self):
        with pytest.raises(ValueError):
            window_start("last_year", TODAY)


class TestBuildReport:
    def test_last_seven_days(self):
        r = build_report(_entries(), _projects(), LAST_7_DAYS, today=TODAY)
        assert r.entry_count == 3
        assert r.total_hours == pytest.approx(8.0)
        assert [(s.name, s.hours) for s in r.by_project] == [("Pattuglia", 5.0), ("Reception", 3.0)]
        assert r.top_project == "Pattuglia"

    def test_day_series_covers_every_day(self):
        r = build_report(_entries(), _projects(), LAST_7_DAYS, today=TODAY)
        assert len(r.by_day) == 7
        assert r.by_day[0].date == date(2024, 6, 14)
        assert r.by_day[-1].date == TODAY
        assert r.by_day[-1].hours == pytest.approx(2.0)
        assert r.by_day[1].hours == 0.0
        assert r.average_hours_per_day == pytest.approx(8.0 / 7)

    def test_month_to_date_includes_first_of_month(self):
        r = build_report(_entries(), _projects(), MONTH_TO_DATE, today=TODAY)
        assert r.entry_count == 4
        assert len(r.by_day) == 20
        assert r.total_hours == pytest.approx(12.0)

    def test_empty(self):
        r = build_report([], _projects(), LAST_14_DAYS, today=TODAY)
        assert r.by_project == []
        assert r.top_project == "-"
        assert r.total_hours == 0.0
        assert len(r.by_day) == 14


class TestEntrySeconds:
    def test_stored_duration_wins(self):
        e = make_entry("a", datetime(2024, 6, 20, 8), 2)
        e.duration = 60
        assert entry_seconds(e) == 60

    def test_closed_entry_without_duration_uses_timestamps(self):
        e = make_entry("a", datetime(2024, 6, 20, 8), 2)
        e.duration = 0
        assert entry_seconds(e) == 7200
