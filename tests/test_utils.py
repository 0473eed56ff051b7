"""
Pytest suite for utils.py: duration and currency formatting, earnings, day grouping, shift times.
"""
from datetime import date, datetime

import pytest

from entities import Expense, TimeEntry
from utils import (
    build_entry_times,
    calculate_earnings,
    elapsed_seconds,
    format_currency,
    format_date,
    format_duration,
    format_duration_human,
    group_entries_by_day,
    is_night_shift,
    parse_date,
    parse_time,
    to_epoch_ms,
)

from conftest import make_entry


class TestFormatDuration:
    def test_hours_minutes_seconds(self):
        assert format_duration(3661) == "01:01:01"

    def test_no_wraparound_past_24h(self):
        assert format_duration(90061) == "25:01:01"

    def test_negative_and_nan_clamp_to_zero(self):
        assert format_duration(-5) == "00:00:00"
        assert format_duration(float("nan")) == "00:00:00"

    def test_human_under_an_hour(self):
        assert format_duration_human(59) == "0m"
        assert format_duration_human(1500) == "25m"

    def test_human_with_hours(self):
        assert format_duration_human(3600) == "1h 0m"
        assert format_duration_human(5400) == "1h 30m"


class TestFormatCurrency:
    def test_decimal_comma_and_symbol(self):
        assert format_currency(40) == "40,00 €"
        assert format_currency(1234.5) == "1234,50 €"

    def test_grouping_from_ten_thousand(self):
        assert format_currency(12345) == "12.345,00 €"

    def test_grouping_after_rounding_up(self):
        assert format_currency(9999.999) == "10.000,00 €"

    def test_negative(self):
        assert format_currency(-7.5) == "-7,50 €"


class TestCalculateEarnings:
    def test_rate_times_hours(self):
        """rate 10, one hour, no expenses -> 10."""
        e = TimeEntry(id="e", project_id="p", start_time=0, end_time=3_600_000, duration=3600, hourly_rate=10)
        assert calculate_earnings(e) == pytest.approx(10.0)

    def test_expenses_only(self):
        """rate 0 with expenses 5 + 2.5 -> 7.5."""
        e = TimeEntry(
            id="e",
            project_id="p",
            start_time=0,
            duration=3600,
            hourly_rate=0,
            expenses=[Expense(id="x1", amount=5), Expense(id="x2", amount=2.5)],
        )
        assert calculate_earnings(e) == pytest.approx(7.5)

    def test_missing_rate_contributes_nothing(self):
        e = TimeEntry(id="e", project_id="p", start_time=0, duration=7200, hourly_rate=None)
        assert calculate_earnings(e) == 0.0

    def test_no_rounding_before_sum(self):
        e = TimeEntry(id="e", project_id="p", start_time=0, duration=100, hourly_rate=10)
        assert calculate_earnings(e) == pytest.approx(100 / 3600 * 10)


class TestGroupEntriesByDay:
    def test_groups_newest_day_first_with_timestamp_totals(self):
        entries = [
            make_entry("p", datetime(2024, 3, 1, 9, 0), 1.0, entry_id="a"),
            make_entry("p", datetime(2024, 3, 1, 14, 0), 0.5, entry_id="b"),
            make_entry("p", datetime(2024, 3, 2, 8, 0), 2.0, entry_id="c"),
        ]
        groups = group_entries_by_day(entries)
        assert [g.date for g in groups] == ["2024-03-02", "2024-03-01"]
        assert [g.total_duration for g in groups] == [7200, 5400]

    def test_within_day_newest_first(self):
        entries = [
            make_entry("p", datetime(2024, 3, 1, 9, 0), 1.0, entry_id="early"),
            make_entry("p", datetime(2024, 3, 1, 14, 0), 1.0, entry_id="late"),
        ]
        (group,) = group_entries_by_day(entries)
        assert [e.id for e in group.entries] == ["late", "early"]

    def test_total_ignores_stored_duration(self):
        e = make_entry("p", datetime(2024, 3, 1, 9, 0), 1.0)
        e.duration = 60
        (group,) = group_entries_by_day([e])
        assert group.total_duration == 3600

    def test_running_entry_counts_up_to_now(self):
        start = to_epoch_ms(datetime(2024, 3, 1, 9, 0))
        running = TimeEntry(id="r", project_id="p", start_time=start)
        (group,) = group_entries_by_day([running], now=start + 600_000)
        assert group.total_duration == 600

    def test_midnight_belongs_to_that_day(self):
        e = make_entry("p", datetime(2024, 3, 2, 0, 0), 1.0)
        (group,) = group_entries_by_day([e])
        assert group.date == "2024-03-02"

    def test_empty_input(self):
        assert group_entries_by_day([]) == []


class TestShiftTimes:
    def test_same_day_shift(self):
        start, end, duration = build_entry_times(date(2024, 6, 10), "08:00", "16:00")
        assert start == to_epoch_ms(datetime(2024, 6, 10, 8, 0))
        assert duration == 8 * 3600
        assert end - start == 8 * 3600 * 1000

    def test_overnight_shift_ends_next_day(self):
        start, end, _ = build_entry_times(date(2024, 6, 10), "22:00", "06:00")
        assert end == to_epoch_ms(datetime(2024, 6, 11, 6, 0))

    def test_bad_format_raises(self):
        with pytest.raises(ValueError):
            build_entry_times(date(2024, 6, 10), "8am", "16:00")

    def test_elapsed_from_timestamps(self):
        e = make_entry("p", datetime(2024, 6, 10, 8, 0), 2.0)
        assert elapsed_seconds(e) == 7200


class TestNightShift:
    @pytest.mark.parametrize(
        "start,end,expected",
        [
            ("22:00", "06:00", True),
            ("20:00", "23:00", True),
            ("03:00", "09:00", True),
            ("16:00", "07:00", True),
            ("08:00", "16:00", False),
            ("15:00", "19:00", False),
        ],
    )
    def test_heuristic(self, start, end, expected):
        assert is_night_shift(start, end) is expected

    def test_invalid_times_are_not_night(self):
        assert is_night_shift("", "06:00") is False


class TestParsing:
    def test_parse_time(self):
        assert parse_time("07:30").hour == 7
        assert parse_time("25:00") is None
        assert parse_time("") is None

    def test_parse_date(self):
        assert parse_date("2024-06-10") == date(2024, 6, 10)
        assert parse_date("10/06/2024") is None

    def test_format_date_italian(self):
        # 2024-06-10 was a Monday
        assert format_date(to_epoch_ms(datetime(2024, 6, 10, 12, 0))) == "lun 10 giu"
