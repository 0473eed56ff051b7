"""
Reports dashboard data: hours per client (share) and hours per day (trend) over a fixed lookback window.
Everything is recomputed from the full entry list on each call.
"""
from dataclasses import dataclass, field
from datetime import date, timedelta

from entities import Project, TimeEntry
from utils import MONTH_ABBR, WEEKDAY_ABBR

LAST_7_DAYS = "last_7_days"
LAST_14_DAYS = "last_14_days"
MONTH_TO_DATE = "month_to_date"
WINDOWS = (LAST_7_DAYS, LAST_14_DAYS, MONTH_TO_DATE)

WINDOW_LABELS = {
    LAST_7_DAYS: "Ultimi 7 giorni",
    LAST_14_DAYS: "Ultimi 14 giorni",
    MONTH_TO_DATE: "Mese corrente",
}


@dataclass
class ProjectShare:
    project_id: str
    name: str
    color: str
    hours: float


@dataclass
class DayPoint:
    date: date
    label: str
    hours: float


@dataclass
class Report:
    window: str
    start: date
    end: date
    by_project: list[ProjectShare] = field(default_factory=list)
    by_day: list[DayPoint] = field(default_factory=list)
    total_hours: float = 0.0
    top_project: str = "-"
    average_hours_per_day: float = 0.0
    entry_count: int = 0


def window_start(window: str, today: date) -> date:
    """First day (inclusive) of the lookback window ending today."""
    if window == LAST_7_DAYS:
        return today - timedelta(days=6)
    if window == LAST_14_DAYS:
        return today - timedelta(days=13)
    if window == MONTH_TO_DATE:
        return today.replace(day=1)
    raise ValueError(f"Unknown report window: {window}")


def entry_seconds(entry: TimeEntry) -> float:
    """Stored duration; closed entries with no duration fall back to their timestamps."""
    if entry.duration:
        return entry.duration
    if entry.end_time is not None:
        return (entry.end_time - entry.start_time) / 1000
    return 0.0


def _day_label(d: date) -> str:
    return f"{WEEKDAY_ABBR[d.weekday()]} {d.day} {MONTH_ABBR[d.month - 1]}"


def build_report(entries: list[TimeEntry], projects: list[Project], window: str, today: date | None = None) -> Report:
    today = today or date.today()
    start = window_start(window, today)
    in_window = [e for e in entries if start <= e.started_at.date() <= today]

    seconds_by_project: dict[str, float] = {}
    seconds_by_day: dict[date, float] = {}
    for entry in in_window:
        sec = entry_seconds(entry)
        seconds_by_project[entry.project_id] = seconds_by_project.get(entry.project_id, 0.0) + sec
        day = entry.started_at.date()
        seconds_by_day[day] = seconds_by_day.get(day, 0.0) + sec

    by_project = [
        ProjectShare(p.id, p.name, p.color, seconds_by_project.get(p.id, 0.0) / 3600)
        for p in projects
        if seconds_by_project.get(p.id, 0.0) > 0
    ]
    by_project.sort(key=lambda s: s.hours, reverse=True)

    by_day = []
    day = start
    while day <= today:
        by_day.append(DayPoint(day, _day_label(day), seconds_by_day.get(day, 0.0) / 3600))
        day += timedelta(days=1)

    total_hours = sum(seconds_by_day.values()) / 3600
    return Report(
        window=window,
        start=start,
        end=today,
        by_project=by_project,
        by_day=by_day,
        total_hours=total_hours,
        top_project=by_project[0].name if by_project else "-",
        average_hours_per_day=total_hours / len(by_day) if by_day else 0.0,
        entry_count=len(in_window),
    )
