"""
Formatting and calculation helpers shared by the timesheet, billing and reports views.
All functions are pure; times are epoch milliseconds, durations are seconds.
"""
import math
import time as _time
import uuid
from datetime import date, datetime, time, timedelta

from entities import DayGroup, TimeEntry

TIME_FMT = "%H:%M"
DATE_FMT = "%Y-%m-%d"

COLORS = [
    "#6366f1",  # indigo
    "#ec4899",  # pink
    "#10b981",  # emerald
    "#f59e0b",  # amber
    "#3b82f6",  # blue
    "#8b5cf6",  # violet
    "#ef4444",  # red
    "#14b8a6",  # teal
]

MONTH_NAMES = [
    "gennaio", "febbraio", "marzo", "aprile", "maggio", "giugno",
    "luglio", "agosto", "settembre", "ottobre", "novembre", "dicembre",
]
MONTH_ABBR = ["gen", "feb", "mar", "apr", "mag", "giu", "lug", "ago", "set", "ott", "nov", "dic"]
WEEKDAY_ABBR = ["lun", "mar", "mer", "gio", "ven", "sab", "dom"]

# Night-shift heuristic: start at/after 20:00 or at/before 04:00, or end at/before 07:00.
NIGHT_START_HOUR = 20
EARLY_START_HOUR = 4
EARLY_END_HOUR = 7


def generate_id() -> str:
    return str(uuid.uuid4())


def now_ms() -> int:
    return int(_time.time() * 1000)


def to_epoch_ms(dt: datetime) -> int:
    """Local naive (or aware) datetime to epoch milliseconds."""
    return int(dt.timestamp() * 1000)


def from_epoch_ms(ms: int) -> datetime:
    return datetime.fromtimestamp(ms / 1000)


def _clamp_seconds(seconds: float) -> int:
    if seconds is None or math.isnan(seconds) or seconds < 0:
        return 0
    return int(seconds)


def format_duration(seconds: float) -> str:
    """Format seconds as HH:MM:SS; hours keep growing past 24."""
    s = _clamp_seconds(seconds)
    h = s // 3600
    m = (s % 3600) // 60
    return f"{h:02d}:{m:02d}:{s % 60:02d}"


def format_duration_human(seconds: float) -> str:
    """'{h}h {m}m', or '{m}m' under an hour."""
    s = _clamp_seconds(seconds)
    h = s // 3600
    m = (s % 3600) // 60
    if h > 0:
        return f"{h}h {m}m"
    return f"{m}m"


def format_currency(amount: float) -> str:
    """Format amount as EUR in Italian style: '1234,50 €', '12.345,00 €'."""
    negative = amount < 0
    value = round(abs(amount), 2)
    text = f"{value:,.2f}" if value >= 10000 else f"{value:.2f}"
    text = text.replace(",", "_").replace(".", ",").replace("_", ".")
    return f"{'-' if negative else ''}{text} €"


def format_date(ms: int) -> str:
    """Short day label, e.g. 'lun 10 giu'."""
    d = from_epoch_ms(ms)
    return f"{WEEKDAY_ABBR[d.weekday()]} {d.day} {MONTH_ABBR[d.month - 1]}"


def format_time(ms: int | None) -> str:
    if ms is None:
        return ""
    return from_epoch_ms(ms).strftime(TIME_FMT)


def parse_time(s: str) -> time | None:
    """Parse HH:MM or H:MM; return time or None."""
    s = (s or "").strip()
    if not s:
        return None
    try:
        return datetime.strptime(s, TIME_FMT).time()
    except ValueError:
        return None


def parse_date(s: str) -> date | None:
    """Parse YYYY-MM-DD; return date or None."""
    s = (s or "").strip()
    if not s:
        return None
    try:
        return datetime.strptime(s, DATE_FMT).date()
    except ValueError:
        return None


def calculate_earnings(entry: TimeEntry) -> float:
    """Hours times the entry's own rate, plus all expenses. No rounding."""
    total = 0.0
    if entry.hourly_rate and entry.duration:
        total += (entry.duration / 3600) * entry.hourly_rate
    if entry.expenses:
        total += sum(e.amount for e in entry.expenses)
    return total


def elapsed_seconds(entry: TimeEntry, now: int | None = None) -> float:
    """Seconds from timestamps: end - start, or now - start while the entry is open."""
    if entry.end_time is not None:
        return (entry.end_time - entry.start_time) / 1000
    if now is None:
        now = now_ms()
    return (now - entry.start_time) / 1000


def group_entries_by_day(entries: list[TimeEntry], now: int | None = None) -> list[DayGroup]:
    """Group entries by local start date, newest day first.
    Within a day entries keep the newest-first order; the day total is recomputed from timestamps."""
    if now is None:
        now = now_ms()
    groups: dict[str, DayGroup] = {}
    for entry in sorted(entries, key=lambda e: e.start_time, reverse=True):
        key = entry.date_key
        group = groups.get(key)
        if group is None:
            group = groups[key] = DayGroup(date=key)
        group.entries.append(entry)
        group.total_duration += elapsed_seconds(entry, now)
    return sorted(groups.values(), key=lambda g: g.date, reverse=True)


def is_night_shift(start_hm: str, end_hm: str) -> bool:
    """Heuristic used when a shift preset is applied."""
    start = parse_time(start_hm)
    end = parse_time(end_hm)
    if start is None or end is None:
        return False
    return start.hour >= NIGHT_START_HOUR or start.hour <= EARLY_START_HOUR or end.hour <= EARLY_END_HOUR


def build_entry_times(day: date, start_hm: str, end_hm: str) -> tuple[int, int, float]:
    """Return (start_ms, end_ms, duration_seconds) for a shift on day.
    An end earlier than the start is taken as the next day."""
    start_t = parse_time(start_hm)
    end_t = parse_time(end_hm)
    if start_t is None or end_t is None:
        raise ValueError("Use format HH:MM for start and end.")
    start_ms = to_epoch_ms(datetime.combine(day, start_t))
    end_ms = to_epoch_ms(datetime.combine(day, end_t))
    if end_ms < start_ms:
        end_ms += int(timedelta(hours=24).total_seconds() * 1000)
    return start_ms, end_ms, (end_ms - start_ms) / 1000
