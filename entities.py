"""
Domain entities for Cronosheet: clients (projects) with shift presets, time entries with expenses,
and user profiles. Both stores and every view work on these dataclasses.
The to_json/from_json pairs use the camelCase document shape kept in local key-value storage.
"""
from dataclasses import dataclass, field
from datetime import datetime, timedelta

ROLE_ADMIN = "admin"
ROLE_USER = "user"
ROLES = (ROLE_ADMIN, ROLE_USER)

STATUS_TRIAL = "trial"
STATUS_ACTIVE = "active"
STATUS_PRO = "pro"
STATUS_ELITE = "elite"
STATUS_EXPIRED = "expired"
SUBSCRIPTION_STATUSES = (STATUS_TRIAL, STATUS_ACTIVE, STATUS_PRO, STATUS_ELITE, STATUS_EXPIRED)

TRIAL_DAYS = 60
# Trial end dates before this instant (epoch ms, early 1973) come from a bad column default.
TRIAL_END_SANITY_MS = 100_000_000_000


@dataclass
class Expense:
    id: str
    description: str = ""
    amount: float = 0.0

    def to_json(self) -> dict:
        return {"id": self.id, "description": self.description, "amount": self.amount}

    @classmethod
    def from_json(cls, data: dict) -> "Expense":
        return cls(
            id=str(data.get("id") or ""),
            description=data.get("description") or "",
            amount=float(data.get("amount") or 0.0),
        )


@dataclass
class Shift:
    """Named start/end preset (HH:MM) used to prefill the entry form."""

    id: str
    name: str
    start_time: str
    end_time: str

    def to_json(self) -> dict:
        return {"id": self.id, "name": self.name, "startTime": self.start_time, "endTime": self.end_time}

    @classmethod
    def from_json(cls, data: dict) -> "Shift":
        return cls(
            id=str(data.get("id") or ""),
            name=data.get("name") or "",
            start_time=data.get("startTime") or "",
            end_time=data.get("endTime") or "",
        )


@dataclass
class Project:
    """A billable client or site ("postazione")."""

    id: str
    name: str
    color: str = "#6366f1"
    default_hourly_rate: float = 0.0
    shifts: list[Shift] = field(default_factory=list)
    user_id: str | None = None

    def to_json(self) -> dict:
        data = {
            "id": self.id,
            "name": self.name,
            "color": self.color,
            "defaultHourlyRate": self.default_hourly_rate,
            "shifts": [s.to_json() for s in self.shifts],
        }
        if self.user_id is not None:
            data["user_id"] = self.user_id
        return data

    @classmethod
    def from_json(cls, data: dict) -> "Project":
        return cls(
            id=str(data.get("id") or ""),
            name=data.get("name") or "",
            color=data.get("color") or "#6366f1",
            default_hourly_rate=float(data.get("defaultHourlyRate") or 0.0),
            shifts=[Shift.from_json(s) for s in (data.get("shifts") or [])],
            user_id=data.get("user_id"),
        )


@dataclass
class TimeEntry:
    """A logged shift. start_time/end_time are epoch milliseconds; duration is seconds and authoritative."""

    id: str
    project_id: str
    start_time: int
    end_time: int | None = None
    duration: float = 0.0
    description: str = ""
    hourly_rate: float | None = None
    expenses: list[Expense] = field(default_factory=list)
    is_night_shift: bool = False
    user_id: str | None = None

    @property
    def started_at(self) -> datetime:
        """Start as a local naive datetime."""
        return datetime.fromtimestamp(self.start_time / 1000)

    @property
    def ended_at(self) -> datetime | None:
        if self.end_time is None:
            return None
        return datetime.fromtimestamp(self.end_time / 1000)

    @property
    def is_running(self) -> bool:
        return self.end_time is None

    @property
    def date_key(self) -> str:
        return self.started_at.strftime("%Y-%m-%d")

    @property
    def month_key(self) -> str:
        return self.started_at.strftime("%Y-%m")

    @property
    def year_key(self) -> str:
        return self.started_at.strftime("%Y")

    @property
    def expenses_total(self) -> float:
        return sum(e.amount for e in self.expenses)

    def to_json(self) -> dict:
        data = {
            "id": self.id,
            "description": self.description,
            "projectId": self.project_id,
            "startTime": self.start_time,
            "endTime": self.end_time,
            "duration": self.duration,
            "hourlyRate": self.hourly_rate,
            "expenses": [e.to_json() for e in self.expenses],
            "isNightShift": self.is_night_shift,
        }
        if self.user_id is not None:
            data["user_id"] = self.user_id
        return data

    @classmethod
    def from_json(cls, data: dict) -> "TimeEntry":
        end_time = data.get("endTime")
        rate = data.get("hourlyRate")
        return cls(
            id=str(data.get("id") or ""),
            description=data.get("description") or "",
            project_id=str(data.get("projectId") or ""),
            start_time=int(data.get("startTime") or 0),
            end_time=int(end_time) if end_time is not None else None,
            duration=float(data.get("duration") or 0.0),
            hourly_rate=float(rate) if rate is not None else None,
            expenses=[Expense.from_json(e) for e in (data.get("expenses") or [])],
            is_night_shift=bool(data.get("isNightShift", False)),
            user_id=data.get("user_id"),
        )


@dataclass
class UserProfile:
    id: str
    email: str
    role: str = ROLE_USER
    subscription_status: str = STATUS_TRIAL
    trial_ends_at: datetime | None = None
    is_approved: bool = False
    full_name: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    def effective_trial_end(self, now: datetime | None = None) -> datetime:
        """Trial end for display; a missing or implausibly old value is masked with now + TRIAL_DAYS."""
        now = now or datetime.now()
        if self.trial_ends_at is None or self.trial_ends_at.timestamp() * 1000 < TRIAL_END_SANITY_MS:
            return now + timedelta(days=TRIAL_DAYS)
        return self.trial_ends_at

    def trial_days_left(self, now: datetime | None = None) -> int:
        now = now or datetime.now()
        remaining = self.effective_trial_end(now) - now
        days = remaining.days + (1 if remaining.seconds or remaining.microseconds else 0)
        return max(0, days)

    def to_json(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "full_name": self.full_name,
            "role": self.role,
            "subscription_status": self.subscription_status,
            "trial_ends_at": self.trial_ends_at.isoformat() if self.trial_ends_at else None,
            "is_approved": self.is_approved,
        }

    @classmethod
    def from_json(cls, data: dict) -> "UserProfile":
        trial = data.get("trial_ends_at")
        return cls(
            id=str(data.get("id") or ""),
            email=data.get("email") or "",
            full_name=data.get("full_name"),
            role=data.get("role") or ROLE_USER,
            subscription_status=data.get("subscription_status") or STATUS_TRIAL,
            trial_ends_at=datetime.fromisoformat(trial) if trial else None,
            is_approved=bool(data.get("is_approved", False)),
        )


@dataclass
class DayGroup:
    """Entries of one calendar day (derived, never stored)."""

    date: str
    entries: list[TimeEntry] = field(default_factory=list)
    total_duration: float = 0.0
