"""
Local (demo / offline) store for Cronosheet over an injected key-value storage.
Collections are JSON arrays under fixed keys, like browser localStorage. There is no server-side policy
here, so every read filters by an explicit user_id.
"""
import json
import logging
import os
from datetime import datetime, timedelta
from pathlib import Path

import bcrypt

from entities import (
    ROLE_ADMIN,
    ROLES,
    STATUS_PRO,
    STATUS_TRIAL,
    SUBSCRIPTION_STATUSES,
    TRIAL_DAYS,
    Project,
    Shift,
    TimeEntry,
    UserProfile,
)
from utils import COLORS, generate_id

logger = logging.getLogger(__name__)

DEFAULT_ADMIN_ID = "admin-1"
DEFAULT_ADMIN_EMAIL = "admin@cronosheet.com"
DEFAULT_ADMIN_PASSWORD = "admin123"

DEMO_USER_ID = "demo-user"
DEMO_USER_EMAIL = "demo@cronosheet.local"


def _demo_projects(user_id: str) -> list[Project]:
    """Two sample sites with shift presets, fresh ids per user."""
    return [
        Project(
            id=generate_id(),
            name="Reception Ingresso",
            color=COLORS[0],
            default_hourly_rate=10.0,
            shifts=[
                Shift(id=generate_id(), name="Mattina", start_time="07:00", end_time="15:00"),
                Shift(id=generate_id(), name="Pomeriggio", start_time="15:00", end_time="23:00"),
            ],
            user_id=user_id,
        ),
        Project(
            id=generate_id(),
            name="Pattuglia Esterna",
            color=COLORS[4],
            default_hourly_rate=12.5,
            shifts=[Shift(id=generate_id(), name="Notte", start_time="22:00", end_time="06:00")],
            user_id=user_id,
        ),
    ]


class MemoryStorage:
    """Key-value storage held in a dict (tests, throwaway sessions)."""

    def __init__(self) -> None:
        self._data: dict[str, str] = {}

    def get_item(self, key: str) -> str | None:
        return self._data.get(key)

    def set_item(self, key: str, value: str) -> None:
        self._data[key] = value

    def remove_item(self, key: str) -> None:
        self._data.pop(key, None)


class JsonFileStorage:
    """Key-value storage persisted as one JSON object in a file. No locking, last write wins."""

    def __init__(self, path: Path | str) -> None:
        self._path = Path(path)

    @property
    def path(self) -> Path:
        return self._path

    def _load(self) -> dict[str, str]:
        if not self._path.exists():
            return {}
        try:
            data = json.loads(self._path.read_text(encoding="utf-8"))
        except (OSError, ValueError):
            logger.exception("Could not read local storage file %s", self._path)
            return {}
        return data if isinstance(data, dict) else {}

    def _dump(self, data: dict[str, str]) -> None:
        self._path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self._path.with_suffix(self._path.suffix + ".tmp")
        tmp.write_text(json.dumps(data), encoding="utf-8")
        os.replace(tmp, self._path)

    def get_item(self, key: str) -> str | None:
        return self._load().get(key)

    def set_item(self, key: str, value: str) -> None:
        data = self._load()
        data[key] = value
        self._dump(data)

    def remove_item(self, key: str) -> None:
        data = self._load()
        if data.pop(key, None) is not None:
            self._dump(data)


class LocalStore:
    """Mock multi-user directory: credentials, profiles, projects and entries in key-value storage.
    Same operations as DatabaseManager. New profiles wait for an admin to approve them."""

    approve_new_profiles = False

    def __init__(self, storage, current_user_id: str | None = None, key_prefix: str = "cronosheet_mock") -> None:
        self._storage = storage
        self._current_user_id = current_user_id
        self._keys = {
            "credentials": f"{key_prefix}_credentials",
            "users": f"{key_prefix}_users",
            "projects": f"{key_prefix}_projects",
            "entries": f"{key_prefix}_entries",
            "seeded": f"{key_prefix}_seeded",
        }
        self._key_prefix = key_prefix

    @property
    def current_user_id(self) -> str | None:
        return self._current_user_id

    def for_user(self, user_id: str | None) -> "LocalStore":
        """Same storage and keys, bound to another user."""
        return LocalStore(self._storage, current_user_id=user_id, key_prefix=self._key_prefix)

    def backend_description(self) -> str:
        return "Local storage (demo)"

    def _require_user(self) -> None:
        if self._current_user_id is None:
            raise ValueError("Current user is not set.")

    # --- Raw collections ---

    def _read(self, name: str) -> list[dict]:
        raw = self._storage.get_item(self._keys[name])
        if not raw:
            return []
        try:
            data = json.loads(raw)
        except ValueError:
            logger.exception("Corrupt local collection %s; treating as empty", self._keys[name])
            return []
        return data if isinstance(data, list) else []

    def _write(self, name: str, items: list) -> bool:
        try:
            self._storage.set_item(self._keys[name], json.dumps(items))
        except (OSError, TypeError, ValueError):
            logger.exception("Error writing local collection %s", self._keys[name])
            return False
        return True

    def _users(self) -> list[dict]:
        """Profiles, seeding the default admin on first use."""
        users = self._read("users")
        if not users and self._storage.get_item(self._keys["users"]) is None:
            admin = UserProfile(
                id=DEFAULT_ADMIN_ID,
                email=DEFAULT_ADMIN_EMAIL,
                role=ROLE_ADMIN,
                subscription_status=STATUS_PRO,
                trial_ends_at=datetime.now() + timedelta(days=365),
                is_approved=True,
            )
            pw_hash = bcrypt.hashpw(DEFAULT_ADMIN_PASSWORD.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")
            credentials = self._read("credentials")
            credentials.append({"id": DEFAULT_ADMIN_ID, "email": DEFAULT_ADMIN_EMAIL, "password_hash": pw_hash})
            self._write("credentials", credentials)
            users = [admin.to_json()]
            self._write("users", users)
        return users

    def _is_admin(self) -> bool:
        if self._current_user_id is None:
            return False
        return any(u.get("id") == self._current_user_id and u.get("role") == ROLE_ADMIN for u in self._users())

    def current_user_is_admin(self) -> bool:
        return self._is_admin()

    # --- Auth hooks ---

    def get_login_credentials(self, email: str) -> tuple[str, str] | None:
        self._users()
        wanted = (email or "").strip().lower()
        for c in self._read("credentials"):
            if (c.get("email") or "").lower() == wanted:
                return (c["id"], c["password_hash"])
        return None

    def create_auth_user(self, email: str, password_hash: str) -> str:
        email = (email or "").strip()
        if self.get_login_credentials(email) is not None:
            raise ValueError("Email already registered.")
        user_id = generate_id()
        credentials = self._read("credentials")
        credentials.append({"id": user_id, "email": email, "password_hash": password_hash})
        if not self._write("credentials", credentials):
            raise ValueError("Could not save the new account.")
        return user_id

    # --- Profiles ---

    def get_profile(self, user_id: str) -> UserProfile | None:
        self._require_user()
        if user_id != self._current_user_id and not self._is_admin():
            return None
        for u in self._users():
            if u.get("id") == user_id:
                return UserProfile.from_json(u)
        return None

    def create_profile(self, user_id: str, email: str) -> UserProfile | None:
        """Return the existing profile, or create a trial profile (pre-approved only in demo mode)."""
        self._require_user()
        if user_id != self._current_user_id:
            logger.warning("Refusing to create profile %s for user %s", user_id, self._current_user_id)
            return None
        existing = self.get_profile(user_id)
        if existing:
            return existing
        profile = UserProfile(
            id=user_id,
            email=email,
            subscription_status=STATUS_TRIAL,
            trial_ends_at=datetime.now() + timedelta(days=TRIAL_DAYS),
            is_approved=self.approve_new_profiles,
        )
        users = self._users()
        users.append(profile.to_json())
        return profile if self._write("users", users) else None

    def update_own_profile(self, *, full_name: str | None = None) -> UserProfile | None:
        self._require_user()
        users = self._users()
        for u in users:
            if u.get("id") == self._current_user_id:
                if full_name is not None:
                    u["full_name"] = full_name.strip() or None
                return UserProfile.from_json(u) if self._write("users", users) else None
        return None

    def get_all_profiles(self) -> list[UserProfile]:
        self._require_user()
        if not self._is_admin():
            logger.warning("Non-admin %s asked for all profiles", self._current_user_id)
            return []
        return [UserProfile.from_json(u) for u in reversed(self._users())]

    def update_profile_admin(
        self,
        profile_id: str,
        *,
        is_approved: bool | None = None,
        subscription_status: str | None = None,
        role: str | None = None,
    ) -> None:
        self._require_user()
        if subscription_status is not None and subscription_status not in SUBSCRIPTION_STATUSES:
            raise ValueError(f"Unknown subscription status: {subscription_status}")
        if role is not None and role not in ROLES:
            raise ValueError(f"Unknown role: {role}")
        if not self._is_admin():
            raise ValueError("Only admin can update other users.")
        users = self._users()
        for u in users:
            if u.get("id") == profile_id:
                if is_approved is not None:
                    u["is_approved"] = is_approved
                if subscription_status is not None:
                    u["subscription_status"] = subscription_status
                if role is not None:
                    u["role"] = role
                if not self._write("users", users):
                    raise ValueError("Could not save the user.")
                return
        raise ValueError("User not found.")

    def delete_profile_admin(self, profile_id: str) -> None:
        """Remove the user, their credentials, projects and entries."""
        self._require_user()
        if profile_id == self._current_user_id:
            raise ValueError("You cannot delete your own profile.")
        if not self._is_admin():
            raise ValueError("Only admin can delete users.")
        users = self._users()
        if not any(u.get("id") == profile_id for u in users):
            raise ValueError("User not found.")
        self._write("users", [u for u in users if u.get("id") != profile_id])
        self._write("credentials", [c for c in self._read("credentials") if c.get("id") != profile_id])
        self._write("projects", [p for p in self._read("projects") if p.get("user_id") != profile_id])
        self._write("entries", [e for e in self._read("entries") if e.get("user_id") != profile_id])

    # --- Projects ---

    def get_projects(self) -> list[Project]:
        """The caller's projects; a user's first read seeds two demo projects."""
        self._require_user()
        all_projects = self._read("projects")
        mine = [Project.from_json(p) for p in all_projects if p.get("user_id") == self._current_user_id]
        seeded = self._read("seeded")
        if not mine and self._current_user_id not in seeded:
            mine = _demo_projects(self._current_user_id)
            all_projects.extend(p.to_json() for p in mine)
            seeded.append(self._current_user_id)
            if self._write("projects", all_projects):
                self._write("seeded", seeded)
        return mine

    def save_project(self, project: Project) -> Project | None:
        self._require_user()
        all_projects = self._read("projects")
        saved = Project.from_json({**project.to_json(), "id": project.id or generate_id(), "user_id": self._current_user_id})
        for i, p in enumerate(all_projects):
            if p.get("id") == saved.id:
                if p.get("user_id") != self._current_user_id:
                    logger.warning("Project %s belongs to another user", saved.id)
                    return None
                all_projects[i] = saved.to_json()
                break
        else:
            all_projects.append(saved.to_json())
        return saved if self._write("projects", all_projects) else None

    def delete_project(self, project_id: str) -> None:
        """Delete one of the caller's projects together with its entries."""
        self._require_user()
        all_projects = self._read("projects")
        remaining = [
            p for p in all_projects
            if not (p.get("id") == project_id and p.get("user_id") == self._current_user_id)
        ]
        if len(remaining) == len(all_projects):
            logger.warning("Project %s not found for deletion", project_id)
            return
        if self._write("projects", remaining):
            self._write(
                "entries",
                [
                    e for e in self._read("entries")
                    if not (e.get("projectId") == project_id and e.get("user_id") == self._current_user_id)
                ],
            )

    # --- Time entries ---

    def get_entries(self) -> list[TimeEntry]:
        self._require_user()
        mine = [TimeEntry.from_json(e) for e in self._read("entries") if e.get("user_id") == self._current_user_id]
        mine.sort(key=lambda e: e.start_time, reverse=True)
        return mine

    def save_entry(self, entry: TimeEntry) -> TimeEntry | None:
        self._require_user()
        owns_project = any(
            p.get("id") == entry.project_id and p.get("user_id") == self._current_user_id
            for p in self._read("projects")
        )
        if not owns_project:
            logger.warning("Project %s not found for entry %s", entry.project_id, entry.id)
            return None
        all_entries = self._read("entries")
        saved = TimeEntry.from_json({**entry.to_json(), "id": entry.id or generate_id(), "user_id": self._current_user_id})
        for i, e in enumerate(all_entries):
            if e.get("id") == saved.id:
                if e.get("user_id") != self._current_user_id:
                    logger.warning("Time entry %s belongs to another user", saved.id)
                    return None
                all_entries[i] = saved.to_json()
                break
        else:
            all_entries.insert(0, saved.to_json())
        return saved if self._write("entries", all_entries) else None

    def delete_entry(self, entry_id: str) -> None:
        self._require_user()
        all_entries = self._read("entries")
        remaining = [
            e for e in all_entries
            if not (e.get("id") == entry_id and e.get("user_id") == self._current_user_id)
        ]
        if len(remaining) == len(all_entries):
            logger.warning("Time entry %s not found for deletion", entry_id)
            return
        self._write("entries", remaining)


class DemoStore(LocalStore):
    """Single demo user over its own keys; no sign-in needed."""

    approve_new_profiles = True

    def __init__(self, storage) -> None:
        super().__init__(storage, current_user_id=DEMO_USER_ID, key_prefix="cronosheet")

    def for_user(self, user_id: str | None) -> "DemoStore":
        return self

    def backend_description(self) -> str:
        return "Demo (single user, local storage)"

    def demo_profile(self) -> UserProfile | None:
        return self.create_profile(DEMO_USER_ID, DEMO_USER_EMAIL)
