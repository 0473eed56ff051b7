"""
Runtime configuration for Cronosheet: environment (optionally from .env / config.env), logging, and the
choice of store. The store is picked once here, at construction time.
"""
import logging
import os
import sys
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from database_manager import DatabaseManager
from local_store import DemoStore, JsonFileStorage, LocalStore

APP_NAME = "Cronosheet"
LOCAL_STORAGE_FILE = "local_storage.json"

logger = logging.getLogger(__name__)


def user_data_dir() -> Path:
    """Return a per-user data directory suitable for the platform."""
    if sys.platform.startswith("win"):
        base = os.environ.get("APPDATA") or Path.home() / "AppData" / "Roaming"
        return Path(base) / APP_NAME
    base = os.environ.get("XDG_DATA_HOME") or (Path.home() / ".local" / "share")
    return Path(base) / APP_NAME


def normalize_database_url(url: str | None) -> str | None:
    """Hosted Postgres often hands out postgres://; SQLAlchemy needs postgresql://."""
    if url and url.startswith("postgres://"):
        return url.replace("postgres://", "postgresql://", 1)
    return url or None


@dataclass(frozen=True)
class Settings:
    database_url: str | None = None
    db_path: Path | None = None
    data_dir: Path = Path(".")
    demo: bool = False
    log_level: str = "INFO"

    @property
    def backend_configured(self) -> bool:
        return bool(self.database_url or self.db_path)

    @property
    def local_storage_path(self) -> Path:
        return self.data_dir / LOCAL_STORAGE_FILE


def load_settings(env: dict | None = None) -> Settings:
    """Read settings from env (defaults to os.environ after loading .env and config.env)."""
    if env is None:
        here = Path(__file__).resolve().parent
        for name in (".env", "config.env"):
            load_dotenv(Path.cwd() / name)
            load_dotenv(here / name)
        env = os.environ
    db_path = (env.get("CRONOSHEET_DB_PATH") or "").strip()
    data_dir = (env.get("CRONOSHEET_DATA_DIR") or "").strip()
    return Settings(
        database_url=normalize_database_url((env.get("DATABASE_URL") or "").strip()),
        db_path=Path(db_path).expanduser() if db_path else None,
        data_dir=Path(data_dir).expanduser() if data_dir else user_data_dir(),
        demo=(env.get("CRONOSHEET_DEMO") or "").strip().lower() in ("1", "true", "yes"),
        log_level=(env.get("LOG_LEVEL") or "INFO").strip().upper(),
    )


def setup_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=getattr(logging, settings.log_level, logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def build_login_store(settings: Settings):
    """Store without a current user, used for sign-in and sign-up.
    DatabaseManager when a backend is configured, else the local multi-user store."""
    if settings.backend_configured:
        store = DatabaseManager(db_path=settings.db_path, database_url=settings.database_url)
        store.init_db()
        logger.info("Using %s backend", store.backend_description())
        return store
    logger.info("No backend configured; using local storage at %s", settings.local_storage_path)
    return LocalStore(JsonFileStorage(settings.local_storage_path))


def build_demo_store(settings: Settings) -> DemoStore:
    return DemoStore(JsonFileStorage(settings.local_storage_path))
