from pathlib import Path
import os

BASE_DIR = Path(__file__).resolve().parent
INSTANCE_DIR = BASE_DIR / "instance"
INSTANCE_DIR.mkdir(exist_ok=True)  # ensure instance exists
DB_FILE = INSTANCE_DIR / "petcare.db"


def _get_database_uri() -> str:
    url = os.environ.get("DATABASE_URL")
    if url:
        return url
    return f"sqlite:///{DB_FILE.as_posix()}"


def _env_int(name: str, default: int) -> int:
    raw = os.environ.get(name)
    if not raw:
        return default
    return int(raw)


class Config:
    SQLALCHEMY_DATABASE_URI = _get_database_uri()
    SQLALCHEMY_TRACK_MODIFICATIONS = False
    LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO")

    # recurring series never grow past this many records (anchor included)
    EVENTS_MAX_OCCURRENCES = _env_int("EVENTS_MAX_OCCURRENCES", 365)
    # the reminder job must run at least this often
    REMINDER_WINDOW_HOURS = _env_int("REMINDER_WINDOW_HOURS", 1)
    DEFAULT_REMINDER_LEAD_HOURS = _env_int("DEFAULT_REMINDER_LEAD_HOURS", 24)
