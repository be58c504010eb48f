import os
import secrets
from contextvars import ContextVar
from datetime import date, datetime, timedelta, timezone
from pathlib import Path
from typing import Optional

DB_PATH = os.environ.get("MEDTRACKER_DB_PATH", "medtracker.db")
SECRET_KEY_PATH = Path(".app_secret_key")
LOG_LEVEL = os.environ.get("LOG_LEVEL", "INFO").upper()
SESSION_TTL_SECONDS = 60 * 60 * 24 * 14
SESSION_COOKIE_NAME = "tracker_session"
CSRF_COOKIE_NAME = "csrf_token"
TZ_OFFSET_COOKIE_NAME = "tz_offset"

MAX_MED_NAME_LEN = 120
MIN_PASSWORD_LEN = 8

_client_now: ContextVar[Optional[datetime]] = ContextVar("_client_now", default=None)

PUBLIC_PATHS = {"/login", "/signup", "/logout"}

STORAGE_TS_FORMAT = "%Y-%m-%d %H:%M:%S"


def _set_client_clock(tz_offset_cookie: str):
    """Set per-request client-local clock derived from JS timezone offset cookie."""
    offset = None
    try:
        offset = int((tz_offset_cookie or "").strip())
    except ValueError:
        offset = None
    if offset is not None and -840 <= offset <= 840:
        utc_now = datetime.now(timezone.utc).replace(tzinfo=None)
        _client_now.set(utc_now - timedelta(minutes=offset))
        return
    _client_now.set(datetime.now())


def _now_local() -> datetime:
    return _client_now.get() or datetime.now()


def _today_local() -> date:
    return _now_local().date()


def _utc_now_storage() -> str:
    return datetime.now(timezone.utc).strftime(STORAGE_TS_FORMAT)


def _load_secret_key() -> str:
    env_key = os.environ.get("APP_SECRET_KEY", "").strip()
    if env_key:
        return env_key
    if SECRET_KEY_PATH.exists():
        return SECRET_KEY_PATH.read_text(encoding="utf-8").strip()
    key = secrets.token_hex(32)
    SECRET_KEY_PATH.write_text(key, encoding="utf-8")
    return key


SECRET_KEY = _load_secret_key()
