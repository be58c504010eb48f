"""Attendance store: medications and per-day medication logs for one user.

Every query is scoped by ``user_id``; a store instance never reads or writes
another user's rows. All SQLite failures surface as ``StoreError``.
"""
import logging
import sqlite3
import uuid
from contextlib import contextmanager
from datetime import date
from typing import Optional

from config import MAX_MED_NAME_LEN, _utc_now_storage
from db import get_db
from week import to_iso_date

logger = logging.getLogger(__name__)


class TrackerError(Exception):
    pass


class ValidationError(TrackerError, ValueError):
    pass


class StoreError(TrackerError):
    pass


class NotFoundError(StoreError):
    pass


def validate_name(name: Optional[str]) -> str:
    cleaned = (name or "").strip()
    if not cleaned:
        raise ValidationError("Medication name is required")
    if len(cleaned) > MAX_MED_NAME_LEN:
        raise ValidationError(f"Medication name must be {MAX_MED_NAME_LEN} characters or fewer")
    return cleaned


def _medication_from_row(row) -> dict:
    return dict(row)


def _log_from_row(row) -> dict:
    item = dict(row)
    item["taken"] = bool(item["taken"])
    return item


@contextmanager
def _store_call(op: str):
    try:
        yield
    except sqlite3.Error as exc:
        raise StoreError(f"{op} failed: {exc}") from exc


class AttendanceStore:
    def __init__(self, user_id: str):
        if not user_id:
            raise ValueError("user_id is required")
        self.user_id = user_id

    # ── Reads ────────────────────────────────────────────────────────────────

    def list_medications(self) -> list:
        with _store_call("list medications"), get_db() as conn:
            rows = conn.execute(
                "SELECT id, user_id, name, created_at, updated_at FROM medications"
                " WHERE user_id=? ORDER BY created_at ASC, rowid ASC",
                (self.user_id,),
            ).fetchall()
        return [_medication_from_row(r) for r in rows]

    def list_logs(self, start_iso: str, end_iso: str) -> list:
        """Logs whose date falls within ``[start_iso, end_iso]`` inclusive."""
        with _store_call("list logs"), get_db() as conn:
            rows = conn.execute(
                "SELECT id, medication_id, user_id, date, taken, created_at, updated_at"
                " FROM medication_logs"
                " WHERE user_id=? AND date >= ? AND date <= ?"
                " ORDER BY date ASC, rowid ASC",
                (self.user_id, start_iso, end_iso),
            ).fetchall()
        return [_log_from_row(r) for r in rows]

    # ── Attendance ───────────────────────────────────────────────────────────

    def upsert_toggle(self, medication_id: str, day: date, existing_log: Optional[dict] = None):
        """Flip an existing log, or create one with ``taken = true``.

        There is no path that creates a ``taken = false`` row: an absent log
        already means "not taken".
        """
        day_str = to_iso_date(day)
        now = _utc_now_storage()
        with _store_call("toggle log"), get_db() as conn:
            if existing_log is not None:
                cur = conn.execute(
                    "UPDATE medication_logs SET taken = 1 - taken, updated_at=?"
                    " WHERE id=? AND user_id=?",
                    (now, existing_log["id"], self.user_id),
                )
                if cur.rowcount == 0:
                    raise NotFoundError(f"Log {existing_log['id']} not found")
                conn.commit()
                return
            if not conn.execute(
                "SELECT id FROM medications WHERE id=? AND user_id=?", (medication_id, self.user_id)
            ).fetchone():
                raise NotFoundError(f"Medication {medication_id} not found")
            # A row created since the caller last loaded resolves to "taken".
            conn.execute(
                "INSERT INTO medication_logs"
                " (id, medication_id, user_id, date, taken, created_at, updated_at)"
                " VALUES (?,?,?,?,1,?,?)"
                " ON CONFLICT (medication_id, date) DO UPDATE SET taken=1, updated_at=excluded.updated_at",
                (str(uuid.uuid4()), medication_id, self.user_id, day_str, now, now),
            )
            conn.commit()

    # ── Medication CRUD ──────────────────────────────────────────────────────

    def create_medication(self, name: str) -> str:
        cleaned = validate_name(name)
        med_id = str(uuid.uuid4())
        now = _utc_now_storage()
        with _store_call("create medication"), get_db() as conn:
            conn.execute(
                "INSERT INTO medications (id, user_id, name, created_at, updated_at)"
                " VALUES (?,?,?,?,?)",
                (med_id, self.user_id, cleaned, now, now),
            )
            conn.commit()
        logger.info("Created medication %s for user %s", med_id, self.user_id)
        return med_id

    def rename_medication(self, medication_id: str, name: str):
        cleaned = validate_name(name)
        with _store_call("rename medication"), get_db() as conn:
            cur = conn.execute(
                "UPDATE medications SET name=?, updated_at=? WHERE id=? AND user_id=?",
                (cleaned, _utc_now_storage(), medication_id, self.user_id),
            )
            if cur.rowcount == 0:
                raise NotFoundError(f"Medication {medication_id} not found")
            conn.commit()

    def delete_medication(self, medication_id: str):
        """Delete a medication; its logs go with it (ON DELETE CASCADE)."""
        with _store_call("delete medication"), get_db() as conn:
            cur = conn.execute(
                "DELETE FROM medications WHERE id=? AND user_id=?",
                (medication_id, self.user_id),
            )
            if cur.rowcount == 0:
                raise NotFoundError(f"Medication {medication_id} not found")
            conn.commit()
        logger.info("Deleted medication %s for user %s", medication_id, self.user_id)
