import sqlite3
from contextlib import contextmanager

from config import DB_PATH


def init_db():
    with sqlite3.connect(DB_PATH) as conn:
        conn.execute("PRAGMA foreign_keys = ON")
        conn.execute("""
            CREATE TABLE IF NOT EXISTS users (
                id            TEXT PRIMARY KEY,
                email         TEXT NOT NULL UNIQUE,
                password_hash TEXT NOT NULL DEFAULT '',
                created_at    TEXT NOT NULL
            )
        """)
        conn.execute("""
            CREATE TABLE IF NOT EXISTS medications (
                id         TEXT PRIMARY KEY,
                user_id    TEXT NOT NULL REFERENCES users(id) ON DELETE CASCADE,
                name       TEXT NOT NULL CHECK (length(trim(name)) > 0),
                created_at TEXT NOT NULL,
                updated_at TEXT NOT NULL
            )
        """)
        # One log per medication and day; a missing row means "not taken".
        conn.execute("""
            CREATE TABLE IF NOT EXISTS medication_logs (
                id            TEXT PRIMARY KEY,
                medication_id TEXT    NOT NULL REFERENCES medications(id) ON DELETE CASCADE,
                user_id       TEXT    NOT NULL REFERENCES users(id) ON DELETE CASCADE,
                date          TEXT    NOT NULL,
                taken         INTEGER NOT NULL DEFAULT 0 CHECK (taken IN (0, 1)),
                created_at    TEXT    NOT NULL,
                updated_at    TEXT    NOT NULL,
                UNIQUE (medication_id, date)
            )
        """)
        # Indexes for common query patterns (all filtered by user_id)
        conn.execute("CREATE INDEX IF NOT EXISTS idx_medications_user_id ON medications(user_id)")
        conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_med_logs_user_date"
            " ON medication_logs(user_id, date)"
        )
        conn.commit()


@contextmanager
def get_db():
    conn = sqlite3.connect(DB_PATH)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    try:
        yield conn
    finally:
        conn.close()
