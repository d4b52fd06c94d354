from __future__ import annotations

import sqlite3
from datetime import datetime
from pathlib import Path

from zerocode.models import Fingerprint, GenerationCacheEntry


SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS generations (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    prompt TEXT NOT NULL,
    framework TEXT NOT NULL,
    styling TEXT NOT NULL,
    state_management TEXT NOT NULL,
    provider TEXT NOT NULL,
    file_set_json TEXT NOT NULL,
    created_at TEXT NOT NULL,
    last_accessed_at TEXT NOT NULL,
    UNIQUE(prompt, framework, styling, state_management, provider)
);
"""

FINGERPRINT_WHERE = """
    prompt = ? AND framework = ? AND styling = ? AND state_management = ? AND provider = ?
"""


def _key(fingerprint: Fingerprint) -> tuple[str, str, str, str, str]:
    return (
        fingerprint.prompt,
        fingerprint.framework,
        fingerprint.styling,
        fingerprint.state_management,
        fingerprint.provider,
    )


class Store:
    def __init__(self, db_path: Path):
        self.db_path = Path(db_path)

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def init_db(self) -> None:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        with self._connect() as conn:
            conn.executescript(SCHEMA_SQL)

    def find_one(self, fingerprint: Fingerprint) -> dict | None:
        with self._connect() as conn:
            row = conn.execute(
                f"SELECT * FROM generations WHERE {FINGERPRINT_WHERE}",
                _key(fingerprint),
            ).fetchone()
            return dict(row) if row else None

    def insert_one(self, entry: GenerationCacheEntry) -> bool:
        """Insert ``entry`` unless its fingerprint is already stored; first write wins."""
        with self._connect() as conn:
            before = conn.total_changes
            conn.execute(
                """
                INSERT OR IGNORE INTO generations(
                    prompt, framework, styling, state_management, provider,
                    file_set_json, created_at, last_accessed_at
                )
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    *_key(entry.fingerprint),
                    entry.file_set.model_dump_json(),
                    entry.created_at.isoformat(),
                    entry.last_accessed_at.isoformat(),
                ),
            )
            return conn.total_changes > before

    def update_one(self, fingerprint: Fingerprint, last_accessed_at: datetime) -> int:
        with self._connect() as conn:
            cursor = conn.execute(
                f"UPDATE generations SET last_accessed_at = ? WHERE {FINGERPRINT_WHERE}",
                (last_accessed_at.isoformat(), *_key(fingerprint)),
            )
            return cursor.rowcount

    def count(self) -> int:
        with self._connect() as conn:
            return conn.execute("SELECT COUNT(*) FROM generations").fetchone()[0]
