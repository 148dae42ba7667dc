"""
triage/storage/sqlite_slot.py
SQLite-backed key-value slot. Default backend for the offline queue.

One table, one row per key. Each write is its own transaction, so a
reader sees either the previous value or the new one, never a mix.
"""

import logging
import sqlite3
from datetime import datetime
from pathlib import Path
from typing import Optional

from triage.storage.base import KeyValueSlot

logger = logging.getLogger(__name__)


class SqliteSlot(KeyValueSlot):

    def __init__(self, db_path: Path = Path('sos_queue.db')):
        self.db_path = Path(db_path)

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(str(self.db_path))
        conn.execute("PRAGMA journal_mode=WAL")
        conn.execute("""
            CREATE TABLE IF NOT EXISTS kv_slots (
                key         TEXT PRIMARY KEY,
                value       TEXT NOT NULL,
                updated_at  TEXT NOT NULL
            )
        """)
        return conn

    def read(self, key: str) -> Optional[str]:
        if not self.db_path.exists():
            return None
        conn = self._connect()
        try:
            row = conn.execute(
                "SELECT value FROM kv_slots WHERE key = ?", (key,)
            ).fetchone()
        finally:
            conn.close()
        return row[0] if row else None

    def write(self, key: str, value: str) -> None:
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = self._connect()
        try:
            conn.execute("""
                INSERT OR REPLACE INTO kv_slots (key, value, updated_at)
                VALUES (?,?,?)
            """, (key, value, datetime.now().isoformat()))
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()
        logger.debug(f"Wrote slot '{key}' ({len(value)} chars) → {self.db_path}")
