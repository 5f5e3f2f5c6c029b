"""SQLite-backed JSON key-value persistence."""

from __future__ import annotations

import json
import logging
import sqlite3
from collections.abc import Iterable
from datetime import UTC, datetime
from pathlib import Path
from typing import Any

SCHEMA_VERSION = 1

FAVORITES_KEY = "favorites"
CUSTOM_SETS_KEY = "customQuestionSets"
DEFAULT_QUESTIONS_KEY = "defaultQuestions"
HISTORY_KEY = "questionHistory"
RECENT_SESSION_KEY = "recentSession"

USER_DATA_KEYS = (FAVORITES_KEY, CUSTOM_SETS_KEY, RECENT_SESSION_KEY, HISTORY_KEY)

logger = logging.getLogger(__name__)


class StorageError(RuntimeError):
    """A read or write against the key-value store failed."""


class KeyValueStore:
    """Key-value store of JSON-serializable values."""

    def __init__(self, db_path: Path | str) -> None:
        """Open the database and apply migrations."""
        if isinstance(db_path, Path):
            db_path.parent.mkdir(parents=True, exist_ok=True)
            target = str(db_path)
        else:
            target = db_path
        self._conn = sqlite3.connect(target)
        self._conn.row_factory = sqlite3.Row
        self._apply_migrations()

    def _apply_migrations(self) -> None:
        """Apply forward-only schema migrations to latest version."""
        current = int(self._conn.execute("PRAGMA user_version").fetchone()[0])
        if current > SCHEMA_VERSION:
            raise RuntimeError(f"Database schema version {current} is newer than supported {SCHEMA_VERSION}.")

        with self._conn:
            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS schema_migrations (
                    version INTEGER PRIMARY KEY,
                    applied_at TEXT NOT NULL
                )
                """)

        for version in range(current + 1, SCHEMA_VERSION + 1):
            if version == 1:
                self._migrate_to_v1()
            with self._conn:
                self._conn.execute(f"PRAGMA user_version = {version}")
                self._conn.execute(
                    "INSERT OR REPLACE INTO schema_migrations (version, applied_at) VALUES (?, ?)",
                    (version, datetime.now(UTC).isoformat()),
                )

    def _migrate_to_v1(self) -> None:
        with self._conn:
            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS kv (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
                """)

    def get(self, key: str) -> Any | None:
        """Return the decoded value for key, or None when absent."""
        try:
            row = self._conn.execute("SELECT value FROM kv WHERE key = ?", (key,)).fetchone()
        except sqlite3.Error as exc:
            raise StorageError(f"Could not read '{key}'.") from exc
        if row is None:
            return None
        try:
            return json.loads(str(row["value"]))
        except ValueError as exc:
            raise StorageError(f"Stored value for '{key}' is not valid JSON.") from exc

    def set(self, key: str, value: Any) -> None:
        """Store a JSON-serializable value under key."""
        try:
            payload = json.dumps(value, ensure_ascii=False)
        except (TypeError, ValueError) as exc:
            raise StorageError(f"Value for '{key}' is not JSON-serializable.") from exc
        try:
            with self._conn:
                self._conn.execute(
                    """
                    INSERT INTO kv (key, value, updated_at) VALUES (?, ?, ?)
                    ON CONFLICT(key) DO UPDATE SET
                        value = excluded.value,
                        updated_at = excluded.updated_at
                    """,
                    (key, payload, datetime.now(UTC).isoformat()),
                )
        except sqlite3.Error as exc:
            raise StorageError(f"Could not write '{key}'.") from exc

    def remove(self, key: str) -> None:
        """Remove key if present."""
        self.multi_remove([key])

    def multi_remove(self, keys: Iterable[str]) -> None:
        """Remove several keys in one transaction."""
        targets = list(keys)
        if not targets:
            return
        placeholders = ", ".join("?" for _ in targets)
        try:
            with self._conn:
                self._conn.execute(f"DELETE FROM kv WHERE key IN ({placeholders})", targets)
        except sqlite3.Error as exc:
            raise StorageError(f"Could not remove {', '.join(targets)}.") from exc

    def keys(self) -> list[str]:
        """Return stored keys in sorted order."""
        try:
            rows = self._conn.execute("SELECT key FROM kv ORDER BY key").fetchall()
        except sqlite3.Error as exc:
            raise StorageError("Could not list keys.") from exc
        return [str(row["key"]) for row in rows]

    def close(self) -> None:
        """Close db connection."""
        self._conn.close()

    def __del__(self) -> None:  # pragma: no cover
        """Best-effort connection cleanup."""
        try:
            self.close()
        except Exception:
            pass


def clear_all_data(store: KeyValueStore) -> bool:
    """Remove all user data, keeping the seeded default deck."""
    try:
        present = [key for key in store.keys() if key in USER_DATA_KEYS]
        store.multi_remove(present)
    except StorageError:
        logger.exception("Failed to clear all data")
        return False
    logger.info("Cleared all user data (%s)", ", ".join(present) or "nothing stored")
    return True
