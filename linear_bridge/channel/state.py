"""Durable state for the polling channel.

The channel persists only its processed-issue record, as one JSON
object under a single key of a key/value ``StateStore``. Comment-id sets
are kept in memory and rebuilt after a restart.
"""

from __future__ import annotations

import json
import sqlite3
from abc import ABC, abstractmethod
from datetime import datetime
from pathlib import Path
from threading import Lock

from ..bridge_logging import get_logger
from ..integrations.models import format_timestamp, parse_timestamp

logger = get_logger()

PROCESSED_ISSUES_KEY = "linear:processedIssues"


class StateStore(ABC):
    """Durable string key/value storage."""

    @abstractmethod
    def get(self, key: str) -> str | None:
        """Return the stored value, or None if the key is unset."""
        pass

    @abstractmethod
    def set(self, key: str, value: str) -> None:
        """Store a value, replacing any previous one."""
        pass


class InMemoryStateStore(StateStore):
    """Process-local store, for tests and dry runs."""

    def __init__(self, initial: dict[str, str] | None = None):
        self.values: dict[str, str] = dict(initial or {})

    def get(self, key: str) -> str | None:
        return self.values.get(key)

    def set(self, key: str, value: str) -> None:
        self.values[key] = value


class SqliteStateStore(StateStore):
    """Key/value store backed by a ``router_state`` table in SQLite."""

    def __init__(self, db_path: str | Path):
        """Open (and create if needed) the state database.

        Args:
            db_path: Path to the SQLite database file
        """
        self.db_path = Path(db_path)
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        self._lock = Lock()
        self._create_schema()

    def _get_connection(self) -> sqlite3.Connection:
        return sqlite3.connect(self.db_path)

    def _create_schema(self) -> None:
        conn = self._get_connection()
        try:
            conn.execute(
                """
                CREATE TABLE IF NOT EXISTS router_state (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                )
                """
            )
            conn.commit()
        finally:
            conn.close()

    def get(self, key: str) -> str | None:
        with self._lock:
            conn = self._get_connection()
            try:
                row = conn.execute(
                    "SELECT value FROM router_state WHERE key = ?", (key,)
                ).fetchone()
            finally:
                conn.close()
        return row[0] if row else None

    def set(self, key: str, value: str) -> None:
        with self._lock:
            conn = self._get_connection()
            try:
                conn.execute(
                    "INSERT OR REPLACE INTO router_state (key, value) VALUES (?, ?)",
                    (key, value),
                )
                conn.commit()
            finally:
                conn.close()


class ProcessedIssueStore:
    """Serializes the processed-issue record to a StateStore."""

    def __init__(self, store: StateStore, key: str = PROCESSED_ISSUES_KEY):
        self.store = store
        self.key = key

    def load(self) -> dict[str, datetime]:
        """Load the persisted record.

        A missing key yields an empty record. Corrupt data is logged and
        ignored rather than failing the connect.
        """
        raw = self.store.get(self.key)
        if not raw:
            return {}

        try:
            data = json.loads(raw)
        except json.JSONDecodeError as e:
            logger.warning(f"Ignoring corrupt processed-issue state: {e}")
            return {}
        if not isinstance(data, dict):
            logger.warning("Ignoring processed-issue state: expected a JSON object")
            return {}

        record: dict[str, datetime] = {}
        for issue_id, value in data.items():
            try:
                parsed = parse_timestamp(value) if isinstance(value, str) else None
            except ValueError:
                parsed = None
            if parsed is None:
                logger.warning(f"Skipping invalid timestamp for issue {issue_id}: {value!r}")
                continue
            record[issue_id] = parsed

        logger.info(f"Loaded {len(record)} processed issues from state")
        return record

    def save(self, record: dict[str, datetime]) -> None:
        """Write the whole record under the state key."""
        payload = {issue_id: format_timestamp(ts) for issue_id, ts in record.items()}
        self.store.set(self.key, json.dumps(payload, sort_keys=True))
