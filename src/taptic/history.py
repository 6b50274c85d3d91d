"""
Detection history: SQLite storage of notified detections.

Only the most recent HISTORY_LIMIT rows are kept. Listeners registered with
add_listener receive the current event list after every change.
"""

import logging
import sqlite3
import threading
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Optional

from .config import HISTORY_DB_PATH, HISTORY_LIMIT

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DetectionEvent:
    timestamp_ms: int
    label: str
    confidence: float
    is_emergency: bool
    is_remote: bool
    device_name: Optional[str] = None  # None for local detections
    id: Optional[int] = None

    @classmethod
    def from_notification(cls, event):
        return cls(
            timestamp_ms=event.timestamp_ms,
            label=event.label,
            confidence=event.score,
            is_emergency=event.is_emergency,
            is_remote=not event.is_local,
            device_name=event.origin_host,
        )


class HistoryRepository:
    """
    Thread-safe access to the detections table
    """

    def __init__(self, db_path=HISTORY_DB_PATH, limit=HISTORY_LIMIT):
        self.db_path = str(db_path)
        self.limit = limit
        self._lock = threading.Lock()
        self._listeners = []

        # An in-memory database only lives as long as its connection
        self._shared_conn = None
        if self.db_path == ":memory:":
            self._shared_conn = sqlite3.connect(":memory:", check_same_thread=False)

        with self._connection() as conn:
            self._init_schema(conn)

    @contextmanager
    def _connection(self):
        with self._lock:
            conn = self._shared_conn or sqlite3.connect(self.db_path)
            try:
                yield conn
                conn.commit()
            finally:
                if conn is not self._shared_conn:
                    conn.close()

    @staticmethod
    def _init_schema(conn):
        conn.execute("""
            CREATE TABLE IF NOT EXISTS detections (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                timestamp INTEGER NOT NULL,
                label TEXT NOT NULL,
                confidence REAL NOT NULL,
                is_emergency INTEGER NOT NULL,
                is_remote INTEGER NOT NULL,
                device_name TEXT
            )
        """)
        conn.execute("CREATE INDEX IF NOT EXISTS idx_detections_timestamp ON detections(timestamp)")

    def add_listener(self, listener):
        self._listeners.append(listener)

    def remove_listener(self, listener):
        if listener in self._listeners:
            self._listeners.remove(listener)

    def insert(self, event):
        with self._connection() as conn:
            conn.execute(
                "INSERT INTO detections (timestamp, label, confidence, is_emergency, is_remote, device_name) "
                "VALUES (?, ?, ?, ?, ?, ?)",
                (event.timestamp_ms, event.label, float(event.confidence),
                 int(event.is_emergency), int(event.is_remote), event.device_name),
            )
            conn.execute(
                "DELETE FROM detections WHERE id NOT IN "
                "(SELECT id FROM detections ORDER BY timestamp DESC, id DESC LIMIT ?)",
                (self.limit,),
            )
        self._notify_listeners()

    def get_all(self, limit=None):
        """
        Newest first
        """
        with self._connection() as conn:
            rows = conn.execute(
                "SELECT id, timestamp, label, confidence, is_emergency, is_remote, device_name "
                "FROM detections ORDER BY timestamp DESC, id DESC LIMIT ?",
                (limit or self.limit,),
            ).fetchall()

        return [
            DetectionEvent(
                timestamp_ms=row[1], label=row[2], confidence=row[3],
                is_emergency=bool(row[4]), is_remote=bool(row[5]),
                device_name=row[6], id=row[0],
            )
            for row in rows
        ]

    def clear(self):
        with self._connection() as conn:
            conn.execute("DELETE FROM detections")
        self._notify_listeners()

    def close(self):
        if self._shared_conn is not None:
            self._shared_conn.close()
            self._shared_conn = None

    def _notify_listeners(self):
        if not self._listeners:
            return
        events = self.get_all()
        for listener in list(self._listeners):
            try:
                listener(events)
            except Exception as e:
                logger.error(f"History listener failed: {e}")
