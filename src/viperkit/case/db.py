"""
DuckDB store for the case audit timeline.

The in-memory audit log is authoritative for the running session; this
table keeps a durable copy per case so reports can be built after the tool
has exited.
"""

import os
import threading
import uuid
from datetime import datetime
from typing import Optional

import duckdb

from ..utils.logger import debug
from .events import CaseEvent

_EVENT_COLUMNS = "case_id, event_time, tab, action, severity, target, details"


class AuditDatabase:
    """Lazy DuckDB connection holding the ``case_events`` table.

    Args:
        db_path: Database file, or ":memory:" for tests.
    """

    def __init__(self, db_path: str = ":memory:"):
        self._db_path = db_path
        self._conn: Optional[duckdb.DuckDBPyConnection] = None
        self._lock = threading.Lock()

    @property
    def db_path(self) -> str:
        return self._db_path

    def connect(self) -> duckdb.DuckDBPyConnection:
        with self._lock:
            if self._conn is None:
                directory = os.path.dirname(self._db_path)
                if self._db_path != ":memory:" and directory:
                    os.makedirs(directory, exist_ok=True)
                self._conn = duckdb.connect(self._db_path)
                self._create_schema()
            return self._conn

    def close(self) -> None:
        with self._lock:
            if self._conn:
                self._conn.close()
                self._conn = None

    def _create_schema(self) -> None:
        conn = self._conn
        if not conn:
            return
        conn.execute("""
            CREATE TABLE IF NOT EXISTS case_events (
                id VARCHAR PRIMARY KEY,
                case_id VARCHAR,
                event_time TIMESTAMP,
                tab VARCHAR,
                action VARCHAR,
                severity VARCHAR,
                target VARCHAR,
                details VARCHAR
            )
        """)
        conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_case_events_case ON case_events(case_id)"
        )

    def _generate_id(self) -> str:
        return f"evt_{uuid.uuid4().hex[:12]}"

    def insert_event(self, case_id: str, event: CaseEvent) -> bool:
        """Insert one event. Returns False (and logs) on failure."""
        try:
            conn = self.connect()
            with self._lock:
                conn.execute(
                    f"INSERT INTO case_events (id, {_EVENT_COLUMNS}) "
                    "VALUES (?, ?, ?, ?, ?, ?, ?, ?)",
                    [
                        self._generate_id(),
                        case_id,
                        event.timestamp,
                        event.tab,
                        event.action,
                        event.severity,
                        event.target,
                        event.details,
                    ],
                )
            return True
        except (duckdb.Error, OSError) as e:
            debug(f"Audit insert error: {e}")
            return False

    def get_events(
        self, case_id: str, since: Optional[datetime] = None
    ) -> list[CaseEvent]:
        """Events of one case in timeline order."""
        conn = self.connect()
        query = f"SELECT {_EVENT_COLUMNS} FROM case_events WHERE case_id = ?"
        params: list = [case_id]
        if since is not None:
            query += " AND event_time >= ?"
            params.append(since)
        query += " ORDER BY event_time, id"
        with self._lock:
            rows = conn.execute(query, params).fetchall()
        return [
            CaseEvent(
                timestamp=row[1],
                tab=row[2],
                action=row[3],
                severity=row[4],
                target=row[5],
                details=row[6] or "",
            )
            for row in rows
        ]

    def count_events(self, case_id: str) -> int:
        conn = self.connect()
        with self._lock:
            row = conn.execute(
                "SELECT COUNT(*) FROM case_events WHERE case_id = ?", [case_id]
            ).fetchone()
        return int(row[0]) if row else 0
