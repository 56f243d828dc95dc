# src/landingscout/database.py
"""Job store and result store for scouts, sessions and page results."""

import json
import sqlite3
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Optional, List
import logging

from landingscout.config import settings
from landingscout.models import (
    ACTIVE_SESSION_STATUSES,
    PageResult,
    PageResultStatus,
    PageTypeRule,
    Scout,
    ScoutingSession,
    SessionStatus,
    utcnow,
)

logger = logging.getLogger(__name__)

# SQL schema shared by every sqlite-backed store
CREATE_TABLES_SQL = """
CREATE TABLE IF NOT EXISTS scouts (
    id TEXT PRIMARY KEY,
    name TEXT NOT NULL,
    start_url TEXT NOT NULL,
    schedule TEXT NOT NULL,
    page_types TEXT NOT NULL,
    active INTEGER NOT NULL DEFAULT 1,
    max_pages_to_visit INTEGER,
    timeout INTEGER,
    last_run_at TEXT,
    next_run_at TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS scouting_sessions (
    id TEXT PRIMARY KEY,
    scout_id TEXT NOT NULL REFERENCES scouts(id) ON DELETE CASCADE,
    start_time TEXT NOT NULL,
    end_time TEXT,
    total_pages_scanned INTEGER NOT NULL DEFAULT 0,
    status TEXT NOT NULL,
    error_message TEXT
);

CREATE INDEX IF NOT EXISTS idx_sessions_scout ON scouting_sessions(scout_id);

CREATE TABLE IF NOT EXISTS page_results (
    id TEXT PRIMARY KEY,
    session_id TEXT NOT NULL REFERENCES scouting_sessions(id) ON DELETE CASCADE,
    url TEXT NOT NULL,
    page_type TEXT,
    product_count INTEGER,
    scan_time TEXT NOT NULL,
    processing_time_ms INTEGER,
    status TEXT NOT NULL,
    error_message TEXT,
    screenshot_path TEXT,
    html_snapshot TEXT
);

CREATE INDEX IF NOT EXISTS idx_page_results_session ON page_results(session_id, scan_time);
"""


def _to_text(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _to_datetime(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


class AbstractDatabase(ABC):
    """Abstract base class defining the store interface the engine consumes."""

    @abstractmethod
    def close(self) -> None:
        """Close database connection."""
        pass

    # -- Scouts ---------------------------------------------------------------

    @abstractmethod
    def save_scout(self, scout: Scout) -> Scout:
        """Insert or update a scout."""
        pass

    @abstractmethod
    def get_scout(self, scout_id: str) -> Optional[Scout]:
        pass

    @abstractmethod
    def list_scouts(self, active_only: bool = False) -> List[Scout]:
        pass

    @abstractmethod
    def list_due_scouts(self, now: datetime) -> List[Scout]:
        """Active scouts whose next_run_at has elapsed."""
        pass

    @abstractmethod
    def delete_scout(self, scout_id: str) -> bool:
        pass

    # -- Sessions -------------------------------------------------------------

    @abstractmethod
    def create_session(self, session: ScoutingSession) -> ScoutingSession:
        pass

    @abstractmethod
    def get_session(self, session_id: str) -> Optional[ScoutingSession]:
        pass

    @abstractmethod
    def list_sessions(self, scout_id: Optional[str] = None) -> List[ScoutingSession]:
        """Sessions ordered by start time, newest first."""
        pass

    @abstractmethod
    def update_session_progress(self, session_id: str, total_pages_scanned: int) -> None:
        pass

    @abstractmethod
    def finalize_session(
        self,
        session_id: str,
        status: SessionStatus,
        end_time: datetime,
        total_pages_scanned: Optional[int] = None,
        error_message: Optional[str] = None,
    ) -> bool:
        """Move an active session to a terminal status.

        Returns:
            False if the session was already terminal (nothing was written).
        """
        pass

    @abstractmethod
    def count_running_sessions(self) -> int:
        pass

    # -- Page results ---------------------------------------------------------

    @abstractmethod
    def save_page_result(self, result: PageResult) -> PageResult:
        pass

    @abstractmethod
    def get_page_result(self, page_result_id: str) -> Optional[PageResult]:
        pass

    @abstractmethod
    def list_page_results(self, session_id: str) -> List[PageResult]:
        """Page results for a session ordered by scan time."""
        pass

    @abstractmethod
    def purge_html_snapshots(self, older_than: datetime) -> int:
        """Drop stored HTML snapshots scanned before a cutoff."""
        pass


class LocalSqliteDatabase(AbstractDatabase):
    """SQLite database implementation for local storage."""

    def __init__(self, db_url: Optional[str] = None):
        """Initialize local SQLite database.

        Args:
            db_url: Database URL (sqlite:///path/to/db.db). Defaults to settings.database_url.
        """
        self.db_url = db_url or settings.database_url
        self.db_path = self.db_url.replace("sqlite:///", "")
        self.conn: Optional[sqlite3.Connection] = None
        self.connect()
        self.create_schema()

    def connect(self) -> None:
        """Establish SQLite connection."""
        self.conn = sqlite3.connect(self.db_path)
        self.conn.row_factory = sqlite3.Row
        self.conn.execute("PRAGMA foreign_keys = ON")
        logger.debug(f"Connected to local SQLite database: {self.db_path}")

    def close(self) -> None:
        """Close SQLite connection."""
        if self.conn:
            self.conn.close()
            self.conn = None
            logger.debug("Closed local SQLite connection")

    def create_schema(self) -> None:
        """Create the tables if they don't exist."""
        with self.conn:
            self.conn.executescript(CREATE_TABLES_SQL)
        logger.debug("Schema verified/created for local SQLite")

    # -- Row mapping ----------------------------------------------------------

    @staticmethod
    def _row_to_scout(row: sqlite3.Row) -> Scout:
        return Scout(
            id=row["id"],
            name=row["name"],
            start_url=row["start_url"],
            schedule=row["schedule"],
            page_types=[PageTypeRule.from_dict(d) for d in json.loads(row["page_types"])],
            active=bool(row["active"]),
            max_pages_to_visit=row["max_pages_to_visit"],
            timeout=row["timeout"],
            last_run_at=_to_datetime(row["last_run_at"]),
            next_run_at=_to_datetime(row["next_run_at"]),
            created_at=_to_datetime(row["created_at"]),
            updated_at=_to_datetime(row["updated_at"]),
        )

    @staticmethod
    def _row_to_session(row: sqlite3.Row) -> ScoutingSession:
        return ScoutingSession(
            id=row["id"],
            scout_id=row["scout_id"],
            start_time=_to_datetime(row["start_time"]),
            end_time=_to_datetime(row["end_time"]),
            total_pages_scanned=row["total_pages_scanned"],
            status=SessionStatus(row["status"]),
            error_message=row["error_message"],
        )

    @staticmethod
    def _row_to_page_result(row: sqlite3.Row) -> PageResult:
        return PageResult(
            id=row["id"],
            session_id=row["session_id"],
            url=row["url"],
            page_type=row["page_type"],
            product_count=row["product_count"] or 0,
            scan_time=_to_datetime(row["scan_time"]),
            processing_time_ms=row["processing_time_ms"] or 0,
            status=PageResultStatus(row["status"]),
            error_message=row["error_message"],
            screenshot_path=row["screenshot_path"],
            html_snapshot=row["html_snapshot"],
        )

    # -- Scouts ---------------------------------------------------------------

    def save_scout(self, scout: Scout) -> Scout:
        """Insert or update a scout in SQLite."""
        scout.updated_at = utcnow()
        with self.conn:
            self.conn.execute(
                """
                INSERT INTO scouts (
                    id, name, start_url, schedule, page_types, active,
                    max_pages_to_visit, timeout, last_run_at, next_run_at,
                    created_at, updated_at
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                ON CONFLICT(id) DO UPDATE SET
                    name = excluded.name,
                    start_url = excluded.start_url,
                    schedule = excluded.schedule,
                    page_types = excluded.page_types,
                    active = excluded.active,
                    max_pages_to_visit = excluded.max_pages_to_visit,
                    timeout = excluded.timeout,
                    last_run_at = excluded.last_run_at,
                    next_run_at = excluded.next_run_at,
                    updated_at = excluded.updated_at
                """,
                (
                    scout.id,
                    scout.name,
                    scout.start_url,
                    scout.schedule,
                    json.dumps([rule.to_dict() for rule in scout.page_types]),
                    int(scout.active),
                    scout.max_pages_to_visit,
                    scout.timeout,
                    _to_text(scout.last_run_at),
                    _to_text(scout.next_run_at),
                    _to_text(scout.created_at),
                    _to_text(scout.updated_at),
                ),
            )
        logger.debug(f"Saved scout {scout.id} ({scout.name})")
        return scout

    def get_scout(self, scout_id: str) -> Optional[Scout]:
        row = self.conn.execute("SELECT * FROM scouts WHERE id = ?", (scout_id,)).fetchone()
        return self._row_to_scout(row) if row else None

    def list_scouts(self, active_only: bool = False) -> List[Scout]:
        query_sql = "SELECT * FROM scouts"
        if active_only:
            query_sql += " WHERE active = 1"
        query_sql += " ORDER BY created_at ASC"
        return [self._row_to_scout(row) for row in self.conn.execute(query_sql).fetchall()]

    def list_due_scouts(self, now: datetime) -> List[Scout]:
        # Timestamps are compared as datetimes, not ISO strings, so offsets never matter
        return [
            scout for scout in self.list_scouts(active_only=True)
            if scout.next_run_at is not None and scout.next_run_at <= now
        ]

    def delete_scout(self, scout_id: str) -> bool:
        with self.conn:
            cursor = self.conn.execute("DELETE FROM scouts WHERE id = ?", (scout_id,))
        return cursor.rowcount > 0

    # -- Sessions -------------------------------------------------------------

    def create_session(self, session: ScoutingSession) -> ScoutingSession:
        with self.conn:
            self.conn.execute(
                """
                INSERT INTO scouting_sessions (
                    id, scout_id, start_time, end_time, total_pages_scanned,
                    status, error_message
                ) VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    session.id,
                    session.scout_id,
                    _to_text(session.start_time),
                    _to_text(session.end_time),
                    session.total_pages_scanned,
                    session.status.value,
                    session.error_message,
                ),
            )
        logger.debug(f"Created session {session.id} for scout {session.scout_id}")
        return session

    def get_session(self, session_id: str) -> Optional[ScoutingSession]:
        row = self.conn.execute(
            "SELECT * FROM scouting_sessions WHERE id = ?", (session_id,)
        ).fetchone()
        return self._row_to_session(row) if row else None

    def list_sessions(self, scout_id: Optional[str] = None) -> List[ScoutingSession]:
        if scout_id is None:
            rows = self.conn.execute(
                "SELECT * FROM scouting_sessions ORDER BY start_time DESC"
            ).fetchall()
        else:
            rows = self.conn.execute(
                "SELECT * FROM scouting_sessions WHERE scout_id = ? ORDER BY start_time DESC",
                (scout_id,),
            ).fetchall()
        return [self._row_to_session(row) for row in rows]

    def update_session_progress(self, session_id: str, total_pages_scanned: int) -> None:
        with self.conn:
            self.conn.execute(
                "UPDATE scouting_sessions SET total_pages_scanned = ? WHERE id = ?",
                (total_pages_scanned, session_id),
            )

    def finalize_session(
        self,
        session_id: str,
        status: SessionStatus,
        end_time: datetime,
        total_pages_scanned: Optional[int] = None,
        error_message: Optional[str] = None,
    ) -> bool:
        active = [s.value for s in ACTIVE_SESSION_STATUSES]
        with self.conn:
            cursor = self.conn.execute(
                f"""
                UPDATE scouting_sessions
                SET status = ?,
                    end_time = ?,
                    total_pages_scanned = COALESCE(?, total_pages_scanned),
                    error_message = ?
                WHERE id = ? AND status IN ({', '.join('?' for _ in active)})
                """,
                (
                    status.value,
                    _to_text(end_time),
                    total_pages_scanned,
                    error_message,
                    session_id,
                    *active,
                ),
            )
        return cursor.rowcount > 0

    def count_running_sessions(self) -> int:
        row = self.conn.execute(
            "SELECT COUNT(*) AS n FROM scouting_sessions WHERE status = ?",
            (SessionStatus.RUNNING.value,),
        ).fetchone()
        return row["n"]

    # -- Page results ---------------------------------------------------------

    def save_page_result(self, result: PageResult) -> PageResult:
        with self.conn:
            self.conn.execute(
                """
                INSERT INTO page_results (
                    id, session_id, url, page_type, product_count, scan_time,
                    processing_time_ms, status, error_message, screenshot_path,
                    html_snapshot
                ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    result.id,
                    result.session_id,
                    result.url,
                    result.page_type,
                    result.product_count,
                    _to_text(result.scan_time),
                    result.processing_time_ms,
                    result.status.value,
                    result.error_message,
                    result.screenshot_path,
                    result.html_snapshot,
                ),
            )
        return result

    def get_page_result(self, page_result_id: str) -> Optional[PageResult]:
        row = self.conn.execute(
            "SELECT * FROM page_results WHERE id = ?", (page_result_id,)
        ).fetchone()
        return self._row_to_page_result(row) if row else None

    def list_page_results(self, session_id: str) -> List[PageResult]:
        rows = self.conn.execute(
            "SELECT * FROM page_results WHERE session_id = ? ORDER BY scan_time ASC",
            (session_id,),
        ).fetchall()
        return [self._row_to_page_result(row) for row in rows]

    def purge_html_snapshots(self, older_than: datetime) -> int:
        # scan_time is always written as UTC ISO text, so string order is time order
        with self.conn:
            cursor = self.conn.execute(
                """
                UPDATE page_results SET html_snapshot = NULL
                WHERE html_snapshot IS NOT NULL AND scan_time < ?
                """,
                (_to_text(older_than.astimezone(timezone.utc)),),
            )
        if cursor.rowcount:
            logger.info(f"Purged {cursor.rowcount} HTML snapshots older than {older_than.isoformat()}")
        return cursor.rowcount


def get_db_client(db_url: Optional[str] = None) -> AbstractDatabase:
    """Factory function to create the appropriate database client.

    Args:
        db_url: Database URL. Defaults to settings.database_url.

    Returns:
        An instance of AbstractDatabase.

    Raises:
        ValueError: If the URL scheme is not supported.
    """
    db_url = db_url or settings.database_url

    if db_url.startswith("sqlite:///"):
        logger.info("Using local SQLite database backend")
        return LocalSqliteDatabase(db_url)
    raise ValueError(
        f"Unsupported database URL: '{db_url}'. "
        "Supported schemes: 'sqlite:///'"
    )
