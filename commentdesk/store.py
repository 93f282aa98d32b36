"""
CommentDesk record store - uniform access to persisted records

Four record kinds live in the store: rulemakings, submissions, analytics and
admin_users. SQLite backs local development and tests; PostgreSQL backs
production deployments. Statements are written once with ``:name``
placeholders and translated for the active driver.
"""

import logging
import re
import sqlite3
from contextlib import contextmanager
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Iterator, List, Mapping, Optional, Sequence

from commentdesk.errors import StoreError
from commentdesk.models import utcnow

try:
    import psycopg2
    import psycopg2.extras
except Exception:  # pragma: no cover - optional dependency
    psycopg2 = None  # type: ignore

logger = logging.getLogger(__name__)


TABLE_COLUMNS: Dict[str, Sequence[str]] = {
    "rulemakings": (
        "id",
        "agency",
        "title",
        "description",
        "docket_id",
        "federal_register_url",
        "comment_deadline",
        "status",
        "context_documents",
        "legal_analysis",
        "opposition_points",
        "created_at",
        "updated_at",
    ),
    "submissions": (
        "id",
        "rulemaking_id",
        "user_name",
        "user_email",
        "user_city",
        "user_state",
        "user_zip",
        "personal_story",
        "why_it_matters",
        "experiences",
        "concerns",
        "generated_comment",
        "final_comment",
        "submission_status",
        "federal_register_submission_id",
        "ip_address",
        "user_agent",
        "recaptcha_verified",
        "created_at",
        "submitted_at",
    ),
    "analytics": (
        "id",
        "date",
        "rulemaking_id",
        "total_submissions",
        "unique_users",
        "states_represented",
        "avg_comment_length",
        "created_at",
    ),
    "admin_users": (
        "id",
        "email",
        "password_hash",
        "name",
        "role",
        "is_active",
        "created_at",
        "updated_at",
        "last_login",
    ),
}

BOOLEAN_COLUMNS = {"recaptcha_verified", "is_active"}

# Messages raised when a row is still inside the backend's recent-write window
RECENT_WRITE_MARKERS = ("streaming buffer",)

_NAMED_PARAM = re.compile(r"(?<!:):([A-Za-z_][A-Za-z0-9_]*)")

SQLITE_SCHEMA = """
CREATE TABLE IF NOT EXISTS rulemakings (
    id TEXT PRIMARY KEY,
    agency TEXT NOT NULL,
    title TEXT NOT NULL,
    description TEXT,
    docket_id TEXT NOT NULL,
    federal_register_url TEXT,
    comment_deadline TEXT NOT NULL,
    status TEXT NOT NULL,
    context_documents TEXT,
    legal_analysis TEXT,
    opposition_points TEXT,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS submissions (
    id TEXT PRIMARY KEY,
    rulemaking_id TEXT NOT NULL,
    user_name TEXT NOT NULL,
    user_email TEXT,
    user_city TEXT,
    user_state TEXT,
    user_zip TEXT,
    personal_story TEXT,
    why_it_matters TEXT,
    experiences TEXT,
    concerns TEXT,
    generated_comment TEXT NOT NULL,
    final_comment TEXT,
    submission_status TEXT NOT NULL,
    federal_register_submission_id TEXT,
    ip_address TEXT,
    user_agent TEXT,
    recaptcha_verified BOOLEAN NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL,
    submitted_at TEXT
);

CREATE TABLE IF NOT EXISTS analytics (
    id TEXT PRIMARY KEY,
    date TEXT NOT NULL,
    rulemaking_id TEXT NOT NULL,
    total_submissions INTEGER NOT NULL DEFAULT 0,
    unique_users INTEGER NOT NULL DEFAULT 0,
    states_represented INTEGER NOT NULL DEFAULT 0,
    avg_comment_length REAL NOT NULL DEFAULT 0,
    created_at TEXT NOT NULL,
    UNIQUE(date, rulemaking_id)
);

CREATE TABLE IF NOT EXISTS admin_users (
    id TEXT PRIMARY KEY,
    email TEXT NOT NULL UNIQUE,
    password_hash TEXT NOT NULL,
    name TEXT,
    role TEXT NOT NULL DEFAULT 'admin',
    is_active BOOLEAN NOT NULL DEFAULT 1,
    created_at TEXT NOT NULL,
    updated_at TEXT NOT NULL,
    last_login TEXT
);

CREATE INDEX IF NOT EXISTS idx_rulemakings_status ON rulemakings(status, comment_deadline);
CREATE INDEX IF NOT EXISTS idx_submissions_rulemaking ON submissions(rulemaking_id, created_at);
CREATE INDEX IF NOT EXISTS idx_submissions_status ON submissions(submission_status);
CREATE INDEX IF NOT EXISTS idx_analytics_rulemaking ON analytics(rulemaking_id, date);
"""

POSTGRES_SCHEMA = """
CREATE TABLE IF NOT EXISTS rulemakings (
    id TEXT PRIMARY KEY,
    agency TEXT NOT NULL,
    title TEXT NOT NULL,
    description TEXT,
    docket_id TEXT NOT NULL,
    federal_register_url TEXT,
    comment_deadline DATE NOT NULL,
    status TEXT NOT NULL,
    context_documents TEXT,
    legal_analysis TEXT,
    opposition_points TEXT,
    created_at TIMESTAMPTZ NOT NULL,
    updated_at TIMESTAMPTZ NOT NULL
);

CREATE TABLE IF NOT EXISTS submissions (
    id TEXT PRIMARY KEY,
    rulemaking_id TEXT NOT NULL,
    user_name TEXT NOT NULL,
    user_email TEXT,
    user_city TEXT,
    user_state TEXT,
    user_zip TEXT,
    personal_story TEXT,
    why_it_matters TEXT,
    experiences TEXT,
    concerns TEXT,
    generated_comment TEXT NOT NULL,
    final_comment TEXT,
    submission_status TEXT NOT NULL,
    federal_register_submission_id TEXT,
    ip_address TEXT,
    user_agent TEXT,
    recaptcha_verified BOOLEAN NOT NULL DEFAULT FALSE,
    created_at TIMESTAMPTZ NOT NULL,
    submitted_at TIMESTAMPTZ
);

CREATE TABLE IF NOT EXISTS analytics (
    id TEXT PRIMARY KEY,
    date DATE NOT NULL,
    rulemaking_id TEXT NOT NULL,
    total_submissions INTEGER NOT NULL DEFAULT 0,
    unique_users INTEGER NOT NULL DEFAULT 0,
    states_represented INTEGER NOT NULL DEFAULT 0,
    avg_comment_length DOUBLE PRECISION NOT NULL DEFAULT 0,
    created_at TIMESTAMPTZ NOT NULL,
    UNIQUE(date, rulemaking_id)
);

CREATE TABLE IF NOT EXISTS admin_users (
    id TEXT PRIMARY KEY,
    email TEXT NOT NULL UNIQUE,
    password_hash TEXT NOT NULL,
    name TEXT,
    role TEXT NOT NULL DEFAULT 'admin',
    is_active BOOLEAN NOT NULL DEFAULT TRUE,
    created_at TIMESTAMPTZ NOT NULL,
    updated_at TIMESTAMPTZ NOT NULL,
    last_login TIMESTAMPTZ
);

CREATE INDEX IF NOT EXISTS idx_rulemakings_status ON rulemakings(status, comment_deadline);
CREATE INDEX IF NOT EXISTS idx_submissions_rulemaking ON submissions(rulemaking_id, created_at);
CREATE INDEX IF NOT EXISTS idx_submissions_status ON submissions(submission_status);
CREATE INDEX IF NOT EXISTS idx_analytics_rulemaking ON analytics(rulemaking_id, date);
"""


def is_recent_write_conflict(exc: BaseException) -> bool:
    """True when the backend refused a write because the row is too fresh."""
    message = str(exc).lower()
    return any(marker in message for marker in RECENT_WRITE_MARKERS)


def _normalize_value(column: str, value: Any) -> Any:
    if column in BOOLEAN_COLUMNS and value is not None:
        return bool(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    return value


class RecordStore:
    """SQLite-backed record store.

    A new connection is opened per operation, so one instance can be shared by
    every request handler and background worker in the process.
    """

    schema_sql = SQLITE_SCHEMA

    def __init__(self, db_path: str = "commentdesk.db", timeout: float = 5.0):
        self.db_path = db_path
        self.timeout = timeout

    def _connect(self) -> Any:
        conn = sqlite3.connect(self.db_path, timeout=self.timeout)
        conn.row_factory = sqlite3.Row
        return conn

    def _translate(self, statement: str) -> str:
        return statement

    @contextmanager
    def _cursor(self) -> Iterator[Any]:
        conn = self._connect()
        try:
            cur = conn.cursor()
            yield cur
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def _columns_for(self, kind: str) -> Sequence[str]:
        try:
            return TABLE_COLUMNS[kind]
        except KeyError:
            raise StoreError(f"Unknown record kind: {kind}") from None

    def _execute(
        self, statement: str, parameters: Optional[Mapping[str, Any]] = None
    ) -> List[Dict[str, Any]]:
        sql = self._translate(statement)
        try:
            with self._cursor() as cur:
                cur.execute(sql, dict(parameters or {}))
                if cur.description is None:
                    return []
                names = [col[0] for col in cur.description]
                rows = cur.fetchall()
        except Exception as exc:
            raise StoreError("Database error", details=str(exc)) from exc

        return [
            {name: _normalize_value(name, row[name]) for name in names}
            for row in rows
        ]

    def _write(self, statement: str, parameters: Mapping[str, Any]) -> int:
        sql = self._translate(statement)
        with self._cursor() as cur:
            cur.execute(sql, dict(parameters))
            return cur.rowcount

    def ensure_schema(self) -> None:
        """Create record tables and indexes if needed."""
        conn = self._connect()
        try:
            conn.executescript(self.schema_sql)
            conn.commit()
        finally:
            conn.close()
        logger.info("Record store schema ensured")

    def insert(self, kind: str, records: Sequence[Mapping[str, Any]]) -> int:
        """Append rows of one kind; returns the number of rows written."""
        columns = self._columns_for(kind)
        if not records:
            return 0

        written = 0
        for record in records:
            unknown = set(record) - set(columns)
            if unknown:
                raise StoreError(
                    f"Unknown columns for {kind}", details=sorted(unknown)
                )
            names = list(record)
            sql = "INSERT INTO {table} ({cols}) VALUES ({vals})".format(
                table=kind,
                cols=", ".join(names),
                vals=", ".join(f":{name}" for name in names),
            )
            try:
                written += self._write(sql, record)
            except Exception as exc:
                raise StoreError(f"Failed to insert {kind} record", details=str(exc)) from exc

        logger.debug(f"Inserted {written} {kind} record(s)")
        return written

    def query(
        self, statement: str, parameters: Optional[Mapping[str, Any]] = None
    ) -> List[Dict[str, Any]]:
        """Run a parameterised read and return rows as dictionaries."""
        return self._execute(statement, parameters)

    def get_by_id(self, kind: str, record_id: str) -> Optional[Dict[str, Any]]:
        """Return the record with ``record_id`` or None when absent."""
        self._columns_for(kind)
        rows = self._execute(f"SELECT * FROM {kind} WHERE id = :id", {"id": record_id})
        return rows[0] if rows else None

    def update(self, kind: str, record_id: str, changes: Mapping[str, Any]) -> bool:
        """Apply a partial update.

        Returns False when the backend refuses to touch a freshly written row;
        callers must tolerate the update not having taken effect yet.
        """
        columns = self._columns_for(kind)
        fields = {k: v for k, v in changes.items() if k != "id"}
        unknown = set(fields) - set(columns)
        if unknown:
            raise StoreError(f"Unknown columns for {kind}", details=sorted(unknown))

        if "updated_at" in columns:
            fields["updated_at"] = utcnow().isoformat()
        if not fields:
            return True

        set_clause = ", ".join(f"{name} = :{name}" for name in fields)
        params = dict(fields)
        params["id"] = record_id
        sql = f"UPDATE {kind} SET {set_clause} WHERE id = :id"

        try:
            self._write(sql, params)
        except Exception as exc:
            if is_recent_write_conflict(exc):
                logger.warning(
                    f"Cannot update {kind} record {record_id} yet - row is still "
                    f"in the recent-write window: {exc}"
                )
                return False
            raise StoreError(f"Failed to update {kind} record", details=str(exc)) from exc
        return True

    def delete(self, kind: str, record_id: str) -> bool:
        """Remove a record outright; returns whether a row was deleted."""
        self._columns_for(kind)
        try:
            deleted = self._write(f"DELETE FROM {kind} WHERE id = :id", {"id": record_id})
        except Exception as exc:
            raise StoreError(f"Failed to delete {kind} record", details=str(exc)) from exc
        return deleted > 0

    def health_check(self) -> Dict[str, Any]:
        """Perform a simple database health check."""
        try:
            self._execute("SELECT 1 AS ok")
            return {"database": "ok"}
        except Exception as exc:
            return {"database": "error", "detail": str(exc)}


class RecordStorePG(RecordStore):
    """PostgreSQL-backed record store for production."""

    schema_sql = POSTGRES_SCHEMA

    def __init__(self, database_url: str):
        if not psycopg2:
            raise RuntimeError("psycopg2 is required for PostgreSQL backend")
        self.database_url = database_url

    def _connect(self) -> Any:
        try:
            return psycopg2.connect(
                self.database_url, cursor_factory=psycopg2.extras.RealDictCursor
            )
        except Exception as e:
            logger.error(f"Failed to connect to PostgreSQL: {e}")
            raise

    def _translate(self, statement: str) -> str:
        return _NAMED_PARAM.sub(r"%(\1)s", statement.replace("%", "%%"))

    def ensure_schema(self) -> None:
        with self._cursor() as cur:
            cur.execute(self.schema_sql)
        logger.info("PostgreSQL record store schema ensured")


def create_record_store(
    database_url: Optional[str] = None, database_file: str = "commentdesk.db"
) -> RecordStore:
    """Factory to create the appropriate record store backend."""
    if database_url and database_url.startswith("postgres"):
        try:
            store = RecordStorePG(database_url)
            store._connect().close()
            logger.info("Using PostgreSQL record store")
            return store
        except Exception as exc:
            logger.warning(
                "Failed to connect to Postgres backend (%s); falling back to SQLite. Detail: %s",
                database_url,
                exc,
            )
    logger.info(f"Using SQLite record store: {database_file}")
    return RecordStore(database_file)
