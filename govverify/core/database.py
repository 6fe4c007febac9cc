"""
SQLite persistence for verifications, data gaps, threat reports, and daily statistics.

Creates data/govverify.db (relative to project root) unless DATABASE_PATH points
elsewhere. One connection per operation; read-modify-write sequences run inside
BEGIN IMMEDIATE so concurrent writers serialize on the database lock.
"""

import logging
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path
from typing import Iterator

from govverify.core.config import DATABASE_PATH

logger = logging.getLogger(__name__)

# Project root (where data/ lives)
_ROOT = Path(__file__).resolve().parent.parent.parent

_SCHEMA = """
CREATE TABLE IF NOT EXISTS verifications (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    claim TEXT NOT NULL,
    category TEXT NOT NULL,
    status TEXT NOT NULL DEFAULT 'PENDING',
    confidence TEXT,
    result TEXT,
    rag_response TEXT,
    rag_index TEXT,
    sources TEXT,
    response_time_ms INTEGER,
    requester_phone TEXT NOT NULL,
    verified_by TEXT,
    explanation TEXT,
    requested_at TEXT NOT NULL,
    verified_at TEXT
);

CREATE TABLE IF NOT EXISTS information_requests (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    topic TEXT NOT NULL,
    category TEXT NOT NULL,
    ministry TEXT,
    priority TEXT NOT NULL DEFAULT 'NORMAL',
    request_count INTEGER NOT NULL DEFAULT 1,
    was_answered INTEGER NOT NULL DEFAULT 0,
    is_data_gap INTEGER NOT NULL DEFAULT 0,
    requester_phone TEXT NOT NULL,
    first_requested_at TEXT NOT NULL,
    last_requested_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_information_requests_gap
    ON information_requests(topic, category, is_data_gap, was_answered);

CREATE TABLE IF NOT EXISTS cyber_threat_reports (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    threat_type TEXT NOT NULL,
    description TEXT NOT NULL,
    platform TEXT NOT NULL,
    amount_lost REAL,
    perpetrator_contact TEXT,
    date_occurred TEXT,
    is_urgent INTEGER NOT NULL DEFAULT 0,
    status TEXT NOT NULL DEFAULT 'PENDING',
    reference_number TEXT NOT NULL,
    reporter_phone TEXT NOT NULL,
    evidence_ref TEXT,
    reported_at TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_threats_reported_at ON cyber_threat_reports(reported_at DESC);

CREATE TABLE IF NOT EXISTS daily_statistics (
    date TEXT PRIMARY KEY,
    total_verifications INTEGER NOT NULL DEFAULT 0,
    verified_true INTEGER NOT NULL DEFAULT 0,
    verified_false INTEGER NOT NULL DEFAULT 0,
    verified_partial INTEGER NOT NULL DEFAULT 0,
    unverified INTEGER NOT NULL DEFAULT 0,
    total_threats INTEGER NOT NULL DEFAULT 0,
    urgent_threats INTEGER NOT NULL DEFAULT 0,
    total_amount_lost_daily REAL NOT NULL DEFAULT 0,
    active_users INTEGER NOT NULL DEFAULT 0,
    new_users INTEGER NOT NULL DEFAULT 0,
    avg_response_time_ms INTEGER
);

CREATE TABLE IF NOT EXISTS users (
    phone TEXT PRIMARY KEY,
    first_seen TEXT NOT NULL,
    last_seen TEXT NOT NULL,
    last_seen_date TEXT NOT NULL,
    message_count INTEGER NOT NULL DEFAULT 0
);

CREATE TABLE IF NOT EXISTS activity_log (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    action TEXT NOT NULL,
    user_phone TEXT NOT NULL,
    details TEXT,
    timestamp TEXT NOT NULL
);
"""


def utc_now() -> str:
    """Current UTC time as an ISO-8601 string (the timestamp format stored in every table)."""
    return datetime.now(timezone.utc).isoformat()


def _resolve(path: str | Path) -> Path:
    p = Path(path)
    if str(path) == ":memory:" or p.is_absolute():
        return p
    return _ROOT / p


class Database:
    """Handle to the SQLite file. Cheap to share: every call opens its own connection."""

    def __init__(self, path: str | Path = DATABASE_PATH) -> None:
        self.path = _resolve(path)

    def connect(self) -> sqlite3.Connection:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        # Autocommit mode; transactions are opened explicitly in transaction().
        conn = sqlite3.connect(str(self.path), timeout=30.0, isolation_level=None)
        conn.row_factory = sqlite3.Row
        return conn

    @contextmanager
    def connection(self) -> Iterator[sqlite3.Connection]:
        conn = self.connect()
        try:
            yield conn
        finally:
            conn.close()

    @contextmanager
    def transaction(self) -> Iterator[sqlite3.Connection]:
        """
        Run a block inside BEGIN IMMEDIATE ... COMMIT.

        The write lock is taken up front, so a select-then-update inside the block
        cannot interleave with another writer. Rolls back on any exception.
        """
        conn = self.connect()
        try:
            conn.execute("BEGIN IMMEDIATE")
            try:
                yield conn
            except BaseException:
                conn.execute("ROLLBACK")
                raise
            conn.execute("COMMIT")
        finally:
            conn.close()

    def init_db(self) -> None:
        """Create all tables if they do not exist."""
        with self.connection() as conn:
            conn.executescript(_SCHEMA)
        logger.info("[database:init_db] ready path=%s", self.path)
