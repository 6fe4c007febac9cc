"""
Real-time daily statistics: one counter row per local calendar day.

Every verification, threat report, and inbound user message reports here. Each
update is a single INSERT ... ON CONFLICT DO UPDATE statement, so the
get-or-create and the increment happen atomically in SQLite. SET expressions in
the conflict branch see the row as it was before the update, which is what the
running-average formula needs (pre-increment verification count).

Note: verifications are recorded when created, still PENDING, so only the total
moves at that point. Judgments do not re-increment the per-status counters.

record_verification and record_threat take the connection of the transaction
that creates the record, so a record and its increment commit together.
"""

import logging
import sqlite3
from datetime import date
from typing import Any

from govverify.core.database import Database, utc_now

logger = logging.getLogger(__name__)

# Terminal verification status -> per-status counter column
_STATUS_COLUMNS = {
    "VERIFIED": "verified_true",
    "FALSE": "verified_false",
    "PARTIALLY_TRUE": "verified_partial",
    "UNVERIFIED": "unverified",
}

_RECORD_VERIFICATION_SQL = """
INSERT INTO daily_statistics (
    date, total_verifications, verified_true, verified_false, verified_partial,
    unverified, avg_response_time_ms
) VALUES (:day, 1, :v_true, :v_false, :v_partial, :v_unverified, :sample)
ON CONFLICT(date) DO UPDATE SET
    total_verifications = total_verifications + 1,
    verified_true = verified_true + excluded.verified_true,
    verified_false = verified_false + excluded.verified_false,
    verified_partial = verified_partial + excluded.verified_partial,
    unverified = unverified + excluded.unverified,
    avg_response_time_ms = CASE
        WHEN :sample IS NULL THEN avg_response_time_ms
        ELSE CAST(ROUND(
            (COALESCE(avg_response_time_ms, 0) * total_verifications + :sample) * 1.0
            / (total_verifications + 1)
        ) AS INTEGER)
    END
"""

_RECORD_THREAT_SQL = """
INSERT INTO daily_statistics (date, total_threats, urgent_threats, total_amount_lost_daily)
VALUES (:day, 1, :urgent, :amount)
ON CONFLICT(date) DO UPDATE SET
    total_threats = total_threats + 1,
    urgent_threats = urgent_threats + excluded.urgent_threats,
    total_amount_lost_daily = total_amount_lost_daily + excluded.total_amount_lost_daily
"""

_RECORD_USERS_SQL = """
INSERT INTO daily_statistics (date, active_users, new_users)
VALUES (:day, :active, :new)
ON CONFLICT(date) DO UPDATE SET
    active_users = active_users + excluded.active_users,
    new_users = new_users + excluded.new_users
"""


def _day_key(day: date | None) -> str:
    """Local-midnight truncation: the row key is the local calendar date."""
    return (day or date.today()).isoformat()


def record_verification(
    conn: sqlite3.Connection,
    status: str,
    response_time_ms: int | None = None,
    day: date | None = None,
) -> None:
    """Count one verification for the day and fold response_time_ms into the running average."""
    column = _STATUS_COLUMNS.get(status)
    params = {
        "day": _day_key(day),
        "v_true": 1 if column == "verified_true" else 0,
        "v_false": 1 if column == "verified_false" else 0,
        "v_partial": 1 if column == "verified_partial" else 0,
        "v_unverified": 1 if column == "unverified" else 0,
        "sample": int(response_time_ms) if response_time_ms is not None else None,
    }
    conn.execute(_RECORD_VERIFICATION_SQL, params)
    logger.info(
        "[statistics:record_verification] day=%s status=%s response_time_ms=%s",
        params["day"], status, params["sample"],
    )


def record_threat(
    conn: sqlite3.Connection,
    is_urgent: bool,
    amount_lost: float | None = None,
    day: date | None = None,
) -> None:
    """Count one threat report; urgent ones also bump urgent_threats; positive losses are summed."""
    params = {
        "day": _day_key(day),
        "urgent": 1 if is_urgent else 0,
        "amount": float(amount_lost) if amount_lost and amount_lost > 0 else 0.0,
    }
    conn.execute(_RECORD_THREAT_SQL, params)
    logger.info(
        "[statistics:record_threat] day=%s urgent=%s amount_lost=%s",
        params["day"], bool(is_urgent), params["amount"],
    )


def record_user_activity(db: Database, phone: str, day: date | None = None) -> None:
    """
    Track an inbound message from phone.

    First message ever from a phone counts as a new user; first message of the day
    counts as an active user. Users row and counters move in one transaction.
    """
    if not phone:
        return
    day_key = _day_key(day)
    now = utc_now()
    with db.transaction() as conn:
        row = conn.execute(
            "SELECT last_seen_date FROM users WHERE phone = ?", (phone,)
        ).fetchone()
        if row is None:
            conn.execute(
                "INSERT INTO users (phone, first_seen, last_seen, last_seen_date, message_count) "
                "VALUES (?, ?, ?, ?, 1)",
                (phone, now, now, day_key),
            )
            is_new, is_active = 1, 1
        else:
            conn.execute(
                "UPDATE users SET last_seen = ?, last_seen_date = ?, message_count = message_count + 1 "
                "WHERE phone = ?",
                (now, day_key, phone),
            )
            is_new, is_active = 0, 1 if row["last_seen_date"] != day_key else 0
        if is_new or is_active:
            conn.execute(_RECORD_USERS_SQL, {"day": day_key, "active": is_active, "new": is_new})
    logger.info("[statistics:record_user_activity] day=%s new=%d active=%d", day_key, is_new, is_active)


def get_daily_statistics(db: Database, day: date | None = None) -> dict[str, Any] | None:
    """Return the statistics row for the day as a dict, or None if nothing was recorded yet."""
    with db.connection() as conn:
        row = conn.execute(
            "SELECT * FROM daily_statistics WHERE date = ?", (_day_key(day),)
        ).fetchone()
    return dict(row) if row is not None else None
