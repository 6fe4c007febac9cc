"""Direct row reads for assertions."""

import json
from typing import Any

from govverify.core.database import Database
from govverify.services.verification_service import truncate_topic


def verification(db: Database, verification_id: int) -> dict[str, Any] | None:
    with db.connection() as conn:
        row = conn.execute("SELECT * FROM verifications WHERE id = ?", (verification_id,)).fetchone()
    if row is None:
        return None
    out = dict(row)
    out["sources"] = json.loads(out["sources"]) if out.get("sources") else []
    return out


def threat_report(db: Database, report_id: int) -> dict[str, Any] | None:
    with db.connection() as conn:
        row = conn.execute("SELECT * FROM cyber_threat_reports WHERE id = ?", (report_id,)).fetchone()
    return dict(row) if row is not None else None


def data_gaps(db: Database, topic: str, category: str) -> list[dict[str, Any]]:
    with db.connection() as conn:
        rows = conn.execute(
            """
            SELECT * FROM information_requests
            WHERE topic = ? AND category = ? AND is_data_gap = 1 AND was_answered = 0
            """,
            (truncate_topic(topic), category),
        ).fetchall()
    return [dict(r) for r in rows]


def count(db: Database, table: str) -> int:
    with db.connection() as conn:
        return conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()[0]
