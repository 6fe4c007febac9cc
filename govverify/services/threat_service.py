"""
Cyber threat reports: creation with reference numbers, and lookups by perpetrator contact.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any

from govverify.core.config import THREAT_PAGE_SIZE
from govverify.core.database import Database, utc_now
from govverify.services import statistics

logger = logging.getLogger(__name__)

# Threat type label offered to the model -> stored enum value
THREAT_TYPES: dict[str, str] = {
    "Romance Scam": "ROMANCE_SCAM",
    "Investment Fraud": "INVESTMENT_FRAUD",
    "Impersonation": "IMPERSONATION",
    "Phishing": "PHISHING",
    "Mobile Money Fraud": "MOBILE_MONEY_FRAUD",
    "Job Scam": "JOB_SCAM",
    "Lottery/Prize Scam": "LOTTERY_PRIZE_SCAM",
    "Blackmail/Sextortion": "BLACKMAIL_SEXTORTION",
    "Other": "OTHER",
}


@dataclass
class ThreatReportCreated:
    report_id: int
    reference_number: str
    status: str
    reported_at: str


def reference_number(report_id: int, year: int | None = None) -> str:
    """Human-readable reference derived from the row id, e.g. TH-2025-00042."""
    year = year or datetime.now(timezone.utc).year
    return f"TH-{year}-{report_id:05d}"


def create_threat_report(
    db: Database,
    threat_type: str,
    description: str,
    platform: str,
    reporter_phone: str,
    amount_lost: float | None = None,
    perpetrator_contact: str | None = None,
    date_occurred: str | None = None,
    is_urgent: bool = False,
    evidence_ref: str | None = None,
) -> ThreatReportCreated:
    """
    Insert a threat report, back-fill its reference number, and count it in the
    daily statistics.

    All three writes share one transaction, so no reader ever sees the
    placeholder reference or a report missing from the day's counters.
    """
    threat_enum = THREAT_TYPES.get(threat_type, "OTHER")
    status = "URGENT" if is_urgent else "PENDING"
    now = utc_now()
    year = datetime.now(timezone.utc).year
    with db.transaction() as conn:
        cur = conn.execute(
            """
            INSERT INTO cyber_threat_reports (
                threat_type, description, platform, amount_lost, perpetrator_contact,
                date_occurred, is_urgent, status, reference_number, reporter_phone,
                evidence_ref, reported_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                threat_enum,
                description,
                platform,
                amount_lost if amount_lost else None,
                perpetrator_contact or None,
                date_occurred or None,
                1 if is_urgent else 0,
                status,
                f"TH-{year}-PENDING",
                reporter_phone,
                evidence_ref,
                now,
            ),
        )
        report_id = cur.lastrowid
        ref = reference_number(report_id, year)
        conn.execute(
            "UPDATE cyber_threat_reports SET reference_number = ? WHERE id = ?", (ref, report_id)
        )
        statistics.record_threat(conn, is_urgent, amount_lost)
    logger.info("[threats:create] id=%s ref=%s type=%s urgent=%s", report_id, ref, threat_enum, is_urgent)
    return ThreatReportCreated(report_id=report_id, reference_number=ref, status=status, reported_at=now)


def find_reports_by_contact(
    db: Database, contact: str, limit: int = THREAT_PAGE_SIZE
) -> list[dict[str, Any]]:
    """Prior reports whose perpetrator contact contains contact, most recent first."""
    contact = (contact or "").strip()
    if not contact:
        return []
    escaped = contact.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    with db.connection() as conn:
        rows = conn.execute(
            """
            SELECT id, threat_type, reported_at, reference_number FROM cyber_threat_reports
            WHERE perpetrator_contact LIKE ? ESCAPE '\\'
            ORDER BY reported_at DESC, id DESC
            LIMIT ?
            """,
            (f"%{escaped}%", limit),
        ).fetchall()
    return [dict(r) for r in rows]
