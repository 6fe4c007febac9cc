"""
Verification lifecycle and data-gap tracking.

Responsibility: persist VerificationRecords (created PENDING, judged exactly once
into a terminal status) and upsert InformationRequest rows for topics the
knowledge base cannot answer. No HTTP and no LLM here; tool handlers call in.
"""

import json
import logging
from dataclasses import dataclass
from enum import Enum
from typing import Any

from govverify.core.config import TOPIC_MAX_LENGTH
from govverify.core.database import Database, utc_now
from govverify.services import statistics

logger = logging.getLogger(__name__)


class VerificationStatus(str, Enum):
    PENDING = "PENDING"
    VERIFIED = "VERIFIED"
    FALSE = "FALSE"
    PARTIALLY_TRUE = "PARTIALLY_TRUE"
    UNVERIFIED = "UNVERIFIED"


TERMINAL_STATUSES = frozenset({
    VerificationStatus.VERIFIED,
    VerificationStatus.FALSE,
    VerificationStatus.PARTIALLY_TRUE,
    VerificationStatus.UNVERIFIED,
})


class Confidence(str, Enum):
    HIGH = "HIGH"
    MEDIUM = "MEDIUM"
    LOW = "LOW"


class Priority(str, Enum):
    NORMAL = "NORMAL"
    HIGH = "HIGH"
    URGENT = "URGENT"

    @property
    def rank(self) -> int:
        return _PRIORITY_RANK[self]


_PRIORITY_RANK = {Priority.NORMAL: 0, Priority.HIGH: 1, Priority.URGENT: 2}


def max_priority(current: str, requested: str) -> Priority:
    """Priority only ever goes up: NORMAL < HIGH < URGENT."""
    a, b = Priority(current), Priority(requested)
    return b if b.rank > a.rank else a


# Category label offered to the model -> stored enum value
VERIFICATION_CATEGORIES: dict[str, str] = {
    "Government Policy": "GOVERNMENT_POLICY",
    "Health": "HEALTH",
    "Security": "SECURITY",
    "Financial": "FINANCIAL",
    "Legal": "LEGAL",
    "Administrative": "ADMINISTRATIVE",
    "Other": "OTHER",
}


def map_category(label: str) -> str:
    """Map a verification category label to its enum value; unknown labels become OTHER."""
    return VERIFICATION_CATEGORIES.get(label, "OTHER")


@dataclass(frozen=True)
class Judgment:
    """Terminal verdict on a claim, produced by the model through update_verification_status."""

    status: VerificationStatus
    confidence: Confidence
    explanation: str = ""

    def __post_init__(self) -> None:
        if self.status not in TERMINAL_STATUSES:
            raise ValueError(f"Judgment status must be terminal, got {self.status.value}")


@dataclass
class DataGapHit:
    """Outcome of a data-gap upsert."""

    request_id: int
    request_count: int
    priority: Priority
    created: bool


def truncate_topic(topic: str) -> str:
    return (topic or "").strip()[:TOPIC_MAX_LENGTH]


def create_verification(
    db: Database,
    claim: str,
    category: str,
    requester_phone: str,
    rag_response: str,
    sources: list[dict[str, Any]] | None = None,
    response_time_ms: int | None = None,
    rag_index: str | None = None,
) -> int:
    """
    Insert a PENDING verification record and return its id.

    The record and its daily-statistics increment share one transaction.
    """
    now = utc_now()
    with db.transaction() as conn:
        cur = conn.execute(
            """
            INSERT INTO verifications (
                claim, category, status, result, rag_response, rag_index, sources,
                response_time_ms, requester_phone, verified_by, requested_at
            ) VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (
                claim,
                category,
                VerificationStatus.PENDING.value,
                rag_response,
                rag_response,
                rag_index,
                json.dumps(sources) if sources else None,
                response_time_ms,
                requester_phone,
                "Knowledge Base Retrieval",
                now,
            ),
        )
        verification_id = cur.lastrowid
        statistics.record_verification(conn, VerificationStatus.PENDING.value, response_time_ms)
    logger.info("[verification:create] id=%s category=%s status=PENDING", verification_id, category)
    return verification_id


def record_judgment(db: Database, verification_id: int, judgment: Judgment) -> bool:
    """
    Write the terminal status/confidence of a verification. Returns False if the id is unknown.

    Re-invoking overwrites the previous judgment; PENDING is never a target.
    """
    with db.connection() as conn:
        cur = conn.execute(
            """
            UPDATE verifications
            SET status = ?, confidence = ?, explanation = ?, verified_at = ?, verified_by = ?
            WHERE id = ?
            """,
            (
                judgment.status.value,
                judgment.confidence.value,
                judgment.explanation,
                utc_now(),
                "LLM Analysis",
                verification_id,
            ),
        )
        updated = cur.rowcount > 0
    logger.info(
        "[verification:record_judgment] id=%s status=%s confidence=%s updated=%s",
        verification_id, judgment.status.value, judgment.confidence.value, updated,
    )
    return updated


def upsert_data_gap(
    db: Database,
    topic: str,
    category: str,
    requester_phone: str,
    priority: str = Priority.NORMAL.value,
    ministry: str | None = None,
) -> DataGapHit:
    """
    Count a request for information the knowledge base does not have.

    Keyed on (topic, category) among unanswered data gaps: an existing row gets
    request_count + 1, a fresh last_requested_at, and a priority raised to the
    requested one if that is strictly higher. Otherwise a new row starts at 1.
    """
    topic = truncate_topic(topic)
    requested = Priority(priority)
    now = utc_now()
    with db.transaction() as conn:
        row = conn.execute(
            """
            SELECT id, request_count, priority, ministry FROM information_requests
            WHERE topic = ? AND category = ? AND is_data_gap = 1 AND was_answered = 0
            ORDER BY id ASC LIMIT 1
            """,
            (topic, category),
        ).fetchone()
        if row is not None:
            new_priority = max_priority(row["priority"], requested.value)
            conn.execute(
                """
                UPDATE information_requests
                SET request_count = request_count + 1, last_requested_at = ?,
                    requester_phone = ?, priority = ?, ministry = COALESCE(ministry, ?)
                WHERE id = ?
                """,
                (now, requester_phone, new_priority.value, ministry or None, row["id"]),
            )
            hit = DataGapHit(
                request_id=row["id"],
                request_count=row["request_count"] + 1,
                priority=new_priority,
                created=False,
            )
        else:
            cur = conn.execute(
                """
                INSERT INTO information_requests (
                    topic, category, ministry, priority, request_count, was_answered,
                    is_data_gap, requester_phone, first_requested_at, last_requested_at
                ) VALUES (?, ?, ?, ?, 1, 0, 1, ?, ?, ?)
                """,
                (topic, category, ministry or None, requested.value, requester_phone, now, now),
            )
            hit = DataGapHit(request_id=cur.lastrowid, request_count=1, priority=requested, created=True)
    logger.info(
        "[verification:upsert_data_gap] id=%s topic=%r count=%d priority=%s created=%s",
        hit.request_id, topic[:100], hit.request_count, hit.priority.value, hit.created,
    )
    return hit


def log_answered_request(
    db: Database,
    topic: str,
    category: str,
    requester_phone: str,
    ministry: str | None = None,
) -> int:
    """Record an information request the knowledge base could answer."""
    now = utc_now()
    with db.connection() as conn:
        cur = conn.execute(
            """
            INSERT INTO information_requests (
                topic, category, ministry, priority, request_count, was_answered,
                is_data_gap, requester_phone, first_requested_at, last_requested_at
            ) VALUES (?, ?, ?, ?, 1, 1, 0, ?, ?, ?)
            """,
            (truncate_topic(topic), category, ministry or None, Priority.NORMAL.value,
             requester_phone, now, now),
        )
        return cur.lastrowid


def log_activity(db: Database, action: str, user_phone: str, details: dict[str, Any]) -> None:
    with db.connection() as conn:
        conn.execute(
            "INSERT INTO activity_log (action, user_phone, details, timestamp) VALUES (?, ?, ?, ?)",
            (action, user_phone or "unknown", json.dumps(details, default=str), utc_now()),
        )
