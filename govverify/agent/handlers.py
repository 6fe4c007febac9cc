"""
Tool handlers: the side-effecting half of each agent tool.

Every handler takes (arguments, context) and returns a JSON-serializable dict:
{"success": True, ..., "message"} or {"success": False, "error", "message"}.
Nothing raises past the handler boundary. Blocking SQLite work runs in a thread
so other users' turns keep moving.
"""

import asyncio
import functools
import logging
import sqlite3
import time
from typing import Any, Awaitable, Callable

from pydantic import BaseModel, ValidationError

from govverify.agent.context import ToolContext
from govverify.core.config import RAG_TOP_MATCHES
from govverify.core.errors import GatewayDeliveryError, RetrievalServiceError
from govverify.schemas.tools import (
    CheckThreatPatternsArgs,
    EscalateInformationRequestArgs,
    GetOfficialInfoArgs,
    ReportCyberThreatArgs,
    UpdateVerificationStatusArgs,
    VerifyInformationArgs,
)
from govverify.services import threat_service, verification_service
from govverify.services.retrieval_service import RetrievalMatch
from govverify.services.verification_service import Confidence, Judgment, VerificationStatus

logger = logging.getLogger(__name__)

ToolHandler = Callable[[dict[str, Any], ToolContext], Awaitable[dict[str, Any]]]

NO_MATCH_RESPONSE = "No relevant information found in government documents for this query."
RETRIEVAL_FALLBACK_RESPONSE = (
    "Unable to verify this information against official sources at this time. "
    "Please check official government channels or contact relevant ministries directly."
)
DATA_GAP_INSTRUCTION = (
    "DATA GAP DETECTED: No information found in the system. This has been automatically logged "
    "for analytics. Now YOU decide: Is this a legitimate government information request that "
    "should be escalated to HIGH priority? If yes, call escalate_information_request. Then respond "
    "to the user explaining the information is not available yet."
)
JUDGMENT_INSTRUCTION = (
    "Analyze the retrieval response above. Determine if the claim is VERIFIED (true), FALSE "
    "(misinformation), PARTIALLY_TRUE (mixed), or UNVERIFIED (insufficient info). Record it with "
    "update_verification_status, then respond to the user with your judgment and explanation."
)
URGENT_SAFETY_ADVICE = (
    "⚠️ *Urgent safety advice*\n"
    "- Do NOT send any more money\n"
    "- Block the contact and report the account on the platform\n"
    "- Keep all messages and screenshots as evidence\n"
    "- Contact the Police Cyber Crime Unit if you are in immediate danger"
)


def failure(error: str, message: str) -> dict[str, Any]:
    return {"success": False, "error": error, "message": message}


def _validation_summary(e: ValidationError) -> str:
    return "; ".join(
        f"{'.'.join(str(p) for p in err.get('loc', ())) or 'arguments'}: {err.get('msg', '')}"
        for err in e.errors()
    )


def tool_handler(args_model: type[BaseModel], failure_message: str):
    """
    Validate arguments against args_model and contain every failure at the handler boundary.

    Invalid arguments and any exception from the body become a structured failure
    carrying failure_message for the user.
    """

    def decorate(fn: Callable[[Any, ToolContext], Awaitable[dict[str, Any]]]) -> ToolHandler:
        @functools.wraps(fn)
        async def wrapper(arguments: dict[str, Any], ctx: ToolContext) -> dict[str, Any]:
            try:
                args = args_model.model_validate(arguments if arguments is not None else {})
            except ValidationError as e:
                summary = _validation_summary(e)
                logger.warning("[tools:%s] invalid arguments: %s", fn.__name__, summary)
                return failure(f"Invalid arguments: {summary}", failure_message)
            try:
                return await fn(args, ctx)
            except Exception as e:
                logger.exception("[tools:%s] failed phone=%s", fn.__name__, ctx.user_phone)
                return failure(str(e) or e.__class__.__name__, failure_message)

        return wrapper

    return decorate


def _combine_matches(matches: list[RetrievalMatch]) -> str:
    combined = "\n\n".join(f"[Source {i}] {m.text}" for i, m in enumerate(matches, 1))
    return f"Based on official government documents:\n\n{combined}"


# --- verify_information ---

@tool_handler(VerifyInformationArgs, "Unable to verify this information at this time. Please try again later.")
async def verify_information(args: VerifyInformationArgs, ctx: ToolContext) -> dict[str, Any]:
    """
    Check a claim against the knowledge base and open a PENDING verification.

    Zero matches is a data gap: the gap is logged for (claim, category) after the
    verification is stored. A retrieval outage falls back to a fixed response. The
    verification is persisted in every case, together with its statistics increment.
    """
    started = time.perf_counter()
    category = verification_service.map_category(args.category)
    logger.info("[tools:verify_information] IN  claim=%r category=%s phone=%s", args.claim[:100], category, ctx.user_phone)

    sources: list[dict[str, Any]] = []
    is_data_gap = False
    try:
        result = await ctx.retrieval.search(args.claim)
    except RetrievalServiceError as e:
        logger.error("[tools:verify_information] retrieval failed: %s", e.message)
        rag_response = RETRIEVAL_FALLBACK_RESPONSE
    else:
        if result.is_empty:
            rag_response = NO_MATCH_RESPONSE
            is_data_gap = True
        else:
            top = result.matches[:RAG_TOP_MATCHES]
            rag_response = _combine_matches(top)
            sources = [m.source() for m in top]

    elapsed_ms = int((time.perf_counter() - started) * 1000)
    verification_id = await asyncio.to_thread(
        verification_service.create_verification,
        ctx.db, args.claim, category, ctx.user_phone, rag_response, sources, elapsed_ms,
        getattr(ctx.retrieval, "index_name", None),
    )

    data_gap_logged = False
    if is_data_gap:
        try:
            await asyncio.to_thread(
                verification_service.upsert_data_gap,
                ctx.db, args.claim, category, ctx.user_phone,
            )
            data_gap_logged = True
        except sqlite3.Error:
            logger.exception("[tools:verify_information] data gap not logged verification_id=%s", verification_id)

    logger.info("[tools:verify_information] OUT id=%s data_gap=%s sources=%d", verification_id, is_data_gap, len(sources))
    return {
        "success": True,
        "verificationId": verification_id,
        "ragResponse": rag_response,
        "claim": args.claim,
        "category": args.category,
        "sources": sources,
        "isDataGap": is_data_gap,
        "dataGapLogged": data_gap_logged,
        "instruction": DATA_GAP_INSTRUCTION if is_data_gap else JUDGMENT_INSTRUCTION,
        "message": "Verification request recorded, awaiting judgment.",
    }


# --- update_verification_status ---

@tool_handler(UpdateVerificationStatusArgs, "Unable to record the verification judgment.")
async def update_verification_status(args: UpdateVerificationStatusArgs, ctx: ToolContext) -> dict[str, Any]:
    judgment = Judgment(
        status=VerificationStatus(args.status),
        confidence=Confidence(args.confidence),
        explanation=args.explanation,
    )
    updated = await asyncio.to_thread(
        verification_service.record_judgment, ctx.db, args.verificationId, judgment,
    )
    if not updated:
        return failure(
            f"Verification {args.verificationId} not found",
            "Unable to record the verification judgment.",
        )
    return {
        "success": True,
        "verificationId": args.verificationId,
        "status": judgment.status.value,
        "confidence": judgment.confidence.value,
        "explanation": judgment.explanation,
        "message": "Verification judgment recorded",
    }


# --- report_cyber_threat ---

@tool_handler(ReportCyberThreatArgs, "Unable to submit your report at this time. Please try again.")
async def report_cyber_threat(args: ReportCyberThreatArgs, ctx: ToolContext) -> dict[str, Any]:
    logger.info(
        "[tools:report_cyber_threat] IN  type=%s platform=%s amount_lost=%s urgent=%s phone=%s",
        args.threatType, args.platform, args.amountLost, args.isUrgent, ctx.user_phone,
    )
    evidence_ref = None
    if ctx.media and ctx.media.has_media:
        evidence_ref = f"evidence_{int(time.time() * 1000)}_{ctx.user_phone}"

    created = await asyncio.to_thread(
        threat_service.create_threat_report,
        ctx.db,
        args.threatType,
        args.description,
        args.platform,
        ctx.user_phone,
        args.amountLost,
        args.perpetratorContact,
        args.dateOccurred,
        args.isUrgent,
        evidence_ref,
    )

    advisory_sent = False
    if args.isUrgent and ctx.user_phone:
        try:
            await ctx.send_message(
                ctx.user_phone,
                f"Report {created.reference_number} received.\n\n{URGENT_SAFETY_ADVICE}",
            )
            advisory_sent = True
        except GatewayDeliveryError as e:
            logger.warning("[tools:report_cyber_threat] advisory not delivered: %s", e)

    return {
        "success": True,
        "reportId": created.report_id,
        "referenceNumber": created.reference_number,
        "status": "URGENT - Priority Investigation" if args.isUrgent else "Logged - Under Review",
        "evidenceAttached": evidence_ref is not None,
        "advisorySent": advisory_sent,
        "reportedAt": created.reported_at,
        "message": (
            "Your urgent threat report has been logged and prioritized for immediate investigation."
            if args.isUrgent
            else "Your threat report has been logged. An investigator may contact you for more details."
        ),
    }


# --- check_threat_patterns ---

@tool_handler(CheckThreatPatternsArgs, "Unable to check threat patterns at this time.")
async def check_threat_patterns(args: CheckThreatPatternsArgs, ctx: ToolContext) -> dict[str, Any]:
    reports = await asyncio.to_thread(threat_service.find_reports_by_contact, ctx.db, args.contactInfo)
    known = len(reports) > 0
    return {
        "success": True,
        "isKnownThreat": known,
        "reportCount": len(reports),
        "reports": [
            {
                "id": r["id"],
                "threatType": r["threat_type"],
                "reportedAt": r["reported_at"],
                "referenceNumber": r["reference_number"],
            }
            for r in reports
        ],
        "message": (
            f"⚠️ WARNING: This contact has been reported {len(reports)} time(s) for cyber threats."
            if known
            else "No previous reports found for this contact."
        ),
    }


# --- escalate_information_request ---

@tool_handler(EscalateInformationRequestArgs, "Unable to record your request at this time. Please try again later.")
async def escalate_information_request(args: EscalateInformationRequestArgs, ctx: ToolContext) -> dict[str, Any]:
    logger.info(
        "[tools:escalate_information_request] IN  topic=%r category=%s priority=%s phone=%s",
        args.topic[:100], args.category, args.priority, ctx.user_phone,
    )
    hit = await asyncio.to_thread(
        verification_service.upsert_data_gap,
        ctx.db, args.topic, args.category, ctx.user_phone, args.priority, args.ministry,
    )
    await asyncio.to_thread(
        verification_service.log_activity,
        ctx.db,
        "information_request_escalated",
        ctx.user_phone,
        {
            "requestId": hit.request_id,
            "topic": args.topic,
            "category": args.category,
            "priority": hit.priority.value,
            "reason": args.reason,
            "requestCount": hit.request_count,
        },
    )

    emoji = {"URGENT": "🚨", "HIGH": "⚠️"}.get(hit.priority.value, "📋")
    count_note = f" ({hit.request_count} citizens have asked about this)" if hit.request_count > 1 else ""
    forward_to = f"the {args.ministry}" if args.ministry else "the relevant ministry"
    return {
        "success": True,
        "requestId": hit.request_id,
        "requestCount": hit.request_count,
        "priority": hit.priority.value,
        "message": (
            f"{emoji} Your request has been recorded (Request #{hit.request_id}){count_note}.\n\n"
            f'We don\'t have official information about "{args.topic}" yet, but your question helps '
            f"us identify what information citizens need.\n\n"
            f"This will be forwarded to {forward_to}."
        ),
    }


# --- get_official_info ---

@tool_handler(GetOfficialInfoArgs, "Unable to retrieve this information at this time.")
async def get_official_info(args: GetOfficialInfoArgs, ctx: ToolContext) -> dict[str, Any]:
    result = await ctx.retrieval.search(args.topic)
    if result.is_empty:
        hit = await asyncio.to_thread(
            verification_service.upsert_data_gap,
            ctx.db, args.topic, "GENERAL", ctx.user_phone, "NORMAL", args.ministry,
        )
        return {
            "success": True,
            "found": False,
            "topic": args.topic,
            "isDataGap": True,
            "requestId": hit.request_id,
            "instruction": DATA_GAP_INSTRUCTION,
            "message": "No official information on this topic yet. Please contact the relevant ministry directly.",
        }

    await asyncio.to_thread(
        verification_service.log_answered_request,
        ctx.db, args.topic, "GENERAL", ctx.user_phone, args.ministry,
    )
    top = result.matches[:RAG_TOP_MATCHES]
    return {
        "success": True,
        "found": True,
        "topic": args.topic,
        "information": _combine_matches(top),
        "sources": [m.source() for m in top],
        "source": args.ministry or "Government of Sierra Leone",
        "message": "Official information retrieved.",
    }
