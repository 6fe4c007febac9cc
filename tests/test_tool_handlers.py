"""
Tests for agent tool handlers and dispatch, against a temporary database and fake clients.
"""

import asyncio
import sqlite3
from unittest.mock import patch

import rows
from fakes import FakeGateway, FakeRetriever, matches_result
from govverify.agent import handlers
from govverify.agent.context import MediaContext
from govverify.agent.tools import AGENT_TOOLS, TOOLS, UNKNOWN_TOOL, ToolName, execute_tool, resolve_tool
from govverify.core.errors import GatewayDeliveryError, RetrievalServiceError
from govverify.services import statistics
from govverify.services.retrieval_service import RetrievalResult, parse_response


def run(name, arguments, ctx):
    return asyncio.run(execute_tool(name, arguments, ctx))


# --- verify_information ---

def test_verify_with_no_matches_is_a_data_gap(db, make_ctx) -> None:
    ctx = make_ctx(FakeRetriever(RetrievalResult()))
    result = run("verify_information", {"claim": "Government is banning okada bikes", "category": "Other"}, ctx)

    assert result["success"] is True
    assert result["isDataGap"] is True
    assert result["ragResponse"] == handlers.NO_MATCH_RESPONSE
    assert result["instruction"] == handlers.DATA_GAP_INSTRUCTION

    record = rows.verification(db, result["verificationId"])
    assert record["status"] == "PENDING"
    assert record["category"] == "OTHER"
    gaps = rows.data_gaps(db, "Government is banning okada bikes", "OTHER")
    assert len(gaps) == 1
    assert gaps[0]["request_count"] == 1
    assert statistics.get_daily_statistics(db)["total_verifications"] == 1


def test_repeated_gap_claim_increments_existing_row(db, make_ctx) -> None:
    ctx = make_ctx(FakeRetriever(RetrievalResult()))
    args = {"claim": "Government is banning okada bikes", "category": "Other"}
    run("verify_information", args, ctx)
    run("verify_information", args, ctx)
    gaps = rows.data_gaps(db, args["claim"], "OTHER")
    assert len(gaps) == 1
    assert gaps[0]["request_count"] == 2


def test_verify_with_matches_combines_top_three(db, make_ctx) -> None:
    retriever = FakeRetriever(matches_result("one", "two", "three", "four"))
    result = run("verify_information", {"claim": "Fuel price rise", "category": "Financial"}, make_ctx(retriever))

    assert result["isDataGap"] is False
    assert result["ragResponse"].startswith("Based on official government documents:")
    assert "[Source 3] three" in result["ragResponse"]
    assert "four" not in result["ragResponse"]
    assert len(result["sources"]) == 3
    assert result["instruction"] == handlers.JUDGMENT_INSTRUCTION
    assert rows.data_gaps(db, "Fuel price rise", "FINANCIAL") == []


def test_status_message_without_matches_is_a_data_gap(db, make_ctx) -> None:
    result_body = parse_response({"matches": [], "message": "Search completed"})
    result = run(
        "verify_information",
        {"claim": "Government bans okada bikes", "category": "Government Policy"},
        make_ctx(FakeRetriever(result_body)),
    )
    assert result["isDataGap"] is True
    assert result["dataGapLogged"] is True
    assert result["ragResponse"] == handlers.NO_MATCH_RESPONSE
    assert len(rows.data_gaps(db, "Government bans okada bikes", "GOVERNMENT_POLICY")) == 1


def test_free_text_answer_without_matches_is_still_a_data_gap(db, make_ctx) -> None:
    retriever = FakeRetriever(RetrievalResult(answer="The ministry announced this on 1 May."))
    result = run("verify_information", {"claim": "x", "category": "Health"}, make_ctx(retriever))
    assert result["isDataGap"] is True
    assert len(rows.data_gaps(db, "x", "HEALTH")) == 1


def test_blank_claim_is_rejected_before_retrieval(db, make_ctx) -> None:
    retriever = FakeRetriever()
    result = run("verify_information", {"claim": "   ", "category": "Other"}, make_ctx(retriever))
    assert result["success"] is False
    assert retriever.queries == []
    assert rows.count(db, "verifications") == 0
    assert rows.count(db, "information_requests") == 0


def test_gap_logging_failure_still_records_verification(db, make_ctx) -> None:
    with patch(
        "govverify.services.verification_service.upsert_data_gap",
        side_effect=sqlite3.OperationalError("database is locked"),
    ):
        result = run("verify_information", {"claim": "Curfew tonight", "category": "Security"}, make_ctx())
    assert result["success"] is True
    assert result["isDataGap"] is True
    assert result["dataGapLogged"] is False
    assert rows.verification(db, result["verificationId"])["status"] == "PENDING"
    assert statistics.get_daily_statistics(db)["total_verifications"] == 1


def test_retrieval_failure_falls_back_and_still_records(db, make_ctx) -> None:
    retriever = FakeRetriever(error=RetrievalServiceError("boom", status_code=502))
    result = run("verify_information", {"claim": "Curfew tonight", "category": "Security"}, make_ctx(retriever))

    assert result["success"] is True
    assert result["ragResponse"] == handlers.RETRIEVAL_FALLBACK_RESPONSE
    assert result["isDataGap"] is False
    assert rows.verification(db, result["verificationId"])["status"] == "PENDING"


def test_update_verification_status(db, make_ctx) -> None:
    ctx = make_ctx(FakeRetriever(matches_result("Official text")))
    vid = run("verify_information", {"claim": "c", "category": "Legal"}, ctx)["verificationId"]
    result = run(
        "update_verification_status",
        {"verificationId": vid, "status": "VERIFIED", "confidence": "HIGH", "explanation": "Matches gazette."},
        ctx,
    )
    assert result["success"] is True
    assert rows.verification(db, vid)["status"] == "VERIFIED"


def test_update_unknown_verification_fails(make_ctx) -> None:
    result = run(
        "update_verification_status",
        {"verificationId": 404, "status": "FALSE", "confidence": "LOW", "explanation": ""},
        make_ctx(),
    )
    assert result["success"] is False
    assert "404" in result["error"]


def test_update_rejects_pending_status(make_ctx) -> None:
    result = run(
        "update_verification_status",
        {"verificationId": 1, "status": "PENDING", "confidence": "LOW", "explanation": ""},
        make_ctx(),
    )
    assert result["success"] is False
    assert result["error"].startswith("Invalid arguments")


# --- report_cyber_threat / check_threat_patterns ---

def test_report_cyber_threat_returns_reference(db, make_ctx, gateway: FakeGateway) -> None:
    result = run(
        "report_cyber_threat",
        {
            "threatType": "Mobile Money Fraud",
            "description": "Fake agent took my money",
            "platform": "SMS",
            "amountLost": 500000,
            "perpetratorContact": "+23288123456",
        },
        make_ctx(),
    )
    assert result["success"] is True
    assert result["referenceNumber"].startswith("TH-")
    assert result["referenceNumber"].endswith(f"{result['reportId']:05d}")
    assert result["advisorySent"] is False
    assert gateway.sent == []
    row = statistics.get_daily_statistics(db)
    assert row["total_threats"] == 1
    assert row["urgent_threats"] == 0
    assert row["total_amount_lost_daily"] == 500000


def test_urgent_report_sends_safety_advisory(make_ctx, gateway: FakeGateway) -> None:
    result = run(
        "report_cyber_threat",
        {"threatType": "Blackmail/Sextortion", "description": "Threatening me", "platform": "Facebook", "isUrgent": True},
        make_ctx(user_phone="+23276999999"),
    )
    assert result["advisorySent"] is True
    assert result["status"] == "URGENT - Priority Investigation"
    phone, message = gateway.sent[0]
    assert phone == "+23276999999"
    assert result["referenceNumber"] in message


def test_urgent_report_survives_gateway_failure(db, make_ctx) -> None:
    failing = FakeGateway(error=GatewayDeliveryError("+1", "down"))
    ctx = make_ctx(user_phone="+1")
    ctx.send_message = failing.send_message
    result = run(
        "report_cyber_threat",
        {"threatType": "Phishing", "description": "d", "platform": "Email", "isUrgent": True},
        ctx,
    )
    assert result["success"] is True
    assert result["advisorySent"] is False


def test_report_with_media_attaches_evidence(make_ctx) -> None:
    media = MediaContext(has_media=True, mime_type="image/jpeg", data="aGVsbG8=")
    result = run(
        "report_cyber_threat",
        {"threatType": "Romance Scam", "description": "d", "platform": "WhatsApp"},
        make_ctx(media=media),
    )
    assert result["evidenceAttached"] is True


def test_check_threat_patterns(make_ctx) -> None:
    ctx = make_ctx()
    for _ in range(2):
        run(
            "report_cyber_threat",
            {"threatType": "Job Scam", "description": "d", "platform": "SMS", "perpetratorContact": "+23288123456"},
            ctx,
        )
    known = run("check_threat_patterns", {"contactInfo": "+23288123456"}, ctx)
    assert known["isKnownThreat"] is True
    assert known["reportCount"] == 2
    assert known["reports"][0]["referenceNumber"].startswith("TH-")

    unknown = run("check_threat_patterns", {"contactInfo": "+23277000000"}, ctx)
    assert unknown["isKnownThreat"] is False
    assert unknown["reportCount"] == 0


# --- escalate_information_request / get_official_info ---

def test_escalation_counts_and_raises_priority(db, make_ctx) -> None:
    ctx = make_ctx()
    base = {"topic": "Where do I renew my passport?", "category": "ADMINISTRATIVE", "reason": "No data"}
    first = run("escalate_information_request", {**base, "priority": "HIGH"}, ctx)
    second = run("escalate_information_request", {**base, "priority": "NORMAL"}, ctx)
    assert first["requestId"] == second["requestId"]
    assert second["requestCount"] == 2
    assert second["priority"] == "HIGH"
    assert "2 citizens have asked" in second["message"]

    with db.connection() as conn:
        logged = conn.execute(
            "SELECT COUNT(*) FROM activity_log WHERE action = 'information_request_escalated'"
        ).fetchone()[0]
    assert logged == 2


def test_escalation_priority_defaults_to_normal(make_ctx) -> None:
    result = run(
        "escalate_information_request",
        {"topic": "School fees", "category": "EDUCATION", "reason": "none"},
        make_ctx(),
    )
    assert result["priority"] == "NORMAL"


def test_get_official_info_hit_and_miss(db, make_ctx) -> None:
    hit = run("get_official_info", {"topic": "passport fees"}, make_ctx(FakeRetriever(matches_result("Le 500,000"))))
    assert hit["found"] is True
    assert "Le 500,000" in hit["information"]

    miss = run("get_official_info", {"topic": "visa on arrival"}, make_ctx(FakeRetriever(RetrievalResult())))
    assert miss["found"] is False
    assert miss["isDataGap"] is True
    assert len(rows.data_gaps(db, "visa on arrival", "GENERAL")) == 1


# --- dispatch ---

def test_unknown_tool_returns_structured_failure(make_ctx) -> None:
    assert resolve_tool("delete_everything") is UNKNOWN_TOOL
    result = run("delete_everything", {}, make_ctx())
    assert result == {
        "success": False,
        "error": "Unknown function",
        "message": "Sorry, that operation is not available.",
    }


def test_invalid_arguments_return_failure(make_ctx) -> None:
    result = run("report_cyber_threat", {"threatType": "Phishing"}, make_ctx())
    assert result["success"] is False
    assert "description" in result["error"]


def test_catalog_matches_registry() -> None:
    names = [t["function"]["name"] for t in AGENT_TOOLS]
    assert names == [n.value for n in ToolName]
    assert all(TOOLS[n].name == n.value for n in ToolName)


# --- shared daily row and data gaps ---

def test_two_urgent_reports_sum_losses(db, make_ctx) -> None:
    ctx = make_ctx()
    for amount in (500000, 250000):
        run(
            "report_cyber_threat",
            {
                "threatType": "Mobile Money Fraud",
                "description": "Fake agent",
                "platform": "SMS",
                "amountLost": amount,
                "isUrgent": True,
            },
            ctx,
        )
    row = statistics.get_daily_statistics(db)
    assert row["total_threats"] == 2
    assert row["urgent_threats"] == 2
    assert row["total_amount_lost_daily"] == 750000


def test_concurrent_tool_calls_keep_exact_counts(db, make_ctx) -> None:
    claim = "Government is banning okada bikes"
    verify_ctx = make_ctx(FakeRetriever(RetrievalResult()))
    report_ctx = make_ctx()

    async def burst():
        verifications = [
            execute_tool("verify_information", {"claim": claim, "category": "Other"}, verify_ctx)
            for _ in range(30)
        ]
        reports = [
            execute_tool(
                "report_cyber_threat",
                {"threatType": "Phishing", "description": "d", "platform": "SMS", "amountLost": 1000},
                report_ctx,
            )
            for _ in range(30)
        ]
        return await asyncio.gather(*verifications, *reports)

    results = asyncio.run(burst())
    assert all(r["success"] for r in results)

    row = statistics.get_daily_statistics(db)
    assert row["total_verifications"] == 30
    assert row["total_threats"] == 30
    assert row["total_amount_lost_daily"] == 30000
    gaps = rows.data_gaps(db, claim, "OTHER")
    assert len(gaps) == 1
    assert gaps[0]["request_count"] == 30
    assert len({r["referenceNumber"] for r in results[30:]}) == 30
