"""
Agent orchestration: one inbound message -> model <-> tools -> one reply.

The loop appends the user's message to their transcript, asks the model for a
completion with the full tool catalog, runs any requested tool calls
concurrently, feeds the results back, and stops at plain content or after
MAX_TOOL_ITERATIONS model round-trips. The whole turn is also capped by a
wall-clock timeout. Every failure degrades to a fixed user-facing reply.
"""

import asyncio
import json
import logging
from typing import Any

from govverify.agent.context import LocationContext, MediaContext, Retriever, SendMessage, ToolContext
from govverify.agent.llm import ChatModel, ToolCall
from govverify.agent.tools import AGENT_TOOLS, execute_tool
from govverify.core.config import BRAND_NAME, MAX_TOOL_ITERATIONS, TURN_TIMEOUT_SECONDS
from govverify.core.database import Database
from govverify.core.session_store import ConversationSession, SessionStore

logger = logging.getLogger(__name__)

TAKING_TOO_LONG_REPLY = "Sorry, the request is taking too long. Please try again."
NO_RESPONSE_REPLY = "Sorry, I encountered an issue processing your request. Please try again."
ERROR_REPLY = "Sorry, I encountered an error. Please try again later."

SYSTEM_PROMPT = f"""You are {BRAND_NAME}, Sierra Leone's Official Government Information Verification Assistant and Cyber Threat Watchdog.

You help citizens verify information and report cyber threats through WhatsApp.

YOUR DUAL PURPOSE:
1. TRUTH ENGINE: verify information against official government sources.
2. CYBER WATCHDOG: let citizens report scams, fraud, and digital threats.

INFORMATION VERIFICATION:
- For any claim or factual question, call verify_information first. Never answer factual questions from memory.
- Read the retrieval response, decide VERIFIED, FALSE, PARTIALLY_TRUE, or UNVERIFIED, and record it with update_verification_status.
- If verify_information reports a data gap and the request is a legitimate government information need, call escalate_information_request.
- Cite sources (document, ministry, date) when the retrieval response provides them.
- Ratings: VERIFIED ✅ | PARTIALLY TRUE ⚠️ | FALSE ❌ | UNVERIFIED ❓

CYBER THREAT REPORTING:
- Guide the citizen through what happened, when, the platform, money lost, and perpetrator contact.
- Use check_threat_patterns when they share a perpetrator's phone number, email, or handle.
- Call report_cyber_threat and give them the reference number.
- Mark ongoing threats or immediate danger as urgent and give immediate safety advice.

CATEGORIES YOU VERIFY: Government Policy, Health, Security, Financial, Legal, Administrative.
THREATS YOU TRACK: romance scams, investment fraud, impersonation, phishing, mobile money fraud, job scams, lottery/prize scams, blackmail/sextortion.

COMMUNICATION STYLE:
- Clear, authoritative, and empathetic with scam victims.
- Short paragraphs for WhatsApp, key information in *bold*.
- Understand Krio expressions and local English.

SECURITY & PRIVACY:
- Never ask for passwords or PINs and never request money transfers.
- Keep reporters anonymous by default."""


def build_envelope(text: str, user_id: str, location: LocationContext | None = None) -> str:
    """Prefix the raw text with the caller identity and, when shared, a location tag."""
    envelope = f"[User texting from: {user_id}]"
    if location is not None and location.usable:
        tag = f"{location.latitude}, {location.longitude}"
        if location.description:
            tag += f" - {location.description}"
        envelope += f"\n[LOCATION_SHARED: {tag}]"
    return f"{envelope}\n\n{text}"


def _parse_arguments(raw: str | dict | None) -> dict[str, Any]:
    """Decode a tool call's argument payload. Raises ValueError if it is not a JSON object."""
    if isinstance(raw, dict):
        return raw
    parsed = json.loads(raw or "{}")
    if not isinstance(parsed, dict):
        raise ValueError(f"expected a JSON object, got {type(parsed).__name__}")
    return parsed


def _close_pending_tool_calls(messages: list[dict[str, Any]]) -> None:
    """
    Answer tool calls left open by a cancelled turn.

    The model API rejects a transcript where an assistant tool_calls message is not
    followed by one tool message per call id.
    """
    for idx in range(len(messages) - 1, -1, -1):
        msg = messages[idx]
        if msg.get("role") == "assistant" and msg.get("tool_calls"):
            answered = {m.get("tool_call_id") for m in messages[idx + 1:] if m.get("role") == "tool"}
            for tc in msg["tool_calls"]:
                if tc["id"] not in answered:
                    messages.append({
                        "role": "tool",
                        "tool_call_id": tc["id"],
                        "content": json.dumps({"success": False, "error": "Cancelled: turn timed out"}),
                    })
            return
        if msg.get("role") == "user":
            return


class Agent:
    """Tool-calling agent bound to a session store, a model, and the persistence layer."""

    def __init__(
        self,
        llm: ChatModel,
        db: Database,
        retrieval: Retriever,
        send_message: SendMessage,
        sessions: SessionStore | None = None,
        max_iterations: int = MAX_TOOL_ITERATIONS,
        turn_timeout: float | None = TURN_TIMEOUT_SECONDS,
    ) -> None:
        self.llm = llm
        self.db = db
        self.retrieval = retrieval
        self.send_message = send_message
        self.sessions = sessions if sessions is not None else SessionStore(SYSTEM_PROMPT)
        self.max_iterations = max_iterations
        self.turn_timeout = turn_timeout

    def clear_conversation(self, user_id: str) -> bool:
        return self.sessions.clear(user_id)

    def active_conversations(self) -> int:
        return self.sessions.active_count()

    async def process_message(
        self,
        text: str,
        user_id: str,
        location: LocationContext | None = None,
        media: MediaContext | None = None,
    ) -> str:
        """Run one turn for user_id and return the reply. Never raises."""
        logger.info(
            "[agent:process_message] IN  user=%s text=%r has_location=%s has_media=%s",
            user_id, (text or "")[:100], bool(location and location.usable), bool(media and media.has_media),
        )
        session = self.sessions.get_or_create(user_id)
        ctx = ToolContext(
            user_phone=user_id,
            db=self.db,
            retrieval=self.retrieval,
            send_message=self.send_message,
            location=location,
            media=media,
        )
        try:
            async with session.turn_lock:
                if self.turn_timeout:
                    return await asyncio.wait_for(self._run_turn(session, text, ctx), self.turn_timeout)
                return await self._run_turn(session, text, ctx)
        except asyncio.TimeoutError:
            logger.error("[agent:process_message] turn timed out user=%s timeout=%ss", user_id, self.turn_timeout)
            _close_pending_tool_calls(session.messages)
            return TAKING_TOO_LONG_REPLY
        except Exception:
            logger.exception("[agent:process_message] turn failed user=%s", user_id)
            return ERROR_REPLY

    async def _run_turn(self, session: ConversationSession, text: str, ctx: ToolContext) -> str:
        messages = session.messages
        messages.append({"role": "user", "content": build_envelope(text, ctx.user_phone, ctx.location)})

        for iteration in range(1, self.max_iterations + 1):
            completion = await self.llm.complete(messages, AGENT_TOOLS)
            if not completion.wants_tools:
                if completion.content:
                    messages.append({"role": "assistant", "content": completion.content})
                    logger.info(
                        "[agent:run_turn] OUT user=%s iterations=%d reply_len=%d transcript=%d",
                        ctx.user_phone, iteration, len(completion.content), len(messages),
                    )
                    return completion.content
                logger.warning(
                    "[agent:run_turn] no assistant content user=%s finish_reason=%s",
                    ctx.user_phone, completion.finish_reason,
                )
                return NO_RESPONSE_REPLY

            messages.append(completion.assistant_message())
            logger.info(
                "[agent:run_turn] iteration=%d tool_calls=%s",
                iteration, [tc.name for tc in completion.tool_calls],
            )
            results = await asyncio.gather(*(self._run_tool_call(tc, ctx) for tc in completion.tool_calls))
            messages.extend(results)

        logger.error("[agent:run_turn] max tool iterations reached user=%s max=%d", ctx.user_phone, self.max_iterations)
        return TAKING_TOO_LONG_REPLY

    async def _run_tool_call(self, call: ToolCall, ctx: ToolContext) -> dict[str, Any]:
        """Execute one tool call and wrap the outcome as a tool-role message correlated by call id."""
        try:
            args = _parse_arguments(call.arguments)
        except ValueError as e:
            logger.error("[agent:run_tool_call] bad arguments name=%s raw=%r: %s", call.name, call.arguments, e)
            result: dict[str, Any] = {"success": False, "error": "Invalid tool arguments format"}
        else:
            result = await execute_tool(call.name, args, ctx)
        return {"role": "tool", "tool_call_id": call.id, "content": json.dumps(result, default=str)}
