"""
API handlers: turn gateway events into agent turns and map results to HTTP.

Responsibility: Bridge HTTP types and the agent. Lives in the API layer so the
agent and services stay free of FastAPI types.
"""

import asyncio
import logging

from fastapi import HTTPException

from govverify.agent.context import LocationContext, MediaContext
from govverify.agent.orchestrator import Agent
from govverify.core.database import Database
from govverify.schemas.webhook import InboundEvent, LocationPayload, WebhookResponse
from govverify.services.statistics import record_user_activity

logger = logging.getLogger(__name__)

WELCOME_REPLY = (
    "Welcome! Forward me any message you want checked against official government sources, "
    "or tell me about a scam or cyber threat you want to report."
)
LOCATION_DEFAULT_MESSAGE = "I'm sharing my location."


def resolve_phone(event: InboundEvent) -> str | None:
    """Prefer phoneE164; otherwise derive +<digits> from a '<digits>@c.us' JID."""
    if event.phoneE164:
        return event.phoneE164
    if event.from_ and "@c.us" in event.from_:
        return f"+{event.from_.split('@')[0]}"
    return None


def is_binary_or_base64(value: str | None) -> bool:
    """Heuristic for image payloads that some clients put in location descriptions."""
    if not value or len(value) < 50:
        return False
    if value.startswith(("/9j/", "iVBORw", "R0lGOD")):
        return True
    non_printable = sum(1 for c in value if ord(c) < 32 or ord(c) > 126)
    return non_printable / len(value) > 0.3


def _location_context(location: LocationPayload) -> LocationContext:
    description = None
    for candidate in (location.description, location.address):
        if candidate and not is_binary_or_base64(candidate):
            description = candidate
            break
    return LocationContext(
        has_location=True,
        latitude=location.latitude,
        longitude=location.longitude,
        description=description,
    )


async def _record_activity(db: Database | None, phone: str) -> None:
    if db is None:
        return
    try:
        await asyncio.to_thread(record_user_activity, db, phone)
    except Exception:
        logger.exception("[api:inbound] failed to record user activity phone=%s", phone)


async def handle_inbound_event(event: InboundEvent, agent: Agent, db: Database | None = None) -> WebhookResponse:
    """
    Route one gateway event.

    A location share runs a turn even without text (a default message stands in);
    a text-less message gets the welcome reply; media rides along as context.
    """
    logger.info("[api:inbound] IN  event=%s from=%s phone=%s", event.event, event.from_, event.phoneE164)

    if event.event == "connected":
        return WebhookResponse(status="success", message="Client connected")
    if event.event == "disconnected":
        return WebhookResponse(status="success", message="Client disconnected")
    if event.event != "message":
        return WebhookResponse(status="unknown_event")

    phone = resolve_phone(event)
    if not phone:
        raise HTTPException(status_code=400, detail="Phone number required")

    await _record_activity(db, phone)

    if event.messageType == "location" and event.location is not None:
        location = _location_context(event.location)
        logger.info(
            "[api:inbound] location share phone=%s lat=%s lon=%s",
            phone, location.latitude, location.longitude,
        )
        text = event.message if event.message and event.message.strip() else LOCATION_DEFAULT_MESSAGE
        answer = await agent.process_message(text, phone, location=location)
        return WebhookResponse(status="success", answer=answer)

    if not event.message or not event.message.strip():
        return WebhookResponse(status="success", answer=WELCOME_REPLY)

    media = None
    if event.media is not None and event.media.data:
        logger.info(
            "[api:inbound] media attachment phone=%s mimetype=%s size=%s",
            phone, event.media.mimetype, event.media.size,
        )
        media = MediaContext(
            has_media=True,
            mime_type=event.media.mimetype,
            data=event.media.data,
            filename=event.media.filename,
            size=event.media.size,
        )

    answer = await agent.process_message(event.message, phone, media=media)
    logger.info("[api:inbound] OUT phone=%s answer_len=%d", phone, len(answer))
    return WebhookResponse(status="success", answer=answer)
