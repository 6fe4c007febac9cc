"""
API route aggregator: register endpoints; no logic, only delegate to handlers.
"""

import logging

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request

from govverify.agent.orchestrator import Agent
from govverify.api.handlers import handle_inbound_event
from govverify.core import config
from govverify.schemas.webhook import InboundEvent, WebhookResponse

logger = logging.getLogger(__name__)
router = APIRouter()


def get_agent(request: Request) -> Agent:
    agent = getattr(request.app.state, "agent", None)
    if agent is None:
        raise HTTPException(status_code=503, detail="Agent not initialized")
    return agent


def require_api_key(
    x_api_key: str | None = Header(None),
    api_key: str | None = Query(None),
) -> None:
    """X-API-Key header or api_key query must match AGENT_API_KEY (check disabled when unset)."""
    expected = config.AGENT_API_KEY
    if not expected:
        return
    if not x_api_key and not api_key:
        raise HTTPException(status_code=401, detail="Unauthorized: API key is required")
    if x_api_key != expected and api_key != expected:
        raise HTTPException(status_code=401, detail="Unauthorized: Invalid API key")


# --- System ---

@router.get("/health", tags=["system"])
def health(request: Request) -> dict:
    agent = getattr(request.app.state, "agent", None)
    return {
        "status": "healthy",
        "service": "gov-verify-agent",
        "activeConversations": agent.active_conversations() if agent else 0,
    }


# --- Webhook ---

@router.post(
    "/webhook/whatsapp",
    response_model=WebhookResponse,
    response_model_exclude_none=True,
    tags=["webhook"],
    summary="Inbound WhatsApp event",
    description="Accept connected/disconnected/message events from the WhatsApp client. Message events run one agent turn and return the reply as answer.",
    dependencies=[Depends(require_api_key)],
)
async def whatsapp_webhook(
    body: InboundEvent,
    request: Request,
    agent: Agent = Depends(get_agent),
) -> WebhookResponse:
    return await handle_inbound_event(body, agent, getattr(request.app.state, "db", None))


# --- Conversations ---

@router.delete(
    "/api/v1/conversation/{phone}",
    tags=["conversations"],
    summary="Clear a user's conversation history",
    dependencies=[Depends(require_api_key)],
)
def clear_conversation(phone: str, agent: Agent = Depends(get_agent)) -> dict:
    if agent.clear_conversation(phone):
        return {"success": True, "message": f"Conversation history cleared for {phone}"}
    raise HTTPException(status_code=404, detail=f"No conversation found for {phone}")
