"""Schemas for the messaging-gateway webhook."""

from pydantic import BaseModel, Field


class LocationPayload(BaseModel):
    """A shared WhatsApp location."""

    latitude: float
    longitude: float
    description: str | None = None
    address: str | None = None


class MediaPayload(BaseModel):
    """A media attachment; data is base64 encoded."""

    mimetype: str = "application/octet-stream"
    data: str | None = None
    filename: str | None = None
    size: int | None = None


class InboundEvent(BaseModel):
    """Event posted by the WhatsApp client: connected, disconnected, or message."""

    event: str = Field(..., description="Event type: connected, disconnected, or message.")
    from_: str | None = Field(None, alias="from", description="Sender JID, e.g. 23276123456@c.us")
    phoneE164: str | None = Field(None, description="Sender phone in E.164 format.")
    message: str | None = None
    messageType: str | None = None
    location: LocationPayload | None = None
    media: MediaPayload | None = None

    model_config = {
        "populate_by_name": True,
        "json_schema_extra": {
            "examples": [
                {
                    "event": "message",
                    "phoneE164": "+23276123456",
                    "message": "Is it true the government is banning okada bikes?",
                }
            ]
        },
    }


class WebhookResponse(BaseModel):
    """Response to the gateway; answer is the reply to deliver to the user."""

    status: str
    answer: str | None = None
    message: str | None = None
