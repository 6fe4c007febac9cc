"""
Per-turn context handed to every tool handler.
"""

from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Protocol

from govverify.core.database import Database
from govverify.services.retrieval_service import RetrievalResult


@dataclass
class LocationContext:
    has_location: bool = False
    latitude: float | None = None
    longitude: float | None = None
    description: str | None = None

    @property
    def usable(self) -> bool:
        return self.has_location and self.latitude is not None and self.longitude is not None


@dataclass
class MediaContext:
    has_media: bool
    mime_type: str
    data: str  # base64 payload
    filename: str | None = None
    size: int | None = None


class Retriever(Protocol):
    async def search(self, query: str) -> RetrievalResult: ...


SendMessage = Callable[[str, str], Awaitable[None]]


@dataclass
class ToolContext:
    user_phone: str
    db: Database
    retrieval: Retriever
    send_message: SendMessage
    location: LocationContext | None = None
    media: MediaContext | None = None

    def log_fields(self) -> dict[str, Any]:
        return {
            "phone": self.user_phone,
            "has_location": bool(self.location and self.location.usable),
            "has_media": bool(self.media and self.media.has_media),
        }
