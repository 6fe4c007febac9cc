"""
Retrieval: query the official government knowledge base over HTTP.

Responsibility: POST the query to the retrieval service and return structured
matches (text, source metadata, score). An empty result is the data-gap signal.
"""

import logging
from dataclasses import dataclass, field
from typing import Any

import httpx

from govverify.core.config import (
    RETRIEVAL_API_KEY,
    RETRIEVAL_API_URL,
    RETRIEVAL_CHATBOT_ID,
    RETRIEVAL_INDEX_NAME,
    RETRIEVAL_NAMESPACE,
    RETRIEVAL_TIMEOUT,
    RETRIEVAL_TOP_K,
)
from govverify.core.errors import RetrievalServiceError

logger = logging.getLogger(__name__)


@dataclass
class RetrievalMatch:
    text: str
    score: float
    filename: str = "Unknown"
    source_url: str | None = None
    chunk_index: int | None = None

    def source(self) -> dict[str, Any]:
        """Citation stored alongside a verification record."""
        return {
            "filename": self.filename,
            "sourceUrl": self.source_url,
            "score": self.score,
            "chunkIndex": self.chunk_index,
        }


@dataclass
class RetrievalResult:
    matches: list[RetrievalMatch] = field(default_factory=list)
    # Free-text "answer" from the service; context only, never a substitute for matches
    answer: str | None = None

    @property
    def is_empty(self) -> bool:
        """No matches: the knowledge base has nothing on this query (a data gap)."""
        return not self.matches


def parse_response(data: Any) -> RetrievalResult:
    """
    Turn the service's JSON into a RetrievalResult.

    Reads {"matches": [{"metadata": {...}, "score": ...}]} plus an optional
    free-text "answer". Status strings such as "message" are ignored.
    """
    if not isinstance(data, dict):
        return RetrievalResult()
    matches: list[RetrievalMatch] = []
    for m in data.get("matches") or []:
        if not isinstance(m, dict):
            continue
        meta = m.get("metadata") or {}
        matches.append(RetrievalMatch(
            text=(meta.get("text") or "No text available"),
            score=float(m.get("score") or 0.0),
            filename=meta.get("filename") or "Unknown",
            source_url=meta.get("sourceUrl") or None,
            chunk_index=meta.get("chunkIndex"),
        ))
    answer = data.get("answer")
    if not isinstance(answer, str):
        answer = None
    return RetrievalResult(matches=matches, answer=answer)


class RetrievalClient:
    """Async client for the knowledge-base search endpoint."""

    def __init__(
        self,
        api_url: str = RETRIEVAL_API_URL,
        api_key: str = RETRIEVAL_API_KEY,
        index_name: str = RETRIEVAL_INDEX_NAME,
        namespace: str = RETRIEVAL_NAMESPACE,
        chatbot_id: str = RETRIEVAL_CHATBOT_ID,
        top_k: int = RETRIEVAL_TOP_K,
        timeout: float = RETRIEVAL_TIMEOUT,
    ) -> None:
        self.api_url = api_url
        self.api_key = api_key
        self.index_name = index_name
        self.namespace = namespace
        self.chatbot_id = chatbot_id
        self.top_k = top_k
        self.timeout = timeout

    def _payload(self, query: str) -> dict[str, Any]:
        payload: dict[str, Any] = {"indexName": self.index_name, "query": query, "topK": self.top_k}
        if self.namespace:
            payload["namespace"] = self.namespace
        if self.chatbot_id:
            payload["chatbotId"] = self.chatbot_id
        return payload

    async def search(self, query: str) -> RetrievalResult:
        """Search the knowledge base. Raises RetrievalServiceError on transport or HTTP errors."""
        logger.info("[retrieval:search] IN  query=%r index=%s top_k=%d", query[:200], self.index_name, self.top_k)
        if not query or not query.strip():
            return RetrievalResult()
        headers = {
            "accept": "application/json",
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
        }
        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                response = await client.post(self.api_url, json=self._payload(query.strip()), headers=headers)
        except httpx.HTTPError as e:
            raise RetrievalServiceError(f"Retrieval request failed: {e}") from e
        if response.status_code != 200:
            raise RetrievalServiceError(
                f"Retrieval service error {response.status_code}: {response.text[:200]}",
                status_code=response.status_code,
            )
        try:
            data = response.json()
        except ValueError as e:
            raise RetrievalServiceError(f"Retrieval service returned invalid JSON: {e}") from e
        result = parse_response(data)
        logger.info(
            "[retrieval:search] OUT matches=%d top_score=%s has_answer=%s",
            len(result.matches),
            round(result.matches[0].score, 4) if result.matches else None,
            bool(result.answer),
        )
        return result
