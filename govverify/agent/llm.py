"""
Agent LLM: OpenAI chat completions with tool calling.

The orchestration loop only depends on ChatModel.complete(); tests plug in a fake.
Tool-call arguments are returned as the raw JSON string so the loop can turn a
parse failure into a structured tool result.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

from govverify.core.config import LLM_API_TIMEOUT, OPENAI_API_KEY, OPENAI_MODEL, OPENAI_TEMPERATURE
from govverify.core.errors import ServiceUnavailableError

logger = logging.getLogger(__name__)


@dataclass
class ToolCall:
    id: str
    name: str
    arguments: str = "{}"


@dataclass
class Completion:
    content: str | None = None
    tool_calls: list[ToolCall] = field(default_factory=list)
    finish_reason: str | None = None

    @property
    def wants_tools(self) -> bool:
        return bool(self.tool_calls)

    def assistant_message(self) -> dict[str, Any]:
        """The assistant turn in OpenAI message format, tool calls included."""
        msg: dict[str, Any] = {"role": "assistant", "content": self.content or ""}
        if self.tool_calls:
            msg["tool_calls"] = [
                {"id": tc.id, "type": "function", "function": {"name": tc.name, "arguments": tc.arguments}}
                for tc in self.tool_calls
            ]
        return msg


class ChatModel(Protocol):
    async def complete(
        self, messages: list[dict[str, Any]], tools: list[dict[str, Any]]
    ) -> Completion: ...


class OpenAIChatModel:
    """ChatModel backed by openai.AsyncOpenAI."""

    def __init__(
        self,
        api_key: str = OPENAI_API_KEY,
        model: str = OPENAI_MODEL,
        temperature: float = OPENAI_TEMPERATURE,
    ) -> None:
        if not api_key:
            raise ServiceUnavailableError("OPENAI_API_KEY must be set in .env to run the agent.")
        from openai import AsyncOpenAI

        self._client = AsyncOpenAI(api_key=api_key, timeout=LLM_API_TIMEOUT)
        self.model = model
        self.temperature = temperature

    async def complete(
        self, messages: list[dict[str, Any]], tools: list[dict[str, Any]]
    ) -> Completion:
        logger.info("[llm:complete] IN  messages=%d tools=%d", len(messages), len(tools))
        response = await self._client.chat.completions.create(
            model=self.model,
            messages=messages,
            tools=tools,
            temperature=self.temperature,
        )
        choice = response.choices[0] if response.choices else None
        if choice is None:
            return Completion()
        msg = choice.message
        tool_calls = []
        for tc in getattr(msg, "tool_calls", None) or []:
            fn = getattr(tc, "function", None)
            if not fn:
                continue
            tool_calls.append(ToolCall(
                id=getattr(tc, "id", None) or "",
                name=getattr(fn, "name", None) or "",
                arguments=getattr(fn, "arguments", None) or "{}",
            ))
        out = Completion(
            content=(getattr(msg, "content", None) or None),
            tool_calls=tool_calls,
            finish_reason=choice.finish_reason,
        )
        if tool_calls:
            logger.info("[llm:complete] OUT tool_calls=%s", [t.name for t in tool_calls])
        else:
            logger.info(
                "[llm:complete] OUT finish_reason=%s content_len=%d",
                out.finish_reason, len(out.content or ""),
            )
        return out
