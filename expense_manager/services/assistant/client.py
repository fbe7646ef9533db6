"""Chat model adapters.

`ChatModel` is the seam the chat loop talks to; `OpenAIChatModel` drives an
OpenAI or Azure OpenAI chat-completions deployment with function calling.
Messages are exchanged in the OpenAI wire format (dicts with role/content,
assistant `tool_calls`, and `tool` results keyed by `tool_call_id`).
"""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

import openai

from expense_manager.core.config import Settings

logger = logging.getLogger("app.assistant.client")


@dataclass(frozen=True)
class ToolCall:
    id: str
    name: str
    arguments: str

    def to_message(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "type": "function",
            "function": {"name": self.name, "arguments": self.arguments},
        }


@dataclass(frozen=True)
class ModelReply:
    content: Optional[str] = None
    tool_calls: List[ToolCall] = field(default_factory=list)
    finish_reason: str = ""
    total_tokens: int = 0

    @property
    def wants_tools(self) -> bool:
        return bool(self.tool_calls)


class ChatModel(ABC):
    @abstractmethod
    def is_available(self) -> bool:
        """Check if the model has the credentials it needs."""

    @abstractmethod
    async def complete(
        self, messages: List[Dict[str, Any]], tools: List[Dict[str, Any]]
    ) -> ModelReply:
        """Send the conversation and return the model's next reply."""


class OpenAIChatModel(ChatModel):
    """OpenAI chat completions, against Azure when an endpoint is configured."""

    def __init__(self, settings: Settings) -> None:
        self._settings = settings
        self._client: Any = None

    def is_available(self) -> bool:
        return self._settings.chat_configured

    def _get_client(self) -> Any:
        if self._client is None:
            s = self._settings
            if s.openai_endpoint:
                self._client = openai.AsyncAzureOpenAI(
                    azure_endpoint=s.openai_endpoint,
                    api_key=s.openai_api_key,
                    api_version=s.openai_api_version,
                    timeout=s.openai_timeout_seconds,
                )
                logger.info("Azure OpenAI client initialized for %s", s.openai_endpoint)
            else:
                self._client = openai.AsyncOpenAI(
                    api_key=s.openai_api_key, timeout=s.openai_timeout_seconds
                )
                logger.info("OpenAI client initialized")
        return self._client

    async def complete(
        self, messages: List[Dict[str, Any]], tools: List[Dict[str, Any]]
    ) -> ModelReply:
        kwargs: Dict[str, Any] = {
            "model": self._settings.openai_deployment,
            "messages": messages,
            "max_tokens": self._settings.chat_max_tokens,
            "temperature": self._settings.chat_temperature,
        }
        if tools:
            kwargs["tools"] = tools
            kwargs["tool_choice"] = "auto"

        response = await self._get_client().chat.completions.create(**kwargs)
        choice = response.choices[0]
        tool_calls = [
            ToolCall(id=tc.id, name=tc.function.name, arguments=tc.function.arguments or "")
            for tc in (choice.message.tool_calls or [])
            if getattr(tc, "type", "function") == "function"
        ]
        return ModelReply(
            content=choice.message.content,
            tool_calls=tool_calls,
            finish_reason=choice.finish_reason or "",
            total_tokens=response.usage.total_tokens if response.usage else 0,
        )
