"""Bounded function-calling loop behind the chat endpoint.

One turn goes: send system prompt + history + user message + tool catalog to
the model; while the model asks for tools, run them and feed the JSON
results back; stop at the first plain answer. The loop makes at most
`max_iterations` model calls and never raises to its caller: every failure
becomes a `ChatResponse` with `success=False`.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Dict, List, Optional

from expense_manager.models.chat import ChatRequest, ChatResponse, ChatStatus
from expense_manager.services.assistant.client import ChatModel, ModelReply
from expense_manager.services.assistant.prompts import (
    EMPTY_RESPONSE,
    ERROR_RESPONSE,
    EXHAUSTED_RESPONSE,
    NOT_CONFIGURED_RESPONSE,
    build_system_prompt,
)
from expense_manager.services.assistant.tools import ToolRegistry

logger = logging.getLogger("app.assistant")

DEFAULT_MAX_ITERATIONS = 5
MAX_ITERATIONS_ERROR = "Maximum function call iterations reached"


class AssistantService:
    def __init__(
        self,
        model: ChatModel,
        registry: ToolRegistry,
        max_iterations: int = DEFAULT_MAX_ITERATIONS,
        system_prompt: Optional[str] = None,
    ) -> None:
        self.model = model
        self.registry = registry
        self.max_iterations = max_iterations
        self.system_prompt = system_prompt or build_system_prompt(registry.descriptions())

    @property
    def is_configured(self) -> bool:
        return self.model.is_available()

    def status(self) -> ChatStatus:
        if self.is_configured:
            return ChatStatus(configured=True, message="Chat service is configured and ready")
        return ChatStatus(
            configured=False,
            message=(
                "Chat service is not configured. Set OPENAI_API_KEY and "
                "OPENAI_DEPLOYMENT to enable it."
            ),
        )

    def _initial_messages(self, request: ChatRequest) -> List[Dict[str, Any]]:
        messages: List[Dict[str, Any]] = [{"role": "system", "content": self.system_prompt}]
        for msg in request.history:
            messages.append({"role": msg.role, "content": msg.content})
        messages.append({"role": "user", "content": request.message})
        return messages

    async def _run_tools(self, reply: ModelReply, messages: List[Dict[str, Any]]) -> None:
        messages.append(
            {
                "role": "assistant",
                "content": reply.content or None,
                "tool_calls": [tc.to_message() for tc in reply.tool_calls],
            }
        )
        for call in reply.tool_calls:
            logger.info("executing function %s (call %s)", call.name, call.id)
            # store access is blocking; keep it off the event loop
            result = await asyncio.to_thread(self.registry.execute, call.name, call.arguments)
            messages.append({"role": "tool", "tool_call_id": call.id, "content": result})

    async def process_message(self, request: ChatRequest) -> ChatResponse:
        if not self.is_configured:
            return ChatResponse(response=NOT_CONFIGURED_RESPONSE, success=True)

        messages = self._initial_messages(request)
        tools = self.registry.openai_tools()
        try:
            for iteration in range(1, self.max_iterations + 1):
                reply = await self.model.complete(messages, tools)
                logger.debug(
                    "model call %d finished (%s, %d tokens)",
                    iteration,
                    reply.finish_reason,
                    reply.total_tokens,
                )
                if not reply.wants_tools:
                    logger.info("chat answered after %d model call(s)", iteration)
                    return ChatResponse(response=reply.content or EMPTY_RESPONSE, success=True)
                await self._run_tools(reply, messages)
        except Exception as exc:
            logger.exception("Error processing chat message")
            return ChatResponse(response=ERROR_RESPONSE, success=False, error=str(exc))

        logger.warning("chat gave up after %d model calls", self.max_iterations)
        return ChatResponse(
            response=EXHAUSTED_RESPONSE, success=False, error=MAX_ITERATIONS_ERROR
        )
