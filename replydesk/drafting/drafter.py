"""Claude-backed drafting service."""

from __future__ import annotations

import logging
import os
from typing import Any, Protocol, runtime_checkable

import anthropic
from anthropic import AsyncAnthropic
from anthropic.types import ToolUseBlock

from replydesk.drafting.prompts import (
    DRAFT_TOOL,
    DRAFT_TOOL_NAME,
    SYSTEM_PROMPT,
    build_messages,
)
from replydesk.drafting.types import DraftRequest
from replydesk.errors import DraftUnavailable

logger = logging.getLogger(__name__)

# Sonnet: drafts are read by the recipient, so quality beats cost here.
_MODEL = "claude-sonnet-4-6"
_MAX_TOKENS = 1024


@runtime_checkable
class DraftingService(Protocol):
    """Anything that turns a DraftRequest into a ``{reply, autoSend, reasoning}`` dict."""

    async def generate(self, request: DraftRequest) -> dict[str, Any]:
        ...


class ClaudeDrafter:
    """Asks Claude for a reply draft via a forced tool call.

    Usage::

        drafter = ClaudeDrafter()
        payload = await drafter.generate(request)
    """

    def __init__(self, api_key: str | None = None, model: str = _MODEL) -> None:
        self._client = AsyncAnthropic(
            api_key=api_key or os.environ.get("ANTHROPIC_API_KEY", "")
        )
        self._model = model

    async def generate(self, request: DraftRequest) -> dict[str, Any]:
        """Return the wire-level draft payload.

        Raises:
            DraftUnavailable: on API failure or when no tool call comes back.
        """
        try:
            response = await self._client.messages.create(
                model=self._model,
                max_tokens=_MAX_TOKENS,
                system=SYSTEM_PROMPT,
                tools=[DRAFT_TOOL],  # type: ignore[list-item]
                tool_choice={"type": "tool", "name": DRAFT_TOOL_NAME},
                messages=build_messages(request),  # type: ignore[arg-type]
            )
        except anthropic.APIError as exc:
            raise DraftUnavailable(f"Claude request failed: {exc}") from exc

        for block in response.content:
            if isinstance(block, ToolUseBlock) and block.name == DRAFT_TOOL_NAME:
                data = dict(block.input)  # type: ignore[arg-type]
                return {
                    "reply": data.get("reply"),
                    "autoSend": data.get("auto_send"),
                    "reasoning": data.get("reasoning"),
                }

        raise DraftUnavailable(
            f"Claude did not return a {DRAFT_TOOL_NAME} tool call "
            f"(stop_reason={response.stop_reason!r})"
        )
