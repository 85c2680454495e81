"""Tests for ClaudeDrafter — the Anthropic client is mocked."""

from unittest.mock import AsyncMock, MagicMock

import anthropic
import httpx
import pytest
from anthropic.types import TextBlock, ToolUseBlock

from replydesk.drafting.drafter import ClaudeDrafter, DraftingService
from replydesk.drafting.prompts import DRAFT_TOOL_NAME
from replydesk.drafting.types import DraftRequest
from replydesk.errors import DraftUnavailable

REQUEST = DraftRequest(
    subject="Lunch?",
    sender="alice@example.com",
    recipient="me@example.com",
    body="Are you free Thursday?",
)


def make_tool_block(data: dict[str, object], name: str = DRAFT_TOOL_NAME) -> ToolUseBlock:
    return ToolUseBlock(type="tool_use", id="toolu_test_123", name=name, input=data)


def make_drafter(*content: object, stop_reason: str = "tool_use") -> tuple[ClaudeDrafter, AsyncMock]:
    drafter = ClaudeDrafter(api_key="test-key")
    response = MagicMock()
    response.content = list(content)
    response.stop_reason = stop_reason
    create = AsyncMock(return_value=response)
    drafter._client = MagicMock()
    drafter._client.messages.create = create
    return drafter, create


class TestClaudeDrafter:
    def test_satisfies_protocol(self) -> None:
        assert isinstance(ClaudeDrafter(api_key="k"), DraftingService)

    async def test_maps_tool_input_to_wire_payload(self) -> None:
        drafter, _ = make_drafter(make_tool_block(
            {"reply": "Thursday works!", "auto_send": True, "reasoning": "Simple yes."}
        ))
        payload = await drafter.generate(REQUEST)
        assert payload == {
            "reply": "Thursday works!",
            "autoSend": True,
            "reasoning": "Simple yes.",
        }

    async def test_forces_tool_choice(self) -> None:
        drafter, create = make_drafter(make_tool_block(
            {"reply": "x", "auto_send": False, "reasoning": "y"}
        ))
        await drafter.generate(REQUEST)
        kwargs = create.call_args.kwargs
        assert kwargs["tool_choice"] == {"type": "tool", "name": DRAFT_TOOL_NAME}
        assert kwargs["tools"][0]["name"] == DRAFT_TOOL_NAME
        assert "Are you free Thursday?" in kwargs["messages"][0]["content"]

    async def test_skips_non_tool_blocks(self) -> None:
        drafter, _ = make_drafter(
            TextBlock(type="text", text="Let me think..."),
            make_tool_block({"reply": "ok", "auto_send": False, "reasoning": "r"}),
        )
        payload = await drafter.generate(REQUEST)
        assert payload["reply"] == "ok"

    async def test_missing_tool_call_raises(self) -> None:
        drafter, _ = make_drafter(TextBlock(type="text", text="no tool"), stop_reason="end_turn")
        with pytest.raises(DraftUnavailable, match="end_turn"):
            await drafter.generate(REQUEST)

    async def test_wrong_tool_name_raises(self) -> None:
        drafter, _ = make_drafter(make_tool_block({"reply": "x"}, name="other_tool"))
        with pytest.raises(DraftUnavailable):
            await drafter.generate(REQUEST)

    async def test_api_error_becomes_draft_unavailable(self) -> None:
        drafter, create = make_drafter()
        create.side_effect = anthropic.APIConnectionError(
            request=httpx.Request("POST", "https://api.anthropic.com/v1/messages")
        )
        with pytest.raises(DraftUnavailable):
            await drafter.generate(REQUEST)
