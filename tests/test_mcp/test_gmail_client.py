"""Tests for GmailClient — all MCP calls are mocked."""

import json
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest

from replydesk.mcp.gmail_client import GmailClient, MCPError
from replydesk.mcp.types import Message


# ── Helpers ────────────────────────────────────────────────────────────────────


def _tool_result(data: Any, *, is_error: bool = False) -> MagicMock:
    """Build a mock MCP CallToolResult whose first content block contains data."""
    content_block = MagicMock()
    from mcp.types import TextContent

    content_block.__class__ = TextContent
    content_block.text = json.dumps(data) if not isinstance(data, str) else data

    result = MagicMock()
    result.isError = is_error
    result.content = [content_block]
    return result


def _error_result(message: str) -> MagicMock:
    return _tool_result(message, is_error=True)


TEXT_BATCH = """\
Message ID: 18c2f0a1b2
Thread ID: 18c2f00000
Message-ID: <CAF=abc@mail.gmail.com>
Subject: Lunch?
From: Alice Example <alice@example.com>
Date: Mon, 1 Jan 2026 12:00:00 +0000
To: <me@example.com>

Are you free Thursday?

Message ID: 18c2f0a1b3
Thread ID: 18c2f00001
From: bob@example.com
To: me@example.com

Second body.
"""


# ── Fixtures ───────────────────────────────────────────────────────────────────


@pytest.fixture
def session() -> MagicMock:
    s = MagicMock()
    s.call_tool = AsyncMock()
    return s


@pytest.fixture
def client(session: MagicMock) -> GmailClient:
    """GmailClient with a pre-populated label cache (no live MCP calls needed)."""
    c = GmailClient(session, "test@example.com")
    c._label_cache = {
        "AutoReply/Replied": "lbl_replied",
        "ExistingLabel": "lbl_existing",
    }
    return c


# ── _parse_message_dict ────────────────────────────────────────────────────────


class TestParseMessageDict:
    def test_full_message_response(self) -> None:
        data = {
            "message_id": "msg_001",
            "thread_id": "thread_001",
            "rfc_message_id": "<abc@mail.example.com>",
            "from": "Alice <alice@example.com>",
            "to": "bob@example.com",
            "subject": "Budget review",
            "snippet": "Please review...",
            "body": "Please review the attached budget.",
            "body_html": "<p>Please review the attached budget.</p>",
            "date": "2026-02-27T09:00:00Z",
        }
        message = GmailClient._parse_message_dict(data)
        assert message == Message(
            id="msg_001",
            thread_id="thread_001",
            message_id="<abc@mail.example.com>",
            sender="Alice <alice@example.com>",
            recipient="bob@example.com",
            subject="Budget review",
            snippet="Please review...",
            body_text="Please review the attached budget.",
            body_html="<p>Please review the attached budget.</p>",
            date="2026-02-27T09:00:00Z",
        )

    def test_missing_optional_fields(self) -> None:
        message = GmailClient._parse_message_dict({"message_id": "x", "thread_id": "y", "from": "z"})
        assert message.subject is None
        assert message.message_id == ""
        assert message.body_text == ""
        assert message.body_html is None
        assert message.date is None

    def test_message_id_header_alias(self) -> None:
        message = GmailClient._parse_message_dict(
            {"message_id": "x", "message_id_header": "<h@example.com>"}
        )
        assert message.message_id == "<h@example.com>"


# ── _parse_batch_messages ──────────────────────────────────────────────────────


class TestParseBatchMessages:
    def test_parses_text_blocks(self) -> None:
        messages = GmailClient._parse_batch_messages(TEXT_BATCH)
        assert len(messages) == 2

        first = messages[0]
        assert first.id == "18c2f0a1b2"
        assert first.thread_id == "18c2f00000"
        assert first.message_id == "<CAF=abc@mail.gmail.com>"
        assert first.subject == "Lunch?"
        assert first.sender == "Alice Example <alice@example.com>"
        assert first.recipient == "me@example.com"
        assert first.body_text == "Are you free Thursday?"
        assert first.date == "Mon, 1 Jan 2026 12:00:00 +0000"

    def test_missing_headers_default(self) -> None:
        second = GmailClient._parse_batch_messages(TEXT_BATCH)[1]
        assert second.subject is None
        assert second.message_id == ""
        assert second.date is None
        assert second.body_text == "Second body."

    def test_json_list(self) -> None:
        messages = GmailClient._parse_batch_messages(
            [{"message_id": "a", "thread_id": "t"}, "junk", {"message_id": "b"}]
        )
        assert [m.id for m in messages] == ["a", "b"]

    def test_unexpected_type_returns_empty(self) -> None:
        assert GmailClient._parse_batch_messages(None) == []


# ── list_inbox ─────────────────────────────────────────────────────────────────


class TestListInbox:
    async def test_returns_messages_with_body(self, client: GmailClient, session: MagicMock) -> None:
        search_response = [{"message_id": "msg_1"}, {"message_id": "msg_2"}]
        batch_response = [
            {"message_id": "msg_1", "thread_id": "t1", "from": "a@b.com", "body": "Body 1"},
            {"message_id": "msg_2", "thread_id": "t2", "from": "c@d.com", "body": "Body 2"},
        ]
        session.call_tool.side_effect = [
            _tool_result(search_response),
            _tool_result(batch_response),
        ]

        messages = await client.list_inbox()

        assert [m.id for m in messages] == ["msg_1", "msg_2"]
        assert messages[0].body_text == "Body 1"
        batch_call = session.call_tool.call_args_list[1]
        assert batch_call.args[1]["message_ids"] == ["msg_1", "msg_2"]

    async def test_empty_inbox_skips_content_fetch(self, client: GmailClient, session: MagicMock) -> None:
        session.call_tool.return_value = _tool_result([])
        assert await client.list_inbox() == []
        assert session.call_tool.call_count == 1

    async def test_search_passes_page_size_and_query(self, client: GmailClient, session: MagicMock) -> None:
        session.call_tool.side_effect = [_tool_result([]), _tool_result([])]
        await client.list_inbox(max_results=10)
        first_call = session.call_tool.call_args_list[0]
        assert first_call.args[0] == "search_gmail_messages"
        assert first_call.args[1]["page_size"] == 10
        assert "is:unread" in first_call.args[1]["query"]

    async def test_text_search_ids(self, client: GmailClient, session: MagicMock) -> None:
        session.call_tool.side_effect = [
            _tool_result("Found 1 message\nMessage ID: 18c2f0a1b2\n"),
            _tool_result(TEXT_BATCH),
        ]
        messages = await client.list_inbox()
        assert session.call_tool.call_args_list[1].args[1]["message_ids"] == ["18c2f0a1b2"]
        assert len(messages) == 2

    async def test_raises_mcp_error_on_tool_error(self, client: GmailClient, session: MagicMock) -> None:
        session.call_tool.return_value = _error_result("auth expired")
        with pytest.raises(MCPError, match="returned error"):
            await client.list_inbox()


# ── get_message ────────────────────────────────────────────────────────────────


class TestGetMessage:
    async def test_returns_json_message(self, client: GmailClient, session: MagicMock) -> None:
        session.call_tool.return_value = _tool_result({
            "message_id": "msg_abc",
            "thread_id": "thread_abc",
            "from": "sender@example.com",
            "body": "Test body content",
        })
        message = await client.get_message("msg_abc")
        assert message.id == "msg_abc"
        assert message.body_text == "Test body content"

    async def test_returns_text_message(self, client: GmailClient, session: MagicMock) -> None:
        session.call_tool.return_value = _tool_result(TEXT_BATCH)
        message = await client.get_message("18c2f0a1b2")
        assert message.message_id == "<CAF=abc@mail.gmail.com>"

    async def test_unparseable_text_raises(self, client: GmailClient, session: MagicMock) -> None:
        session.call_tool.return_value = _tool_result("No message here")
        with pytest.raises(MCPError, match="Could not parse"):
            await client.get_message("missing")


# ── send_reply ─────────────────────────────────────────────────────────────────


class TestSendReply:
    async def test_passes_threading_arguments(self, client: GmailClient, session: MagicMock) -> None:
        session.call_tool.return_value = _tool_result("Email sent!")
        await client.send_reply(
            to="alice@example.com",
            subject="Re: Lunch?",
            body="Thursday works.",
            thread_id="thread_1",
            in_reply_to="<abc@example.com>",
            references="<abc@example.com>",
        )
        session.call_tool.assert_called_once_with(
            "send_gmail_message",
            {
                "to": "alice@example.com",
                "subject": "Re: Lunch?",
                "body": "Thursday works.",
                "thread_id": "thread_1",
                "in_reply_to": "<abc@example.com>",
                "references": "<abc@example.com>",
                "user_google_email": "test@example.com",
            },
        )

    async def test_omits_empty_threading_headers(self, client: GmailClient, session: MagicMock) -> None:
        session.call_tool.return_value = _tool_result("Email sent!")
        await client.send_reply(to="a@b.com", subject="Re:", body="x", thread_id="t")
        arguments = session.call_tool.call_args.args[1]
        assert "in_reply_to" not in arguments
        assert "references" not in arguments

    async def test_raises_mcp_error_on_failure(self, client: GmailClient, session: MagicMock) -> None:
        session.call_tool.return_value = _error_result("Failed to send email")
        with pytest.raises(MCPError):
            await client.send_reply(to="a@b.com", subject="Re:", body="x", thread_id="t")


# ── mark_as_replied ────────────────────────────────────────────────────────────


class TestMarkAsReplied:
    async def test_uses_cached_label(self, client: GmailClient, session: MagicMock) -> None:
        session.call_tool.return_value = _tool_result("OK")
        await client.mark_as_replied("msg_1")
        session.call_tool.assert_called_once_with(
            "modify_gmail_message_labels",
            {"message_id": "msg_1", "add_label_ids": ["lbl_replied"],
             "remove_label_ids": ["UNREAD"],
             "user_google_email": "test@example.com"},
        )

    async def test_creates_missing_label_first(self, client: GmailClient, session: MagicMock) -> None:
        client._label_cache = {}
        session.call_tool.side_effect = [
            _tool_result([]),                                           # refresh: not there
            _tool_result("Created"),                                    # manage_gmail_label
            _tool_result([{"id": "lbl_new", "name": "AutoReply/Replied"}]),  # refresh
            _tool_result("OK"),                                         # modify
        ]
        await client.mark_as_replied("msg_1")
        last = session.call_tool.call_args_list[-1]
        assert last.args[1]["add_label_ids"] == ["lbl_new"]

    async def test_custom_label_name(self, session: MagicMock) -> None:
        c = GmailClient(session, "test@example.com", replied_label="Handled")
        c._label_cache = {"Handled": "lbl_handled"}
        session.call_tool.return_value = _tool_result("OK")
        await c.mark_as_replied("msg_1")
        assert session.call_tool.call_args.args[1]["add_label_ids"] == ["lbl_handled"]


# ── create_label / label cache ─────────────────────────────────────────────────


class TestCreateLabel:
    async def test_returns_cached_id_without_mcp_call(
        self, client: GmailClient, session: MagicMock
    ) -> None:
        assert await client.create_label("ExistingLabel") == "lbl_existing"
        session.call_tool.assert_not_called()

    async def test_raises_if_label_missing_after_create(
        self, client: GmailClient, session: MagicMock
    ) -> None:
        session.call_tool.side_effect = [_tool_result("Created"), _tool_result([])]
        with pytest.raises(MCPError, match="missing from Gmail label list"):
            await client.create_label("GhostLabel")

    async def test_refresh_parses_text_format(self, client: GmailClient, session: MagicMock) -> None:
        session.call_tool.return_value = _tool_result(
            "Labels:\n• INBOX (ID: INBOX)\n• AutoReply/Replied (ID: Label_7)\n"
        )
        await client._refresh_label_cache()
        assert client._label_cache == {"INBOX": "INBOX", "AutoReply/Replied": "Label_7"}
