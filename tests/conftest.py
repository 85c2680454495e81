"""Shared pytest fixtures."""

import pytest

from replydesk.mcp.types import Message


@pytest.fixture
def sample_message() -> Message:
    """A fully populated inbound message."""
    return Message(
        id="msg_001",
        thread_id="thread_001",
        message_id="<msg_001@mail.example.com>",
        sender="Alice Example <alice@example.com>",
        subject="Q2 budget review",
        recipient="me@example.com",
        snippet="Hi, please review...",
        body_text="Hi, please review the attached budget figures and respond by Friday.",
    )
