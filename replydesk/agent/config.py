"""Runtime configuration read from the environment."""

from __future__ import annotations

import os
from dataclasses import dataclass


def _env_bool(name: str, default: str) -> bool:
    return os.environ.get(name, default).strip().lower() == "true"


@dataclass
class AgentConfig:
    """Settings shared by the CLI, the HTTP API and the background poller."""

    user_email: str = ""
    poll_interval: int = 60
    page_size: int = 20
    auto_reply_enabled: bool = False
    auto_reply_interval_minutes: int = 15
    replied_label: str = "AutoReply/Replied"
    api_host: str = "127.0.0.1"
    api_port: int = 8000

    @classmethod
    def from_env(cls) -> AgentConfig:
        """Build AgentConfig from environment variables."""
        return cls(
            user_email=os.environ.get("USER_GOOGLE_EMAIL", ""),
            poll_interval=int(os.environ.get("POLL_INTERVAL_SECONDS", "60")),
            page_size=int(os.environ.get("MAILBOX_PAGE_SIZE", "20")),
            auto_reply_enabled=_env_bool("AUTO_REPLY_ENABLED", "false"),
            auto_reply_interval_minutes=int(
                os.environ.get("AUTO_REPLY_INTERVAL_MINUTES", "15")
            ),
            replied_label=os.environ.get("REPLIED_LABEL", "AutoReply/Replied"),
            api_host=os.environ.get("API_HOST", "127.0.0.1"),
            api_port=int(os.environ.get("API_PORT", "8000")),
        )
