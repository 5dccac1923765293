"""Configuration helpers for the Study Scheduler runtime."""

from __future__ import annotations

import os
from dataclasses import dataclass
from typing import Optional


DEFAULT_SESSION_LIMIT = 20


@dataclass(frozen=True)
class AppSettings:
    """Strongly typed application settings loaded from environment variables."""

    app_name: str
    app_env: str
    log_level: str
    telegram_bot_token: str
    owner_chat_id: Optional[int]
    session_limit: int

    @classmethod
    def from_env(cls) -> AppSettings:
        """Construct settings directly from environment variables."""
        app_name = os.getenv("APP_NAME", "Study Scheduler")
        app_env = os.getenv("APP_ENV", "development")
        log_level = os.getenv("LOG_LEVEL", "INFO")
        telegram_bot_token = os.getenv("TELEGRAM_BOT_TOKEN")

        if not telegram_bot_token:
            raise RuntimeError(
                "TELEGRAM_BOT_TOKEN environment variable is required to start the Telegram bot."
            )

        raw_owner = os.getenv("STUDY_OWNER_CHAT_ID")
        owner_chat_id: Optional[int] = None
        if raw_owner:
            try:
                owner_chat_id = int(raw_owner)
            except ValueError as exc:
                raise RuntimeError("STUDY_OWNER_CHAT_ID must be an integer.") from exc

        try:
            session_limit = int(os.getenv("STUDY_SESSION_LIMIT", str(DEFAULT_SESSION_LIMIT)))
        except ValueError as exc:
            raise RuntimeError("STUDY_SESSION_LIMIT must be an integer.") from exc
        if session_limit < 1 or session_limit > 100:
            raise RuntimeError("STUDY_SESSION_LIMIT must be between 1 and 100.")

        return cls(
            app_name=app_name,
            app_env=app_env,
            log_level=log_level,
            telegram_bot_token=telegram_bot_token,
            owner_chat_id=owner_chat_id,
            session_limit=session_limit,
        )
