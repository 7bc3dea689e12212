"""Notification dispatcher: renders messages and delivers them to chats."""

from __future__ import annotations

from datetime import datetime, timezone
from email.utils import format_datetime

import httpx
import structlog

from status_ninja.probe import Classification
from status_ninja.telegram import TelegramConfig, redact_telegram_response, send_telegram_message_chunked


logger = structlog.get_logger(__name__)

WELCOME_MESSAGE = (
    "🥷 Thanks for adding Status Ninja Bot! I will monitor your APIs. Use /help to see available commands."
)
UNKNOWN_COMMAND_MESSAGE = "💨 Ninja vanish: Unknown command. Use /help to see available commands."
GENERIC_FAILURE_MESSAGE = "🗡️ Ninja strike failed: Something went wrong. Please try again."
CHAT_SCOPE_DENIED_MESSAGE = (
    "📜 Ninja scroll: In private chats, you can only manage your own APIs. "
    "In group chats, only administrators can use management commands."
)


def endpoint_denied_message(endpoint_name: str) -> str:
    return f"⚔️ Ninja blockade: You don't have permission to manage the API \"{endpoint_name}\"."


def format_utc_timestamp(ts: datetime) -> str:
    """RFC 1123 in UTC, e.g. ``Mon, 19 Oct 2026 10:00:00 GMT``."""
    if ts.tzinfo is None:
        ts = ts.replace(tzinfo=timezone.utc)
    return format_datetime(ts.astimezone(timezone.utc), usegmt=True)


def build_status_message(
    *,
    endpoint_name: str,
    url: str,
    classification: Classification,
    status_code: int,
    timestamp: datetime,
) -> str:
    icon = "✅" if classification is Classification.HEALTHY else "❌"
    status_text = f"{icon} {classification.value}"
    if int(status_code) > 0:
        status_text += f" (HTTP {int(status_code)})"
    return "\n".join(
        [
            "Status Bot - API Health Check",
            f"API: {endpoint_name}",
            f"Status: {status_text}",
            f"URL: {url}",
            f"Time: {format_utc_timestamp(timestamp)}",
        ]
    )


class Notifier:
    """Best-effort delivery of text messages to chats.

    Every failure (transport error, Telegram rejecting the message) is logged
    and reported as ``False``; nothing is raised and nothing is retried.
    """

    def __init__(self, client: httpx.AsyncClient, config: TelegramConfig, *, enabled: bool = True) -> None:
        self.client = client
        self.config = config
        self.enabled = enabled

    async def notify(self, chat_id: int, text: str, parse_mode: str | None = None) -> bool:
        if not self.enabled:
            logger.info("Notifications disabled; dropping message", chat_id=chat_id)
            return False
        if not self.config.bot_token:
            logger.warning("Telegram not configured; dropping message", chat_id=chat_id)
            return False

        logger.debug("Sending message", chat_id=chat_id)
        try:
            ok, responses = await send_telegram_message_chunked(
                self.client, self.config, chat_id, text, parse_mode=parse_mode
            )
        except Exception as e:
            logger.error("Telegram delivery raised", chat_id=chat_id, error=str(e))
            return False

        if not ok:
            failed = [redact_telegram_response(r) for r in responses if not r.get("ok")]
            logger.error("Telegram delivery failed", chat_id=chat_id, responses=failed)
        return ok

    async def notify_status(
        self,
        chat_id: int,
        endpoint_name: str,
        url: str,
        classification: Classification,
        status_code: int,
        timestamp: datetime,
    ) -> bool:
        message = build_status_message(
            endpoint_name=endpoint_name,
            url=url,
            classification=classification,
            status_code=status_code,
            timestamp=timestamp,
        )
        return await self.notify(chat_id, message)
