from __future__ import annotations

from typing import Any

import structlog
from pydantic import ValidationError

from status_ninja.commands import CommandRouter
from status_ninja.notifications import WELCOME_MESSAGE, Notifier
from status_ninja.registry import RegistryService
from status_ninja.results import StoreError
from status_ninja.schema import ChatMemberUpdated, TelegramChat, TelegramMessage, TelegramUpdate


logger = structlog.get_logger(__name__)

_GROUP_CHAT_TYPES = {"group", "supergroup"}


def describe_chat(chat: TelegramChat) -> str:
    if chat.type in _GROUP_CHAT_TYPES:
        return chat.title or "Group chat"
    return "Direct message"


class UpdateHandler:
    """Turns Telegram webhook updates into commands and membership events.

    ``handle_update`` returns the HTTP status to answer the webhook with:
    400 for payloads that are not Telegram updates, 200 otherwise.
    """

    def __init__(self, router: CommandRouter, registry: RegistryService, notifier: Notifier) -> None:
        self.router = router
        self.registry = registry
        self.notifier = notifier

    async def handle_update(self, payload: Any) -> int:
        if not isinstance(payload, dict):
            logger.error("Invalid Telegram update format", payload_type=type(payload).__name__)
            return 400
        try:
            update = TelegramUpdate.model_validate(payload)
        except ValidationError as e:
            logger.error("Invalid Telegram update", errors=e.errors(include_url=False))
            return 400

        logger.info("Processing update", update_id=update.update_id)
        if update.message is not None and update.message.text:
            return await self.handle_message(update.message)
        if update.edited_message is not None and update.edited_message.text:
            return await self.handle_message(update.edited_message)
        if update.my_chat_member is not None:
            return await self.handle_chat_member_update(update.my_chat_member)
        return 200

    async def handle_message(self, message: TelegramMessage) -> int:
        text = (message.text or "").strip()
        if not text.startswith("/"):
            return 200

        chat_id = message.chat.id
        user_id = message.from_user.id if message.from_user is not None else chat_id
        logger.info("Command received", chat_type=message.chat.type, chat_id=chat_id, user_id=user_id)

        outcome = await self.router.handle(chat_id, user_id, text, chat_description=describe_chat(message.chat))
        if outcome is None:
            return 200
        # Denials are answered in the chat; a non-2xx here would make Telegram redeliver.
        logger.info("Command handled", command=outcome.command, ok=outcome.ok, authorized=outcome.authorized)
        return 200

    async def handle_chat_member_update(self, update: ChatMemberUpdated) -> int:
        chat_id = update.chat.id
        logger.info("Bot membership changed", chat_id=chat_id)
        try:
            self.registry.ensure_chat(chat_id, describe_chat(update.chat))
        except StoreError as e:
            logger.error("Chat auto-registration failed", chat_id=chat_id, error=str(e))
            return 200
        await self.notifier.notify(chat_id, WELCOME_MESSAGE)
        return 200
