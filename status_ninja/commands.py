from __future__ import annotations

from dataclasses import dataclass
from typing import Awaitable, Callable

import structlog

from status_ninja.notifications import (
    CHAT_SCOPE_DENIED_MESSAGE,
    GENERIC_FAILURE_MESSAGE,
    UNKNOWN_COMMAND_MESSAGE,
    Notifier,
    endpoint_denied_message,
)
from status_ninja.permissions import AuthorizationGuard
from status_ninja.registry import RegistryService
from status_ninja.results import Reason, Result, StoreError


logger = structlog.get_logger(__name__)

HELP_TEXT = """🥷 Status Ninja Bot Help

Available commands:
⚔️ /add <name> <url> - Add a new API to monitor
📜 /list - List your monitored APIs
🔪 /delete <name> - Delete one of your APIs
👁️ /subscribe <api_name> - Subscribe this chat to an API
💨 /unsubscribe <api_name> - Unsubscribe this chat from an API
🥋 /help - Show this help message

Made with 🗡️ for API monitoring"""

# Commands gated on owning the named endpoint. Subscriptions are chat-level
# state, so /subscribe and /unsubscribe only need chat-level authorization.
OWNERSHIP_COMMANDS = frozenset({"/delete"})
# Commands that go through the guard at all.
MANAGEMENT_COMMANDS = frozenset({"/add", "/delete", "/subscribe", "/unsubscribe"})


def parse_command(text: str) -> tuple[str, list[str]]:
    parts = (text or "").strip().split()
    if not parts:
        return "", []
    command = parts[0].lower()
    # "/help@StatusNinjaBot" in groups.
    if command.startswith("/") and "@" in command:
        command = command.split("@", 1)[0]
    args = [a for a in parts[1:] if a.strip()]
    return command, args


def command_target(text: str) -> str | None:
    """The bot a command is addressed to ("/help@StatusNinjaBot"), lower-cased."""
    parts = (text or "").strip().split(maxsplit=1)
    if not parts or not parts[0].startswith("/") or "@" not in parts[0]:
        return None
    return parts[0].split("@", 1)[1].lower()


@dataclass(frozen=True)
class CommandOutcome:
    command: str
    reply: str
    authorized: bool = True
    result: Result | None = None

    @property
    def ok(self) -> bool:
        if not self.authorized:
            return False
        return self.result is None or self.result.ok


Handler = Callable[[int, list[str]], Awaitable[Result]]


class CommandRouter:
    """Runs chat commands: registration, authorization, execution, reply.

    Built once per app from explicit collaborators; holds no state of its own
    between calls.
    """

    def __init__(
        self,
        registry: RegistryService,
        guard: AuthorizationGuard,
        notifier: Notifier,
        *,
        bot_username: str = "",
    ) -> None:
        self.registry = registry
        self.guard = guard
        self.notifier = notifier
        self.bot_username = bot_username.strip().lstrip("@").lower()
        self.handlers: dict[str, Handler] = {
            "/start": self._help,
            "/help": self._help,
            "/add": self._add,
            "/list": self._list,
            "/delete": self._delete,
            "/subscribe": self._subscribe,
            "/unsubscribe": self._unsubscribe,
        }

    def has_command(self, command: str) -> bool:
        return command in self.handlers

    async def handle(
        self,
        chat_id: int,
        user_id: int,
        text: str,
        *,
        chat_description: str | None = None,
    ) -> CommandOutcome | None:
        """Run one command and reply; None when it is addressed to another bot."""
        target = command_target(text)
        if target and self.bot_username and target != self.bot_username:
            logger.info("Command addressed to another bot", chat_id=chat_id, target=target)
            return None
        command, args = parse_command(text)
        outcome = await self._run(chat_id, user_id, command, args, chat_description)
        await self.notifier.notify(chat_id, outcome.reply)
        return outcome

    async def _run(
        self,
        chat_id: int,
        user_id: int,
        command: str,
        args: list[str],
        chat_description: str | None,
    ) -> CommandOutcome:
        if command.startswith("/"):
            try:
                self.registry.ensure_chat(chat_id, chat_description)
            except StoreError as e:
                # Registration is best-effort; the command still runs.
                logger.error("Chat auto-registration failed", chat_id=chat_id, error=str(e))

        handler = self.handlers.get(command)
        if handler is None:
            return CommandOutcome(command=command, reply=UNKNOWN_COMMAND_MESSAGE)

        endpoint_name = args[0] if command in OWNERSHIP_COMMANDS and args else None
        try:
            if command in MANAGEMENT_COMMANDS:
                allowed = await self.guard.is_authorized(chat_id, user_id, endpoint_name)
                if not allowed:
                    logger.info("Command denied", command=command, chat_id=chat_id, user_id=user_id)
                    reply = endpoint_denied_message(endpoint_name) if endpoint_name else CHAT_SCOPE_DENIED_MESSAGE
                    return CommandOutcome(
                        command=command,
                        reply=reply,
                        authorized=False,
                        result=Result.failure(Reason.PERMISSION_DENIED, reply),
                    )

            result = await handler(chat_id, args)
        except Exception as e:
            logger.error("Command failed", command=command, chat_id=chat_id, error=str(e))
            return CommandOutcome(
                command=command,
                reply=GENERIC_FAILURE_MESSAGE,
                result=Result.failure(Reason.FAILURE, GENERIC_FAILURE_MESSAGE),
            )

        return CommandOutcome(command=command, reply=result.message, result=result)

    async def _help(self, chat_id: int, args: list[str]) -> Result:
        return Result.success(HELP_TEXT)

    async def _add(self, chat_id: int, args: list[str]) -> Result:
        if len(args) < 2:
            return Result.failure(Reason.INVALID, "Usage: /add <name> <url>")
        return self.registry.add_endpoint(args[0], args[1], owner_id=chat_id)

    async def _list(self, chat_id: int, args: list[str]) -> Result:
        endpoints = self.registry.list_endpoints(owner_id=chat_id)
        if not endpoints:
            return Result.success("No API endpoints configured for this chat.", value=[])
        lines = [f"- {e.name}: {e.url}" for e in endpoints]
        return Result.success("Configured API endpoints for this chat:\n" + "\n".join(lines), value=endpoints)

    async def _delete(self, chat_id: int, args: list[str]) -> Result:
        if len(args) < 1:
            return Result.failure(Reason.INVALID, "Usage: /delete <name>")
        return self.registry.delete_endpoint(args[0], owner_id=chat_id)

    async def _subscribe(self, chat_id: int, args: list[str]) -> Result:
        if len(args) < 1:
            return Result.failure(Reason.INVALID, "Usage: /subscribe <api_name>")
        return self.registry.subscribe(chat_id, args[0])

    async def _unsubscribe(self, chat_id: int, args: list[str]) -> Result:
        if len(args) < 1:
            return Result.failure(Reason.INVALID, "Usage: /unsubscribe <api_name>")
        return self.registry.unsubscribe(chat_id, args[0])
