from __future__ import annotations

from typing import Awaitable, Callable

import structlog

from status_ninja.db import RegistryStore


logger = structlog.get_logger(__name__)

ADMIN_STATUSES = frozenset({"creator", "administrator"})

# (chat_id, user_id) -> member status, or None when the lookup failed.
MemberStatusLookup = Callable[[int, int], Awaitable["str | None"]]


def is_private_chat(chat_id: int) -> bool:
    return int(chat_id) > 0


class AuthorizationGuard:
    """Decides whether a (chat, user) pair may run a mutating command.

    Private chats may always act on their own chat-level state and on the
    endpoints they own. A named endpoint that does not exist is allowed
    through so the command itself can answer "not found". In group chats only
    the creator and administrators are allowed; membership is queried on
    every call and any lookup failure denies.
    """

    def __init__(self, store: RegistryStore, member_status: MemberStatusLookup) -> None:
        self.store = store
        self.member_status = member_status

    async def is_authorized(self, chat_id: int, user_id: int, endpoint_name: str | None = None) -> bool:
        if is_private_chat(chat_id):
            if not endpoint_name:
                return True
            endpoint = self.store.find_endpoint_by_name(endpoint_name)
            if endpoint is None:
                return True
            return endpoint.owner_id == int(chat_id)

        return await self.is_group_admin(chat_id, user_id)

    async def is_group_admin(self, chat_id: int, user_id: int) -> bool:
        try:
            status = await self.member_status(int(chat_id), int(user_id))
        except Exception as e:
            logger.error("Membership lookup raised", chat_id=chat_id, user_id=user_id, error=str(e))
            return False
        if not isinstance(status, str):
            return False
        return status.strip().lower() in ADMIN_STATUSES
