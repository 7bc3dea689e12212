from __future__ import annotations

from status_ninja.db import RegistryStore


def resolve_subscribers(store: RegistryStore, endpoint_id: str) -> set[int]:
    """Chat ids currently subscribed to ``endpoint_id``.

    Subscriptions pointing at a deleted chat are dropped by the store join.
    Store failures propagate; the sweep decides how to degrade.
    """
    return {int(chat_id) for chat_id in store.list_subscriber_chat_ids(endpoint_id)}
