from __future__ import annotations

from urllib.parse import urlsplit

import structlog

from status_ninja.db import Endpoint, RegistryStore
from status_ninja.results import Reason, Result


logger = structlog.get_logger(__name__)

_ALLOWED_URL_SCHEMES = {"http", "https"}


def validate_endpoint_url(url: str) -> str | None:
    """Return an error string when ``url`` cannot be probed, else None."""
    s = str(url or "").strip()
    try:
        parts = urlsplit(s)
    except ValueError as exc:
        return f"invalid URL: {exc}"
    if parts.scheme.lower() not in _ALLOWED_URL_SCHEMES:
        return "URL must start with http:// or https://"
    if not parts.hostname:
        return "URL is missing a host"
    return None


class RegistryService:
    """Endpoint, chat and subscription workflows on top of the store.

    Expected outcomes (not found, denied, duplicate) come back as ``Result``;
    ``StoreError`` is left to propagate to the command boundary.
    """

    def __init__(self, store: RegistryStore) -> None:
        self.store = store

    # --- endpoints ---

    def add_endpoint(self, name: str, url: str, owner_id: int) -> Result:
        name = str(name or "").strip()
        url = str(url or "").strip()
        if not name or not url:
            return Result.failure(Reason.INVALID, "Usage: /add <name> <url>")
        url_error = validate_endpoint_url(url)
        if url_error:
            return Result.failure(Reason.INVALID, f"Error: {url_error}.")
        # Names identify endpoints in every command, so they are kept unique.
        if self.store.find_endpoint_by_name(name) is not None:
            return Result.failure(Reason.CONFLICT, f'Error: An API endpoint named "{name}" already exists.')

        endpoint_id = self.store.insert_endpoint(name, url, owner_id)
        logger.info("Endpoint added", endpoint=name, endpoint_id=endpoint_id, owner_id=owner_id)
        return Result.success(f'API endpoint "{name}" added successfully.', value=endpoint_id)

    def list_endpoints(self, owner_id: int) -> list[Endpoint]:
        return self.store.list_endpoints(owner_id=owner_id)

    def delete_endpoint(self, name: str, owner_id: int) -> Result:
        lookup = self.store.get_endpoint_by_name(name)
        if not lookup.ok:
            return Result.failure(Reason.NOT_FOUND, f'👁️ Ninja vision failed: API endpoint "{name}" not found.')
        endpoint: Endpoint = lookup.value
        if endpoint.owner_id != int(owner_id):
            return Result.failure(
                Reason.PERMISSION_DENIED,
                f"⚔️ Ninja blockade: You don't have permission to delete API \"{name}\".",
            )

        # Subscriptions first, then the endpoint; not a single transaction.
        removed = self.store.delete_subscriptions_for_endpoint(endpoint.id)
        self.store.delete_endpoint(endpoint.id)
        logger.info("Endpoint deleted", endpoint=name, endpoint_id=endpoint.id, subscriptions_removed=removed)
        return Result.success(f'🗑️ API endpoint "{name}" has been deleted.', value=endpoint.id)

    # --- chats ---

    def ensure_chat(self, chat_id: int, description: str | None = None) -> bool:
        """Register the chat if it is unknown. Returns True when it was created."""
        if self.store.chat_exists(chat_id):
            return False
        self.store.insert_chat(chat_id, description)
        logger.info("Chat auto-registered", chat_id=chat_id, description=description)
        return True

    def add_chat(self, chat_id: int, description: str | None = None) -> Result:
        if self.store.chat_exists(chat_id):
            return Result.failure(Reason.CONFLICT, f"Error: Chat with ID {chat_id} already exists.")
        self.store.insert_chat(chat_id, description)
        return Result.success(f"Chat {chat_id} registered.")

    def remove_chat(self, chat_id: int) -> Result:
        if not self.store.chat_exists(chat_id):
            return Result.failure(Reason.NOT_FOUND, f"Error: Chat with ID {chat_id} not found.")
        self.store.delete_chat(chat_id)
        logger.info("Chat removed", chat_id=chat_id)
        return Result.success(f"Chat {chat_id} removed.")

    # --- subscriptions ---

    def subscribe(self, chat_id: int, name: str) -> Result:
        lookup = self.store.get_endpoint_by_name(name)
        if not lookup.ok:
            return lookup
        endpoint: Endpoint = lookup.value

        self.ensure_chat(chat_id)
        if self.store.subscription_exists(chat_id, endpoint.id):
            return Result.failure(Reason.CONFLICT, "Error: This chat is already subscribed to that API.")

        self.store.insert_subscription(chat_id, endpoint.id)
        logger.info("Chat subscribed", chat_id=chat_id, endpoint=name)
        return Result.success(f'Successfully subscribed to "{name}" API health checks.', value=endpoint.id)

    def unsubscribe(self, chat_id: int, name: str) -> Result:
        lookup = self.store.get_endpoint_by_name(name)
        if not lookup.ok:
            return lookup
        endpoint: Endpoint = lookup.value

        if not self.store.subscription_exists(chat_id, endpoint.id):
            return Result.failure(Reason.NOT_FOUND, "Error: This chat is not subscribed to that API.")

        self.store.delete_subscription(chat_id, endpoint.id)
        logger.info("Chat unsubscribed", chat_id=chat_id, endpoint=name)
        return Result.success(f'Successfully unsubscribed from "{name}" API health checks.', value=endpoint.id)
