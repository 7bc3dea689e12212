from __future__ import annotations

import pytest

from status_ninja.db import RegistryStore
from status_ninja.registry import RegistryService, validate_endpoint_url
from status_ninja.results import Reason
from status_ninja.subscriptions import resolve_subscribers


@pytest.fixture()
def registry(store: RegistryStore) -> RegistryService:
    return RegistryService(store)


@pytest.mark.parametrize(
    ("url", "valid"),
    [
        ("https://x/health", True),
        ("http://127.0.0.1:8080/ping", True),
        ("ftp://x/file", False),
        ("x/health", False),
        ("https://", False),
    ],
)
def test_validate_endpoint_url(url: str, valid: bool) -> None:
    assert (validate_endpoint_url(url) is None) is valid


def test_add_endpoint_rejects_duplicate_names(registry: RegistryService, store: RegistryStore) -> None:
    first = registry.add_endpoint("payments", "https://x/health", 100)
    assert first.ok
    assert store.find_endpoint_by_name("payments").id == first.value

    again = registry.add_endpoint("payments", "https://other/health", 200)
    assert not again.ok
    assert again.reason is Reason.CONFLICT
    assert len(store.list_endpoints()) == 1


def test_add_endpoint_validates_input(registry: RegistryService) -> None:
    assert registry.add_endpoint("", "https://x", 1).reason is Reason.INVALID
    bad = registry.add_endpoint("svc", "mailto:ops@example.com", 1)
    assert bad.reason is Reason.INVALID
    assert "http" in bad.message


def test_subscribe_twice_is_a_conflict(registry: RegistryService, store: RegistryStore) -> None:
    registry.add_endpoint("payments", "https://x/health", 100)

    first = registry.subscribe(200, "payments")
    assert first.ok
    # Subscribing lazily registers the chat.
    assert store.chat_exists(200)

    second = registry.subscribe(200, "payments")
    assert not second.ok
    assert second.reason is Reason.CONFLICT
    assert "already subscribed" in second.message


def test_subscribe_to_unknown_endpoint_is_not_found(registry: RegistryService) -> None:
    result = registry.subscribe(200, "ghost")
    assert result.reason is Reason.NOT_FOUND
    assert "not found" in result.message


def test_unsubscribe_without_subscription_is_not_found(registry: RegistryService) -> None:
    registry.add_endpoint("payments", "https://x/health", 100)
    result = registry.unsubscribe(200, "payments")
    assert not result.ok
    assert result.reason is Reason.NOT_FOUND
    assert "not subscribed" in result.message


def test_unsubscribe_removes_subscription(registry: RegistryService, store: RegistryStore) -> None:
    eid = registry.add_endpoint("payments", "https://x/health", 100).value
    registry.subscribe(200, "payments")
    assert resolve_subscribers(store, eid) == {200}

    assert registry.unsubscribe(200, "payments").ok
    assert resolve_subscribers(store, eid) == set()


def test_delete_endpoint_outcomes_are_distinct(registry: RegistryService, store: RegistryStore) -> None:
    eid = registry.add_endpoint("payments", "https://x/health", 100).value
    registry.subscribe(200, "payments")
    registry.subscribe(-300, "payments")

    missing = registry.delete_endpoint("ghost", owner_id=100)
    assert missing.reason is Reason.NOT_FOUND

    denied = registry.delete_endpoint("payments", owner_id=999)
    assert denied.reason is Reason.PERMISSION_DENIED
    assert store.find_endpoint_by_name("payments") is not None

    deleted = registry.delete_endpoint("payments", owner_id=100)
    assert deleted.ok
    assert store.find_endpoint_by_name("payments") is None
    assert resolve_subscribers(store, eid) == set()


def test_chat_registration(registry: RegistryService, store: RegistryStore) -> None:
    assert registry.ensure_chat(200, "Direct message") is True
    assert registry.ensure_chat(200, "Direct message") is False

    dup = registry.add_chat(200)
    assert dup.reason is Reason.CONFLICT

    assert registry.add_chat(-300, "Ops").ok
    assert {c.id for c in store.list_chats()} == {200, -300}


def test_remove_chat_cascades(registry: RegistryService, store: RegistryStore) -> None:
    eid = registry.add_endpoint("payments", "https://x/health", 100).value
    registry.subscribe(200, "payments")

    assert registry.remove_chat(200).ok
    assert resolve_subscribers(store, eid) == set()
    assert registry.remove_chat(200).reason is Reason.NOT_FOUND
