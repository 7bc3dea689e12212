from __future__ import annotations

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Callable

import httpx
import pytest

from status_ninja.db import RegistryStore


BOT_TOKEN = "123456:test-bot-token"


@dataclass
class FakeNetwork:
    """httpx mock transport standing in for both Telegram and probed endpoints.

    ``routes`` maps a probed URL to a status code or to an exception instance
    to raise. Telegram ``sendMessage`` calls are recorded in ``sent``.
    """

    routes: dict[str, int | Exception] = field(default_factory=dict)
    member_statuses: dict[tuple[int, int], str] = field(default_factory=dict)
    failing_chats: set[int] = field(default_factory=set)
    sent: list[dict[str, Any]] = field(default_factory=list)
    probes: list[httpx.Request] = field(default_factory=list)
    member_queries: list[tuple[int, int]] = field(default_factory=list)

    def handler(self, request: httpx.Request) -> httpx.Response:
        if request.url.host == "api.telegram.org":
            return self._telegram(request)
        self.probes.append(request)
        target = self.routes.get(str(request.url))
        if target is None:
            raise httpx.ConnectError("connection refused", request=request)
        if isinstance(target, Exception):
            raise target
        return httpx.Response(int(target), text="body")

    def _telegram(self, request: httpx.Request) -> httpx.Response:
        payload = json.loads(request.content.decode("utf-8") or "{}")
        method = request.url.path.rsplit("/", 1)[-1]
        if method == "sendMessage":
            chat_id = int(payload["chat_id"])
            if chat_id in self.failing_chats:
                return httpx.Response(
                    403, json={"ok": False, "error_code": 403, "description": "Forbidden: bot was blocked by the user"}
                )
            self.sent.append(payload)
            return httpx.Response(200, json={"ok": True, "result": {"message_id": len(self.sent)}})
        if method == "getChatMember":
            key = (int(payload["chat_id"]), int(payload["user_id"]))
            self.member_queries.append(key)
            status = self.member_statuses.get(key)
            if status is None:
                return httpx.Response(400, json={"ok": False, "error_code": 400, "description": "Bad Request"})
            return httpx.Response(200, json={"ok": True, "result": {"status": status, "user": {"id": key[1]}}})
        return httpx.Response(404, json={"ok": False, "description": "Not Found"})

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))

    def texts_for(self, chat_id: int) -> list[str]:
        return [str(p["text"]) for p in self.sent if int(p["chat_id"]) == int(chat_id)]


@pytest.fixture()
def network() -> FakeNetwork:
    return FakeNetwork()


@pytest.fixture()
def store(tmp_path: Path) -> RegistryStore:
    s = RegistryStore(str(tmp_path / "status-ninja.db"))
    s.ensure_schema()
    return s


@pytest.fixture()
def make_store(tmp_path: Path) -> Callable[..., RegistryStore]:
    def _make(cls: type[RegistryStore] = RegistryStore, **kwargs: Any) -> RegistryStore:
        s = cls(str(tmp_path / "status-ninja.db"), **kwargs)
        s.ensure_schema()
        return s

    return _make
