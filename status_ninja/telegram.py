from __future__ import annotations

import json
from dataclasses import dataclass
from typing import Any

import httpx
import structlog


logger = structlog.get_logger(__name__)

TELEGRAM_API_BASE = "https://api.telegram.org"
TELEGRAM_MAX_MESSAGE_LEN = 3900


@dataclass(frozen=True)
class TelegramConfig:
    bot_token: str
    api_base: str = TELEGRAM_API_BASE
    timeout_seconds: float = 15.0

    def method_url(self, method: str) -> str:
        return f"{self.api_base.rstrip('/')}/bot{self.bot_token}/{method}"


def _redact(config: TelegramConfig, text: str) -> str:
    if config.bot_token:
        return text.replace(config.bot_token, "<redacted>")
    return text


def split_telegram_message(text: str, *, max_len: int = TELEGRAM_MAX_MESSAGE_LEN) -> list[str]:
    s = (text or "").strip()
    if not s:
        return [""]

    max_len = max(1, int(max_len))
    parts: list[str] = []
    while s:
        if len(s) <= max_len:
            parts.append(s)
            break
        cut = s.rfind("\n", 0, max_len + 1)
        if cut < max_len * 0.6:
            cut = max_len
        chunk = s[:cut].rstrip()
        parts.append(chunk)
        s = s[cut:].lstrip()
    return parts


async def _call(client: httpx.AsyncClient, config: TelegramConfig, method: str, payload: dict[str, Any]) -> dict:
    """POST a Bot API method; never raises, failures come back as ``{"ok": False, ...}``."""
    try:
        resp = await client.post(config.method_url(method), json=payload, timeout=config.timeout_seconds)
        data = resp.json()
    except Exception as e:
        return {"ok": False, "error": _redact(config, f"{type(e).__name__}: {e}")}
    if not isinstance(data, dict):
        return {"ok": False, "error": f"unexpected response type: {type(data).__name__}"}
    return data


async def send_telegram_message(
    client: httpx.AsyncClient,
    config: TelegramConfig,
    chat_id: int | str,
    text: str,
    *,
    parse_mode: str | None = None,
) -> tuple[bool, dict]:
    payload: dict[str, Any] = {"chat_id": chat_id, "text": text, "disable_notification": False}
    if parse_mode:
        payload["parse_mode"] = parse_mode
    data = await _call(client, config, "sendMessage", payload)
    return bool(data.get("ok")), data


async def send_telegram_message_chunked(
    client: httpx.AsyncClient,
    config: TelegramConfig,
    chat_id: int | str,
    text: str,
    *,
    parse_mode: str | None = None,
    max_len: int = TELEGRAM_MAX_MESSAGE_LEN,
) -> tuple[bool, list[dict]]:
    parts = split_telegram_message(text, max_len=max_len)
    ok_all = True
    responses: list[dict] = []
    for part in parts:
        ok, resp = await send_telegram_message(client, config, chat_id, part, parse_mode=parse_mode)
        ok_all = ok_all and ok
        responses.append(resp)
    return ok_all, responses


async def get_chat_member_status(
    client: httpx.AsyncClient,
    config: TelegramConfig,
    chat_id: int | str,
    user_id: int | str,
) -> str | None:
    """Return the member status string (``creator``, ``member``...) or None on any failure."""
    data = await _call(client, config, "getChatMember", {"chat_id": chat_id, "user_id": user_id})
    if not data.get("ok"):
        logger.warning(
            "getChatMember failed",
            chat_id=chat_id,
            user_id=user_id,
            response=redact_telegram_response(data),
        )
        return None
    result = data.get("result")
    if not isinstance(result, dict):
        return None
    status = result.get("status")
    if not isinstance(status, str) or not status.strip():
        return None
    return status.strip()


def redact_telegram_response(data: dict) -> str:
    safe: dict[str, Any] = {"ok": data.get("ok")}
    if isinstance(data.get("result"), dict):
        safe["result"] = {"message_id": data["result"].get("message_id")}
    if data.get("error_code") is not None:
        safe["error_code"] = data.get("error_code")
    if data.get("description"):
        safe["description"] = data.get("description")
    if data.get("error"):
        safe["error"] = data.get("error")
    return json.dumps(safe, ensure_ascii=False)
