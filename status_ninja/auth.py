from __future__ import annotations

import hmac
from typing import Any

from fastapi import Depends, HTTPException, Request

from status_ninja.settings import BotSettings


def _auth_header_token(req: Request) -> str:
    raw = req.headers.get("authorization") or ""
    if not raw:
        return ""
    parts = raw.split(None, 1)
    if len(parts) != 2:
        return ""
    scheme, rest = parts[0].strip().lower(), parts[1].strip()
    if scheme != "bearer":
        return ""
    return rest


def get_settings(req: Request) -> BotSettings:
    settings: Any = getattr(req.app.state, "settings", None)
    if not isinstance(settings, BotSettings):
        raise RuntimeError("Bot settings not configured")
    return settings


def require_api_token(req: Request, settings: BotSettings = Depends(get_settings)) -> None:
    token = _auth_header_token(req)
    if not token:
        raise HTTPException(status_code=401, detail="Unauthorized", headers={"WWW-Authenticate": "Bearer"})
    if not settings.api_token:
        raise HTTPException(status_code=503, detail="api_token_not_configured")
    if not hmac.compare_digest(token.strip().encode("utf-8"), settings.api_token.strip().encode("utf-8")):
        raise HTTPException(status_code=401, detail="Unauthorized", headers={"WWW-Authenticate": "Bearer"})
