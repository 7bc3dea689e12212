from __future__ import annotations

import os
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any

import yaml


DEFAULT_USER_AGENT = "Status-Ninja-Bot/1.0"


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return bool(default)
    s = str(raw).strip().lower()
    if s in {"1", "true", "yes", "y", "on"}:
        return True
    if s in {"0", "false", "no", "n", "off"}:
        return False
    return bool(default)


def _env_int(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None:
        return int(default)
    try:
        return int(str(raw).strip())
    except Exception:
        return int(default)


def _env_float(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None:
        return float(default)
    try:
        return float(str(raw).strip())
    except Exception:
        return float(default)


def _env_str(name: str, default: str) -> str:
    raw = os.getenv(name)
    if raw is None:
        return str(default)
    s = str(raw).strip()
    return s if s else str(default)


@dataclass(frozen=True)
class BotSettings:
    db_path: str = field(default_factory=lambda: _env_str("STATUS_NINJA_DB_PATH", "/data/status-ninja.db"))

    # Bot credential used for every outbound Telegram call.
    telegram_bot_token: str = field(default_factory=lambda: os.getenv("TELEGRAM_BOT_TOKEN", "").strip())
    # Own username, without "@"; commands addressed to other bots are ignored when set.
    telegram_bot_username: str = field(
        default_factory=lambda: os.getenv("TELEGRAM_BOT_USERNAME", "").strip().lstrip("@")
    )
    # Bearer secret for the manual sweep trigger and config export.
    api_token: str = field(
        default_factory=lambda: (os.getenv("STATUS_NINJA_API_TOKEN", "") or os.getenv("API_TOKEN", "")).strip()
    )

    # Scheduling.
    scheduler_enabled: bool = field(default_factory=lambda: _env_bool("STATUS_NINJA_SCHEDULER_ENABLED", True))
    sweep_interval_seconds: int = field(default_factory=lambda: _env_int("STATUS_NINJA_SWEEP_INTERVAL_SECONDS", 5 * 60))

    # Tests turn this off so nothing reaches Telegram.
    notifications_enabled: bool = field(
        default_factory=lambda: _env_bool("STATUS_NINJA_NOTIFICATIONS_ENABLED", True)
    )

    # Probing. 5s matches the httpx transport default.
    probe_timeout_seconds: float = field(default_factory=lambda: _env_float("STATUS_NINJA_PROBE_TIMEOUT_SECONDS", 5.0))
    user_agent: str = field(default_factory=lambda: _env_str("STATUS_NINJA_USER_AGENT", DEFAULT_USER_AGENT))

    log_level: str = field(default_factory=lambda: _env_str("LOG_LEVEL", "INFO"))


# Environment variables that win over values from the YAML file. A field that
# reads several names is overridden by any of them.
_ENV_OVERRIDES = {
    "db_path": ("STATUS_NINJA_DB_PATH",),
    "telegram_bot_token": ("TELEGRAM_BOT_TOKEN",),
    "telegram_bot_username": ("TELEGRAM_BOT_USERNAME",),
    "api_token": ("STATUS_NINJA_API_TOKEN", "API_TOKEN"),
    "scheduler_enabled": ("STATUS_NINJA_SCHEDULER_ENABLED",),
    "sweep_interval_seconds": ("STATUS_NINJA_SWEEP_INTERVAL_SECONDS",),
    "notifications_enabled": ("STATUS_NINJA_NOTIFICATIONS_ENABLED",),
    "probe_timeout_seconds": ("STATUS_NINJA_PROBE_TIMEOUT_SECONDS",),
    "user_agent": ("STATUS_NINJA_USER_AGENT",),
    "log_level": ("LOG_LEVEL",),
}


def _coerce(current: Any, value: Any) -> Any:
    if isinstance(current, bool):
        if isinstance(value, str):
            return value.strip().lower() in {"1", "true", "yes", "y", "on"}
        return bool(value)
    if isinstance(current, int):
        return int(value)
    if isinstance(current, float):
        return float(value)
    return str(value).strip()


def load_settings(config_path: str | None = None) -> BotSettings:
    """Load settings from an optional YAML file, then apply environment overrides."""
    if config_path is None:
        config_path = os.getenv("STATUS_NINJA_CONFIG", "")

    settings = BotSettings()
    if not config_path or not Path(config_path).exists():
        return settings

    with open(config_path, "r", encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file must contain a mapping: {config_path}")

    known = {f.name for f in fields(BotSettings)}
    updates: dict[str, Any] = {}
    for key, value in data.items():
        if key not in known or value is None:
            continue
        # Environment always wins over the file.
        if any(os.getenv(name) is not None for name in _ENV_OVERRIDES.get(key, ())):
            continue
        updates[key] = _coerce(getattr(settings, key), value)
    return replace(settings, **updates)
