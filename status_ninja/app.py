from __future__ import annotations

import asyncio
import json
from contextlib import asynccontextmanager
from dataclasses import dataclass, field
from typing import Any, AsyncIterator

import httpx
import structlog
from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse, PlainTextResponse

from status_ninja.auth import require_api_token
from status_ninja.commands import CommandRouter
from status_ninja.db import RegistryStore
from status_ninja.notifications import Notifier
from status_ninja.permissions import AuthorizationGuard
from status_ninja.registry import RegistryService
from status_ninja.scheduler import SweepScheduler
from status_ninja.schema import ExportedConfig
from status_ninja.settings import BotSettings
from status_ninja.sweep import HealthSweep, launch_sweep
from status_ninja.telegram import TelegramConfig, get_chat_member_status
from status_ninja.webhook import UpdateHandler


logger = structlog.get_logger(__name__)


@dataclass
class Components:
    """The wired component graph shared by every request of one app."""

    settings: BotSettings
    store: RegistryStore
    client: httpx.AsyncClient
    notifier: Notifier
    guard: AuthorizationGuard
    registry: RegistryService
    router: CommandRouter
    updates: UpdateHandler
    sweep: HealthSweep
    pending_sweeps: set[asyncio.Task] = field(default_factory=set)

    def trigger_sweep(self) -> asyncio.Task:
        return launch_sweep(self.sweep, self.pending_sweeps)


def build_components(settings: BotSettings, store: RegistryStore, client: httpx.AsyncClient) -> Components:
    telegram = TelegramConfig(bot_token=settings.telegram_bot_token)
    notifier = Notifier(client, telegram, enabled=settings.notifications_enabled)

    async def member_status(chat_id: int, user_id: int) -> str | None:
        return await get_chat_member_status(client, telegram, chat_id, user_id)

    guard = AuthorizationGuard(store, member_status)
    registry = RegistryService(store)
    router = CommandRouter(registry, guard, notifier, bot_username=settings.telegram_bot_username)
    sweep = HealthSweep(
        store,
        client,
        notifier,
        user_agent=settings.user_agent,
        probe_timeout=settings.probe_timeout_seconds,
    )
    return Components(
        settings=settings,
        store=store,
        client=client,
        notifier=notifier,
        guard=guard,
        registry=registry,
        router=router,
        updates=UpdateHandler(router, registry, notifier),
        sweep=sweep,
    )


def get_components(req: Request) -> Components:
    components: Any = getattr(req.app.state, "components", None)
    if not isinstance(components, Components):
        raise RuntimeError("Application components not initialised")
    return components


def create_app(
    settings: BotSettings | None = None,
    *,
    store: RegistryStore | None = None,
    http_client: httpx.AsyncClient | None = None,
) -> FastAPI:
    settings = settings or BotSettings()
    store = store or RegistryStore(settings.db_path)

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        store.ensure_schema()
        client = http_client or httpx.AsyncClient()
        components = build_components(settings, store, client)
        app.state.components = components

        scheduler: SweepScheduler | None = None
        if settings.scheduler_enabled:
            scheduler = SweepScheduler(components.trigger_sweep, settings.sweep_interval_seconds)
            await scheduler.start()
        app.state.scheduler = scheduler
        try:
            yield
        finally:
            if scheduler is not None:
                await scheduler.stop()
            pending = list(components.pending_sweeps)
            for task in pending:
                task.cancel()
            # Let cancelled sweeps unwind before their client is closed.
            await asyncio.gather(*pending, return_exceptions=True)
            if http_client is None:
                await client.aclose()

    app = FastAPI(title="Status Ninja Bot", version="1.0.0", lifespan=lifespan)
    app.state.settings = settings

    @app.get("/health")
    async def health() -> dict[str, Any]:
        return {"status": "ok"}

    @app.post("/webhook")
    async def webhook(req: Request, components: Components = Depends(get_components)) -> PlainTextResponse:
        try:
            payload = await req.json()
        except (json.JSONDecodeError, UnicodeDecodeError):
            return PlainTextResponse("Invalid update format", status_code=400)

        status = await components.updates.handle_update(payload)
        if status >= 400:
            return PlainTextResponse("Invalid update format", status_code=status)
        return PlainTextResponse("OK", status_code=status)

    @app.post("/run-health-check", dependencies=[Depends(require_api_token)])
    async def run_health_check(components: Components = Depends(get_components)) -> PlainTextResponse:
        components.trigger_sweep()
        logger.info("Manual health sweep triggered")
        return PlainTextResponse("Health check triggered")

    @app.get("/export-config", dependencies=[Depends(require_api_token)])
    async def export_config(components: Components = Depends(get_components)) -> JSONResponse:
        try:
            data = ExportedConfig.model_validate(components.store.export_config())
        except Exception as e:
            logger.error("Error exporting config", error=str(e))
            return JSONResponse({"error": "Error exporting configuration"}, status_code=500)
        return JSONResponse(data.model_dump())

    @app.get("/")
    async def root() -> PlainTextResponse:
        return PlainTextResponse("Status Ninja Bot API")

    return app
