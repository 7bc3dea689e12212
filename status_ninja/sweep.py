"""Health sweep orchestration: probe every endpoint and notify its subscribers."""

from __future__ import annotations

import asyncio
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable

import httpx
import structlog

from status_ninja.db import Endpoint, RegistryStore
from status_ninja.notifications import Notifier
from status_ninja.probe import Classification, ProbeResult, probe_endpoint
from status_ninja.settings import DEFAULT_USER_AGENT
from status_ninja.subscriptions import resolve_subscribers


logger = structlog.get_logger(__name__)


def _utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class SweepReport:
    started_at: datetime
    finished_at: datetime | None = None
    aborted: bool = False
    endpoints_total: int = 0
    endpoints_skipped: int = 0
    classifications: dict[str, int] = field(default_factory=dict)
    notifications_sent: int = 0
    notifications_failed: int = 0

    def count(self, classification: Classification) -> None:
        key = classification.value
        self.classifications[key] = self.classifications.get(key, 0) + 1


class HealthSweep:
    """One full pass over all endpoints: probe, resolve subscribers, notify.

    Failures are isolated per endpoint and per chat. Only a failure to list
    the endpoints aborts the sweep. There is no remembered state between
    sweeps: every subscriber is notified on every pass.
    """

    def __init__(
        self,
        store: RegistryStore,
        client: httpx.AsyncClient,
        notifier: Notifier,
        *,
        user_agent: str = DEFAULT_USER_AGENT,
        probe_timeout: float | None = None,
        clock: Callable[[], datetime] = _utc_now,
    ) -> None:
        self.store = store
        self.client = client
        self.notifier = notifier
        self.user_agent = user_agent
        self.probe_timeout = probe_timeout
        self.clock = clock

    async def run_sweep(self) -> SweepReport:
        report = SweepReport(started_at=self.clock())
        try:
            endpoints = self.store.list_endpoints()
        except Exception as e:
            logger.error("Cannot list endpoints; aborting sweep", error=str(e))
            report.aborted = True
            report.finished_at = self.clock()
            return report

        report.endpoints_total = len(endpoints)
        logger.info("Health sweep started", endpoints=len(endpoints))

        for endpoint in endpoints:
            try:
                await self._check_endpoint(endpoint, report)
            except Exception as e:
                report.endpoints_skipped += 1
                logger.error("Endpoint check failed", endpoint=endpoint.name, endpoint_id=endpoint.id, error=str(e))

        report.finished_at = self.clock()
        logger.info(
            "Health sweep finished",
            endpoints=report.endpoints_total,
            skipped=report.endpoints_skipped,
            classifications=report.classifications,
            sent=report.notifications_sent,
            failed=report.notifications_failed,
        )
        return report

    async def _check_endpoint(self, endpoint: Endpoint, report: SweepReport) -> None:
        result: ProbeResult = await probe_endpoint(
            self.client, endpoint.url, user_agent=self.user_agent, timeout=self.probe_timeout
        )
        report.count(result.classification)
        if not result.ok:
            logger.warning(
                "Endpoint not healthy",
                endpoint=endpoint.name,
                url=endpoint.url,
                classification=result.classification.value,
                status_code=result.status_code,
                error=result.error,
            )

        try:
            chat_ids = resolve_subscribers(self.store, endpoint.id)
        except Exception as e:
            logger.error("Cannot resolve subscribers; skipping notifications", endpoint=endpoint.name, error=str(e))
            chat_ids = set()

        checked_at = self.clock()
        for chat_id in sorted(chat_ids):
            try:
                ok = await self.notifier.notify_status(
                    chat_id,
                    endpoint.name,
                    endpoint.url,
                    result.classification,
                    result.status_code,
                    checked_at,
                )
            except Exception as e:
                logger.error("Notification raised", endpoint=endpoint.name, chat_id=chat_id, error=str(e))
                ok = False
            if ok:
                report.notifications_sent += 1
            else:
                report.notifications_failed += 1


def launch_sweep(sweep: HealthSweep, pending: set[asyncio.Task]) -> asyncio.Task:
    """Run a sweep as a detached task; the caller does not wait for it.

    ``pending`` holds a reference until the task is done so it is not garbage
    collected mid-sweep.
    """
    task = asyncio.create_task(sweep.run_sweep())
    pending.add(task)
    task.add_done_callback(pending.discard)
    return task
