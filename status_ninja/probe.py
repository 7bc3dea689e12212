from __future__ import annotations

import time
from dataclasses import dataclass
from enum import Enum

import httpx

from status_ninja.settings import DEFAULT_USER_AGENT


class Classification(str, Enum):
    HEALTHY = "healthy"
    UNHEALTHY = "unhealthy"
    ERROR = "error"


@dataclass(frozen=True)
class ProbeResult:
    classification: Classification
    status_code: int
    elapsed_ms: float
    error: str | None = None

    @property
    def ok(self) -> bool:
        return self.classification is Classification.HEALTHY


def classify_status(status_code: int) -> Classification:
    if 200 <= int(status_code) <= 299:
        return Classification.HEALTHY
    return Classification.UNHEALTHY


async def probe_endpoint(
    client: httpx.AsyncClient,
    url: str,
    *,
    user_agent: str = DEFAULT_USER_AGENT,
    timeout: float | None = None,
) -> ProbeResult:
    """Issue a single GET against ``url`` and classify the outcome.

    Never raises: any failure of the request itself (DNS, connect, timeout,
    invalid URL, unsupported scheme) becomes ``Classification.ERROR`` with a
    status code of 0. No retries.
    """
    started = time.perf_counter()
    kwargs = {"headers": {"User-Agent": user_agent}, "follow_redirects": True}
    if timeout is not None:
        kwargs["timeout"] = timeout
    try:
        resp = await client.get(url, **kwargs)
    except Exception as e:
        elapsed_ms = (time.perf_counter() - started) * 1000.0
        return ProbeResult(
            classification=Classification.ERROR,
            status_code=0,
            elapsed_ms=round(elapsed_ms, 3),
            error=f"{type(e).__name__}: {e}",
        )

    elapsed_ms = (time.perf_counter() - started) * 1000.0
    return ProbeResult(
        classification=classify_status(resp.status_code),
        status_code=int(resp.status_code),
        elapsed_ms=round(elapsed_ms, 3),
    )
