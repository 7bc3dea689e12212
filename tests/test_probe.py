from __future__ import annotations

import socket
import threading
from http.server import BaseHTTPRequestHandler, HTTPServer

import httpx
import pytest

from status_ninja.probe import Classification, classify_status, probe_endpoint
from status_ninja.settings import DEFAULT_USER_AGENT


class _EndpointHandler(BaseHTTPRequestHandler):
    seen_user_agents: list[str] = []

    def log_message(self, format: str, *args) -> None:  # noqa: A002
        return

    def do_GET(self) -> None:  # noqa: N802
        type(self).seen_user_agents.append(self.headers.get("User-Agent") or "")
        routes = {"/health": 200, "/created": 201, "/missing": 404, "/down": 503}
        if self.path == "/moved":
            self.send_response(301)
            self.send_header("Location", "/health")
            self.send_header("Content-Length", "0")
            self.end_headers()
            return
        status = routes.get(self.path, 404)
        body = b"ok" if status < 300 else b"nope"
        self.send_response(status)
        self.send_header("Content-Type", "text/plain; charset=utf-8")
        self.send_header("Content-Length", str(len(body)))
        self.end_headers()
        self.wfile.write(body)


@pytest.fixture(scope="module")
def endpoint_base_url() -> str:
    httpd = HTTPServer(("127.0.0.1", 0), _EndpointHandler)
    host, port = httpd.server_address
    thread = threading.Thread(target=httpd.serve_forever, daemon=True)
    thread.start()
    try:
        yield f"http://{host}:{port}"
    finally:
        httpd.shutdown()
        thread.join(timeout=5)
        httpd.server_close()


def _closed_port() -> int:
    s = socket.socket()
    s.bind(("127.0.0.1", 0))
    port = int(s.getsockname()[1])
    s.close()
    return port


@pytest.mark.parametrize(
    ("status", "expected"),
    [
        (200, Classification.HEALTHY),
        (204, Classification.HEALTHY),
        (299, Classification.HEALTHY),
        (300, Classification.UNHEALTHY),
        (404, Classification.UNHEALTHY),
        (500, Classification.UNHEALTHY),
        (599, Classification.UNHEALTHY),
    ],
)
def test_classify_status(status: int, expected: Classification) -> None:
    assert classify_status(status) is expected


@pytest.mark.asyncio
async def test_probe_healthy_and_unhealthy(endpoint_base_url: str) -> None:
    async with httpx.AsyncClient() as client:
        ok = await probe_endpoint(client, f"{endpoint_base_url}/health")
        created = await probe_endpoint(client, f"{endpoint_base_url}/created")
        down = await probe_endpoint(client, f"{endpoint_base_url}/down")
        missing = await probe_endpoint(client, f"{endpoint_base_url}/missing")

    assert ok.classification is Classification.HEALTHY and ok.status_code == 200 and ok.ok
    assert created.classification is Classification.HEALTHY and created.status_code == 201
    assert down.classification is Classification.UNHEALTHY and down.status_code == 503
    assert missing.classification is Classification.UNHEALTHY and missing.status_code == 404
    assert ok.error is None


@pytest.mark.asyncio
async def test_probe_sends_identifying_user_agent_and_follows_redirects(endpoint_base_url: str) -> None:
    _EndpointHandler.seen_user_agents.clear()
    async with httpx.AsyncClient() as client:
        result = await probe_endpoint(client, f"{endpoint_base_url}/moved")
    assert result.classification is Classification.HEALTHY
    assert result.status_code == 200
    assert _EndpointHandler.seen_user_agents
    assert all(ua == DEFAULT_USER_AGENT for ua in _EndpointHandler.seen_user_agents)


@pytest.mark.asyncio
async def test_probe_connection_refused_is_error_with_code_zero() -> None:
    async with httpx.AsyncClient() as client:
        result = await probe_endpoint(client, f"http://127.0.0.1:{_closed_port()}/health", timeout=2.0)
    assert result.classification is Classification.ERROR
    assert result.status_code == 0
    assert result.error


@pytest.mark.asyncio
@pytest.mark.parametrize("url", ["not a url", "ftp://example.invalid/file", "http://"])
async def test_probe_malformed_url_never_raises(url: str) -> None:
    async with httpx.AsyncClient() as client:
        result = await probe_endpoint(client, url, timeout=2.0)
    assert result.classification is Classification.ERROR
    assert result.status_code == 0


@pytest.mark.asyncio
async def test_probe_timeout_is_error() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    async with httpx.AsyncClient(transport=httpx.MockTransport(handler)) as client:
        result = await probe_endpoint(client, "https://slow.example.net/health")
    assert result.classification is Classification.ERROR
    assert result.status_code == 0
    assert "ReadTimeout" in (result.error or "")
