"""
Shared test fixtures for the plugwatch test suite.

Provides a fake smart plug provider built on ``httpx.MockTransport`` and a
controllable clock, so gateway and token tests run without network access.

CHANGELOG:
- 2026-10-19: Initial creation

TODO:
- None
"""

import json
from collections.abc import Callable
from pathlib import Path
from typing import Any

import httpx
import pytest
import pytest_asyncio

from plugwatch.src.gateway import DeviceGateway

FIXTURES_DIR = Path(__file__).parent / "fixtures"

CLIENT_ID = "test-client-id"
CLIENT_SECRET = "test-client-secret"
BASE_URL = "https://openapi.example.com"

# All PlugSettings environment variable names, used for cleanup.
_ALL_PLUG_ENV_VARS = (
    "PLUG_CLIENT_ID",
    "PLUG_CLIENT_SECRET",
    "PLUG_API_URL",
    "PLUG_API_VERSION",
    "PLUG_REQUEST_TIMEOUT_S",
    "PLUG_POLL_INTERVAL_S",
    "PLUG_REDIS_URL",
    "PLUG_CACHE_TTL_S",
    "PLUG_HEALTH_FILE_PATH",
    "PLUG_WARNING_POWER_W",
    "PLUG_ALERT_POWER_W",
    "PLUG_CRITICAL_POWER_W",
    "PLUG_CAPACITY_W",
)


@pytest.fixture(autouse=True)
def _clean_plug_env(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    """Remove all PLUG_* env vars and isolate from .env files before each test."""
    for var in _ALL_PLUG_ENV_VARS:
        monkeypatch.delenv(var, raising=False)
    monkeypatch.chdir(tmp_path)


class FakeClock:
    """Callable clock returning epoch seconds that tests can advance."""

    def __init__(self, now: float = 1_760_000_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


Handler = Callable[[httpx.Request], httpx.Response]


class FakeProvider:
    """In-memory smart plug cloud API.

    Routes are keyed by ``(method, path)`` with the query string stripped.
    Every request is recorded in :attr:`requests`.
    """

    def __init__(self, responses: dict[str, Any]) -> None:
        self.responses = responses
        self.requests: list[httpx.Request] = []
        self.routes: dict[tuple[str, str], Handler] = {}
        self.route_json(
            "GET", "/v1.0/token", responses["token_success"]
        )

    def route(self, method: str, path: str, handler: Handler) -> None:
        self.routes[(method, path)] = handler

    def route_json(
        self, method: str, path: str, payload: Any, status_code: int = 200
    ) -> None:
        self.route(
            method,
            path,
            lambda request: httpx.Response(status_code, json=payload),
        )

    def route_error(self, method: str, path: str, exc: Exception) -> None:
        def _raise(request: httpx.Request) -> httpx.Response:
            raise exc

        self.route(method, path, _raise)

    def requests_to(self, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.url.path == path]

    def handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        handler = self.routes.get((request.method, request.url.path))
        if handler is None:
            return httpx.Response(404, json={"success": False, "msg": "no route"})
        return handler(request)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handle)


@pytest.fixture()
def provider_responses() -> dict[str, Any]:
    """Load provider fixture responses from JSON file."""
    return json.loads((FIXTURES_DIR / "provider_responses.json").read_text())


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture()
def provider(provider_responses: dict[str, Any]) -> FakeProvider:
    return FakeProvider(provider_responses)


@pytest_asyncio.fixture()
async def gateway(provider: FakeProvider, clock: FakeClock):
    """DeviceGateway wired to the fake provider."""
    gw = DeviceGateway(
        client_id=CLIENT_ID,
        client_secret=CLIENT_SECRET,
        base_url=BASE_URL,
        transport=provider.transport,
        clock=clock,
    )
    yield gw
    await gw.aclose()


@pytest.fixture()
def env_vars_full(monkeypatch: pytest.MonkeyPatch) -> dict[str, str]:
    """Set every PlugSettings environment variable.

    Returns the dict of env var names to values for assertion convenience.
    """
    env = {
        "PLUG_CLIENT_ID": "env-client",
        "PLUG_CLIENT_SECRET": "env-secret",
        "PLUG_API_URL": "https://openapi.tuyaeu.com/",
        "PLUG_API_VERSION": "1.0",
        "PLUG_REQUEST_TIMEOUT_S": "5",
        "PLUG_POLL_INTERVAL_S": "15",
        "PLUG_REDIS_URL": "redis://localhost:6379/0",
        "PLUG_CACHE_TTL_S": "45",
        "PLUG_HEALTH_FILE_PATH": "/tmp/plug-health.json",
        "PLUG_WARNING_POWER_W": "2500",
        "PLUG_ALERT_POWER_W": "4500",
        "PLUG_CRITICAL_POWER_W": "7000",
        "PLUG_CAPACITY_W": "5000",
    }
    for key, value in env.items():
        monkeypatch.setenv(key, value)
    return env


@pytest.fixture()
def env_vars_required_only(monkeypatch: pytest.MonkeyPatch) -> dict[str, str]:
    """Set only the required environment variables."""
    env = {
        "PLUG_CLIENT_ID": "env-client",
        "PLUG_CLIENT_SECRET": "env-secret",
    }
    for key, value in env.items():
        monkeypatch.setenv(key, value)
    return env
