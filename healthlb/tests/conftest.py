"""Pytest configuration and shared fixtures for healthlb tests."""

import json
from typing import Callable, Dict, List, Tuple

import httpx
import pytest

from healthlb.backends import BackendRegistry

ADDRESSES = ["http://a.test:8001", "http://b.test:8002", "http://c.test:8003"]

Handler = Callable[[httpx.Request], httpx.Response]


def ok(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, text=f"hello from {request.url.host}")


def healthy(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, json={"state": "healthy"})


class FakeBackends:
    """Routes requests from httpx.MockTransport to per-host handlers.

    ``/_health`` goes to the health handler, everything else to the app
    handler. Every request is recorded in ``calls`` as (host, method, path).
    """

    def __init__(self):
        self.apps: Dict[str, Handler] = {}
        self.health: Dict[str, Handler] = {}
        self.calls: List[Tuple[str, str, str]] = []

    def add(self, host: str, app: Handler = ok, health: Handler = healthy):
        self.apps[host] = app
        self.health[host] = health

    def __call__(self, request: httpx.Request) -> httpx.Response:
        host = request.url.host
        self.calls.append((host, request.method, request.url.raw_path.decode()))
        if host not in self.apps:
            raise httpx.ConnectError("connection refused", request=request)
        if request.url.path == "/_health":
            return self.health[host](request)
        return self.apps[host](request)

    def app_calls(self) -> List[str]:
        """Hosts hit by proxied (non-health) requests, in order."""
        return [host for host, _, path in self.calls if not path.startswith("/_health")]

    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


@pytest.fixture
def fake_backends() -> FakeBackends:
    fake = FakeBackends()
    for address in ADDRESSES:
        fake.add(httpx.URL(address).host)
    return fake


@pytest.fixture
def registry() -> BackendRegistry:
    return BackendRegistry(ADDRESSES)


@pytest.fixture
def all_healthy(registry) -> BackendRegistry:
    for i in range(len(registry)):
        registry.set_health(i, True)
    assert registry.cursor == 0
    return registry


def health_body(payload) -> Handler:
    """Health handler returning ``payload`` as the JSON body (or raw text if str)."""

    def handler(request: httpx.Request) -> httpx.Response:
        if isinstance(payload, str):
            return httpx.Response(200, text=payload)
        return httpx.Response(200, content=json.dumps(payload).encode())

    return handler
