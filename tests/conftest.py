"""Pytest configuration and shared fixtures."""

from __future__ import annotations

import json
from typing import Any, Callable

import httpx
import pytest

from fluxpanel.api.client import FluxClient

BASE = "http://flux.test"


class FakeBackend:
    """Route table served through httpx.MockTransport.

    A route value is either a JSON-able object (200), a (status, body) tuple,
    an Exception to raise, or a callable taking the request.
    """

    def __init__(self):
        self.routes: dict[tuple[str, str], Any] = {}
        self.requests: list[httpx.Request] = []

    def on(self, method: str, path: str, reply: Any) -> "FakeBackend":
        self.routes[(method.upper(), path)] = reply
        return self

    def calls(self, method: str, path: str) -> list[httpx.Request]:
        return [r for r in self.requests if r.method == method.upper() and r.url.path == path]

    def body(self, method: str, path: str, index: int = -1) -> Any:
        return json.loads(self.calls(method, path)[index].content)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        reply = self.routes.get((request.method, request.url.path))
        if reply is None:
            return httpx.Response(404, text="not found", request=request)
        if isinstance(reply, Exception):
            raise reply
        if callable(reply):
            reply = reply(request)
            if isinstance(reply, httpx.Response):
                return reply
        status, body = reply if isinstance(reply, tuple) else (200, reply)
        if isinstance(body, str):
            return httpx.Response(status, text=body, request=request)
        return httpx.Response(status, json=body, request=request)


@pytest.fixture
def backend() -> FakeBackend:
    return FakeBackend()


@pytest.fixture
def make_client(backend: FakeBackend) -> Callable[..., FluxClient]:
    def _make(base: str | None = BASE, token: str | None = "tok-123") -> FluxClient:
        return FluxClient(base, token=token, transport=httpx.MockTransport(backend.handler))

    return _make


@pytest.fixture
def client(make_client) -> FluxClient:
    return make_client()


@pytest.fixture
def sample_settings() -> dict[str, Any]:
    return {
        "preset_id": "balanced",
        "kill_switch": "off",
        "mode": "paper",
        "symbols": "QQQ,SPY",
        "conf_threshold": 0.62,
        "stop_loss_pct": 0.01,
        "take_profit_pct": 0.02,
        "max_open_positions": 5,
        "risk": {"stop_loss_pct": 0.01, "trailing": {"enabled": True}},
        "limits": {"max_hold_min": 120},
    }


@pytest.fixture
def sample_presets() -> list[dict[str, Any]]:
    return [
        {"id": "conservative", "name": "Conservative", "description": "Fewer, safer trades"},
        {"id": "balanced", "name": "Balanced", "description": "Default profile"},
        {"id": "aggressive", "name": "Aggressive", "description": "More trades, wider stops"},
    ]
