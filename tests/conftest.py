"""Shared fixtures: isolated environment and a recording fake upstream."""
from __future__ import annotations

from typing import Any, Callable, Dict, List, Optional

import httpx
import pytest

API_KEY = "sk-test-relay-0000"
FAKE_MP3 = b"ID3\x04\x00\x00\x00\x00\x00\x00fake-mp3-frames" * 4

_ENV_VARS = (
    "OPENAI_API_KEY",
    "SPEECH_RELAY_SETTINGS",
    "SPEECH_RELAY_UPSTREAM_URL",
    "SPEECH_RELAY_TIMEOUT_S",
    "SPEECH_RELAY_HOST",
    "SPEECH_RELAY_PORT",
)


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch):
    """Keep the developer's shell environment out of the tests."""
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    yield


class FakeUpstream:
    """
    Stands in for the provider API behind an httpx.MockTransport.

    Every outbound request is recorded in `calls`; the reply comes from
    `handler` (default: 200 with a small fake MP3).
    """

    def __init__(self, handler: Optional[Callable[[httpx.Request], Any]] = None):
        self.calls: List[httpx.Request] = []
        self.handler = handler or (
            lambda request: httpx.Response(200, content=FAKE_MP3, headers={"content-type": "audio/mpeg"})
        )

    def __call__(self, request: httpx.Request):
        self.calls.append(request)
        return self.handler(request)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


def make_settings(api_key: Optional[str] = API_KEY, **sections: Dict[str, Any]):
    from speech_relay.core.config import Settings

    raw: Dict[str, Any] = {key: dict(value) for key, value in sections.items()}
    if api_key:
        raw.setdefault("upstream", {})["api_key"] = api_key
    return Settings(raw=raw)


@pytest.fixture
def upstream() -> FakeUpstream:
    return FakeUpstream()


@pytest.fixture
def make_client():
    """
    Build a TestClient for a fresh app wired to a FakeUpstream.

    The client is entered so the lifespan (and its httpx client) runs.
    """
    from fastapi.testclient import TestClient
    from speech_relay.main import create_app

    clients = []

    def _make(fake: FakeUpstream, api_key: Optional[str] = API_KEY, **sections):
        app = create_app(settings=make_settings(api_key, **sections), transport=fake.transport)
        client = TestClient(app)
        client.__enter__()
        clients.append(client)
        return client

    yield _make

    for client in clients:
        client.__exit__(None, None, None)


@pytest.fixture
def client(make_client, upstream):
    return make_client(upstream)
