"""Shared test fixtures for the Luno client tests.

HTTP never leaves the process: every client is wired to an
``httpx.MockTransport`` that records the outgoing requests.
"""

from __future__ import annotations

import inspect
import logging
from typing import Any, Callable, List, Optional
from urllib.parse import parse_qs

import httpx
import pytest

from luno.exchange.client import LunoClient


TEST_KEY = "test-key"
TEST_SECRET = "test-secret"


class RecordingTransport:
    """MockTransport wrapper that keeps every request it receives.

    ``handler`` may be sync or async and returns an ``httpx.Response``.
    Defaults to ``200 {}``.
    """

    def __init__(self, handler: Optional[Callable[[httpx.Request], Any]] = None) -> None:
        self.requests: List[httpx.Request] = []
        self.handler = handler or (lambda request: httpx.Response(200, json={}))
        self.transport = httpx.MockTransport(self._handle)

    async def _handle(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        response = self.handler(request)
        if inspect.isawaitable(response):
            response = await response
        return response

    @property
    def last(self) -> httpx.Request:
        assert self.requests, "no request was sent"
        return self.requests[-1]


def form_fields(request: httpx.Request) -> dict:
    """Decode a form-urlencoded request body into ``{key: value}``."""
    parsed = parse_qs(request.content.decode("utf-8"), keep_blank_values=True)
    return {k: v[0] for k, v in parsed.items()}


def query_fields(request: httpx.Request) -> dict:
    return dict(request.url.params)


@pytest.fixture(autouse=True)
def _reset_root_handlers():
    """Drop handlers installed by setup_logging so they don't outlive capsys."""
    yield
    root = logging.getLogger()
    for handler in root.handlers[:]:
        if type(handler).__module__.startswith("_pytest"):
            continue
        handler.close()
        root.removeHandler(handler)


@pytest.fixture
def recorder() -> RecordingTransport:
    return RecordingTransport()


@pytest.fixture
def client(recorder: RecordingTransport) -> LunoClient:
    return LunoClient(key=TEST_KEY, secret=TEST_SECRET, transport=recorder.transport)


@pytest.fixture
def clean_env(monkeypatch):
    """Remove every env var the config loader reads."""
    for name in (
        "LUNO_KEY",
        "LUNO_SECRET",
        "LUNO_BASE_URL",
        "LUNO_API_VERSION",
        "LUNO_DEFAULT_PAIR",
        "LUNO_BODY_ENCODING",
        "LUNO_TIMEOUT_SECONDS",
        "LOG_LEVEL",
        "LOG_DIR",
        "LOG_JSON",
    ):
        monkeypatch.delenv(name, raising=False)
    # Keep a developer's local .env out of the tests.
    monkeypatch.setattr("luno.core.config.load_dotenv", lambda *a, **k: False)
    return monkeypatch
