"""Pytest configuration and fixtures for simplerest tests.

This file provides:
- RecordingTransport: httpx.MockTransport that records every request it serves
- make_transport: Shortcut for a transport that always returns one response
- wait_until: Polling helper for tests that coordinate threads
"""

from __future__ import annotations

import threading
import time
from typing import Callable

import httpx
import pytest


class RecordingTransport(httpx.MockTransport):
    """MockTransport that keeps every request it handles.

    Usage:
        transport = RecordingTransport(lambda request: httpx.Response(200, text="ok"))
        client = HttpClient(transport=transport)
        client.get("http://test/items")
        assert transport.call_count == 1
    """

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]) -> None:
        self.requests: list[httpx.Request] = []
        self._lock = threading.Lock()

        def record(request: httpx.Request) -> httpx.Response:
            request.read()
            with self._lock:
                self.requests.append(request)
            return handler(request)

        super().__init__(record)

    @property
    def call_count(self) -> int:
        with self._lock:
            return len(self.requests)

    @property
    def last_request(self) -> httpx.Request:
        with self._lock:
            return self.requests[-1]


def make_transport(
    status_code: int = 200,
    text: str = "ok",
    headers: dict[str, str] | None = None,
) -> RecordingTransport:
    """Create a transport that answers every request with the same response."""
    return RecordingTransport(
        lambda request: httpx.Response(status_code, text=text, headers=headers)
    )


def wait_until(predicate: Callable[[], bool], timeout: float = 5.0) -> None:
    """Block until predicate() is true, failing the test after timeout seconds."""
    deadline = time.monotonic() + timeout
    while not predicate():
        if time.monotonic() > deadline:
            pytest.fail("Timed out waiting for condition")
        time.sleep(0.005)


@pytest.fixture
def ok_transport() -> RecordingTransport:
    """Transport that answers 200 'ok' to everything."""
    return make_transport()
