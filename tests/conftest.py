"""
Shared fixtures for multichat tests.

Adapters are exercised against httpx.MockTransport so no test touches
the network; every request is recorded for assertions.
"""

import json
from typing import Callable

import httpx
import pytest


class RecordingTransport:
    """MockTransport handler that records requests before answering."""

    def __init__(self, handler: Callable[[httpx.Request], httpx.Response]):
        self.handler = handler
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        return self.handler(request)

    @property
    def paths(self) -> list[str]:
        return [request.url.path for request in self.requests]

    def body(self, index: int = -1) -> dict:
        return json.loads(self.requests[index].content)


@pytest.fixture
def mock_http():
    """Factory returning (AsyncClient, RecordingTransport) for a handler."""

    def _make(handler: Callable[[httpx.Request], httpx.Response]):
        recorder = RecordingTransport(handler)
        client = httpx.AsyncClient(transport=httpx.MockTransport(recorder))
        return client, recorder

    return _make


@pytest.fixture
def json_response():
    """Factory for a handler answering every request with the same JSON."""

    def _make(status_code: int, body, headers=None):
        def _handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(status_code, json=body, headers=headers)

        return _handler

    return _make
