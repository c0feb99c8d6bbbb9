"""Pytest configuration and fixtures for api-relay tests.

This file provides:
- make_http_response: HTTPResponse factory with test defaults
- ScriptedTransport: Transport double that replays a scripted list of outcomes
- CountingGate: Connectivity gate that records how often it was awaited
- Fixtures: sleep recorder, kanji endpoint, client wiring
"""

from __future__ import annotations

import threading
from pathlib import Path
from typing import Callable

import pytest
from pydantic import BaseModel

from api_relay.client import NetworkClient
from api_relay.models import (
    DelayStrategy,
    Endpoint,
    HTTPMethod,
    HTTPResponse,
    PreparedRequest,
    RetryPolicy,
)
from api_relay.network_logger import NullNetworkLogger

BASE_URL = "https://kanjiapi.dev/v1/"


class Kanji(BaseModel):
    kanji: str
    stroke_count: int


class ErrorPayload(BaseModel):
    message: str


def make_http_response(
    status_code: int = 200,
    body: bytes = b"",
    headers: dict[str, str] | None = None,
) -> HTTPResponse:
    """Create an HTTPResponse for testing.

    Prefer this over constructing HTTPResponse directly - it provides
    sensible defaults and documents which fields are typically varied in tests.
    """
    return HTTPResponse(status_code=status_code, headers=headers or {}, body=body)


class ScriptedTransport:
    """Replays outcomes in order: an HTTPResponse is returned, an exception raised.

    Every request passed to send() is recorded. The last outcome repeats once
    the script runs out.
    """

    def __init__(self, outcomes: list[HTTPResponse | BaseException]) -> None:
        self._outcomes = list(outcomes)
        self._lock = threading.Lock()
        self.requests: list[PreparedRequest] = []
        self.closed = False

    @property
    def call_count(self) -> int:
        return len(self.requests)

    def _next(self) -> HTTPResponse | BaseException:
        with self._lock:
            index = min(len(self.requests) - 1, len(self._outcomes) - 1)
            return self._outcomes[index]

    def send(self, request: PreparedRequest) -> HTTPResponse:
        with self._lock:
            self.requests.append(request)
        outcome = self._next()
        if isinstance(outcome, BaseException):
            raise outcome
        return outcome

    def download(self, request: PreparedRequest, directory: Path) -> tuple[HTTPResponse, Path]:
        response = self.send(request)
        temp_path = directory / ".download-test"
        temp_path.write_bytes(response.body)
        return response.model_copy(update={"body": b""}), temp_path

    def close(self) -> None:
        self.closed = True


class CountingGate:
    """Connectivity gate that is always connected and counts waits."""

    def __init__(self) -> None:
        self.waits = 0

    def is_connected(self) -> bool:
        return True

    def wait_for_connection(self, timeout: float | None = None) -> bool:
        self.waits += 1
        return True


@pytest.fixture
def sleeps() -> list[float]:
    """Backoff delays recorded instead of slept."""
    return []


@pytest.fixture
def gate() -> CountingGate:
    return CountingGate()


@pytest.fixture
def kanji_endpoint() -> Endpoint:
    return Endpoint(
        path="/kanji/走",
        method=HTTPMethod.GET,
        timeout=1.0,
        retry_policy=RetryPolicy(
            max_attempts=3,
            initial_delay=1.0,
            delay_strategy=DelayStrategy.EXPONENTIAL,
        ),
    )


@pytest.fixture
def make_client(
    sleeps: list[float], gate: CountingGate
) -> Callable[..., NetworkClient]:
    """Factory wiring a NetworkClient to a transport double, the sleep recorder, and the gate."""

    def _make(transport: ScriptedTransport, **kwargs) -> NetworkClient:
        kwargs.setdefault("sleep", sleeps.append)
        kwargs.setdefault("connectivity", gate)
        kwargs.setdefault("network_logger", NullNetworkLogger())
        return NetworkClient(BASE_URL, transport=transport, **kwargs)

    return _make
