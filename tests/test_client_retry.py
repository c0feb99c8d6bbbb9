"""Tests for NetworkClient.execute retry behavior.

Tests cover:
- Backoff delays for constant, linear, and exponential strategies
- Attempt and sleep bounds under repeated transport failures
- HTTP error statuses and build errors end the call without retrying
- Interceptor failures share the transport retry path
- Transport failures outside the TransportError tree are retried as REQUEST_FAILED
- The connectivity gate is awaited before every attempt
"""

from __future__ import annotations

import pytest

from api_relay.client import NetworkClient
from api_relay.errors import (
    ErrorKind,
    Failure,
    NotConnectedError,
    Success,
    TransportError,
    TransportTimeout,
)
from api_relay.models import DelayStrategy, Endpoint, JSONBodyTask, RetryPolicy
from api_relay.network_logger import NullNetworkLogger
from tests.conftest import Kanji, ScriptedTransport, make_http_response


def _endpoint(max_attempts: int, strategy: DelayStrategy, initial_delay: float = 1.0) -> Endpoint:
    return Endpoint(
        path="/items",
        retry_policy=RetryPolicy(
            max_attempts=max_attempts,
            initial_delay=initial_delay,
            delay_strategy=strategy,
        ),
    )


class TestBackoffDelays:
    """Sleeps between attempts follow the policy's strategy exactly."""

    @pytest.mark.parametrize(
        "strategy,expected",
        [
            (DelayStrategy.CONSTANT, [0.5, 0.5, 0.5]),
            (DelayStrategy.LINEAR, [0.5, 1.0, 1.5]),
            (DelayStrategy.EXPONENTIAL, [0.5, 1.0, 2.0]),
        ],
    )
    def test_delays_per_strategy(self, make_client, sleeps, strategy, expected) -> None:
        transport = ScriptedTransport([TransportError("connection refused")])
        client = make_client(transport)

        result = client.execute(_endpoint(4, strategy, initial_delay=0.5))

        assert isinstance(result, Failure)
        assert sleeps == expected

    @pytest.mark.parametrize("max_attempts", [1, 2, 3, 5])
    def test_attempts_and_sleeps_bounded(self, make_client, sleeps, max_attempts) -> None:
        """n attempts and n-1 sleeps for an endless run of transport failures."""
        transport = ScriptedTransport([TransportError("connection refused")])
        client = make_client(transport)

        client.execute(_endpoint(max_attempts, DelayStrategy.CONSTANT))

        assert transport.call_count == max_attempts
        assert len(sleeps) == max_attempts - 1

    def test_last_transport_error_surfaces(self, make_client) -> None:
        transport = ScriptedTransport(
            [TransportError("refused"), TransportError("refused"), TransportTimeout("slow")]
        )
        client = make_client(transport)

        result = client.execute(_endpoint(3, DelayStrategy.CONSTANT))

        assert isinstance(result, Failure)
        assert result.error.kind is ErrorKind.REQUEST_TIMEOUT
        assert result.error.raw_body is None
        assert result.error.code is None


class TestTerminalOutcomes:
    """Success and HTTP errors end the call on the attempt they happen."""

    def test_success_short_circuits(self, make_client, sleeps) -> None:
        transport = ScriptedTransport([make_http_response(200, b"{}")])
        client = make_client(transport)

        result = client.execute(_endpoint(5, DelayStrategy.EXPONENTIAL))

        assert isinstance(result, Success)
        assert transport.call_count == 1
        assert sleeps == []

    def test_not_found_is_not_retried(self, make_client, sleeps) -> None:
        transport = ScriptedTransport([make_http_response(404, b'{"message": "no such kanji"}')])
        client = make_client(transport)

        result = client.execute(_endpoint(3, DelayStrategy.EXPONENTIAL))

        assert isinstance(result, Failure)
        assert result.error.kind is ErrorKind.NOT_FOUND
        assert result.error.code == 404
        assert result.error.raw_body == b'{"message": "no such kanji"}'
        assert transport.call_count == 1
        assert sleeps == []

    def test_http_error_after_transport_failure(self, make_client, sleeps) -> None:
        """A 500 on attempt 2 ends the call even with an attempt left."""
        transport = ScriptedTransport(
            [TransportError("refused"), make_http_response(500), make_http_response(200)]
        )
        client = make_client(transport)

        result = client.execute(_endpoint(3, DelayStrategy.CONSTANT))

        assert isinstance(result, Failure)
        assert result.error.kind is ErrorKind.INTERNAL_SERVER_ERROR
        assert result.error.raw_body is None
        assert transport.call_count == 2
        assert sleeps == [1.0]

    def test_invalid_url_is_not_retried(self, sleeps, gate) -> None:
        transport = ScriptedTransport([make_http_response(200)])
        client = NetworkClient(
            "not a url",
            transport=transport,
            connectivity=gate,
            sleep=sleeps.append,
            network_logger=NullNetworkLogger(),
        )

        result = client.execute(_endpoint(3, DelayStrategy.CONSTANT))

        assert isinstance(result, Failure)
        assert result.error.kind is ErrorKind.INVALID_URL
        assert transport.call_count == 0
        assert sleeps == []

    def test_encoding_failure_is_not_retried(self, make_client, sleeps) -> None:
        transport = ScriptedTransport([make_http_response(200)])
        client = make_client(transport)
        endpoint = Endpoint(
            path="/items",
            task=JSONBodyTask(value=object()),
            retry_policy=RetryPolicy(max_attempts=3),
        )

        result = client.execute(endpoint)

        assert isinstance(result, Failure)
        assert result.error.kind is ErrorKind.ENCODING_FAILED
        assert result.error.cause is not None
        assert transport.call_count == 0
        assert sleeps == []

    def test_not_connected_maps_to_no_connection(self, make_client) -> None:
        transport = ScriptedTransport([NotConnectedError("network unreachable")])
        client = make_client(transport)

        result = client.execute(_endpoint(2, DelayStrategy.CONSTANT))

        assert isinstance(result, Failure)
        assert result.error.kind is ErrorKind.NO_CONNECTION


class TestForeignTransportFailures:
    """Transports that fail with exceptions outside the TransportError tree."""

    def test_builtin_connection_error_is_retried(self, make_client, sleeps) -> None:
        transport = ScriptedTransport([ConnectionError("connection refused")])
        client = make_client(transport)

        result = client.execute(_endpoint(3, DelayStrategy.EXPONENTIAL))

        assert isinstance(result, Failure)
        assert result.error.kind is ErrorKind.REQUEST_FAILED
        assert "connection refused" in result.error.description
        assert transport.call_count == 3
        assert sleeps == [1.0, 2.0]

    def test_recovers_after_builtin_error(self, make_client, sleeps) -> None:
        transport = ScriptedTransport([OSError("reset by peer"), make_http_response(200, b"ok")])
        client = make_client(transport)

        result = client.data(_endpoint(3, DelayStrategy.CONSTANT))

        assert result == Success(b"ok")
        assert transport.call_count == 2
        assert sleeps == [1.0]

    def test_original_exception_kept_as_cause(self, make_client) -> None:
        original = ConnectionError("connection refused")
        client = make_client(ScriptedTransport([original]))

        result = client.execute(_endpoint(1, DelayStrategy.CONSTANT))

        assert isinstance(result, Failure)
        assert isinstance(result.error.cause, TransportError)
        assert result.error.cause.__cause__ is original


class TestInterceptorFailures:
    """An interceptor that raises is retried like a transport failure."""

    class FailingInterceptor:
        def __init__(self, failures: int) -> None:
            self.calls = 0
            self._failures = failures

        def adapt(self, request):
            self.calls += 1
            if self.calls <= self._failures:
                raise RuntimeError("token refresh failed")
            return request.with_header("Authorization", "Bearer fresh")

    def test_interceptor_failure_retried_then_succeeds(self, make_client, sleeps) -> None:
        transport = ScriptedTransport([make_http_response(200)])
        interceptor = self.FailingInterceptor(failures=1)
        client = make_client(transport, interceptor=interceptor)

        result = client.execute(_endpoint(3, DelayStrategy.CONSTANT))

        assert isinstance(result, Success)
        assert interceptor.calls == 2
        assert transport.call_count == 1
        assert transport.requests[0].header("authorization") == "Bearer fresh"
        assert sleeps == [1.0]

    def test_interceptor_always_failing_exhausts_attempts(self, make_client, sleeps) -> None:
        transport = ScriptedTransport([make_http_response(200)])
        interceptor = self.FailingInterceptor(failures=99)
        client = make_client(transport, interceptor=interceptor)

        result = client.execute(_endpoint(3, DelayStrategy.CONSTANT))

        assert isinstance(result, Failure)
        assert result.error.kind is ErrorKind.REQUEST_FAILED
        assert isinstance(result.error.cause, RuntimeError)
        assert interceptor.calls == 3
        assert transport.call_count == 0
        assert len(sleeps) == 2

    def test_interceptor_skipped_when_not_needed(self, make_client) -> None:
        transport = ScriptedTransport([make_http_response(200)])
        interceptor = self.FailingInterceptor(failures=99)
        client = make_client(transport, interceptor=interceptor)
        endpoint = Endpoint(path="/public", needs_interceptor=False)

        result = client.execute(endpoint)

        assert isinstance(result, Success)
        assert interceptor.calls == 0

    def test_default_interceptor_sets_accept(self, make_client) -> None:
        transport = ScriptedTransport([make_http_response(200)])
        client = make_client(transport)

        client.execute(Endpoint(path="/items"))

        assert transport.requests[0].header("Accept") == "application/json"


class TestConnectivityGate:
    """The gate is awaited before every attempt."""

    def test_gate_awaited_per_attempt(self, make_client, gate) -> None:
        transport = ScriptedTransport([TransportError("refused")])
        client = make_client(transport)

        client.execute(_endpoint(3, DelayStrategy.CONSTANT))

        assert gate.waits == 3

    @pytest.mark.parametrize("wait_for_connectivity", [False, True])
    def test_gate_awaited_regardless_of_policy_flag(
        self, make_client, gate, wait_for_connectivity
    ) -> None:
        """wait_for_connectivity does not change when the gate is awaited."""
        transport = ScriptedTransport([make_http_response(200)])
        client = make_client(transport)
        endpoint = Endpoint(
            path="/items",
            retry_policy=RetryPolicy(max_attempts=1, wait_for_connectivity=wait_for_connectivity),
        )

        client.execute(endpoint)

        assert gate.waits == 1


class TestKanjiScenarios:
    """End-to-end scenarios against the kanji endpoint."""

    def test_recovers_after_two_connection_errors(
        self, make_client, sleeps, kanji_endpoint
    ) -> None:
        transport = ScriptedTransport(
            [
                TransportError("connection refused"),
                TransportError("connection refused"),
                make_http_response(200, '{"kanji":"走","stroke_count":7}'.encode("utf-8")),
            ]
        )
        client = make_client(transport)

        result = client.request(kanji_endpoint, Kanji)

        assert isinstance(result, Success)
        assert result.value.kanji == "走"
        assert result.value.stroke_count == 7
        assert sleeps == [1.0, 2.0]
        assert transport.call_count == 3

    def test_service_unavailable_on_first_attempt(
        self, make_client, sleeps, kanji_endpoint
    ) -> None:
        transport = ScriptedTransport([make_http_response(503)])
        client = make_client(transport)

        result = client.request(kanji_endpoint, Kanji)

        assert isinstance(result, Failure)
        assert result.error.kind is ErrorKind.SERVICE_UNAVAILABLE
        assert result.error.code == 503
        assert sleeps == []
        assert transport.call_count == 1

    def test_decode_failure_is_not_retried(self, make_client, sleeps, kanji_endpoint) -> None:
        transport = ScriptedTransport([make_http_response(200, b'{"kanji": 1}')])
        client = make_client(transport)

        result = client.request(kanji_endpoint, Kanji)

        assert isinstance(result, Failure)
        assert result.error.kind is ErrorKind.DECODING_FAILED
        assert result.error.code == 200
        assert transport.call_count == 1
        assert sleeps == []
