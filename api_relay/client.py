"""NetworkClient - executes Endpoint calls with connectivity-aware retry.

Each call runs through: wait on the connectivity gate, build the request,
adapt it with the interceptor, send it, validate the status. Only
transport-class failures (connection errors, transport timeouts, interceptor
failures) are retried; build errors and HTTP error statuses end the call on
the attempt they happen. A transport that fails with an exception outside
the RelayError tree is treated as a TransportError. Every public method
returns Success or Failure.

Attempts of one call are strictly sequential. The client holds no per-call
state, so one instance can serve many threads at once.
"""

from __future__ import annotations

import logging
import os
import time
from pathlib import Path
from typing import Any, Callable, TypeVar

from pydantic import TypeAdapter, ValidationError
from tenacity import (
    RetryCallState,
    Retrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
)
from tenacity.wait import wait_base

from api_relay.config_loader import select_environment
from api_relay.connectivity import AlwaysConnected, ConnectivityGate
from api_relay.error_mapper import decoding_failure, map_exception, map_response
from api_relay.errors import (
    ErrorKind,
    ErrorModel,
    Failure,
    InterceptorError,
    RelayError,
    Result,
    Success,
    TransportError,
)
from api_relay.interceptor import DefaultRequestInterceptor, RequestInterceptor
from api_relay.models import (
    ClientConfig,
    EmptyResponse,
    Endpoint,
    HTTPResponse,
    PreparedRequest,
    RetryPolicy,
)
from api_relay.multipart import make_boundary
from api_relay.network_logger import LoggingNetworkLogger, NetworkLogger
from api_relay.request_builder import build_request
from api_relay.transport import HttpxTransport, Transport
from api_relay.validator import ResponseValidator, StatusCodeValidator

T = TypeVar("T")

logger = logging.getLogger(__name__)


class _PolicyWait(wait_base):
    """Backoff after a failed attempt, taken from the endpoint's RetryPolicy."""

    def __init__(self, policy: RetryPolicy) -> None:
        self._policy = policy

    def __call__(self, retry_state: RetryCallState) -> float:
        return self._policy.delay_for(retry_state.attempt_number)


class NetworkClient:
    """Executes endpoint calls against one base URL.

    Usage:
        with NetworkClient("https://kanjiapi.dev/v1/", connectivity=monitor) as client:
            result = client.request(Endpoint(path="/kanji/走"), Kanji)
            if isinstance(result, Success):
                print(result.value.stroke_count)
            else:
                print(result.error.description)
    """

    def __init__(
        self,
        base_url: str,
        *,
        transport: Transport | None = None,
        interceptor: RequestInterceptor | None = None,
        validator: ResponseValidator | None = None,
        network_logger: NetworkLogger | None = None,
        connectivity: ConnectivityGate | None = None,
        sleep: Callable[[float], None] = time.sleep,
        boundary_factory: Callable[[], str] = make_boundary,
    ) -> None:
        """Initialize the client.

        Args:
            base_url: Base URL every endpoint path is appended to.
            transport: Executes requests. Defaults to an HttpxTransport owned
                       (and closed) by this client.
            interceptor: Adapts requests for endpoints with needs_interceptor.
            validator: Classifies response status codes.
            network_logger: Receives every request and response.
            connectivity: Shared connectivity gate, awaited before each attempt.
            sleep: Called with each backoff delay in seconds.
            boundary_factory: Source of multipart boundaries.
        """
        self._base_url = base_url
        self._owns_transport = transport is None
        self._transport: Transport = transport if transport is not None else HttpxTransport()
        self._interceptor = interceptor if interceptor is not None else DefaultRequestInterceptor()
        self._validator = validator if validator is not None else StatusCodeValidator()
        self._network_logger = (
            network_logger if network_logger is not None else LoggingNetworkLogger()
        )
        self._connectivity = connectivity if connectivity is not None else AlwaysConnected()
        self._sleep = sleep
        self._boundary_factory = boundary_factory

    @classmethod
    def from_config(
        cls,
        config: ClientConfig,
        environment_name: str | None = None,
        **kwargs: Any,
    ) -> NetworkClient:
        """Build a client for one environment of a loaded ClientConfig."""
        environment = select_environment(config, environment_name)
        transport = HttpxTransport(environment)
        client = cls(environment.base_url, transport=transport, **kwargs)
        client._owns_transport = True
        return client

    @property
    def base_url(self) -> str:
        return self._base_url

    def __enter__(self) -> NetworkClient:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        self.close()

    def close(self) -> None:
        """Close the transport if this client created it."""
        if self._owns_transport:
            close = getattr(self._transport, "close", None)
            if close is not None:
                close()

    # -------------------------------------------------------------------------
    # Public operations
    # -------------------------------------------------------------------------

    def execute(self, endpoint: Endpoint) -> Result[HTTPResponse]:
        """Run the endpoint under its retry policy and return the raw response.

        The connectivity gate is awaited before every attempt, whatever the
        policy's wait_for_connectivity says.

        Returns:
            Success with the 2xx response, or Failure with the build error,
            the HTTP error (carrying the raw body), or the last transport error
            once max_attempts is exhausted.
        """
        policy = endpoint.retry_policy
        retrying = Retrying(
            stop=stop_after_attempt(policy.max_attempts),
            wait=_PolicyWait(policy),
            retry=retry_if_exception_type(TransportError),
            sleep=self._sleep,
            before_sleep=before_sleep_log(logger, logging.WARNING),
            reraise=True,
        )
        try:
            return retrying(self._attempt, endpoint)
        except RelayError as e:
            return Failure(map_exception(e))

    def request(self, endpoint: Endpoint, response_type: Any) -> Result[Any]:
        """Execute the endpoint and decode the body as ``response_type``.

        Decoding happens after the retry loop; a body that doesn't fit is a
        DECODING_FAILED failure and the call is not retried.
        """
        result = self.execute(endpoint)
        if isinstance(result, Failure):
            return result
        return self._decode(result.value, response_type)

    def data(self, endpoint: Endpoint) -> Result[bytes]:
        """Execute the endpoint and return the raw body bytes."""
        result = self.execute(endpoint)
        if isinstance(result, Failure):
            return result
        return Success(result.value.body)

    def upload(self, endpoint: Endpoint, data: bytes, response_type: Any) -> Result[Any]:
        """Send ``data`` as the body in a single attempt and decode the response."""
        try:
            result = self._attempt(endpoint, body=data)
        except RelayError as e:
            return Failure(map_exception(e))
        if isinstance(result, Failure):
            return result
        return self._decode(result.value, response_type)

    def download(self, endpoint: Endpoint, destination: Path | str) -> Result[Path]:
        """Stream the response body to ``destination`` in a single attempt.

        The body lands in a temporary file beside the destination and is moved
        over any existing file only after the status validates.
        """
        destination = Path(destination)
        try:
            request = self._prepare(endpoint)
            self._log_request(request)
            response, temp_path = self._download(request, destination.parent)
        except RelayError as e:
            self._log_response(None, e, endpoint)
            return Failure(map_exception(e))

        self._log_response(response, None, endpoint)

        kind = self._validator.validate(response.status_code)
        try:
            if kind is not None:
                error_body = temp_path.read_bytes()
                return Failure(map_response(response.model_copy(update={"body": error_body}), kind))
            os.replace(temp_path, destination)
        except OSError as e:
            self._log_response(None, e, endpoint)
            return Failure(ErrorModel(kind=ErrorKind.REQUEST_FAILED, cause=e))
        finally:
            temp_path.unlink(missing_ok=True)

        return Success(destination)

    # -------------------------------------------------------------------------
    # Attempt pipeline
    # -------------------------------------------------------------------------

    def _prepare(self, endpoint: Endpoint, body: bytes | None = None) -> PreparedRequest:
        self._connectivity.wait_for_connection()

        request = build_request(endpoint, self._base_url, boundary_factory=self._boundary_factory)
        if body is not None:
            request = request.with_body(body)

        if endpoint.needs_interceptor:
            request = self._adapt(request)
        return request

    def _adapt(self, request: PreparedRequest) -> PreparedRequest:
        try:
            return self._interceptor.adapt(request)
        except RelayError:
            raise
        except Exception as e:
            raise InterceptorError(f"Interceptor failed: {e}") from e

    def _send(self, request: PreparedRequest) -> HTTPResponse:
        try:
            return self._transport.send(request)
        except RelayError:
            raise
        except Exception as e:
            raise TransportError(f"{type(e).__name__}: {e}") from e

    def _download(self, request: PreparedRequest, directory: Path) -> tuple[HTTPResponse, Path]:
        try:
            return self._transport.download(request, directory)
        except RelayError:
            raise
        except Exception as e:
            raise TransportError(f"{type(e).__name__}: {e}") from e

    def _attempt(self, endpoint: Endpoint, body: bytes | None = None) -> Result[HTTPResponse]:
        """One attempt. Raises RelayError for build and transport-class failures."""
        try:
            request = self._prepare(endpoint, body)
            self._log_request(request)
            response = self._send(request)
        except RelayError as e:
            self._log_response(None, e, endpoint)
            raise

        self._log_response(response, None, endpoint)

        kind = self._validator.validate(response.status_code)
        if kind is not None:
            return Failure(map_response(response, kind))
        return Success(response)

    def _decode(self, response: HTTPResponse, response_type: Any) -> Result[Any]:
        if (
            isinstance(response_type, type)
            and issubclass(response_type, EmptyResponse)
            and not response.body.strip()
        ):
            return Success(response_type())
        try:
            value = TypeAdapter(response_type).validate_json(response.body)
        except ValidationError as e:
            return Failure(decoding_failure(response, e))
        return Success(value)

    # Logging must never change the outcome of a call.

    def _log_request(self, request: PreparedRequest) -> None:
        try:
            self._network_logger.log_request(request)
        except Exception:
            logger.exception("Network logger failed on request")

    def _log_response(
        self,
        response: HTTPResponse | None,
        error: BaseException | None,
        endpoint: Endpoint,
    ) -> None:
        try:
            self._network_logger.log_response(response, error, endpoint)
        except Exception:
            logger.exception("Network logger failed on response")
