"""Transport - executes prepared requests over the wire.

The client only depends on the Transport protocol; HttpxTransport is the
default implementation. Transports raise TransportError subclasses for
failures that happen before a response arrives and return every response,
whatever its status, as an HTTPResponse.
"""

from __future__ import annotations

import errno
import os
import socket
import tempfile
from pathlib import Path
from typing import Any, Protocol, runtime_checkable

import httpx

from api_relay.errors import NotConnectedError, TransportError, TransportTimeout
from api_relay.models import EnvironmentConfig, HTTPResponse, PreparedRequest

_UNREACHABLE_ERRNOS = frozenset({errno.ENETUNREACH, errno.ENETDOWN, errno.EHOSTUNREACH})


@runtime_checkable
class Transport(Protocol):
    def send(self, request: PreparedRequest) -> HTTPResponse:
        ...

    def download(self, request: PreparedRequest, directory: Path) -> tuple[HTTPResponse, Path]:
        """Stream the response body into a new file in ``directory``.

        The returned HTTPResponse has an empty body; the caller owns the file.
        A file that cannot be created or written raises TransportError.
        """
        ...


def _is_unreachable(exc: BaseException) -> bool:
    """True if an OS-level cause says the network itself is unavailable."""
    seen: set[int] = set()
    current: BaseException | None = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        if isinstance(current, socket.gaierror):
            return True
        if isinstance(current, OSError) and current.errno in _UNREACHABLE_ERRNOS:
            return True
        current = current.__cause__ or current.__context__
    return False


def _flatten_headers(headers: httpx.Headers) -> dict[str, str]:
    # Repeated headers are joined the way HTTP allows them to be folded.
    result: dict[str, str] = {}
    for key, value in headers.multi_items():
        key_lower = key.lower()
        if key_lower in result:
            result[key_lower] = f"{result[key_lower]}, {value}"
        else:
            result[key_lower] = value
    return result


class HttpxTransport:
    """Transport backed by httpx.Client.

    Usage:
        with HttpxTransport(environment) as transport:
            response = transport.send(request)
    """

    def __init__(
        self,
        environment: EnvironmentConfig | None = None,
        client: httpx.Client | None = None,
    ) -> None:
        """Initialize the transport.

        Args:
            environment: Default headers and TLS settings for the client.
            client: Pre-built client (tests pass one with httpx.MockTransport).
                    The transport closes it on close().
        """
        if client is None:
            client = httpx.Client(**self._build_client_kwargs(environment))
        self._client = client

    def __enter__(self) -> HttpxTransport:
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: Any,
    ) -> None:
        self.close()

    def close(self) -> None:
        self._client.close()

    @staticmethod
    def _build_client_kwargs(environment: EnvironmentConfig | None) -> dict[str, Any]:
        """Build kwargs for httpx.Client including TLS configuration."""
        kwargs: dict[str, Any] = {}
        if environment is None:
            return kwargs

        kwargs["headers"] = environment.headers

        # Client certificate (mTLS)
        if environment.cert and environment.key:
            kwargs["cert"] = (environment.cert, environment.key)
        elif environment.cert:
            kwargs["cert"] = environment.cert

        if environment.ca_bundle:
            kwargs["verify"] = environment.ca_bundle
        elif not environment.verify_ssl:
            kwargs["verify"] = False

        return kwargs

    def _build(self, request: PreparedRequest) -> httpx.Request:
        return self._client.build_request(
            method=request.method.value,
            url=request.url,
            headers=request.headers or None,
            content=request.body or None,
            timeout=request.timeout,
        )

    def send(self, request: PreparedRequest) -> HTTPResponse:
        try:
            response = self._client.send(self._build(request))
        except httpx.RequestError as e:
            raise self._translate(e) from e

        return HTTPResponse(
            status_code=response.status_code,
            headers=_flatten_headers(response.headers),
            body=response.content,
            url=str(response.url),
        )

    def download(self, request: PreparedRequest, directory: Path) -> tuple[HTTPResponse, Path]:
        try:
            directory.mkdir(parents=True, exist_ok=True)
            fd, temp_name = tempfile.mkstemp(prefix=".download-", dir=directory)
        except OSError as e:
            raise TransportError(f"Cannot create download file in {directory}: {e}") from e

        temp_path = Path(temp_name)
        try:
            with os.fdopen(fd, "wb") as f:
                response = self._client.send(self._build(request), stream=True)
                try:
                    for chunk in response.iter_bytes():
                        f.write(chunk)
                finally:
                    response.close()
        except httpx.RequestError as e:
            temp_path.unlink(missing_ok=True)
            raise self._translate(e) from e
        except OSError as e:
            temp_path.unlink(missing_ok=True)
            raise TransportError(f"Cannot write download file {temp_path}: {e}") from e
        except BaseException:
            temp_path.unlink(missing_ok=True)
            raise

        return (
            HTTPResponse(
                status_code=response.status_code,
                headers=_flatten_headers(response.headers),
                url=str(response.url),
            ),
            temp_path,
        )

    @staticmethod
    def _translate(exc: httpx.RequestError) -> TransportError:
        if isinstance(exc, httpx.TimeoutException):
            return TransportTimeout(f"Request timeout: {exc}")
        if isinstance(exc, httpx.ConnectError) and _is_unreachable(exc):
            return NotConnectedError(f"Network unreachable: {exc}")
        if isinstance(exc, httpx.ConnectError):
            return TransportError(f"Connection error: {exc}")
        return TransportError(f"Request error: {exc}")
