"""Network logging - a fire-and-forget sink for requests and responses."""

from __future__ import annotations

import logging
from typing import Protocol, runtime_checkable

from api_relay.models import Endpoint, HTTPResponse, PreparedRequest

DEFAULT_MAX_BODY_CHARS = 1000


@runtime_checkable
class NetworkLogger(Protocol):
    def log_request(self, request: PreparedRequest) -> None:
        ...

    def log_response(
        self,
        response: HTTPResponse | None,
        error: BaseException | None,
        endpoint: Endpoint,
    ) -> None:
        ...


def _preview(body: bytes, max_chars: int) -> str | None:
    try:
        text = body.decode("utf-8")
    except UnicodeDecodeError:
        return None
    if len(text) > max_chars:
        return f"{text[:max_chars]}... (truncated)"
    return text


class LoggingNetworkLogger:
    """Writes request/response traffic to the ``api_relay`` logger.

    Request and response lines go to INFO, headers and bodies to DEBUG,
    failures to WARNING. Bodies that are not UTF-8 are skipped.
    """

    def __init__(
        self,
        logger: logging.Logger | None = None,
        max_body_chars: int = DEFAULT_MAX_BODY_CHARS,
    ) -> None:
        self._logger = logger or logging.getLogger("api_relay")
        self._max_body_chars = max_body_chars

    def log_request(self, request: PreparedRequest) -> None:
        self._logger.info("[REQUEST] %s %s", request.method.value, request.url)
        if request.headers:
            self._logger.debug("  [HEADERS] %s", request.headers)
        if request.body:
            preview = _preview(request.body, self._max_body_chars)
            if preview is not None:
                self._logger.debug("  [BODY] %s", preview)

    def log_response(
        self,
        response: HTTPResponse | None,
        error: BaseException | None,
        endpoint: Endpoint,
    ) -> None:
        if response is None:
            self._logger.warning("[ERROR] for %s: %s", endpoint.path, error or "Unknown error")
            return

        level = logging.INFO if response.is_success else logging.WARNING
        self._logger.log(
            level, "[RESPONSE] %d from %s", response.status_code, response.url or endpoint.path
        )
        if response.body:
            preview = _preview(response.body, self._max_body_chars)
            if preview is not None:
                self._logger.debug("  [DATA] %s", preview)
        if error is not None:
            self._logger.warning("  [ERROR] %s", error)


class NullNetworkLogger:
    def log_request(self, request: PreparedRequest) -> None:
        pass

    def log_response(
        self,
        response: HTTPResponse | None,
        error: BaseException | None,
        endpoint: Endpoint,
    ) -> None:
        pass
