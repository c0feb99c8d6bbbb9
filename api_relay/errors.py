"""Error taxonomy and result values.

Every call made through NetworkClient resolves to exactly one of Success or
Failure. Exceptions are used inside the request pipeline and converted to
ErrorModel values at the client boundary.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Generic, TypeVar, Union

from pydantic import TypeAdapter, ValidationError

T = TypeVar("T")


class ErrorKind(str, Enum):
    """Flat classification of every failure a call can end with."""

    NO_CONNECTION = "no_connection"
    INVALID_URL = "invalid_url"
    BAD_REQUEST = "bad_request"
    UNAUTHORIZED = "unauthorized"
    FORBIDDEN = "forbidden"
    NOT_FOUND = "not_found"
    REQUEST_TIMEOUT = "request_timeout"
    TOO_MANY_REQUESTS = "too_many_requests"
    INTERNAL_SERVER_ERROR = "internal_server_error"
    SERVICE_UNAVAILABLE = "service_unavailable"
    BAD_RESPONSE = "bad_response"
    DECODING_FAILED = "decoding_failed"
    ENCODING_FAILED = "encoding_failed"
    REQUEST_FAILED = "request_failed"
    # Reserved: nothing in the pipeline produces these two yet.
    INVALID_CONTENT_TYPE = "invalid_content_type"
    CERTIFICATE_PINNING_FAILED = "certificate_pinning_failed"
    UNKNOWN = "unknown"


_DESCRIPTIONS: dict[ErrorKind, str] = {
    ErrorKind.NO_CONNECTION: "No internet connection available",
    ErrorKind.INVALID_URL: "Invalid URL",
    ErrorKind.BAD_REQUEST: "Bad request",
    ErrorKind.UNAUTHORIZED: "Unauthorized access",
    ErrorKind.FORBIDDEN: "Access forbidden",
    ErrorKind.NOT_FOUND: "Resource not found",
    ErrorKind.REQUEST_TIMEOUT: "Request timed out",
    ErrorKind.TOO_MANY_REQUESTS: "Too many requests",
    ErrorKind.INTERNAL_SERVER_ERROR: "Internal server error",
    ErrorKind.SERVICE_UNAVAILABLE: "Service unavailable",
    ErrorKind.BAD_RESPONSE: "Bad response",
    ErrorKind.DECODING_FAILED: "Decoding failed",
    ErrorKind.ENCODING_FAILED: "Encoding failed",
    ErrorKind.REQUEST_FAILED: "Request failed",
    ErrorKind.INVALID_CONTENT_TYPE: "Invalid content type",
    ErrorKind.CERTIFICATE_PINNING_FAILED: "Certificate pinning validation failed",
    ErrorKind.UNKNOWN: "Unknown error occurred",
}

_CAUSE_KINDS = frozenset(
    {ErrorKind.DECODING_FAILED, ErrorKind.ENCODING_FAILED, ErrorKind.REQUEST_FAILED}
)


@dataclass(frozen=True)
class ErrorModel:
    """Normalized failure: kind, optional HTTP status, optional raw body.

    raw_body is only set when the failure came from a non-2xx response that
    had a body, so callers can decode a server-specific error payload with
    decode_body().
    """

    kind: ErrorKind
    code: int | None = None
    raw_body: bytes | None = None
    cause: BaseException | None = None

    @property
    def description(self) -> str:
        base = _DESCRIPTIONS[self.kind]
        if self.kind is ErrorKind.BAD_RESPONSE:
            return f"{base} with status code: {self.code}"
        if self.kind in _CAUSE_KINDS and self.cause is not None:
            return f"{base}: {self.cause}"
        return base

    def __str__(self) -> str:
        return self.description

    def decode_body(self, model: Any) -> Any | None:
        """Decode raw_body as ``model``. None when there is no body or it doesn't fit."""
        if not self.raw_body:
            return None
        try:
            return TypeAdapter(model).validate_json(self.raw_body)
        except ValidationError:
            return None

    def raise_for_error(self) -> None:
        raise NetworkError(self)


@dataclass(frozen=True)
class Success(Generic[T]):
    value: T

    @property
    def ok(self) -> bool:
        return True

    def unwrap(self) -> T:
        return self.value


@dataclass(frozen=True)
class Failure:
    error: ErrorModel

    @property
    def ok(self) -> bool:
        return False

    def unwrap(self) -> Any:
        raise NetworkError(self.error)


Result = Union[Success[T], Failure]


# =============================================================================
# Exceptions
# =============================================================================


class RelayError(Exception):
    """Base class for api-relay errors."""


class NetworkError(RelayError):
    """Raised by Failure.unwrap() for callers who prefer exceptions."""

    def __init__(self, error: ErrorModel) -> None:
        super().__init__(error.description)
        self.error = error

    @property
    def kind(self) -> ErrorKind:
        return self.error.kind


class RequestBuildError(RelayError):
    """Raised when an Endpoint cannot be turned into a request.

    Deterministic for a given endpoint and base URL, so never retried.
    """

    def __init__(self, kind: ErrorKind, message: str, cause: BaseException | None = None) -> None:
        super().__init__(message)
        self.kind = kind
        self.cause = cause


class TransportError(RelayError):
    """Raised when a request fails before a response arrives (connection, DNS, etc.)."""


class TransportTimeout(TransportError):
    """Raised when the transport's own timeout fires."""


class NotConnectedError(TransportError):
    """Raised when the network is unreachable."""


class InterceptorError(TransportError):
    """Raised when a request interceptor fails. Retried like a transport failure."""
