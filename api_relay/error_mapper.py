"""Error Mapper - normalizes every failure cause into an ErrorModel.

Only map_response() keeps a raw body; failures without a response never
carry one.
"""

from __future__ import annotations

from api_relay.errors import (
    ErrorKind,
    ErrorModel,
    InterceptorError,
    NotConnectedError,
    RequestBuildError,
    TransportError,
    TransportTimeout,
)
from api_relay.models import HTTPResponse


def map_exception(exc: BaseException) -> ErrorModel:
    """Map an exception raised while building or sending a request."""
    if isinstance(exc, RequestBuildError):
        return ErrorModel(kind=exc.kind, cause=exc.cause or exc)
    if isinstance(exc, TransportTimeout):
        return ErrorModel(kind=ErrorKind.REQUEST_TIMEOUT, cause=exc)
    if isinstance(exc, NotConnectedError):
        return ErrorModel(kind=ErrorKind.NO_CONNECTION, cause=exc)
    if isinstance(exc, InterceptorError):
        # Report what the interceptor raised, not the wrapper.
        return ErrorModel(kind=ErrorKind.REQUEST_FAILED, cause=exc.__cause__ or exc)
    if isinstance(exc, TransportError):
        return ErrorModel(kind=ErrorKind.REQUEST_FAILED, cause=exc)
    return ErrorModel(kind=ErrorKind.UNKNOWN, cause=exc)


def map_response(response: HTTPResponse, kind: ErrorKind) -> ErrorModel:
    """Wrap a rejected response, keeping its body for caller-side decoding."""
    return ErrorModel(
        kind=kind,
        code=response.status_code,
        raw_body=response.body or None,
    )


def decoding_failure(response: HTTPResponse, cause: BaseException) -> ErrorModel:
    return ErrorModel(kind=ErrorKind.DECODING_FAILED, code=response.status_code, cause=cause)
