"""Response validation - classifies a status code as success or an ErrorKind."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from api_relay.errors import ErrorKind

_STATUS_KINDS: dict[int, ErrorKind] = {
    400: ErrorKind.BAD_REQUEST,
    401: ErrorKind.UNAUTHORIZED,
    403: ErrorKind.FORBIDDEN,
    404: ErrorKind.NOT_FOUND,
    408: ErrorKind.REQUEST_TIMEOUT,
    429: ErrorKind.TOO_MANY_REQUESTS,
    500: ErrorKind.INTERNAL_SERVER_ERROR,
    503: ErrorKind.SERVICE_UNAVAILABLE,
}


def error_kind_for_status(status_code: int) -> ErrorKind | None:
    """None for 2xx, the mapped kind for known codes, BAD_RESPONSE otherwise."""
    if 200 <= status_code <= 299:
        return None
    return _STATUS_KINDS.get(status_code, ErrorKind.BAD_RESPONSE)


@runtime_checkable
class ResponseValidator(Protocol):
    def validate(self, status_code: int) -> ErrorKind | None:
        """Return None if the status is acceptable, else the error kind."""
        ...


class StatusCodeValidator:
    """Accepts 200-299 and maps everything else through error_kind_for_status."""

    def validate(self, status_code: int) -> ErrorKind | None:
        return error_kind_for_status(status_code)
