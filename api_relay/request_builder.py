"""Request Builder - Turns an Endpoint into a transport-ready request.

The builder is pure: it returns a new PreparedRequest and never touches the
Endpoint. Failures are deterministic for a given endpoint and base URL and
are raised as RequestBuildError.
"""

from __future__ import annotations

from typing import Callable

import httpx
from pydantic_core import PydanticSerializationError, to_json

from api_relay.errors import ErrorKind, RequestBuildError
from api_relay.models import (
    Endpoint,
    JSONBodyTask,
    MultipartTask,
    ParametersTask,
    PlainTask,
    PreparedRequest,
    RawDataTask,
    set_header,
)
from api_relay.multipart import content_type_for, encode_multipart, make_boundary

APPLICATION_JSON = "application/json"
CONTENT_TYPE = "Content-Type"


def resolve_url(base_url: str, path: str) -> httpx.URL:
    """Append path to base_url and parse the result.

    Exactly one slash joins the two halves. Non-ASCII path characters are
    percent-encoded by the parser.

    Raises:
        RequestBuildError: INVALID_URL if the result is not an absolute
            http(s) URL.
    """
    raw = base_url.rstrip("/") + "/" + path.lstrip("/")
    try:
        url = httpx.URL(raw)
    except (httpx.InvalidURL, TypeError) as e:
        raise RequestBuildError(ErrorKind.INVALID_URL, f"Invalid URL {raw!r}: {e}", e) from e

    if url.scheme not in ("http", "https") or not url.host:
        raise RequestBuildError(ErrorKind.INVALID_URL, f"Invalid URL {raw!r}: not absolute")
    return url


def build_request(
    endpoint: Endpoint,
    base_url: str,
    *,
    boundary_factory: Callable[[], str] = make_boundary,
) -> PreparedRequest:
    """Build the request for one attempt of an endpoint call.

    Args:
        endpoint: The endpoint descriptor.
        base_url: The environment's base URL.
        boundary_factory: Source of multipart boundaries (tests pin it).

    Returns:
        A new PreparedRequest.

    Raises:
        RequestBuildError: INVALID_URL or ENCODING_FAILED.
    """
    url = resolve_url(base_url, endpoint.path)
    headers: dict[str, str] = dict(endpoint.headers or {})
    body = b""

    task = endpoint.task
    if isinstance(task, PlainTask):
        pass
    elif isinstance(task, ParametersTask):
        if task.parameters:
            url = url.copy_merge_params(task.parameters)
    elif isinstance(task, JSONBodyTask):
        try:
            body = to_json(task.value)
        except (PydanticSerializationError, TypeError, ValueError) as e:
            raise RequestBuildError(
                ErrorKind.ENCODING_FAILED, f"Could not encode JSON body: {e}", e
            ) from e
        headers = set_header(headers, CONTENT_TYPE, APPLICATION_JSON)
    elif isinstance(task, RawDataTask):
        body = task.data
    elif isinstance(task, MultipartTask):
        boundary = boundary_factory()
        headers = set_header(headers, CONTENT_TYPE, content_type_for(boundary))
        body = encode_multipart(task.parts, boundary)

    return PreparedRequest(
        method=endpoint.method,
        url=str(url),
        headers=headers,
        body=body,
        timeout=endpoint.timeout,
        cache_policy=endpoint.cache_policy,
    )
