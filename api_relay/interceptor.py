"""Request interceptors - adapt a built request before it is sent.

Interceptors are the place for auth-token injection, request signing, or any
header that must be present on most requests. They run only for endpoints with
needs_interceptor set. An interceptor that raises is treated like a transport
failure by NetworkClient and retried under the endpoint's policy.
"""

from __future__ import annotations

from typing import Iterable, Mapping, Protocol, runtime_checkable

from api_relay.models import PreparedRequest

ACCEPT = "Accept"
AUTHORIZATION = "Authorization"


@runtime_checkable
class RequestInterceptor(Protocol):
    def adapt(self, request: PreparedRequest) -> PreparedRequest:
        """Return the request to send in place of ``request``."""
        ...


class DefaultRequestInterceptor:
    """Asks for JSON responses."""

    def __init__(self, accept: str = "application/json") -> None:
        self._accept = accept

    def adapt(self, request: PreparedRequest) -> PreparedRequest:
        return request.with_header(ACCEPT, self._accept)


class HeaderInterceptor:
    """Sets a fixed set of headers, replacing any existing values."""

    def __init__(self, headers: Mapping[str, str]) -> None:
        self._headers = dict(headers)

    @classmethod
    def bearer(cls, token: str) -> HeaderInterceptor:
        return cls({AUTHORIZATION: f"Bearer {token}"})

    def adapt(self, request: PreparedRequest) -> PreparedRequest:
        for name, value in self._headers.items():
            request = request.with_header(name, value)
        return request


class InterceptorChain:
    """Applies interceptors in order; the first failure stops the chain.

    Usage:
        chain = InterceptorChain([DefaultRequestInterceptor(), HeaderInterceptor.bearer(token)])
        client = NetworkClient(base_url, interceptor=chain)
    """

    def __init__(self, interceptors: Iterable[RequestInterceptor]) -> None:
        self._interceptors = list(interceptors)

    def __len__(self) -> int:
        return len(self._interceptors)

    def adapt(self, request: PreparedRequest) -> PreparedRequest:
        for interceptor in self._interceptors:
            request = interceptor.adapt(request)
        return request
