"""Internal data models for api-relay.

All models use Pydantic v2. Endpoint descriptors and prepared requests are
frozen: they are created per logical API call and never mutated.
"""

from __future__ import annotations

from enum import Enum
from typing import Annotated, Any, Literal, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator


# =============================================================================
# Endpoint Models
# =============================================================================


class HTTPMethod(str, Enum):
    """HTTP methods an endpoint can declare."""

    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    PATCH = "PATCH"
    DELETE = "DELETE"
    HEAD = "HEAD"
    OPTIONS = "OPTIONS"


class CachePolicy(str, Enum):
    """Caching hint carried onto the prepared request untouched."""

    USE_PROTOCOL_CACHE_POLICY = "use_protocol_cache_policy"
    RELOAD_IGNORING_LOCAL_CACHE = "reload_ignoring_local_cache"
    RETURN_CACHE_DATA_ELSE_LOAD = "return_cache_data_else_load"
    RETURN_CACHE_DATA_DONT_LOAD = "return_cache_data_dont_load"


class DelayStrategy(str, Enum):
    """How the backoff grows between attempts."""

    CONSTANT = "constant"
    LINEAR = "linear"
    EXPONENTIAL = "exponential"


class RetryPolicy(BaseModel):
    """Attempt bound and backoff strategy for one endpoint.

    wait_for_connectivity is carried for callers, but the client waits on the
    connectivity gate before every attempt whatever its value.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    max_attempts: int = Field(default=3, ge=1, description="Total attempts, including the first")
    initial_delay: float = Field(default=1.0, ge=0, description="Base backoff in seconds")
    delay_strategy: DelayStrategy = Field(
        default=DelayStrategy.EXPONENTIAL, description="Backoff growth"
    )
    wait_for_connectivity: bool = Field(
        default=False, description="Reserved; see NetworkClient.execute"
    )

    @classmethod
    def no_retry(cls) -> RetryPolicy:
        return cls(max_attempts=1)

    def delay_for(self, attempt: int) -> float:
        """Backoff to sleep after the 1-based ``attempt`` failed."""
        if attempt < 1:
            raise ValueError("attempt is 1-based")
        if self.delay_strategy is DelayStrategy.CONSTANT:
            return self.initial_delay
        if self.delay_strategy is DelayStrategy.LINEAR:
            return self.initial_delay * attempt
        return self.initial_delay * 2 ** (attempt - 1)


class MultipartPart(BaseModel):
    """One named section of a multipart/form-data body."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    name: str = Field(min_length=1, description="Form field name")
    file_name: str | None = Field(default=None, description="Filename for file fields")
    mime_type: str | None = Field(default=None, description="Content-Type of the part")
    data: bytes = Field(description="Raw part content")


class PlainTask(BaseModel):
    """No body, no query."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    kind: Literal["plain"] = "plain"


class ParametersTask(BaseModel):
    """Parameters encoded into the URL query."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    kind: Literal["parameters"] = "parameters"
    parameters: dict[str, str] = Field(default_factory=dict)


class JSONBodyTask(BaseModel):
    """Any JSON-serializable value sent as the request body."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    kind: Literal["json_body"] = "json_body"
    value: Any = None


class MultipartTask(BaseModel):
    """Ordered multipart/form-data parts."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    kind: Literal["multipart"] = "multipart"
    parts: tuple[MultipartPart, ...] = Field(default=())


class RawDataTask(BaseModel):
    """Body sent verbatim."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    kind: Literal["raw_data"] = "raw_data"
    data: bytes = b""


Task = Annotated[
    Union[PlainTask, ParametersTask, JSONBodyTask, MultipartTask, RawDataTask],
    Field(discriminator="kind"),
]


class Endpoint(BaseModel):
    """Immutable descriptor of one logical API call.

    path is appended to the environment's base URL. The task decides how the
    body and query are shaped and is never reinterpreted as another variant.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    path: str = Field(description="Path appended to the base URL")
    method: HTTPMethod = Field(default=HTTPMethod.GET, description="HTTP method")
    headers: dict[str, str] | None = Field(default=None, description="Per-endpoint headers")
    task: Task = Field(default_factory=PlainTask, description="Body/query shape")
    cache_policy: CachePolicy = Field(
        default=CachePolicy.USE_PROTOCOL_CACHE_POLICY, description="Opaque cache hint"
    )
    timeout: float = Field(default=60.0, gt=0, description="Transport timeout in seconds")
    retry_policy: RetryPolicy = Field(default_factory=RetryPolicy, description="Retry settings")
    needs_interceptor: bool = Field(
        default=True, description="Run the request interceptor before sending"
    )


# =============================================================================
# Wire Models
# =============================================================================


class PreparedRequest(BaseModel):
    """A transport-ready request built from an Endpoint.

    Header names keep the case they were set with; with_header replaces an
    existing header case-insensitively.
    """

    model_config = ConfigDict(extra="forbid", frozen=True)

    method: HTTPMethod
    url: str
    headers: dict[str, str] = Field(default_factory=dict)
    body: bytes = b""
    timeout: float = 60.0
    cache_policy: CachePolicy = CachePolicy.USE_PROTOCOL_CACHE_POLICY

    def header(self, name: str) -> str | None:
        lowered = name.lower()
        for key, value in self.headers.items():
            if key.lower() == lowered:
                return value
        return None

    def with_header(self, name: str, value: str) -> PreparedRequest:
        return self.model_copy(update={"headers": set_header(self.headers, name, value)})

    def with_body(self, body: bytes) -> PreparedRequest:
        return self.model_copy(update={"body": body})


class HTTPResponse(BaseModel):
    """Status, headers, and body returned by a transport."""

    model_config = ConfigDict(extra="forbid", frozen=True)

    status_code: int
    headers: dict[str, str] = Field(default_factory=dict)
    body: bytes = b""
    url: str | None = None

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code < 300


class EmptyResponse(BaseModel):
    """Decode target for endpoints that answer with an empty body."""

    model_config = ConfigDict(extra="ignore")


def set_header(headers: dict[str, str], name: str, value: str) -> dict[str, str]:
    """Return a copy of headers with name set, replacing any case variant."""
    lowered = name.lower()
    result = {key: val for key, val in headers.items() if key.lower() != lowered}
    result[name] = value
    return result


# =============================================================================
# Runtime Configuration Models
# =============================================================================


class EnvironmentConfig(BaseModel):
    """One server environment (development, staging, production...)."""

    model_config = ConfigDict(extra="forbid")

    base_url: str = Field(description="Base URL endpoints are appended to")
    headers: dict[str, str] = Field(
        default_factory=dict,
        description="Default headers for every request (supports ${ENV_VAR} substitution)",
    )
    verify_ssl: bool = Field(default=True, description="Verify server certificates")
    ca_bundle: str | None = Field(default=None, description="Path to a CA bundle")
    cert: str | None = Field(default=None, description="Client certificate path (mTLS)")
    key: str | None = Field(default=None, description="Client key path (mTLS)")

    @field_validator("base_url")
    @classmethod
    def validate_base_url(cls, v: str) -> str:
        if not v.startswith(("http://", "https://")):
            raise ValueError("base_url must start with http:// or https://")
        return v


class ClientConfig(BaseModel):
    """Top-level client configuration file structure."""

    model_config = ConfigDict(extra="forbid")

    environments: dict[str, EnvironmentConfig] = Field(
        description="Environment name -> config mapping"
    )
    default_environment: str | None = Field(
        default=None, description="Environment used when none is named"
    )
