"""Data models for the dispatch layer."""

import random
from enum import Enum
from typing import Annotated, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, model_validator

from cosmic_gateway.fetch.constants import LATEST_AVAILABLE


ParamValue = str | int | float | bool | None


class ErrorKind(str, Enum):
    """Closed taxonomy of dispatch failures.

    - BAD_REQUEST: Upstream rejected the parameters (400)
    - AUTH_INVALID: API key rejected (401)
    - FORBIDDEN: Key lacks access or exhausted its quota (403)
    - NOT_FOUND: Nothing exists for the parameters (404)
    - RATE_LIMITED: Upstream throttled the caller (429)
    - UPSTREAM_UNAVAILABLE: Upstream is failing (500/502/503/504)
    - UNREACHABLE: DNS failure or connection refused
    - TIMEOUT: Upstream did not answer in time
    - UNKNOWN: Anything else
    """

    BAD_REQUEST = "BAD_REQUEST"
    AUTH_INVALID = "AUTH_INVALID"
    FORBIDDEN = "FORBIDDEN"
    NOT_FOUND = "NOT_FOUND"
    RATE_LIMITED = "RATE_LIMITED"
    UPSTREAM_UNAVAILABLE = "UPSTREAM_UNAVAILABLE"
    UNREACHABLE = "UNREACHABLE"
    TIMEOUT = "TIMEOUT"
    UNKNOWN = "UNKNOWN"


class TransportFailure(str, Enum):
    """Transport-level failure codes that carry no HTTP status."""

    TIMEOUT = "TIMEOUT"
    DNS_FAILURE = "DNS_FAILURE"
    CONNECTION_REFUSED = "CONNECTION_REFUSED"
    CONNECT_FAILED = "CONNECT_FAILED"
    PROTOCOL = "PROTOCOL"


class ErrorRecord(BaseModel):
    """Classified failure of a single logical call.

    The message is a pure function of the status (or transport failure) and
    the endpoint hint; upstream-provided text goes to ``detail``.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    kind: ErrorKind = Field(description="Error classification")
    message: Annotated[str, Field(min_length=1, description="Actionable message")]
    status_code: int | None = Field(
        default=None, description="Originating HTTP status if available"
    )
    detail: str | None = Field(
        default=None, description="Upstream-provided explanation, if any"
    )
    endpoint: str | None = Field(default=None, description="Endpoint hint")
    provider: str | None = Field(
        default=None, description="Failover provider that produced the failure"
    )


class GatewayError(Exception):
    """Raised when a logical call fails; carries exactly one ErrorRecord."""

    def __init__(self, record: ErrorRecord) -> None:
        """Initialize the gateway error.

        Args:
            record: The classified failure.
        """
        super().__init__(record.message)
        self.record = record

    @property
    def kind(self) -> ErrorKind:
        """Get the error kind."""
        return self.record.kind

    def to_dict(self) -> dict[str, Any]:
        """Convert error to dictionary for logging/serialization.

        Returns:
            Dictionary representation of the error.
        """
        return self.record.model_dump(mode="json")


class TransportError(Exception):
    """Base of the closed set of per-attempt transport failures."""


class HttpStatusError(TransportError):
    """Upstream answered with a status of 400 or above."""

    def __init__(
        self,
        status_code: int,
        body: str = "",
        retry_after: int | None = None,
    ) -> None:
        """Initialize the status error.

        Args:
            status_code: HTTP status code.
            body: Truncated response body text.
            retry_after: Parsed Retry-After seconds, if sent.
        """
        super().__init__(f"HTTP {status_code}")
        self.status_code = status_code
        self.body = body
        self.retry_after = retry_after


class NetworkError(TransportError):
    """The request never produced a response."""

    def __init__(self, failure: TransportFailure, message: str = "") -> None:
        """Initialize the network error.

        Args:
            failure: Transport failure code.
            message: Description from the transport.
        """
        super().__init__(message or failure.value)
        self.failure = failure


class AttemptTimeoutError(TransportError):
    """A single attempt exceeded its timeout."""

    failure = TransportFailure.TIMEOUT


class MalformedPayloadError(ValueError):
    """Upstream declared JSON but sent something undecodable."""


class ResponseKind(str, Enum):
    """Expected shape of an endpoint's successful response."""

    JSON = "JSON"
    BINARY = "BINARY"
    RESOURCE = "RESOURCE"


class EndpointDescriptor(BaseModel):
    """Static description of an upstream endpoint."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    target: Annotated[
        str, Field(min_length=1, description="Absolute URL or base-relative path")
    ]
    response_kind: ResponseKind = ResponseKind.JSON
    skip_api_key: bool = False
    sanitize_markup: bool = Field(
        default=False,
        description="Strip tags and decode entities in every string field",
    )
    timeout_seconds: Annotated[float, Field(gt=0.0, le=300.0)] | None = None

    @property
    def hint(self) -> str:
        """Endpoint hint used for error classification."""
        return self.target


class DispatchOptions(BaseModel):
    """Per-call overrides for a dispatch."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    timeout_ms: Annotated[int, Field(gt=0, le=300_000)] | None = None
    skip_api_key: bool = False
    response_kind: ResponseKind | None = None
    headers: dict[str, str] = Field(default_factory=dict)


class RetryPolicy(BaseModel):
    """Configuration for retry behavior.

    Uses multiplicative backoff:
    delay = base_delay_ms * (backoff_multiplier ^ (attempt - 1))
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    max_attempts: Annotated[int, Field(ge=1, le=10)] = 3
    base_delay_ms: Annotated[int, Field(ge=0, le=60000)] = 1000
    backoff_multiplier: Annotated[float, Field(ge=1.0, le=5.0)] = 1.5
    max_delay_ms: Annotated[int, Field(ge=0, le=300000)] = 30000
    jitter_factor: Annotated[float, Field(ge=0.0, le=1.0)] = 0.0
    retryable_statuses: frozenset[int] = frozenset({429, 500, 502, 503, 504})
    terminal_statuses: frozenset[int] = frozenset(
        {400, 401, 403, 404, 405, 410, 422, 501}
    )
    retryable_failures: frozenset[TransportFailure] = frozenset(
        {
            TransportFailure.TIMEOUT,
            TransportFailure.CONNECTION_REFUSED,
            TransportFailure.CONNECT_FAILED,
            TransportFailure.PROTOCOL,
        }
    )
    terminal_failures: frozenset[TransportFailure] = frozenset(
        {TransportFailure.DNS_FAILURE}
    )

    @model_validator(mode="after")
    def validate_disjoint_sets(self) -> "RetryPolicy":
        """Ensure no status or failure is both retryable and terminal."""
        overlap_statuses = self.retryable_statuses & self.terminal_statuses
        if overlap_statuses:
            msg = (
                "Statuses cannot be both retryable and terminal: "
                f"{sorted(overlap_statuses)}"
            )
            raise ValueError(msg)
        overlap_failures = self.retryable_failures & self.terminal_failures
        if overlap_failures:
            names = sorted(f.value for f in overlap_failures)
            msg = f"Failures cannot be both retryable and terminal: {names}"
            raise ValueError(msg)
        return self

    def is_retryable(self, error: TransportError) -> bool:
        """Determine whether a failed attempt may be retried.

        Anything not in a retryable set is terminal.

        Args:
            error: The transport error from the attempt.

        Returns:
            True if the error is in a retryable set.
        """
        if isinstance(error, HttpStatusError):
            return error.status_code in self.retryable_statuses
        if isinstance(error, (NetworkError, AttemptTimeoutError)):
            return error.failure in self.retryable_failures
        return False

    def get_delay_ms(self, attempt: int) -> int:
        """Calculate delay after a failed attempt.

        Args:
            attempt: The attempt that just failed (1-indexed).

        Returns:
            Delay in milliseconds.
        """
        delay = self.base_delay_ms * (self.backoff_multiplier ** (attempt - 1))
        delay = min(delay, self.max_delay_ms)

        jitter = delay * self.jitter_factor * random.random()  # noqa: S311
        return int(delay + jitter)


class Coordinates(BaseModel):
    """Geographic position of an imagery request."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    latitude: float
    longitude: float


class JsonPayload(BaseModel):
    """Structured JSON body passed through to the caller."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    shape: Literal["json"] = "json"
    data: Any = None


class BinaryPayload(BaseModel):
    """Unmodified binary body, e.g. a map tile."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    shape: Literal["binary"] = "binary"
    content: bytes
    content_type: str = "application/octet-stream"


class ResourceDescriptor(BaseModel):
    """Where to load a resource that has no JSON body of its own."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    shape: Literal["resource"] = "resource"
    url: Annotated[str, Field(min_length=1)]
    date: str = LATEST_AVAILABLE
    resource_type: Literal["image", "direct_url"] = "image"
    content_type: str | None = None
    coordinates: Coordinates | None = None
    dimension: float | None = None


ShapedResult = Annotated[
    JsonPayload | BinaryPayload | ResourceDescriptor,
    Field(discriminator="shape"),
]
