"""Outbound request dispatch with retries and error classification.

This module provides the single path every upstream call goes through:
- URL normalization and API-key injection
- Per-attempt timeouts with bounded multiplicative backoff
- Central response shaping (JSON, binary, resource descriptor)
- A closed error taxonomy with actionable messages
- Header and parameter redaction for logs
"""

from cosmic_gateway.fetch.classifier import classify, classify_status, not_found_message
from cosmic_gateway.fetch.client import RequestDispatcher, normalize_params
from cosmic_gateway.fetch.config import DispatchConfig, HostProfile
from cosmic_gateway.fetch.constants import (
    API_KEY_PARAM,
    DEFAULT_API_KEY,
    DEFAULT_BASE_URL,
    LATEST_AVAILABLE,
    MAX_RETRY_AFTER_SECONDS,
)
from cosmic_gateway.fetch.interpreter import RawResponse, interpret, sanitize_markup
from cosmic_gateway.fetch.metrics import DispatchMetrics
from cosmic_gateway.fetch.models import (
    AttemptTimeoutError,
    BinaryPayload,
    Coordinates,
    DispatchOptions,
    EndpointDescriptor,
    ErrorKind,
    ErrorRecord,
    GatewayError,
    HttpStatusError,
    JsonPayload,
    MalformedPayloadError,
    NetworkError,
    ParamValue,
    ResourceDescriptor,
    ResponseKind,
    RetryPolicy,
    ShapedResult,
    TransportError,
    TransportFailure,
)
from cosmic_gateway.fetch.redact import redact_headers, redact_params, redact_url
from cosmic_gateway.fetch.state_machine import (
    DispatchState,
    DispatchStateMachine,
    DispatchStateTransitionError,
)


__all__ = [
    # Dispatcher
    "RequestDispatcher",
    "normalize_params",
    # Config
    "DispatchConfig",
    "HostProfile",
    # Models
    "EndpointDescriptor",
    "DispatchOptions",
    "ResponseKind",
    "RetryPolicy",
    "ParamValue",
    "ShapedResult",
    "JsonPayload",
    "BinaryPayload",
    "ResourceDescriptor",
    "Coordinates",
    # Errors
    "ErrorKind",
    "ErrorRecord",
    "GatewayError",
    "TransportError",
    "TransportFailure",
    "HttpStatusError",
    "NetworkError",
    "AttemptTimeoutError",
    "MalformedPayloadError",
    # Classification
    "classify",
    "classify_status",
    "not_found_message",
    # Interpretation
    "RawResponse",
    "interpret",
    "sanitize_markup",
    # State machine
    "DispatchState",
    "DispatchStateMachine",
    "DispatchStateTransitionError",
    # Constants
    "API_KEY_PARAM",
    "DEFAULT_API_KEY",
    "DEFAULT_BASE_URL",
    "LATEST_AVAILABLE",
    "MAX_RETRY_AFTER_SECONDS",
    # Metrics
    "DispatchMetrics",
    # Redaction
    "redact_headers",
    "redact_params",
    "redact_url",
]
