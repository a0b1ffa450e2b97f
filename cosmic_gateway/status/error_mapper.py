"""Error mapping for gateway responses.

Maps classified error kinds to the HTTP status a route handler should
answer with. Follows Open/Closed Principle: extend by adding new mappings,
not by modifying existing code.
"""

from typing import Any, Final

from cosmic_gateway.fetch.models import ErrorKind, ErrorRecord, GatewayError


ERROR_KIND_HTTP_STATUS: Final[dict[ErrorKind, int]] = {
    ErrorKind.BAD_REQUEST: 400,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.RATE_LIMITED: 429,
    # Upstream rejected the gateway's own key
    ErrorKind.AUTH_INVALID: 502,
    ErrorKind.FORBIDDEN: 503,
    ErrorKind.UPSTREAM_UNAVAILABLE: 503,
    ErrorKind.UNREACHABLE: 502,
    ErrorKind.TIMEOUT: 504,
    ErrorKind.UNKNOWN: 500,
}

_FALLBACK_HTTP_STATUS = 500


def map_error_kind_to_http_status(kind: ErrorKind) -> int:
    """Map an error kind to the HTTP status returned to the caller.

    Args:
        kind: Classified error kind.

    Returns:
        HTTP status code.
    """
    return ERROR_KIND_HTTP_STATUS.get(kind, _FALLBACK_HTTP_STATUS)


def to_response_body(record: ErrorRecord) -> dict[str, Any]:
    """Build the JSON error body for a classified failure.

    Args:
        record: Classified failure.

    Returns:
        Body with the message and kind, plus any upstream context.
    """
    body: dict[str, Any] = {"error": record.message, "kind": record.kind.value}
    if record.detail:
        body["details"] = record.detail
    if record.status_code is not None:
        body["upstream_status"] = record.status_code
    if record.provider:
        body["provider"] = record.provider
    return body


def to_http_response(error: GatewayError) -> tuple[int, dict[str, Any]]:
    """Map a gateway error to an HTTP status and body."""
    return map_error_kind_to_http_status(error.kind), to_response_body(error.record)
