"""Error classification for failed dispatches.

Maps a transport failure or HTTP status to the closed ErrorKind taxonomy
with an actionable message. Extend by adding table entries, not branches.
"""

import json
from typing import Final

from cosmic_gateway.fetch.constants import (
    HTTP_STATUS_BAD_REQUEST,
    HTTP_STATUS_FORBIDDEN,
    HTTP_STATUS_NOT_FOUND,
    HTTP_STATUS_TOO_MANY_REQUESTS,
    HTTP_STATUS_UNAUTHORIZED,
    HTTP_STATUS_UPSTREAM_UNAVAILABLE,
)
from cosmic_gateway.fetch.models import (
    AttemptTimeoutError,
    ErrorKind,
    ErrorRecord,
    HttpStatusError,
    MalformedPayloadError,
    NetworkError,
    TransportFailure,
)


_STATUS_KINDS: Final[dict[int, ErrorKind]] = {
    HTTP_STATUS_BAD_REQUEST: ErrorKind.BAD_REQUEST,
    HTTP_STATUS_UNAUTHORIZED: ErrorKind.AUTH_INVALID,
    HTTP_STATUS_FORBIDDEN: ErrorKind.FORBIDDEN,
    HTTP_STATUS_NOT_FOUND: ErrorKind.NOT_FOUND,
    HTTP_STATUS_TOO_MANY_REQUESTS: ErrorKind.RATE_LIMITED,
    **{
        status: ErrorKind.UPSTREAM_UNAVAILABLE
        for status in HTTP_STATUS_UPSTREAM_UNAVAILABLE
    },
}

_FAILURE_KINDS: Final[dict[TransportFailure, ErrorKind]] = {
    TransportFailure.TIMEOUT: ErrorKind.TIMEOUT,
    TransportFailure.DNS_FAILURE: ErrorKind.UNREACHABLE,
    TransportFailure.CONNECTION_REFUSED: ErrorKind.UNREACHABLE,
    TransportFailure.CONNECT_FAILED: ErrorKind.UNREACHABLE,
    TransportFailure.PROTOCOL: ErrorKind.UNKNOWN,
}

KIND_MESSAGES: Final[dict[ErrorKind, str]] = {
    ErrorKind.TIMEOUT: (
        "Request timeout. The upstream service is taking too long to respond."
    ),
    ErrorKind.UNREACHABLE: (
        "Cannot connect to the upstream service. "
        "Please check your internet connection."
    ),
    ErrorKind.BAD_REQUEST: "Invalid request parameters. Please check your input.",
    ErrorKind.AUTH_INVALID: "Invalid API key. Please check your NASA API key.",
    ErrorKind.FORBIDDEN: (
        "Access forbidden. Your API key may have exceeded its quota."
    ),
    ErrorKind.RATE_LIMITED: (
        "Upstream rate limit exceeded. Please try again in a few minutes."
    ),
    ErrorKind.UPSTREAM_UNAVAILABLE: (
        "The upstream service is currently experiencing issues. "
        "Please try again later."
    ),
}

# Checked in order; the first family whose marker occurs in the hint wins.
NOT_FOUND_MESSAGES: Final[tuple[tuple[tuple[str, ...], str], ...]] = (
    (
        ("/earth/",),
        "No satellite imagery available for this location and date. "
        "Try a different location or date.",
    ),
    (
        ("/eonet/", "eonet.gsfc.nasa.gov"),
        "No natural events found for the specified parameters.",
    ),
    (("/neo/",), "No near-Earth objects found for the specified parameters."),
    (
        ("/mars-photos/",),
        "No Mars rover photos found for the specified parameters.",
    ),
    (
        ("/planetary/apod",),
        "No Astronomy Picture of the Day found for the specified date.",
    ),
    (
        ("/epic/",),
        "No EPIC images available for the specified date or parameters.",
    ),
    (
        ("/techtransfer/",),
        "No tech transfer data found for the specified parameters.",
    ),
)

GENERIC_NOT_FOUND_MESSAGE: Final[str] = (
    "Requested resource not found. Please check your parameters."
)

TECH_TRANSFER_UNAVAILABLE_MESSAGE: Final[str] = (
    "NASA Tech Transfer API is currently experiencing issues. "
    "This is a known problem with the service. Please try again later."
)


def not_found_message(endpoint_hint: str) -> str:
    """Pick a domain-appropriate not-found message.

    Args:
        endpoint_hint: Endpoint path or URL of the failed call.

    Returns:
        Message for the first matching endpoint family, else a generic one.
    """
    hint = endpoint_hint.lower()
    for markers, message in NOT_FOUND_MESSAGES:
        if any(marker in hint for marker in markers):
            return message
    return GENERIC_NOT_FOUND_MESSAGE


def _status_message(kind: ErrorKind, status_code: int, endpoint_hint: str) -> str:
    if kind == ErrorKind.NOT_FOUND:
        return not_found_message(endpoint_hint)
    if (
        kind == ErrorKind.UPSTREAM_UNAVAILABLE
        and "/techtransfer/" in endpoint_hint.lower()
    ):
        return TECH_TRANSFER_UNAVAILABLE_MESSAGE
    if kind == ErrorKind.UNKNOWN:
        return f"Upstream error ({status_code}). Please try again later."
    return KIND_MESSAGES[kind]


def _extract_detail(body: str) -> str | None:
    """Pull an upstream explanation out of an error body, if it has one."""
    if not body:
        return None
    try:
        parsed = json.loads(body)
    except ValueError:
        return None
    if not isinstance(parsed, dict):
        return None
    for key in ("msg", "message", "error_message"):
        value = parsed.get(key)
        if isinstance(value, str) and value:
            return value
    error = parsed.get("error")
    if isinstance(error, dict):
        message = error.get("message")
        if isinstance(message, str) and message:
            return message
    return None


def classify_status(status_code: int, endpoint_hint: str) -> ErrorRecord:
    """Classify an HTTP status.

    Args:
        status_code: HTTP status of the failed response.
        endpoint_hint: Endpoint path or URL of the failed call.

    Returns:
        ErrorRecord for the status.
    """
    kind = _STATUS_KINDS.get(status_code, ErrorKind.UNKNOWN)
    return ErrorRecord(
        kind=kind,
        message=_status_message(kind, status_code, endpoint_hint),
        status_code=status_code,
        endpoint=endpoint_hint,
    )


def classify(error: BaseException, endpoint_hint: str) -> ErrorRecord:
    """Classify a failed call into the ErrorKind taxonomy.

    A pure function of the status (or transport failure) and the hint:
    the original exception is never re-raised or embedded.

    Args:
        error: Transport error or unexpected exception from the call.
        endpoint_hint: Endpoint path or URL of the failed call.

    Returns:
        ErrorRecord describing the failure.
    """
    if isinstance(error, HttpStatusError):
        record = classify_status(error.status_code, endpoint_hint)
        if record.kind == ErrorKind.BAD_REQUEST:
            return record.model_copy(update={"detail": _extract_detail(error.body)})
        return record

    if isinstance(error, (NetworkError, AttemptTimeoutError)):
        kind = _FAILURE_KINDS[error.failure]
        message = KIND_MESSAGES.get(
            kind, "Unexpected network error while contacting the upstream service."
        )
        return ErrorRecord(
            kind=kind,
            message=message,
            detail=error.failure.value,
            endpoint=endpoint_hint,
        )

    if isinstance(error, MalformedPayloadError):
        return ErrorRecord(
            kind=ErrorKind.UNKNOWN,
            message="Upstream returned a malformed payload.",
            detail=str(error) or None,
            endpoint=endpoint_hint,
        )

    return ErrorRecord(
        kind=ErrorKind.UNKNOWN,
        message="Unexpected error while contacting the upstream service.",
        detail=type(error).__name__,
        endpoint=endpoint_hint,
    )
