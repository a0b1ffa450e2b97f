"""Redaction utilities for logging outbound requests."""

import re
from collections.abc import Mapping


# Headers that must never appear in logs
SENSITIVE_HEADERS = frozenset(
    {
        "authorization",
        "cookie",
        "x-api-key",
        "x-auth-token",
        "proxy-authorization",
        "set-cookie",
    }
)

# Query parameters that carry credentials
SENSITIVE_PARAMS = frozenset({"api_key", "access_token", "token", "apikey"})

REDACTED_VALUE = "[REDACTED]"

_SENSITIVE_QUERY_PATTERN = re.compile(
    r"([?&](?:" + "|".join(sorted(SENSITIVE_PARAMS)) + r")=)[^&#]*",
    re.IGNORECASE,
)


def redact_headers(headers: Mapping[str, str]) -> dict[str, str]:
    """Redact sensitive headers for logging.

    Args:
        headers: Original headers mapping.

    Returns:
        New dictionary with sensitive values redacted.
    """
    return {
        key: REDACTED_VALUE if key.lower() in SENSITIVE_HEADERS else value
        for key, value in headers.items()
    }


def redact_params(params: Mapping[str, str]) -> dict[str, str]:
    """Redact credential-bearing query parameters for logging.

    Args:
        params: Outbound query parameters.

    Returns:
        New dictionary with sensitive values redacted.
    """
    return {
        key: REDACTED_VALUE if key.lower() in SENSITIVE_PARAMS else value
        for key, value in params.items()
    }


def redact_url(url: str) -> str:
    """Redact credentials from a URL.

    Handles both user:password@ userinfo and api_key-style query parameters.

    Args:
        url: URL that may contain credentials.

    Returns:
        URL with credentials redacted.
    """
    url = re.sub(r"(https?://)([^:/@]+):([^@/]+)@", r"\1[REDACTED]:[REDACTED]@", url)
    return _SENSITIVE_QUERY_PATTERN.sub(r"\1" + REDACTED_VALUE, url)
