"""Mapping of classified errors onto caller-facing responses."""

from cosmic_gateway.status.error_mapper import (
    ERROR_KIND_HTTP_STATUS,
    map_error_kind_to_http_status,
    to_http_response,
    to_response_body,
)


__all__ = [
    "ERROR_KIND_HTTP_STATUS",
    "map_error_kind_to_http_status",
    "to_http_response",
    "to_response_body",
]
