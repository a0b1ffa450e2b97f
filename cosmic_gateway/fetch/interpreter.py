"""Response interpretation for successful dispatches.

Decides once, centrally, which ShapedResult variant a response becomes:
- BINARY endpoints pass the body through with its content type
- JSON bodies pass through, optionally sanitized of markup
- RESOURCE endpoints (image producers) become a ResourceDescriptor
- Anything else falls back to a "direct_url" descriptor
"""

import json
from dataclasses import dataclass, field
from typing import Any

import httpx
from bs4 import BeautifulSoup

from cosmic_gateway.fetch.constants import LATEST_AVAILABLE
from cosmic_gateway.fetch.models import (
    BinaryPayload,
    Coordinates,
    JsonPayload,
    MalformedPayloadError,
    ResourceDescriptor,
    ResponseKind,
    ShapedResult,
)


_MARKUP_MARKERS = ("<", "&")


@dataclass(frozen=True)
class RawResponse:
    """Transport-independent view of a successful upstream response.

    Attributes:
        status_code: HTTP status code.
        content_type: Content-Type header value (may be empty).
        body: Raw body bytes.
        url: Request URL without the query string.
        params: Query parameters actually sent.
    """

    status_code: int
    content_type: str
    body: bytes
    url: str
    params: dict[str, str] = field(default_factory=dict)

    @classmethod
    def from_httpx(
        cls,
        response: httpx.Response,
        *,
        url: str | None = None,
        params: dict[str, str] | None = None,
    ) -> "RawResponse":
        """Build a RawResponse from an httpx response.

        Redirects are followed, so response.request is the last hop. Pass
        the URL and params originally sent to describe the request instead.

        Args:
            response: Completed httpx response.
            url: URL originally requested, without the query string.
            params: Query parameters originally sent.

        Returns:
            RawResponse describing the originally requested URL.
        """
        first_request = (
            response.history[0].request if response.history else response.request
        )
        request_url = first_request.url
        return cls(
            status_code=response.status_code,
            content_type=response.headers.get("content-type", ""),
            body=response.content,
            url=url if url is not None else str(request_url.copy_with(query=None)),
            params=(
                dict(params)
                if params is not None
                else dict(request_url.params.items())
            ),
        )


def sanitize_text(value: str) -> str:
    """Strip tags and decode HTML entities in a single string.

    Args:
        value: Text that may contain markup or escaped entities.

    Returns:
        Plain text, trimmed.
    """
    if not any(marker in value for marker in _MARKUP_MARKERS):
        return value.strip()
    text = BeautifulSoup(value, "lxml").get_text()
    return text.replace("\xa0", " ").strip()


def sanitize_markup(data: Any) -> Any:
    """Recursively sanitize every string in a JSON structure.

    Structure (lists, dict keys, non-string scalars) is preserved.

    Args:
        data: Decoded JSON value.

    Returns:
        Sanitized copy of the value.
    """
    if isinstance(data, list):
        return [sanitize_markup(item) for item in data]
    if isinstance(data, dict):
        return {key: sanitize_markup(value) for key, value in data.items()}
    if isinstance(data, str):
        return sanitize_text(data)
    return data


def build_resource_url(url: str, params: dict[str, str]) -> str:
    """Reconstruct a request URL with its original parameters.

    Args:
        url: Request URL (query string optional).
        params: Parameters to merge into the query string.

    Returns:
        Absolute URL a client can load directly.
    """
    return str(httpx.URL(url).copy_merge_params(params))


def _coordinates(params: dict[str, str]) -> Coordinates | None:
    try:
        return Coordinates(
            latitude=float(params["lat"]), longitude=float(params["lon"])
        )
    except (KeyError, ValueError):
        return None


def _dimension(params: dict[str, str]) -> float | None:
    try:
        return float(params["dim"])
    except (KeyError, ValueError):
        return None


def _is_json(content_type: str) -> bool:
    return "application/json" in content_type or "+json" in content_type


def _looks_structured(body: bytes) -> bool:
    return body.lstrip()[:1] in (b"{", b"[")


def _decode_json(raw: RawResponse) -> Any:
    try:
        return json.loads(raw.body)
    except ValueError as e:
        msg = f"Invalid JSON from {raw.url}: {e}"
        raise MalformedPayloadError(msg) from e


def _describe(
    raw: RawResponse,
    resource_type: str,
    content_type: str | None,
    body_fields: dict[str, Any] | None = None,
) -> ResourceDescriptor:
    fields = body_fields or {}
    url = fields.get("url") or build_resource_url(raw.url, raw.params)
    date = fields.get("date") or raw.params.get("date") or LATEST_AVAILABLE
    return ResourceDescriptor(
        url=str(url),
        date=str(date),
        resource_type=resource_type,
        content_type=content_type,
        coordinates=_coordinates(raw.params),
        dimension=_dimension(raw.params),
    )


def interpret(
    raw: RawResponse,
    response_kind: ResponseKind,
    *,
    sanitize: bool = False,
) -> ShapedResult:
    """Shape a successful response.

    Args:
        raw: Successful upstream response.
        response_kind: What the endpoint is declared to produce.
        sanitize: Strip markup from every string of a JSON body.

    Returns:
        One ShapedResult variant.

    Raises:
        MalformedPayloadError: If a JSON content type carries invalid JSON.
    """
    content_type = raw.content_type.lower()

    if response_kind == ResponseKind.BINARY:
        return BinaryPayload(
            content=raw.body,
            content_type=raw.content_type or "application/octet-stream",
        )

    if response_kind == ResponseKind.RESOURCE:
        body_fields: dict[str, Any] | None = None
        if raw.body and (_is_json(content_type) or _looks_structured(raw.body)):
            try:
                decoded = json.loads(raw.body)
            except ValueError:
                decoded = None
            if isinstance(decoded, dict):
                body_fields = decoded
        return _describe(
            raw,
            "image",
            raw.content_type if content_type.startswith("image/") else "image/jpeg",
            body_fields,
        )

    if _is_json(content_type) or (not content_type and _looks_structured(raw.body)):
        data = _decode_json(raw)
        return JsonPayload(data=sanitize_markup(data) if sanitize else data)

    if content_type.startswith("image/"):
        return _describe(raw, "image", raw.content_type)

    return _describe(raw, "direct_url", raw.content_type or None)
