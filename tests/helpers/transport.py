"""Scripted httpx transports for dispatcher tests."""

from collections.abc import Callable, Iterable

import httpx


Outcome = httpx.Response | Exception | Callable[[httpx.Request], httpx.Response]


def _fresh(response: httpx.Response) -> httpx.Response:
    """Copy a canned response so it can be served more than once."""
    return httpx.Response(
        response.status_code, headers=response.headers, content=response.content
    )


class ScriptedTransport(httpx.MockTransport):
    """Mock transport that plays back a fixed sequence of outcomes.

    Each outcome is a response, an exception to raise, or a handler.
    The last outcome repeats once the script runs out.
    """

    def __init__(self, outcomes: Iterable[Outcome]) -> None:
        self.outcomes = list(outcomes)
        self.requests: list[httpx.Request] = []
        super().__init__(self._handle)

    def _handle(self, request: httpx.Request) -> httpx.Response:
        index = min(len(self.requests), len(self.outcomes) - 1)
        self.requests.append(request)
        outcome = self.outcomes[index]
        if isinstance(outcome, Exception):
            raise outcome
        if isinstance(outcome, httpx.Response):
            return _fresh(outcome)
        return outcome(request)


def json_response(status_code: int, payload: object) -> httpx.Response:
    """Build a JSON response."""
    return httpx.Response(status_code, json=payload)


def routed_transport(
    routes: dict[str, Outcome],
    default: Outcome | None = None,
) -> httpx.MockTransport:
    """Mock transport that picks an outcome by URL substring.

    Routes are matched in insertion order against the full request URL.
    """
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        url = str(request.url)
        for marker, outcome in routes.items():
            if marker in url:
                break
        else:
            outcome = default if default is not None else httpx.Response(404)
        if isinstance(outcome, Exception):
            raise outcome
        if isinstance(outcome, httpx.Response):
            return _fresh(outcome)
        return outcome(request)

    transport = httpx.MockTransport(handler)
    transport.requests = seen  # type: ignore[attr-defined]
    return transport
