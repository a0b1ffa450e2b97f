"""Async request dispatcher with retries and error classification."""

import asyncio
import time
from collections.abc import Mapping
from datetime import UTC, datetime
from email.utils import parsedate_to_datetime
from typing import Protocol

import httpx
import structlog

from cosmic_gateway.fetch.classifier import classify
from cosmic_gateway.fetch.config import DispatchConfig
from cosmic_gateway.fetch.constants import (
    API_KEY_PARAM,
    DEFAULT_ACCEPT,
    HTTP_STATUS_OK_MIN,
    HTTP_STATUS_SUCCESS_MAX,
    MAX_ERROR_BODY_CHARS,
    MAX_RETRY_AFTER_SECONDS,
)
from cosmic_gateway.fetch.interpreter import RawResponse, interpret
from cosmic_gateway.fetch.metrics import DispatchMetrics
from cosmic_gateway.fetch.models import (
    AttemptTimeoutError,
    DispatchOptions,
    EndpointDescriptor,
    ErrorRecord,
    GatewayError,
    HttpStatusError,
    MalformedPayloadError,
    NetworkError,
    ParamValue,
    RetryPolicy,
    ShapedResult,
    TransportError,
    TransportFailure,
)
from cosmic_gateway.fetch.redact import redact_headers, redact_params, redact_url
from cosmic_gateway.fetch.state_machine import DispatchState, DispatchStateMachine


logger = structlog.get_logger()

_DNS_FAILURE_MARKERS = (
    "name or service not known",
    "nodename nor servname",
    "getaddrinfo failed",
    "temporary failure in name resolution",
    "no address associated",
)
_CONNECTION_REFUSED_MARKERS = (
    "connection refused",
    "actively refused",
    "errno 111",
    "errno 61",
)


class SleepFunc(Protocol):
    """Protocol for injectable async sleep."""

    async def __call__(self, seconds: float) -> None: ...


def normalize_params(params: Mapping[str, ParamValue] | None) -> dict[str, str]:
    """Normalize caller parameters into query-string values.

    None values are dropped and booleans become "true"/"false".

    Args:
        params: Caller-supplied parameters.

    Returns:
        Parameters as strings, in caller order.
    """
    normalized: dict[str, str] = {}
    for key, value in (params or {}).items():
        if value is None:
            continue
        if isinstance(value, bool):
            normalized[key] = "true" if value else "false"
        else:
            normalized[key] = str(value)
    return normalized


def parse_retry_after(value: str | None) -> int | None:
    """Parse Retry-After header value.

    Args:
        value: Header value (seconds or HTTP date).

    Returns:
        Seconds to wait, or None if not parseable.
    """
    if not value:
        return None

    try:
        return int(value)
    except ValueError:
        pass

    try:
        dt = parsedate_to_datetime(value)
        delta = dt - datetime.now(UTC)
        return max(0, int(delta.total_seconds()))
    except (ValueError, TypeError):
        pass

    return None


def _connect_failure(error: httpx.ConnectError) -> TransportFailure:
    """Tell DNS failures and refused connections apart from other connect errors."""
    chain: list[BaseException] = [error]
    cause = error.__cause__ or error.__context__
    while cause is not None and len(chain) < 5:
        chain.append(cause)
        cause = cause.__cause__ or cause.__context__

    text = " ".join(str(exc) for exc in chain).lower()
    if any(marker in text for marker in _DNS_FAILURE_MARKERS):
        return TransportFailure.DNS_FAILURE
    if any(isinstance(exc, ConnectionRefusedError) for exc in chain) or any(
        marker in text for marker in _CONNECTION_REFUSED_MARKERS
    ):
        return TransportFailure.CONNECTION_REFUSED
    return TransportFailure.CONNECT_FAILED


class RequestDispatcher:
    """Issues one logical outbound call per dispatch.

    Provides:
    - URL normalization against a configured base URL
    - API-key injection policy
    - Per-attempt timeouts
    - Bounded retries with multiplicative backoff for retryable failures
    - Central response shaping and error classification

    The dispatcher holds no cache; callers own caching.
    """

    def __init__(
        self,
        config: DispatchConfig,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep_func: SleepFunc | None = None,
    ) -> None:
        """Initialize the dispatcher.

        Args:
            config: Dispatch configuration.
            transport: Optional httpx transport (tests pass a MockTransport).
            sleep_func: Injectable sleep for backoff waits.
        """
        self._config = config
        self._transport = transport
        self._sleep: SleepFunc = sleep_func or asyncio.sleep
        self._metrics = DispatchMetrics.get_instance()
        self._log = logger.bind(component="dispatch")

    @property
    def config(self) -> DispatchConfig:
        """Get the dispatch configuration."""
        return self._config

    def resolve_url(self, target: str) -> str:
        """Resolve an endpoint target to an absolute URL.

        Args:
            target: Absolute URL or path relative to the base URL.

        Returns:
            Absolute URL.
        """
        if target.startswith(("http://", "https://")):
            return target
        return f"{self._config.base_url}/{target.lstrip('/')}"

    def build_params(
        self,
        url: str,
        params: Mapping[str, ParamValue] | None,
        *,
        skip_api_key: bool = False,
    ) -> dict[str, str]:
        """Build outbound query parameters, applying the key-injection policy.

        Args:
            url: Absolute target URL.
            params: Caller parameters.
            skip_api_key: Caller or endpoint opted out of key injection.

        Returns:
            Normalized parameters, with api_key merged when applicable.
        """
        query = normalize_params(params)
        host = httpx.URL(url).host
        if not skip_api_key and not self._config.rejects_api_key(host):
            query[API_KEY_PARAM] = self._config.api_key
        return query

    def _build_headers(
        self,
        host: str,
        extra_headers: Mapping[str, str] | None,
    ) -> dict[str, str]:
        """Build request headers.

        Args:
            host: Request host.
            extra_headers: Additional headers from caller.

        Returns:
            Complete headers dictionary.
        """
        headers: dict[str, str] = {
            "User-Agent": self._config.user_agent,
            "Accept": DEFAULT_ACCEPT,
        }
        headers.update(self._config.get_headers_for_host(host))
        if extra_headers:
            headers.update(extra_headers)
        return headers

    def _timeout_for(
        self,
        host: str,
        descriptor: EndpointDescriptor,
        options: DispatchOptions,
    ) -> float:
        if options.timeout_ms is not None:
            return options.timeout_ms / 1000.0
        if descriptor.timeout_seconds is not None:
            return descriptor.timeout_seconds
        return self._config.get_timeout_for_host(host)

    async def dispatch(
        self,
        endpoint: EndpointDescriptor | str,
        params: Mapping[str, ParamValue] | None = None,
        options: DispatchOptions | None = None,
    ) -> ShapedResult:
        """Dispatch one logical call to an upstream provider.

        Args:
            endpoint: Endpoint descriptor, absolute URL or base-relative path.
            params: Query parameters.
            options: Per-call overrides.

        Returns:
            Shaped result of the successful attempt.

        Raises:
            GatewayError: With a classified ErrorRecord on any failure.
        """
        descriptor = (
            endpoint
            if isinstance(endpoint, EndpointDescriptor)
            else EndpointDescriptor(target=endpoint)
        )
        options = options or DispatchOptions()
        start_time_ns = time.perf_counter_ns()

        url = self.resolve_url(descriptor.target)
        host = httpx.URL(url).host
        query = self.build_params(
            url,
            params,
            skip_api_key=options.skip_api_key or descriptor.skip_api_key,
        )
        headers = self._build_headers(host, options.headers)
        timeout = self._timeout_for(host, descriptor, options)

        log = self._log.bind(
            endpoint=redact_url(url),
            params=redact_params(query),
        )

        try:
            return await self._execute_with_retry(
                descriptor=descriptor,
                options=options,
                url=url,
                query=query,
                headers=headers,
                timeout=timeout,
                log=log,
            )
        finally:
            duration_ms = (time.perf_counter_ns() - start_time_ns) / 1_000_000
            self._metrics.record_dispatch(duration_ms)

    async def _execute_with_retry(  # noqa: PLR0913
        self,
        descriptor: EndpointDescriptor,
        options: DispatchOptions,
        url: str,
        query: dict[str, str],
        headers: dict[str, str],
        timeout: float,
        log: structlog.stdlib.BoundLogger,
    ) -> ShapedResult:
        """Run the retry loop as an explicit state machine.

        Args:
            descriptor: Endpoint being dispatched.
            options: Per-call overrides.
            url: Absolute URL.
            query: Outbound query parameters.
            headers: Request headers.
            timeout: Per-attempt timeout in seconds.
            log: Bound logger.

        Returns:
            Shaped result of the successful attempt.

        Raises:
            GatewayError: When the loop ends ABORTED or EXHAUSTED.
        """
        policy = self._config.retry_policy
        machine = DispatchStateMachine(url, policy.max_attempts)
        response_kind = options.response_kind or descriptor.response_kind

        async with httpx.AsyncClient(
            transport=self._transport,
            timeout=timeout,
            follow_redirects=True,
        ) as client:
            while True:
                try:
                    response = await self._execute_single(
                        client=client,
                        method="GET",
                        url=url,
                        query=query,
                        headers=headers,
                        log=log.bind(attempt=machine.attempt),
                    )
                    shaped = interpret(
                        RawResponse.from_httpx(response, url=url, params=query),
                        response_kind,
                        sanitize=descriptor.sanitize_markup,
                    )
                except TransportError as e:
                    state = machine.on_failure(policy.is_retryable(e))
                    if state == DispatchState.RETRY_WAIT:
                        await self._wait_before_retry(policy, machine, e, log)
                        machine.resume()
                        continue
                    raise self._fail(e, url, machine, log) from None
                except MalformedPayloadError as e:
                    machine.on_failure(retryable=False)
                    raise self._fail(e, url, machine, log) from None
                except Exception as e:  # noqa: BLE001
                    machine.on_failure(retryable=False)
                    raise self._fail(e, url, machine, log) from None

                machine.on_success()
                log.info(
                    "dispatch_complete",
                    status_code=response.status_code,
                    attempts=machine.attempt,
                    shape=shaped.shape,
                )
                return shaped

    async def _wait_before_retry(
        self,
        policy: RetryPolicy,
        machine: DispatchStateMachine,
        error: TransportError,
        log: structlog.stdlib.BoundLogger,
    ) -> None:
        """Sleep out the backoff delay for the attempt that just failed."""
        delay_ms = policy.get_delay_ms(machine.attempt)
        if isinstance(error, HttpStatusError) and error.retry_after:
            retry_after_ms = min(error.retry_after, MAX_RETRY_AFTER_SECONDS) * 1000
            delay_ms = max(delay_ms, retry_after_ms)

        self._metrics.record_retry()
        log.info(
            "retry_scheduled",
            attempt=machine.attempt,
            max_attempts=policy.max_attempts,
            delay_ms=delay_ms,
            error=str(error),
        )
        await self._sleep(delay_ms / 1000.0)

    def _fail(
        self,
        error: BaseException,
        endpoint_hint: str,
        machine: DispatchStateMachine,
        log: structlog.stdlib.BoundLogger,
    ) -> GatewayError:
        """Classify a failure that ended the loop.

        Returns:
            GatewayError carrying the classified record.
        """
        record: ErrorRecord = classify(error, endpoint_hint)
        self._metrics.record_failure(record.kind)
        log.warning(
            "dispatch_failed",
            state=machine.state.value,
            attempts=machine.attempt,
            kind=record.kind.value,
            status_code=record.status_code,
            error=str(error),
        )
        return GatewayError(record)

    async def _execute_single(  # noqa: PLR0913
        self,
        client: httpx.AsyncClient,
        method: str,
        url: str,
        query: dict[str, str],
        headers: dict[str, str],
        log: structlog.stdlib.BoundLogger,
    ) -> httpx.Response:
        """Execute a single HTTP request.

        Args:
            client: Open async client.
            method: HTTP method.
            url: Absolute URL.
            query: Query parameters.
            headers: Request headers.
            log: Bound logger.

        Returns:
            Response with a status below 400.

        Raises:
            TransportError: One of the closed transport failure variants.
        """
        self._metrics.record_attempt()
        log.debug("attempt_started", method=method, headers=redact_headers(headers))

        try:
            response = await client.request(method, url, params=query, headers=headers)
        except httpx.TimeoutException as e:
            raise AttemptTimeoutError(f"Request timed out: {e}") from e
        except httpx.ConnectError as e:
            raise NetworkError(_connect_failure(e), f"Connection failed: {e}") from e
        except httpx.HTTPError as e:
            raise NetworkError(
                TransportFailure.PROTOCOL, f"Transport error: {e}"
            ) from e

        self._metrics.record_response(response.status_code, len(response.content))

        if HTTP_STATUS_OK_MIN <= response.status_code < HTTP_STATUS_SUCCESS_MAX:
            return response

        raise HttpStatusError(
            status_code=response.status_code,
            body=response.text[:MAX_ERROR_BODY_CHARS],
            retry_after=parse_retry_after(response.headers.get("retry-after")),
        )

    async def probe(self, url: str, *, timeout_ms: int | None = None) -> int:
        """Check that a URL is reachable with a single HEAD request.

        No retries and no API-key injection.

        Args:
            url: Absolute URL to probe.
            timeout_ms: Timeout override in milliseconds.

        Returns:
            The (sub-400) status code.

        Raises:
            GatewayError: If the URL is unreachable or answers 400 or above.
        """
        timeout = (
            timeout_ms / 1000.0
            if timeout_ms is not None
            else self._config.probe_timeout_seconds
        )
        host = httpx.URL(url).host
        log = self._log.bind(endpoint=redact_url(url), probe=True)

        async with httpx.AsyncClient(
            transport=self._transport,
            timeout=timeout,
            follow_redirects=True,
        ) as client:
            try:
                response = await self._execute_single(
                    client=client,
                    method="HEAD",
                    url=url,
                    query={},
                    headers=self._build_headers(host, None),
                    log=log,
                )
            except TransportError as e:
                record = classify(e, url)
                self._metrics.record_failure(record.kind)
                log.info("probe_failed", kind=record.kind.value, error=str(e))
                raise GatewayError(record) from None

        log.debug("probe_ok", status_code=response.status_code)
        return response.status_code
