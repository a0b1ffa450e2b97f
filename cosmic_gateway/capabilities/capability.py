"""Cache-then-dispatch access to one data domain."""

from collections.abc import Mapping

import structlog

from cosmic_gateway.cache.cache import ResultCache, cache_key
from cosmic_gateway.fetch.client import RequestDispatcher
from cosmic_gateway.fetch.models import (
    DispatchOptions,
    EndpointDescriptor,
    ParamValue,
    ShapedResult,
)


logger = structlog.get_logger()


class Capability:
    """One data domain: a default endpoint, a dispatcher and its own cache.

    Only successful dispatches are stored; failures propagate uncached.
    Concurrent misses on the same key may each dispatch.
    """

    def __init__(
        self,
        name: str,
        endpoint: EndpointDescriptor | None,
        dispatcher: RequestDispatcher,
        cache: ResultCache[ShapedResult],
    ) -> None:
        """Initialize the capability.

        Args:
            name: Capability name.
            endpoint: Default endpoint, or None if every call names one.
            dispatcher: Shared dispatcher.
            cache: This capability's cache.
        """
        self._name = name
        self._endpoint = endpoint
        self._dispatcher = dispatcher
        self._cache = cache
        self._log = logger.bind(component="capability", capability=name)

    @property
    def name(self) -> str:
        """Get the capability name."""
        return self._name

    @property
    def cache(self) -> ResultCache[ShapedResult]:
        """Get the capability's cache."""
        return self._cache

    def key_for(
        self,
        endpoint: EndpointDescriptor,
        params: Mapping[str, ParamValue] | None,
    ) -> str:
        """Build the cache key of a call.

        Calls to an endpoint other than the default are prefixed with its
        target so that, e.g., two rovers never share a key.
        """
        key = cache_key(params)
        if endpoint == self._endpoint:
            return key
        return f"{endpoint.target}?{key}"

    async def fetch(
        self,
        params: Mapping[str, ParamValue] | None = None,
        *,
        endpoint: EndpointDescriptor | None = None,
        options: DispatchOptions | None = None,
    ) -> ShapedResult:
        """Return a cached result, or dispatch and cache a fresh one.

        Args:
            params: Request parameters.
            endpoint: Endpoint override for this call.
            options: Per-call dispatch options.

        Returns:
            Shaped result.

        Raises:
            GatewayError: If the dispatch fails.
            ValueError: If neither a default nor an override endpoint exists.
        """
        target = endpoint or self._endpoint
        if target is None:
            msg = f"Capability '{self._name}' has no default endpoint"
            raise ValueError(msg)

        key = self.key_for(target, params)
        cached = self._cache.get(key)
        if cached is not None:
            self._log.debug("cache_hit", key=key)
            return cached

        self._log.debug("cache_miss", key=key)
        result = await self._dispatcher.dispatch(target, params, options)
        self._cache.put(key, result)
        return result
