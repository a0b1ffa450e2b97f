"""Ordered provider failover."""

from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass
from typing import Any, Generic, TypeVar

import structlog

from cosmic_gateway.fetch.classifier import classify
from cosmic_gateway.fetch.models import ErrorRecord, GatewayError


logger = structlog.get_logger()

Q = TypeVar("Q")
R = TypeVar("R")


@dataclass(frozen=True)
class Provider(Generic[Q, R]):
    """One data source in a failover chain.

    Attributes:
        name: Provider name, recorded on failures.
        fetch: Issues the provider's request for a query.
        transform: Normalizes the provider's raw result into the shared shape.
    """

    name: str
    fetch: Callable[[Q], Awaitable[Any]]
    transform: Callable[[Any, Q], R]


class FailoverChain(Generic[Q, R]):
    """Tries providers strictly in order until one succeeds.

    Intermediate failures are logged, not surfaced. A provider is never
    re-attempted by the chain; its own dispatcher owns retries.
    """

    def __init__(self, name: str, providers: Sequence[Provider[Q, R]]) -> None:
        """Initialize the chain.

        Args:
            name: Chain name, for logging.
            providers: Providers in priority order.

        Raises:
            ValueError: If no providers are given.
        """
        if not providers:
            msg = f"Failover chain '{name}' needs at least one provider"
            raise ValueError(msg)
        self._name = name
        self._providers = tuple(providers)
        self._log = logger.bind(component="failover", chain=name)

    @property
    def name(self) -> str:
        """Get the chain name."""
        return self._name

    @property
    def provider_names(self) -> list[str]:
        """Get provider names in priority order."""
        return [provider.name for provider in self._providers]

    async def resolve(self, query: Q) -> R:
        """Resolve a query against the providers in order.

        Args:
            query: Provider-independent query.

        Returns:
            Normalized result of the first provider that succeeds.

        Raises:
            GatewayError: Carrying the last provider's failure if all fail.
        """
        failures: list[ErrorRecord] = []

        for position, provider in enumerate(self._providers, start=1):
            try:
                raw = await provider.fetch(query)
                result = provider.transform(raw, query)
            except GatewayError as e:
                record = e.record
            except (ValueError, KeyError, TypeError) as e:
                record = classify(e, provider.name)
            else:
                self._log.info(
                    "chain_resolved",
                    provider=provider.name,
                    position=position,
                    fallback=position > 1,
                )
                return result

            failures.append(record.model_copy(update={"provider": provider.name}))
            self._log.info(
                "provider_failed",
                provider=provider.name,
                position=position,
                kind=record.kind.value,
                status_code=record.status_code,
            )

        self._log.warning(
            "chain_exhausted",
            providers=len(self._providers),
            kind=failures[-1].kind.value,
        )
        raise GatewayError(failures[-1])
