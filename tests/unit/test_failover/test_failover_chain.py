"""Unit tests for FailoverChain."""

from typing import Any

import pytest

from cosmic_gateway.failover.chain import FailoverChain, Provider
from cosmic_gateway.fetch.models import ErrorKind, ErrorRecord, GatewayError


def failing(kind: ErrorKind, status_code: int | None = None) -> GatewayError:
    return GatewayError(
        ErrorRecord(kind=kind, message=f"{kind.value} happened", status_code=status_code)
    )


class CountingProvider:
    """Provider double that counts fetches and plays back one outcome."""

    def __init__(self, name: str, outcome: Any) -> None:
        self.name = name
        self.outcome = outcome
        self.calls = 0

    async def fetch(self, query: str) -> Any:
        self.calls += 1
        if isinstance(self.outcome, Exception):
            raise self.outcome
        return self.outcome

    def provider(self) -> Provider[str, str]:
        return Provider(self.name, self.fetch, lambda raw, query: f"{self.name}:{raw}")


class TestFailoverChain:
    """Tests for ordered provider failover."""

    @pytest.mark.asyncio
    async def test_first_success_wins(self) -> None:
        """Test that later providers are untouched once one succeeds."""
        a = CountingProvider("A", "data")
        b = CountingProvider("B", "other")
        chain = FailoverChain("test", [a.provider(), b.provider()])

        assert await chain.resolve("q") == "A:data"
        assert (a.calls, b.calls) == (1, 0)

    @pytest.mark.asyncio
    async def test_falls_through_in_order(self) -> None:
        """A fails with 500, B times out, C succeeds: C's result, one call each."""
        a = CountingProvider("A", failing(ErrorKind.UPSTREAM_UNAVAILABLE, 500))
        b = CountingProvider("B", failing(ErrorKind.TIMEOUT))
        c = CountingProvider("C", "ok")
        chain = FailoverChain("test", [a.provider(), b.provider(), c.provider()])

        assert await chain.resolve("q") == "C:ok"
        assert (a.calls, b.calls, c.calls) == (1, 1, 1)

    @pytest.mark.asyncio
    async def test_all_fail_raises_last_failure(self) -> None:
        """Test that exhaustion surfaces the last provider's record."""
        a = CountingProvider("A", failing(ErrorKind.UPSTREAM_UNAVAILABLE, 503))
        b = CountingProvider("B", failing(ErrorKind.NOT_FOUND, 404))
        chain = FailoverChain("test", [a.provider(), b.provider()])

        with pytest.raises(GatewayError) as exc_info:
            await chain.resolve("q")

        record = exc_info.value.record
        assert record.kind == ErrorKind.NOT_FOUND
        assert record.provider == "B"
        assert (a.calls, b.calls) == (1, 1)

    @pytest.mark.asyncio
    async def test_transform_failure_falls_through(self) -> None:
        """Test that a provider whose result cannot be normalized is skipped."""

        def broken(raw: Any, query: str) -> str:
            return raw["missing"]

        a = CountingProvider("A", {"present": 1})
        b = CountingProvider("B", "ok")
        chain = FailoverChain(
            "test", [Provider("A", a.fetch, broken), b.provider()]
        )

        assert await chain.resolve("q") == "B:ok"

    @pytest.mark.asyncio
    async def test_transform_failure_classified_when_last(self) -> None:
        """Test that a normalization error becomes an UNKNOWN record."""

        def broken(raw: Any, query: str) -> str:
            raise TypeError("unexpected shape")

        a = CountingProvider("A", "raw")
        chain = FailoverChain("test", [Provider("A", a.fetch, broken)])

        with pytest.raises(GatewayError) as exc_info:
            await chain.resolve("q")

        assert exc_info.value.kind == ErrorKind.UNKNOWN
        assert exc_info.value.record.provider == "A"

    @pytest.mark.asyncio
    async def test_each_resolve_restarts_from_first(self) -> None:
        """Test that a chain keeps no memory of earlier failures."""
        a = CountingProvider("A", failing(ErrorKind.TIMEOUT))
        b = CountingProvider("B", "ok")
        chain = FailoverChain("test", [a.provider(), b.provider()])

        await chain.resolve("q")
        await chain.resolve("q")

        assert (a.calls, b.calls) == (2, 2)

    def test_empty_chain_rejected(self) -> None:
        """Test that a chain needs at least one provider."""
        with pytest.raises(ValueError, match="at least one provider"):
            FailoverChain("empty", [])

    def test_provider_names(self) -> None:
        """Test provider order is exposed."""
        chain = FailoverChain(
            "test",
            [CountingProvider("A", 1).provider(), CountingProvider("B", 2).provider()],
        )

        assert chain.name == "test"
        assert chain.provider_names == ["A", "B"]
