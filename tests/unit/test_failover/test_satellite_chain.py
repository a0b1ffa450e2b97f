"""Unit tests for the satellite elements chain."""

import httpx
import pytest

from cosmic_gateway.failover.satellites import (
    CELESTRAK_GROUPS,
    build_satellite_chain,
    matches_category,
    normalize_category,
)
from cosmic_gateway.fetch.client import RequestDispatcher
from cosmic_gateway.fetch.config import DispatchConfig
from cosmic_gateway.fetch.models import ErrorKind, GatewayError, RetryPolicy
from tests.helpers.time import RecordingSleep
from tests.helpers.transport import json_response, routed_transport


CELESTRAK_RECORDS = [
    {
        "OBJECT_NAME": "ISS (ZARYA)",
        "NORAD_CAT_ID": 25544,
        "EPOCH": "2024-03-01T12:00:00",
        "TLE_LINE1": "1 25544U ...",
        "TLE_LINE2": "2 25544 ...",
    }
]

TLE_CATALOG_PAGE = {
    "member": [
        {
            "satelliteId": 25544,
            "name": "ISS (ZARYA)",
            "date": "2024-03-01T00:00:00+00:00",
            "line1": "1 25544U",
            "line2": "2 25544",
        },
        {
            "satelliteId": 20580,
            "name": "HST",
            "date": "2024-03-01T00:00:00+00:00",
            "line1": "1 20580U",
            "line2": "2 20580",
        },
        {
            "satelliteId": 48274,
            "name": "CSS (TIANHE)",
            "date": "2024-03-01T00:00:00+00:00",
            "line1": "1 48274U",
            "line2": "2 48274",
        },
    ]
}


def make_dispatcher(transport: httpx.MockTransport) -> RequestDispatcher:
    return RequestDispatcher(
        DispatchConfig(api_key="SAT_KEY", retry_policy=RetryPolicy(max_attempts=1)),
        transport=transport,
        sleep_func=RecordingSleep(),
    )


class TestCategories:
    """Tests for category validation and keyword matching."""

    def test_normalize_is_case_insensitive(self) -> None:
        """Test that categories are lower-cased."""
        assert normalize_category(" Stations ") == "stations"

    def test_unknown_category_is_bad_request(self) -> None:
        """Test that unknown categories list the valid ones."""
        with pytest.raises(GatewayError) as exc_info:
            normalize_category("spy")

        assert exc_info.value.kind == ErrorKind.BAD_REQUEST
        assert "Valid categories: stations" in exc_info.value.record.message

    def test_keyword_match(self) -> None:
        """Test substring keyword matching ignores case."""
        assert matches_category("ISS (ZARYA)", "stations") is True
        assert matches_category("NOAA 19", "weather") is True
        assert matches_category("STARLINK-1007", "stations") is False

    def test_other_is_not_a_celestrak_group(self) -> None:
        """Test that the catch-all category has no primary source."""
        assert "other" not in CELESTRAK_GROUPS
        assert "stations" in CELESTRAK_GROUPS


class TestSatelliteChain:
    """Tests for the CelesTrak to TLE catalog failover."""

    @pytest.mark.asyncio
    async def test_primary_source(self) -> None:
        """Test that CelesTrak answers when available, without an API key."""
        transport = routed_transport(
            {"celestrak.org": json_response(200, CELESTRAK_RECORDS)}
        )
        chain = build_satellite_chain(make_dispatcher(transport))

        result = await chain.resolve("stations")

        assert [s.satellite_id for s in result] == [25544]
        assert result[0].source == "celestrak"
        request = transport.requests[0]
        assert request.url.params["GROUP"] == "stations"
        assert request.url.params["FORMAT"] == "json"
        assert "api_key" not in request.url.params

    @pytest.mark.asyncio
    async def test_fallback_filters_by_keyword(self) -> None:
        """Test that the catalog fallback keeps only matching names."""
        transport = routed_transport(
            {
                "celestrak.org": httpx.Response(503),
                "tle.ivanstanojevic.me": json_response(200, TLE_CATALOG_PAGE),
            }
        )
        chain = build_satellite_chain(make_dispatcher(transport))

        result = await chain.resolve("stations")

        assert [s.name for s in result] == ["ISS (ZARYA)"]
        assert result[0].source == "tle-catalog"
        assert transport.requests[-1].url.params["page_size"] == "100"

    @pytest.mark.asyncio
    async def test_other_category_skips_primary(self) -> None:
        """Test that 'other' goes straight to the catalog without calling CelesTrak."""
        transport = routed_transport(
            {"tle.ivanstanojevic.me": json_response(200, TLE_CATALOG_PAGE)}
        )
        chain = build_satellite_chain(make_dispatcher(transport))

        result = await chain.resolve("other")

        assert result == []
        assert all("celestrak" not in str(r.url) for r in transport.requests)

    @pytest.mark.asyncio
    async def test_both_sources_down(self) -> None:
        """Test that exhaustion reports the catalog's failure."""
        transport = routed_transport({}, default=httpx.Response(502))
        chain = build_satellite_chain(make_dispatcher(transport))

        with pytest.raises(GatewayError) as exc_info:
            await chain.resolve("weather")

        assert exc_info.value.kind == ErrorKind.UPSTREAM_UNAVAILABLE
        assert exc_info.value.record.provider == "TLE catalog"

    @pytest.mark.asyncio
    async def test_malformed_primary_payload_falls_through(self) -> None:
        """Test that an unexpected CelesTrak shape triggers the fallback."""
        transport = routed_transport(
            {
                "celestrak.org": json_response(200, {"error": "no such group"}),
                "tle.ivanstanojevic.me": json_response(200, TLE_CATALOG_PAGE),
            }
        )
        chain = build_satellite_chain(make_dispatcher(transport))

        result = await chain.resolve("stations")

        assert result[0].source == "tle-catalog"
