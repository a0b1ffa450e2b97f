"""Unit tests for the Earth imagery chain."""

import httpx
import pytest
from pydantic import ValidationError

from cosmic_gateway.failover.imagery import (
    ESRI_EXPORT_SERVICE,
    ESRI_TILE_SERVICE,
    FALLBACK_MESSAGE,
    MAPBOX_SERVICE,
    NASA_SERVICE,
    PLACEHOLDER_SERVICE,
    UNAVAILABLE_ERROR,
    ImageryQuery,
    build_imagery_chain,
    esri_export_url,
    esri_tile_url,
    mapbox_url,
    placeholder_result,
    slippy_tile,
)
from cosmic_gateway.fetch.client import RequestDispatcher
from cosmic_gateway.fetch.config import DispatchConfig
from cosmic_gateway.fetch.constants import LATEST_AVAILABLE
from cosmic_gateway.fetch.models import ErrorKind, GatewayError, RetryPolicy
from tests.helpers.time import RecordingSleep
from tests.helpers.transport import routed_transport


HOUSTON = ImageryQuery(latitude=29.78, longitude=-95.33)


def make_dispatcher(transport: httpx.MockTransport) -> RequestDispatcher:
    return RequestDispatcher(
        DispatchConfig(api_key="IMG_KEY", retry_policy=RetryPolicy(max_attempts=1)),
        transport=transport,
        sleep_func=RecordingSleep(),
    )


class TestImageryQuery:
    """Tests for query validation."""

    def test_defaults(self) -> None:
        """Test the default dimension and date."""
        assert HOUSTON.dim == pytest.approx(0.15)
        assert HOUSTON.date is None

    @pytest.mark.parametrize(
        "fields",
        [
            {"latitude": 91.0, "longitude": 0.0},
            {"latitude": 0.0, "longitude": -181.0},
            {"latitude": 0.0, "longitude": 0.0, "dim": 0.0},
            {"latitude": 0.0, "longitude": 0.0, "dim": 1.5},
            {"latitude": 0.0, "longitude": 0.0, "date": "03/01/2024"},
        ],
    )
    def test_invalid_queries(self, fields: dict) -> None:
        """Test out-of-range coordinates, dimension and date format."""
        with pytest.raises(ValidationError):
            ImageryQuery(**fields)

    def test_dimension_upper_bound_inclusive(self) -> None:
        """Test a one-degree tile is the widest accepted."""
        assert ImageryQuery(latitude=0.0, longitude=0.0, dim=1.0).dim == 1.0


class TestUrlBuilders:
    """Tests for fallback URL construction."""

    def test_slippy_tile_origin(self) -> None:
        """Test the tile containing (0, 0) at zoom 1."""
        assert slippy_tile(0.0, 0.0, 1) == (1, 1)

    def test_slippy_tile_houston(self) -> None:
        """Test a known zoom-14 tile."""
        assert slippy_tile(29.78, -95.33, 14) == (3853, 6771)

    def test_mapbox_url(self) -> None:
        """Test the Mapbox static image URL."""
        url = mapbox_url(HOUSTON, "pk.token")

        assert url == (
            "https://api.mapbox.com/styles/v1/mapbox/satellite-v9/static/"
            "-95.33,29.78,14,0/400x400?access_token=pk.token"
        )

    def test_esri_export_bbox(self) -> None:
        """Test the export bounding box around the point."""
        url = esri_export_url(HOUSTON)

        assert "bbox=-95.340000,29.770000,-95.320000,29.790000" in url
        assert url.endswith("&size=400,400&format=png&f=image")

    def test_esri_tile_url(self) -> None:
        """Test the tile path is zoom/y/x."""
        assert esri_tile_url(HOUSTON).endswith("/MapServer/tile/14/6771/3853")

    def test_placeholder(self) -> None:
        """Test the all-services-down placeholder."""
        result = placeholder_result(HOUSTON)

        assert result.service == PLACEHOLDER_SERVICE
        assert result.fallback is True
        assert result.error == UNAVAILABLE_ERROR
        assert result.date == "N/A"
        assert result.url.endswith("Unavailable+for+29.78,-95.33")


class TestImageryChain:
    """Tests for the NASA to tile-service failover."""

    @pytest.mark.asyncio
    async def test_nasa_success(self) -> None:
        """Test that NASA imagery is used when it answers."""
        transport = routed_transport(
            {
                "api.nasa.gov": httpx.Response(
                    200, content=b"\xff\xd8", headers={"content-type": "image/png"}
                )
            }
        )
        chain = build_imagery_chain(make_dispatcher(transport))

        result = await chain.resolve(HOUSTON)

        assert result.service == NASA_SERVICE
        assert result.fallback is False
        assert result.date == LATEST_AVAILABLE
        assert result.coordinates.latitude == pytest.approx(29.78)
        assert "lat=29.78" in result.url
        assert len(transport.requests) == 1

    @pytest.mark.asyncio
    async def test_nasa_down_uses_esri_export(self) -> None:
        """Test the first tile fallback after a NASA failure."""
        transport = routed_transport(
            {
                "api.nasa.gov": httpx.Response(503),
                "server.arcgisonline.com": httpx.Response(200),
            }
        )
        chain = build_imagery_chain(make_dispatcher(transport))

        result = await chain.resolve(HOUSTON)

        assert result.service == ESRI_EXPORT_SERVICE
        assert result.fallback is True
        assert result.message == FALLBACK_MESSAGE
        assert result.date == LATEST_AVAILABLE
        probe = transport.requests[-1]
        assert probe.method == "HEAD"
        assert "api_key" not in probe.url.params

    @pytest.mark.asyncio
    async def test_mapbox_only_with_token(self) -> None:
        """Test that Mapbox is tried before Esri when a token is set."""
        transport = routed_transport(
            {
                "api.nasa.gov": httpx.Response(404),
                "api.mapbox.com": httpx.Response(200),
            }
        )
        with_token = build_imagery_chain(
            make_dispatcher(transport), mapbox_token="pk.abc"
        )
        without_token = build_imagery_chain(make_dispatcher(transport))

        result = await with_token.resolve(HOUSTON)

        assert result.service == MAPBOX_SERVICE
        assert MAPBOX_SERVICE not in without_token.provider_names
        assert with_token.provider_names == [
            NASA_SERVICE,
            MAPBOX_SERVICE,
            ESRI_EXPORT_SERVICE,
            ESRI_TILE_SERVICE,
        ]

    @pytest.mark.asyncio
    async def test_last_tile_service(self) -> None:
        """Test falling through to the Esri tile with the query date kept."""
        transport = routed_transport(
            {
                "api.nasa.gov": httpx.Response(500),
                "server.arcgisonline.com": httpx.Response(503),
                "clarity.maptiles.arcgis.com": httpx.Response(200),
            }
        )
        chain = build_imagery_chain(make_dispatcher(transport))
        query = ImageryQuery(latitude=29.78, longitude=-95.33, date="2020-05-01")

        result = await chain.resolve(query)

        assert result.service == ESRI_TILE_SERVICE
        assert result.date == "2020-05-01"

    @pytest.mark.asyncio
    async def test_everything_down(self) -> None:
        """Test that exhaustion raises the last tile probe's failure."""
        transport = routed_transport({}, default=httpx.Response(503))
        chain = build_imagery_chain(make_dispatcher(transport))

        with pytest.raises(GatewayError) as exc_info:
            await chain.resolve(HOUSTON)

        assert exc_info.value.kind == ErrorKind.UPSTREAM_UNAVAILABLE
        assert exc_info.value.record.provider == ESRI_TILE_SERVICE
