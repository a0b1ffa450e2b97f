"""Unit tests for the endpoint catalog."""

from cosmic_gateway.capabilities import catalog
from cosmic_gateway.fetch.models import ResponseKind


class TestWmtsTileEndpoint:
    """Tests for Trek tile endpoint construction."""

    def test_tile_address(self) -> None:
        """Test the row and column order of the tile path."""
        endpoint = catalog.wmts_tile_endpoint(
            "Moon", "LRO_WAC_Mosaic_Global_303ppd", 2, 3, 1, "png"
        )

        assert endpoint.target == (
            "https://trek.nasa.gov/tiles/Moon/EQ/LRO_WAC_Mosaic_Global_303ppd/"
            "1.0.0/default/default/2/1/3.png"
        )
        assert endpoint.response_kind == ResponseKind.BINARY
        assert endpoint.skip_api_key

    def test_layer_cannot_rewrite_url(self) -> None:
        """Test path and query delimiters in a layer name are escaped."""
        endpoint = catalog.wmts_tile_endpoint("Mars", "a/../b?x=1#frag", 0, 0, 0, "jpg")

        assert endpoint.target == (
            "https://trek.nasa.gov/tiles/Mars/EQ/a%2F..%2Fb%3Fx%3D1%23frag/"
            "1.0.0/default/default/0/0/0.jpg"
        )
