"""Earth imagery with probed third-party tile fallbacks."""

import math
from collections.abc import Callable
from typing import Annotated, Final

from pydantic import BaseModel, ConfigDict, Field

from cosmic_gateway.failover.chain import FailoverChain, Provider
from cosmic_gateway.fetch.client import RequestDispatcher
from cosmic_gateway.fetch.constants import LATEST_AVAILABLE
from cosmic_gateway.fetch.models import (
    Coordinates,
    EndpointDescriptor,
    ResourceDescriptor,
    ResponseKind,
    ShapedResult,
)


EARTH_IMAGERY_ENDPOINT: Final = EndpointDescriptor(
    target="planetary/earth/imagery",
    response_kind=ResponseKind.RESOURCE,
)

NASA_SERVICE = "NASA Earth Imagery"
MAPBOX_SERVICE = "Mapbox Satellite"
ESRI_EXPORT_SERVICE = "Esri World Imagery"
ESRI_TILE_SERVICE = "Esri World Imagery Tile"
PLACEHOLDER_SERVICE = "Placeholder"

FALLBACK_MESSAGE = "NASA API unavailable, using fallback service"
UNAVAILABLE_ERROR = "All imagery services are currently unavailable"
UNAVAILABLE_MESSAGE = (
    "NASA API and all fallback services are unavailable. Please try again later."
)

TILE_ZOOM = 14
TILE_SIZE_PX = 400
EXPORT_HALF_SPAN_DEGREES = 0.01
DEFAULT_DIMENSION = 0.15
MAX_DIMENSION = 1.0


class ImageryQuery(BaseModel):
    """Validated Earth imagery request."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    latitude: Annotated[float, Field(ge=-90.0, le=90.0)]
    longitude: Annotated[float, Field(ge=-180.0, le=180.0)]
    dim: Annotated[float, Field(gt=0.0, le=MAX_DIMENSION)] = DEFAULT_DIMENSION
    date: Annotated[str, Field(pattern=r"^\d{4}-\d{2}-\d{2}$")] | None = None

    @property
    def coordinates(self) -> Coordinates:
        """Get the query position."""
        return Coordinates(latitude=self.latitude, longitude=self.longitude)


class ImageryResult(BaseModel):
    """Normalized imagery answer, whichever service produced it."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    url: str
    service: str
    date: str
    coordinates: Coordinates
    dimension: float
    fallback: bool = False
    message: str | None = None
    error: str | None = None


def slippy_tile(latitude: float, longitude: float, zoom: int) -> tuple[int, int]:
    """Convert a position to Web Mercator tile indices.

    Args:
        latitude: Latitude in degrees.
        longitude: Longitude in degrees.
        zoom: Zoom level.

    Returns:
        (x, y) tile indices.
    """
    scale = 2**zoom
    lat_rad = math.radians(latitude)
    x = math.floor((longitude + 180.0) / 360.0 * scale)
    y = math.floor(
        (1.0 - math.log(math.tan(lat_rad) + 1.0 / math.cos(lat_rad)) / math.pi)
        / 2.0
        * scale
    )
    return x, y


def mapbox_url(query: ImageryQuery, token: str) -> str:
    """Build a Mapbox static satellite image URL."""
    return (
        "https://api.mapbox.com/styles/v1/mapbox/satellite-v9/static/"
        f"{query.longitude},{query.latitude},{TILE_ZOOM},0/"
        f"{TILE_SIZE_PX}x{TILE_SIZE_PX}?access_token={token}"
    )


def esri_export_url(query: ImageryQuery) -> str:
    """Build an Esri World Imagery export URL for a small box around the point."""
    span = EXPORT_HALF_SPAN_DEGREES
    bbox = ",".join(
        f"{value:.6f}"
        for value in (
            query.longitude - span,
            query.latitude - span,
            query.longitude + span,
            query.latitude + span,
        )
    )
    return (
        "https://server.arcgisonline.com/ArcGIS/rest/services/World_Imagery/"
        f"MapServer/export?bbox={bbox}&size={TILE_SIZE_PX},{TILE_SIZE_PX}"
        "&format=png&f=image"
    )


def esri_tile_url(query: ImageryQuery) -> str:
    """Build an Esri World Imagery tile URL at the fallback zoom level."""
    x, y = slippy_tile(query.latitude, query.longitude, TILE_ZOOM)
    return (
        "https://clarity.maptiles.arcgis.com/arcgis/rest/services/World_Imagery/"
        f"MapServer/tile/{TILE_ZOOM}/{y}/{x}"
    )


def placeholder_result(query: ImageryQuery) -> ImageryResult:
    """Build the result returned when every imagery service failed.

    Args:
        query: Original query.

    Returns:
        Placeholder imagery flagged as a fallback.
    """
    return ImageryResult(
        url=(
            f"https://via.placeholder.com/{TILE_SIZE_PX}x{TILE_SIZE_PX}/4A90E2/FFFFFF"
            "?text=Satellite+Image+Unavailable+for+"
            f"{query.latitude:.2f},{query.longitude:.2f}"
        ),
        service=PLACEHOLDER_SERVICE,
        date=query.date or "N/A",
        coordinates=query.coordinates,
        dimension=query.dim,
        fallback=True,
        error=UNAVAILABLE_ERROR,
        message=UNAVAILABLE_MESSAGE,
    )


def transform_nasa(raw: ShapedResult, query: ImageryQuery) -> ImageryResult:
    """Normalize the NASA imagery descriptor."""
    if not isinstance(raw, ResourceDescriptor):
        msg = f"Expected an image descriptor, got {raw.shape}"
        raise TypeError(msg)
    return ImageryResult(
        url=raw.url,
        service=NASA_SERVICE,
        date=raw.date,
        coordinates=raw.coordinates or query.coordinates,
        dimension=raw.dimension if raw.dimension is not None else query.dim,
    )


def _tile_provider(
    dispatcher: RequestDispatcher,
    service: str,
    build_url: Callable[[ImageryQuery], str],
) -> Provider[ImageryQuery, ImageryResult]:
    async def fetch(query: ImageryQuery) -> str:
        url = build_url(query)
        await dispatcher.probe(url)
        return url

    def transform(url: str, query: ImageryQuery) -> ImageryResult:
        return ImageryResult(
            url=url,
            service=service,
            date=query.date or LATEST_AVAILABLE,
            coordinates=query.coordinates,
            dimension=query.dim,
            fallback=True,
            message=FALLBACK_MESSAGE,
        )

    return Provider(service, fetch, transform)


def build_imagery_chain(
    dispatcher: RequestDispatcher,
    *,
    mapbox_token: str | None = None,
) -> FailoverChain[ImageryQuery, ImageryResult]:
    """Build the Earth imagery chain.

    NASA imagery first, then Mapbox (only with a token), Esri export and
    the Esri tile. Tile services are probed with HEAD before being returned.

    Args:
        dispatcher: Dispatcher used by every provider.
        mapbox_token: Optional Mapbox access token.

    Returns:
        Chain resolving an ImageryQuery to an ImageryResult.
    """

    async def fetch_nasa(query: ImageryQuery) -> ShapedResult:
        return await dispatcher.dispatch(
            EARTH_IMAGERY_ENDPOINT,
            {
                "lat": query.latitude,
                "lon": query.longitude,
                "dim": query.dim,
                "date": query.date,
            },
        )

    providers: list[Provider[ImageryQuery, ImageryResult]] = [
        Provider(NASA_SERVICE, fetch_nasa, transform_nasa)
    ]
    if mapbox_token:
        providers.append(
            _tile_provider(
                dispatcher, MAPBOX_SERVICE, lambda q: mapbox_url(q, mapbox_token)
            )
        )
    providers.append(_tile_provider(dispatcher, ESRI_EXPORT_SERVICE, esri_export_url))
    providers.append(_tile_provider(dispatcher, ESRI_TILE_SERVICE, esri_tile_url))

    return FailoverChain("earth-imagery", providers)
