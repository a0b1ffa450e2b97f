"""Endpoint catalog and per-capability cache defaults."""

from typing import Final
from urllib.parse import quote

from cosmic_gateway.cache.models import CacheConfig
from cosmic_gateway.fetch.models import EndpointDescriptor, ResponseKind


MINUTE_MS = 60_000
HOUR_MS = 60 * MINUTE_MS

APOD = "apod"
NEO_FEED = "neo_feed"
MARS_PHOTOS = "mars_photos"
DONKI = "donki"
EONET = "eonet"
EPIC = "epic"
TECH_TRANSFER = "tech_transfer"
IMAGE_LIBRARY = "image_library"
WMTS = "wmts"
EARTH_IMAGERY = "earth_imagery"
SATELLITES = "satellites"

DEFAULT_CACHE_PROFILES: Final[dict[str, CacheConfig]] = {
    APOD: CacheConfig(ttl_ms=HOUR_MS, max_entries=100),
    MARS_PHOTOS: CacheConfig(ttl_ms=10 * MINUTE_MS, max_entries=100),
    NEO_FEED: CacheConfig(ttl_ms=10 * MINUTE_MS, max_entries=50),
    DONKI: CacheConfig(ttl_ms=15 * MINUTE_MS, max_entries=50),
    EONET: CacheConfig(ttl_ms=10 * MINUTE_MS, max_entries=50),
    EPIC: CacheConfig(ttl_ms=30 * MINUTE_MS, max_entries=50),
    TECH_TRANSFER: CacheConfig(ttl_ms=HOUR_MS, max_entries=100),
    IMAGE_LIBRARY: CacheConfig(ttl_ms=15 * MINUTE_MS, max_entries=100),
    WMTS: CacheConfig(ttl_ms=24 * HOUR_MS, max_entries=500),
    EARTH_IMAGERY: CacheConfig(ttl_ms=HOUR_MS, max_entries=100),
    SATELLITES: CacheConfig(ttl_ms=30 * MINUTE_MS, max_entries=20),
}

APOD_ENDPOINT: Final = EndpointDescriptor(target="planetary/apod")
NEO_FEED_ENDPOINT: Final = EndpointDescriptor(target="neo/rest/v1/feed")
EONET_EVENTS_ENDPOINT: Final = EndpointDescriptor(
    target="https://eonet.gsfc.nasa.gov/api/v3/events"
)
IMAGE_LIBRARY_SEARCH_ENDPOINT: Final = EndpointDescriptor(
    target="https://images-api.nasa.gov/search",
    skip_api_key=True,
)

# Tech transfer search path and the query parameter carrying the term
TECH_TRANSFER_ROUTES: Final[dict[str, tuple[str, str]]] = {
    "patents": ("techtransfer/patent/", "patent"),
    "software": ("techtransfer/software/", "software"),
    "spinoffs": ("techtransfer/spinoff/", "spinoff"),
}

WMTS_TILE_TEMPLATE = (
    "https://trek.nasa.gov/tiles/{body}/EQ/{layer}/1.0.0/default/default/"
    "{z}/{y}/{x}.{fmt}"
)


def mars_photos_endpoint(rover: str) -> EndpointDescriptor:
    """Get the photo search endpoint of a rover."""
    return EndpointDescriptor(target=f"mars-photos/api/v1/rovers/{rover}/photos")


def donki_endpoint(event_type: str) -> EndpointDescriptor:
    """Get the DONKI endpoint of an event type."""
    return EndpointDescriptor(target=f"DONKI/{event_type}")


def epic_endpoint(collection: str, day: str | None) -> EndpointDescriptor:
    """Get the EPIC image listing of a collection, optionally for one day."""
    if day:
        return EndpointDescriptor(target=f"EPIC/api/{collection}/date/{day}")
    return EndpointDescriptor(target=f"EPIC/api/{collection}/images")


def tech_transfer_endpoint(category: str) -> EndpointDescriptor:
    """Get the sanitized search endpoint of a tech transfer category."""
    path, _ = TECH_TRANSFER_ROUTES[category]
    return EndpointDescriptor(target=path, sanitize_markup=True)


def wmts_tile_endpoint(  # noqa: PLR0913
    body: str,
    layer: str,
    z: int,
    x: int,
    y: int,
    fmt: str,
) -> EndpointDescriptor:
    """Get the Trek WMTS tile endpoint for a tile address."""
    return EndpointDescriptor(
        target=WMTS_TILE_TEMPLATE.format(
            body=body, layer=quote(layer, safe=""), z=z, x=x, y=y, fmt=fmt
        ),
        response_kind=ResponseKind.BINARY,
        skip_api_key=True,
    )
