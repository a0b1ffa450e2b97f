"""Facade wiring one capability per space-data domain."""

import random
import time
from collections.abc import Awaitable, Callable, Mapping
from datetime import timedelta
from typing import Any, TypeVar

import httpx
import structlog
from pydantic import ValidationError

from cosmic_gateway.cache.cache import ResultCache, cache_key
from cosmic_gateway.cache.models import CacheConfig, CacheStats
from cosmic_gateway.capabilities import catalog
from cosmic_gateway.capabilities.capability import Capability
from cosmic_gateway.capabilities.validation import (
    DATE_FORMAT,
    DONKI_EVENT_TYPES,
    EPIC_COLLECTIONS,
    MARS_ROVERS,
    PLANETARY_BODIES,
    TECH_TRANSFER_CATEGORIES,
    TILE_FORMATS,
    bad_request,
    choose,
    clamp,
    parse_date,
    require_text,
    today_utc,
    validate_apod_date,
    validate_date_range,
    validate_sol,
)
from cosmic_gateway.failover.imagery import (
    ImageryQuery,
    ImageryResult,
    build_imagery_chain,
    placeholder_result,
)
from cosmic_gateway.failover.satellites import (
    SatelliteElements,
    build_satellite_chain,
    normalize_category,
)
from cosmic_gateway.fetch.client import RequestDispatcher, SleepFunc
from cosmic_gateway.fetch.models import (
    EndpointDescriptor,
    GatewayError,
    ShapedResult,
)
from cosmic_gateway.settings.app import AppSettings


logger = structlog.get_logger()

T = TypeVar("T")

NEO_FEED_DAYS = 7
DEFAULT_SOL_CURIOSITY = 1000
DEFAULT_SOL = 100


class SpaceDataGateway:
    """Entry point for every supported space-data capability.

    Each domain owns a ResultCache; Earth imagery and satellites resolve
    through failover chains. Invalid input raises a BAD_REQUEST GatewayError
    before anything is dispatched.
    """

    def __init__(
        self,
        dispatcher: RequestDispatcher,
        *,
        cache_profiles: Mapping[str, CacheConfig] | None = None,
        mapbox_token: str | None = None,
        clock: Callable[[], float] = time.monotonic,
        rng: Callable[[], float] = random.random,
    ) -> None:
        """Initialize the gateway.

        Args:
            dispatcher: Shared request dispatcher.
            cache_profiles: Per-capability cache overrides.
            mapbox_token: Enables the Mapbox imagery fallback.
            clock: Clock shared by all caches.
            rng: Sweep sampler shared by all caches.
        """
        profiles = {**catalog.DEFAULT_CACHE_PROFILES, **(cache_profiles or {})}
        unknown = set(profiles) - set(catalog.DEFAULT_CACHE_PROFILES)
        if unknown:
            msg = f"Unknown cache profiles: {sorted(unknown)}"
            raise ValueError(msg)

        self._dispatcher = dispatcher
        self._caches: dict[str, ResultCache[Any]] = {
            name: ResultCache(config, name=name, clock=clock, rng=rng)
            for name, config in profiles.items()
        }
        self._log = logger.bind(component="gateway")

        def capability(
            name: str, endpoint: EndpointDescriptor | None = None
        ) -> Capability:
            return Capability(name, endpoint, dispatcher, self._caches[name])

        self._apod = capability(catalog.APOD, catalog.APOD_ENDPOINT)
        self._neo_feed = capability(catalog.NEO_FEED, catalog.NEO_FEED_ENDPOINT)
        self._mars_photos = capability(catalog.MARS_PHOTOS)
        self._donki = capability(catalog.DONKI)
        self._eonet = capability(catalog.EONET, catalog.EONET_EVENTS_ENDPOINT)
        self._epic = capability(catalog.EPIC)
        self._tech_transfer = capability(catalog.TECH_TRANSFER)
        self._image_library = capability(
            catalog.IMAGE_LIBRARY, catalog.IMAGE_LIBRARY_SEARCH_ENDPOINT
        )
        self._wmts = capability(catalog.WMTS)

        self._imagery_chain = build_imagery_chain(
            dispatcher, mapbox_token=mapbox_token
        )
        self._satellite_chain = build_satellite_chain(dispatcher)

    @classmethod
    def from_settings(
        cls,
        settings: AppSettings,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
        sleep_func: SleepFunc | None = None,
    ) -> "SpaceDataGateway":
        """Build a gateway from application settings.

        Args:
            settings: Loaded settings.
            transport: Optional httpx transport.
            sleep_func: Optional backoff sleep.

        Returns:
            Configured gateway.
        """
        dispatcher = RequestDispatcher(
            settings.to_dispatch_config(),
            transport=transport,
            sleep_func=sleep_func,
        )
        return cls(
            dispatcher,
            cache_profiles=settings.cache_profiles,
            mapbox_token=settings.mapbox_token,
        )

    @property
    def dispatcher(self) -> RequestDispatcher:
        """Get the shared dispatcher."""
        return self._dispatcher

    @property
    def cache_names(self) -> list[str]:
        """Get the names of all capability caches."""
        return sorted(self._caches)

    async def apod(self, date: str | None = None, *, hd: bool = True) -> ShapedResult:
        """Fetch the Astronomy Picture of the Day."""
        date = validate_apod_date(date)
        return await self._apod.fetch({"hd": hd, "date": date})

    async def neo_feed(
        self,
        start_date: str | None = None,
        end_date: str | None = None,
    ) -> ShapedResult:
        """Fetch near-Earth objects approaching in a date window.

        The window defaults to today through seven days later.
        """
        endpoint = catalog.NEO_FEED_ENDPOINT.target
        validate_date_range(start_date, end_date, ("start_date", "end_date"), endpoint)
        start = start_date or today_utc().strftime(DATE_FORMAT)
        if end_date is None:
            end_day = parse_date(start, "start_date", endpoint) + timedelta(
                days=NEO_FEED_DAYS
            )
            end_date = end_day.strftime(DATE_FORMAT)
        return await self._neo_feed.fetch({"start_date": start, "end_date": end_date})

    async def mars_photos(  # noqa: PLR0913
        self,
        rover: str,
        *,
        sol: int | None = None,
        earth_date: str | None = None,
        camera: str | None = None,
        page: int = 1,
        per_page: int = 25,
    ) -> ShapedResult:
        """Fetch a rover's photos by Earth date or sol.

        Without either, a per-rover default sol is used.
        """
        rover = choose(rover, MARS_ROVERS, "rover name", "mars-photos")
        params: dict[str, Any] = {
            "page": max(page, 1),
            "per_page": clamp(per_page, 1, 100),
        }
        if earth_date is not None:
            parse_date(earth_date, "earth_date", "mars-photos")
            params["earth_date"] = earth_date
        elif sol is not None:
            params["sol"] = validate_sol(sol)
        else:
            params["sol"] = (
                DEFAULT_SOL_CURIOSITY if rover == "curiosity" else DEFAULT_SOL
            )
        if camera:
            params["camera"] = camera.strip().lower()

        return await self._mars_photos.fetch(
            params, endpoint=catalog.mars_photos_endpoint(rover)
        )

    async def donki(
        self,
        event_type: str,
        *,
        start_date: str | None = None,
        end_date: str | None = None,
    ) -> ShapedResult:
        """Fetch space weather events of one DONKI type."""
        event_type = choose(event_type, DONKI_EVENT_TYPES, "event type", "DONKI")
        validate_date_range(start_date, end_date, ("startDate", "endDate"), "DONKI")
        return await self._donki.fetch(
            {"startDate": start_date, "endDate": end_date},
            endpoint=catalog.donki_endpoint(event_type),
        )

    async def eonet_events(  # noqa: PLR0913
        self,
        *,
        status: str | None = None,
        limit: int = 100,
        days: int = 20,
        source: str | None = None,
        category: str | None = None,
    ) -> ShapedResult:
        """Fetch natural events. The natural-events host takes no API key."""
        if status is not None and status not in ("open", "closed", "all"):
            msg = "Invalid status. Valid options: open, closed, all"
            raise bad_request(msg, "eonet")
        category = category.strip() if category else None
        return await self._eonet.fetch(
            {
                "status": None if status == "all" else status,
                "limit": clamp(limit, 1, 500),
                "days": clamp(days, 1, 365),
                "source": source,
                "category": None if category in (None, "", "all") else category,
            }
        )

    async def epic(
        self,
        collection: str = "natural",
        date: str | None = None,
    ) -> ShapedResult:
        """Fetch EPIC Earth images, latest or for one date."""
        collection = choose(collection, EPIC_COLLECTIONS, "collection", "/epic/")
        if date is not None:
            parse_date(date, "date", "/epic/")
        return await self._epic.fetch(
            None, endpoint=catalog.epic_endpoint(collection, date)
        )

    async def tech_transfer_search(
        self,
        term: str,
        category: str = "patents",
    ) -> ShapedResult:
        """Search the tech transfer portfolio; markup is stripped from results."""
        term = require_text(term, "Search term", "/techtransfer/")
        category = choose(
            category, TECH_TRANSFER_CATEGORIES, "category", "/techtransfer/"
        )
        _, param = catalog.TECH_TRANSFER_ROUTES[category]
        return await self._tech_transfer.fetch(
            {param: term}, endpoint=catalog.tech_transfer_endpoint(category)
        )

    async def image_library_search(
        self,
        query: str,
        *,
        media_type: str = "image",
        page: int = 1,
        page_size: int = 100,
    ) -> ShapedResult:
        """Search the NASA image and video library."""
        query = require_text(query, "Search query", "images-api")
        return await self._image_library.fetch(
            {
                "q": query,
                "media_type": media_type,
                "page": max(page, 1),
                "page_size": clamp(page_size, 1, 100),
            }
        )

    async def wmts_tile(  # noqa: PLR0913
        self,
        body: str,
        layer: str,
        z: int,
        x: int,
        y: int,
        fmt: str = "png",
    ) -> ShapedResult:
        """Fetch one Moon or Mars Trek map tile as binary."""
        body = choose(body, PLANETARY_BODIES, "body", "wmts")
        layer = require_text(layer, "Layer", "wmts")
        fmt = choose(fmt, TILE_FORMATS, "tile format", "wmts")
        if min(z, x, y) < 0:
            raise bad_request("Tile coordinates must be non-negative", "wmts")
        return await self._wmts.fetch(
            None, endpoint=catalog.wmts_tile_endpoint(body, layer, z, x, y, fmt)
        )

    async def earth_imagery(
        self,
        latitude: float,
        longitude: float,
        *,
        dim: float = 0.15,
        date: str | None = None,
    ) -> ImageryResult:
        """Get Earth imagery for a position, falling back across services.

        When every service fails a placeholder is returned, not an error.
        Placeholders are never cached.
        """
        if date is not None:
            parse_date(date, "date", "/earth/")
        try:
            query = ImageryQuery(
                latitude=latitude, longitude=longitude, dim=dim, date=date
            )
        except ValidationError as e:
            field = ".".join(str(part) for part in e.errors()[0]["loc"])
            raise bad_request(f"Invalid {field}", "/earth/") from None

        try:
            return await self._cached(
                catalog.EARTH_IMAGERY,
                cache_key(query.model_dump()),
                lambda: self._imagery_chain.resolve(query),
            )
        except GatewayError as e:
            self._log.warning(
                "imagery_unavailable",
                kind=e.record.kind.value,
                provider=e.record.provider,
            )
            return placeholder_result(query)

    async def satellites_by_category(self, category: str) -> list[SatelliteElements]:
        """Get orbital elements for a satellite category."""
        category = normalize_category(category)
        return await self._cached(
            catalog.SATELLITES,
            cache_key({"category": category}),
            lambda: self._satellite_chain.resolve(category),
        )

    async def _cached(
        self,
        name: str,
        key: str,
        load: Callable[[], Awaitable[T]],
    ) -> T:
        cache: ResultCache[T] = self._caches[name]
        cached = cache.get(key)
        if cached is not None:
            return cached
        result = await load()
        cache.put(key, result)
        return result

    def clear_cache(self, name: str) -> int:
        """Clear one capability cache.

        Args:
            name: Cache name.

        Returns:
            Number of entries removed.

        Raises:
            GatewayError: BAD_REQUEST for an unknown cache name.
        """
        cache = self._caches.get(name)
        if cache is None:
            msg = f"Unknown cache. Valid options: {', '.join(self.cache_names)}"
            raise bad_request(msg, "cache")
        return cache.clear()

    def clear_all_caches(self) -> dict[str, int]:
        """Clear every capability cache."""
        return {name: cache.clear() for name, cache in sorted(self._caches.items())}

    def cache_stats(self) -> dict[str, CacheStats]:
        """Get statistics for every capability cache."""
        return {name: cache.stats() for name, cache in sorted(self._caches.items())}
