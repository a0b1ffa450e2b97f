"""Satellite orbital elements with a keyword-filtered catalog fallback.

The primary source (CelesTrak) can be queried by group. The fallback TLE
catalog has no category filter, so categories are approximated by matching
object names against keyword lists.
"""

from typing import Any, Final

from pydantic import BaseModel, ConfigDict, Field

from cosmic_gateway.failover.chain import FailoverChain, Provider
from cosmic_gateway.fetch.client import RequestDispatcher
from cosmic_gateway.fetch.models import (
    EndpointDescriptor,
    ErrorKind,
    ErrorRecord,
    GatewayError,
    JsonPayload,
    ShapedResult,
)


CELESTRAK_GP_ENDPOINT: Final = EndpointDescriptor(
    target="https://celestrak.org/NORAD/elements/gp.php",
    skip_api_key=True,
)
TLE_CATALOG_ENDPOINT: Final = EndpointDescriptor(
    target="https://tle.ivanstanojevic.me/api/tle",
    skip_api_key=True,
)

TLE_CATALOG_PAGE_SIZE = 100

SATELLITE_CATEGORIES: Final[tuple[str, ...]] = (
    "stations",
    "visual",
    "active-geosynchronous",
    "analyst",
    "weather",
    "noaa",
    "goes",
    "resource",
    "cubesat",
    "other",
)

# Groups CelesTrak itself publishes
CELESTRAK_GROUPS: Final[frozenset[str]] = frozenset(SATELLITE_CATEGORIES) - {"other"}

CATEGORY_KEYWORDS: Final[dict[str, tuple[str, ...]]] = {
    "stations": ("ISS", "Tiangong", "Mir"),
    "visual": ("Hubble", "Envisat"),
    "active-geosynchronous": ("GOES", "INSAT"),
    "weather": ("NOAA", "GOES"),
    "noaa": ("NOAA",),
    "goes": ("GOES",),
    "resource": ("LANDSAT", "Sentinel"),
    "cubesat": ("CubeSat",),
    "other": (),
}


class SatelliteElements(BaseModel):
    """Orbital elements of one satellite, normalized across sources."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    satellite_id: int = Field(ge=0, description="NORAD catalog number")
    name: str
    epoch: str | None = None
    line1: str | None = None
    line2: str | None = None
    source: str


def normalize_category(category: str) -> str:
    """Validate and normalize a satellite category.

    Args:
        category: Category name, any case.

    Returns:
        Lower-cased category.

    Raises:
        GatewayError: BAD_REQUEST for an unknown category.
    """
    normalized = category.strip().lower()
    if normalized not in SATELLITE_CATEGORIES:
        raise GatewayError(
            ErrorRecord(
                kind=ErrorKind.BAD_REQUEST,
                message=(
                    "Invalid category. Valid categories: "
                    + ", ".join(SATELLITE_CATEGORIES)
                ),
                endpoint="satellites",
            )
        )
    return normalized


def matches_category(name: str, category: str) -> bool:
    """Check whether an object name belongs to a category by keyword."""
    lowered = name.lower()
    return any(
        keyword.lower() in lowered for keyword in CATEGORY_KEYWORDS.get(category, ())
    )


def _json_data(raw: ShapedResult) -> Any:
    if not isinstance(raw, JsonPayload):
        msg = f"Expected a JSON payload, got {raw.shape}"
        raise TypeError(msg)
    return raw.data


def transform_celestrak(
    raw: ShapedResult, category: str
) -> list[SatelliteElements]:
    """Normalize a CelesTrak OMM JSON list.

    Args:
        raw: Shaped CelesTrak response.
        category: Requested category.

    Returns:
        Elements for every record in the group.
    """
    records = _json_data(raw)
    if not isinstance(records, list):
        msg = "CelesTrak response is not a list"
        raise TypeError(msg)
    return [
        SatelliteElements(
            satellite_id=int(record["NORAD_CAT_ID"]),
            name=str(record["OBJECT_NAME"]).strip(),
            epoch=record.get("EPOCH"),
            line1=record.get("TLE_LINE1"),
            line2=record.get("TLE_LINE2"),
            source="celestrak",
        )
        for record in records
    ]


def transform_tle_catalog(
    raw: ShapedResult, category: str
) -> list[SatelliteElements]:
    """Normalize a TLE catalog page and filter it by category keywords.

    Args:
        raw: Shaped TLE catalog response.
        category: Requested category.

    Returns:
        Elements of members whose name matches the category keywords.
    """
    data = _json_data(raw)
    members = data.get("member", []) if isinstance(data, dict) else data
    if not isinstance(members, list):
        msg = "TLE catalog response has no member list"
        raise TypeError(msg)
    return [
        SatelliteElements(
            satellite_id=int(member["satelliteId"]),
            name=str(member["name"]).strip(),
            epoch=member.get("date"),
            line1=member.get("line1"),
            line2=member.get("line2"),
            source="tle-catalog",
        )
        for member in members
        if matches_category(str(member.get("name", "")), category)
    ]


def build_satellite_chain(
    dispatcher: RequestDispatcher,
) -> FailoverChain[str, list[SatelliteElements]]:
    """Build the satellite elements chain: CelesTrak, then the TLE catalog.

    Args:
        dispatcher: Dispatcher used by every provider.

    Returns:
        Chain resolving a normalized category to satellite elements.
    """

    async def fetch_celestrak(category: str) -> ShapedResult:
        if category not in CELESTRAK_GROUPS:
            raise GatewayError(
                ErrorRecord(
                    kind=ErrorKind.BAD_REQUEST,
                    message=f"Invalid CelesTrak group: {category}",
                    endpoint=CELESTRAK_GP_ENDPOINT.hint,
                )
            )
        return await dispatcher.dispatch(
            CELESTRAK_GP_ENDPOINT, {"GROUP": category, "FORMAT": "json"}
        )

    async def fetch_tle_catalog(category: str) -> ShapedResult:
        return await dispatcher.dispatch(
            TLE_CATALOG_ENDPOINT, {"page_size": TLE_CATALOG_PAGE_SIZE}
        )

    return FailoverChain(
        "satellites",
        [
            Provider("CelesTrak", fetch_celestrak, transform_celestrak),
            Provider("TLE catalog", fetch_tle_catalog, transform_tle_catalog),
        ],
    )
