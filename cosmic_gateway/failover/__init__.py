"""Ordered provider failover and its two concrete chains."""

from cosmic_gateway.failover.chain import FailoverChain, Provider
from cosmic_gateway.failover.imagery import (
    ImageryQuery,
    ImageryResult,
    build_imagery_chain,
    placeholder_result,
)
from cosmic_gateway.failover.satellites import (
    CATEGORY_KEYWORDS,
    SATELLITE_CATEGORIES,
    SatelliteElements,
    build_satellite_chain,
    normalize_category,
)


__all__ = [
    # Chain
    "FailoverChain",
    "Provider",
    # Imagery
    "ImageryQuery",
    "ImageryResult",
    "build_imagery_chain",
    "placeholder_result",
    # Satellites
    "CATEGORY_KEYWORDS",
    "SATELLITE_CATEGORIES",
    "SatelliteElements",
    "build_satellite_chain",
    "normalize_category",
]
