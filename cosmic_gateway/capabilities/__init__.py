"""Per-domain capabilities and the gateway facade."""

from cosmic_gateway.capabilities.capability import Capability
from cosmic_gateway.capabilities.catalog import DEFAULT_CACHE_PROFILES
from cosmic_gateway.capabilities.gateway import SpaceDataGateway


__all__ = ["DEFAULT_CACHE_PROFILES", "Capability", "SpaceDataGateway"]
