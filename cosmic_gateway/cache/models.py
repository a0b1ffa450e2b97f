"""Data models for the result cache."""

from dataclasses import dataclass
from typing import Annotated, Generic, TypeVar

from pydantic import BaseModel, ConfigDict, Field


T = TypeVar("T")


class CacheConfig(BaseModel):
    """Capacity and freshness settings for one cache instance."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    ttl_ms: Annotated[int, Field(gt=0, description="Time-to-live in milliseconds")]
    max_entries: Annotated[int, Field(ge=1, le=100_000)]
    sweep_probability: Annotated[float, Field(ge=0.0, le=1.0)] = 0.1


@dataclass(frozen=True)
class CacheEntry(Generic[T]):
    """A cached value with its insertion and expiry times (clock seconds)."""

    key: str
    value: T
    inserted_at: float
    expires_at: float

    def is_fresh(self, now: float) -> bool:
        """Check whether the entry may still be served.

        Args:
            now: Current clock reading.

        Returns:
            True if now is strictly before expiry.
        """
        return now < self.expires_at


class CacheStats(BaseModel):
    """Point-in-time statistics of one cache instance."""

    model_config = ConfigDict(frozen=True, extra="forbid")

    name: str
    size: int
    max_entries: int
    ttl_ms: int
    hits: int
    misses: int
    evictions: int
