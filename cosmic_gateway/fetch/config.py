"""Configuration models for the dispatch layer."""

import re
from typing import Annotated

from pydantic import BaseModel, ConfigDict, Field, field_validator

from cosmic_gateway.fetch.constants import (
    DEFAULT_API_KEY,
    DEFAULT_BASE_URL,
    DEFAULT_KEY_REJECTING_HOSTS,
    DEFAULT_PROBE_TIMEOUT_SECONDS,
    DEFAULT_TIMEOUT_SECONDS,
    DEFAULT_USER_AGENT,
)
from cosmic_gateway.fetch.models import RetryPolicy
from cosmic_gateway.fetch.redact import SENSITIVE_HEADERS as CREDENTIAL_HEADERS


class HostProfile(BaseModel):
    """Per-host configuration for outbound requests.

    Allows customizing headers and timeouts per upstream host.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    host_pattern: Annotated[
        str, Field(min_length=1, description="Regex pattern for matching hosts")
    ]
    headers: dict[str, str] = Field(
        default_factory=dict, description="Headers to add for this host"
    )
    timeout_seconds: Annotated[float, Field(gt=0.0, le=300.0)] | None = None

    @field_validator("host_pattern")
    @classmethod
    def validate_host_pattern(cls, v: str) -> str:
        """Reject host patterns that do not compile."""
        try:
            re.compile(v)
        except re.error as e:
            msg = f"host_pattern {v!r} is not a valid regex: {e}"
            raise ValueError(msg) from e
        return v

    @field_validator("headers")
    @classmethod
    def validate_no_credential_headers(cls, v: dict[str, str]) -> dict[str, str]:
        """Keep credentials out of host profiles; the API key comes from settings."""
        leaked = sorted(key for key in v if key.lower() in CREDENTIAL_HEADERS)
        if leaked:
            msg = (
                f"Credential headers {leaked} cannot be set on a host profile; "
                "configure NASA_API_KEY instead"
            )
            raise ValueError(msg)
        return v

    def matches(self, host: str) -> bool:
        """Check if this profile matches a host.

        Args:
            host: The host to check.

        Returns:
            True if the pattern matches.
        """
        return bool(re.match(self.host_pattern, host))


class DispatchConfig(BaseModel):
    """Configuration for the request dispatcher.

    Constructed once at startup and immutable thereafter.
    """

    model_config = ConfigDict(frozen=True, extra="forbid")

    base_url: Annotated[str, Field(pattern=r"^https?://")] = DEFAULT_BASE_URL
    api_key: Annotated[str, Field(min_length=1)] = DEFAULT_API_KEY
    user_agent: Annotated[str, Field(min_length=1, max_length=500)] = (
        DEFAULT_USER_AGENT
    )
    default_timeout_seconds: Annotated[float, Field(gt=0.0, le=300.0)] = (
        DEFAULT_TIMEOUT_SECONDS
    )
    probe_timeout_seconds: Annotated[float, Field(gt=0.0, le=60.0)] = (
        DEFAULT_PROBE_TIMEOUT_SECONDS
    )
    retry_policy: RetryPolicy = Field(default_factory=RetryPolicy)
    key_rejecting_hosts: frozenset[str] = DEFAULT_KEY_REJECTING_HOSTS
    host_profiles: list[HostProfile] = Field(default_factory=list)

    @field_validator("base_url")
    @classmethod
    def strip_trailing_slash(cls, v: str) -> str:
        """Store the base URL without a trailing slash."""
        return v.rstrip("/")

    def get_profile_for_host(self, host: str) -> HostProfile | None:
        """Get the host profile that matches a host.

        Args:
            host: The host to look up.

        Returns:
            Matching HostProfile, or None if no match.
        """
        for profile in self.host_profiles:
            if profile.matches(host):
                return profile
        return None

    def get_timeout_for_host(self, host: str) -> float:
        """Get the timeout for a host.

        Args:
            host: The host to look up.

        Returns:
            Timeout in seconds.
        """
        profile = self.get_profile_for_host(host)
        if profile and profile.timeout_seconds is not None:
            return profile.timeout_seconds
        return self.default_timeout_seconds

    def get_headers_for_host(self, host: str) -> dict[str, str]:
        """Get headers for a host.

        Args:
            host: The host to look up.

        Returns:
            Dictionary of headers.
        """
        profile = self.get_profile_for_host(host)
        if profile:
            return dict(profile.headers)
        return {}

    def rejects_api_key(self, host: str) -> bool:
        """Check whether a host rejects an extraneous api_key parameter."""
        return host.lower() in self.key_rejecting_hosts
