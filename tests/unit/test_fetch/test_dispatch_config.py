"""Unit tests for dispatcher configuration models."""

import pytest
from pydantic import ValidationError

from cosmic_gateway.fetch.config import DispatchConfig, HostProfile
from cosmic_gateway.fetch.constants import DEFAULT_API_KEY, DEFAULT_BASE_URL


class TestHostProfile:
    """Tests for HostProfile."""

    def test_matches_host_by_regex(self) -> None:
        """Test the pattern is matched against the host."""
        profile = HostProfile(host_pattern=r"(.*\.)?celestrak\.org")

        assert profile.matches("celestrak.org")
        assert profile.matches("www.celestrak.org")
        assert not profile.matches("api.nasa.gov")

    def test_invalid_regex_rejected(self) -> None:
        """Test a pattern that does not compile fails validation."""
        with pytest.raises(ValidationError, match="not a valid regex"):
            HostProfile(host_pattern="([")

    @pytest.mark.parametrize("header", ["Authorization", "cookie", "X-Api-Key"])
    def test_credential_headers_rejected(self, header: str) -> None:
        """Test credentials cannot be configured as profile headers."""
        with pytest.raises(ValidationError, match="NASA_API_KEY"):
            HostProfile(host_pattern="api.nasa.gov", headers={header: "secret"})


class TestDispatchConfig:
    """Tests for DispatchConfig."""

    def test_defaults(self) -> None:
        """Test the default base URL and placeholder key."""
        config = DispatchConfig()

        assert config.base_url == DEFAULT_BASE_URL
        assert config.api_key == DEFAULT_API_KEY
        assert config.probe_timeout_seconds == 5.0

    def test_trailing_slash_stripped(self) -> None:
        """Test the base URL is stored without a trailing slash."""
        config = DispatchConfig(base_url="https://api.nasa.gov/")

        assert config.base_url == "https://api.nasa.gov"

    def test_non_http_base_url_rejected(self) -> None:
        """Test only http(s) base URLs are accepted."""
        with pytest.raises(ValidationError):
            DispatchConfig(base_url="ftp://api.nasa.gov")

    def test_host_timeout_and_headers(self) -> None:
        """Test per-host overrides fall back to defaults when unmatched."""
        config = DispatchConfig(
            default_timeout_seconds=30.0,
            host_profiles=[
                HostProfile(
                    host_pattern=r"epic\.gsfc\.nasa\.gov",
                    headers={"X-Trace": "1"},
                    timeout_seconds=5.0,
                )
            ],
        )

        assert config.get_timeout_for_host("epic.gsfc.nasa.gov") == 5.0
        assert config.get_headers_for_host("epic.gsfc.nasa.gov") == {"X-Trace": "1"}
        assert config.get_timeout_for_host("api.nasa.gov") == 30.0
        assert config.get_headers_for_host("api.nasa.gov") == {}

    def test_frozen(self) -> None:
        """Test the config cannot be mutated."""
        config = DispatchConfig()

        with pytest.raises(ValidationError):
            config.api_key = "OTHER"  # type: ignore[misc]
