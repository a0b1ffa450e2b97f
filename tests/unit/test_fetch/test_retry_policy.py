"""Unit tests for retry policy decisions."""

import pytest
from pydantic import ValidationError

from cosmic_gateway.fetch.models import (
    AttemptTimeoutError,
    HttpStatusError,
    NetworkError,
    RetryPolicy,
    TransportFailure,
)


class TestRetryPolicy:
    """Tests for RetryPolicy model."""

    def test_default_values(self) -> None:
        """Test default retry policy values."""
        policy = RetryPolicy()

        assert policy.max_attempts == 3
        assert policy.base_delay_ms == 1000
        assert policy.backoff_multiplier == 1.5
        assert policy.max_delay_ms == 30000
        assert policy.jitter_factor == 0.0

    def test_custom_values(self) -> None:
        """Test custom retry policy values."""
        policy = RetryPolicy(
            max_attempts=5,
            base_delay_ms=500,
            backoff_multiplier=2.0,
            max_delay_ms=60000,
            jitter_factor=0.2,
        )

        assert policy.max_attempts == 5
        assert policy.base_delay_ms == 500
        assert policy.backoff_multiplier == 2.0
        assert policy.max_delay_ms == 60000
        assert policy.jitter_factor == 0.2

    def test_policy_is_immutable(self) -> None:
        """Test that the policy cannot be mutated after construction."""
        policy = RetryPolicy()

        with pytest.raises(ValidationError):
            policy.max_attempts = 10  # type: ignore[misc]

    def test_overlapping_status_sets_rejected(self) -> None:
        """A status cannot be both retryable and terminal."""
        with pytest.raises(ValidationError, match="both retryable and terminal"):
            RetryPolicy(
                retryable_statuses=frozenset({503}),
                terminal_statuses=frozenset({503, 404}),
            )

    def test_overlapping_failure_sets_rejected(self) -> None:
        """A transport failure cannot be both retryable and terminal."""
        with pytest.raises(ValidationError, match="both retryable and terminal"):
            RetryPolicy(
                retryable_failures=frozenset({TransportFailure.DNS_FAILURE}),
                terminal_failures=frozenset({TransportFailure.DNS_FAILURE}),
            )

    def test_zero_attempts_rejected(self) -> None:
        """At least one attempt is always made."""
        with pytest.raises(ValidationError):
            RetryPolicy(max_attempts=0)


class TestIsRetryable:
    """Tests for retry classification."""

    @pytest.fixture
    def policy(self) -> RetryPolicy:
        """Create a standard retry policy."""
        return RetryPolicy()

    @pytest.mark.parametrize("status", [429, 500, 502, 503, 504])
    def test_retryable_statuses(self, policy: RetryPolicy, status: int) -> None:
        """Test that throttling and upstream failures are retried."""
        assert policy.is_retryable(HttpStatusError(status)) is True

    @pytest.mark.parametrize("status", [400, 401, 403, 404, 405, 410, 422, 501])
    def test_terminal_statuses(self, policy: RetryPolicy, status: int) -> None:
        """Test that client errors and 501 are never retried."""
        assert policy.is_retryable(HttpStatusError(status)) is False

    def test_unlisted_status_is_terminal(self, policy: RetryPolicy) -> None:
        """A status in neither set is treated as terminal."""
        assert policy.is_retryable(HttpStatusError(418)) is False

    def test_timeout_is_retryable(self, policy: RetryPolicy) -> None:
        """Test that attempt timeouts are retried."""
        assert policy.is_retryable(AttemptTimeoutError("slow")) is True

    @pytest.mark.parametrize(
        "failure",
        [
            TransportFailure.CONNECTION_REFUSED,
            TransportFailure.CONNECT_FAILED,
            TransportFailure.PROTOCOL,
        ],
    )
    def test_retryable_network_failures(
        self, policy: RetryPolicy, failure: TransportFailure
    ) -> None:
        """Test that transient connection problems are retried."""
        assert policy.is_retryable(NetworkError(failure)) is True

    def test_dns_failure_is_terminal(self, policy: RetryPolicy) -> None:
        """Test that an unresolvable host is not retried."""
        assert policy.is_retryable(NetworkError(TransportFailure.DNS_FAILURE)) is False


class TestGetDelay:
    """Tests for backoff delay calculation."""

    def test_multiplicative_backoff(self) -> None:
        """Test delays grow by the multiplier after each failed attempt."""
        policy = RetryPolicy()

        assert policy.get_delay_ms(1) == 1000
        assert policy.get_delay_ms(2) == 1500
        assert policy.get_delay_ms(3) == 2250

    def test_delay_capped(self) -> None:
        """Test that delays never exceed max_delay_ms."""
        policy = RetryPolicy(
            base_delay_ms=10000, backoff_multiplier=5.0, max_delay_ms=20000
        )

        assert policy.get_delay_ms(4) == 20000

    def test_jitter_stays_within_bounds(self) -> None:
        """Test that jitter only ever adds up to jitter_factor of the delay."""
        policy = RetryPolicy(jitter_factor=0.5)

        for _ in range(50):
            delay = policy.get_delay_ms(1)
            assert 1000 <= delay <= 1500
