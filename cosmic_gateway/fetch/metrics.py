"""Metrics collection for the dispatch layer."""

from dataclasses import dataclass, field
from typing import ClassVar

from cosmic_gateway.fetch.models import ErrorKind


@dataclass
class DispatchMetrics:
    """Metrics for outbound dispatches.

    Singleton class that tracks attempt counts by status, retries,
    classified failures and cumulative duration.
    """

    attempts_total: int = 0
    responses_total: dict[int, int] = field(default_factory=dict)
    retries_total: int = 0
    failures_total: dict[str, int] = field(default_factory=dict)
    dispatches_total: int = 0
    bytes_total: int = 0
    duration_ms_total: float = 0.0

    _instance: ClassVar["DispatchMetrics | None"] = None

    @classmethod
    def get_instance(cls) -> "DispatchMetrics":
        """Get singleton metrics instance."""
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Reset metrics (primarily for testing)."""
        cls._instance = None

    def record_attempt(self) -> None:
        """Record an attempt being issued."""
        self.attempts_total += 1

    def record_response(self, status_code: int, bytes_received: int) -> None:
        """Record a response, successful or not.

        Args:
            status_code: HTTP status code.
            bytes_received: Number of bytes received.
        """
        self.responses_total[status_code] = (
            self.responses_total.get(status_code, 0) + 1
        )
        self.bytes_total += bytes_received

    def record_retry(self) -> None:
        """Record a retry being scheduled."""
        self.retries_total += 1

    def record_failure(self, kind: ErrorKind) -> None:
        """Record a classified dispatch failure.

        Args:
            kind: Classification of the failure.
        """
        self.failures_total[kind.value] = self.failures_total.get(kind.value, 0) + 1

    def record_dispatch(self, duration_ms: float) -> None:
        """Record a finished logical dispatch.

        Args:
            duration_ms: Duration in milliseconds, backoff waits included.
        """
        self.dispatches_total += 1
        self.duration_ms_total += duration_ms

    @property
    def avg_duration_ms(self) -> float:
        """Calculate average dispatch duration.

        Returns:
            Average duration in milliseconds.
        """
        if self.dispatches_total == 0:
            return 0.0
        return self.duration_ms_total / self.dispatches_total

    def to_dict(self) -> dict[str, int | float | dict[str, int] | dict[int, int]]:
        """Convert metrics to dictionary.

        Returns:
            Dictionary of metric name to value.
        """
        return {
            "attempts_total": self.attempts_total,
            "responses_total": dict(self.responses_total),
            "retries_total": self.retries_total,
            "failures_total": dict(self.failures_total),
            "dispatches_total": self.dispatches_total,
            "bytes_total": self.bytes_total,
            "duration_ms_total": self.duration_ms_total,
        }
