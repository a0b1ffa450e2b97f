"""Caller input validation.

Every check raises a BAD_REQUEST GatewayError before anything is dispatched.
"""

import re
from datetime import UTC, date, datetime
from typing import Final

from cosmic_gateway.fetch.models import ErrorKind, ErrorRecord, GatewayError


DATE_FORMAT = "%Y-%m-%d"
_DATE_PATTERN: Final = re.compile(r"^\d{4}-\d{2}-\d{2}$")

APOD_FIRST_DATE: Final = date(1995, 6, 16)
MAX_SOL = 10000

MARS_ROVERS: Final[tuple[str, ...]] = (
    "curiosity",
    "opportunity",
    "spirit",
    "perseverance",
)
DONKI_EVENT_TYPES: Final[tuple[str, ...]] = (
    "notifications",
    "FLR",
    "SEP",
    "CME",
    "IPS",
    "MPC",
    "GST",
    "RBE",
)
EPIC_COLLECTIONS: Final[tuple[str, ...]] = ("natural", "enhanced")
TECH_TRANSFER_CATEGORIES: Final[tuple[str, ...]] = ("patents", "software", "spinoffs")
PLANETARY_BODIES: Final[tuple[str, ...]] = ("Moon", "Mars")
TILE_FORMATS: Final[tuple[str, ...]] = ("png", "jpg")


def bad_request(message: str, endpoint: str | None = None) -> GatewayError:
    """Build a BAD_REQUEST error for invalid caller input."""
    return GatewayError(
        ErrorRecord(kind=ErrorKind.BAD_REQUEST, message=message, endpoint=endpoint)
    )


def today_utc() -> date:
    """Get today's date in UTC."""
    return datetime.now(UTC).date()


def parse_date(value: str, field: str, endpoint: str | None = None) -> date:
    """Parse a YYYY-MM-DD calendar date.

    Args:
        value: Date string.
        field: Parameter name, for the message.
        endpoint: Endpoint hint.

    Returns:
        Parsed date.

    Raises:
        GatewayError: BAD_REQUEST if the value is not a real YYYY-MM-DD date.
    """
    if not _DATE_PATTERN.match(value):
        msg = f"Invalid {field} format. Please use YYYY-MM-DD format."
        raise bad_request(msg, endpoint)
    try:
        return datetime.strptime(value, DATE_FORMAT).replace(tzinfo=UTC).date()
    except ValueError:
        msg = f"Invalid {field}: {value} is not a calendar date."
        raise bad_request(msg, endpoint) from None


def validate_apod_date(value: str | None, today: date | None = None) -> str | None:
    """Validate an optional APOD date against the archive range."""
    if value is None:
        return None
    parsed = parse_date(value, "date", "planetary/apod")
    latest = today or today_utc()
    if not APOD_FIRST_DATE <= parsed <= latest:
        msg = (
            "Date out of range. APOD is available from June 16, 1995 to present."
        )
        raise bad_request(msg, "planetary/apod")
    return value


def validate_date_range(
    start: str | None,
    end: str | None,
    fields: tuple[str, str],
    endpoint: str,
) -> None:
    """Validate an optional start/end date pair.

    Raises:
        GatewayError: BAD_REQUEST for malformed dates or start after end.
    """
    start_date = parse_date(start, fields[0], endpoint) if start else None
    end_date = parse_date(end, fields[1], endpoint) if end else None
    if start_date and end_date and start_date > end_date:
        msg = f"{fields[0]} cannot be after {fields[1]}"
        raise bad_request(msg, endpoint)


def choose(value: str, allowed: tuple[str, ...], label: str, endpoint: str) -> str:
    """Match a value against an allowed set, case-insensitively.

    Returns:
        The canonical spelling from the allowed set.
    """
    for candidate in allowed:
        if candidate.lower() == value.strip().lower():
            return candidate
    msg = f"Invalid {label}. Valid options: {', '.join(allowed)}"
    raise bad_request(msg, endpoint)


def validate_sol(sol: int) -> int:
    """Validate a Martian sol number."""
    if sol < 0:
        raise bad_request(
            "Invalid sol value. Must be a non-negative integer.", "mars-photos"
        )
    if sol > MAX_SOL:
        raise bad_request(
            "Sol value too large. Please use a reasonable sol value.", "mars-photos"
        )
    return sol


def require_text(value: str | None, label: str, endpoint: str) -> str:
    """Require a non-blank string."""
    if value is None or not value.strip():
        raise bad_request(f"{label} is required", endpoint)
    return value.strip()


def clamp(value: int, lower: int, upper: int) -> int:
    """Clamp an integer into [lower, upper]."""
    return max(lower, min(value, upper))
