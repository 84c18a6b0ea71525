"""Timestamp normalisation for stored records.

Backends hand timestamps back in several shapes (SDK datetimes with
nanoseconds, ``{seconds, nanos}`` maps, epoch numbers, ISO strings).
Records leaving the store carry a single ISO-8601 representation: UTC,
millisecond precision, ``Z`` suffix.
"""

import re
from datetime import UTC, datetime
from typing import Any

# Backends may return nanosecond precision; datetime only parses microseconds
_FRACTION_RE = re.compile(r"\.(\d{6})\d+")

# Epoch numbers at or above this are milliseconds (year 5138 in seconds)
_EPOCH_MILLIS_THRESHOLD = 1e11


def format_timestamp(dt: datetime) -> str:
    """Format a datetime as ``YYYY-MM-DDTHH:MM:SS.mmmZ`` in UTC.

    Naive datetimes are assumed to already be UTC.
    """
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_timestamp(value: str) -> datetime | None:
    """Parse an ISO-8601 / RFC 3339 string, returning None if it doesn't parse."""
    text = _FRACTION_RE.sub(r".\1", value.strip())
    try:
        dt = datetime.fromisoformat(text)
    except ValueError:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=UTC)
    return dt


def now_timestamp() -> str:
    """Current time in the normalised representation."""
    return format_timestamp(datetime.now(UTC))


def _from_epoch(value: float) -> str | None:
    seconds = value / 1000 if abs(value) >= _EPOCH_MILLIS_THRESHOLD else value
    try:
        return format_timestamp(datetime.fromtimestamp(seconds, tz=UTC))
    except (OverflowError, OSError, ValueError):
        return None


def normalize_timestamp(value: Any) -> str | None:
    """Normalise any timestamp-like value to an ISO-8601 string.

    Accepts:
    - ``datetime`` (including SDK subclasses such as DatetimeWithNanoseconds)
    - objects with ``to_datetime()`` (backend Timestamp types)
    - ``{"seconds": ..., "nanos": ...}`` mappings
    - epoch numbers, in seconds or milliseconds
    - strings, which are re-formatted if they parse and passed through if not

    Returns None for None. Anything else comes back as its string form, so
    the result is always ``str | None``.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        return format_timestamp(value)
    if hasattr(value, "to_datetime"):
        return format_timestamp(value.to_datetime())
    if isinstance(value, dict) and "seconds" in value:
        seconds = float(value["seconds"]) + int(value.get("nanos", 0)) / 1e9
        return format_timestamp(datetime.fromtimestamp(seconds, tz=UTC))
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return _from_epoch(value) or str(value)
    if isinstance(value, str):
        parsed = parse_timestamp(value)
        return format_timestamp(parsed) if parsed else value
    return str(value)


def normalize_fields(data: Any) -> Any:
    """Recursively replace datetime values in a field bag with ISO strings."""
    if isinstance(data, datetime):
        return format_timestamp(data)
    if isinstance(data, dict):
        return {k: normalize_fields(v) for k, v in data.items()}
    if isinstance(data, (list, tuple)):
        return [normalize_fields(v) for v in data]
    return data
