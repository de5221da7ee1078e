"""Datetime utilities for timezone-aware clocks and boundary value coercion.

This module provides utilities for:
- Creating UTC timezone-aware datetimes
- Parsing boundary values with robust parsing (dateutil.parser.parse)
- Coercing values to the Python type matching a partition column
- Month-end detection used by boundary advancement
"""

import calendar
from datetime import date, datetime, timezone
from typing import Any, Optional

from dateutil import parser as dateutil_parser

from partition_lifecycle.utils.constants import INTEGER_BOUNDARY_TYPES

# UTC timezone
UTC = timezone.utc


def utc_now() -> datetime:
    """Get current UTC datetime.

    Returns:
        Current datetime in UTC timezone (microsecond precision)
    """
    return datetime.now(UTC)


def ensure_utc(dt: datetime) -> datetime:
    """Ensure datetime is UTC timezone-aware.

    If datetime is naive, assumes it's UTC.
    If datetime is timezone-aware, converts to UTC.

    Args:
        dt: Datetime object (naive or timezone-aware)

    Returns:
        UTC timezone-aware datetime
    """
    if dt.tzinfo is None:
        return dt.replace(tzinfo=UTC)
    return dt.astimezone(UTC)


def to_naive_utc(dt: datetime) -> datetime:
    """Convert a datetime to a naive UTC datetime (DuckDB TIMESTAMP semantics)."""
    return ensure_utc(dt).replace(tzinfo=None)


def parse_timestamp(value: Any, default_timezone: Optional[timezone] = UTC) -> Optional[datetime]:
    """Parse timestamp from various formats using dateutil.parser.parse.

    Args:
        value: datetime, date, ISO string or YYYYMMDD integer

    Returns:
        UTC timezone-aware datetime, or None if parsing fails

    Examples:
        >>> parse_timestamp("2024-01-15")
        datetime.datetime(2024, 1, 15, 0, 0, tzinfo=datetime.timezone.utc)
        >>> parse_timestamp(20240115)
        datetime.datetime(2024, 1, 15, 0, 0, tzinfo=datetime.timezone.utc)
    """
    if value is None:
        return None

    if isinstance(value, datetime):
        return ensure_utc(value)

    if isinstance(value, date):
        return datetime(value.year, value.month, value.day, tzinfo=UTC)

    # Integer in YYYYMMDD format
    if isinstance(value, int):
        date_str = str(value)
        if len(date_str) == 8:
            try:
                parsed = datetime.strptime(date_str, "%Y%m%d")
                return parsed.replace(tzinfo=default_timezone)
            except ValueError:
                return None
        return None

    if isinstance(value, str):
        try:
            parsed = dateutil_parser.parse(value)
            if parsed.tzinfo is None:
                parsed = parsed.replace(tzinfo=default_timezone)
            return ensure_utc(parsed)
        except (ValueError, TypeError, OverflowError):
            return None

    return None


def coerce_boundary_value(value: Any, boundary_type: str) -> Any:
    """Coerce a raw value into the Python type used for a boundary column.

    DATE columns map to ``date``, TIMESTAMP columns to naive UTC ``datetime``
    and integer columns to ``int``.

    Args:
        value: Raw value (string, date, datetime or int)
        boundary_type: DuckDB type name of the partition column

    Returns:
        Coerced value

    Raises:
        ValueError: If the value cannot be interpreted for the column type
    """
    boundary_type = boundary_type.upper()

    if boundary_type in INTEGER_BOUNDARY_TYPES:
        if isinstance(value, bool):
            raise ValueError(f"Cannot use boolean {value!r} as an integer boundary")
        try:
            return int(value)
        except (TypeError, ValueError) as e:
            raise ValueError(f"Invalid integer boundary value: {value!r}") from e

    if boundary_type == "DATE":
        if isinstance(value, datetime):
            return value.date()
        if isinstance(value, date):
            return value
        parsed = parse_timestamp(value)
        if parsed is None:
            raise ValueError(f"Invalid date boundary value: {value!r}")
        return parsed.date()

    parsed = parse_timestamp(value)
    if parsed is None:
        raise ValueError(f"Invalid timestamp boundary value: {value!r}")
    return to_naive_utc(parsed)


def is_last_day_of_month(value: date) -> bool:
    """Check whether a date (or datetime) falls on the last day of its month."""
    return value.day == calendar.monthrange(value.year, value.month)[1]
