"""Epoch canonicalization and hour-bucket helpers.

Vendor callbacks carry epochs of mixed precision (seconds, milliseconds,
sometimes microseconds). The ledger stores them as 13-digit millisecond
values: anything shorter than 13 digits is right-padded with zeros, anything
at or above 13 digits is kept as-is.
"""

from datetime import datetime, timezone
from zoneinfo import ZoneInfo

CANONICAL_DIGITS = 13


def micro_timestamp(now: datetime | None = None) -> int:
    """Current time (or ``now``) as a 13-digit millisecond epoch."""
    now = now or datetime.now(timezone.utc)
    return int(now.timestamp() * 1000)


def to_micro_timestamp(value: int | str) -> int:
    """Canonicalize an epoch to at least 13 digits by right-padding zeros."""
    if isinstance(value, bool):
        raise ValueError(f"Invalid timestamp: {value!r}")
    if isinstance(value, str):
        value = value.strip()
        if not value.isdigit():
            raise ValueError(f"Invalid timestamp: {value!r}")
        value = int(value)
    if not isinstance(value, int):
        raise ValueError(f"Invalid timestamp: {value!r}")
    if value < 0:
        raise ValueError(f"Timestamp cannot be negative: {value}")
    if value == 0:
        return 0

    digits = str(value)
    if len(digits) < CANONICAL_DIGITS:
        digits = digits.ljust(CANONICAL_DIGITS, "0")
    return int(digits)


def to_datetime(value: int, tz: str | ZoneInfo = "UTC") -> datetime:
    """Convert a canonical epoch to an aware datetime in ``tz``.

    Precision beyond milliseconds is dropped.
    """
    digits = str(to_micro_timestamp(value))[:CANONICAL_DIGITS]
    zone = ZoneInfo(tz) if isinstance(tz, str) else tz
    return datetime.fromtimestamp(int(digits) / 1000, tz=timezone.utc).astimezone(zone)


def hour_start(dt: datetime) -> datetime:
    return dt.replace(minute=0, second=0, microsecond=0)


def utc_hour_bucket(dt: datetime) -> str:
    """Format the hour containing ``dt`` as ``YYYY-MM-DD HH`` in UTC."""
    return hour_start(dt.astimezone(timezone.utc)).strftime("%Y-%m-%d %H")
