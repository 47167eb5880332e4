"""
ISO-8601 timestamp helpers.

Persisted timestamps are canonical when they survive a parse/format round trip
with millisecond precision and a Z suffix, e.g. 2024-03-01T08:30:00.000Z.
All helpers accept possibly-invalid input and never raise.
"""

from __future__ import annotations

import math
import re
from datetime import datetime, timedelta, timezone
from typing import Optional, Union


DAY_MS = 24 * 60 * 60 * 1000

MIN_INSTANT = datetime.min.replace(tzinfo=timezone.utc)
MAX_INSTANT = datetime.max.replace(microsecond=999000, tzinfo=timezone.utc)

ISO_DATE_TIME_RE = re.compile(
    r"(\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2})(?:\.(\d+))?([Zz]|[+-]\d{2}:\d{2})"
)

InstantLike = Union[datetime, str]


def _truncate_to_millis(instant: datetime) -> datetime:
    return instant.replace(microsecond=(instant.microsecond // 1000) * 1000)


def parse_iso(value: object) -> Optional[datetime]:
    """
    Parse an ISO-8601 instant into an aware UTC datetime.

    Accepts strings of the form YYYY-MM-DDTHH:MM:SS[.fraction](Z|+HH:MM) that
    name a real calendar date, and datetimes (naive ones are taken as UTC).

    Returns:
        UTC datetime truncated to milliseconds, or None if the value is unusable
    """
    if isinstance(value, datetime):
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        try:
            return _truncate_to_millis(value.astimezone(timezone.utc))
        except (ValueError, OverflowError):
            return None

    if not isinstance(value, str):
        return None

    match = ISO_DATE_TIME_RE.fullmatch(value)
    if match is None:
        return None

    base, fraction, zone = match.groups()
    micros = (fraction or "")[:6].ljust(6, "0")
    offset = "+00:00" if zone in ("Z", "z") else zone

    try:
        parsed = datetime.fromisoformat(f"{base}.{micros}{offset}")
        return _truncate_to_millis(parsed.astimezone(timezone.utc))
    except (ValueError, OverflowError):
        return None


def format_iso(instant: datetime) -> str:
    """Format an aware datetime as a canonical UTC ISO-8601 string."""
    utc = instant.astimezone(timezone.utc)
    return (
        f"{utc.year:04d}-{utc.month:02d}-{utc.day:02d}"
        f"T{utc.hour:02d}:{utc.minute:02d}:{utc.second:02d}"
        f".{utc.microsecond // 1000:03d}Z"
    )


def canonical_iso(value: object) -> Optional[str]:
    """Canonical form of a valid timestamp, or None."""
    parsed = parse_iso(value)
    return format_iso(parsed) if parsed is not None else None


def is_valid_iso(value: object) -> bool:
    return parse_iso(value) is not None


def to_millis(instant: datetime) -> int:
    """Milliseconds since the Unix epoch."""
    delta = instant - datetime(1970, 1, 1, tzinfo=timezone.utc)
    return (delta.days * 86400 + delta.seconds) * 1000 + delta.microseconds // 1000


def add_days(instant: datetime, days: float) -> datetime:
    """
    Shift an instant by a (fractional) number of days.

    The offset is rounded to whole milliseconds; results outside the
    representable datetime range saturate at MIN_INSTANT / MAX_INSTANT.
    """
    safe_days = days if isinstance(days, (int, float)) and math.isfinite(days) else 0.0
    delta_ms = round(safe_days * DAY_MS)
    try:
        return instant + timedelta(milliseconds=delta_ms)
    except OverflowError:
        return MAX_INSTANT if delta_ms > 0 else MIN_INSTANT


def signed_days(start: datetime, end: datetime) -> float:
    """Fractional days from start to end (negative when end is earlier)."""
    return (end - start).total_seconds() / 86400


def days_between(start: object, end: object) -> float:
    """
    Non-negative fractional days between two instants.

    Returns:
        0 when either side is invalid or end is before start
    """
    start_dt = parse_iso(start)
    end_dt = parse_iso(end)
    if start_dt is None or end_dt is None:
        return 0.0
    return max(0.0, signed_days(start_dt, end_dt))


def is_due(due_at: object, now: object) -> bool:
    """True when due_at is at or before now; False if either is invalid."""
    due = parse_iso(due_at)
    current = parse_iso(now)
    if due is None or current is None:
        return False
    return due <= current
