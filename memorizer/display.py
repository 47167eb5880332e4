"""
Display labels for schedules, due instants and counters.

Pure formatting; every function accepts corrupted input and returns a
printable label.
"""

from __future__ import annotations

import math
import re
from typing import NamedTuple

from memorizer.fsrs.constants import HOUR_IN_DAYS, MINUTE_IN_DAYS
from memorizer.fsrs.timestamps import parse_iso, to_millis


WEEK_IN_DAYS = 7
MONTH_IN_DAYS = 30
YEAR_IN_DAYS = 365

MINUTE_MS = 60 * 1000
HOUR_MS = 60 * MINUTE_MS
DAY_MS = 24 * HOUR_MS
NOW_THRESHOLD_MS = MINUTE_MS

COUNTER_TEXT_RE = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")


class DueUrgency(NamedTuple):
    label: str
    tone: str  # primary, danger, warn or success


def _round_half_up(value: float) -> int:
    return math.floor(value + 0.5)


def format_interval_label(days: float) -> str:
    """
    Compact schedule length: <1m, 12m, 5h, 3d, 2w, 4mo, 1y.
    """
    if isinstance(days, bool) or not isinstance(days, (int, float)) or not math.isfinite(days):
        return "<1m"
    if days < MINUTE_IN_DAYS:
        return "<1m"
    if days < HOUR_IN_DAYS:
        return f"{max(1, _round_half_up(days * 1440))}m"
    if days < 1:
        return f"{max(1, _round_half_up(days * 24))}h"
    if days < WEEK_IN_DAYS:
        return f"{max(1, math.floor(days))}d"
    if days < 60:
        return f"{max(1, math.floor(days / WEEK_IN_DAYS))}w"
    if days >= YEAR_IN_DAYS - 1:
        return f"{max(1, math.floor(days / YEAR_IN_DAYS))}y"
    return f"{max(1, math.floor(days / MONTH_IN_DAYS))}mo"


def format_due_label(due_at: object, now: object) -> str:
    """
    Relative due label: "Due now" within a minute either way, otherwise
    "Overdue 5m" / "Overdue 3h" / "Overdue 2d" or "Due in 5m" / "Due in 3h" /
    "Due in 2d".
    """
    due = parse_iso(due_at)
    current = parse_iso(now)
    if due is None or current is None:
        return "Due date unavailable"

    delta_ms = to_millis(due) - to_millis(current)
    overdue_ms = abs(delta_ms)
    if overdue_ms <= NOW_THRESHOLD_MS:
        return "Due now"
    if delta_ms < 0:
        if overdue_ms < HOUR_MS:
            return f"Overdue {max(1, overdue_ms // MINUTE_MS)}m"
        if overdue_ms < DAY_MS:
            return f"Overdue {max(1, overdue_ms // HOUR_MS)}h"
        return f"Overdue {max(1, overdue_ms // DAY_MS)}d"
    if delta_ms < HOUR_MS:
        return f"Due in {math.ceil(delta_ms / MINUTE_MS)}m"
    if delta_ms < DAY_MS:
        return f"Due in {math.ceil(delta_ms / HOUR_MS)}h"
    return f"Due in {math.ceil(delta_ms / DAY_MS)}d"


def due_urgency(due_at: object, now: object, needs_repair: bool = False) -> DueUrgency:
    """Due label plus a tone name for highlighting."""
    due = parse_iso(due_at)
    current = parse_iso(now)
    if needs_repair or due is None or current is None:
        return DueUrgency("Needs repair", "warn")

    label = format_due_label(due_at, now)
    delta_ms = to_millis(due) - to_millis(current)
    if abs(delta_ms) <= NOW_THRESHOLD_MS:
        return DueUrgency(label, "primary")
    if delta_ms < 0:
        return DueUrgency(label, "danger")
    if delta_ms <= HOUR_MS:
        return DueUrgency(label, "warn")
    return DueUrgency(label, "success")


def queue_load_status_label(percent: float, repair_count: int, total: int) -> str:
    """Queue pressure: Repair needed, Clear, Light, Moderate or Heavy."""
    if repair_count > 0:
        return "Repair needed"
    if total <= 0:
        return "Clear"
    if percent >= 80:
        return "Heavy"
    if percent >= 50:
        return "Moderate"
    if percent > 0:
        return "Light"
    return "Clear"


def format_counter(value: object) -> str:
    """
    Counter with thousands separators, e.g. 12,345.

    Returns "--" for anything that is not a finite non-negative number.
    """
    if isinstance(value, bool):
        return "--"
    if isinstance(value, str):
        trimmed = value.strip()
        if not COUNTER_TEXT_RE.fullmatch(trimmed):
            return "--"
        value = float(trimmed)
    if isinstance(value, float):
        if not math.isfinite(value):
            return "--"
        value = math.floor(value)
    if not isinstance(value, int) or value < 0:
        return "--"
    return f"{value:,}"
