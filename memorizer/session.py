"""
Review session helpers.

Queue ordering, merging a freshly loaded deck into in-memory state, and
choosing the instant a review is recorded at. These sit between a UI (or
the CLI) and the scheduler; none of them touch storage.
"""

from __future__ import annotations

import logging
import math
from datetime import datetime
from typing import Optional

from memorizer.config import DEFAULT_POLICY, SchedulerPolicy
from memorizer.fsrs.clock import Clock, SystemClock, read_wall_clock
from memorizer.fsrs.memory_state import ReviewItem
from memorizer.fsrs.scheduler import review
from memorizer.fsrs.timestamps import format_iso, is_due, parse_iso, to_millis

logger = logging.getLogger(__name__)


def _time_or(value: object, fallback: float) -> float:
    parsed = parse_iso(value)
    return to_millis(parsed) if parsed is not None else fallback


# ---- Queue order ----

def compare_due_key(item: ReviewItem) -> tuple[float, float, float, str]:
    """
    Sort key for the review queue.

    Earliest due first, then earliest updated, then earliest created, then
    id. Invalid timestamps sort last.
    """
    return (
        _time_or(item.due_at, math.inf),
        _time_or(item.updated_at, math.inf),
        _time_or(item.created_at, math.inf),
        item.id,
    )


def due_items(items: list[ReviewItem], now: object) -> list[ReviewItem]:
    """Items due at now, in queue order."""
    return sorted((item for item in items if is_due(item.due_at, now)), key=compare_due_key)


def has_due_item(items: list[ReviewItem], item_id: str, now: object) -> bool:
    return any(item.id == item_id and is_due(item.due_at, now) for item in items)


# ---- Merging ----

def _pick_freshest(existing: ReviewItem, loaded: ReviewItem) -> ReviewItem:
    keys = (
        (_time_or(existing.updated_at, -math.inf), _time_or(loaded.updated_at, -math.inf)),
        (_time_or(existing.due_at, -math.inf), _time_or(loaded.due_at, -math.inf)),
        (existing.reps, loaded.reps),
        (existing.lapses, loaded.lapses),
    )
    for existing_key, loaded_key in keys:
        if loaded_key > existing_key:
            return loaded
        if loaded_key < existing_key:
            return existing
    return existing


def merge_deck_items(existing: list[ReviewItem], loaded: list[ReviewItem]) -> list[ReviewItem]:
    """
    Merge a loaded deck into the in-memory one.

    Items present in both keep the fresher copy (later updated_at, then
    later due_at, more reps, more lapses) at the in-memory position; items
    only in the loaded deck are appended in load order.
    """
    if not existing:
        return list(loaded)
    if not loaded:
        return list(existing)

    loaded_by_id = {item.id: item for item in loaded}
    merged = []
    for item in existing:
        incoming = loaded_by_id.pop(item.id, None)
        merged.append(item if incoming is None else _pick_freshest(item, incoming))
    merged.extend(loaded_by_id.values())
    return merged


def select_latest_reviewed_at(current: Optional[str], incoming: Optional[str]) -> Optional[str]:
    """The later of two review instants; invalid values are ignored."""
    current_valid = current if parse_iso(current) is not None else None
    incoming_valid = incoming if parse_iso(incoming) is not None else None
    if _time_or(incoming_valid, -math.inf) > _time_or(current_valid, -math.inf):
        return incoming_valid
    return current_valid


# ---- Reviewing ----

def apply_due_review(
    items: list[ReviewItem],
    item_id: str,
    rating: object,
    now: object,
    *,
    clock: Optional[Clock] = None,
    policy: SchedulerPolicy = DEFAULT_POLICY
) -> tuple[list[ReviewItem], bool]:
    """
    Review an item only if it is currently due.

    Returns:
        (items, reviewed): a new list with the reviewed item replaced in
        place, or the original list and False when no such due item exists
    """
    for index, item in enumerate(items):
        if item.id == item_id and is_due(item.due_at, now):
            outcome = review(item, rating, now, clock=clock, policy=policy)
            updated = list(items)
            updated[index] = outcome.item
            return updated, True

    logger.debug("No due item %s at %s; review skipped", item_id, now)
    return items, False


def resolve_review_clock(
    rendered: object,
    runtime: object,
    *,
    clock: Optional[Clock] = None,
    policy: SchedulerPolicy = DEFAULT_POLICY
) -> str:
    """
    Choose the instant a review submitted from a UI is recorded at.

    Args:
        rendered: Instant the UI was showing when the rating was given
        runtime: Instant read when the rating arrived
        clock: Wall clock used to reject pathologically skewed values
        policy: Skew tolerance and jitter tolerance

    Returns:
        Canonical ISO timestamp. A value counts as usable when it is valid
        and within the skew tolerance of the wall clock. With two usable
        values the runtime instant wins unless it trails the rendered one by
        no more than the jitter tolerance (the clock ticked backwards), in
        which case the rendered instant is kept. With one usable value it
        wins; with none the wall clock is used.
    """
    wall = read_wall_clock(clock or SystemClock())

    def usable(value: object) -> Optional[datetime]:
        parsed = parse_iso(value)
        if parsed is None or abs(parsed - wall) > policy.clock_skew:
            return None
        return parsed

    rendered_at = usable(rendered)
    runtime_at = usable(runtime)

    if rendered_at is not None and runtime_at is not None:
        lag_days = (rendered_at - runtime_at).total_seconds() / 86400
        if 0 < lag_days <= policy.jitter_tolerance_days:
            return format_iso(rendered_at)
        return format_iso(runtime_at)
    if runtime_at is not None:
        return format_iso(runtime_at)
    if rendered_at is not None:
        return format_iso(rendered_at)
    return format_iso(wall)
