"""
Timeline Normalizer

Resolves a trustworthy (created_at, current, updated_at, due_at) tuple from
an item's persisted timestamps and a requested review instant.

Records travel between devices with unsynchronized clocks and may be edited
by hand, so any timestamp can be missing, unparseable, far in the future or
implausibly old. The wall clock is consulted only to recognise such values;
it replaces a requested instant only when that instant is unusable.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from memorizer.config import DEFAULT_POLICY, SchedulerPolicy
from memorizer.fsrs.clock import Clock, read_wall_clock
from memorizer.fsrs.constants import (
    REVIEW_INVALID_DUE_STABILITY_FALLBACK_MAX_DAYS,
    REVIEW_SCHEDULE_FLOOR_DAYS,
    STABILITY_MAX,
    Phase,
)
from memorizer.fsrs.inputs import clamp, normalize_phase
from memorizer.fsrs.intervals import (
    normalize_scheduled_days,
    schedule_cap_for_phase,
    schedule_floor_for_phase,
)
from memorizer.fsrs.timestamps import add_days, parse_iso, signed_days

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Timeline:
    """Normalized instants for one review. Always created_at <= current and updated_at <= due_at."""
    created_at: datetime
    current: datetime
    updated_at: datetime
    due_at: datetime


def _first_valid(*candidates: Optional[datetime]) -> Optional[datetime]:
    for candidate in candidates:
        if candidate is not None:
            return candidate
    return None


def resolve_created_at(
    created_raw: Optional[datetime],
    updated_raw: Optional[datetime],
    due_raw: Optional[datetime],
    wall: datetime,
    policy: SchedulerPolicy = DEFAULT_POLICY
) -> datetime:
    """
    Pick the creation instant.

    Falls back from created_at to updated_at to a plausible due_at to the
    wall clock, then clamps it so it is never more than the skew tolerance
    after the earliest known anchor.
    """
    due_anchor = due_raw if due_raw is not None and abs(due_raw - wall) <= policy.plausibility_window else None
    created = _first_valid(created_raw, updated_raw, due_anchor, wall)

    earliest = min(anchor for anchor in (updated_raw, due_raw, wall) if anchor is not None)
    if created - earliest > policy.clock_skew:
        logger.debug("created_at %s ahead of earliest anchor %s; clamped", created, earliest)
        created = earliest
    return created


def resolve_due_at(
    due_raw: Optional[datetime],
    updated_at: datetime,
    phase: Phase,
    stability: float,
    policy: SchedulerPolicy = DEFAULT_POLICY
) -> datetime:
    """
    Validate the persisted due instant against the phase window.

    A due instant is repaired when it is missing, not strictly after
    updated_at, below the review floor, beyond the phase cap, or beyond the
    review outlier window max(0.5, stability * 12, 120) days. The outlier
    window scales with the item's own stability so long proven intervals
    are not mistaken for corruption.

    Repairs: review items get clamp(stability, 0.5, 7) days; learning and
    relearning items get their phase floor.
    """
    expected_review_days = normalize_scheduled_days(stability, Phase.REVIEW)

    if due_raw is None:
        needs_repair = True
    else:
        due_days = signed_days(updated_at, due_raw)
        if phase is Phase.REVIEW:
            outlier_window = max(
                REVIEW_SCHEDULE_FLOOR_DAYS,
                expected_review_days * policy.review_outlier_multiplier,
                policy.review_outlier_floor_days,
            )
            needs_repair = (
                due_days <= 0
                or due_days < REVIEW_SCHEDULE_FLOOR_DAYS
                or due_days > STABILITY_MAX
                or due_days > outlier_window
            )
        else:
            needs_repair = due_days <= 0 or due_days > schedule_cap_for_phase(phase)

    if not needs_repair:
        return due_raw

    if phase is Phase.REVIEW:
        repair_days = clamp(
            expected_review_days,
            REVIEW_SCHEDULE_FLOOR_DAYS,
            REVIEW_INVALID_DUE_STABILITY_FALLBACK_MAX_DAYS,
        )
    else:
        repair_days = schedule_floor_for_phase(phase)
    logger.debug("Repairing due_at %s for %s item: +%.4f days", due_raw, phase.value, repair_days)
    return max(add_days(updated_at, repair_days), updated_at)


def resolve_review_instant(
    updated_at: datetime,
    requested: Optional[datetime],
    wall: datetime,
    policy: SchedulerPolicy = DEFAULT_POLICY
) -> datetime:
    """
    Choose the instant a review happens at.

    The requested instant wins unless it is missing, more than the skew
    tolerance ahead of the wall clock, or implausibly far in the past. In
    those cases updated_at is used, or the wall clock when updated_at is
    itself corrupted. A requested instant slightly before updated_at (clock
    drift) resolves to updated_at so elapsed time never goes negative.
    """
    skew = policy.clock_skew
    window = policy.plausibility_window
    updated_in_future = updated_at - wall > skew
    updated_implausible = abs(updated_at - wall) > window

    if requested is None:
        if updated_in_future or updated_implausible:
            return wall
        return updated_at

    if requested - wall > skew:
        return wall if updated_in_future else updated_at

    if wall - requested > window:
        return wall if updated_implausible else updated_at

    if requested < updated_at:
        if updated_at - requested <= skew:
            return updated_at
        # Only roll back when updated_at itself looks corrupted into the future
        if updated_in_future:
            if wall - requested > skew:
                return wall
            return requested
        return updated_at

    return requested


def normalize_timeline(
    created_at: object,
    updated_at: object,
    due_at: object,
    phase: object,
    stability: float,
    requested_now: object,
    clock: Clock,
    policy: SchedulerPolicy = DEFAULT_POLICY
) -> Timeline:
    """
    Resolve a safe timeline for one review; never raises.

    Args:
        created_at: Persisted creation timestamp (possibly invalid)
        updated_at: Persisted last-review timestamp (possibly invalid)
        due_at: Persisted due timestamp (possibly invalid)
        phase: Persisted phase (possibly invalid)
        stability: Persisted stability, used to judge review due instants
        requested_now: Requested review instant (ISO string or datetime)
        clock: Wall clock used as a plausibility oracle
        policy: Repair heuristics

    Returns:
        Timeline with created_at <= updated_at <= due_at and
        created_at <= current
    """
    wall = read_wall_clock(clock)
    created_raw = parse_iso(created_at)
    updated_raw = parse_iso(updated_at)
    due_raw = parse_iso(due_at)
    normalized_phase = normalize_phase(phase)

    created = resolve_created_at(created_raw, updated_raw, due_raw, wall, policy)
    updated = updated_raw if updated_raw is not None else created
    if created > updated:
        created = updated

    due = resolve_due_at(due_raw, updated, normalized_phase, stability, policy)

    resolved = resolve_review_instant(updated, parse_iso(requested_now), wall, policy)
    updated_in_future = updated - wall > policy.clock_skew
    wants_rollback = updated - resolved > policy.clock_skew
    if updated_in_future and wants_rollback:
        logger.debug("updated_at %s is future-corrupted; review rolled back to %s", updated, resolved)
        current = resolved
    else:
        current = max(resolved, updated)

    if created > current:
        created = current

    return Timeline(created_at=created, current=current, updated_at=updated, due_at=due)
