"""
Scheduler - Review Orchestration

Pure scheduling for one review (no database calls).

Main workflow:
1. Normalize phase, rating and counters
2. Normalize the item's timeline against the requested instant
3. Advance the phase state machine
4. Update stability and difficulty
5. Compute the next schedule and due instant
6. Return a new item (the input is never modified)

Callers must serialize reviews of the same item and treat each result as
the new canonical value; there is no merge logic here.
"""

from __future__ import annotations

import dataclasses
import logging
from dataclasses import dataclass
from typing import Optional

from memorizer.config import DEFAULT_POLICY, SchedulerPolicy
from memorizer.fsrs import intervals, memory_updates, phases
from memorizer.fsrs.clock import Clock, SystemClock
from memorizer.fsrs.constants import (
    DIFFICULTY_MAX,
    DIFFICULTY_MEAN_REVERSION,
    DIFFICULTY_MIN,
    STABILITY_MAX,
    Rating,
)
from memorizer.fsrs.inputs import (
    clamp,
    clamp_finite,
    increment_counter,
    normalize_counter,
    normalize_phase,
    normalize_rating,
)
from memorizer.fsrs.memory_state import ReviewItem
from memorizer.fsrs.text import normalize_item_text
from memorizer.fsrs.timeline import normalize_timeline
from memorizer.fsrs.timestamps import add_days, days_between, format_iso

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReviewOutcome:
    """Updated item plus the length of its new schedule in days."""
    item: ReviewItem
    scheduled_days: float


@dataclass(frozen=True)
class IntervalPreview:
    """Next schedule length (days) for each rating, non-decreasing."""
    again: float
    hard: float
    good: float
    easy: float

    def as_dict(self) -> dict[str, float]:
        return dataclasses.asdict(self)

    def for_rating(self, rating: Rating) -> float:
        return (self.again, self.hard, self.good, self.easy)[int(rating) - 1]


def review(
    item: ReviewItem,
    rating: object,
    now: object,
    *,
    clock: Optional[Clock] = None,
    policy: SchedulerPolicy = DEFAULT_POLICY
) -> ReviewOutcome:
    """
    Apply one rating to an item.

    Args:
        item: Item to review (possibly carrying corrupted fields)
        rating: Rating value; invalid values map to a phase-safe default
        now: Requested review instant (ISO string or datetime)
        clock: Wall clock used only to sanity-check timestamps
        policy: Repair heuristics

    Returns:
        ReviewOutcome with the replacement item and its schedule length.
        Never raises for malformed item values.
    """
    clock = clock or SystemClock()

    current_phase = normalize_phase(item.phase)
    normalized_rating = normalize_rating(rating, current_phase)
    previous_reps = normalize_counter(item.reps)
    previous_lapses = normalize_counter(item.lapses)

    timeline = normalize_timeline(
        item.created_at,
        item.updated_at,
        item.due_at,
        current_phase,
        item.stability,
        now,
        clock,
        policy,
    )
    elapsed_days = clamp(days_between(timeline.updated_at, timeline.current), 0.0, STABILITY_MAX)
    previous_scheduled_days = intervals.normalize_scheduled_days(
        days_between(timeline.updated_at, timeline.due_at), current_phase
    )

    new_phase = phases.next_phase(current_phase, normalized_rating)
    lapse = phases.counts_as_lapse(current_phase, normalized_rating)

    previous_difficulty = clamp_finite(item.difficulty, DIFFICULTY_MIN, DIFFICULTY_MAX, DIFFICULTY_MEAN_REVERSION)
    previous_stability = memory_updates.effective_previous_stability(
        item.stability, previous_scheduled_days, current_phase
    )

    new_difficulty = memory_updates.next_difficulty(previous_difficulty, current_phase, normalized_rating)
    new_stability = memory_updates.update_stability(
        previous_stability,
        previous_difficulty,
        normalized_rating,
        elapsed_days,
        current_phase,
        previous_scheduled_days,
    )

    scheduled_days = intervals.next_interval_days(
        current_phase,
        new_phase,
        normalized_rating,
        previous_stability,
        previous_difficulty,
        elapsed_days,
        previous_scheduled_days,
        policy,
    )
    next_due = add_days(timeline.current, scheduled_days)
    text = normalize_item_text(item.word, item.meaning, item.notes)

    logger.debug(
        "Reviewed %s: %s -> %s (rating=%s, elapsed=%.3fd, scheduled=%.3fd)",
        item.id, current_phase.value, new_phase.value, normalized_rating.name,
        elapsed_days, scheduled_days,
    )

    updated_item = dataclasses.replace(
        item,
        word=text.word,
        meaning=text.meaning,
        notes=text.notes,
        created_at=format_iso(timeline.created_at),
        updated_at=format_iso(timeline.current),
        due_at=format_iso(next_due),
        phase=new_phase.value,
        reps=increment_counter(previous_reps),
        lapses=increment_counter(previous_lapses, 1 if lapse else 0),
        stability=new_stability,
        difficulty=new_difficulty,
    )
    return ReviewOutcome(item=updated_item, scheduled_days=scheduled_days)


def preview_intervals(
    item: ReviewItem,
    now: object,
    *,
    clock: Optional[Clock] = None,
    policy: SchedulerPolicy = DEFAULT_POLICY
) -> IntervalPreview:
    """
    Schedule lengths for all four ratings, as shown on a rating picker.

    Every rating is evaluated against the same normalized review instant,
    and the result is forced to be non-decreasing (Again <= Hard <= Good <= Easy).
    """
    clock = clock or SystemClock()
    timeline = normalize_timeline(
        item.created_at,
        item.updated_at,
        item.due_at,
        item.phase,
        item.stability,
        now,
        clock,
        policy,
    )
    current = format_iso(timeline.current)
    raw = [
        review(item, rating, current, clock=clock, policy=policy).scheduled_days
        for rating in Rating
    ]
    return IntervalPreview(*intervals.ensure_ordered_preview(*raw))
