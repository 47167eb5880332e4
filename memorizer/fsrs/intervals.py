"""
Interval Scheduler

Turns an updated memory state into the length of the next schedule (days).

- Learning and relearning steps use fixed short intervals
- First graduation into review uses a fixed 0.5 / 1 day interval
- Review intervals come from the forgetting curve, then get floored and
  capped against the previous schedule so ratings behave monotonically:
  Hard never grows much, Good/Easy never shrink when reviewed on time
"""

from __future__ import annotations

import math

from memorizer.config import DEFAULT_POLICY, SchedulerPolicy
from memorizer.fsrs.constants import (
    DESIRED_RETENTION,
    DESIRED_RETENTION_RANGE,
    EARLY_GOOD_FLOOR_SHARE,
    FSRS_DECAY,
    FSRS_FACTOR,
    GRADUATION_INTERVAL_DAYS,
    HARD_LATE_GROWTH_CAP,
    INITIAL_STABILITY,
    LEARNING_INTERVAL_DAYS,
    LEARNING_MAX_SCHEDULE_DAYS,
    LEARNING_SCHEDULE_FLOOR_DAYS,
    MINUTE_IN_DAYS,
    RELEARNING_INTERVAL_DAYS,
    RELEARNING_MAX_SCHEDULE_DAYS,
    RELEARNING_SCHEDULE_FLOOR_DAYS,
    REVIEW_RATING_SCALE,
    REVIEW_SCHEDULE_FLOOR_DAYS,
    REVIEW_TIMING_RATIO_RANGE,
    STABILITY_MAX,
    STABILITY_MIN,
    TIMING_SCALE_RANGE,
    Phase,
    Rating,
)
from memorizer.fsrs.inputs import clamp, clamp_finite, finite_or_none
from memorizer.fsrs.memory_updates import update_stability


# ---- Phase windows ----

def schedule_floor_for_phase(phase: Phase) -> float:
    if phase is Phase.REVIEW:
        return REVIEW_SCHEDULE_FLOOR_DAYS
    if phase is Phase.RELEARNING:
        return RELEARNING_SCHEDULE_FLOOR_DAYS
    return LEARNING_SCHEDULE_FLOOR_DAYS


def schedule_cap_for_phase(phase: Phase) -> float:
    if phase is Phase.RELEARNING:
        return RELEARNING_MAX_SCHEDULE_DAYS
    if phase is Phase.LEARNING:
        return LEARNING_MAX_SCHEDULE_DAYS
    return STABILITY_MAX


def normalize_scheduled_days(value: float, phase: Phase) -> float:
    """
    Clamp a schedule length into the window of a phase.

    Returns:
        The phase cap for +inf, the phase floor for invalid or non-positive
        values, otherwise value clamped into [floor, cap]
    """
    if value == math.inf:
        return schedule_cap_for_phase(phase)
    number = finite_or_none(value)
    if number is None or number <= 0:
        return schedule_floor_for_phase(phase)
    normalized = clamp(number, MINUTE_IN_DAYS, STABILITY_MAX)
    return clamp(normalized, schedule_floor_for_phase(phase), schedule_cap_for_phase(phase))


# ---- Fixed steps ----

def learning_interval_days(rating: Rating) -> float:
    return LEARNING_INTERVAL_DAYS[rating]


def relearning_interval_days(rating: Rating) -> float:
    return RELEARNING_INTERVAL_DAYS[rating]


def graduation_interval_days(rating: Rating) -> float:
    return GRADUATION_INTERVAL_DAYS.get(rating, GRADUATION_INTERVAL_DAYS[Rating.GOOD])


# ---- Review intervals ----

def interval_from_stability(stability: float, desired_retention: float) -> float:
    """
    Days until retrievability decays to desired_retention.

    Formula: I = (S / FACTOR) * (retention ^ (1 / DECAY) - 1)

    Returns:
        Interval in [0.5, 36500] days
    """
    s = clamp_finite(stability, STABILITY_MIN, STABILITY_MAX, INITIAL_STABILITY)
    retention = clamp(desired_retention, *DESIRED_RETENTION_RANGE)
    interval = (s / FSRS_FACTOR) * (retention ** (1 / FSRS_DECAY) - 1)
    return clamp(interval, REVIEW_SCHEDULE_FLOOR_DAYS, STABILITY_MAX)


def _round_half_up(value: float) -> float:
    return float(math.floor(value + 0.5))


def quantize_review_interval(interval_days: float, scheduled_days: float, policy: SchedulerPolicy = DEFAULT_POLICY) -> float:
    """
    Round a review interval to the granularity of the current schedule.

    Day-scale schedules round to whole days (minimum 1); sub-day schedules
    round to half days (minimum 0.5). A schedule within the jitter tolerance
    of one day counts as day-scale.
    """
    scheduled = finite_or_none(scheduled_days)
    scheduled = clamp(scheduled, MINUTE_IN_DAYS, STABILITY_MAX) if scheduled is not None else REVIEW_SCHEDULE_FLOOR_DAYS
    interval = finite_or_none(interval_days)
    if interval is None:
        interval = scheduled

    if scheduled + policy.jitter_tolerance_days >= 1:
        return clamp(_round_half_up(interval), 1.0, STABILITY_MAX)
    return clamp(_round_half_up(interval * 2) / 2, REVIEW_SCHEDULE_FLOOR_DAYS, STABILITY_MAX)


def day_scale_schedule_floor(scheduled_days: float, policy: SchedulerPolicy = DEFAULT_POLICY) -> float:
    """Whole-day floor for a day-scale schedule; fractional schedules round up."""
    scheduled = finite_or_none(scheduled_days)
    if scheduled is None:
        return 1.0
    return float(max(1, math.ceil(scheduled - policy.jitter_tolerance_days)))


def review_interval_days(
    next_stability: float,
    rating: Rating,
    elapsed_days: float,
    scheduled_days: float,
    phase: Phase,
    policy: SchedulerPolicy = DEFAULT_POLICY
) -> float:
    """
    Next schedule for a successful review (Hard/Good/Easy).

    The forgetting-curve interval is scaled by rating (Hard 0.85, Easy 1.15)
    and by timing (later reviews earn somewhat longer intervals), then
    bounded against the previous schedule:

    - Hard: never above the previous schedule when on time, at most 1.2x
      when late, at most the previous schedule when early
    - Good: never below the previous schedule when on time or late, never
      below half of it when early
    - Easy: never below the previous schedule

    Args:
        next_stability: Stability after this review
        rating: HARD, GOOD or EASY
        elapsed_days: Days since the previous review
        scheduled_days: Length of the previous schedule
        phase: Phase the item was in when reviewed
        policy: Jitter tolerance used for on-time detection

    Returns:
        Quantized interval in days
    """
    tolerance = policy.jitter_tolerance_days
    base_interval = interval_from_stability(next_stability, DESIRED_RETENTION[rating])
    elapsed = max(0.0, finite_or_none(elapsed_days) or 0.0)
    scheduled = finite_or_none(scheduled_days)
    scheduled = max(scheduled, MINUTE_IN_DAYS) if scheduled is not None else 1.0
    day_scale = scheduled + tolerance >= 1
    quantized_scheduled = quantize_review_interval(scheduled, scheduled, policy)

    ratio = clamp(elapsed / scheduled, *REVIEW_TIMING_RATIO_RANGE)
    timing_scale = clamp(0.75 + ratio * 0.25, *TIMING_SCALE_RANGE) if phase is Phase.REVIEW else 1.0
    raw_interval = quantize_review_interval(
        base_interval * REVIEW_RATING_SCALE[rating] * timing_scale, scheduled, policy
    )

    # Minute-level drift on a 1-day schedule must not bump the floor to 2 days
    schedule_floor = (
        day_scale_schedule_floor(scheduled, policy)
        if day_scale
        else max(REVIEW_SCHEDULE_FLOOR_DAYS, quantized_scheduled)
    )
    in_review = phase is Phase.REVIEW
    on_time_or_late = elapsed + tolerance >= scheduled

    floor = schedule_floor if rating == Rating.EASY else REVIEW_SCHEDULE_FLOOR_DAYS
    if in_review and rating in (Rating.HARD, Rating.GOOD) and on_time_or_late:
        floor = max(floor, schedule_floor)
    if in_review and rating == Rating.HARD and not day_scale and elapsed + tolerance >= 1:
        # A sub-day card already a day late should leave the 12-hour loop
        floor = max(floor, 1.0)

    floored = quantize_review_interval(max(raw_interval, floor), scheduled, policy)

    if in_review and rating == Rating.HARD:
        reviewed_early = not on_time_or_late
        reviewed_on_time = on_time_or_late and elapsed <= scheduled + tolerance
        if reviewed_early:
            cap = float(max(1, math.floor(scheduled))) if day_scale else REVIEW_SCHEDULE_FLOOR_DAYS
        elif reviewed_on_time:
            cap = schedule_floor
        elif day_scale:
            cap = float(max(1, math.ceil(scheduled * HARD_LATE_GROWTH_CAP)))
        else:
            overdue_sub_day_cap = 1.0 if elapsed + tolerance >= 1 else REVIEW_SCHEDULE_FLOOR_DAYS
            cap = max(overdue_sub_day_cap, quantized_scheduled)
        return quantize_review_interval(min(floored, cap), scheduled, policy)

    if in_review and rating == Rating.GOOD and not on_time_or_late:
        early_floor = (
            float(max(1, math.floor(scheduled * EARLY_GOOD_FLOOR_SHARE)))
            if day_scale
            else REVIEW_SCHEDULE_FLOOR_DAYS
        )
        return quantize_review_interval(max(floored, early_floor), scheduled, policy)

    return quantize_review_interval(floored, scheduled, policy)


def ordered_review_intervals(
    stability: float,
    difficulty: float,
    elapsed_days: float,
    scheduled_days: float,
    phase: Phase,
    policy: SchedulerPolicy = DEFAULT_POLICY
) -> dict[Rating, float]:
    """
    Review intervals for Hard, Good and Easy, guaranteed Hard <= Good <= Easy.
    """
    intervals = {}
    for rating in (Rating.HARD, Rating.GOOD, Rating.EASY):
        next_stability = update_stability(stability, difficulty, rating, elapsed_days, phase, scheduled_days)
        intervals[rating] = review_interval_days(next_stability, rating, elapsed_days, scheduled_days, phase, policy)

    hard = intervals[Rating.HARD]
    good = clamp(max(intervals[Rating.GOOD], hard), REVIEW_SCHEDULE_FLOOR_DAYS, STABILITY_MAX)
    easy = clamp(max(intervals[Rating.EASY], good), REVIEW_SCHEDULE_FLOOR_DAYS, STABILITY_MAX)
    return {Rating.HARD: hard, Rating.GOOD: good, Rating.EASY: easy}


def next_interval_days(
    current_phase: Phase,
    new_phase: Phase,
    rating: Rating,
    stability: float,
    difficulty: float,
    elapsed_days: float,
    scheduled_days: float,
    policy: SchedulerPolicy = DEFAULT_POLICY
) -> float:
    """
    Schedule length for a phase transition, clamped to the new phase window.

    Args:
        current_phase: Phase before the review
        new_phase: Phase after the review
        rating: Normalized rating
        stability: Effective previous stability
        difficulty: Previous difficulty
        elapsed_days: Days since the previous review
        scheduled_days: Length of the previous schedule
        policy: Scheduler policy

    Returns:
        Next schedule length in days
    """
    if new_phase is Phase.LEARNING:
        days = learning_interval_days(rating)
    elif new_phase is Phase.RELEARNING:
        days = relearning_interval_days(rating)
    elif current_phase is not Phase.REVIEW:
        days = graduation_interval_days(rating)
    else:
        review_rating = rating if rating != Rating.AGAIN else Rating.HARD
        intervals = ordered_review_intervals(stability, difficulty, elapsed_days, scheduled_days, current_phase, policy)
        days = intervals[review_rating]
    return normalize_scheduled_days(days, new_phase)


def ensure_ordered_preview(again: float, hard: float, good: float, easy: float) -> tuple[float, float, float, float]:
    """
    Running maximum over the four preview intervals.

    Masks residual numerical noise so a picker never shows a shorter
    interval for a better rating.
    """
    again = clamp_finite(again, MINUTE_IN_DAYS, STABILITY_MAX, MINUTE_IN_DAYS)
    hard = max(clamp_finite(hard, MINUTE_IN_DAYS, STABILITY_MAX, again), again)
    good = max(clamp_finite(good, MINUTE_IN_DAYS, STABILITY_MAX, hard), hard)
    easy = max(clamp_finite(easy, MINUTE_IN_DAYS, STABILITY_MAX, good), good)
    return again, hard, good, easy
