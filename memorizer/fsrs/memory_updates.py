"""
Memory Model Updates

Implements stability and difficulty updates for a single review.

Key principles:
- Items without an established history restart from a fixed stability seed
- Spaced, on-time or late success produces the largest stability gains
- Failures shrink stability more for easy items and for very late reviews
- Short learning retries never harden an item's long-term difficulty

All functions accept possibly-corrupted inputs and return finite values
clamped to the documented bounds.
"""

from __future__ import annotations

from memorizer.fsrs.constants import (
    DIFFICULTY_MAX,
    DIFFICULTY_MEAN_REVERSION,
    DIFFICULTY_MIN,
    DIFFICULTY_RATING_SHIFT,
    DIFFICULTY_REVERSION_RATE,
    FORGET_PENALTY_BASE,
    FORGET_PENALTY_DIFFICULTY_WEIGHT,
    FSRS_DECAY,
    FSRS_FACTOR,
    INITIAL_STABILITY,
    LEARNING_STABILITY_SEED,
    MINUTE_IN_DAYS,
    OVERDUE_FAILURE_PENALTY_RATE,
    RECALL_GAIN,
    RECALL_MIN_STEP,
    RELEARNING_TIMING_RATIO_RANGE,
    REVIEW_TIMING_RATIO_RANGE,
    SCHEDULE_ANCHORED_STABILITY_SHARE,
    STABILITY_MAX,
    STABILITY_MIN,
    Phase,
    Rating,
)
from memorizer.fsrs.inputs import clamp, clamp_finite, finite_or_none


def retrievability(elapsed_days: float, stability: float) -> float:
    """
    Estimated recall probability after elapsed_days.

    Formula: R = (1 + FACTOR * t / S) ^ DECAY

    With FACTOR = 19/81 and DECAY = -0.5, R equals 0.9 exactly when t = S.

    Args:
        elapsed_days: Time since the last review, in days
        stability: Current stability, in days

    Returns:
        Retrievability between 0 and 1
    """
    s = clamp_finite(stability, STABILITY_MIN, STABILITY_MAX, INITIAL_STABILITY)
    elapsed = max(0.0, finite_or_none(elapsed_days) or 0.0)
    try:
        return (1 + FSRS_FACTOR * elapsed / s) ** FSRS_DECAY
    except (ZeroDivisionError, OverflowError):
        return 0.0


def update_difficulty(difficulty: float, rating: Rating) -> float:
    """
    Shift difficulty by rating, with mean reversion toward 5.

    Formula:
        D_new = clip(D + shift(rating) + 0.08 * (5 - D), 1, 10)

    Where shift is -0.45 (Easy), -0.1 (Good), +0.15 (Hard), +0.6 (Again).
    """
    previous = clamp_finite(difficulty, DIFFICULTY_MIN, DIFFICULTY_MAX, DIFFICULTY_MEAN_REVERSION)
    reversion = (DIFFICULTY_MEAN_REVERSION - previous) * DIFFICULTY_REVERSION_RATE
    return clamp(previous + DIFFICULTY_RATING_SHIFT[rating] + reversion, DIFFICULTY_MIN, DIFFICULTY_MAX)


def next_difficulty(difficulty: float, phase: Phase, rating: Rating) -> float:
    """Difficulty after a review; Hard/Again outside review leaves it unchanged."""
    if phase is not Phase.REVIEW and rating <= Rating.HARD:
        return clamp_finite(difficulty, DIFFICULTY_MIN, DIFFICULTY_MAX, DIFFICULTY_MEAN_REVERSION)
    return update_difficulty(difficulty, rating)


def _stability_fallback(scheduled_days: float, phase: Phase) -> float:
    if phase is Phase.LEARNING:
        return INITIAL_STABILITY
    return clamp_finite(scheduled_days, STABILITY_MIN, STABILITY_MAX, INITIAL_STABILITY)


def effective_previous_stability(stability: float, scheduled_days: float, phase: Phase) -> float:
    """
    Stability to feed into the update, anchored to the current schedule.

    A persisted stability far below an established review schedule is most
    likely corrupted; it is raised to 60% of that schedule so one bad value
    cannot collapse the item on its next review.
    """
    fallback = _stability_fallback(scheduled_days, phase)
    normalized = clamp_finite(stability, STABILITY_MIN, STABILITY_MAX, fallback)
    if phase is Phase.LEARNING:
        return normalized

    anchor = clamp_finite(scheduled_days, STABILITY_MIN, STABILITY_MAX, fallback)
    floor = clamp(anchor * SCHEDULE_ANCHORED_STABILITY_SHARE, STABILITY_MIN, STABILITY_MAX)
    return max(normalized, floor)


def timing_ratio(elapsed_days: float, scheduled_days: float, phase: Phase) -> float:
    """How late (> 1) or early (< 1) the review is relative to its schedule."""
    low, high = REVIEW_TIMING_RATIO_RANGE if phase is Phase.REVIEW else RELEARNING_TIMING_RATIO_RANGE
    scheduled = max(finite_or_none(scheduled_days) or 0.0, MINUTE_IN_DAYS)
    elapsed = max(0.0, finite_or_none(elapsed_days) or 0.0)
    return clamp(elapsed / scheduled, low, high)


def update_stability(
    stability: float,
    difficulty: float,
    rating: Rating,
    elapsed_days: float,
    phase: Phase,
    scheduled_days: float
) -> float:
    """
    Update stability for one review.

    Learning phase: reset to a per-rating seed (0.1 / 0.3 / 1.0 / 2.4).

    Review / relearning phase:
        f(D) = (11 - D) / 10
        tr   = clip(elapsed / scheduled, lo, hi)

        Again:      S * (0.12 + 0.22 * f(D)) / (1 + max(0, tr - 1) * 0.25)
        Hard:       max(S + 0.05, S * (1 + 0.12 * (1 - R) * f(D) * tr))
        Good/Easy:  max(S + 0.1,  S * (1 + gain * (1 - R) * f(D) * tr))

    Where gain is 0.62 (Good) or 0.9 (Easy).

    Args:
        stability: Previous (effective) stability
        difficulty: Previous difficulty
        rating: Normalized rating
        elapsed_days: Days since the previous review
        phase: Phase the item was in when reviewed
        scheduled_days: Length of the previous schedule

    Returns:
        New stability in [0.1, 36500]; the previous value if the arithmetic
        stops being finite
    """
    previous = clamp_finite(stability, STABILITY_MIN, STABILITY_MAX, _stability_fallback(scheduled_days, phase))
    d = clamp_finite(difficulty, DIFFICULTY_MIN, DIFFICULTY_MAX, DIFFICULTY_MEAN_REVERSION)

    if phase is Phase.LEARNING:
        return LEARNING_STABILITY_SEED[rating]

    r = retrievability(elapsed_days, previous)
    difficulty_factor = (11 - d) / 10
    ratio = timing_ratio(elapsed_days, scheduled_days, phase)

    if rating == Rating.AGAIN:
        forget_penalty = FORGET_PENALTY_BASE + FORGET_PENALTY_DIFFICULTY_WEIGHT * difficulty_factor
        overdue_penalty = 1 + max(0.0, ratio - 1) * OVERDUE_FAILURE_PENALTY_RATE
        new_stability = previous * forget_penalty / overdue_penalty
    else:
        growth = 1 + RECALL_GAIN[rating] * (1 - r) * difficulty_factor * ratio
        new_stability = max(previous + RECALL_MIN_STEP[rating], previous * growth)

    return clamp_finite(new_stability, STABILITY_MIN, STABILITY_MAX, previous)
