"""
Input normalizers - ratings, phases, counters and bounded numbers.

Every function here maps an arbitrary value to a safe one and never raises.
"""

from __future__ import annotations

import logging
import math
from typing import Optional

from memorizer.fsrs.constants import (
    COUNTER_MAX,
    RATING_INTEGER_TOLERANCE,
    Phase,
    Rating,
)

logger = logging.getLogger(__name__)


def clamp(value: float, low: float, high: float) -> float:
    return min(high, max(low, value))


def finite_or_none(value: object) -> Optional[float]:
    """
    Return value as a finite float, or None.

    Booleans, non-numbers, NaN, infinities and ints too large for a float
    are all rejected.
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    try:
        number = float(value)
    except OverflowError:
        return None
    return number if math.isfinite(number) else None


def clamp_finite(value: object, low: float, high: float, fallback: float) -> float:
    """Clamp value into [low, high], substituting fallback when it is not finite."""
    number = finite_or_none(value)
    if number is None:
        return clamp(fallback, low, high)
    return clamp(number, low, high)


def normalize_phase(value: object) -> Phase:
    """Valid phase values pass through; anything else restarts in learning."""
    if isinstance(value, Phase):
        return value
    if value in (Phase.REVIEW.value, Phase.RELEARNING.value, Phase.LEARNING.value):
        return Phase(value)
    logger.debug("Unknown phase %r treated as learning", value)
    return Phase.LEARNING


def safe_default_rating(phase: Phase) -> Rating:
    """
    Rating used in place of a corrupted one.

    Review items get GOOD so garbage cannot record an unearned lapse;
    learning/relearning items get AGAIN so garbage cannot promote them.
    """
    return Rating.GOOD if phase is Phase.REVIEW else Rating.AGAIN


def normalize_rating(value: object, phase: Phase) -> Rating:
    """
    Coerce an arbitrary value into one of the four ratings.

    Args:
        value: Candidate rating (normally an int 1-4)
        phase: Current phase of the item, used for the safe default

    Returns:
        The rounded rating, or the phase-safe default when value is
        non-numeric, non-finite, fractional or outside [1, 4]
    """
    number = finite_or_none(value)
    if number is None:
        logger.debug("Non-numeric rating %r replaced for phase %s", value, phase.value)
        return safe_default_rating(phase)

    rounded = math.floor(number + 0.5)
    if abs(number - rounded) > RATING_INTEGER_TOLERANCE or not 1 <= rounded <= 4:
        logger.debug("Out-of-range rating %r replaced for phase %s", value, phase.value)
        return safe_default_rating(phase)

    return Rating(rounded)


def normalize_counter(value: object) -> int:
    """
    Normalize a reps/lapses counter.

    +inf and oversized ints saturate at COUNTER_MAX; NaN, -inf and
    non-numbers reset to 0; other values are floored into [0, COUNTER_MAX].
    """
    if isinstance(value, bool):
        return 0
    if isinstance(value, int):
        return int(clamp(value, 0, COUNTER_MAX))
    if isinstance(value, float):
        if value == math.inf:
            return COUNTER_MAX
        if not math.isfinite(value):
            return 0
        return int(clamp(math.floor(value), 0, COUNTER_MAX))
    return 0


def increment_counter(value: int, step: int = 1) -> int:
    """Saturating counter increment."""
    return min(COUNTER_MAX, value + step)
