"""
FSRS Constants and Parameters

All fixed parameters for the scheduling engine in one place.
Tunable corruption-repair heuristics live in memorizer.config.SchedulerPolicy.
"""

from __future__ import annotations

from enum import Enum, IntEnum


# ---- Ratings ----

class Rating(IntEnum):
    """User rating of a recall attempt."""
    AGAIN = 1   # Recall failed
    HARD = 2    # Recalled with high effort
    GOOD = 3    # Recalled normally
    EASY = 4    # Recalled fluently


# ---- Phases ----

class Phase(str, Enum):
    """Discrete learning stage of an item."""
    LEARNING = "learning"
    REVIEW = "review"
    RELEARNING = "relearning"


# ---- Memory bounds ----

DIFFICULTY_MIN = 1.0
DIFFICULTY_MAX = 10.0
DIFFICULTY_MEAN_REVERSION = 5.0

STABILITY_MIN = 0.1
STABILITY_MAX = 36500.0

INITIAL_STABILITY = 0.5
INITIAL_DIFFICULTY = 5.0


# ---- Forgetting curve ----
# R(t) = (1 + FACTOR * t / S) ^ DECAY, so that R(S) = 0.9

FSRS_DECAY = -0.5
FSRS_FACTOR = 19 / 81


# ---- Time units (in days) ----

MINUTE_IN_DAYS = 1 / 1440
HOUR_IN_DAYS = 1 / 24


# ---- Schedule windows per phase (days) ----

LEARNING_SCHEDULE_FLOOR_DAYS = MINUTE_IN_DAYS
RELEARNING_SCHEDULE_FLOOR_DAYS = 10 * MINUTE_IN_DAYS
REVIEW_SCHEDULE_FLOOR_DAYS = 0.5

LEARNING_MAX_SCHEDULE_DAYS = 1.0
RELEARNING_MAX_SCHEDULE_DAYS = 2.0

# Upper bound for a repaired review schedule when the persisted due is unusable
REVIEW_INVALID_DUE_STABILITY_FALLBACK_MAX_DAYS = 7.0


# ---- Difficulty update ----

DIFFICULTY_RATING_SHIFT = {
    Rating.AGAIN: +0.60,
    Rating.HARD: +0.15,
    Rating.GOOD: -0.10,
    Rating.EASY: -0.45,
}
DIFFICULTY_REVERSION_RATE = 0.08


# ---- Stability update ----

# Seed stability for items without an established memory history
LEARNING_STABILITY_SEED = {
    Rating.AGAIN: STABILITY_MIN,
    Rating.HARD: 0.3,
    Rating.GOOD: 1.0,
    Rating.EASY: 2.4,
}

RECALL_GAIN = {
    Rating.HARD: 0.12,
    Rating.GOOD: 0.62,
    Rating.EASY: 0.90,
}
# Minimum absolute stability gain on a successful recall
RECALL_MIN_STEP = {
    Rating.HARD: 0.05,
    Rating.GOOD: 0.10,
    Rating.EASY: 0.10,
}

FORGET_PENALTY_BASE = 0.12
FORGET_PENALTY_DIFFICULTY_WEIGHT = 0.22
OVERDUE_FAILURE_PENALTY_RATE = 0.25

REVIEW_TIMING_RATIO_RANGE = (0.5, 2.5)
RELEARNING_TIMING_RATIO_RANGE = (0.8, 1.6)

# Persisted stability is anchored to at least this share of an established schedule
SCHEDULE_ANCHORED_STABILITY_SHARE = 0.6


# ---- Review intervals ----

DESIRED_RETENTION = {
    Rating.HARD: 0.95,
    Rating.GOOD: 0.90,
    Rating.EASY: 0.86,
}
DESIRED_RETENTION_RANGE = (0.7, 0.98)

REVIEW_RATING_SCALE = {
    Rating.HARD: 0.85,
    Rating.GOOD: 1.0,
    Rating.EASY: 1.15,
}
TIMING_SCALE_RANGE = (0.75, 1.35)
HARD_LATE_GROWTH_CAP = 1.2
EARLY_GOOD_FLOOR_SHARE = 0.5

LEARNING_INTERVAL_DAYS = {
    Rating.AGAIN: 1 * MINUTE_IN_DAYS,
    Rating.HARD: 5 * MINUTE_IN_DAYS,
    Rating.GOOD: 10 * MINUTE_IN_DAYS,
    Rating.EASY: 10 * MINUTE_IN_DAYS,
}

RELEARNING_INTERVAL_DAYS = {
    Rating.AGAIN: 10 * MINUTE_IN_DAYS,
    Rating.HARD: 15 * MINUTE_IN_DAYS,
    Rating.GOOD: 0.5,
    Rating.EASY: 1.0,
}

# First-time graduates start from a predictable short interval
GRADUATION_INTERVAL_DAYS = {
    Rating.GOOD: 0.5,
    Rating.EASY: 1.0,
}


# ---- Counters ----

# Largest integer a JSON/float round trip keeps exact
COUNTER_MAX = 2**53 - 1

RATING_INTEGER_TOLERANCE = 1e-4


# ---- Text fields ----

WORD_MAX_LENGTH = 80
MEANING_MAX_LENGTH = 180
NOTES_MAX_LENGTH = 240

INVALID_WORD_PLACEHOLDER = "[invalid word]"
INVALID_MEANING_PLACEHOLDER = "[invalid meaning]"
