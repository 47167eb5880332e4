"""
FSRS - Free Spaced Repetition Scheduler

Main API of the scheduling engine.

This package implements a phase state machine (learning / review /
relearning) on top of a continuous memory model:
- Power forgetting curve: R = (1 + 19/81 * t / S) ^ -0.5
- Stability and difficulty updates per rating
- Monotonic, bounded review intervals
- Silent repair of corrupted timestamps, ratings and counters

Quick start:
    from memorizer import fsrs

    factory = fsrs.ItemFactory()
    item = factory.create("verrekijker", "binoculars", "2024-03-01T08:00:00.000Z")

    outcome = fsrs.review(item, fsrs.Rating.GOOD, "2024-03-01T08:00:00.000Z")
    outcome.item.due_at        # '2024-03-01T20:00:00.000Z'

    fsrs.preview_intervals(outcome.item, "2024-03-01T20:00:00.000Z").as_dict()
"""

# Core scheduler API
from memorizer.fsrs.scheduler import (
    IntervalPreview,
    ReviewOutcome,
    preview_intervals,
    review,
)

# Items
from memorizer.fsrs.memory_state import (
    ItemFactory,
    ReviewItem,
    create_new_item,
)

# Capabilities
from memorizer.fsrs.clock import (
    Clock,
    FixedClock,
    IdSequence,
    SystemClock,
)

# Constants and parameters
from memorizer.fsrs.constants import (
    COUNTER_MAX,
    DIFFICULTY_MAX,
    DIFFICULTY_MIN,
    FSRS_DECAY,
    FSRS_FACTOR,
    STABILITY_MAX,
    STABILITY_MIN,
    Phase,
    Rating,
)

# Memory model (for advanced usage)
from memorizer.fsrs.memory_updates import retrievability
from memorizer.fsrs.intervals import interval_from_stability


__all__ = [
    # Core algorithm
    "review",
    "preview_intervals",
    "ReviewOutcome",
    "IntervalPreview",

    # Items
    "ReviewItem",
    "ItemFactory",
    "create_new_item",

    # Clock
    "Clock",
    "SystemClock",
    "FixedClock",
    "IdSequence",

    # Enums
    "Rating",
    "Phase",

    # Memory model
    "retrievability",
    "interval_from_stability",

    # Parameters
    "COUNTER_MAX",
    "DIFFICULTY_MIN",
    "DIFFICULTY_MAX",
    "STABILITY_MIN",
    "STABILITY_MAX",
    "FSRS_DECAY",
    "FSRS_FACTOR",
]
