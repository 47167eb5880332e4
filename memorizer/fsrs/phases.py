"""
Phase state machine.

    learning   --GOOD/EASY-->  review
    relearning --GOOD/EASY-->  review
    review     --AGAIN----->   relearning

Every other (phase, rating) pair keeps the current phase.
"""

from __future__ import annotations

from memorizer.fsrs.constants import Phase, Rating


def next_phase(current: Phase, rating: Rating) -> Phase:
    if current is Phase.REVIEW:
        return Phase.RELEARNING if rating == Rating.AGAIN else Phase.REVIEW
    if rating >= Rating.GOOD:
        return Phase.REVIEW
    return current


def counts_as_lapse(current: Phase, rating: Rating) -> bool:
    """
    A lapse is a failed review, not a failed learning step.

    Failed learning/relearning steps are short retries and are not counted.
    """
    return current is Phase.REVIEW and rating == Rating.AGAIN
