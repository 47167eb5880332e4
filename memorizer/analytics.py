"""
Deck analytics.

Builds a DataFrame view of a deck and derives the headline counters shown
next to the review queue.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

import pandas as pd

from memorizer.fsrs.constants import Phase
from memorizer.fsrs.memory_state import ReviewItem
from memorizer.fsrs.timestamps import parse_iso, to_millis


ITEM_COLUMNS = [
    "id",
    "phase",
    "due_at",
    "due_ms",
    "updated_at",
    "reps",
    "lapses",
    "stability",
    "difficulty",
    "is_candidate",
]


@dataclass(frozen=True)
class DeckStats:
    total: int = 0
    due_now: int = 0
    learning: int = 0
    review: int = 0
    relearning: int = 0


def _non_empty(value: object) -> bool:
    return isinstance(value, str) and value.strip() != ""


def _millis_or_none(value: object):
    parsed = parse_iso(value)
    return to_millis(parsed) if parsed is not None else None


def items_frame(items: Iterable[ReviewItem]) -> pd.DataFrame:
    """
    One row per item.

    due_at and updated_at are UTC timestamps (NaT when invalid or outside
    the pandas range); due_ms keeps the exact due instant in epoch
    milliseconds (NaN when invalid) for comparisons. is_candidate marks rows
    with every identity, text, timestamp and phase field present.
    """
    rows = []
    for item in items:
        rows.append({
            "id": item.id,
            "phase": item.phase,
            "due_at": item.due_at if _non_empty(item.due_at) else None,
            "due_ms": _millis_or_none(item.due_at),
            "updated_at": item.updated_at if _non_empty(item.updated_at) else None,
            "reps": item.reps,
            "lapses": item.lapses,
            "stability": item.stability,
            "difficulty": item.difficulty,
            "is_candidate": all(_non_empty(value) for value in (
                item.id, item.word, item.meaning, item.due_at,
                item.created_at, item.updated_at, item.phase,
            )),
        })

    frame = pd.DataFrame(rows, columns=ITEM_COLUMNS)
    frame["due_at"] = pd.to_datetime(frame["due_at"], utc=True, errors="coerce", format="ISO8601")
    frame["updated_at"] = pd.to_datetime(frame["updated_at"], utc=True, errors="coerce", format="ISO8601")
    frame["due_ms"] = pd.to_numeric(frame["due_ms"], errors="coerce").astype("float64")
    frame["is_candidate"] = frame["is_candidate"].astype(bool)
    return frame


def compute_deck_stats(items: Iterable[ReviewItem], now: object) -> DeckStats:
    """
    Headline counts for a deck.

    Items with an invalid due instant count as due so they surface for
    repair. An invalid now makes only those items due.
    """
    frame = items_frame(items)
    frame = frame[frame["is_candidate"]]
    if frame.empty:
        return DeckStats()

    current = parse_iso(now)
    invalid_due = frame["due_ms"].isna()
    if current is None:
        due_mask = invalid_due
    else:
        due_mask = invalid_due | (frame["due_ms"] <= to_millis(current))

    phase_counts = frame["phase"].value_counts()
    return DeckStats(
        total=int(len(frame)),
        due_now=int(due_mask.sum()),
        learning=int(phase_counts.get(Phase.LEARNING.value, 0)),
        review=int(phase_counts.get(Phase.REVIEW.value, 0)),
        relearning=int(phase_counts.get(Phase.RELEARNING.value, 0)),
    )


def count_upcoming_due(items: Iterable[ReviewItem], now: object, hours: float = 24) -> int:
    """
    Items that become due after now and within the next `hours`.

    Non-positive or non-finite windows fall back to 24 hours; an invalid now
    returns 0.
    """
    current = parse_iso(now)
    if current is None:
        return 0
    safe_hours = hours if isinstance(hours, (int, float)) and 0 < hours < float("inf") else 24
    now_ms = to_millis(current)
    cutoff_ms = now_ms + safe_hours * 3_600_000

    frame = items_frame(items)
    upcoming = frame["due_ms"].notna() & (frame["due_ms"] > now_ms) & (frame["due_ms"] <= cutoff_ms)
    return int(upcoming.sum())
