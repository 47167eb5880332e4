"""
Memory State - Review Items and the Item Factory

Defines the reviewable unit and how new ones are created.

Key concepts:
- Stability (S): Days until recall probability decays to 90%
- Difficulty (D): How hard the item is to learn (1-10 scale)
- Phase: learning, review or relearning

Items are immutable values. A review never edits an item in place; it
returns a replacement.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from memorizer.config import DEFAULT_POLICY, SchedulerPolicy
from memorizer.fsrs.clock import Clock, IdSequence, SystemClock, read_wall_clock
from memorizer.fsrs.constants import INITIAL_DIFFICULTY, INITIAL_STABILITY, Phase
from memorizer.fsrs.text import normalize_item_text
from memorizer.fsrs.timestamps import format_iso, parse_iso, to_millis


@dataclass(frozen=True)
class ReviewItem:
    """
    A single memorization item.

    Field values come straight from storage and may be corrupted; the
    scheduler repairs them on the next review rather than rejecting them.
    """
    id: str
    word: str
    meaning: str
    created_at: str  # ISO-8601, e.g. 2024-03-01T08:30:00.000Z
    updated_at: str  # Last review (or creation)
    due_at: str      # Next time the item should be shown
    phase: str = Phase.LEARNING.value
    reps: int = 0
    lapses: int = 0
    stability: float = INITIAL_STABILITY  # S, in days
    difficulty: float = INITIAL_DIFFICULTY  # D, range 1-10
    notes: Optional[str] = None


def _to_base36(value: int) -> str:
    digits = "0123456789abcdefghijklmnopqrstuvwxyz"
    if value == 0:
        return "0"
    sign = "-" if value < 0 else ""
    value = abs(value)
    encoded = ""
    while value:
        value, remainder = divmod(value, 36)
        encoded = digits[remainder] + encoded
    return sign + encoded


class ItemFactory:
    """
    Creates new items with safe defaults.

    Holds the clock and id sequence explicitly; keep one factory per
    process (or per test) so ids stay unique across rapid creations.

    Args:
        clock: Wall clock used to validate creation instants and salt ids
        sequence: Monotonic counter appended to every id
        policy: Plausibility window for creation instants
    """

    def __init__(
        self,
        clock: Optional[Clock] = None,
        sequence: Optional[IdSequence] = None,
        policy: SchedulerPolicy = DEFAULT_POLICY
    ):
        self.clock = clock or SystemClock()
        self.sequence = sequence or IdSequence()
        self.policy = policy

    def resolve_created_at(self, now: object, wall: datetime) -> datetime:
        """
        Accept now when it is valid and within the plausibility window of the
        wall clock (historical imports are fine, pathological skew is not).
        """
        requested = parse_iso(now)
        if requested is not None and abs(requested - wall) <= self.policy.plausibility_window:
            return requested
        return wall

    def create(self, word: str, meaning: str, now: object, notes: Optional[str] = None) -> ReviewItem:
        """
        Create a new learning item that is due immediately.

        Args:
            word: Front of the card
            meaning: Back of the card
            now: Requested creation instant (ISO string or datetime)
            notes: Optional free text

        Returns:
            ReviewItem with phase learning, zero counters, stability 0.5,
            difficulty 5 and created_at == updated_at == due_at
        """
        wall = read_wall_clock(self.clock)
        created = self.resolve_created_at(now, wall)
        created_iso = format_iso(created)
        text = normalize_item_text(word, meaning, notes)
        item_id = "-".join([
            str(to_millis(created)),
            _to_base36(to_millis(wall)),
            _to_base36(self.sequence.next()),
        ])

        return ReviewItem(
            id=item_id,
            word=text.word,
            meaning=text.meaning,
            notes=text.notes,
            created_at=created_iso,
            updated_at=created_iso,
            due_at=created_iso,
            phase=Phase.LEARNING.value,
            reps=0,
            lapses=0,
            stability=INITIAL_STABILITY,
            difficulty=INITIAL_DIFFICULTY,
        )


_default_factory: Optional[ItemFactory] = None


def default_factory() -> ItemFactory:
    """Process-wide factory used when callers do not pass their own."""
    global _default_factory
    if _default_factory is None:
        _default_factory = ItemFactory()
    return _default_factory


def create_new_item(
    word: str,
    meaning: str,
    now: object,
    notes: Optional[str] = None,
    *,
    factory: Optional[ItemFactory] = None
) -> ReviewItem:
    """Create a new item with the given factory (or the process default)."""
    return (factory or default_factory()).create(word, meaning, now, notes)
