"""
Pydantic models for persisted item records.

This is the typed boundary between storage and the scheduling engine.
Values written by older app versions, other devices or by hand are coerced
here once (numeric strings, "Infinity", folded phase spellings, messy text),
so the engine only ever receives plain typed fields.
"""

from __future__ import annotations

import dataclasses
import math
import re
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from memorizer.fsrs.constants import (
    COUNTER_MAX,
    MEANING_MAX_LENGTH,
    NOTES_MAX_LENGTH,
    WORD_MAX_LENGTH,
    Phase,
)
from memorizer.fsrs.memory_state import ReviewItem
from memorizer.fsrs.text import normalize_bounded_text, normalize_optional_text
from memorizer.fsrs.timestamps import canonical_iso


NUMBER_RE = re.compile(r"[+-]?(?:\d+\.?\d*|\.\d+)(?:[eE][+-]?\d+)?")
RATING_RE = re.compile(r"[+-]?\d+(?:\.\d+)?")

POSITIVE_INFINITY_SPELLINGS = {"infinity", "+infinity", "inf", "+inf"}
NEGATIVE_INFINITY_SPELLINGS = {"-infinity", "-inf"}

# Integer-looking counters within this distance round instead of flooring
COUNTER_INTEGER_TOLERANCE = 1e-6

PHASE_ALIASES = {
    "review": Phase.REVIEW,
    "reviewing": Phase.REVIEW,
    "reviewed": Phase.REVIEW,
    "rev": Phase.REVIEW,
    "learning": Phase.LEARNING,
    "learn": Phase.LEARNING,
    "relearning": Phase.RELEARNING,
    "relearn": Phase.RELEARNING,
    "relearned": Phase.RELEARNING,
}


# ---- Coercion helpers ----

def parse_runtime_number(value: Any) -> Optional[float]:
    """
    Parse a persisted number.

    Accepts ints, floats and numeric strings (including "Infinity"/"inf").
    Infinities are kept so callers can saturate them; NaN and anything
    unparseable become None.
    """
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        try:
            return float(value)
        except OverflowError:
            return math.inf if value > 0 else -math.inf
    if isinstance(value, float):
        return None if math.isnan(value) else value
    if not isinstance(value, str):
        return None

    trimmed = value.strip()
    lowered = trimmed.lower()
    if lowered in POSITIVE_INFINITY_SPELLINGS:
        return math.inf
    if lowered in NEGATIVE_INFINITY_SPELLINGS:
        return -math.inf
    if not NUMBER_RE.fullmatch(trimmed):
        return None
    return float(trimmed)


def parse_counter(value: Any) -> int:
    """Non-negative integer counter; +inf saturates, garbage resets to 0."""
    number = parse_runtime_number(value)
    if number is None or number == -math.inf:
        return 0
    if number == math.inf:
        return COUNTER_MAX
    rounded = math.floor(number + 0.5)
    normalized = rounded if abs(number - rounded) <= COUNTER_INTEGER_TOLERANCE else math.floor(number)
    return int(min(COUNTER_MAX, max(0, normalized)))


def parse_rating_input(value: Any) -> float:
    """
    Parse a rating submitted by a UI or CLI.

    Returns:
        The numeric value, or NaN when the input is not a plain number;
        the engine maps NaN to its phase-safe default rating
    """
    if isinstance(value, bool):
        return math.nan
    if isinstance(value, (int, float)):
        try:
            return float(value)
        except OverflowError:
            return math.nan
    if not isinstance(value, str):
        return math.nan
    trimmed = value.strip()
    if not RATING_RE.fullmatch(trimmed):
        return math.nan
    return float(trimmed)


def fold_phase(value: Any) -> Phase:
    """
    Map loose phase spellings ("Reviewing", "re-learn", "REV") to a phase.

    Unknown values restart in learning.
    """
    if isinstance(value, Phase):
        return value
    if not isinstance(value, str):
        return Phase.LEARNING
    normalized = value.strip().lower()
    for candidate in (
        normalized,
        re.sub(r"[\s_-]+", "", normalized),
        re.sub(r"[^a-z]+", "", normalized),
    ):
        if candidate in PHASE_ALIASES:
            return PHASE_ALIASES[candidate]
    return Phase.LEARNING


# ---- Records ----

class ItemRecord(BaseModel):
    """
    A persisted item as stored in a deck payload.

    Every field is tolerant: invalid timestamps become None, unparseable
    numbers become None, counters become non-negative ints.
    """
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    id: str = ""
    word: str = ""
    meaning: str = ""
    notes: Optional[str] = None
    created_at: Optional[str] = Field(default=None, alias="createdAt")
    updated_at: Optional[str] = Field(default=None, alias="updatedAt")
    due_at: Optional[str] = Field(default=None, alias="dueAt")
    phase: Phase = Field(
        default=Phase.LEARNING,
        validation_alias=AliasChoices("phase", "state"),
        serialization_alias="phase",
    )
    reps: int = 0
    lapses: int = 0
    stability: Optional[float] = None
    difficulty: Optional[float] = None

    @field_validator("id", mode="before")
    @classmethod
    def _strip_id(cls, value: Any) -> str:
        return value.strip() if isinstance(value, str) else ""

    @field_validator("word", mode="before")
    @classmethod
    def _normalize_word(cls, value: Any) -> str:
        return normalize_bounded_text(value, WORD_MAX_LENGTH)

    @field_validator("meaning", mode="before")
    @classmethod
    def _normalize_meaning(cls, value: Any) -> str:
        return normalize_bounded_text(value, MEANING_MAX_LENGTH)

    @field_validator("notes", mode="before")
    @classmethod
    def _normalize_notes(cls, value: Any) -> Optional[str]:
        return normalize_optional_text(value, NOTES_MAX_LENGTH)

    @field_validator("created_at", "updated_at", "due_at", mode="before")
    @classmethod
    def _canonical_timestamp(cls, value: Any) -> Optional[str]:
        return canonical_iso(value)

    @field_validator("phase", mode="before")
    @classmethod
    def _fold_phase(cls, value: Any) -> Phase:
        return fold_phase(value)

    @field_validator("reps", "lapses", mode="before")
    @classmethod
    def _counter(cls, value: Any) -> int:
        return parse_counter(value)

    @field_validator("stability", "difficulty", mode="before")
    @classmethod
    def _number(cls, value: Any) -> Optional[float]:
        return parse_runtime_number(value)

    @classmethod
    def from_item(cls, item: ReviewItem) -> "ItemRecord":
        return cls.model_validate(dataclasses.asdict(item))

    def to_item(self) -> ReviewItem:
        """
        Convert to an engine item.

        Missing timestamps become empty strings and unknown numbers NaN;
        the engine repairs both on the next review.
        """
        return ReviewItem(
            id=self.id,
            word=self.word,
            meaning=self.meaning,
            notes=self.notes,
            created_at=self.created_at or "",
            updated_at=self.updated_at or "",
            due_at=self.due_at or "",
            phase=self.phase.value,
            reps=self.reps,
            lapses=self.lapses,
            stability=self.stability if self.stability is not None else math.nan,
            difficulty=self.difficulty if self.difficulty is not None else math.nan,
        )

    def to_payload(self) -> dict[str, Any]:
        """camelCase dict in the persisted record shape."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class DeckPayload(BaseModel):
    """Top-level persisted deck document."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    cards: list[Any] = Field(default_factory=list)
    last_reviewed_at: Optional[str] = Field(default=None, alias="lastReviewedAt")

    @field_validator("cards", mode="before")
    @classmethod
    def _cards_list(cls, value: Any) -> list[Any]:
        return value if isinstance(value, list) else []

    @field_validator("last_reviewed_at", mode="before")
    @classmethod
    def _canonical_timestamp(cls, value: Any) -> Optional[str]:
        return canonical_iso(value)
