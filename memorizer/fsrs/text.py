"""
Display text normalization for item fields.
"""

from __future__ import annotations

import re
from typing import NamedTuple, Optional

from memorizer.fsrs.constants import (
    INVALID_MEANING_PLACEHOLDER,
    INVALID_WORD_PLACEHOLDER,
    MEANING_MAX_LENGTH,
    NOTES_MAX_LENGTH,
    WORD_MAX_LENGTH,
)


INVISIBLE_CHARACTERS_RE = re.compile("[\u200B-\u200D\uFEFF]")
WHITESPACE_RUN_RE = re.compile(r"\s+")


class ItemText(NamedTuple):
    word: str
    meaning: str
    notes: Optional[str]


def collapse_whitespace(value: str) -> str:
    """Drop zero-width characters, trim, and collapse whitespace runs to one space."""
    return WHITESPACE_RUN_RE.sub(" ", INVISIBLE_CHARACTERS_RE.sub("", value).strip())


def normalize_bounded_text(value: object, max_length: int) -> str:
    if not isinstance(value, str):
        return ""
    return collapse_whitespace(value)[:max(0, int(max_length))].rstrip()


def normalize_optional_text(value: object, max_length: int) -> Optional[str]:
    normalized = normalize_bounded_text(value, max_length)
    return normalized or None


def normalize_item_text(word: object, meaning: object, notes: object = None) -> ItemText:
    """
    Normalize the three display fields of an item.

    Empty word/meaning fields are replaced with visible placeholders so a
    corrupted record still renders; empty notes become None.
    """
    return ItemText(
        word=normalize_bounded_text(word, WORD_MAX_LENGTH) or INVALID_WORD_PLACEHOLDER,
        meaning=normalize_bounded_text(meaning, MEANING_MAX_LENGTH) or INVALID_MEANING_PLACEHOLDER,
        notes=normalize_optional_text(notes, NOTES_MAX_LENGTH),
    )
