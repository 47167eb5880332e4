"""
Deck Repository - Deck Persistence

Loads and saves the whole deck as one JSON document per storage key.
Uses SQLAlchemy ORM; any database URL SQLAlchemy supports will work
(SQLite by default).

This module handles persistence and load/save normalization only.
Scheduling logic lives in memorizer.fsrs.

Key principles:
- Records are normalized on both load and save with the same bounds the
  scheduler uses, so a deck written by an older version or edited by hand
  loads into a consistent state
- Records that cannot be salvaged (no id, word or meaning, or no valid
  timestamp at all) are dropped
- Duplicate ids collapse to the freshest copy
- An unreadable payload loads as an empty deck; a failing database raises
  StorageError
"""

from __future__ import annotations

import json
import logging
import math
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional

from pydantic import ValidationError
from sqlalchemy import create_engine, inspect
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from memorizer.config import DEFAULT_POLICY, SchedulerPolicy, get_database_url, get_storage_key
from memorizer.exceptions import StorageError
from memorizer.fsrs.clock import Clock, SystemClock, read_wall_clock
from memorizer.fsrs.constants import (
    DIFFICULTY_MAX,
    DIFFICULTY_MIN,
    INITIAL_DIFFICULTY,
    INITIAL_STABILITY,
    REVIEW_INVALID_DUE_STABILITY_FALLBACK_MAX_DAYS,
    REVIEW_SCHEDULE_FLOOR_DAYS,
    STABILITY_MAX,
    STABILITY_MIN,
    Phase,
)
from memorizer.fsrs.inputs import clamp, clamp_finite
from memorizer.fsrs.intervals import schedule_cap_for_phase, schedule_floor_for_phase
from memorizer.fsrs.memory_state import ReviewItem
from memorizer.fsrs.timestamps import add_days, format_iso, parse_iso, signed_days, to_millis
from memorizer.models import Base, DeckSnapshot
from memorizer.schemas import DeckPayload, ItemRecord

logger = logging.getLogger(__name__)


# Calendar slack on top of the plausibility window (leap days over 20 years)
HISTORICAL_LEAP_TOLERANCE = timedelta(days=6)

# Learning/relearning schedules up to this multiple of the phase cap are
# capped; anything further out is reset to the phase floor
NON_REVIEW_OUTLIER_MULTIPLIER = 6

TIMELINE_JITTER_TOLERANCE = timedelta(seconds=1)


@dataclass
class Deck:
    """All items of one deck plus the instant of the latest review."""
    items: list[ReviewItem] = field(default_factory=list)
    last_reviewed_at: Optional[str] = None


# ---- Record normalization ----

def _coerce_record(raw: object) -> Optional[ItemRecord]:
    try:
        if isinstance(raw, ItemRecord):
            return raw
        if isinstance(raw, ReviewItem):
            return ItemRecord.from_item(raw)
        if isinstance(raw, dict):
            return ItemRecord.model_validate(raw)
    except ValidationError as exc:
        logger.warning("Dropping unreadable item record: %s", exc)
        return None
    return None


def _review_repair_days(stability: float) -> float:
    return clamp(stability, REVIEW_SCHEDULE_FLOOR_DAYS, REVIEW_INVALID_DUE_STABILITY_FALLBACK_MAX_DAYS)


def normalize_record(
    raw: object,
    *,
    clock: Optional[Clock] = None,
    policy: SchedulerPolicy = DEFAULT_POLICY
) -> Optional[ReviewItem]:
    """
    Normalize one persisted record into a consistent item.

    Args:
        raw: A record dict (camelCase or snake_case keys), ItemRecord or ReviewItem
        clock: Wall clock used to recognise future or implausibly old timestamps
        policy: Skew tolerance, plausibility window and review outlier window

    Returns:
        Normalized ReviewItem, or None if the record cannot be salvaged
    """
    record = _coerce_record(raw)
    if record is None or not record.id or not record.word or not record.meaning:
        return None

    wall = read_wall_clock(clock or SystemClock())
    max_age = policy.plausibility_window + HISTORICAL_LEAP_TOLERANCE

    created_raw = parse_iso(record.created_at)
    updated_raw = parse_iso(record.updated_at)
    due_raw = parse_iso(record.due_at)

    due_anchor = due_raw if due_raw is not None and abs(due_raw - wall) <= max_age else None
    created_candidate = next(
        (candidate for candidate in (created_raw, updated_raw, due_anchor) if candidate is not None),
        None,
    )
    if created_candidate is None:
        return None

    def wall_safe(candidate: datetime) -> datetime:
        if candidate - wall > policy.clock_skew or wall - candidate > max_age:
            return wall
        return candidate

    phase = record.phase
    stability = clamp_finite(record.stability, STABILITY_MIN, STABILITY_MAX, INITIAL_STABILITY)
    difficulty = clamp_finite(record.difficulty, DIFFICULTY_MIN, DIFFICULTY_MAX, INITIAL_DIFFICULTY)

    created = wall_safe(created_candidate)
    updated_candidate = updated_raw if updated_raw is not None else created
    updated = max(wall_safe(updated_candidate), created)
    due = max(due_raw if due_raw is not None else updated_candidate, updated)
    schedule_days = signed_days(updated, due)

    fresh_learning = (
        phase is Phase.LEARNING
        and record.reps == 0
        and record.lapses == 0
        and abs(updated - created) <= TIMELINE_JITTER_TOLERANCE
        and abs(due - updated) <= TIMELINE_JITTER_TOLERANCE
    )
    floor_days = schedule_floor_for_phase(phase)
    cap_days = schedule_cap_for_phase(phase)
    repaired_days: Optional[float] = None

    if schedule_days <= 0:
        if not fresh_learning:
            repaired_days = _review_repair_days(stability) if phase is Phase.REVIEW else floor_days
    elif schedule_days < floor_days:
        repaired_days = _review_repair_days(stability) if phase is Phase.REVIEW else floor_days

    if repaired_days is not None:
        schedule_days = repaired_days

    if schedule_days > cap_days:
        if phase is Phase.REVIEW:
            repaired_days = STABILITY_MAX
        elif schedule_days <= cap_days * NON_REVIEW_OUTLIER_MULTIPLIER:
            repaired_days = cap_days
        else:
            repaired_days = floor_days
        schedule_days = repaired_days

    outlier_window = max(
        REVIEW_SCHEDULE_FLOOR_DAYS,
        stability * policy.review_outlier_multiplier,
        policy.review_outlier_floor_days,
    )
    if phase is Phase.REVIEW and schedule_days > outlier_window:
        repaired_days = _review_repair_days(stability)
        schedule_days = repaired_days

    if repaired_days is not None:
        logger.debug("Repaired due_at of %s: %s -> +%.4f days", record.id, record.due_at, repaired_days)
        due = max(add_days(updated, repaired_days), updated)

    return ReviewItem(
        id=record.id,
        word=record.word,
        meaning=record.meaning,
        notes=record.notes,
        created_at=format_iso(created),
        updated_at=format_iso(updated),
        due_at=format_iso(due),
        phase=phase.value,
        reps=record.reps,
        lapses=record.lapses,
        stability=stability,
        difficulty=difficulty,
    )


# ---- Duplicates ----

def _time_or_min(value: object) -> float:
    parsed = parse_iso(value)
    return to_millis(parsed) if parsed is not None else -math.inf


def pick_freshest_duplicate(existing: ReviewItem, incoming: ReviewItem) -> ReviewItem:
    """
    Choose between two copies of the same item.

    Later updated_at wins. On a tie the copy with more review history wins
    (reps, then lapses), then the earlier due (overdue work is never
    postponed), then the earlier created_at; otherwise existing is kept.
    """
    existing_updated = _time_or_min(existing.updated_at)
    incoming_updated = _time_or_min(incoming.updated_at)
    if incoming_updated != existing_updated:
        return incoming if incoming_updated > existing_updated else existing

    if incoming.reps != existing.reps:
        return incoming if incoming.reps > existing.reps else existing

    if incoming.lapses != existing.lapses:
        return incoming if incoming.lapses > existing.lapses else existing

    existing_due = _time_or_min(existing.due_at)
    incoming_due = _time_or_min(incoming.due_at)
    if incoming_due != existing_due:
        return incoming if incoming_due < existing_due else existing

    if _time_or_min(incoming.created_at) < _time_or_min(existing.created_at):
        return incoming
    return existing


def _created_sort_key(item: ReviewItem) -> float:
    return _time_or_min(item.created_at)


def dedupe_items(items: list[ReviewItem]) -> list[ReviewItem]:
    """One item per id (the freshest copy), ordered by creation."""
    by_id: dict[str, ReviewItem] = {}
    for item in sorted(items, key=_created_sort_key):
        existing = by_id.get(item.id)
        by_id[item.id] = item if existing is None else pick_freshest_duplicate(existing, item)
    return sorted(by_id.values(), key=_created_sort_key)


# ---- Deck documents ----

def sanitize_deck(
    deck: Deck,
    *,
    clock: Optional[Clock] = None,
    policy: SchedulerPolicy = DEFAULT_POLICY
) -> Deck:
    """Normalize, filter and dedupe every item of a deck."""
    normalized = [normalize_record(item, clock=clock, policy=policy) for item in deck.items]
    parsed_last = parse_iso(deck.last_reviewed_at)
    return Deck(
        items=dedupe_items([item for item in normalized if item is not None]),
        last_reviewed_at=format_iso(parsed_last) if parsed_last is not None else None,
    )


def encode_deck(deck: Deck) -> str:
    """Serialize an already sanitized deck to its JSON payload."""
    document = DeckPayload(
        cards=[ItemRecord.from_item(item).to_payload() for item in deck.items],
        last_reviewed_at=deck.last_reviewed_at,
    )
    return json.dumps(document.model_dump(mode="json", by_alias=True, exclude_none=True))


def decode_deck(
    serialized: object,
    *,
    clock: Optional[Clock] = None,
    policy: SchedulerPolicy = DEFAULT_POLICY
) -> Deck:
    """
    Parse a JSON payload into a normalized deck.

    Returns:
        The deck, or an empty deck when the payload is unreadable
    """
    try:
        parsed = json.loads(serialized)
    except (ValueError, RecursionError, TypeError) as exc:
        logger.warning("Deck payload is not valid JSON (%s); loading an empty deck", exc)
        return Deck()

    if not isinstance(parsed, dict):
        logger.warning("Deck payload is a %s, not an object; loading an empty deck", type(parsed).__name__)
        return Deck()

    document = DeckPayload.model_validate(parsed)
    normalized = [normalize_record(raw, clock=clock, policy=policy) for raw in document.cards]
    items = [item for item in normalized if item is not None]
    if len(items) < len(document.cards):
        logger.info("Dropped %d unrecoverable records while loading", len(document.cards) - len(items))
    return Deck(items=dedupe_items(items), last_reviewed_at=document.last_reviewed_at)


# ---- Repository ----

class DeckRepository:
    """
    Database-backed deck storage.

    Args:
        engine: SQLAlchemy engine; created from MEMORIZER_DATABASE_URL if omitted
        storage_key: Key of the deck snapshot row; MEMORIZER_STORAGE_KEY if omitted
        clock: Wall clock used by load/save normalization
        policy: Repair heuristics shared with the scheduler
    """

    def __init__(
        self,
        engine: Optional[Engine] = None,
        storage_key: Optional[str] = None,
        clock: Optional[Clock] = None,
        policy: SchedulerPolicy = DEFAULT_POLICY
    ):
        self.engine = engine if engine is not None else create_engine(get_database_url(), pool_pre_ping=True)
        self.storage_key = storage_key or get_storage_key()
        self.clock = clock or SystemClock()
        self.policy = policy
        self._session_factory = sessionmaker(bind=self.engine, expire_on_commit=False)

    def get_session(self) -> Session:
        return self._session_factory()

    def init_db(self):
        """
        Create the snapshot table if it does not exist.

        Safe to call multiple times.
        """
        try:
            existing_tables = inspect(self.engine).get_table_names()
            if DeckSnapshot.__tablename__ not in existing_tables:
                Base.metadata.create_all(self.engine)
                logger.info("Created table %s", DeckSnapshot.__tablename__)
        except SQLAlchemyError as exc:
            raise StorageError(f"Could not initialize deck storage: {exc}") from exc

    def reset(self):
        """
        DANGEROUS: Drop and recreate the snapshot table.

        Every deck stored in this database is lost.
        """
        try:
            Base.metadata.drop_all(self.engine)
            Base.metadata.create_all(self.engine)
        except SQLAlchemyError as exc:
            raise StorageError(f"Could not reset deck storage: {exc}") from exc
        logger.warning("Deck storage reset")

    def load_deck(self) -> Deck:
        """
        Load the deck stored under this repository's key.

        Returns:
            Normalized deck; empty when nothing is stored or the payload is unreadable
        """
        session = self.get_session()
        try:
            snapshot = session.get(DeckSnapshot, self.storage_key)
            payload = snapshot.payload if snapshot is not None else None
        except SQLAlchemyError as exc:
            raise StorageError(f"Could not load deck {self.storage_key!r}: {exc}") from exc
        finally:
            session.close()

        if not payload:
            return Deck()
        return decode_deck(payload, clock=self.clock, policy=self.policy)

    def save_deck(self, deck: Deck) -> Deck:
        """
        Normalize and store a deck (insert or update).

        Returns:
            The deck exactly as it was written
        """
        safe_deck = sanitize_deck(deck, clock=self.clock, policy=self.policy)
        payload = encode_deck(safe_deck)

        session = self.get_session()
        try:
            snapshot = session.get(DeckSnapshot, self.storage_key)
            if snapshot is None:
                snapshot = DeckSnapshot(storage_key=self.storage_key)
                session.add(snapshot)
            snapshot.payload = payload
            snapshot.item_count = len(safe_deck.items)
            snapshot.saved_at = read_wall_clock(self.clock)
            session.commit()
        except SQLAlchemyError as exc:
            session.rollback()
            raise StorageError(f"Could not save deck {self.storage_key!r}: {exc}") from exc
        finally:
            session.close()

        logger.debug("Saved %d items under %s", len(safe_deck.items), self.storage_key)
        return safe_deck
