from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import create_engine

from memorizer.deck_repository import DeckRepository
from memorizer.fsrs.clock import FixedClock, IdSequence
from memorizer.fsrs.memory_state import ItemFactory, ReviewItem
from memorizer.fsrs.timestamps import format_iso


WALL = datetime(2026, 2, 23, 12, 0, 0, tzinfo=timezone.utc)


def at(**delta) -> str:
    """ISO timestamp offset from the test wall clock."""
    return format_iso(WALL + timedelta(**delta))


@pytest.fixture
def wall():
    return WALL


@pytest.fixture
def clock():
    return FixedClock(WALL)


@pytest.fixture
def factory(clock):
    return ItemFactory(clock=clock, sequence=IdSequence())


@pytest.fixture
def make_item():
    """Build a ReviewItem with sensible defaults anchored at the wall clock."""
    def _make(**overrides):
        fields = {
            "id": "item-1",
            "word": "huis",
            "meaning": "house",
            "created_at": at(days=-30),
            "updated_at": at(days=-1),
            "due_at": at(days=0),
            "phase": "review",
            "reps": 5,
            "lapses": 0,
            "stability": 3.0,
            "difficulty": 5.0,
        }
        fields.update(overrides)
        return ReviewItem(**fields)
    return _make


@pytest.fixture
def repository(tmp_path, clock):
    engine = create_engine(f"sqlite:///{tmp_path / 'deck.db'}")
    repo = DeckRepository(engine=engine, storage_key="test.deck", clock=clock)
    repo.init_db()
    yield repo
    engine.dispose()
