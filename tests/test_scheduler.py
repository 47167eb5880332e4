"""
Tests for the review orchestrator.

Tests cover:
- The end-to-end scenarios (new item, lapse, late Hard, corrupted due)
- Output invariants for healthy and corrupted items
- Interval previews
"""

import math
from datetime import timedelta

import pytest

from conftest import WALL, at
from memorizer.fsrs import (
    COUNTER_MAX,
    FixedClock,
    ItemFactory,
    Rating,
    preview_intervals,
    review,
)
from memorizer.fsrs.constants import (
    DIFFICULTY_MAX,
    DIFFICULTY_MIN,
    INVALID_MEANING_PLACEHOLDER,
    INVALID_WORD_PLACEHOLDER,
    STABILITY_MAX,
    STABILITY_MIN,
)
from memorizer.fsrs.timestamps import parse_iso


CORRUPTED_FIELDS = [
    {"stability": math.nan, "difficulty": math.inf},
    {"reps": -5, "lapses": "abc"},
    {"phase": "bogus"},
    {"created_at": "x", "updated_at": "y", "due_at": "z"},
    {"due_at": at(days=-400)},
    {"updated_at": at(days=5), "due_at": at(days=6)},
    {"created_at": at(days=3)},
    {"stability": -10.0, "difficulty": -3.0},
    {"stability": 1e308, "difficulty": 1e308, "reps": 10**30},
    {"due_at": at(days=9000), "stability": 0.2},
    {"word": "", "meaning": None},
    {"phase": "relearning", "due_at": at(days=30)},
    {"phase": "learning", "updated_at": "2024-02-30T00:00:00.000Z"},
]


class TestScenarios:
    """Reference walkthroughs of the scheduler."""

    def test_new_item_good_graduates_to_half_day(self, factory):
        item = factory.create("huis", "house", at())

        outcome = review(item, Rating.GOOD, at(), clock=FixedClock(WALL))

        assert outcome.item.phase == "review"
        assert outcome.scheduled_days == 0.5
        assert outcome.item.due_at == at(hours=12)
        assert outcome.item.reps == 1
        assert outcome.item.lapses == 0
        assert outcome.item.stability == pytest.approx(1.0)
        assert outcome.item.difficulty == pytest.approx(4.9)

    def test_again_at_due_relearns(self, factory):
        clock = FixedClock(WALL)
        item = factory.create("huis", "house", at())
        graduated = review(item, Rating.GOOD, at(), clock=clock).item

        clock.advance(hours=12)
        outcome = review(graduated, Rating.AGAIN, at(hours=12), clock=clock)

        assert outcome.item.phase == "relearning"
        assert outcome.item.lapses == 1
        assert outcome.item.reps == 2
        assert outcome.scheduled_days < 0.02
        assert outcome.item.due_at == at(hours=12, minutes=10)

    def test_late_hard_grows_at_most_twenty_percent(self, make_item):
        item = make_item(
            stability=45.0,
            difficulty=6.0,
            reps=40,
            updated_at=at(days=-30),
            due_at=at(days=-20),
        )

        on_time = review(item, Rating.HARD, at(days=-20), clock=FixedClock(WALL))
        late = review(item, Rating.HARD, at(), clock=FixedClock(WALL))

        assert on_time.scheduled_days == 10
        assert late.scheduled_days == 12
        assert late.scheduled_days >= on_time.scheduled_days
        assert late.scheduled_days <= 12

    def test_unparseable_due_is_repaired_from_stability(self, make_item):
        item = make_item(
            stability=120.0,
            due_at="not-a-date",
            updated_at=at(days=-1),
        )

        outcome = review(item, Rating.HARD, at(), clock=FixedClock(WALL))

        assert 0.5 <= outcome.scheduled_days <= 7
        assert outcome.item.updated_at == at()
        assert parse_iso(outcome.item.due_at) > parse_iso(outcome.item.updated_at)


class TestReviewInvariants:
    """Every review yields a consistent, bounded item."""

    @pytest.mark.parametrize("overrides", CORRUPTED_FIELDS)
    @pytest.mark.parametrize("rating", [1, 2, 3, 4, 0, 7.5, math.nan, "good", None])
    def test_output_is_bounded(self, make_item, overrides, rating):
        item = make_item(**overrides)

        result = review(item, rating, at(), clock=FixedClock(WALL)).item

        created = parse_iso(result.created_at)
        updated = parse_iso(result.updated_at)
        due = parse_iso(result.due_at)
        assert created is not None and updated is not None and due is not None
        assert created <= updated < due
        assert result.phase in ("learning", "review", "relearning")
        assert STABILITY_MIN <= result.stability <= STABILITY_MAX
        assert DIFFICULTY_MIN <= result.difficulty <= DIFFICULTY_MAX
        assert isinstance(result.reps, int) and 0 <= result.reps <= COUNTER_MAX
        assert isinstance(result.lapses, int) and 0 <= result.lapses <= COUNTER_MAX
        assert result.word and result.meaning

    def test_input_item_is_not_modified(self, make_item):
        item = make_item()
        snapshot = (item.updated_at, item.due_at, item.reps, item.stability)

        review(item, Rating.GOOD, at(), clock=FixedClock(WALL))

        assert (item.updated_at, item.due_at, item.reps, item.stability) == snapshot

    def test_counters_saturate(self, make_item):
        item = make_item(reps=COUNTER_MAX, lapses=COUNTER_MAX)

        result = review(item, Rating.AGAIN, at(), clock=FixedClock(WALL)).item

        assert result.reps == COUNTER_MAX
        assert result.lapses == COUNTER_MAX

    def test_infinite_counter_saturates(self, make_item):
        result = review(make_item(reps=math.inf), Rating.GOOD, at(), clock=FixedClock(WALL)).item
        assert result.reps == COUNTER_MAX

    def test_lapse_only_counted_in_review(self, make_item):
        learning = make_item(phase="learning", due_at=at(minutes=-1), updated_at=at(minutes=-2))
        result = review(learning, Rating.AGAIN, at(), clock=FixedClock(WALL)).item
        assert result.lapses == 0
        assert result.phase == "learning"

    def test_invalid_rating_in_review_defaults_to_good(self, make_item):
        result = review(make_item(), 9, at(), clock=FixedClock(WALL)).item
        assert result.phase == "review"
        assert result.lapses == 0

    def test_invalid_rating_in_learning_does_not_promote(self, make_item):
        learning = make_item(phase="learning", updated_at=at(minutes=-5), due_at=at(minutes=-4))
        result = review(learning, "EASY", at(), clock=FixedClock(WALL)).item
        assert result.phase == "learning"

    def test_text_is_normalized(self, make_item):
        item = make_item(word="  het \u200b huis  ", meaning="", notes="   ")

        result = review(item, Rating.GOOD, at(), clock=FixedClock(WALL)).item

        assert result.word == "het huis"
        assert result.meaning == INVALID_MEANING_PLACEHOLDER
        assert result.notes is None

    def test_missing_word_gets_placeholder(self, make_item):
        result = review(make_item(word=42), Rating.GOOD, at(), clock=FixedClock(WALL)).item
        assert result.word == INVALID_WORD_PLACEHOLDER


class TestMonotonicClockGuard:
    """A review never moves updated_at backwards."""

    @pytest.mark.parametrize("now", [at(hours=-1), at(days=-3), at(days=-1), "garbage"])
    def test_now_at_or_before_updated_keeps_updated(self, make_item, now):
        item = make_item(updated_at=at(), due_at=at(days=2), created_at=at(days=-10))

        result = review(item, Rating.GOOD, now, clock=FixedClock(WALL)).item

        assert parse_iso(result.updated_at) >= parse_iso(item.updated_at)

    def test_future_now_is_rejected(self, make_item):
        item = make_item()

        result = review(item, Rating.GOOD, at(days=3), clock=FixedClock(WALL)).item

        assert parse_iso(result.updated_at) <= WALL

    @pytest.mark.parametrize("rating", [Rating.HARD, Rating.GOOD, Rating.EASY])
    @pytest.mark.parametrize("stale_now", [at(days=-11), at(days=-10, hours=-1)])
    def test_stale_now_never_shortens_schedule(self, make_item, rating, stale_now):
        item = make_item(updated_at=at(days=-10), due_at=at(), stability=10.0)

        stale = review(item, rating, stale_now, clock=FixedClock(WALL))
        at_updated = review(item, rating, item.updated_at, clock=FixedClock(WALL))
        on_time = review(item, rating, at(), clock=FixedClock(WALL))

        assert stale.item.updated_at == item.updated_at
        assert stale.scheduled_days == at_updated.scheduled_days
        assert stale.scheduled_days <= on_time.scheduled_days

    def test_repeated_stale_review_keeps_schedule(self, make_item):
        item = make_item(updated_at=at(days=-10), due_at=at(), stability=10.0)
        first = review(item, Rating.GOOD, at(), clock=FixedClock(WALL))

        stale = review(first.item, Rating.GOOD, at(hours=-1), clock=FixedClock(WALL))
        at_updated = review(first.item, Rating.GOOD, first.item.updated_at, clock=FixedClock(WALL))

        assert stale.item.updated_at == first.item.updated_at
        assert stale.scheduled_days == at_updated.scheduled_days

    def test_historical_now_is_accepted(self, make_item):
        historical = make_item(
            created_at="2020-01-01T00:00:00.000Z",
            updated_at="2020-01-02T00:00:00.000Z",
            due_at="2020-01-05T00:00:00.000Z",
        )

        result = review(historical, Rating.GOOD, "2020-01-05T00:00:00.000Z", clock=FixedClock(WALL)).item

        assert result.updated_at == "2020-01-05T00:00:00.000Z"


class TestRequestedInstantFormats:

    def test_isoformat_with_microseconds(self, make_item):
        item = make_item(updated_at=at(days=-10), due_at=at(), stability=10.0)
        now = (WALL - timedelta(microseconds=123456)).isoformat()

        result = review(item, Rating.GOOD, now, clock=FixedClock(WALL))
        expected = review(item, Rating.GOOD, "2026-02-23T11:59:59.876Z", clock=FixedClock(WALL))

        assert result.item.updated_at == "2026-02-23T11:59:59.876Z"
        assert result.scheduled_days == expected.scheduled_days

    def test_isoformat_utc_offset(self, make_item):
        item = make_item(updated_at=at(days=-10), due_at=at(), stability=10.0)

        result = review(item, Rating.GOOD, WALL.isoformat(), clock=FixedClock(WALL))

        assert result.item.updated_at == at()


class TestPreviewIntervals:

    def test_new_item_preview(self, factory):
        item = factory.create("huis", "house", at())

        preview = preview_intervals(item, at(), clock=FixedClock(WALL))

        assert preview.again == pytest.approx(1 / 1440)
        assert preview.hard == pytest.approx(5 / 1440)
        assert preview.good == 0.5
        assert preview.easy == 1.0

    @pytest.mark.parametrize("overrides", CORRUPTED_FIELDS + [{}, {"stability": 45.0, "due_at": at(days=-20)}])
    def test_preview_is_non_decreasing(self, make_item, overrides):
        preview = preview_intervals(make_item(**overrides), at(), clock=FixedClock(WALL))

        assert preview.again <= preview.hard <= preview.good <= preview.easy
        assert all(math.isfinite(value) for value in preview.as_dict().values())

    def test_preview_matches_review(self, make_item):
        item = make_item(stability=10.0, updated_at=at(days=-5), due_at=at(days=-1))

        preview = preview_intervals(item, at(), clock=FixedClock(WALL))

        good = review(item, Rating.GOOD, at(), clock=FixedClock(WALL))
        assert preview.for_rating(Rating.GOOD) == good.scheduled_days

    def test_as_dict_keys(self, make_item):
        preview = preview_intervals(make_item(), at(), clock=FixedClock(WALL))
        assert list(preview.as_dict()) == ["again", "hard", "good", "easy"]


class TestItemFactory:

    def test_new_item_defaults(self, factory):
        item = factory.create("  huis ", "house", at(), notes="")

        assert item.word == "huis"
        assert item.phase == "learning"
        assert item.reps == 0 and item.lapses == 0
        assert item.stability == 0.5
        assert item.difficulty == 5.0
        assert item.created_at == item.updated_at == item.due_at == at()
        assert item.notes is None

    def test_ids_are_unique_within_one_millisecond(self, factory):
        ids = {factory.create("w", "m", at()).id for _ in range(50)}
        assert len(ids) == 50

    @pytest.mark.parametrize("now", ["not-a-time", at(days=365 * 30), at(days=-365 * 30), None])
    def test_implausible_now_uses_wall_clock(self, factory, now):
        assert factory.create("w", "m", now).created_at == at()

    def test_historical_import_is_kept(self, factory):
        assert factory.create("w", "m", "2019-06-01T10:00:00.000Z").created_at == "2019-06-01T10:00:00.000Z"

    def test_explicit_sequence(self, clock):
        first = ItemFactory(clock=clock).create("w", "m", at())
        assert first.id.endswith("-1")
