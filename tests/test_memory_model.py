"""
Tests for input normalizers, the phase machine, memory updates and intervals.
"""

import math

import pytest

from memorizer.fsrs.constants import COUNTER_MAX, MINUTE_IN_DAYS, Phase, Rating
from memorizer.fsrs.inputs import (
    clamp_finite,
    finite_or_none,
    increment_counter,
    normalize_counter,
    normalize_phase,
    normalize_rating,
)
from memorizer.fsrs.intervals import (
    ensure_ordered_preview,
    interval_from_stability,
    next_interval_days,
    normalize_scheduled_days,
    ordered_review_intervals,
    quantize_review_interval,
    review_interval_days,
)
from memorizer.fsrs.memory_updates import (
    effective_previous_stability,
    next_difficulty,
    retrievability,
    update_difficulty,
    update_stability,
)
from memorizer.fsrs.phases import counts_as_lapse, next_phase
from memorizer.fsrs.text import normalize_bounded_text, normalize_item_text


class TestNormalizeRating:

    @pytest.mark.parametrize("value, expected", [
        (1, Rating.AGAIN),
        (4, Rating.EASY),
        (3.00005, Rating.GOOD),
        (2.99995, Rating.GOOD),
        (Rating.HARD, Rating.HARD),
    ])
    def test_valid(self, value, expected):
        assert normalize_rating(value, Phase.REVIEW) == expected

    @pytest.mark.parametrize("value", [0, 5, 2.5, 3.001, math.nan, math.inf, "3", None, True, 10**400])
    def test_invalid_in_review_defaults_to_good(self, value):
        assert normalize_rating(value, Phase.REVIEW) == Rating.GOOD

    @pytest.mark.parametrize("phase", [Phase.LEARNING, Phase.RELEARNING])
    def test_invalid_outside_review_defaults_to_again(self, phase):
        assert normalize_rating(-1, phase) == Rating.AGAIN


class TestNormalizeCounters:

    @pytest.mark.parametrize("value, expected", [
        (3, 3),
        (3.9, 3),
        (-2, 0),
        (math.inf, COUNTER_MAX),
        (-math.inf, 0),
        (math.nan, 0),
        (10**20, COUNTER_MAX),
        ("7", 0),
        (None, 0),
        (True, 0),
    ])
    def test_normalize_counter(self, value, expected):
        assert normalize_counter(value) == expected

    def test_increment_saturates(self):
        assert increment_counter(COUNTER_MAX) == COUNTER_MAX
        assert increment_counter(5) == 6
        assert increment_counter(5, 0) == 5


class TestNumbers:

    def test_finite_or_none(self):
        assert finite_or_none(2) == 2.0
        assert finite_or_none(math.nan) is None
        assert finite_or_none(False) is None
        assert finite_or_none(10**400) is None

    def test_clamp_finite_uses_fallback(self):
        assert clamp_finite(math.inf, 1, 10, 5) == 5
        assert clamp_finite(42, 1, 10, 5) == 10

    def test_normalize_phase(self):
        assert normalize_phase("review") is Phase.REVIEW
        assert normalize_phase("Review") is Phase.LEARNING
        assert normalize_phase(None) is Phase.LEARNING


class TestPhaseMachine:

    @pytest.mark.parametrize("current, rating, expected", [
        (Phase.LEARNING, Rating.AGAIN, Phase.LEARNING),
        (Phase.LEARNING, Rating.HARD, Phase.LEARNING),
        (Phase.LEARNING, Rating.GOOD, Phase.REVIEW),
        (Phase.LEARNING, Rating.EASY, Phase.REVIEW),
        (Phase.RELEARNING, Rating.HARD, Phase.RELEARNING),
        (Phase.RELEARNING, Rating.GOOD, Phase.REVIEW),
        (Phase.REVIEW, Rating.AGAIN, Phase.RELEARNING),
        (Phase.REVIEW, Rating.HARD, Phase.REVIEW),
    ])
    def test_transitions(self, current, rating, expected):
        assert next_phase(current, rating) is expected

    def test_lapse_only_for_failed_review(self):
        assert counts_as_lapse(Phase.REVIEW, Rating.AGAIN)
        assert not counts_as_lapse(Phase.RELEARNING, Rating.AGAIN)
        assert not counts_as_lapse(Phase.REVIEW, Rating.HARD)


class TestRetrievability:

    def test_ninety_percent_at_stability(self):
        assert retrievability(10, 10) == pytest.approx(0.9)

    def test_full_recall_at_zero_elapsed(self):
        assert retrievability(0, 5) == 1.0

    def test_decreases_with_time(self):
        assert retrievability(20, 10) < retrievability(5, 10)

    def test_corrupted_inputs_stay_in_range(self):
        assert 0.0 <= retrievability(math.inf, math.nan) <= 1.0


class TestDifficulty:

    def test_good_lowers_difficulty(self):
        assert update_difficulty(5.0, Rating.GOOD) == pytest.approx(4.9)

    def test_again_raises_difficulty_with_reversion(self):
        assert update_difficulty(8.0, Rating.AGAIN) == pytest.approx(8.0 + 0.6 - 0.24)

    def test_bounds(self):
        assert update_difficulty(10.0, Rating.AGAIN) == 10.0
        assert update_difficulty(1.0, Rating.EASY) >= 1.0

    def test_learning_retries_do_not_harden(self):
        assert next_difficulty(5.0, Phase.LEARNING, Rating.AGAIN) == 5.0
        assert next_difficulty(5.0, Phase.RELEARNING, Rating.HARD) == 5.0
        assert next_difficulty(5.0, Phase.REVIEW, Rating.HARD) == pytest.approx(5.15)


class TestStability:

    @pytest.mark.parametrize("rating, seed", [
        (Rating.AGAIN, 0.1),
        (Rating.HARD, 0.3),
        (Rating.GOOD, 1.0),
        (Rating.EASY, 2.4),
    ])
    def test_learning_seeds(self, rating, seed):
        assert update_stability(7.0, 5.0, rating, 0.0, Phase.LEARNING, 0.001) == seed

    def test_success_grows_stability(self):
        for rating in (Rating.HARD, Rating.GOOD, Rating.EASY):
            assert update_stability(10.0, 5.0, rating, 10.0, Phase.REVIEW, 10.0) > 10.0

    def test_again_shrinks_stability(self):
        assert update_stability(10.0, 5.0, Rating.AGAIN, 10.0, Phase.REVIEW, 10.0) == pytest.approx(10.0 * (0.12 + 0.22 * 0.6))

    def test_overdue_failure_is_penalized_more(self):
        on_time = update_stability(10.0, 5.0, Rating.AGAIN, 10.0, Phase.REVIEW, 10.0)
        overdue = update_stability(10.0, 5.0, Rating.AGAIN, 25.0, Phase.REVIEW, 10.0)
        assert overdue < on_time

    def test_effective_stability_anchored_to_schedule(self):
        assert effective_previous_stability(0.2, 30.0, Phase.REVIEW) == pytest.approx(18.0)
        assert effective_previous_stability(0.2, 30.0, Phase.LEARNING) == 0.2
        assert effective_previous_stability(math.nan, 30.0, Phase.REVIEW) == 30.0


class TestIntervals:

    def test_interval_equals_stability_at_ninety_percent(self):
        assert interval_from_stability(20.0, 0.9) == pytest.approx(20.0)

    def test_interval_bounds(self):
        assert interval_from_stability(0.1, 0.98) == 0.5
        assert interval_from_stability(36500.0, 0.7) == 36500.0

    @pytest.mark.parametrize("value, phase, expected", [
        (math.inf, Phase.LEARNING, 1.0),
        (math.nan, Phase.REVIEW, 0.5),
        (-3, Phase.RELEARNING, 10 * MINUTE_IN_DAYS),
        (5.0, Phase.LEARNING, 1.0),
        (0.1, Phase.REVIEW, 0.5),
        (100000, Phase.REVIEW, 36500.0),
    ])
    def test_normalize_scheduled_days(self, value, phase, expected):
        assert normalize_scheduled_days(value, phase) == pytest.approx(expected)

    def test_quantize(self):
        assert quantize_review_interval(3.4, 10) == 3.0
        assert quantize_review_interval(3.5, 10) == 4.0
        assert quantize_review_interval(0.7, 0.5) == 0.5
        assert quantize_review_interval(0.8, 0.5) == 1.0

    def test_hard_on_time_does_not_exceed_schedule(self):
        days = review_interval_days(45.07, Rating.HARD, 10.0, 10.0, Phase.REVIEW)
        assert days == 10.0

    def test_good_early_keeps_half_schedule(self):
        days = review_interval_days(0.2, Rating.GOOD, 1.0, 20.0, Phase.REVIEW)
        assert days >= 10.0

    def test_ordered_review_intervals(self):
        intervals = ordered_review_intervals(8.0, 7.0, 3.0, 8.0, Phase.REVIEW)
        assert intervals[Rating.HARD] <= intervals[Rating.GOOD] <= intervals[Rating.EASY]

    def test_graduation_from_learning(self):
        assert next_interval_days(Phase.LEARNING, Phase.REVIEW, Rating.GOOD, 1.0, 5.0, 0.0, 0.001) == 0.5
        assert next_interval_days(Phase.LEARNING, Phase.REVIEW, Rating.EASY, 1.0, 5.0, 0.0, 0.001) == 1.0

    def test_relearning_steps(self):
        assert next_interval_days(Phase.REVIEW, Phase.RELEARNING, Rating.AGAIN, 5.0, 5.0, 5.0, 5.0) == pytest.approx(10 * MINUTE_IN_DAYS)

    def test_ensure_ordered_preview(self):
        assert ensure_ordered_preview(0.5, 0.2, math.nan, 3.0) == (0.5, 0.5, 0.5, 3.0)


class TestItemText:

    def test_truncation_drops_trailing_space(self):
        assert normalize_bounded_text("aaa bbb", 4) == "aaa"

    def test_truncated_word_has_no_trailing_space(self):
        word = "a" * 79 + " bcd"

        assert normalize_item_text(word, "house").word == "a" * 79

    def test_blank_fields(self):
        text = normalize_item_text("  ", None, "\u200b")

        assert text.word and text.meaning
        assert text.notes is None
