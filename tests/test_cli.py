"""
Tests for the command line front end.
"""

import math

import pytest

from conftest import at
from memorizer.cli import main, resolve_rating
from memorizer.exceptions import StorageError


@pytest.fixture
def run(repository, clock):
    def _run(*argv):
        return main(list(argv), repository=repository, clock=clock)
    return _run


@pytest.fixture
def added_id(run, repository, capsys):
    assert run("add", "huis", "house", "--notes", "het huis") == 0
    capsys.readouterr()
    return repository.load_deck().items[0].id


class TestResolveRating:

    def test_names_and_numbers(self):
        assert resolve_rating("Good") == 3.0
        assert resolve_rating(" again ") == 1.0
        assert resolve_rating("4") == 4.0

    def test_garbage_is_nan(self):
        assert math.isnan(resolve_rating("excellent"))


class TestCommands:

    def test_add(self, run, repository, capsys):
        assert run("add", "  huis ", "house") == 0

        out = capsys.readouterr().out
        assert "Added huis = house" in out
        item = repository.load_deck().items[0]
        assert item.phase == "learning"
        assert item.due_at == at()

    def test_due_lists_new_item(self, run, added_id, capsys):
        assert run("due") == 0

        out = capsys.readouterr().out
        assert "1 due" in out
        assert added_id in out
        assert "Due now (primary)" in out

    def test_due_marks_overdue_items(self, run, added_id, capsys):
        assert run("--now", at(hours=2), "due") == 0

        assert "Overdue 2h (danger)" in capsys.readouterr().out

    def test_due_empty(self, run, capsys):
        assert run("due") == 0
        assert "Nothing due" in capsys.readouterr().out

    def test_review(self, run, repository, added_id, capsys):
        assert run("review", added_id, "good") == 0

        deck = repository.load_deck()
        assert deck.items[0].phase == "review"
        assert deck.items[0].due_at == at(hours=12)
        assert deck.last_reviewed_at == at()
        assert "huis: review" in capsys.readouterr().out

    def test_review_not_due(self, run, added_id, capsys):
        run("review", added_id, "good")
        capsys.readouterr()

        assert run("review", added_id, "good") == 1
        assert "is not due" in capsys.readouterr().out

    def test_review_force(self, run, repository, added_id):
        run("review", added_id, "good")

        assert run("review", added_id, "easy", "--force") == 0
        assert repository.load_deck().items[0].reps == 2

    def test_review_unknown_item(self, run, capsys):
        assert run("review", "nope", "good") == 1
        assert "No item" in capsys.readouterr().err

    def test_preview(self, run, added_id, capsys):
        assert run("preview", added_id) == 0

        out = capsys.readouterr().out
        assert "again  1m" in out
        assert "good   12h" in out
        assert "easy   1d" in out

    def test_stats(self, run, added_id, capsys):
        assert run("stats") == 0

        out = capsys.readouterr().out
        assert "Total:       1" in out
        assert "Learning:    1" in out

    def test_explicit_now(self, run, added_id, capsys):
        run("--now", at(minutes=-5), "due")
        assert "Nothing due" in capsys.readouterr().out

    def test_invalid_now_exits(self, run):
        with pytest.raises(SystemExit):
            run("--now", "yesterday", "due")

    def test_reset_requires_confirmation(self, run, repository, added_id):
        assert run("reset") == 1
        assert len(repository.load_deck().items) == 1

        assert run("reset", "--yes") == 0
        assert repository.load_deck().items == []

    def test_storage_error_exit_code(self, run, repository, monkeypatch, capsys):
        def broken_load():
            raise StorageError("disk on fire")

        monkeypatch.setattr(repository, "load_deck", broken_load)

        assert run("stats") == 2
        assert "disk on fire" in capsys.readouterr().err
