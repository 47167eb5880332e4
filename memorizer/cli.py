"""
Command line front end for a word memorizer deck.

Usage:
    # Add a word
    word-memorizer add "huis" "house" --notes "het huis"

    # Show what is due
    word-memorizer due

    # Rate an item (again, hard, good, easy or 1-4)
    word-memorizer review <item-id> good

    # Show the schedule each rating would produce
    word-memorizer preview <item-id>

    # Deck counters
    word-memorizer stats

    # Delete every stored deck
    word-memorizer reset --yes

The database comes from MEMORIZER_DATABASE_URL (or --database-url).
"""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Optional

from sqlalchemy import create_engine

from memorizer.analytics import compute_deck_stats, count_upcoming_due
from memorizer.config import SchedulerPolicy, get_database_url
from memorizer.deck_repository import Deck, DeckRepository
from memorizer.display import (
    due_urgency,
    format_counter,
    format_due_label,
    format_interval_label,
    queue_load_status_label,
)
from memorizer.exceptions import ItemNotFoundError, MemorizerError
from memorizer.fsrs import ItemFactory, Rating, preview_intervals, review
from memorizer.fsrs.clock import Clock, SystemClock, read_wall_clock
from memorizer.fsrs.memory_state import ReviewItem
from memorizer.fsrs.timestamps import canonical_iso, format_iso
from memorizer.schemas import parse_rating_input
from memorizer.session import apply_due_review, due_items, select_latest_reviewed_at

logger = logging.getLogger(__name__)


RATING_NAMES = {rating.name.lower(): int(rating) for rating in Rating}


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="word-memorizer",
        description="Spaced-repetition deck for memorizing words",
    )
    parser.add_argument(
        "--database-url",
        type=str,
        default=None,
        help="SQLAlchemy database URL (default: MEMORIZER_DATABASE_URL or a local SQLite file)"
    )
    parser.add_argument(
        "--storage-key",
        type=str,
        default=None,
        help="Deck key inside the database (default: MEMORIZER_STORAGE_KEY)"
    )
    parser.add_argument(
        "--now",
        type=str,
        default=None,
        help="Review instant as ISO-8601 (default: current time)"
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")

    subparsers = parser.add_subparsers(dest="command", required=True)

    add_parser = subparsers.add_parser("add", help="Add a new word")
    add_parser.add_argument("word", help="Front of the card")
    add_parser.add_argument("meaning", help="Back of the card")
    add_parser.add_argument("--notes", type=str, default=None, help="Optional notes")

    due_parser = subparsers.add_parser("due", help="List items due now")
    due_parser.add_argument("--limit", type=int, default=None, help="Maximum items to list")

    review_parser = subparsers.add_parser("review", help="Rate a due item")
    review_parser.add_argument("item_id", help="Item id")
    review_parser.add_argument("rating", help="again, hard, good, easy or 1-4")
    review_parser.add_argument(
        "--force",
        action="store_true",
        help="Review even if the item is not due yet"
    )

    preview_parser = subparsers.add_parser("preview", help="Show the next schedule for each rating")
    preview_parser.add_argument("item_id", help="Item id")

    subparsers.add_parser("stats", help="Show deck counters")

    reset_parser = subparsers.add_parser("reset", help="Delete all stored decks")
    reset_parser.add_argument("--yes", action="store_true", help="Confirm deletion")

    return parser


def resolve_rating(value: str) -> float:
    """Map a rating name or number to the numeric rating value."""
    named = RATING_NAMES.get(value.strip().lower())
    if named is not None:
        return float(named)
    return parse_rating_input(value)


def find_item(deck: Deck, item_id: str) -> ReviewItem:
    for item in deck.items:
        if item.id == item_id:
            return item
    raise ItemNotFoundError(f"No item with id {item_id!r}")


# ---- Commands ----

def cmd_add(repository: DeckRepository, factory: ItemFactory, now: str, args) -> int:
    deck = repository.load_deck()
    item = factory.create(args.word, args.meaning, now, args.notes)
    deck.items.append(item)
    repository.save_deck(deck)
    print(f"Added {item.word} = {item.meaning}")
    print(f"  id: {item.id}")
    return 0


def cmd_due(repository: DeckRepository, now: str, args) -> int:
    deck = repository.load_deck()
    queue = due_items(deck.items, now)
    if not queue:
        print("Nothing due. Well done!")
        return 0

    shown = queue if args.limit is None else queue[:max(0, args.limit)]
    print(f"{len(queue)} due")
    print("-" * 60)
    for item in shown:
        urgency = due_urgency(item.due_at, now)
        print(f"{item.id}  {item.word}  [{item.phase}]  {urgency.label} ({urgency.tone})")
    return 0


def cmd_review(repository: DeckRepository, clock: Clock, policy: SchedulerPolicy, now: str, args) -> int:
    deck = repository.load_deck()
    item = find_item(deck, args.item_id)
    rating = resolve_rating(args.rating)

    if args.force:
        outcome = review(item, rating, now, clock=clock, policy=policy)
        deck.items = [outcome.item if existing.id == item.id else existing for existing in deck.items]
        reviewed = True
    else:
        deck.items, reviewed = apply_due_review(deck.items, item.id, rating, now, clock=clock, policy=policy)

    if not reviewed:
        print(f"{item.word} is not due ({format_due_label(item.due_at, now)}); use --force to review anyway")
        return 1

    updated = find_item(deck, item.id)
    deck.last_reviewed_at = select_latest_reviewed_at(deck.last_reviewed_at, updated.updated_at)
    repository.save_deck(deck)
    print(f"{updated.word}: {updated.phase}, {format_due_label(updated.due_at, updated.updated_at)}")
    print(f"  stability {updated.stability:.2f}d, difficulty {updated.difficulty:.2f}, "
          f"reps {format_counter(updated.reps)}, lapses {format_counter(updated.lapses)}")
    return 0


def cmd_preview(repository: DeckRepository, clock: Clock, policy: SchedulerPolicy, now: str, args) -> int:
    deck = repository.load_deck()
    item = find_item(deck, args.item_id)
    preview = preview_intervals(item, now, clock=clock, policy=policy)
    print(f"{item.word} [{item.phase}]")
    for name, days in preview.as_dict().items():
        print(f"  {name:<6} {format_interval_label(days)}")
    return 0


def cmd_stats(repository: DeckRepository, now: str) -> int:
    deck = repository.load_deck()
    stats = compute_deck_stats(deck.items, now)
    upcoming = count_upcoming_due(deck.items, now)
    percent = 100.0 * stats.due_now / stats.total if stats.total else 0.0

    print(f"Total:       {format_counter(stats.total)}")
    print(f"Due now:     {format_counter(stats.due_now)} ({queue_load_status_label(percent, 0, stats.total)})")
    print(f"Next 24h:    {format_counter(upcoming)}")
    print(f"Learning:    {format_counter(stats.learning)}")
    print(f"Review:      {format_counter(stats.review)}")
    print(f"Relearning:  {format_counter(stats.relearning)}")
    if deck.last_reviewed_at:
        print(f"Last review: {deck.last_reviewed_at}")
    return 0


def cmd_reset(repository: DeckRepository, args) -> int:
    if not args.yes:
        print("This deletes every stored deck. Re-run with --yes to confirm.")
        return 1
    repository.reset()
    print("Deck storage reset")
    return 0


def main(
    argv: Optional[list[str]] = None,
    *,
    repository: Optional[DeckRepository] = None,
    clock: Optional[Clock] = None
) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    clock = clock or SystemClock()
    policy = SchedulerPolicy.from_env()
    now = canonical_iso(args.now) if args.now else format_iso(read_wall_clock(clock))
    if now is None:
        parser.error(f"--now must be an ISO-8601 timestamp, got {args.now!r}")

    if repository is None:
        engine = create_engine(args.database_url or get_database_url())
        repository = DeckRepository(engine=engine, storage_key=args.storage_key, clock=clock, policy=policy)

    try:
        repository.init_db()
        if args.command == "add":
            return cmd_add(repository, ItemFactory(clock=clock, policy=policy), now, args)
        if args.command == "due":
            return cmd_due(repository, now, args)
        if args.command == "review":
            return cmd_review(repository, clock, policy, now, args)
        if args.command == "preview":
            return cmd_preview(repository, clock, policy, now, args)
        if args.command == "stats":
            return cmd_stats(repository, now)
        if args.command == "reset":
            return cmd_reset(repository, args)
    except ItemNotFoundError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    except MemorizerError as exc:
        logger.error("Command %s failed: %s", args.command, exc)
        print(f"Error: {exc}", file=sys.stderr)
        return 2

    parser.error(f"Unknown command {args.command!r}")
    return 2


if __name__ == "__main__":
    sys.exit(main())
