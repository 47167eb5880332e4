"""
SQLAlchemy ORM Models for Deck Storage

A deck is persisted as a single JSON document per storage key, so older
app versions and other devices can exchange decks without schema migrations.
"""

from sqlalchemy import Column, DateTime, Integer, String, Text
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class DeckSnapshot(Base):
    """
    Latest saved state of one deck.

    The payload holds {"cards": [...], "lastReviewedAt": "..."} in the
    camelCase record shape; it is rewritten in full on every save.
    """
    __tablename__ = 'deck_snapshots'

    storage_key = Column(String(255), primary_key=True, nullable=False)
    payload = Column(Text, nullable=False)
    item_count = Column(Integer, nullable=False, default=0)
    saved_at = Column(DateTime(timezone=True), nullable=False)

    def __repr__(self):
        return f"<DeckSnapshot({self.storage_key}, items={self.item_count})>"
