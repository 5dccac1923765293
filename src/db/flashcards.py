"""Helpers for working with flashcard persistence."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional, Sequence

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from . import DEFAULT_CARD_TYPE, DEFAULT_DIFFICULTY, Deck, Flashcard, ReviewLog
from .topics import get_topic_scope


def ensure_utc(value: datetime) -> datetime:
    """Attach UTC to naive timestamps read back from SQLite, convert aware ones."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


@dataclass(slots=True)
class FlashcardPayload:
    """Definition of a flashcard about to be stored in a deck."""

    front: str
    back: str
    analogy: Optional[str] = None
    card_type: Optional[str] = None
    difficulty: Optional[int] = None
    visual_reference: Optional[str] = None
    topic_id: Optional[int] = None

    def normalized(self) -> "FlashcardPayload":
        """Return a payload with whitespace stripped and defaults applied."""
        difficulty = DEFAULT_DIFFICULTY if self.difficulty is None else self.difficulty
        if difficulty < 1 or difficulty > 5:
            raise ValueError(f"difficulty must be between 1 and 5, got {difficulty}")
        return FlashcardPayload(
            front=self.front.strip(),
            back=self.back.strip(),
            analogy=self.analogy.strip() if isinstance(self.analogy, str) else self.analogy,
            card_type=(self.card_type or DEFAULT_CARD_TYPE).strip(),
            difficulty=difficulty,
            visual_reference=(
                self.visual_reference.strip()
                if isinstance(self.visual_reference, str)
                else self.visual_reference
            ),
            topic_id=self.topic_id,
        )


@dataclass(slots=True)
class DueFlashcard:
    """A due card joined with the name of its deck."""

    id: int
    deck_id: int
    front: str
    back: str
    card_type: str
    difficulty: int
    interval: int
    ease_factor: float
    review_count: int
    due_date: datetime
    deck_name: str
    topic_id: Optional[int] = None


async def add_flashcards(
    session: AsyncSession,
    deck_id: int,
    payloads: Sequence[FlashcardPayload],
    now: Optional[datetime] = None,
) -> List[Flashcard]:
    """Insert new cards into a deck; they become due immediately."""
    if now is None:
        now = datetime.now(timezone.utc)

    cards: List[Flashcard] = []
    for payload in payloads:
        normalized = payload.normalized()
        card = Flashcard(
            deck_id=deck_id,
            topic_id=normalized.topic_id,
            front=normalized.front,
            back=normalized.back,
            analogy=normalized.analogy,
            card_type=normalized.card_type,
            difficulty=normalized.difficulty,
            visual_reference=normalized.visual_reference,
            interval=1,
            ease_factor=2.5,
            review_count=0,
            total_reviews=0,
            recall_success_rate=0.0,
            due_date=now,
        )
        session.add(card)
        cards.append(card)
    await session.flush()
    return cards


async def get_flashcard(
    session: AsyncSession,
    card_id: int,
    *,
    for_update: bool = False,
) -> Optional[Flashcard]:
    """Load a card by id, optionally locking its row for the current transaction."""
    stmt = select(Flashcard).where(Flashcard.id == card_id)
    if for_update:
        stmt = stmt.with_for_update()
    result = await session.execute(stmt)
    return result.scalars().first()


async def select_due_flashcards(
    session: AsyncSession,
    *,
    deck_id: Optional[int] = None,
    topic_id: Optional[int] = None,
    as_of: Optional[datetime] = None,
    limit: Optional[int] = None,
) -> List[DueFlashcard]:
    """Return cards whose due date has passed, optionally scoped to a deck and topic subtree."""
    if as_of is None:
        as_of = datetime.now(timezone.utc)
    as_of = ensure_utc(as_of)

    conditions = [Flashcard.due_date <= as_of]
    if deck_id is not None:
        conditions.append(Flashcard.deck_id == deck_id)
    if topic_id is not None:
        scope = await get_topic_scope(session, topic_id)
        conditions.append(Flashcard.topic_id.in_(sorted(scope)))

    stmt = (
        select(Flashcard, Deck.name)
        .join(Deck, Deck.id == Flashcard.deck_id)
        .where(*conditions)
        .order_by(Flashcard.due_date, Flashcard.id)
    )
    if limit is not None:
        stmt = stmt.limit(limit)

    result = await session.execute(stmt)
    return [
        DueFlashcard(
            id=card.id,
            deck_id=card.deck_id,
            front=card.front,
            back=card.back,
            card_type=card.card_type,
            difficulty=card.difficulty,
            interval=card.interval,
            ease_factor=card.ease_factor,
            review_count=card.review_count,
            due_date=ensure_utc(card.due_date),
            deck_name=deck_name,
            topic_id=card.topic_id,
        )
        for card, deck_name in result.all()
    ]


async def record_flashcard_review(
    session: AsyncSession,
    flashcard: Flashcard,
    *,
    rating: int,
    due_date: datetime,
    ease_factor: float,
    interval: int,
    review_count: int,
    recall_success_rate: float,
    response_time_ms: Optional[int] = None,
    now: Optional[datetime] = None,
) -> ReviewLog:
    """Persist a review outcome for the card and append its review log entry."""
    if now is None:
        now = datetime.now(timezone.utc)

    flashcard.due_date = due_date
    flashcard.ease_factor = ease_factor
    flashcard.interval = interval
    flashcard.review_count = review_count
    flashcard.total_reviews = (flashcard.total_reviews or 0) + 1
    flashcard.recall_success_rate = recall_success_rate
    flashcard.updated_at = now

    entry = ReviewLog(
        card_id=flashcard.id,
        deck_id=flashcard.deck_id,
        rating=rating,
        response_time_ms=response_time_ms,
        reviewed_at=now,
    )
    session.add(entry)
    await session.flush()
    return entry
