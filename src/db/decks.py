"""Deck persistence helpers."""

from dataclasses import dataclass
from typing import List, Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from . import Deck, Flashcard


@dataclass(slots=True)
class DeckSummary:
    """Deck details together with the number of cards it owns."""

    id: int
    name: str
    description: str
    card_count: int


async def create_deck(
    session: AsyncSession,
    name: str,
    description: Optional[str] = None,
) -> Deck:
    """Create a new deck and flush it so the identifier is available."""
    deck = Deck(name=name.strip(), description=(description or "").strip())
    session.add(deck)
    await session.flush()
    return deck


async def get_deck(session: AsyncSession, deck_id: int) -> Optional[Deck]:
    """Return a deck by identifier, if present."""
    return await session.get(Deck, deck_id)


async def list_decks(session: AsyncSession) -> List[DeckSummary]:
    """Return every deck with its card count, ordered by name."""
    card_count = func.count(Flashcard.id)
    stmt = (
        select(Deck.id, Deck.name, Deck.description, card_count)
        .outerjoin(Flashcard, Flashcard.deck_id == Deck.id)
        .group_by(Deck.id, Deck.name, Deck.description)
        .order_by(Deck.name, Deck.id)
    )
    result = await session.execute(stmt)
    return [
        DeckSummary(id=row[0], name=row[1], description=row[2] or "", card_count=row[3])
        for row in result.all()
    ]
