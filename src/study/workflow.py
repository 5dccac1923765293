"""Study operations exposed to the surrounding application."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from src.db.flashcards import (
    DueFlashcard,
    ensure_utc,
    get_flashcard,
    record_flashcard_review,
    select_due_flashcards,
)
from src.db.topics import delete_topic_cascade
from src.study.errors import StudyNotFoundError, StudyStorageError, StudyValidationError
from src.study.srs import (
    MAX_QUALITY,
    MIN_QUALITY,
    calculate_next_schedule,
    calculate_recall_success_rate,
)


LOGGER = logging.getLogger(__name__)


@dataclass(slots=True)
class ReviewOutcome:
    """Scheduling state of a card right after a review was recorded."""

    card_id: int
    interval: int
    ease_factor: float
    review_count: int
    due_date: datetime
    recall_success_rate: float


def _require_id(value: object, name: str) -> int:
    if isinstance(value, bool) or not isinstance(value, int) or value < 1:
        raise StudyValidationError(f"{name} must be a positive integer.")
    return value


def _optional_id(value: object, name: str) -> Optional[int]:
    if value is None:
        return None
    return _require_id(value, name)


def validate_quality(quality: object) -> int:
    """Return ``quality`` when it is one of 1, 2, 3 or 4."""
    if isinstance(quality, bool) or not isinstance(quality, int):
        raise StudyValidationError("quality must be an integer between 1 and 4.")
    if quality < MIN_QUALITY or quality > MAX_QUALITY:
        raise StudyValidationError(f"quality must be between 1 and 4, got {quality}.")
    return quality


class StudyWorkflow:
    """Coordinates due-card selection, review recording and topic removal."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        clock: Optional[Callable[[], datetime]] = None,
    ) -> None:
        self._session_factory = session_factory
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    async def get_due_cards(
        self,
        deck_id: Optional[int] = None,
        topic_id: Optional[int] = None,
        limit: Optional[int] = None,
    ) -> List[DueFlashcard]:
        """Return the cards currently due, scoped by deck and/or topic subtree."""
        deck_id = _optional_id(deck_id, "deck_id")
        topic_id = _optional_id(topic_id, "topic_id")

        try:
            async with self._session_factory() as session:
                return await select_due_flashcards(
                    session,
                    deck_id=deck_id,
                    topic_id=topic_id,
                    as_of=self._clock(),
                    limit=limit,
                )
        except SQLAlchemyError as exc:
            LOGGER.exception("Failed to load due cards (deck=%s, topic=%s).", deck_id, topic_id)
            raise StudyStorageError("Failed to load due cards.") from exc

    async def submit_review(
        self,
        card_id: int,
        deck_id: int,
        quality: int,
        response_time_ms: Optional[int] = None,
    ) -> ReviewOutcome:
        """Apply a review: reschedule the card and append a log entry atomically."""
        card_id = _require_id(card_id, "card_id")
        deck_id = _require_id(deck_id, "deck_id")
        quality = validate_quality(quality)
        if response_time_ms is not None:
            if isinstance(response_time_ms, bool) or not isinstance(response_time_ms, int) or response_time_ms < 0:
                raise StudyValidationError("response_time_ms must be a non-negative integer.")

        now = ensure_utc(self._clock())

        try:
            async with self._session_factory() as session:
                async with session.begin():
                    flashcard = await get_flashcard(session, card_id, for_update=True)
                    if flashcard is None:
                        raise StudyNotFoundError(f"Card {card_id} not found.")
                    if flashcard.deck_id != deck_id:
                        raise StudyValidationError(
                            f"Card {card_id} does not belong to deck {deck_id}."
                        )

                    schedule = calculate_next_schedule(
                        quality=quality,
                        current_interval=flashcard.interval,
                        current_ease_factor=flashcard.ease_factor,
                        current_repetitions=flashcard.review_count,
                        now=now,
                    )
                    success_rate = calculate_recall_success_rate(
                        quality=quality,
                        current_rate=flashcard.recall_success_rate,
                        total_reviews=flashcard.total_reviews,
                    )

                    await record_flashcard_review(
                        session,
                        flashcard,
                        rating=quality,
                        due_date=schedule.due_date,
                        ease_factor=schedule.ease_factor,
                        interval=schedule.interval,
                        review_count=schedule.repetitions,
                        recall_success_rate=success_rate,
                        response_time_ms=response_time_ms,
                        now=now,
                    )
        except SQLAlchemyError as exc:
            LOGGER.exception("Failed to record review for card %s.", card_id)
            raise StudyStorageError(f"Failed to record review for card {card_id}.") from exc

        LOGGER.info(
            "Reviewed card %s (q=%d): interval=%d ease=%.2f reps=%d due=%s",
            card_id,
            quality,
            schedule.interval,
            schedule.ease_factor,
            schedule.repetitions,
            schedule.due_date.isoformat(),
        )
        return ReviewOutcome(
            card_id=card_id,
            interval=schedule.interval,
            ease_factor=schedule.ease_factor,
            review_count=schedule.repetitions,
            due_date=schedule.due_date,
            recall_success_rate=success_rate,
        )

    async def delete_topic(self, topic_id: int) -> None:
        """Delete a topic subtree, unassigning its cards first."""
        topic_id = _require_id(topic_id, "topic_id")

        try:
            async with self._session_factory() as session:
                async with session.begin():
                    deleted = await delete_topic_cascade(session, topic_id)
                    if not deleted:
                        raise StudyNotFoundError(f"Topic {topic_id} not found.")
        except SQLAlchemyError as exc:
            LOGGER.exception("Failed to delete topic %s.", topic_id)
            raise StudyStorageError(f"Failed to delete topic {topic_id}.") from exc
