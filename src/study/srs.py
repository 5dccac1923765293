"""Spaced-repetition scheduling helpers for flashcard reviews."""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone


DEFAULT_EASE_FACTOR = 2.5
MIN_EASE_FACTOR = 1.3
PASSING_QUALITY = 3
MIN_QUALITY = 1
MAX_QUALITY = 4


@dataclass(frozen=True, slots=True)
class ReviewSchedule:
    """Calculated review data for a flashcard after receiving a quality rating."""

    interval: int
    ease_factor: float
    repetitions: int
    due_date: datetime


def round_half_up(value: float) -> int:
    """Round to the nearest integer with halves going up (2.5 -> 3)."""
    return int(math.floor(value + 0.5))


def calculate_next_schedule(
    *,
    quality: int,
    current_interval: int,
    current_ease_factor: float,
    current_repetitions: int,
    now: datetime | None = None,
) -> ReviewSchedule:
    """Return the next review schedule using SM-2 on a 4-point quality scale.

    Quality is 1 (again), 2 (hard), 3 (good) or 4 (easy). The value is not
    validated here; callers reject anything outside that range.
    """
    if now is None:
        now = datetime.now(timezone.utc)

    ease_factor = current_ease_factor
    repetitions = current_repetitions

    if quality >= PASSING_QUALITY:
        if repetitions == 0:
            interval = 1
        elif repetitions == 1:
            interval = 6
        else:
            interval = max(1, round_half_up(current_interval * ease_factor))
        penalty = MAX_QUALITY - quality
        ease_factor += 0.1 - penalty * (0.08 + penalty * 0.02)
        if ease_factor < MIN_EASE_FACTOR:
            ease_factor = MIN_EASE_FACTOR
        repetitions += 1
    else:
        # Ease is only adjusted on success.
        interval = 1
        repetitions = 0

    return ReviewSchedule(
        interval=interval,
        ease_factor=ease_factor,
        repetitions=repetitions,
        due_date=now + timedelta(days=interval),
    )


def calculate_recall_success_rate(
    *,
    quality: int,
    current_rate: float,
    total_reviews: int,
) -> float:
    """Fold one more review into a running success percentage.

    ``total_reviews`` is the lifetime number of reviews taken before this one,
    independent of the streak counter that SM-2 resets on failure.
    """
    prior_successes = round_half_up((current_rate or 0.0) * total_reviews / 100)
    successes = prior_successes + 1 if quality >= PASSING_QUALITY else prior_successes
    return successes / (total_reviews + 1) * 100
