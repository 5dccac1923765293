from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from src.study.srs import (
    MIN_EASE_FACTOR,
    calculate_next_schedule,
    calculate_recall_success_rate,
    round_half_up,
)


NOW = datetime(2026, 3, 1, 9, 30, tzinfo=timezone.utc)


@pytest.mark.parametrize("quality", [3, 4])
def test_first_success_is_one_day(quality: int) -> None:
    schedule = calculate_next_schedule(
        quality=quality,
        current_interval=17,
        current_ease_factor=2.5,
        current_repetitions=0,
        now=NOW,
    )

    assert schedule.interval == 1
    assert schedule.repetitions == 1


@pytest.mark.parametrize("quality", [3, 4])
def test_second_success_is_six_days(quality: int) -> None:
    schedule = calculate_next_schedule(
        quality=quality,
        current_interval=1,
        current_ease_factor=2.5,
        current_repetitions=1,
        now=NOW,
    )

    assert schedule.interval == 6
    assert schedule.repetitions == 2


@pytest.mark.parametrize("quality", [1, 2])
@pytest.mark.parametrize("interval,repetitions", [(1, 0), (6, 1), (40, 7)])
def test_failure_resets_interval_and_streak(quality: int, interval: int, repetitions: int) -> None:
    schedule = calculate_next_schedule(
        quality=quality,
        current_interval=interval,
        current_ease_factor=2.1,
        current_repetitions=repetitions,
        now=NOW,
    )

    assert schedule.interval == 1
    assert schedule.repetitions == 0
    assert schedule.ease_factor == 2.1


def test_easy_first_review_raises_ease() -> None:
    schedule = calculate_next_schedule(
        quality=4,
        current_interval=1,
        current_ease_factor=2.5,
        current_repetitions=0,
        now=NOW,
    )

    assert schedule.interval == 1
    assert schedule.repetitions == 1
    assert schedule.ease_factor == pytest.approx(2.6)


def test_good_review_grows_interval_with_prior_ease() -> None:
    schedule = calculate_next_schedule(
        quality=3,
        current_interval=6,
        current_ease_factor=2.5,
        current_repetitions=2,
        now=NOW,
    )

    assert schedule.interval == 15
    assert schedule.repetitions == 3
    assert schedule.ease_factor == pytest.approx(2.5)


def test_again_keeps_ease_unchanged() -> None:
    schedule = calculate_next_schedule(
        quality=1,
        current_interval=15,
        current_ease_factor=2.5,
        current_repetitions=3,
        now=NOW,
    )

    assert schedule.interval == 1
    assert schedule.repetitions == 0
    assert schedule.ease_factor == 2.5


def test_interval_rounds_half_up() -> None:
    # 5 * 1.3 = 6.5
    schedule = calculate_next_schedule(
        quality=4,
        current_interval=5,
        current_ease_factor=1.3,
        current_repetitions=4,
        now=NOW,
    )

    assert schedule.interval == 7


def test_ease_factor_never_drops_below_floor() -> None:
    ease = 2.5
    interval = 1
    repetitions = 0
    for quality in [3, 1, 3, 2, 3, 3, 1, 3] * 10:
        schedule = calculate_next_schedule(
            quality=quality,
            current_interval=interval,
            current_ease_factor=ease,
            current_repetitions=repetitions,
            now=NOW,
        )
        ease, interval, repetitions = schedule.ease_factor, schedule.interval, schedule.repetitions
        assert ease >= MIN_EASE_FACTOR
        assert interval >= 1


@pytest.mark.parametrize("quality", [1, 2, 3, 4])
def test_due_date_is_now_plus_interval(quality: int) -> None:
    schedule = calculate_next_schedule(
        quality=quality,
        current_interval=6,
        current_ease_factor=2.5,
        current_repetitions=2,
        now=NOW,
    )

    assert schedule.due_date == NOW + timedelta(days=schedule.interval)


def test_due_date_defaults_to_wall_clock() -> None:
    before = datetime.now(timezone.utc)
    schedule = calculate_next_schedule(
        quality=3,
        current_interval=1,
        current_ease_factor=2.5,
        current_repetitions=0,
    )
    after = datetime.now(timezone.utc)

    assert before + timedelta(days=1) <= schedule.due_date <= after + timedelta(days=1)


def test_identical_inputs_give_identical_outputs() -> None:
    kwargs = dict(
        quality=4,
        current_interval=15,
        current_ease_factor=2.6,
        current_repetitions=3,
        now=NOW,
    )

    assert calculate_next_schedule(**kwargs) == calculate_next_schedule(**kwargs)


def test_round_half_up() -> None:
    assert round_half_up(2.5) == 3
    assert round_half_up(2.4999) == 2
    assert round_half_up(0.5) == 1


def test_success_rate_first_review() -> None:
    assert calculate_recall_success_rate(quality=3, current_rate=0.0, total_reviews=0) == 100.0
    assert calculate_recall_success_rate(quality=1, current_rate=0.0, total_reviews=0) == 0.0


def test_success_rate_accumulates_over_lifetime_reviews() -> None:
    # Two successes out of three reviews, then a failure.
    rate = calculate_recall_success_rate(quality=1, current_rate=200 / 3, total_reviews=3)

    assert rate == pytest.approx(50.0)
