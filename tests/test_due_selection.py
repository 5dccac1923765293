from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from src.db.decks import create_deck
from src.db.flashcards import FlashcardPayload, add_flashcards, select_due_flashcards
from src.db.topics import create_topic


NOW = datetime(2026, 5, 10, 12, 0, tzinfo=timezone.utc)


async def _seed(session_factory):
    async with session_factory() as session:
        async with session.begin():
            physics = await create_deck(session, "Physics")
            history = await create_deck(session, "History")
            mechanics = await create_topic(session, physics.id, "Mechanics")
            kinematics = await create_topic(session, physics.id, "Kinematics", parent_id=mechanics.id)
            optics = await create_topic(session, physics.id, "Optics")

            overdue_child, future, unassigned, optics_card = await add_flashcards(
                session,
                physics.id,
                [
                    FlashcardPayload(front="v = ?", back="dx/dt", topic_id=kinematics.id),
                    FlashcardPayload(front="F = ?", back="ma", topic_id=mechanics.id),
                    FlashcardPayload(front="c = ?", back="3e8 m/s"),
                    FlashcardPayload(front="n = ?", back="c/v", topic_id=optics.id),
                ],
            )
            (waterloo,) = await add_flashcards(
                session,
                history.id,
                [FlashcardPayload(front="Waterloo", back="1815")],
            )

            overdue_child.due_date = NOW - timedelta(days=1)
            future.due_date = NOW + timedelta(days=1)
            unassigned.due_date = NOW - timedelta(hours=2)
            optics_card.due_date = NOW - timedelta(days=3)
            waterloo.due_date = NOW

    return {
        "physics": physics.id,
        "history": history.id,
        "mechanics": mechanics.id,
        "kinematics": kinematics.id,
        "optics": optics.id,
        "overdue_child": overdue_child.id,
        "future": future.id,
        "unassigned": unassigned.id,
        "optics_card": optics_card.id,
        "waterloo": waterloo.id,
    }


@pytest.mark.asyncio
async def test_topic_filter_includes_descendant_topics(session_factory) -> None:
    ids = await _seed(session_factory)

    async with session_factory() as session:
        due = await select_due_flashcards(session, topic_id=ids["mechanics"], as_of=NOW)

    assert [card.id for card in due] == [ids["overdue_child"]]
    assert due[0].deck_name == "Physics"
    assert due[0].topic_id == ids["kinematics"]


@pytest.mark.asyncio
async def test_future_cards_are_never_returned(session_factory) -> None:
    ids = await _seed(session_factory)

    async with session_factory() as session:
        for kwargs in (
            {},
            {"deck_id": ids["physics"]},
            {"topic_id": ids["mechanics"]},
            {"deck_id": ids["physics"], "topic_id": ids["mechanics"]},
        ):
            due = await select_due_flashcards(session, as_of=NOW, **kwargs)
            assert ids["future"] not in {card.id for card in due}


@pytest.mark.asyncio
async def test_unfiltered_query_spans_decks_and_is_ordered_by_due_date(session_factory) -> None:
    ids = await _seed(session_factory)

    async with session_factory() as session:
        due = await select_due_flashcards(session, as_of=NOW)

    assert [card.id for card in due] == [
        ids["optics_card"],
        ids["overdue_child"],
        ids["unassigned"],
        ids["waterloo"],
    ]
    assert {card.deck_name for card in due} == {"Physics", "History"}


@pytest.mark.asyncio
async def test_deck_filter_restricts_to_one_deck(session_factory) -> None:
    ids = await _seed(session_factory)

    async with session_factory() as session:
        due = await select_due_flashcards(session, deck_id=ids["history"], as_of=NOW)

    assert [card.id for card in due] == [ids["waterloo"]]
    assert due[0].deck_name == "History"
    assert due[0].due_date.tzinfo is not None


@pytest.mark.asyncio
async def test_deck_and_topic_filters_combine(session_factory) -> None:
    ids = await _seed(session_factory)

    async with session_factory() as session:
        same_deck = await select_due_flashcards(
            session, deck_id=ids["physics"], topic_id=ids["optics"], as_of=NOW
        )
        other_deck = await select_due_flashcards(
            session, deck_id=ids["history"], topic_id=ids["optics"], as_of=NOW
        )

    assert [card.id for card in same_deck] == [ids["optics_card"]]
    assert other_deck == []


@pytest.mark.asyncio
async def test_topic_filter_excludes_unassigned_cards(session_factory) -> None:
    ids = await _seed(session_factory)

    async with session_factory() as session:
        due = await select_due_flashcards(
            session, deck_id=ids["physics"], topic_id=ids["optics"], as_of=NOW
        )

    assert ids["unassigned"] not in {card.id for card in due}


@pytest.mark.asyncio
async def test_unknown_topic_yields_empty_list(session_factory) -> None:
    await _seed(session_factory)

    async with session_factory() as session:
        due = await select_due_flashcards(session, topic_id=777, as_of=NOW)

    assert due == []


@pytest.mark.asyncio
async def test_limit_caps_the_queue(session_factory) -> None:
    ids = await _seed(session_factory)

    async with session_factory() as session:
        due = await select_due_flashcards(session, as_of=NOW, limit=1)

    assert [card.id for card in due] == [ids["optics_card"]]
