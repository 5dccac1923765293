"""Helpers for the per-deck topic forest."""

from __future__ import annotations

import logging
from typing import Dict, Iterable, List, Optional, Set, Tuple

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from . import DEFAULT_TOPIC_COLOR, Flashcard, Topic


LOGGER = logging.getLogger(__name__)

TopicIndex = Dict[Optional[int], List[int]]


async def create_topic(
    session: AsyncSession,
    deck_id: int,
    name: str,
    parent_id: Optional[int] = None,
    color: Optional[str] = None,
) -> Topic:
    """Create a topic, optionally nested under a parent from the same deck."""
    if parent_id is not None:
        parent = await session.get(Topic, parent_id)
        if parent is None:
            raise LookupError(f"Parent topic {parent_id} does not exist.")
        if parent.deck_id != deck_id:
            raise ValueError("A topic and its parent must belong to the same deck.")

    topic = Topic(
        deck_id=deck_id,
        parent_id=parent_id,
        name=name.strip(),
        color=color or DEFAULT_TOPIC_COLOR,
    )
    session.add(topic)
    await session.flush()
    return topic


async def list_deck_topics(session: AsyncSession, deck_id: int) -> List[Topic]:
    """Return all topics of a deck in creation order."""
    result = await session.execute(
        select(Topic).where(Topic.deck_id == deck_id).order_by(Topic.id)
    )
    return list(result.scalars().all())


def build_topic_index(rows: Iterable[Tuple[int, Optional[int]]]) -> TopicIndex:
    """Map each parent id (``None`` for roots) to the ids of its direct children."""
    index: TopicIndex = {}
    for topic_id, parent_id in rows:
        index.setdefault(parent_id, []).append(topic_id)
    return index


def collect_descendants(index: TopicIndex, topic_id: int) -> Set[int]:
    """Return every topic below ``topic_id`` using a level-by-level walk.

    The hierarchy is assumed to be acyclic. Already visited nodes are never
    expanded twice, so a malformed cycle ends the walk instead of looping.
    """
    descendants: Set[int] = set()
    frontier = list(index.get(topic_id, ()))
    while frontier:
        next_frontier: List[int] = []
        for child_id in frontier:
            if child_id in descendants or child_id == topic_id:
                continue
            descendants.add(child_id)
            next_frontier.extend(index.get(child_id, ()))
        frontier = next_frontier
    return descendants


async def get_topic_descendants(session: AsyncSession, topic_id: int) -> Set[int]:
    """Resolve the descendant set of a stored topic; empty when it is unknown or a leaf."""
    topic = await session.get(Topic, topic_id)
    if topic is None:
        return set()

    result = await session.execute(
        select(Topic.id, Topic.parent_id).where(Topic.deck_id == topic.deck_id)
    )
    index = build_topic_index((row[0], row[1]) for row in result.all())
    return collect_descendants(index, topic_id)


async def get_topic_scope(session: AsyncSession, topic_id: int) -> Set[int]:
    """Return the topic together with all of its descendants."""
    return {topic_id} | await get_topic_descendants(session, topic_id)


async def delete_topic_cascade(session: AsyncSession, topic_id: int) -> bool:
    """Delete a topic subtree after unassigning every card that points into it.

    Cards are never deleted. Returns ``False`` when the topic does not exist.
    """
    topic = await session.get(Topic, topic_id)
    if topic is None:
        return False

    affected = sorted(await get_topic_scope(session, topic_id))

    unassigned = await session.execute(
        update(Flashcard)
        .where(Flashcard.topic_id.in_(affected))
        .values(topic_id=None)
    )
    await session.execute(delete(Topic).where(Topic.id.in_(affected)))
    await session.flush()

    LOGGER.info(
        "Deleted topic %s with %d descendant(s); unassigned %d card(s).",
        topic_id,
        len(affected) - 1,
        unassigned.rowcount or 0,
    )
    return True
