"""Telegram handlers for studying flashcards with spaced repetition."""

from __future__ import annotations

import logging
import time
from contextlib import suppress
from html import escape
from typing import Dict, List, Optional, Sequence, Tuple

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from telegram import InlineKeyboardButton, InlineKeyboardMarkup, Update
from telegram.constants import ParseMode
from telegram.ext import ContextTypes

from src.db.decks import list_decks
from src.db.flashcards import DueFlashcard, get_flashcard
from src.db.topics import build_topic_index, list_deck_topics
from src.study import (
    StudyNotFoundError,
    StudyStorageError,
    StudyValidationError,
    StudyWorkflow,
)


LOGGER = logging.getLogger(__name__)

RATING_LABELS = {1: "Again", 2: "Hard", 3: "Good", 4: "Easy"}

Scope = Tuple[Optional[int], Optional[int]]


class StudyAgent:
    """Exposes due-card listing, study sessions and topic deletion over Telegram."""

    def __init__(
        self,
        workflow: StudyWorkflow,
        session_factory: Optional[async_sessionmaker[AsyncSession]] = None,
        owner_chat_id: Optional[int] = None,
        session_limit: int = 20,
    ) -> None:
        self._workflow = workflow
        self._session_factory = session_factory
        self._owner_chat_id = owner_chat_id
        self._session_limit = session_limit
        self._study_scopes: Dict[int, Scope] = {}
        self._shown_at: Dict[Tuple[int, int], float] = {}

    def _is_authorized(self, chat_id: int) -> bool:
        return self._owner_chat_id is None or chat_id == self._owner_chat_id

    @staticmethod
    def _parse_scope_args(args: Optional[Sequence[str]]) -> Optional[Scope]:
        """Parse ``[deck_id] [topic_id]`` command arguments; ``0`` means no filter."""
        values: List[Optional[int]] = [None, None]
        for position, raw in enumerate((args or [])[:2]):
            try:
                parsed = int(raw)
            except ValueError:
                return None
            if parsed < 0:
                return None
            values[position] = parsed or None
        return values[0], values[1]

    async def handle_start(
        self,
        update: Update,
        context: ContextTypes.DEFAULT_TYPE,
    ) -> None:
        """Describe the available commands."""
        if not update.message:
            return

        chat = update.effective_chat
        if chat is None or not self._is_authorized(chat.id):
            return

        greeting = (
            "Hi! I schedule your flashcard reviews with spaced repetition.\n"
            "/decks - list decks\n"
            "/topics <deck_id> - show a deck's topic tree\n"
            "/due [deck_id] [topic_id] - list cards due now\n"
            "/study [deck_id] [topic_id] - review due cards one by one\n"
            "/deletetopic <topic_id> - delete a topic and its subtopics"
        )
        await update.message.reply_text(greeting)

    async def handle_decks(
        self,
        update: Update,
        context: ContextTypes.DEFAULT_TYPE,
    ) -> None:
        if not update.message or self._session_factory is None:
            return

        chat = update.effective_chat
        if chat is None or not self._is_authorized(chat.id):
            return

        async with self._session_factory() as session:
            decks = await list_decks(session)

        if not decks:
            await update.message.reply_text("No decks yet.")
            return

        lines = ["<b>Decks</b>"]
        for deck in decks:
            lines.append(
                f"#{deck.id} {self._escape_html(deck.name)} ({deck.card_count} cards)"
            )
        await update.message.reply_text("\n".join(lines), parse_mode=ParseMode.HTML)

    async def handle_topics(
        self,
        update: Update,
        context: ContextTypes.DEFAULT_TYPE,
    ) -> None:
        """Render the topic forest of a deck as an indented outline."""
        if not update.message or self._session_factory is None:
            return

        chat = update.effective_chat
        if chat is None or not self._is_authorized(chat.id):
            return

        args = getattr(context, "args", None) or []
        try:
            deck_id = int(args[0])
        except (IndexError, ValueError):
            await update.message.reply_text("Usage: /topics <deck_id>")
            return

        async with self._session_factory() as session:
            topics = await list_deck_topics(session, deck_id)

        if not topics:
            await update.message.reply_text("This deck has no topics.")
            return

        names = {topic.id: topic.name for topic in topics}
        index = build_topic_index((topic.id, topic.parent_id) for topic in topics)
        lines: List[str] = [f"<b>Topics of deck #{deck_id}</b>"]
        stack = [(root_id, 0) for root_id in reversed(index.get(None, []))]
        seen = set()
        while stack:
            topic_id, depth = stack.pop()
            if topic_id in seen:
                continue
            seen.add(topic_id)
            lines.append(f"{'  ' * depth}- #{topic_id} {self._escape_html(names[topic_id])}")
            for child_id in reversed(index.get(topic_id, [])):
                stack.append((child_id, depth + 1))

        await update.message.reply_text("\n".join(lines), parse_mode=ParseMode.HTML)

    async def handle_due(
        self,
        update: Update,
        context: ContextTypes.DEFAULT_TYPE,
    ) -> None:
        """List the cards that are due now within the requested scope."""
        if not update.message:
            return

        chat = update.effective_chat
        if chat is None or not self._is_authorized(chat.id):
            return

        scope = self._parse_scope_args(getattr(context, "args", None))
        if scope is None:
            await update.message.reply_text("Usage: /due [deck_id] [topic_id]")
            return

        try:
            cards = await self._workflow.get_due_cards(*scope, limit=self._session_limit)
        except StudyStorageError:
            await update.message.reply_text("Could not load due cards. Please try again.")
            return

        if not cards:
            await update.message.reply_text("Nothing is due right now.")
            return

        lines = [f"<b>Due cards</b> ({len(cards)})"]
        for card in cards:
            lines.append(
                f"#{card.id} {self._escape_html(card.front)} "
                f"<i>({self._escape_html(card.deck_name)})</i>"
            )
        await update.message.reply_text("\n".join(lines), parse_mode=ParseMode.HTML)

    async def handle_study(
        self,
        update: Update,
        context: ContextTypes.DEFAULT_TYPE,
    ) -> None:
        """Start a study session by showing the first due card in scope."""
        if not update.message:
            return

        chat = update.effective_chat
        if chat is None or not self._is_authorized(chat.id):
            return

        scope = self._parse_scope_args(getattr(context, "args", None))
        if scope is None:
            await update.message.reply_text("Usage: /study [deck_id] [topic_id]")
            return

        self._study_scopes[chat.id] = scope
        await self._send_next_card(chat.id, update.message)

    async def _send_next_card(self, chat_id: int, message) -> None:  # type: ignore[no-untyped-def]
        deck_id, topic_id = self._study_scopes.get(chat_id, (None, None))
        try:
            cards = await self._workflow.get_due_cards(deck_id, topic_id, limit=1)
        except StudyStorageError:
            await message.reply_text("Could not load due cards. Please try again.")
            return

        if not cards:
            await message.reply_text("All caught up! No cards are due in this scope.")
            return

        card = cards[0]
        for key in [key for key in self._shown_at if key[0] == chat_id]:
            del self._shown_at[key]
        self._shown_at[(chat_id, card.id)] = time.monotonic()
        await message.reply_text(
            self._format_card_question(card),
            parse_mode=ParseMode.HTML,
            reply_markup=self._build_reveal_keyboard(card.id),
        )

    @staticmethod
    def _build_reveal_keyboard(card_id: int) -> InlineKeyboardMarkup:
        return InlineKeyboardMarkup(
            [[InlineKeyboardButton("Show answer", callback_data=f"st_show:{card_id}")]]
        )

    @staticmethod
    def _build_rating_keyboard(card_id: int, deck_id: int) -> InlineKeyboardMarkup:
        buttons = [
            InlineKeyboardButton(label, callback_data=f"st_rate:{card_id}:{deck_id}:{quality}")
            for quality, label in RATING_LABELS.items()
        ]
        return InlineKeyboardMarkup([buttons])

    async def handle_show_card(
        self,
        update: Update,
        context: ContextTypes.DEFAULT_TYPE,
    ) -> None:
        query = update.callback_query
        if query is None or query.data is None:
            return

        if self._session_factory is None:
            await query.answer("Cards are unavailable right now.", show_alert=True)
            return

        parts = query.data.split(":")
        if len(parts) != 2 or parts[0] != "st_show":
            await query.answer()
            return

        try:
            card_id = int(parts[1])
        except ValueError:
            await query.answer("Invalid request.", show_alert=True)
            return

        message = query.message
        if message is None or message.chat is None or not self._is_authorized(message.chat.id):
            await query.answer()
            return

        async with self._session_factory() as session:
            flashcard = await get_flashcard(session, card_id)

        if flashcard is None:
            await query.answer("Card not found.", show_alert=True)
            return

        lines = [
            f"<b>Q:</b> {self._escape_html(flashcard.front)}",
            f"<b>A:</b> {self._escape_html(flashcard.back)}",
        ]
        if flashcard.analogy:
            lines.append(f"<i>Analogy:</i> {self._escape_html(flashcard.analogy)}")
        lines.append("")
        lines.append("<i>How well did you recall it?</i>")

        try:
            await query.edit_message_text(
                "\n".join(lines),
                parse_mode=ParseMode.HTML,
                reply_markup=self._build_rating_keyboard(flashcard.id, flashcard.deck_id),
            )
        except Exception:  # pragma: no cover - best effort update
            LOGGER.debug("Could not reveal card answer.", exc_info=True)
            await message.reply_text(
                "\n".join(lines),
                parse_mode=ParseMode.HTML,
                reply_markup=self._build_rating_keyboard(flashcard.id, flashcard.deck_id),
            )

        await query.answer()

    async def handle_rate_card(
        self,
        update: Update,
        context: ContextTypes.DEFAULT_TYPE,
    ) -> None:
        query = update.callback_query
        if query is None or query.data is None:
            return

        parts = query.data.split(":")
        if len(parts) != 4 or parts[0] != "st_rate":
            await query.answer()
            return

        try:
            card_id = int(parts[1])
            deck_id = int(parts[2])
            quality = int(parts[3])
        except ValueError:
            await query.answer("Invalid rating.", show_alert=True)
            return

        if quality not in RATING_LABELS:
            await query.answer("Rating must be between 1 and 4.", show_alert=True)
            return

        message = query.message
        if message is None or message.chat is None:
            await query.answer()
            return

        chat_id = message.chat.id
        if not self._is_authorized(chat_id):
            await query.answer()
            return

        response_time_ms: Optional[int] = None
        shown_at = self._shown_at.pop((chat_id, card_id), None)
        if shown_at is not None:
            response_time_ms = int((time.monotonic() - shown_at) * 1000)

        try:
            outcome = await self._workflow.submit_review(
                card_id, deck_id, quality, response_time_ms=response_time_ms
            )
        except StudyNotFoundError:
            await query.answer("Card not found.", show_alert=True)
            return
        except StudyValidationError as exc:
            await query.answer(str(exc), show_alert=True)
            return
        except StudyStorageError:
            await query.answer("Could not save the rating. Please try again.", show_alert=True)
            return

        with suppress(Exception):
            await query.edit_message_reply_markup(reply_markup=None)

        await query.answer("Rating saved.")
        await message.reply_text(
            f"{RATING_LABELS[quality]}: next review {self._describe_interval(outcome.interval)}."
        )
        await self._send_next_card(chat_id, message)

    async def handle_delete_topic(
        self,
        update: Update,
        context: ContextTypes.DEFAULT_TYPE,
    ) -> None:
        if not update.message:
            return

        chat = update.effective_chat
        if chat is None or not self._is_authorized(chat.id):
            return

        args = getattr(context, "args", None) or []
        try:
            topic_id = int(args[0])
        except (IndexError, ValueError):
            await update.message.reply_text("Usage: /deletetopic <topic_id>")
            return

        try:
            await self._workflow.delete_topic(topic_id)
        except StudyValidationError:
            await update.message.reply_text("Usage: /deletetopic <topic_id>")
            return
        except StudyNotFoundError:
            await update.message.reply_text(f"Topic #{topic_id} not found.")
            return
        except StudyStorageError:
            await update.message.reply_text("Could not delete the topic. Please try again.")
            return

        await update.message.reply_text(
            f"Topic #{topic_id} and its subtopics were deleted. Their cards were kept."
        )

    @staticmethod
    def _escape_html(text: Optional[str]) -> str:
        if not text:
            return ''
        return escape(text, quote=False)

    def _format_card_question(self, card: DueFlashcard) -> str:
        lines = [
            f"<b>{self._escape_html(card.deck_name)}</b> · #{card.id}",
            '',
            f"<b>Q:</b> {self._escape_html(card.front)}",
            '',
            '<i>Press "Show answer" when you are ready.</i>',
        ]
        return "\n".join(lines)

    @staticmethod
    def _describe_interval(interval_days: int) -> str:
        if interval_days <= 1:
            return "in 1 day"
        if interval_days % 7 == 0:
            weeks = interval_days // 7
            if weeks == 1:
                return "in 1 week"
            return f"in {weeks} weeks"
        return f"in {interval_days} days"
