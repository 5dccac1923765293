import logging
import os
from datetime import datetime
from functools import lru_cache
from pathlib import Path
from typing import Optional

from alembic import command
from alembic.config import Config
from sqlalchemy import (
    DateTime,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    event,
    func,
    text,
)
from sqlalchemy.engine import Engine
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship


LOGGER = logging.getLogger(__name__)

DEFAULT_TOPIC_COLOR = "#e2e8f0"
DEFAULT_CARD_TYPE = "definition"
DEFAULT_DIFFICULTY = 3


class Base(DeclarativeBase):
    """Declarative base for SQLAlchemy models."""


class Deck(Base):
    """Top-level container owning flashcards, topics and review history."""

    __tablename__ = "decks"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str] = mapped_column(
        Text,
        nullable=False,
        default="",
        server_default=text("''"),
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
        server_onupdate=func.now(),
    )
    topics: Mapped[list["Topic"]] = relationship(
        "Topic",
        back_populates="deck",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    flashcards: Mapped[list["Flashcard"]] = relationship(
        "Flashcard",
        back_populates="deck",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class Topic(Base):
    """Node of a per-deck topic forest used to group cards conceptually."""

    __tablename__ = "topics"
    __table_args__ = (
        Index("ix_topics_deck_id", "deck_id"),
        Index("ix_topics_parent_id", "parent_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    deck_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("decks.id", ondelete="CASCADE"), nullable=False
    )
    parent_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("topics.id", ondelete="CASCADE"), nullable=True
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    color: Mapped[str] = mapped_column(
        String(32),
        nullable=False,
        default=DEFAULT_TOPIC_COLOR,
        server_default=text(f"'{DEFAULT_TOPIC_COLOR}'"),
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    deck: Mapped["Deck"] = relationship("Deck", back_populates="topics")


class Flashcard(Base):
    """Reviewable question/answer pair together with its scheduling state."""

    __tablename__ = "flashcards"
    __table_args__ = (
        Index("ix_flashcards_deck_id_due_date", "deck_id", "due_date"),
        Index("ix_flashcards_topic_id", "topic_id"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    deck_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("decks.id", ondelete="CASCADE"), nullable=False
    )
    topic_id: Mapped[Optional[int]] = mapped_column(
        Integer, ForeignKey("topics.id", ondelete="SET NULL"), nullable=True
    )
    front: Mapped[str] = mapped_column(Text, nullable=False)
    back: Mapped[str] = mapped_column(Text, nullable=False)
    analogy: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    card_type: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        default=DEFAULT_CARD_TYPE,
        server_default=text(f"'{DEFAULT_CARD_TYPE}'"),
    )
    difficulty: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=DEFAULT_DIFFICULTY,
        server_default=text(str(DEFAULT_DIFFICULTY)),
    )
    visual_reference: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    interval: Mapped[int] = mapped_column(
        Integer, nullable=False, default=1, server_default=text("1")
    )
    ease_factor: Mapped[float] = mapped_column(
        Float, nullable=False, default=2.5, server_default=text("2.5")
    )
    # Consecutive successful repetitions; resets on a failed review.
    review_count: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default=text("0")
    )
    # Lifetime number of reviews; never resets.
    total_reviews: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0, server_default=text("0")
    )
    recall_success_rate: Mapped[float] = mapped_column(
        Float, nullable=False, default=0.0, server_default=text("0")
    )
    due_date: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        server_default=func.now(),
        onupdate=func.now(),
        server_onupdate=func.now(),
    )
    deck: Mapped["Deck"] = relationship("Deck", back_populates="flashcards")
    reviews: Mapped[list["ReviewLog"]] = relationship(
        "ReviewLog",
        back_populates="flashcard",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class ReviewLog(Base):
    """Append-only record of a single review of a flashcard."""

    __tablename__ = "review_logs"
    __table_args__ = (
        Index("ix_review_logs_card_id", "card_id"),
        Index("ix_review_logs_deck_id_reviewed_at", "deck_id", "reviewed_at"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    card_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("flashcards.id", ondelete="CASCADE"), nullable=False
    )
    deck_id: Mapped[int] = mapped_column(
        Integer, ForeignKey("decks.id", ondelete="CASCADE"), nullable=False
    )
    rating: Mapped[int] = mapped_column(Integer, nullable=False)
    response_time_ms: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)
    reviewed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now()
    )
    flashcard: Mapped["Flashcard"] = relationship("Flashcard", back_populates="reviews")


def enable_sqlite_foreign_keys(engine: Engine) -> None:
    """Turn on foreign key enforcement for every new SQLite connection."""

    @event.listens_for(engine, "connect")
    def _set_sqlite_pragma(dbapi_conn, connection_record):  # type: ignore[no-untyped-def]
        cursor = dbapi_conn.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()


def enable_sqlite_immediate_transactions(engine: Engine) -> None:
    """Start SQLite transactions with ``BEGIN IMMEDIATE`` so writers serialise.

    The driver normally defers ``BEGIN`` until the first write, leaving the
    preceding reads outside the transaction. Taking the write lock up front makes
    a read-modify-write sequence on one row behave like ``SELECT ... FOR UPDATE``.
    """

    @event.listens_for(engine, "connect")
    def _disable_driver_transactions(dbapi_conn, connection_record):  # type: ignore[no-untyped-def]
        dbapi_conn.isolation_level = None

    @event.listens_for(engine, "begin")
    def _begin_immediate(conn):  # type: ignore[no-untyped-def]
        conn.exec_driver_sql("BEGIN IMMEDIATE")


def configure_sqlite_engine(engine: Engine) -> None:
    """Apply the connection settings every SQLite engine of the application needs."""
    enable_sqlite_foreign_keys(engine)
    enable_sqlite_immediate_transactions(engine)


def _expand_database_url(raw_url: str) -> str:
    """Expand environment variables inside the configured database URL."""
    return os.path.expandvars(raw_url)


def get_database_url() -> str:
    """Return the configured database URL or raise if missing."""
    raw_url = os.getenv("DATABASE_URL")
    if not raw_url:
        raise RuntimeError("DATABASE_URL environment variable is required to connect to the database.")
    return _expand_database_url(raw_url)


@lru_cache(maxsize=1)
def get_engine() -> AsyncEngine:
    """Create (and cache) the async engine for the application's database."""
    echo = os.getenv("SQLALCHEMY_ECHO", "false").lower() in {"1", "true", "yes"}
    engine = create_async_engine(get_database_url(), echo=echo)
    if engine.dialect.name == "sqlite":
        configure_sqlite_engine(engine.sync_engine)
    return engine


@lru_cache(maxsize=1)
def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Return a cached async session factory bound to the engine."""
    return async_sessionmaker(get_engine(), expire_on_commit=False)


def should_run_migrations() -> bool:
    """Determine whether migrations should be executed during startup."""
    flag = os.getenv("RUN_MIGRATIONS_ON_STARTUP", "true").lower()
    return flag in {"1", "true", "yes", "on"}


def _build_alembic_config() -> Config:
    project_root = Path(__file__).resolve().parents[2]
    alembic_cfg = Config(str(project_root / "alembic.ini"))
    alembic_cfg.set_main_option("script_location", str(project_root / "migrations"))
    alembic_cfg.set_main_option("sqlalchemy.url", get_database_url())
    return alembic_cfg


def run_migrations(target: str = "head") -> None:
    """Run Alembic migrations up to the specified target revision."""
    command.upgrade(_build_alembic_config(), target)


def run_migrations_if_needed(target: str = "head") -> None:
    """Run migrations when the startup flag is enabled."""
    if not should_run_migrations():
        LOGGER.info("Skipping migrations because RUN_MIGRATIONS_ON_STARTUP is disabled.")
        return

    LOGGER.info("Applying database migrations up to %s.", target)
    run_migrations(target)
    LOGGER.info("Database schema is up to date.")
