"""Create flashcards with scheduling state and the append-only review log."""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "20260915_0002"
down_revision: Union[str, None] = "20260914_0001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "flashcards",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("deck_id", sa.Integer(), nullable=False),
        sa.Column("topic_id", sa.Integer(), nullable=True),
        sa.Column("front", sa.Text(), nullable=False),
        sa.Column("back", sa.Text(), nullable=False),
        sa.Column("analogy", sa.Text(), nullable=True),
        sa.Column("card_type", sa.String(length=64), server_default=sa.text("'definition'"), nullable=False),
        sa.Column("difficulty", sa.Integer(), server_default=sa.text("3"), nullable=False),
        sa.Column("visual_reference", sa.Text(), nullable=True),
        sa.Column("interval", sa.Integer(), server_default=sa.text("1"), nullable=False),
        sa.Column("ease_factor", sa.Float(), server_default=sa.text("2.5"), nullable=False),
        sa.Column("review_count", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("total_reviews", sa.Integer(), server_default=sa.text("0"), nullable=False),
        sa.Column("recall_success_rate", sa.Float(), server_default=sa.text("0"), nullable=False),
        sa.Column("due_date", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            server_onupdate=sa.func.now(),
            nullable=False,
        ),
        sa.ForeignKeyConstraint(
            ("deck_id",),
            ("decks.id",),
            name="fk_flashcards_deck_id_decks",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ("topic_id",),
            ("topics.id",),
            name="fk_flashcards_topic_id_topics",
            ondelete="SET NULL",
        ),
    )
    op.create_index("ix_flashcards_deck_id_due_date", "flashcards", ("deck_id", "due_date"))
    op.create_index("ix_flashcards_topic_id", "flashcards", ("topic_id",))

    op.create_table(
        "review_logs",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("card_id", sa.Integer(), nullable=False),
        sa.Column("deck_id", sa.Integer(), nullable=False),
        sa.Column("rating", sa.Integer(), nullable=False),
        sa.Column("response_time_ms", sa.Integer(), nullable=True),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(
            ("card_id",),
            ("flashcards.id",),
            name="fk_review_logs_card_id_flashcards",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ("deck_id",),
            ("decks.id",),
            name="fk_review_logs_deck_id_decks",
            ondelete="CASCADE",
        ),
    )
    op.create_index("ix_review_logs_card_id", "review_logs", ("card_id",))
    op.create_index("ix_review_logs_deck_id_reviewed_at", "review_logs", ("deck_id", "reviewed_at"))


def downgrade() -> None:
    op.drop_index("ix_review_logs_deck_id_reviewed_at", table_name="review_logs")
    op.drop_index("ix_review_logs_card_id", table_name="review_logs")
    op.drop_table("review_logs")
    op.drop_index("ix_flashcards_topic_id", table_name="flashcards")
    op.drop_index("ix_flashcards_deck_id_due_date", table_name="flashcards")
    op.drop_table("flashcards")
