"""Create decks and the per-deck topic forest."""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = "20260914_0001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "decks",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("description", sa.Text(), server_default=sa.text("''"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column(
            "updated_at",
            sa.DateTime(timezone=True),
            server_default=sa.func.now(),
            server_onupdate=sa.func.now(),
            nullable=False,
        ),
    )

    op.create_table(
        "topics",
        sa.Column("id", sa.Integer(), primary_key=True, autoincrement=True, nullable=False),
        sa.Column("deck_id", sa.Integer(), nullable=False),
        sa.Column("parent_id", sa.Integer(), nullable=True),
        sa.Column("name", sa.String(length=255), nullable=False),
        sa.Column("color", sa.String(length=32), server_default=sa.text("'#e2e8f0'"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.ForeignKeyConstraint(
            ("deck_id",),
            ("decks.id",),
            name="fk_topics_deck_id_decks",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ("parent_id",),
            ("topics.id",),
            name="fk_topics_parent_id_topics",
            ondelete="CASCADE",
        ),
    )
    op.create_index("ix_topics_deck_id", "topics", ("deck_id",))
    op.create_index("ix_topics_parent_id", "topics", ("parent_id",))


def downgrade() -> None:
    op.drop_index("ix_topics_parent_id", table_name="topics")
    op.drop_index("ix_topics_deck_id", table_name="topics")
    op.drop_table("topics")
    op.drop_table("decks")
