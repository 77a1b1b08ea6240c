"""create accounts and words tables

Revision ID: 4f2a9c1d7e30
Revises:
Create Date: 2026-10-18 10:12:41.204518

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '4f2a9c1d7e30'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table(
        "accounts",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("api_key", sa.String(255), nullable=False, unique=True),
        sa.Column("name", sa.String(255)),
        sa.Column("created_at", sa.DateTime()),
    )
    op.create_table(
        "words",
        sa.Column("id", sa.String(64), primary_key=True),
        sa.Column("account_id", sa.Integer(), sa.ForeignKey("accounts.id", ondelete="CASCADE"), nullable=False),
        sa.Column("word", sa.String(255), nullable=False),
        sa.Column("original_word", sa.Text()),
        sa.Column("url", sa.Text()),
        sa.Column("title", sa.Text()),
        sa.Column("created_at_ms", sa.BigInteger(), nullable=False),
        sa.Column("phonetic", sa.String(255)),
        sa.Column("audio_url", sa.Text()),
        sa.Column("meanings", sa.JSON()),
        sa.Column("root", sa.String(255)),
        sa.Column("root_meaning", sa.Text()),
        sa.Column("explanation", sa.Text()),
        sa.Column("related_words", sa.JSON()),
        sa.Column("sentences", sa.JSON()),
        sa.Column("notes", sa.JSON()),
        sa.Column("review_times", sa.JSON()),
        sa.Column("db_created_at", sa.DateTime()),
        sa.Column("db_updated_at", sa.DateTime()),
        sa.UniqueConstraint("account_id", "word", name="uq_words_account_word"),
    )
    op.create_index("ix_words_account_id", "words", ["account_id"])
    op.create_index("ix_words_word", "words", ["word"])


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index("ix_words_word", table_name="words")
    op.drop_index("ix_words_account_id", table_name="words")
    op.drop_table("words")
    op.drop_table("accounts")
