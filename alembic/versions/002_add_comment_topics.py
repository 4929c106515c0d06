"""Add topic column to comments.

Root comments of a thread can carry a topic label; threads are grouped by
topic when listed.

Revision ID: 002
Revises: 001
Create Date: 2026-10-20
"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Add topic to comments."""

    op.add_column(
        "comments",
        sa.Column(
            "topic",
            sa.String(100),
            nullable=True,
        ),
    )

    # Topic listing per thread
    op.create_index(
        "ix_comments_thread_id_topic",
        "comments",
        ["thread_id", "topic"],
    )


def downgrade() -> None:
    """Remove topic from comments."""
    op.drop_index("ix_comments_thread_id_topic", table_name="comments")
    op.drop_column("comments", "topic")
