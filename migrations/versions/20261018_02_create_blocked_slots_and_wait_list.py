"""create blocked slots and wait list entries

Revision ID: 20261018_02
Revises: 20261018_01
Create Date: 2026-10-18 10:20:00
"""

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "20261018_02"
down_revision: Union[str, None] = "20261018_01"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "blocked_slots",
        sa.Column("id", sa.Integer(), sa.Identity(), primary_key=True, nullable=False),
        sa.Column("room_type", sa.String(length=20), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("start_time", sa.String(length=5), nullable=False),
        sa.Column("end_time", sa.String(length=5), nullable=False),
        sa.Column("reason", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
    )
    op.create_index("ix_blocked_slots_id", "blocked_slots", ["id"], unique=False)
    op.create_index("ix_blocked_slots_lookup", "blocked_slots", ["date", "room_type"], unique=False)

    op.create_table(
        "wait_list_entries",
        sa.Column("id", sa.Integer(), sa.Identity(), primary_key=True, nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=False),
        sa.Column("room_type", sa.String(length=20), nullable=False),
        sa.Column("date", sa.Date(), nullable=False),
        sa.Column("start_time", sa.String(length=5), nullable=False),
        sa.Column("queue_state", sa.String(length=20), nullable=False, server_default="waiting"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
    )
    op.create_index("ix_wait_list_entries_id", "wait_list_entries", ["id"], unique=False)
    op.create_index("ix_wait_list_entries_user_id", "wait_list_entries", ["user_id"], unique=False)
    op.create_index(
        "ix_wait_list_entries_key",
        "wait_list_entries",
        ["date", "start_time", "room_type", "queue_state"],
        unique=False,
    )


def downgrade() -> None:
    op.drop_index("ix_wait_list_entries_key", table_name="wait_list_entries")
    op.drop_index("ix_wait_list_entries_user_id", table_name="wait_list_entries")
    op.drop_index("ix_wait_list_entries_id", table_name="wait_list_entries")
    op.drop_table("wait_list_entries")
    op.drop_index("ix_blocked_slots_lookup", table_name="blocked_slots")
    op.drop_index("ix_blocked_slots_id", table_name="blocked_slots")
    op.drop_table("blocked_slots")
