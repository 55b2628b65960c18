"""no_show_penalties 테이블 ((meetup, user) 당 1건)

Revision ID: 004
Revises: 003
Create Date: 2026-10-01 00:00:03.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "004"
down_revision: Union[str, None] = "003"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "no_show_penalties",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("meetup_id", sa.String(length=36), nullable=False),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("amount", sa.Integer(), nullable=False),
        sa.Column("reason", sa.String(length=200), nullable=False),
        sa.Column("applied_by", sa.String(length=64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.ForeignKeyConstraint(["meetup_id"], ["meetups.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("meetup_id", "user_id", name="uq_no_show_penalty_meetup_user"),
    )
    op.create_index(op.f("ix_no_show_penalties_meetup_id"), "no_show_penalties", ["meetup_id"], unique=False)
    op.create_index(op.f("ix_no_show_penalties_user_id"), "no_show_penalties", ["user_id"], unique=False)


def downgrade() -> None:
    op.drop_index(op.f("ix_no_show_penalties_user_id"), table_name="no_show_penalties")
    op.drop_index(op.f("ix_no_show_penalties_meetup_id"), table_name="no_show_penalties")
    op.drop_table("no_show_penalties")
