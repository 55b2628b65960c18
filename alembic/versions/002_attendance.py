"""attendance_records, mutual_confirmations 테이블

Revision ID: 002
Revises: 001
Create Date: 2026-10-01 00:00:01.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "002"
down_revision: Union[str, None] = "001"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "attendance_records",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("meetup_id", sa.String(length=36), nullable=False),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("method", sa.String(length=10), nullable=False),
        sa.Column("submitted_lat", sa.Float(), nullable=True),
        sa.Column("submitted_lng", sa.Float(), nullable=True),
        sa.Column("distance_m", sa.Float(), nullable=True),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("reject_reason", sa.String(length=40), nullable=True),
        sa.Column("confirmed_by", sa.String(length=64), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.Column("confirmed_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["meetup_id"], ["meetups.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_attendance_records_meetup_id"), "attendance_records", ["meetup_id"], unique=False)
    op.create_index(op.f("ix_attendance_records_user_id"), "attendance_records", ["user_id"], unique=False)

    op.create_table(
        "mutual_confirmations",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("meetup_id", sa.String(length=36), nullable=False),
        sa.Column("confirmer_id", sa.String(length=64), nullable=False),
        sa.Column("confirmed_id", sa.String(length=64), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.ForeignKeyConstraint(["meetup_id"], ["meetups.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("meetup_id", "confirmer_id", "confirmed_id", name="uq_mutual_confirmation"),
    )
    op.create_index(op.f("ix_mutual_confirmations_meetup_id"), "mutual_confirmations", ["meetup_id"], unique=False)
    op.create_index(
        op.f("ix_mutual_confirmations_confirmed_id"), "mutual_confirmations", ["confirmed_id"], unique=False
    )


def downgrade() -> None:
    op.drop_index(op.f("ix_mutual_confirmations_confirmed_id"), table_name="mutual_confirmations")
    op.drop_index(op.f("ix_mutual_confirmations_meetup_id"), table_name="mutual_confirmations")
    op.drop_table("mutual_confirmations")
    op.drop_index(op.f("ix_attendance_records_user_id"), table_name="attendance_records")
    op.drop_index(op.f("ix_attendance_records_meetup_id"), table_name="attendance_records")
    op.drop_table("attendance_records")
