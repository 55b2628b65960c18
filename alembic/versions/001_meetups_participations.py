"""meetups, participations 테이블

Revision ID: 001
Revises:
Create Date: 2026-10-01 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

ACTIVE_WHERE = sa.text("status IN ('PENDING', 'APPROVED')")


def upgrade() -> None:
    op.create_table(
        "meetups",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("host_id", sa.String(length=64), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False, server_default="OPEN"),
        sa.Column("title", sa.String(length=100), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("address", sa.String(length=300), nullable=True),
        sa.Column("lat", sa.Float(), nullable=False),
        sa.Column("lng", sa.Float(), nullable=False),
        sa.Column("scheduled_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("capacity", sa.Integer(), nullable=False),
        sa.Column("current_count", sa.Integer(), nullable=False, server_default=sa.text("1")),
        sa.Column("checkin_radius_m", sa.Float(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.Column("confirmed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("current_count >= 0 AND current_count <= capacity", name="ck_meetups_current_count"),
        sa.CheckConstraint("capacity >= 1", name="ck_meetups_capacity"),
    )
    op.create_index(op.f("ix_meetups_host_id"), "meetups", ["host_id"], unique=False)
    op.create_index(op.f("ix_meetups_scheduled_at"), "meetups", ["scheduled_at"], unique=False)

    op.create_table(
        "participations",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("meetup_id", sa.String(length=36), nullable=False),
        sa.Column("user_id", sa.String(length=64), nullable=False),
        sa.Column("status", sa.String(length=20), nullable=False),
        sa.Column("joined_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.Column("decided_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("cancelled_at", sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(["meetup_id"], ["meetups.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(op.f("ix_participations_meetup_id"), "participations", ["meetup_id"], unique=False)
    op.create_index(op.f("ix_participations_user_id"), "participations", ["user_id"], unique=False)
    # 진행 중(PENDING/APPROVED) 참가는 (meetup, user) 당 1개
    op.create_index(
        "uq_participation_active",
        "participations",
        ["meetup_id", "user_id"],
        unique=True,
        postgresql_where=ACTIVE_WHERE,
        sqlite_where=ACTIVE_WHERE,
    )


def downgrade() -> None:
    op.drop_index("uq_participation_active", table_name="participations")
    op.drop_index(op.f("ix_participations_user_id"), table_name="participations")
    op.drop_index(op.f("ix_participations_meetup_id"), table_name="participations")
    op.drop_table("participations")
    op.drop_index(op.f("ix_meetups_scheduled_at"), table_name="meetups")
    op.drop_index(op.f("ix_meetups_host_id"), table_name="meetups")
    op.drop_table("meetups")
