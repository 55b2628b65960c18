"""reviews, peer_reviews 테이블

Revision ID: 003
Revises: 002
Create Date: 2026-10-01 00:00:02.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "003"
down_revision: Union[str, None] = "002"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "reviews",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("meetup_id", sa.String(length=36), nullable=False),
        sa.Column("reviewer_id", sa.String(length=64), nullable=False),
        sa.Column("rating", sa.Integer(), nullable=False),
        sa.Column("comment", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.ForeignKeyConstraint(["meetup_id"], ["meetups.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("reviewer_id", "meetup_id", name="uq_review_reviewer_meetup"),
        sa.CheckConstraint("rating BETWEEN 1 AND 5", name="ck_reviews_rating"),
    )
    op.create_index(op.f("ix_reviews_meetup_id"), "reviews", ["meetup_id"], unique=False)
    op.create_index(op.f("ix_reviews_reviewer_id"), "reviews", ["reviewer_id"], unique=False)

    op.create_table(
        "peer_reviews",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("meetup_id", sa.String(length=36), nullable=False),
        sa.Column("reviewer_id", sa.String(length=64), nullable=False),
        sa.Column("reviewee_id", sa.String(length=64), nullable=False),
        sa.Column("rating", sa.Integer(), nullable=False),
        sa.Column("comment", sa.Text(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=True),
        sa.ForeignKeyConstraint(["meetup_id"], ["meetups.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("reviewer_id", "reviewee_id", "meetup_id", name="uq_peer_review_triple"),
        sa.CheckConstraint("rating BETWEEN 1 AND 5", name="ck_peer_reviews_rating"),
        sa.CheckConstraint("reviewer_id <> reviewee_id", name="ck_peer_reviews_not_self"),
    )
    op.create_index(op.f("ix_peer_reviews_meetup_id"), "peer_reviews", ["meetup_id"], unique=False)
    op.create_index(op.f("ix_peer_reviews_reviewer_id"), "peer_reviews", ["reviewer_id"], unique=False)
    op.create_index(op.f("ix_peer_reviews_reviewee_id"), "peer_reviews", ["reviewee_id"], unique=False)


def downgrade() -> None:
    op.drop_index(op.f("ix_peer_reviews_reviewee_id"), table_name="peer_reviews")
    op.drop_index(op.f("ix_peer_reviews_reviewer_id"), table_name="peer_reviews")
    op.drop_index(op.f("ix_peer_reviews_meetup_id"), table_name="peer_reviews")
    op.drop_table("peer_reviews")
    op.drop_index(op.f("ix_reviews_reviewer_id"), table_name="reviews")
    op.drop_index(op.f("ix_reviews_meetup_id"), table_name="reviews")
    op.drop_table("reviews")
