# 리뷰: 모임 리뷰(호스트 평가)와 참가자 간 리뷰

from sqlalchemy import CheckConstraint, Column, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.sql import func

from babal.models.base import Base, new_id


class Review(Base):
    """모임 단위 리뷰. (reviewer, meetup) 당 1건."""

    __tablename__ = "reviews"

    id = Column(String(36), primary_key=True, default=new_id)
    meetup_id = Column(String(36), ForeignKey("meetups.id", ondelete="CASCADE"), nullable=False, index=True)
    reviewer_id = Column(String(64), nullable=False, index=True)
    rating = Column(Integer, nullable=False)
    comment = Column(Text, nullable=False, default="")
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint("reviewer_id", "meetup_id", name="uq_review_reviewer_meetup"),
        CheckConstraint("rating BETWEEN 1 AND 5", name="ck_reviews_rating"),
    )


class PeerReview(Base):
    """참가자 개별 평가. (reviewer, reviewee, meetup) 당 1건."""

    __tablename__ = "peer_reviews"

    id = Column(String(36), primary_key=True, default=new_id)
    meetup_id = Column(String(36), ForeignKey("meetups.id", ondelete="CASCADE"), nullable=False, index=True)
    reviewer_id = Column(String(64), nullable=False, index=True)
    reviewee_id = Column(String(64), nullable=False, index=True)
    rating = Column(Integer, nullable=False)
    comment = Column(Text, nullable=False, default="")
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint("reviewer_id", "reviewee_id", "meetup_id", name="uq_peer_review_triple"),
        CheckConstraint("rating BETWEEN 1 AND 5", name="ck_peer_reviews_rating"),
        CheckConstraint("reviewer_id <> reviewee_id", name="ck_peer_reviews_not_self"),
    )
