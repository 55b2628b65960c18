# Participation 모델: 모임 참가 신청/승인

from enum import Enum as PyEnum

from sqlalchemy import Column, DateTime, ForeignKey, Index, String, text
from sqlalchemy.sql import func

from babal.models.base import Base, new_id


class ParticipationStatus(str, PyEnum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"
    CANCELLED = "CANCELLED"


ACTIVE_STATUSES = (ParticipationStatus.PENDING.value, ParticipationStatus.APPROVED.value)

_ACTIVE_WHERE = text("status IN ('PENDING', 'APPROVED')")


class Participation(Base):
    """
    참가 테이블. (meetup, user) 당 진행 중(PENDING/APPROVED) 행은 최대 1개 (부분 유니크 인덱스).
    REJECTED/CANCELLED 행은 이력으로 남고, 이후 재신청 가능.
    approved_at은 한 번이라도 승인됐는지 기록 (취소 후에도 유지, 상호 리뷰 자격 판단용).
    """

    __tablename__ = "participations"

    id = Column(String(36), primary_key=True, default=new_id)
    meetup_id = Column(String(36), ForeignKey("meetups.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String(64), nullable=False, index=True)
    status = Column(String(20), nullable=False, default=ParticipationStatus.PENDING.value)
    joined_at = Column(DateTime(timezone=True), server_default=func.now())
    decided_at = Column(DateTime(timezone=True), nullable=True)
    approved_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)

    __table_args__ = (
        Index(
            "uq_participation_active",
            "meetup_id",
            "user_id",
            unique=True,
            postgresql_where=_ACTIVE_WHERE,
            sqlite_where=_ACTIVE_WHERE,
        ),
    )
