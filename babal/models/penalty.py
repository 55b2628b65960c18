# 노쇼 패널티 이벤트: 포인트/원장 협력자가 소비. (meetup, user) 당 1건 → 재적용해도 중복 차감 없음.

from sqlalchemy import Column, DateTime, ForeignKey, Integer, String, UniqueConstraint
from sqlalchemy.sql import func

from babal.models.base import Base, new_id


class NoShowPenalty(Base):
    __tablename__ = "no_show_penalties"

    id = Column(String(36), primary_key=True, default=new_id)
    meetup_id = Column(String(36), ForeignKey("meetups.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String(64), nullable=False, index=True)
    amount = Column(Integer, nullable=False)
    reason = Column(String(200), nullable=False)
    applied_by = Column(String(64), nullable=True)  # NULL = 스케줄러(시스템)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (UniqueConstraint("meetup_id", "user_id", name="uq_no_show_penalty_meetup_user"),)
