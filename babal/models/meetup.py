# Meetup 모델: 밥약(모임) 엔티티

from enum import Enum as PyEnum

from sqlalchemy import CheckConstraint, Column, DateTime, Float, Integer, String, Text
from sqlalchemy.sql import func

from babal.models.base import Base, new_id


class MeetupStatus(str, PyEnum):
    """모임 상태. OPEN → CONFIRMED → COMPLETED, OPEN/CONFIRMED → CANCELLED(종료)."""

    OPEN = "OPEN"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"


# DB에는 String(20)으로 저장 (마이그레이션 단순화). 앱에서는 MeetupStatus로 비교.
STATUS_DEFAULT = MeetupStatus.OPEN.value


class Meetup(Base):
    """모임 테이블. current_count는 호스트 포함 승인 인원 (조건부 UPDATE로만 변경)."""

    __tablename__ = "meetups"

    id = Column(String(36), primary_key=True, default=new_id)
    host_id = Column(String(64), nullable=False, index=True)
    status = Column(String(20), nullable=False, default=STATUS_DEFAULT, server_default=STATUS_DEFAULT)
    title = Column(String(100), nullable=False)
    description = Column(Text, nullable=True)
    address = Column(String(300), nullable=True)
    lat = Column(Float, nullable=False)
    lng = Column(Float, nullable=False)
    scheduled_at = Column(DateTime(timezone=True), nullable=False, index=True)
    capacity = Column(Integer, nullable=False, default=4)
    current_count = Column(Integer, nullable=False, default=1)
    checkin_radius_m = Column(Float, nullable=True)  # NULL이면 전역 CHECKIN_RADIUS_M
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    confirmed_at = Column(DateTime(timezone=True), nullable=True)
    cancelled_at = Column(DateTime(timezone=True), nullable=True)
    completed_at = Column(DateTime(timezone=True), nullable=True)
    no_show_processed_at = Column(DateTime(timezone=True), nullable=True)  # 노쇼 자동 처리 완료 시각

    __table_args__ = (
        CheckConstraint("current_count >= 0 AND current_count <= capacity", name="ck_meetups_current_count"),
        CheckConstraint("capacity >= 1", name="ck_meetups_capacity"),
    )
