# 출석(체크인) 기록, 상호 출석 확인

from enum import Enum as PyEnum

from sqlalchemy import Column, DateTime, Float, ForeignKey, String, UniqueConstraint
from sqlalchemy.sql import func

from babal.models.base import Base, new_id


class CheckInMethod(str, PyEnum):
    QR = "QR"
    GPS = "GPS"
    HOST = "HOST"  # 호스트가 직접 출석 확인


class AttendanceStatus(str, PyEnum):
    CONFIRMED = "CONFIRMED"
    REJECTED = "REJECTED"


class AttendanceRecord(Base):
    """
    체크인 시도 1회 = 1행. 생성 후 변경하지 않음.
    거절된 시도(REJECTED)도 감사 이력으로 남기며 재시도 가능.
    """

    __tablename__ = "attendance_records"

    id = Column(String(36), primary_key=True, default=new_id)
    meetup_id = Column(String(36), ForeignKey("meetups.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(String(64), nullable=False, index=True)
    method = Column(String(10), nullable=False)
    submitted_lat = Column(Float, nullable=True)
    submitted_lng = Column(Float, nullable=True)
    distance_m = Column(Float, nullable=True)  # GPS 전용
    status = Column(String(20), nullable=False)
    reject_reason = Column(String(40), nullable=True)  # ErrorKind 값
    confirmed_by = Column(String(64), nullable=True)  # HOST 방식일 때 호스트 id
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    confirmed_at = Column(DateTime(timezone=True), nullable=True)


class MutualConfirmation(Base):
    """참가자끼리 서로의 출석을 확인해 주는 기록. (meetup, confirmer, confirmed) 당 1행."""

    __tablename__ = "mutual_confirmations"

    id = Column(String(36), primary_key=True, default=new_id)
    meetup_id = Column(String(36), ForeignKey("meetups.id", ondelete="CASCADE"), nullable=False, index=True)
    confirmer_id = Column(String(64), nullable=False)
    confirmed_id = Column(String(64), nullable=False, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    __table_args__ = (
        UniqueConstraint("meetup_id", "confirmer_id", "confirmed_id", name="uq_mutual_confirmation"),
    )
