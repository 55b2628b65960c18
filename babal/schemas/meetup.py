# 모임 API 요청/응답 스키마

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

MeetupStatusLiteral = Literal["OPEN", "CONFIRMED", "CANCELLED", "COMPLETED"]


class MeetupCreate(BaseModel):
    """모임 생성 요청. 호스트는 X-User-Id."""

    title: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    address: Optional[str] = Field(default=None, max_length=300)
    capacity: int = Field(default=4, ge=2)
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)
    scheduled_at: datetime
    checkin_radius_m: Optional[float] = Field(default=None, gt=0, le=5000)


class MeetupResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    host_id: str
    status: MeetupStatusLiteral
    title: str
    description: Optional[str] = None
    address: Optional[str] = None
    capacity: int
    current_count: int
    lat: float
    lng: float
    scheduled_at: datetime
    checkin_radius_m: Optional[float] = None
    confirmed_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
