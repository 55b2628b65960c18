# 체크인/출석/노쇼 스키마

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

from babal.config import NO_SHOW_PENALTY_POINTS


class CheckInTokenResponse(BaseModel):
    token: str
    expires_at: datetime


class QrCheckInBody(BaseModel):
    token: str


class LocationBody(BaseModel):
    """좌표 범위는 코어에서 검사 (InvalidCoordinates)."""

    lat: float
    lng: float


class AttendanceRecordResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    meetup_id: str
    user_id: str
    method: Literal["QR", "GPS", "HOST"]
    status: Literal["CONFIRMED", "REJECTED"]
    distance_m: Optional[float] = None
    confirmed_by: Optional[str] = None
    confirmed_at: Optional[datetime] = None


class LocationCheckResponse(BaseModel):
    distance_m: float
    max_distance_m: float
    within_range: bool


class AttendanceSummaryResponse(BaseModel):
    total_participants: int
    attended_count: int
    my_attendance: Optional[AttendanceRecordResponse] = None
    mutual_confirmations: int


class MutualConfirmResponse(BaseModel):
    message: str
    meetup_id: str
    confirmer_id: str
    confirmed_id: str


class NoShowPenaltyBody(BaseModel):
    user_ids: List[str] = Field(..., min_length=1)
    amount: int = Field(default=NO_SHOW_PENALTY_POINTS, gt=0)
    reason: str = Field(default="no_show", min_length=1, max_length=200)


class NoShowPenaltyResponse(BaseModel):
    penalized: List[str]
    already_penalized: List[str]
    attended: List[str]
    not_participant: List[str]
