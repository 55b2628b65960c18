# 참가 신청/승인/취소 스키마

from datetime import datetime
from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict

ParticipationStatusLiteral = Literal["PENDING", "APPROVED", "REJECTED", "CANCELLED"]


class DecideBody(BaseModel):
    """호스트의 승인(true)/거절(false)."""

    approve: bool


class ParticipationResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    meetup_id: str
    user_id: str
    status: ParticipationStatusLiteral
    joined_at: Optional[datetime] = None
    decided_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None


class ParticipationChangeResponse(BaseModel):
    message: str
    participation: Optional[ParticipationResponse] = None
    current_count: int
    meetup_status: str


class ParticipantListResponse(BaseModel):
    participants: List[ParticipationResponse]
