# 리뷰 스키마. 평점 범위(1~5)는 코어에서 검사 (InvalidRating).

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class MeetupReviewBody(BaseModel):
    rating: int
    comment: str = Field(default="", max_length=1000)


class PeerReviewBody(BaseModel):
    reviewee_id: str
    rating: int
    comment: str = Field(default="", max_length=1000)


class ReviewResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    meetup_id: str
    reviewer_id: str
    rating: int
    comment: str
    created_at: datetime


class PeerReviewResponse(ReviewResponse):
    reviewee_id: str
    reviewee_rice_index: Optional[float] = None


class ReviewListResponse(BaseModel):
    reviews: List[ReviewResponse]
    average_rating: float
    review_count: int


class ReviewableParticipantsResponse(BaseModel):
    user_ids: List[str]
