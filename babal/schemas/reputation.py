from pydantic import BaseModel


class ReputationStatsOut(BaseModel):
    joined_meetups: int
    hosted_meetups: int
    completed_meetups: int
    reviews_written: int
    average_rating: float
    no_show_penalties: int


class RiceIndexResponse(BaseModel):
    """밥알지수 (0.0~100.0) + 레벨."""

    user_id: str
    rice_index: float
    level: str
    description: str
    stats: ReputationStatsOut
