# 모임 리뷰 / 참가자 리뷰 API
import logging

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from babal.crud.reputation_crud import get_reputation
from babal.crud.review_crud import (
    list_meetup_reviews,
    reviewable_participants,
    submit_meetup_review,
    submit_peer_review,
)
from babal.database import get_db
from babal.deps import get_actor_id
from babal.routers.common import fail
from babal.schemas.review import (
    MeetupReviewBody,
    PeerReviewBody,
    PeerReviewResponse,
    ReviewableParticipantsResponse,
    ReviewListResponse,
    ReviewResponse,
)
from babal.services.clock import utcnow

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/meetups", tags=["Reviews"])


@router.post("/{meetup_id}/reviews", response_model=ReviewResponse, status_code=201)
def post_meetup_review(
    meetup_id: str,
    body: MeetupReviewBody,
    actor_id: str = Depends(get_actor_id),
    db: Session = Depends(get_db),
):
    try:
        review = submit_meetup_review(db, meetup_id, actor_id, body.rating, body.comment, utcnow())
        db.commit()
        return ReviewResponse.model_validate(review)
    except Exception as e:
        raise fail(db, e, "submit review")


@router.get("/{meetup_id}/reviews", response_model=ReviewListResponse)
def get_meetup_reviews(
    meetup_id: str,
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: Session = Depends(get_db),
):
    try:
        reviews, average, count = list_meetup_reviews(db, meetup_id, limit, offset)
        return ReviewListResponse(
            reviews=[ReviewResponse.model_validate(r) for r in reviews],
            average_rating=average,
            review_count=count,
        )
    except Exception as e:
        raise fail(db, e, "list reviews")


@router.post("/{meetup_id}/peer-reviews", response_model=PeerReviewResponse, status_code=201)
def post_peer_review(
    meetup_id: str,
    body: PeerReviewBody,
    actor_id: str = Depends(get_actor_id),
    db: Session = Depends(get_db),
):
    """
    참가자 리뷰 작성. 응답에 상대의 갱신된 밥알지수 포함.
    저장 후 점수 조회가 실패해도 리뷰는 유지되고 reviewee_rice_index 는 null.
    """
    try:
        review = submit_peer_review(db, meetup_id, actor_id, body.reviewee_id, body.rating, body.comment, utcnow())
        saved = {
            "id": review.id,
            "meetup_id": review.meetup_id,
            "reviewer_id": review.reviewer_id,
            "reviewee_id": review.reviewee_id,
            "rating": review.rating,
            "comment": review.comment,
            "created_at": review.created_at,
        }
        db.commit()
    except Exception as e:
        raise fail(db, e, "submit peer review")

    score = None
    try:
        _, score, _ = get_reputation(db, body.reviewee_id)
    except Exception:
        db.rollback()
        logger.exception("rice index lookup failed for %s after peer review", body.reviewee_id)
    return PeerReviewResponse(**saved, reviewee_rice_index=score)


@router.get("/{meetup_id}/reviewable-participants", response_model=ReviewableParticipantsResponse)
def get_reviewable_participants(meetup_id: str, actor_id: str = Depends(get_actor_id), db: Session = Depends(get_db)):
    try:
        return ReviewableParticipantsResponse(user_ids=reviewable_participants(db, meetup_id, actor_id))
    except Exception as e:
        raise fail(db, e, "list reviewable participants")
