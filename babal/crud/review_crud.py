# 모임 리뷰 / 참가자 리뷰 CRUD (종료된 모임에서 참가자·호스트만, 1회)
import logging
from datetime import datetime
from typing import List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from babal.crud.meetup_crud import get_meetup
from babal.crud.participation_crud import is_approved
from babal.errors import CoreError, ErrorKind
from babal.models.meetup import Meetup, MeetupStatus
from babal.models.participation import Participation
from babal.models.review import PeerReview, Review
from babal.services.clock import as_utc, utcnow

logger = logging.getLogger(__name__)

MIN_RATING = 1
MAX_RATING = 5


def validate_rating(rating) -> None:
    # bool은 int의 하위 타입이라 따로 거른다
    if isinstance(rating, bool) or not isinstance(rating, int) or not MIN_RATING <= rating <= MAX_RATING:
        raise CoreError(ErrorKind.INVALID_RATING, f"Rating must be an integer between {MIN_RATING} and {MAX_RATING}")


def _is_finished(meetup: Meetup, now: datetime) -> bool:
    return meetup.status == MeetupStatus.COMPLETED and as_utc(now) > as_utc(meetup.scheduled_at)


def had_approved(db: Session, meetup: Meetup, user_id: str) -> bool:
    """호스트이거나, 이 모임에서 한 번이라도 승인된 적이 있는지."""
    if user_id == meetup.host_id:
        return True
    found = (
        db.query(Participation.id)
        .filter(
            Participation.meetup_id == meetup.id,
            Participation.user_id == user_id,
            Participation.approved_at.isnot(None),
        )
        .first()
    )
    return found is not None


def submit_meetup_review(
    db: Session,
    meetup_id: str,
    reviewer_id: str,
    rating: int,
    comment: str = "",
    now: Optional[datetime] = None,
) -> Review:
    """모임 리뷰 작성. 승인된 참가자 또는 호스트, 종료(COMPLETED)된 모임만."""
    now = now or utcnow()
    meetup = get_meetup(db, meetup_id)

    member = reviewer_id == meetup.host_id or is_approved(db, meetup_id, reviewer_id)
    if not member or not _is_finished(meetup, now):
        raise CoreError(ErrorKind.NOT_ELIGIBLE, "Only participants of a completed meetup can review it")

    duplicate = (
        db.query(Review.id).filter(Review.meetup_id == meetup_id, Review.reviewer_id == reviewer_id).first()
    )
    if duplicate is not None:
        raise CoreError(ErrorKind.DUPLICATE_REVIEW, "Already reviewed this meetup")

    validate_rating(rating)

    review = Review(meetup_id=meetup_id, reviewer_id=reviewer_id, rating=rating, comment=comment or "", created_at=now)
    db.add(review)
    try:
        db.flush()
    except IntegrityError:
        raise CoreError(ErrorKind.DUPLICATE_REVIEW, "Already reviewed this meetup")
    logger.info("meetup %s reviewed by %s (%d)", meetup_id, reviewer_id, rating)
    return review


def submit_peer_review(
    db: Session,
    meetup_id: str,
    reviewer_id: str,
    reviewee_id: str,
    rating: int,
    comment: str = "",
    now: Optional[datetime] = None,
) -> PeerReview:
    """
    참가자 개별 리뷰.
    두 사람 모두 이 모임에 승인된 적이 있어야 함 (호스트 포함). 평판 점수는 조회 시 다시 계산된다.
    """
    if reviewer_id == reviewee_id:
        raise CoreError(ErrorKind.SELF_REVIEW, "Cannot review yourself")

    now = now or utcnow()
    meetup = get_meetup(db, meetup_id)
    if not had_approved(db, meetup, reviewer_id) or not had_approved(db, meetup, reviewee_id):
        raise CoreError(ErrorKind.NOT_CO_PARTICIPANT, "Both users must have taken part in this meetup")

    if not _is_finished(meetup, now):
        raise CoreError(ErrorKind.NOT_ELIGIBLE, "Peer reviews open after the meetup is completed")

    duplicate = (
        db.query(PeerReview.id)
        .filter(
            PeerReview.meetup_id == meetup_id,
            PeerReview.reviewer_id == reviewer_id,
            PeerReview.reviewee_id == reviewee_id,
        )
        .first()
    )
    if duplicate is not None:
        raise CoreError(ErrorKind.DUPLICATE_REVIEW, "Already reviewed this participant")

    validate_rating(rating)

    review = PeerReview(
        meetup_id=meetup_id,
        reviewer_id=reviewer_id,
        reviewee_id=reviewee_id,
        rating=rating,
        comment=comment or "",
        created_at=now,
    )
    db.add(review)
    try:
        db.flush()
    except IntegrityError:
        raise CoreError(ErrorKind.DUPLICATE_REVIEW, "Already reviewed this participant")
    logger.info("user %s reviewed %s in meetup %s (%d)", reviewer_id, reviewee_id, meetup_id, rating)
    return review


def list_meetup_reviews(
    db: Session, meetup_id: str, limit: int = 20, offset: int = 0
) -> Tuple[List[Review], float, int]:
    """최신순 리뷰 목록 + (평균 평점, 전체 개수)."""
    get_meetup(db, meetup_id)
    reviews = (
        db.query(Review)
        .filter(Review.meetup_id == meetup_id)
        .order_by(Review.created_at.desc())
        .offset(offset)
        .limit(limit)
        .all()
    )
    avg_rating, count = db.execute(
        select(func.avg(Review.rating), func.count(Review.id)).where(Review.meetup_id == meetup_id)
    ).one()
    return reviews, round(float(avg_rating or 0), 1), int(count or 0)


def reviewable_participants(db: Session, meetup_id: str, user_id: str) -> List[str]:
    """내가 아직 리뷰하지 않은 같은 모임 참가자(호스트 포함) id."""
    meetup = get_meetup(db, meetup_id)
    member_ids = {
        row[0]
        for row in db.execute(
            select(Participation.user_id).where(
                Participation.meetup_id == meetup_id,
                Participation.approved_at.isnot(None),
            )
        ).all()
    }
    member_ids.add(meetup.host_id)
    reviewed = {
        row[0]
        for row in db.execute(
            select(PeerReview.reviewee_id).where(
                PeerReview.meetup_id == meetup_id,
                PeerReview.reviewer_id == user_id,
            )
        ).all()
    }
    return sorted(member_ids - reviewed - {user_id})
