# 밥알지수 계산용 활동 통계 집계
from typing import Tuple

from sqlalchemy import distinct, func, or_, select
from sqlalchemy.orm import Session

from babal.models.meetup import Meetup, MeetupStatus
from babal.models.participation import Participation, ParticipationStatus
from babal.models.penalty import NoShowPenalty
from babal.models.review import PeerReview, Review
from babal.services.reputation import ReputationStats, RiceLevel, compute_score, rice_level


def collect_stats(db: Session, user_id: str) -> ReputationStats:
    """
    - joined: 승인된 적 있는 참가 (호스트로 참여한 모임 제외)
    - hosted: 취소되지 않은 호스팅 모임
    - completed: 종료된 모임 중 호스트였거나 승인 상태로 남아 있던 모임
    - reviews_written: 모임 리뷰 + 참가자 리뷰
    - average_rating: 호스팅 모임에 달린 리뷰 + 내가 받은 참가자 리뷰 평균
    - no_show_penalties: 노쇼 패널티 건수
    """
    joined = db.scalar(
        select(func.count(distinct(Participation.meetup_id)))
        .join(Meetup, Meetup.id == Participation.meetup_id)
        .where(
            Participation.user_id == user_id,
            Participation.approved_at.isnot(None),
            Meetup.host_id != user_id,
        )
    )
    hosted = db.scalar(
        select(func.count(Meetup.id)).where(
            Meetup.host_id == user_id,
            Meetup.status != MeetupStatus.CANCELLED.value,
        )
    )
    approved_meetups = select(Participation.meetup_id).where(
        Participation.user_id == user_id,
        Participation.status == ParticipationStatus.APPROVED.value,
    )
    completed = db.scalar(
        select(func.count(Meetup.id)).where(
            Meetup.status == MeetupStatus.COMPLETED.value,
            or_(Meetup.host_id == user_id, Meetup.id.in_(approved_meetups)),
        )
    )
    written = (db.scalar(select(func.count(Review.id)).where(Review.reviewer_id == user_id)) or 0) + (
        db.scalar(select(func.count(PeerReview.id)).where(PeerReview.reviewer_id == user_id)) or 0
    )

    host_sum, host_count = db.execute(
        select(func.sum(Review.rating), func.count(Review.id))
        .join(Meetup, Meetup.id == Review.meetup_id)
        .where(Meetup.host_id == user_id)
    ).one()
    peer_sum, peer_count = db.execute(
        select(func.sum(PeerReview.rating), func.count(PeerReview.id)).where(PeerReview.reviewee_id == user_id)
    ).one()
    rating_count = int(host_count or 0) + int(peer_count or 0)
    average = (float(host_sum or 0) + float(peer_sum or 0)) / rating_count if rating_count else 0.0

    no_shows = db.scalar(select(func.count(NoShowPenalty.id)).where(NoShowPenalty.user_id == user_id))

    return ReputationStats(
        joined_meetups=int(joined or 0),
        hosted_meetups=int(hosted or 0),
        completed_meetups=int(completed or 0),
        reviews_written=int(written),
        average_rating=round(average, 2),
        no_show_penalties=int(no_shows or 0),
    )


def get_reputation(db: Session, user_id: str) -> Tuple[ReputationStats, float, RiceLevel]:
    """통계 → 점수 → 레벨. 저장하지 않고 매번 계산."""
    stats = collect_stats(db, user_id)
    score = compute_score(stats)
    return stats, score, rice_level(score)
