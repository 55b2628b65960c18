# 참가 신청/승인/취소 CRUD (승인 인원 변경은 APPROVED 진입·이탈 때만)
import logging
from datetime import datetime
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from babal.config import COUNT_UPDATE_RETRIES
from babal.crud.meetup_crud import get_meetup, guarded_update, host_leaves, require_host
from babal.errors import CoreError, ErrorKind
from babal.models.meetup import Meetup, MeetupStatus
from babal.models.participation import ACTIVE_STATUSES, Participation, ParticipationStatus
from babal.services.clock import utcnow

logger = logging.getLogger(__name__)


def get_active_participation(db: Session, meetup_id: str, user_id: str) -> Optional[Participation]:
    """진행 중(PENDING/APPROVED) 참가. (meetup, user) 당 최대 1개."""
    return (
        db.query(Participation)
        .filter(
            Participation.meetup_id == meetup_id,
            Participation.user_id == user_id,
            Participation.status.in_(ACTIVE_STATUSES),
        )
        .first()
    )


def is_approved(db: Session, meetup_id: str, user_id: str) -> bool:
    participation = get_active_participation(db, meetup_id, user_id)
    return participation is not None and participation.status == ParticipationStatus.APPROVED.value


def _move_participation(
    db: Session,
    participation: Participation,
    allowed_from: Iterable[str],
    values: Dict[str, Any],
) -> str:
    """
    참가 상태 조건부 전환. 읽은 status 그대로일 때만 UPDATE.
    반환: 전환 직전 status
    """
    allowed = set(allowed_from)
    for attempt in range(1, COUNT_UPDATE_RETRIES + 1):
        previous = participation.status
        if previous not in allowed:
            raise CoreError(ErrorKind.NO_SUCH_PARTICIPATION, "No matching participation")
        result = db.execute(
            update(Participation)
            .where(Participation.id == participation.id, Participation.status == previous)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        db.refresh(participation)
        if result.rowcount == 1:
            return previous
        logger.warning(
            "participation %s changed concurrently (attempt %d/%d)", participation.id, attempt, COUNT_UPDATE_RETRIES
        )
    raise CoreError(ErrorKind.CONFLICT, "Participation was modified concurrently, please retry")


def _shift_count(db: Session, meetup: Meetup, delta: int) -> Meetup:
    def build(m: Meetup) -> Dict[str, Any]:
        target = m.current_count + delta
        if target > m.capacity:
            raise CoreError(ErrorKind.FULL, "Meetup is full (capacity reached)")
        return {"current_count": max(target, 0)}

    return guarded_update(db, meetup, build)


def join_meetup(db: Session, meetup_id: str, user_id: str, now: Optional[datetime] = None) -> Participation:
    """
    참가 신청 → PENDING. 인원 수는 바뀌지 않음 (호스트 승인 때 +1).

    - FOR UPDATE로 meetup 행 잠금 후 상태/정원 확인.
    - 동시에 같은 user가 신청하면 부분 유니크 인덱스 위반 → AlreadyJoined.

    ⚠️ 이 함수는 commit/rollback 하지 않음. 호출자(라우터)가 트랜잭션을 제어.
    """
    now = now or utcnow()
    meetup = get_meetup(db, meetup_id, for_update=True)

    if meetup.status != MeetupStatus.OPEN:
        raise CoreError(ErrorKind.NOT_OPEN, "Meetup is not accepting participants")

    if meetup.current_count >= meetup.capacity:
        raise CoreError(ErrorKind.FULL, "Meetup is full (capacity reached)")

    if meetup.host_id == user_id or get_active_participation(db, meetup_id, user_id) is not None:
        raise CoreError(ErrorKind.ALREADY_JOINED, "Already joined this meetup")

    participation = Participation(
        meetup_id=meetup_id,
        user_id=user_id,
        status=ParticipationStatus.PENDING.value,
        joined_at=now,
    )
    db.add(participation)
    try:
        db.flush()
    except IntegrityError:
        # rollback은 호출자(라우터)에서 수행
        raise CoreError(ErrorKind.ALREADY_JOINED, "Already joined this meetup")

    logger.info("user %s requested to join meetup %s", user_id, meetup_id)
    return participation


def decide_participation(
    db: Session,
    meetup_id: str,
    user_id: str,
    actor_id: str,
    approve: bool,
    now: Optional[datetime] = None,
) -> Participation:
    """호스트가 PENDING 신청을 승인(+1) 또는 거절(변화 없음)."""
    now = now or utcnow()
    meetup = get_meetup(db, meetup_id, for_update=True)
    require_host(meetup, actor_id)

    participation = get_active_participation(db, meetup_id, user_id)
    if participation is None or participation.status != ParticipationStatus.PENDING.value:
        raise CoreError(ErrorKind.NO_SUCH_PARTICIPATION, "No pending participation for this user")

    if approve:
        if meetup.current_count >= meetup.capacity:
            raise CoreError(ErrorKind.FULL, "Meetup is full (capacity reached)")
        _move_participation(
            db,
            participation,
            [ParticipationStatus.PENDING.value],
            {"status": ParticipationStatus.APPROVED.value, "decided_at": now, "approved_at": now},
        )
        _shift_count(db, meetup, +1)
    else:
        _move_participation(
            db,
            participation,
            [ParticipationStatus.PENDING.value],
            {"status": ParticipationStatus.REJECTED.value, "decided_at": now},
        )

    logger.info(
        "participation of %s in meetup %s %s (current_count=%s)",
        user_id,
        meetup_id,
        participation.status,
        meetup.current_count,
    )
    return participation


def cancel_participation(db: Session, meetup_id: str, user_id: str, now: Optional[datetime] = None) -> Participation:
    """
    참가 취소 → CANCELLED.
    승인(APPROVED) 상태였을 때만 current_count -1, 대기(PENDING) 취소는 인원 변화 없음.
    """
    now = now or utcnow()
    meetup = get_meetup(db, meetup_id, for_update=True)
    # 종료 후 취소로 노쇼 패널티를 피할 수 없음
    if meetup.status == MeetupStatus.COMPLETED:
        raise CoreError(ErrorKind.INVALID_TRANSITION, "Cannot cancel participation in a completed meetup")

    participation = get_active_participation(db, meetup_id, user_id)
    if participation is None:
        raise CoreError(ErrorKind.NO_SUCH_PARTICIPATION, "Not joined")

    previous = _move_participation(
        db,
        participation,
        ACTIVE_STATUSES,
        {"status": ParticipationStatus.CANCELLED.value, "cancelled_at": now},
    )
    if previous == ParticipationStatus.APPROVED.value:
        _shift_count(db, meetup, -1)

    logger.info("user %s cancelled participation in meetup %s (was %s)", user_id, meetup_id, previous)
    return participation


def leave_meetup(db: Session, meetup_id: str, user_id: str, now: Optional[datetime] = None) -> Optional[Participation]:
    """
    모임 나가기. 호스트가 나가면 모임 자체를 취소하고 None 반환,
    그 외에는 참가 취소 결과 반환.
    """
    meetup = get_meetup(db, meetup_id)
    if meetup.host_id == user_id:
        host_leaves(db, meetup_id, user_id, now)
        return None
    return cancel_participation(db, meetup_id, user_id, now)


def list_participants(db: Session, meetup_id: str, status: Optional[ParticipationStatus] = None) -> List[Participation]:
    get_meetup(db, meetup_id)
    q = db.query(Participation).filter(Participation.meetup_id == meetup_id)
    if status is not None:
        q = q.filter(Participation.status == status.value)
    return q.order_by(Participation.joined_at).all()
