# 모임 생성/상태 전환 CRUD (조건부 UPDATE로 동시 변경 시 갱신 손실 방지)

import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, List, Optional

from sqlalchemy import func, select, update
from sqlalchemy.orm import Session

from babal.config import COUNT_UPDATE_RETRIES
from babal.errors import CoreError, ErrorKind
from babal.models.meetup import Meetup, MeetupStatus
from babal.models.participation import ACTIVE_STATUSES, Participation, ParticipationStatus
from babal.services.clock import as_utc, utcnow
from babal.services.meetup_status import check_status_transition

logger = logging.getLogger(__name__)


def get_meetup(db: Session, meetup_id: str, for_update: bool = False) -> Meetup:
    """id로 모임 조회. for_update=True면 FOR UPDATE로 행 잠금. 없으면 NotFound."""
    q = db.query(Meetup).filter(Meetup.id == meetup_id)
    if for_update:
        q = q.with_for_update()
    meetup = q.first()
    if meetup is None:
        raise CoreError(ErrorKind.NOT_FOUND, "Meetup not found")
    return meetup


def require_host(meetup: Meetup, actor_id: str) -> None:
    if meetup.host_id != actor_id:
        raise CoreError(ErrorKind.NOT_HOST, "Only the host can do this")


def require_transition(meetup: Meetup, target: MeetupStatus) -> None:
    message = check_status_transition(meetup.status, target)
    if message is not None:
        raise CoreError(ErrorKind.INVALID_TRANSITION, message)


def create_meetup(
    db: Session,
    host_id: str,
    title: str,
    lat: float,
    lng: float,
    scheduled_at: datetime,
    capacity: int = 4,
    description: Optional[str] = None,
    address: Optional[str] = None,
    checkin_radius_m: Optional[float] = None,
    current_count: int = 1,
) -> Meetup:
    """모임 생성 (status=OPEN). 호스트는 처음부터 current_count에 포함된다."""
    meetup = Meetup(
        host_id=host_id,
        title=title,
        description=description,
        address=address,
        lat=lat,
        lng=lng,
        scheduled_at=as_utc(scheduled_at),
        capacity=capacity,
        current_count=current_count,
        checkin_radius_m=checkin_radius_m,
        status=MeetupStatus.OPEN.value,
    )
    db.add(meetup)
    db.flush()
    logger.info("meetup %s created by host %s (capacity=%s)", meetup.id, host_id, capacity)
    return meetup


def guarded_update(db: Session, meetup: Meetup, build: Callable[[Meetup], Dict[str, Any]]) -> Meetup:
    """
    meetups 행 조건부 갱신.

    - build(meetup): 현재 상태로 검증 후 새 값 dict 반환 (검증 실패 시 CoreError)
    - UPDATE ... WHERE id, status, current_count 가 읽은 값과 같을 때만 반영
    - 0행이면 다른 요청이 먼저 바꾼 것 → 재조회 후 build부터 다시 (COUNT_UPDATE_RETRIES 회)
    - 재시도 소진 시 Conflict

    ⚠️ commit/rollback 하지 않음. 호출자가 트랜잭션을 제어.
    """
    for attempt in range(1, COUNT_UPDATE_RETRIES + 1):
        values = build(meetup)
        result = db.execute(
            update(Meetup)
            .where(
                Meetup.id == meetup.id,
                Meetup.status == meetup.status,
                Meetup.current_count == meetup.current_count,
            )
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        db.refresh(meetup)
        if result.rowcount == 1:
            return meetup
        logger.warning("meetup %s changed concurrently (attempt %d/%d)", meetup.id, attempt, COUNT_UPDATE_RETRIES)
    raise CoreError(ErrorKind.CONFLICT, "Meetup was modified concurrently, please retry")


def confirm_meetup(db: Session, meetup_id: str, actor_id: str, now: Optional[datetime] = None) -> Meetup:
    """호스트가 모임 확정. OPEN → CONFIRMED."""
    now = now or utcnow()
    meetup = get_meetup(db, meetup_id, for_update=True)
    require_host(meetup, actor_id)

    def build(m: Meetup) -> Dict[str, Any]:
        require_transition(m, MeetupStatus.CONFIRMED)
        return {"status": MeetupStatus.CONFIRMED.value, "confirmed_at": now}

    guarded_update(db, meetup, build)
    logger.info("meetup %s confirmed", meetup_id)
    return meetup


def cancel_meetup(db: Session, meetup_id: str, actor_id: str, now: Optional[datetime] = None) -> Meetup:
    """
    호스트가 모임 취소. OPEN/CONFIRMED → CANCELLED.

    같은 트랜잭션 안에서 PENDING/APPROVED 참가를 모두 CANCELLED 처리하고,
    승인 인원만큼 current_count를 되돌린다 (호스트 1명 몫은 유지).
    """
    now = now or utcnow()
    meetup = get_meetup(db, meetup_id, for_update=True)
    require_host(meetup, actor_id)

    def build(m: Meetup) -> Dict[str, Any]:
        require_transition(m, MeetupStatus.CANCELLED)
        approved = db.scalar(
            select(func.count())
            .select_from(Participation)
            .where(
                Participation.meetup_id == m.id,
                Participation.status == ParticipationStatus.APPROVED.value,
            )
        )
        return {
            "status": MeetupStatus.CANCELLED.value,
            "cancelled_at": now,
            "current_count": max(m.current_count - (approved or 0), 0),
        }

    guarded_update(db, meetup, build)
    result = db.execute(
        update(Participation)
        .where(
            Participation.meetup_id == meetup.id,
            Participation.status.in_(ACTIVE_STATUSES),
        )
        .values(status=ParticipationStatus.CANCELLED.value, cancelled_at=now)
        .execution_options(synchronize_session="fetch")
    )
    logger.info("meetup %s cancelled, %d participations cancelled", meetup_id, result.rowcount)
    return meetup


def host_leaves(db: Session, meetup_id: str, host_id: str, now: Optional[datetime] = None) -> Meetup:
    """호스트는 나가기만 할 수 없음: 나가면 모임 취소."""
    return cancel_meetup(db, meetup_id, host_id, now)


def mark_completed(db: Session, meetup_id: str, now: datetime) -> Meetup:
    """시간 경과에 따른 종료 처리. CONFIRMED 이고 now ≥ scheduled_at 일 때만."""
    meetup = get_meetup(db, meetup_id, for_update=True)

    def build(m: Meetup) -> Dict[str, Any]:
        require_transition(m, MeetupStatus.COMPLETED)
        if as_utc(now) < as_utc(m.scheduled_at):
            raise CoreError(ErrorKind.INVALID_TRANSITION, "Meetup has not started yet")
        return {"status": MeetupStatus.COMPLETED.value, "completed_at": now}

    guarded_update(db, meetup, build)
    logger.info("meetup %s completed", meetup_id)
    return meetup


def list_due_for_completion(db: Session, now: datetime, duration_hours: float) -> List[str]:
    """시작 + duration_hours 가 지난 CONFIRMED 모임 id 목록 (스케줄러용)."""
    cutoff = as_utc(now) - timedelta(hours=duration_hours)
    rows = db.execute(
        select(Meetup.id)
        .where(Meetup.status == MeetupStatus.CONFIRMED.value, Meetup.scheduled_at <= cutoff)
        .order_by(Meetup.scheduled_at)
    ).all()
    return [row[0] for row in rows]
