# 출석 체크인(QR/GPS/호스트 확인), 상호 확인, 노쇼 패널티 CRUD
import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from babal.config import CHECKIN_RADIUS_M
from babal.crud.meetup_crud import get_meetup, require_host
from babal.crud.participation_crud import get_active_participation, is_approved
from babal.errors import CheckInRejected, CoreError, ErrorKind
from babal.models.attendance import AttendanceRecord, AttendanceStatus, CheckInMethod, MutualConfirmation
from babal.models.meetup import Meetup, MeetupStatus
from babal.models.participation import Participation, ParticipationStatus
from babal.models.penalty import NoShowPenalty
from babal.services.checkin_token import issue_checkin_token, read_checkin_token
from babal.services.clock import utcnow
from babal.services.geo import distance_m, valid_coordinates

logger = logging.getLogger(__name__)

PENALTY_ELIGIBLE_STATUSES = (MeetupStatus.CONFIRMED.value, MeetupStatus.COMPLETED.value)


@dataclass
class PenaltyOutcome:
    """노쇼 패널티 적용 결과. penalized만 이번 호출에서 새로 기록된 건."""

    penalized: List[NoShowPenalty] = field(default_factory=list)
    already_penalized: List[str] = field(default_factory=list)
    attended: List[str] = field(default_factory=list)
    not_participant: List[str] = field(default_factory=list)


def checkin_radius(meetup: Meetup) -> float:
    """모임별 반경이 있으면 그 값, 없으면 전역 설정."""
    if meetup.checkin_radius_m is not None:
        return float(meetup.checkin_radius_m)
    return CHECKIN_RADIUS_M


def get_confirmed_record(db: Session, meetup_id: str, user_id: str) -> Optional[AttendanceRecord]:
    return (
        db.query(AttendanceRecord)
        .filter(
            AttendanceRecord.meetup_id == meetup_id,
            AttendanceRecord.user_id == user_id,
            AttendanceRecord.status == AttendanceStatus.CONFIRMED.value,
        )
        .order_by(AttendanceRecord.confirmed_at)
        .first()
    )


def _require_approved(db: Session, meetup_id: str, user_id: str) -> None:
    if not is_approved(db, meetup_id, user_id):
        raise CoreError(ErrorKind.NOT_APPROVED, "Only approved participants can check in")


def _record(db: Session, **values) -> AttendanceRecord:
    record = AttendanceRecord(**values)
    db.add(record)
    db.flush()
    return record


def generate_checkin_token(
    db: Session, meetup_id: str, actor_id: str, now: Optional[datetime] = None
) -> Tuple[str, datetime]:
    """호스트용 QR 체크인 토큰 발급. 확정(CONFIRMED)된 모임만."""
    now = now or utcnow()
    meetup = get_meetup(db, meetup_id)
    require_host(meetup, actor_id)
    if meetup.status != MeetupStatus.CONFIRMED:
        raise CoreError(ErrorKind.INVALID_TRANSITION, "Check-in tokens are issued for confirmed meetups only")
    return issue_checkin_token(meetup_id, now)


def check_in_with_token(
    db: Session, meetup_id: str, user_id: str, token: str, now: Optional[datetime] = None
) -> AttendanceRecord:
    """
    QR 토큰 체크인.
    이미 출석 확인된 경우 기존 기록 반환. 잘못된/만료 토큰은 REJECTED 기록 후 InvalidToken.
    """
    now = now or utcnow()
    get_meetup(db, meetup_id)
    _require_approved(db, meetup_id, user_id)

    existing = get_confirmed_record(db, meetup_id, user_id)
    if existing is not None:
        return existing

    reason = read_checkin_token(token, meetup_id, now)
    if reason is not None:
        record = _record(
            db,
            meetup_id=meetup_id,
            user_id=user_id,
            method=CheckInMethod.QR.value,
            status=AttendanceStatus.REJECTED.value,
            reject_reason=ErrorKind.INVALID_TOKEN.value,
            created_at=now,
        )
        logger.info("QR check-in rejected for %s in meetup %s: %s", user_id, meetup_id, reason)
        raise CheckInRejected(ErrorKind.INVALID_TOKEN, record, reason)

    record = _record(
        db,
        meetup_id=meetup_id,
        user_id=user_id,
        method=CheckInMethod.QR.value,
        status=AttendanceStatus.CONFIRMED.value,
        created_at=now,
        confirmed_at=now,
    )
    logger.info("QR check-in confirmed for %s in meetup %s", user_id, meetup_id)
    return record


def check_in_with_location(
    db: Session,
    meetup_id: str,
    user_id: str,
    lat: float,
    lng: float,
    now: Optional[datetime] = None,
) -> AttendanceRecord:
    """
    GPS 체크인. 좌표 범위 검사가 가장 먼저.
    반경 밖이면 거리와 함께 REJECTED 기록을 남기고 OutOfRange.
    """
    if not valid_coordinates(lat, lng):
        raise CoreError(ErrorKind.INVALID_COORDINATES, "Latitude must be within ±90 and longitude within ±180")

    now = now or utcnow()
    meetup = get_meetup(db, meetup_id)
    _require_approved(db, meetup_id, user_id)

    existing = get_confirmed_record(db, meetup_id, user_id)
    if existing is not None:
        return existing

    distance = distance_m(meetup.lat, meetup.lng, float(lat), float(lng))
    radius = checkin_radius(meetup)
    if distance > radius:
        record = _record(
            db,
            meetup_id=meetup_id,
            user_id=user_id,
            method=CheckInMethod.GPS.value,
            submitted_lat=lat,
            submitted_lng=lng,
            distance_m=distance,
            status=AttendanceStatus.REJECTED.value,
            reject_reason=ErrorKind.OUT_OF_RANGE.value,
            created_at=now,
        )
        logger.info("GPS check-in rejected for %s in meetup %s: %.0fm > %.0fm", user_id, meetup_id, distance, radius)
        raise CheckInRejected(
            ErrorKind.OUT_OF_RANGE,
            record,
            f"Check-in is only possible within {radius:.0f}m of the meetup location (distance {distance:.0f}m)",
        )

    record = _record(
        db,
        meetup_id=meetup_id,
        user_id=user_id,
        method=CheckInMethod.GPS.value,
        submitted_lat=lat,
        submitted_lng=lng,
        distance_m=distance,
        status=AttendanceStatus.CONFIRMED.value,
        created_at=now,
        confirmed_at=now,
    )
    logger.info("GPS check-in confirmed for %s in meetup %s (%.0fm)", user_id, meetup_id, distance)
    return record


def host_confirm_attendance(
    db: Session, meetup_id: str, actor_id: str, participant_id: str, now: Optional[datetime] = None
) -> AttendanceRecord:
    """호스트가 승인된 참가자의 출석을 직접 확인."""
    now = now or utcnow()
    meetup = get_meetup(db, meetup_id)
    require_host(meetup, actor_id)
    _require_approved(db, meetup_id, participant_id)

    existing = get_confirmed_record(db, meetup_id, participant_id)
    if existing is not None:
        return existing

    return _record(
        db,
        meetup_id=meetup_id,
        user_id=participant_id,
        method=CheckInMethod.HOST.value,
        status=AttendanceStatus.CONFIRMED.value,
        confirmed_by=actor_id,
        created_at=now,
        confirmed_at=now,
    )


def mutual_confirm(
    db: Session, meetup_id: str, confirmer_id: str, confirmed_id: str, now: Optional[datetime] = None
) -> MutualConfirmation:
    """참가자끼리 출석 확인. 같은 쌍은 한 번만 기록."""
    if confirmer_id == confirmed_id:
        raise CoreError(ErrorKind.SELF_CONFIRMATION, "Cannot confirm your own attendance")

    now = now or utcnow()
    meetup = get_meetup(db, meetup_id)
    if confirmer_id != meetup.host_id and not is_approved(db, meetup_id, confirmer_id):
        raise CoreError(ErrorKind.NOT_APPROVED, "Only approved participants can confirm attendance")
    if confirmed_id != meetup.host_id and not is_approved(db, meetup_id, confirmed_id):
        raise CoreError(ErrorKind.NOT_CO_PARTICIPANT, "Confirmed user is not a participant of this meetup")

    existing = (
        db.query(MutualConfirmation)
        .filter(
            MutualConfirmation.meetup_id == meetup_id,
            MutualConfirmation.confirmer_id == confirmer_id,
            MutualConfirmation.confirmed_id == confirmed_id,
        )
        .first()
    )
    if existing is not None:
        return existing

    confirmation = MutualConfirmation(
        meetup_id=meetup_id, confirmer_id=confirmer_id, confirmed_id=confirmed_id, created_at=now
    )
    db.add(confirmation)
    db.flush()
    return confirmation


def verify_location(db: Session, meetup_id: str, lat: float, lng: float) -> Dict[str, float]:
    """체크인 전 위치 미리 확인 (기록 없음)."""
    if not valid_coordinates(lat, lng):
        raise CoreError(ErrorKind.INVALID_COORDINATES, "Latitude must be within ±90 and longitude within ±180")
    meetup = get_meetup(db, meetup_id)
    distance = distance_m(meetup.lat, meetup.lng, float(lat), float(lng))
    radius = checkin_radius(meetup)
    return {"distance_m": distance, "max_distance_m": radius, "within_range": distance <= radius}


def attendance_summary(db: Session, meetup_id: str, user_id: str) -> Dict[str, object]:
    """승인 인원, 출석 인원, 내 출석 기록, 나를 확인해 준 참가자 수."""
    get_meetup(db, meetup_id)
    approved_ids = [
        row[0]
        for row in db.execute(
            select(Participation.user_id).where(
                Participation.meetup_id == meetup_id,
                Participation.status == ParticipationStatus.APPROVED.value,
            )
        ).all()
    ]
    attended_ids = {
        row[0]
        for row in db.execute(
            select(AttendanceRecord.user_id).where(
                AttendanceRecord.meetup_id == meetup_id,
                AttendanceRecord.status == AttendanceStatus.CONFIRMED.value,
            )
        ).all()
    }
    mutual_count = db.scalar(
        select(func.count())
        .select_from(MutualConfirmation)
        .where(MutualConfirmation.meetup_id == meetup_id, MutualConfirmation.confirmed_id == user_id)
    )
    return {
        "total_participants": len(approved_ids),
        "attended_count": sum(1 for uid in approved_ids if uid in attended_ids),
        "my_attendance": get_confirmed_record(db, meetup_id, user_id),
        "mutual_confirmations": mutual_count or 0,
    }


def find_no_show_user_ids(db: Session, meetup: Meetup) -> List[str]:
    """승인된 참가자 중 (호스트 제외) 출석 확인 기록이 없는 사용자."""
    attended = select(AttendanceRecord.user_id).where(
        AttendanceRecord.meetup_id == meetup.id,
        AttendanceRecord.status == AttendanceStatus.CONFIRMED.value,
    )
    rows = db.execute(
        select(Participation.user_id)
        .where(
            Participation.meetup_id == meetup.id,
            Participation.status == ParticipationStatus.APPROVED.value,
            Participation.user_id != meetup.host_id,
            Participation.user_id.not_in(attended),
        )
        .order_by(Participation.joined_at)
    ).all()
    return [row[0] for row in rows]


def record_no_show_penalties(
    db: Session,
    meetup: Meetup,
    user_ids: Iterable[str],
    amount: int,
    reason: str,
    applied_by: Optional[str],
    now: datetime,
) -> PenaltyOutcome:
    """
    권한 검사 없이 패널티 기록 (호스트 요청과 스케줄러가 공유).
    (meetup, user) 당 1건이라 같은 목록으로 다시 호출해도 새로 기록되지 않는다.
    """
    outcome = PenaltyOutcome()
    seen = set()
    for user_id in user_ids:
        if user_id in seen:
            continue
        seen.add(user_id)

        participation = get_active_participation(db, meetup.id, user_id)
        if (
            user_id == meetup.host_id
            or participation is None
            or participation.status != ParticipationStatus.APPROVED.value
        ):
            outcome.not_participant.append(user_id)
            continue
        if get_confirmed_record(db, meetup.id, user_id) is not None:
            outcome.attended.append(user_id)
            continue
        already = (
            db.query(NoShowPenalty)
            .filter(NoShowPenalty.meetup_id == meetup.id, NoShowPenalty.user_id == user_id)
            .first()
        )
        if already is not None:
            outcome.already_penalized.append(user_id)
            continue

        penalty = NoShowPenalty(
            meetup_id=meetup.id,
            user_id=user_id,
            amount=amount,
            reason=reason,
            applied_by=applied_by,
            created_at=now,
        )
        db.add(penalty)
        outcome.penalized.append(penalty)

    db.flush()
    if outcome.penalized:
        logger.info(
            "meetup %s: no-show penalty (%s) recorded for %s",
            meetup.id,
            amount,
            ", ".join(p.user_id for p in outcome.penalized),
        )
    return outcome


def apply_no_show_penalties(
    db: Session,
    meetup_id: str,
    actor_id: str,
    user_ids: Iterable[str],
    amount: int,
    reason: str,
    now: Optional[datetime] = None,
) -> PenaltyOutcome:
    """호스트가 노쇼 참가자에게 패널티 요청. CONFIRMED/COMPLETED 모임만, 재요청해도 중복 차감 없음."""
    now = now or utcnow()
    meetup = get_meetup(db, meetup_id, for_update=True)
    require_host(meetup, actor_id)
    if meetup.status not in PENALTY_ELIGIBLE_STATUSES:
        raise CoreError(ErrorKind.INVALID_TRANSITION, "No-show penalties apply to confirmed or completed meetups only")
    return record_no_show_penalties(db, meetup, user_ids, amount, reason, actor_id, now)
