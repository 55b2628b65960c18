# 출석 체크인(QR/GPS/호스트), 상호 확인, 노쇼 패널티 API
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from babal.crud.attendance_crud import (
    apply_no_show_penalties,
    attendance_summary,
    check_in_with_location,
    check_in_with_token,
    generate_checkin_token,
    host_confirm_attendance,
    mutual_confirm,
    verify_location,
)
from babal.database import get_db
from babal.deps import get_actor_id
from babal.realtime.sse_pubsub import publish_penalty_applied
from babal.routers.common import fail
from babal.schemas.attendance import (
    AttendanceRecordResponse,
    AttendanceSummaryResponse,
    CheckInTokenResponse,
    LocationBody,
    LocationCheckResponse,
    MutualConfirmResponse,
    NoShowPenaltyBody,
    NoShowPenaltyResponse,
    QrCheckInBody,
)
from babal.services.clock import utcnow

router = APIRouter(prefix="/meetups", tags=["Attendance"])


@router.post("/{meetup_id}/checkin-token", response_model=CheckInTokenResponse)
def post_checkin_token(meetup_id: str, actor_id: str = Depends(get_actor_id), db: Session = Depends(get_db)):
    """호스트 화면에 띄울 QR 토큰 발급."""
    try:
        token, expires_at = generate_checkin_token(db, meetup_id, actor_id, utcnow())
        return CheckInTokenResponse(token=token, expires_at=expires_at)
    except Exception as e:
        raise fail(db, e, "issue check-in token")


@router.post("/{meetup_id}/checkin/qr", response_model=AttendanceRecordResponse)
def post_checkin_qr(
    meetup_id: str,
    body: QrCheckInBody,
    actor_id: str = Depends(get_actor_id),
    db: Session = Depends(get_db),
):
    try:
        record = check_in_with_token(db, meetup_id, actor_id, body.token, utcnow())
        db.commit()
        return AttendanceRecordResponse.model_validate(record)
    except Exception as e:
        # 거절 기록은 fail()에서 commit
        raise fail(db, e, "check in")


@router.post("/{meetup_id}/checkin/gps", response_model=AttendanceRecordResponse)
def post_checkin_gps(
    meetup_id: str,
    body: LocationBody,
    actor_id: str = Depends(get_actor_id),
    db: Session = Depends(get_db),
):
    try:
        record = check_in_with_location(db, meetup_id, actor_id, body.lat, body.lng, utcnow())
        db.commit()
        return AttendanceRecordResponse.model_validate(record)
    except Exception as e:
        raise fail(db, e, "check in")


@router.post("/{meetup_id}/attendance/{participant_id}/host-confirm", response_model=AttendanceRecordResponse)
def post_host_confirm(
    meetup_id: str,
    participant_id: str,
    actor_id: str = Depends(get_actor_id),
    db: Session = Depends(get_db),
):
    """호스트가 직접 출석 확인 (QR/GPS 불가 시)."""
    try:
        record = host_confirm_attendance(db, meetup_id, actor_id, participant_id, utcnow())
        db.commit()
        return AttendanceRecordResponse.model_validate(record)
    except Exception as e:
        raise fail(db, e, "confirm attendance")


@router.post("/{meetup_id}/attendance/{participant_id}/mutual-confirm", response_model=MutualConfirmResponse)
def post_mutual_confirm(
    meetup_id: str,
    participant_id: str,
    actor_id: str = Depends(get_actor_id),
    db: Session = Depends(get_db),
):
    try:
        confirmation = mutual_confirm(db, meetup_id, actor_id, participant_id, utcnow())
        db.commit()
        return MutualConfirmResponse(
            message="confirmed",
            meetup_id=confirmation.meetup_id,
            confirmer_id=confirmation.confirmer_id,
            confirmed_id=confirmation.confirmed_id,
        )
    except Exception as e:
        raise fail(db, e, "confirm attendance")


@router.post("/{meetup_id}/verify-location", response_model=LocationCheckResponse)
def post_verify_location(meetup_id: str, body: LocationBody, db: Session = Depends(get_db)):
    try:
        return LocationCheckResponse(**verify_location(db, meetup_id, body.lat, body.lng))
    except Exception as e:
        raise fail(db, e, "verify location")


@router.get("/{meetup_id}/attendance", response_model=AttendanceSummaryResponse)
def get_attendance(meetup_id: str, actor_id: str = Depends(get_actor_id), db: Session = Depends(get_db)):
    try:
        summary = attendance_summary(db, meetup_id, actor_id)
        mine = summary["my_attendance"]
        return AttendanceSummaryResponse(
            total_participants=summary["total_participants"],
            attended_count=summary["attended_count"],
            my_attendance=AttendanceRecordResponse.model_validate(mine) if mine is not None else None,
            mutual_confirmations=summary["mutual_confirmations"],
        )
    except Exception as e:
        raise fail(db, e, "load attendance")


@router.post("/{meetup_id}/no-show-penalties", response_model=NoShowPenaltyResponse)
async def post_no_show_penalties(
    meetup_id: str,
    body: NoShowPenaltyBody,
    actor_id: str = Depends(get_actor_id),
    db: Session = Depends(get_db),
):
    """
    호스트의 노쇼 패널티 요청.
    같은 사용자에 대해 다시 요청해도 already_penalized 로만 응답 (중복 차감 없음).
    """
    try:
        outcome = apply_no_show_penalties(
            db, meetup_id, actor_id, body.user_ids, body.amount, body.reason, utcnow()
        )
        db.commit()
    except Exception as e:
        raise fail(db, e, "apply no-show penalties")

    # 포인트 원장은 구독 측에서 처리
    await publish_penalty_applied(
        meetup_id,
        [
            {"penalty_id": p.id, "user_id": p.user_id, "amount": p.amount, "reason": p.reason}
            for p in outcome.penalized
        ],
    )
    return NoShowPenaltyResponse(
        penalized=[p.user_id for p in outcome.penalized],
        already_penalized=outcome.already_penalized,
        attended=outcome.attended,
        not_participant=outcome.not_participant,
    )
