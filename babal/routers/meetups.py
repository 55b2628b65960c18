# 모임 생성/조회, 상태 전환, 참가 신청/승인/취소 API
from typing import Optional

from fastapi import APIRouter, Depends, Query
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session

from babal.crud.meetup_crud import cancel_meetup, confirm_meetup, create_meetup, get_meetup, mark_completed
from babal.crud.participation_crud import (
    cancel_participation,
    decide_participation,
    join_meetup,
    leave_meetup,
    list_participants,
)
from babal.database import get_db
from babal.deps import get_actor_id
from babal.models.participation import ParticipationStatus
from babal.realtime.sse_pubsub import (
    publish_meetup_status_changed,
    publish_participation_decided,
    stream_meetup_events,
)
from babal.routers.common import fail
from babal.schemas.meetup import MeetupCreate, MeetupResponse
from babal.schemas.participation import (
    DecideBody,
    ParticipantListResponse,
    ParticipationChangeResponse,
    ParticipationResponse,
)
from babal.services.clock import utcnow

router = APIRouter(prefix="/meetups", tags=["Meetups"])


@router.post("", response_model=MeetupResponse, status_code=201)
def post_meetup(body: MeetupCreate, actor_id: str = Depends(get_actor_id), db: Session = Depends(get_db)):
    """모임 생성. 요청자가 호스트, 호스트 포함 current_count=1."""
    try:
        meetup = create_meetup(
            db,
            host_id=actor_id,
            title=body.title,
            description=body.description,
            address=body.address,
            lat=body.lat,
            lng=body.lng,
            scheduled_at=body.scheduled_at,
            capacity=body.capacity,
            checkin_radius_m=body.checkin_radius_m,
        )
        db.commit()
        db.refresh(meetup)
        return MeetupResponse.model_validate(meetup)
    except Exception as e:
        raise fail(db, e, "create meetup")


@router.get("/{meetup_id}", response_model=MeetupResponse)
def get_meetup_detail(meetup_id: str, db: Session = Depends(get_db)):
    try:
        return MeetupResponse.model_validate(get_meetup(db, meetup_id))
    except Exception as e:
        raise fail(db, e, "load meetup")


@router.post("/{meetup_id}/confirm", response_model=MeetupResponse)
async def post_confirm(meetup_id: str, actor_id: str = Depends(get_actor_id), db: Session = Depends(get_db)):
    """호스트가 모임 확정 (OPEN → CONFIRMED)."""
    try:
        meetup = confirm_meetup(db, meetup_id, actor_id, utcnow())
        db.commit()  # ✅ 트랜잭션 소유권: 라우터
    except Exception as e:
        raise fail(db, e, "confirm meetup")
    # commit 후 알림 발행 (실패해도 확정은 유지)
    await publish_meetup_status_changed(meetup_id, meetup.status, meetup.current_count)
    return MeetupResponse.model_validate(meetup)


@router.post("/{meetup_id}/cancel", response_model=MeetupResponse)
async def post_cancel(meetup_id: str, actor_id: str = Depends(get_actor_id), db: Session = Depends(get_db)):
    """호스트가 모임 취소. 진행 중인 참가 신청/승인은 모두 함께 취소."""
    try:
        meetup = cancel_meetup(db, meetup_id, actor_id, utcnow())
        db.commit()
    except Exception as e:
        raise fail(db, e, "cancel meetup")
    await publish_meetup_status_changed(meetup_id, meetup.status, meetup.current_count)
    return MeetupResponse.model_validate(meetup)


@router.post("/{meetup_id}/complete", response_model=MeetupResponse)
async def post_complete(meetup_id: str, db: Session = Depends(get_db)):
    """시간 경과 종료 처리 (스케줄러/운영 호출). CONFIRMED 이고 시작 시각 이후만."""
    try:
        meetup = mark_completed(db, meetup_id, utcnow())
        db.commit()
    except Exception as e:
        raise fail(db, e, "complete meetup")
    await publish_meetup_status_changed(meetup_id, meetup.status, meetup.current_count)
    return MeetupResponse.model_validate(meetup)


@router.post("/{meetup_id}/join", response_model=ParticipationChangeResponse)
def post_join(meetup_id: str, actor_id: str = Depends(get_actor_id), db: Session = Depends(get_db)):
    """참가 신청 (PENDING). 인원 수는 호스트 승인 때 증가."""
    try:
        participation = join_meetup(db, meetup_id, actor_id, utcnow())
        db.commit()
        meetup = get_meetup(db, meetup_id)
        return ParticipationChangeResponse(
            message="joined",
            participation=ParticipationResponse.model_validate(participation),
            current_count=meetup.current_count,
            meetup_status=meetup.status,
        )
    except Exception as e:
        raise fail(db, e, "join meetup")


@router.patch("/{meetup_id}/participants/{user_id}", response_model=ParticipationChangeResponse)
async def patch_participant(
    meetup_id: str,
    user_id: str,
    body: DecideBody,
    actor_id: str = Depends(get_actor_id),
    db: Session = Depends(get_db),
):
    """호스트가 참가 신청 승인/거절."""
    try:
        participation = decide_participation(db, meetup_id, user_id, actor_id, body.approve, utcnow())
        db.commit()
        meetup = get_meetup(db, meetup_id)
    except Exception as e:
        raise fail(db, e, "update participant")
    await publish_participation_decided(meetup_id, user_id, participation.status, meetup.current_count)
    return ParticipationChangeResponse(
        message="approved" if body.approve else "rejected",
        participation=ParticipationResponse.model_validate(participation),
        current_count=meetup.current_count,
        meetup_status=meetup.status,
    )


@router.post("/{meetup_id}/cancel-participation", response_model=ParticipationChangeResponse)
def post_cancel_participation(meetup_id: str, actor_id: str = Depends(get_actor_id), db: Session = Depends(get_db)):
    """본인 참가 취소. 승인 상태였을 때만 인원 감소."""
    try:
        participation = cancel_participation(db, meetup_id, actor_id, utcnow())
        db.commit()
        meetup = get_meetup(db, meetup_id)
        return ParticipationChangeResponse(
            message="cancelled",
            participation=ParticipationResponse.model_validate(participation),
            current_count=meetup.current_count,
            meetup_status=meetup.status,
        )
    except Exception as e:
        raise fail(db, e, "cancel participation")


@router.delete("/{meetup_id}/leave", response_model=ParticipationChangeResponse)
async def delete_leave(meetup_id: str, actor_id: str = Depends(get_actor_id), db: Session = Depends(get_db)):
    """모임 나가기. 호스트가 나가면 모임 취소."""
    try:
        participation = leave_meetup(db, meetup_id, actor_id, utcnow())
        db.commit()
        meetup = get_meetup(db, meetup_id)
    except Exception as e:
        raise fail(db, e, "leave meetup")
    if participation is None:
        await publish_meetup_status_changed(meetup_id, meetup.status, meetup.current_count)
        return ParticipationChangeResponse(
            message="meetup cancelled",
            current_count=meetup.current_count,
            meetup_status=meetup.status,
        )
    return ParticipationChangeResponse(
        message="left",
        participation=ParticipationResponse.model_validate(participation),
        current_count=meetup.current_count,
        meetup_status=meetup.status,
    )


@router.get("/{meetup_id}/participants", response_model=ParticipantListResponse)
def get_participants(
    meetup_id: str,
    status: Optional[ParticipationStatus] = Query(None),
    db: Session = Depends(get_db),
):
    try:
        participants = list_participants(db, meetup_id, status)
        return ParticipantListResponse(
            participants=[ParticipationResponse.model_validate(p) for p in participants]
        )
    except Exception as e:
        raise fail(db, e, "list participants")


@router.get("/{meetup_id}/events/stream")
async def get_event_stream(meetup_id: str):
    """SSE: 해당 모임의 상태 전환 이벤트 실시간 스트림 (meetup_status_changed, participation_decided, penalty_applied)."""
    return StreamingResponse(
        stream_meetup_events(meetup_id),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",
        },
    )
