"""
주기 작업 (cron/스케줄러에서 실행).

    python -m babal.jobs status    # 시작 + MEETUP_DURATION_HOURS 지난 CONFIRMED 모임 → COMPLETED
    python -m babal.jobs no-show   # 종료 + NO_SHOW_GRACE_HOURS 지난 모임의 미출석 참가자 패널티

모임 단위로 commit 하고 실패한 모임은 rollback 후 건너뛰므로 한 건 실패가 나머지 처리를 막지 않는다.
"""
import argparse
import asyncio
import logging
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from babal.config import LOG_LEVEL, MEETUP_DURATION_HOURS, NO_SHOW_GRACE_HOURS, NO_SHOW_PENALTY_POINTS
from babal.crud.attendance_crud import find_no_show_user_ids, record_no_show_penalties
from babal.crud.meetup_crud import get_meetup, list_due_for_completion, mark_completed
from babal.errors import CoreError
from babal.models.meetup import Meetup, MeetupStatus
from babal.realtime.sse_pubsub import publish_meetup_status_changed, publish_penalty_applied
from babal.services.clock import as_utc, utcnow

logger = logging.getLogger(__name__)

NO_SHOW_REASON = "no_show"


def run_status_transition(db: Session, now: Optional[datetime] = None) -> List[str]:
    """종료 시각이 지난 CONFIRMED 모임을 COMPLETED 로. 전환된 모임 id 반환."""
    now = now or utcnow()
    completed = []
    for meetup_id in list_due_for_completion(db, now, MEETUP_DURATION_HOURS):
        try:
            mark_completed(db, meetup_id, now)
            db.commit()
            completed.append(meetup_id)
        except CoreError as e:
            db.rollback()
            logger.warning("meetup %s not completed: %s", meetup_id, e.message)
        except SQLAlchemyError as e:
            db.rollback()
            logger.warning("meetup %s not completed: %s", meetup_id, e)
    if completed:
        logger.info("status job: %d meetups completed", len(completed))
    return completed


def _process_no_shows(db: Session, meetup_id: str, now: datetime) -> List[Dict]:
    meetup = get_meetup(db, meetup_id, for_update=True)
    no_shows = find_no_show_user_ids(db, meetup)
    penalized = []
    if no_shows:
        outcome = record_no_show_penalties(
            db, meetup, no_shows, NO_SHOW_PENALTY_POINTS, NO_SHOW_REASON, None, now
        )
        penalized = [
            {"penalty_id": p.id, "user_id": p.user_id, "amount": p.amount, "reason": p.reason}
            for p in outcome.penalized
        ]
    meetup.no_show_processed_at = now
    db.commit()
    return penalized


def run_no_show_processing(db: Session, now: Optional[datetime] = None) -> Dict[str, List[Dict]]:
    """
    종료 후 유예 시간이 지난 COMPLETED 모임의 미출석 참가자에게 패널티 기록 (applied_by=NULL).
    처리한 모임은 no_show_processed_at 으로 표시해 다음 실행에서 제외한다.
    실패한 모임은 표시되지 않으므로 다음 실행에서 다시 시도된다.
    반환: {meetup_id: [{"penalty_id", "user_id", "amount", "reason"}]}
    """
    now = now or utcnow()
    cutoff = as_utc(now) - timedelta(hours=MEETUP_DURATION_HOURS + NO_SHOW_GRACE_HOURS)
    meetup_ids = [
        row[0]
        for row in db.execute(
            select(Meetup.id)
            .where(
                Meetup.status == MeetupStatus.COMPLETED.value,
                Meetup.scheduled_at <= cutoff,
                Meetup.no_show_processed_at.is_(None),
            )
            .order_by(Meetup.scheduled_at)
        ).all()
    ]

    applied: Dict[str, List[Dict]] = {}
    for meetup_id in meetup_ids:
        try:
            penalized = _process_no_shows(db, meetup_id, now)
        except CoreError as e:
            db.rollback()
            logger.warning("no-show processing skipped for meetup %s: %s", meetup_id, e.message)
            continue
        except SQLAlchemyError as e:
            # 호스트 요청과 경합해 유니크 키 충돌 등
            db.rollback()
            logger.warning("no-show processing failed for meetup %s: %s", meetup_id, e)
            continue
        if penalized:
            applied[meetup_id] = penalized
    if applied:
        logger.info("no-show job: penalties recorded for %d meetups", len(applied))
    return applied


async def _publish_completed(meetup_ids: List[str]) -> None:
    for meetup_id in meetup_ids:
        await publish_meetup_status_changed(meetup_id, MeetupStatus.COMPLETED.value)


async def _publish_penalties(applied: Dict[str, List[Dict]]) -> None:
    for meetup_id, penalties in applied.items():
        await publish_penalty_applied(meetup_id, penalties)


def main(argv: Optional[List[str]] = None) -> None:
    parser = argparse.ArgumentParser(prog="babal.jobs", description="Babal periodic jobs")
    parser.add_argument("job", choices=["status", "no-show"])
    args = parser.parse_args(argv)

    logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s [%(name)s] %(message)s")

    from babal.database import SessionLocal

    db = SessionLocal()
    try:
        if args.job == "status":
            asyncio.run(_publish_completed(run_status_transition(db)))
        else:
            asyncio.run(_publish_penalties(run_no_show_processing(db)))
    finally:
        db.close()


if __name__ == "__main__":
    main()
