# 라우터 공통: 트랜잭션 정리 + CoreError → HTTPException 변환
import logging

from fastapi import HTTPException
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from babal.errors import CheckInRejected, CoreError, ErrorKind, STATUS_CODES

logger = logging.getLogger(__name__)


def http_error(kind: ErrorKind, message: str) -> HTTPException:
    return HTTPException(status_code=STATUS_CODES[kind], detail={"error": kind.value, "message": message})


def fail(db: Session, exc: Exception, action: str) -> HTTPException:
    """
    예외 종류별로 rollback/commit 후 응답용 HTTPException 반환.

    - CheckInRejected: 거절 기록을 남기기 위해 commit
    - CoreError: rollback, 종류별 상태 코드
    - IntegrityError: 동시 요청의 유니크 제약 충돌 → Conflict (재요청 가능)
    - 그 외: rollback, 500
    """
    if isinstance(exc, CheckInRejected):
        db.commit()
        return http_error(exc.kind, exc.message)
    db.rollback()
    if isinstance(exc, CoreError):
        return http_error(exc.kind, exc.message)
    if isinstance(exc, IntegrityError):
        logger.warning("%s: integrity conflict: %s", action, exc.orig)
        return http_error(ErrorKind.CONFLICT, "Concurrent update detected, please retry")
    logger.exception("%s failed", action)
    return HTTPException(status_code=500, detail=f"Failed to {action}")
