# 도메인 오류: 호출자가 복구 가능한 검증 실패를 닫힌 종류(ErrorKind)로 표현

from enum import Enum
from typing import Optional


class ErrorKind(str, Enum):
    NOT_FOUND = "NotFound"
    NOT_HOST = "NotHost"
    NOT_OPEN = "NotOpen"
    FULL = "Full"
    ALREADY_JOINED = "AlreadyJoined"
    NO_SUCH_PARTICIPATION = "NoSuchParticipation"
    NOT_APPROVED = "NotApproved"
    INVALID_TOKEN = "InvalidToken"
    OUT_OF_RANGE = "OutOfRange"
    INVALID_COORDINATES = "InvalidCoordinates"
    INVALID_TRANSITION = "InvalidTransition"
    NOT_ELIGIBLE = "NotEligible"
    DUPLICATE_REVIEW = "DuplicateReview"
    SELF_REVIEW = "SelfReview"
    SELF_CONFIRMATION = "SelfConfirmation"
    NOT_CO_PARTICIPANT = "NotCoParticipant"
    INVALID_RATING = "InvalidRating"
    CONFLICT = "Conflict"


STATUS_CODES: dict[ErrorKind, int] = {
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.NOT_HOST: 403,
    ErrorKind.NOT_OPEN: 409,
    ErrorKind.FULL: 409,
    ErrorKind.ALREADY_JOINED: 409,
    ErrorKind.NO_SUCH_PARTICIPATION: 404,
    ErrorKind.NOT_APPROVED: 403,
    ErrorKind.INVALID_TOKEN: 400,
    ErrorKind.OUT_OF_RANGE: 400,
    ErrorKind.INVALID_COORDINATES: 400,
    ErrorKind.INVALID_TRANSITION: 409,
    ErrorKind.NOT_ELIGIBLE: 403,
    ErrorKind.DUPLICATE_REVIEW: 409,
    ErrorKind.SELF_REVIEW: 400,
    ErrorKind.SELF_CONFIRMATION: 400,
    ErrorKind.NOT_CO_PARTICIPANT: 403,
    ErrorKind.INVALID_RATING: 400,
    ErrorKind.CONFLICT: 409,
}


class CoreError(Exception):
    """crud 계층에서 발생하는 검증 실패. 라우터가 rollback 후 HTTP 응답으로 변환."""

    def __init__(self, kind: ErrorKind, message: Optional[str] = None):
        self.kind = kind
        self.message = message or kind.value
        self.status_code = STATUS_CODES[kind]
        super().__init__(self.message)


class CheckInRejected(CoreError):
    """
    체크인 거절. 거절된 시도도 감사 기록(AttendanceRecord, status=REJECTED)으로 남기므로
    라우터는 rollback 대신 commit 후 오류를 응답한다.
    """

    def __init__(self, kind: ErrorKind, record, message: Optional[str] = None):
        super().__init__(kind, message)
        self.record = record
