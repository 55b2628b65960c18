# 체크인 QR 토큰: 모임 id에 묶인 서명 토큰 (JWT, HS256). 만료는 호출자가 넘긴 now 기준으로 검사.

import uuid
from datetime import datetime, timezone
from typing import Optional, Tuple

from jose import JWTError, jwt

from babal.config import CHECKIN_TOKEN_ALGORITHM, CHECKIN_TOKEN_SECRET, CHECKIN_TOKEN_TTL_SEC

TOKEN_TYPE = "checkin"


def issue_checkin_token(meetup_id: str, now: datetime, ttl_sec: Optional[int] = None) -> Tuple[str, datetime]:
    """토큰과 만료 시각 반환."""
    ttl = CHECKIN_TOKEN_TTL_SEC if ttl_sec is None else ttl_sec
    issued_ts = int(now.timestamp())
    expires_ts = issued_ts + ttl
    claims = {
        "sub": meetup_id,
        "typ": TOKEN_TYPE,
        "iat": issued_ts,
        "exp": expires_ts,
        "jti": uuid.uuid4().hex,
    }
    token = jwt.encode(claims, CHECKIN_TOKEN_SECRET, algorithm=CHECKIN_TOKEN_ALGORITHM)
    return token, datetime.fromtimestamp(expires_ts, tz=timezone.utc)


def read_checkin_token(token: str, meetup_id: str, now: datetime) -> Optional[str]:
    """
    토큰 검증. 유효하면 None, 아니면 거절 사유 문자열.
    서명 오류 / 다른 모임 토큰 / 만료 모두 거절.
    """
    if not isinstance(token, str) or not token:
        return "Malformed check-in token"
    try:
        claims = jwt.decode(
            token,
            CHECKIN_TOKEN_SECRET,
            algorithms=[CHECKIN_TOKEN_ALGORITHM],
            options={"verify_exp": False, "verify_iat": False},
        )
    except JWTError:
        return "Check-in token signature is invalid"
    if claims.get("typ") != TOKEN_TYPE or claims.get("sub") != meetup_id:
        return "Check-in token belongs to another meetup"
    expires_ts = claims.get("exp")
    if not isinstance(expires_ts, (int, float)) or now.timestamp() > expires_ts:
        return "Check-in token has expired"
    return None
