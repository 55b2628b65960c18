# 인증은 외부(게이트웨이)에서 처리. 코어는 전달받은 사용자 식별자만 사용한다.

from typing import Optional

from fastapi import Header, HTTPException


def get_actor_id(x_user_id: Optional[str] = Header(default=None)) -> str:
    """X-User-Id 헤더 → actor id. 없으면 401."""
    if x_user_id is None or not x_user_id.strip():
        raise HTTPException(status_code=401, detail="Missing X-User-Id header")
    return x_user_id.strip()
