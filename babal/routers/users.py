# 사용자 평판(밥알지수) 조회
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from babal.crud.reputation_crud import get_reputation
from babal.database import get_db
from babal.routers.common import fail
from babal.schemas.reputation import ReputationStatsOut, RiceIndexResponse

router = APIRouter(prefix="/users", tags=["Users"])


@router.get("/{user_id}/rice-index", response_model=RiceIndexResponse)
def get_rice_index(user_id: str, db: Session = Depends(get_db)):
    """활동 기록이 없는 사용자도 200 (기본 점수 40.0)."""
    try:
        stats, score, level = get_reputation(db, user_id)
        return RiceIndexResponse(
            user_id=user_id,
            rice_index=score,
            level=level.level,
            description=level.description,
            stats=ReputationStatsOut(**vars(stats)),
        )
    except Exception as e:
        raise fail(db, e, "load rice index")
