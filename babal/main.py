import logging
from pathlib import Path

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from babal.config import LOG_LEVEL
from babal.routers.attendance import router as attendance_router
from babal.routers.meetups import router as meetups_router
from babal.routers.reviews import router as reviews_router
from babal.routers.users import router as users_router

logging.basicConfig(
    level=LOG_LEVEL,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


def _run_alembic_upgrade() -> None:
    """앱 기동 시 DB 마이그레이션 자동 적용."""
    from alembic import command
    from alembic.config import Config

    root = Path(__file__).resolve().parent.parent
    cfg = Config(str(root / "alembic.ini"))
    command.upgrade(cfg, "head")


app = FastAPI(
    title="Babal Meetup Core API",
    description="밥약 모임 참가/출석 확인/리뷰/밥알지수 코어 API",
    version="0.1.0",
)


@app.on_event("startup")
def _startup_migrate() -> None:
    try:
        _run_alembic_upgrade()
    except Exception:
        # DB 미기동 등 실패 시에도 앱은 기동 (예: 로컬에서 DB 없이 실행 시)
        logger.exception("alembic upgrade failed at startup")


app.include_router(meetups_router)
app.include_router(attendance_router)
app.include_router(reviews_router)
app.include_router(users_router)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],  # TODO: 운영 시 특정 도메인으로 제한
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.get("/health", tags=["Health"])
async def health_check() -> dict:
    return {"status": "ok"}


@app.get("/", tags=["Root"])
async def root() -> dict:
    return {
        "message": "Babal Meetup Core API",
        "docs": "/docs",
        "health": "/health",
    }


if __name__ == "__main__":
    import uvicorn
    uvicorn.run("babal.main:app", host="0.0.0.0", port=8000, reload=True)
