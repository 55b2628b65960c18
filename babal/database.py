from typing import Generator

from sqlalchemy import create_engine
from sqlalchemy.engine import Engine
from sqlalchemy.orm import sessionmaker, Session

from babal.config import DATABASE_URL

# SQLAlchemy 엔진 생성
# - future=True: 최신 SQLAlchemy 스타일 사용
engine: Engine = create_engine(DATABASE_URL, echo=False, future=True, pool_pre_ping=True)

# 세션 팩토리 생성
SessionLocal = sessionmaker(
    autocommit=False,
    autoflush=False,
    bind=engine,
)


def get_db() -> Generator[Session, None, None]:
    """
    FastAPI 의존성 주입(Dependency Injection)에서 사용할 DB 세션 제공 함수

    트랜잭션 소유권은 라우터에 있음: crud 함수는 commit/rollback 하지 않는다.
    """
    db: Session = SessionLocal()
    try:
        yield db
    finally:
        db.close()
