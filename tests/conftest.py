"""Global test fixtures: in-memory SQLite, fake Redis, API client."""

import os
from datetime import datetime, timedelta, timezone

# babal.config 는 import 시점에 환경 변수를 읽는다
os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("CHECKIN_TOKEN_SECRET", "test-checkin-secret")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from babal.crud.meetup_crud import confirm_meetup, create_meetup
from babal.crud.participation_crud import decide_participation, join_meetup
from babal.database import get_db
from babal.main import app
from babal.models import attendance, meetup, participation, penalty, review  # noqa: F401
from babal.models.base import Base
from babal.realtime import sse_pubsub

HOST = "host-1"
PLACE = (37.5665, 126.9780)
SCHEDULED_AT = datetime(2026, 5, 1, 19, 0, tzinfo=timezone.utc)


class FakeRedis:
    """publish 만 기록하는 redis.asyncio 대용."""

    def __init__(self):
        self.published = []
        self.fail = False

    async def publish(self, channel, message):
        if self.fail:
            raise ConnectionError("redis unavailable")
        self.published.append((channel, message))
        return 1


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    Base.metadata.drop_all(engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(bind=engine, autocommit=False, autoflush=False)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture(autouse=True)
def fake_redis(monkeypatch):
    fake = FakeRedis()
    monkeypatch.setattr(sse_pubsub, "redis_client", fake)
    return fake


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    # with 블록을 쓰지 않으므로 startup(alembic) 이벤트는 실행되지 않는다
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def make_meetup(db):
    """OPEN 모임 생성 헬퍼. approved 로 넘긴 사용자는 신청+승인까지 처리, confirmed=True 면 확정."""

    def _make(host=HOST, capacity=4, approved=(), confirmed=False, scheduled_at=SCHEDULED_AT, **kwargs):
        m = create_meetup(
            db,
            host_id=host,
            title="점심 밥약",
            lat=PLACE[0],
            lng=PLACE[1],
            scheduled_at=scheduled_at,
            capacity=capacity,
            **kwargs,
        )
        for user_id in approved:
            join_meetup(db, m.id, user_id)
            decide_participation(db, m.id, user_id, host, approve=True)
        if confirmed:
            confirm_meetup(db, m.id, host)
        db.commit()
        return m

    return _make


def hours_after(dt, hours):
    return dt + timedelta(hours=hours)
