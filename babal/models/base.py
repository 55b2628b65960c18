import uuid

from sqlalchemy.orm import DeclarativeBase


class Base(DeclarativeBase):
    """
    모든 SQLAlchemy 모델이 상속할 기본 Base 클래스

    id는 UUID 문자열(불투명 키). 사용자 id는 외부 인증 계층이 넘겨주는 문자열.
    """

    pass


def new_id() -> str:
    return str(uuid.uuid4())
