# SSE + Redis Pub/Sub: 상태 전환 알림
# 코어는 commit 후 이벤트만 발행하고, 푸시 전송은 구독자(알림 서비스)가 담당
# 발행 실패는 로그만 남기고 이미 커밋된 전환은 되돌리지 않음

import asyncio
import json
import logging
from datetime import datetime, timezone
from typing import Any, AsyncGenerator, Dict, List, Optional

import redis.asyncio as redis

from babal.config import REDIS_URL

logger = logging.getLogger(__name__)

CHANNEL_PREFIX = "meetup:"
CHANNEL_SUFFIX = ":events"
# 포인트/원장 서비스가 구독하는 패널티 채널
PENALTY_CHANNEL = "points:penalties"
HEARTBEAT_INTERVAL = 15.0

# 모듈 단일 클라이언트 재사용 (매 요청마다 새 연결 생성 방지)
redis_client = redis.from_url(REDIS_URL, decode_responses=True)


def _channel(meetup_id: str) -> str:
    return f"{CHANNEL_PREFIX}{meetup_id}{CHANNEL_SUFFIX}"


def _ts() -> str:
    return datetime.now(timezone.utc).isoformat()


async def _publish(channel: str, payload: Dict[str, Any]) -> bool:
    try:
        await redis_client.publish(channel, json.dumps(payload, ensure_ascii=False))
        return True
    except Exception as e:
        logger.warning("failed to publish %s on %s: %s", payload.get("type"), channel, e)
        return False


async def publish_participation_decided(meetup_id: str, user_id: str, status: str, current_count: int) -> bool:
    """호스트가 참가 신청을 승인/거절했을 때."""
    payload = {
        "type": "participation_decided",
        "meetup_id": meetup_id,
        "user_id": user_id,
        "status": status,
        "current_count": current_count,
        "ts": _ts(),
    }
    return await _publish(_channel(meetup_id), payload)


async def publish_meetup_status_changed(meetup_id: str, status: str, current_count: Optional[int] = None) -> bool:
    """모임 확정/취소/종료 시."""
    payload = {
        "type": "meetup_status_changed",
        "meetup_id": meetup_id,
        "status": status,
        "current_count": current_count,
        "ts": _ts(),
    }
    return await _publish(_channel(meetup_id), payload)


async def publish_penalty_applied(meetup_id: str, penalties: List[Dict[str, Any]]) -> bool:
    """
    노쇼 패널티 기록 후 포인트 원장 채널 + 모임 채널로 발행.
    penalties: [{"user_id", "amount", "reason", "penalty_id"}]
    """
    if not penalties:
        return True
    payload = {
        "type": "penalty_applied",
        "meetup_id": meetup_id,
        "penalties": penalties,
        "ts": _ts(),
    }
    ledger_ok = await _publish(PENALTY_CHANNEL, payload)
    meetup_ok = await _publish(_channel(meetup_id), payload)
    return ledger_ok and meetup_ok


async def stream_meetup_events(meetup_id: str) -> AsyncGenerator[str, None]:
    """
    GET /meetups/{id}/events/stream 용.
    모임 채널 구독 → payload의 type을 SSE event 이름으로 전달.
    SSE는 long-lived connection이므로 예외·연결 해제 처리 필수.
    """
    channel = _channel(meetup_id)
    pubsub = redis_client.pubsub()
    try:
        await pubsub.subscribe(channel)
        last_heartbeat = datetime.now(timezone.utc).timestamp()

        while True:
            message = await pubsub.get_message(ignore_subscribe_messages=True, timeout=1.0)
            now = datetime.now(timezone.utc).timestamp()
            if now - last_heartbeat >= HEARTBEAT_INTERVAL:
                yield ": ping\n\n"
                last_heartbeat = now
            if message and message.get("type") == "message":
                data = message.get("data") or ""
                try:
                    event_name = json.loads(data).get("type") or "message"
                except (ValueError, AttributeError):
                    event_name = "message"
                yield f"event: {event_name}\ndata: {data}\n\n"
    except asyncio.CancelledError:
        logger.debug("event stream for meetup %s closed by client", meetup_id)
        raise
    finally:
        await pubsub.unsubscribe(channel)
        await pubsub.aclose()
