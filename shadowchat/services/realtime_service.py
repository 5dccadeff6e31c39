"""
메시지 실시간 피드

저장된 메시지를 Redis pub/sub 채널 ``messages:room:{room_id}`` 로 발행하고,
구독자는 채널 하나를 길게 유지합니다. 새로 구독하면 이전 구독은 먼저 해제되어
같은 메시지가 두 번 전달되지 않습니다.
"""

import asyncio
import inspect
import json
from typing import Any, Awaitable, Callable, Dict, Optional, Union

from redis.exceptions import RedisError

from shadowchat.core.logging import get_logger
from shadowchat.database.redis import get_redis

logger = get_logger(__name__)

CHANNEL_PREFIX = "messages:room:"

MessageCallback = Callable[[Dict[str, Any]], Union[None, Awaitable[None]]]


def room_channel(room_id: int) -> str:
    return f"{CHANNEL_PREFIX}{room_id}"


async def publish_message(payload: Dict[str, Any]) -> bool:
    """메시지를 방 채널로 발행 (실패해도 저장된 메시지에는 영향 없음)"""
    try:
        client = await get_redis()
        await client.publish(
            room_channel(payload["room_id"]),
            json.dumps(payload, ensure_ascii=False, default=str)
        )
        return True
    except (RedisError, OSError) as e:
        logger.error(f"Failed to publish message to room {payload.get('room_id')}: {e}")
        return False


class MessageSubscription:
    """방 하나에 대한 단일 실시간 구독"""

    def __init__(self, redis_getter: Callable = get_redis):
        self._redis_getter = redis_getter
        self.pubsub = None
        self.task: Optional[asyncio.Task] = None
        self.room_id: Optional[int] = None

    @property
    def active(self) -> bool:
        return self.task is not None

    async def subscribe(self, room_id: int, callback: MessageCallback):
        """room_id 채널 구독 시작 (기존 구독은 먼저 해제)"""
        if self.active:
            await self.unsubscribe()

        client = await self._redis_getter()
        pubsub = client.pubsub()
        await pubsub.subscribe(room_channel(room_id))

        self.pubsub = pubsub
        self.room_id = room_id
        self.task = asyncio.create_task(self._listen(pubsub, callback))
        logger.info(f"Subscribed to messages of room {room_id}")

    async def unsubscribe(self):
        """현재 구독 해제"""
        task, pubsub, room_id = self.task, self.pubsub, self.room_id
        self.task = None
        self.pubsub = None
        self.room_id = None

        if task:
            task.cancel()
            try:
                await task
            except asyncio.CancelledError:
                pass

        if pubsub:
            try:
                await pubsub.unsubscribe()
                await pubsub.aclose()
            except RedisError as e:
                logger.error(f"Error closing pubsub: {e}")

        if room_id is not None:
            logger.info(f"Unsubscribed from messages of room {room_id}")

    async def _listen(self, pubsub, callback: MessageCallback):
        try:
            async for message in pubsub.listen():
                if message.get("type") != "message":
                    continue

                try:
                    payload = json.loads(message["data"])
                except (TypeError, ValueError) as e:
                    logger.warning(f"Dropping malformed realtime payload: {e}")
                    continue

                try:
                    result = callback(payload)
                    if inspect.isawaitable(result):
                        await result
                except Exception as e:
                    logger.error(f"Message callback failed: {e}", exc_info=True)

        except asyncio.CancelledError:
            raise
        except RedisError as e:
            logger.error(f"Realtime subscription for room {self.room_id} lost: {e}")


# 싱글톤 구독
_subscription: Optional[MessageSubscription] = None


def get_message_subscription() -> MessageSubscription:
    """프로세스 단위 MessageSubscription 반환"""
    global _subscription
    if _subscription is None:
        _subscription = MessageSubscription()
    return _subscription


async def subscribe_messages(room_id: int, callback: MessageCallback):
    await get_message_subscription().subscribe(room_id, callback)


async def unsubscribe_messages():
    await get_message_subscription().unsubscribe()
