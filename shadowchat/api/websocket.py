from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from redis.exceptions import RedisError

from shadowchat.core.logging import get_logger
from shadowchat.services.realtime_service import MessageSubscription

logger = get_logger(__name__)

router = APIRouter(prefix="/ws", tags=["WebSocket"])


@router.websocket("/rooms/{room_id}")
async def room_feed(websocket: WebSocket, room_id: int):
    """
    채팅방 실시간 메시지 피드

    연결마다 구독 하나를 유지하며, 새로 저장된 메시지를 JSON 으로 전달합니다.
    클라이언트가 보내는 "ping" 에는 "pong" 으로 응답합니다.
    """
    await websocket.accept()
    subscription = MessageSubscription()

    try:
        await subscription.subscribe(room_id, websocket.send_json)
    except (RedisError, OSError) as e:
        logger.error(f"Realtime feed unavailable for room {room_id}: {e}")
        await websocket.send_json({
            "type": "error",
            "error_code": "realtime_unavailable",
            "message": "Realtime feed is unavailable"
        })
        await websocket.close(code=1011)
        return

    await websocket.send_json({"type": "connection_established", "room_id": room_id})

    try:
        while True:
            data = await websocket.receive_text()
            if data == "ping":
                await websocket.send_text("pong")
    except WebSocketDisconnect:
        logger.info(f"WebSocket disconnected from room {room_id}")
    finally:
        await subscription.unsubscribe()
