from unittest.mock import patch
from fastapi.testclient import TestClient

from shadowchat.main import app


class FakeSubscription:
    """Redis 없이 구독 즉시 메시지 하나를 흘려보내는 대역"""

    instances = []

    def __init__(self):
        self.room_id = None
        self.closed = False
        FakeSubscription.instances.append(self)

    async def subscribe(self, room_id, callback):
        self.room_id = room_id
        await callback({"id": 1, "room_id": room_id, "type": "text", "content": "hi"})

    async def unsubscribe(self):
        self.closed = True


class TestRoomFeed:
    """채팅방 실시간 WebSocket 테스트"""

    def test_forwards_feed_and_answers_ping(self):
        FakeSubscription.instances.clear()
        client = TestClient(app)

        with patch("shadowchat.api.websocket.MessageSubscription", FakeSubscription):
            with client.websocket_connect("/ws/rooms/5") as websocket:
                assert websocket.receive_json()["content"] == "hi"
                assert websocket.receive_json() == {"type": "connection_established", "room_id": 5}

                websocket.send_text("ping")
                assert websocket.receive_text() == "pong"

        subscription = FakeSubscription.instances[0]
        assert subscription.room_id == 5
        assert subscription.closed is True
