import os

# 설정 모듈 import 전에 필수 환경변수 지정
os.environ.setdefault("CHAT_SERVICE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("CHAT_SERVICE_KEY", "test-service-key")
os.environ.setdefault("CLEANUP_ENABLED", "false")

import pytest
import pytest_asyncio
from datetime import datetime, timedelta
from typing import AsyncGenerator, List
from unittest.mock import AsyncMock, patch
from httpx import AsyncClient, ASGITransport
from sqlalchemy import event
from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine, async_sessionmaker
from sqlalchemy.pool import StaticPool

from shadowchat.main import app
from shadowchat.api.capacity import get_cleanup_state
from shadowchat.api.dependencies import get_identity_store
from shadowchat.core.config import settings
from shadowchat.database.postgres import Base, get_db
from shadowchat.models.messages import Message
from shadowchat.models.rooms import Room
from shadowchat.models.user_rooms import UserRoom
from shadowchat.models.users import User
from shadowchat.services import realtime_service
from shadowchat.services.cleanup_scheduler import CleanupState
from shadowchat.services.user_service import LocalIdentityStore


# 테스트용 인메모리 SQLite 데이터베이스 설정
TEST_DATABASE_URL = "sqlite+aiosqlite:///:memory:"

USER_A = "11111111-1111-1111-1111-111111111111"
USER_B = "22222222-2222-2222-2222-222222222222"


@pytest_asyncio.fixture
async def test_engine():
    """테스트용 비동기 데이터베이스 엔진 생성"""
    engine = create_async_engine(
        TEST_DATABASE_URL,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
        echo=False
    )

    # SQLite 는 기본적으로 외래키(ON DELETE CASCADE)를 강제하지 않음
    @event.listens_for(engine.sync_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(test_engine):
    return async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)


@pytest_asyncio.fixture
async def test_session(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """테스트용 데이터베이스 세션"""
    async with session_factory() as session:
        yield session


@pytest.fixture
def identity_store(tmp_path) -> LocalIdentityStore:
    """임시 디렉토리의 로컬 식별 정보 캐시"""
    return LocalIdentityStore(tmp_path / "identity" / "user.json")


@pytest.fixture
def storage_root(tmp_path, monkeypatch):
    """첨부파일 버킷을 임시 디렉토리로 변경"""
    root = tmp_path / "storage"
    monkeypatch.setattr(settings, "storage_root", str(root))
    return root


@pytest.fixture
def published(monkeypatch) -> List[dict]:
    """실시간 발행을 가로채 payload 를 기록"""
    payloads: List[dict] = []

    async def fake_publish(payload):
        payloads.append(payload)
        return True

    monkeypatch.setattr(realtime_service, "publish_message", fake_publish)
    return payloads


@pytest.fixture
def cleanup_state() -> CleanupState:
    return CleanupState()


@pytest.fixture
def table_size():
    """messages 테이블 크기(바이트) 조회를 고정값으로 대체"""
    def _patch(size_bytes: int):
        return patch(
            "shadowchat.database.postgres.get_table_size_bytes",
            new=AsyncMock(return_value=size_bytes)
        )
    return _patch


@pytest_asyncio.fixture
async def client(
    test_session,
    identity_store,
    storage_root,
    published,
    cleanup_state
) -> AsyncGenerator[AsyncClient, None]:
    """테스트용 비동기 HTTP 클라이언트"""
    async def get_test_session():
        yield test_session

    app.dependency_overrides[get_db] = get_test_session
    app.dependency_overrides[get_identity_store] = lambda: identity_store
    app.dependency_overrides[get_cleanup_state] = lambda: cleanup_state

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def test_room(test_session) -> Room:
    """USER_A 가 만든 공개 채팅방"""
    room = Room(name="Lobby", description="", creator_id=USER_A, is_public=True)
    test_session.add(room)
    await test_session.flush()
    test_session.add(UserRoom(user_id=USER_A, room_id=room.id))
    await test_session.commit()
    await test_session.refresh(room)
    return room


@pytest_asyncio.fixture
async def test_user(test_session) -> User:
    user = User(id=USER_A, nickname="User1234")
    test_session.add(user)
    await test_session.commit()
    return user


async def add_messages(
    session: AsyncSession,
    room_id: int,
    count: int,
    start: datetime,
    step: timedelta = timedelta(seconds=1),
    message_type: str = "text"
) -> List[Message]:
    """created_at 이 start 부터 step 간격인 메시지 count 개 저장"""
    messages = [
        Message(
            room_id=room_id,
            user_id=USER_A,
            nickname="User1234",
            type=message_type,
            content=f"message {i}",
            created_at=start + step * i
        )
        for i in range(count)
    ]
    session.add_all(messages)
    await session.commit()
    return messages


@pytest.fixture
def make_messages(test_session):
    """add_messages 를 현재 세션에 바인딩"""
    async def _make(room_id: int, count: int, start: datetime, **kwargs) -> List[Message]:
        return await add_messages(test_session, room_id, count, start, **kwargs)
    return _make
