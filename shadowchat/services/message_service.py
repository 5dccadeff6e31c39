"""
Message service layer.

Loads, sends and publishes chat messages. Messages are immutable once
stored; every persisted message is pushed to the realtime feed.
"""

from datetime import datetime
from typing import List, Optional

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from shadowchat.core.config import settings
from shadowchat.core.errors import REMOTE_ERROR, VALIDATION_ERROR, ValidationException
from shadowchat.core.logging import get_logger
from shadowchat.core.validators import Validator
from shadowchat.models.messages import Message
from shadowchat.schemas.attachment import UploadResult
from shadowchat.schemas.message import MessageResponse, MessageResult
from shadowchat.services import realtime_service

logger = get_logger(__name__)

PAGE_SIZE = 150


def sanitize_text(text: str) -> str:
    """간단한 XSS 필터 (< > 이스케이프)"""
    return text.replace("<", "&lt;").replace(">", "&gt;")


# =============================================================================
# 조회
# =============================================================================

async def load_recent_messages(
    db: AsyncSession,
    room_id: Optional[int] = None,
    limit: int = PAGE_SIZE
) -> List[Message]:
    """최근 메시지 limit 개 (오래된 것부터)"""
    room_id = settings.default_room_id if room_id is None else room_id
    try:
        result = await db.execute(
            select(Message)
            .where(Message.room_id == room_id)
            .order_by(Message.created_at.desc(), Message.id.desc())
            .limit(limit)
        )
        messages = list(result.scalars().all())
    except SQLAlchemyError as e:
        logger.error(f"Failed to load messages of room {room_id}: {e}")
        await db.rollback()
        return []

    # 최신순으로 조회한 것을 역순으로 (최신 메시지가 끝)
    return list(reversed(messages))


async def load_older_messages(
    db: AsyncSession,
    before: datetime,
    room_id: Optional[int] = None,
    limit: int = PAGE_SIZE
) -> List[Message]:
    """before 이전 메시지 limit 개 (지연 로딩, 오래된 것부터)"""
    room_id = settings.default_room_id if room_id is None else room_id
    try:
        result = await db.execute(
            select(Message)
            .where(Message.room_id == room_id, Message.created_at < before)
            .order_by(Message.created_at.desc(), Message.id.desc())
            .limit(limit)
        )
        messages = list(result.scalars().all())
    except SQLAlchemyError as e:
        logger.error(f"Failed to load history of room {room_id} before {before}: {e}")
        await db.rollback()
        return []

    return list(reversed(messages))


# =============================================================================
# 전송
# =============================================================================

async def _store_message(db: AsyncSession, **fields) -> MessageResult:
    message = Message(**fields)
    try:
        db.add(message)
        await db.commit()
        await db.refresh(message)
    except SQLAlchemyError as e:
        logger.error(f"Failed to send {fields.get('type')} message to room {fields.get('room_id')}: {e}")
        await db.rollback()
        return MessageResult.fail("Failed to send message", REMOTE_ERROR)

    await realtime_service.publish_message(message.to_dict())
    return MessageResult.ok(message=MessageResponse.model_validate(message))


async def send_text_message(
    db: AsyncSession,
    content: str,
    user_id: str,
    nickname: str,
    room_id: Optional[int] = None
) -> MessageResult:
    """텍스트 메시지 전송 (최대 300자)"""
    try:
        content = Validator.validate_message_content(content)
    except ValidationException as e:
        return MessageResult.fail(e.message, VALIDATION_ERROR)

    return await _store_message(
        db,
        room_id=settings.default_room_id if room_id is None else room_id,
        user_id=user_id,
        nickname=nickname,
        type="text",
        content=sanitize_text(content)
    )


async def send_image_message(
    db: AsyncSession,
    image_url: str,
    file_size: int,
    user_id: str,
    nickname: str,
    room_id: Optional[int] = None
) -> MessageResult:
    """이미지 메시지 전송"""
    return await _store_message(
        db,
        room_id=settings.default_room_id if room_id is None else room_id,
        user_id=user_id,
        nickname=nickname,
        type="image",
        content=image_url,
        file_size=file_size
    )


async def send_video_message(
    db: AsyncSession,
    video_url: str,
    file_size: int,
    user_id: str,
    nickname: str,
    room_id: Optional[int] = None
) -> MessageResult:
    """동영상 메시지 전송"""
    return await _store_message(
        db,
        room_id=settings.default_room_id if room_id is None else room_id,
        user_id=user_id,
        nickname=nickname,
        type="video",
        content=video_url,
        file_size=file_size
    )


async def send_attachment_message(
    db: AsyncSession,
    upload: UploadResult,
    user_id: str,
    nickname: str,
    room_id: Optional[int] = None
) -> MessageResult:
    """업로드 결과 종류에 맞춰 이미지/동영상 메시지 전송"""
    if not upload.success or not upload.url:
        return MessageResult.fail(upload.error or "Upload failed", upload.error_code or REMOTE_ERROR)

    if upload.kind == "video":
        return await send_video_message(db, upload.url, upload.file_size, user_id, nickname, room_id)
    return await send_image_message(db, upload.url, upload.file_size, user_id, nickname, room_id)
