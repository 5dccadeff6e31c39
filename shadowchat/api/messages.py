from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends, File, Query, UploadFile, status
from sqlalchemy.ext.asyncio import AsyncSession

from shadowchat.api.dependencies import get_current_user, raise_for_result
from shadowchat.core.errors import VALIDATION_ERROR, exception_for_error_code
from shadowchat.core.validators import Validator
from shadowchat.database.postgres import get_db
from shadowchat.schemas.message import MessageCreate, MessageList, MessageResponse, MessageResult
from shadowchat.schemas.user import UserIdentity
from shadowchat.services import message_service, storage_service
from shadowchat.utils.time_utils import format_relative_time, format_time

router = APIRouter(prefix="/rooms", tags=["Messages"])


def to_message_response(message) -> MessageResponse:
    """메시지 응답에 표시용 시각을 채움"""
    response = MessageResponse.model_validate(message)
    response.display_time = format_time(message.created_at)
    response.relative_time = format_relative_time(message.created_at)
    return response


async def read_upload(file: UploadFile) -> bytes:
    """업로드 본문을 MAX_UPLOAD_SIZE 까지만 읽음. 초과하면 400"""
    limit = storage_service.MAX_UPLOAD_SIZE

    # 크기를 아는 경우 읽기 전에 거절
    if file.size is None or file.size <= limit:
        data = await file.read(limit + 1)
        if len(data) <= limit:
            return data

    raise exception_for_error_code(
        VALIDATION_ERROR, f"File too large. Maximum size: {limit // (1024 * 1024)}MB"
    )


@router.get("/{room_id}/messages", response_model=MessageList)
async def get_messages(
    room_id: int,
    before: Optional[datetime] = Query(None, description="이 시각 이전 메시지 조회 (지연 로딩)"),
    limit: int = Query(message_service.PAGE_SIZE, ge=1, le=message_service.PAGE_SIZE),
    db: AsyncSession = Depends(get_db)
) -> MessageList:
    """
    메시지 목록 조회 (오래된 것부터)

    - **before**: 없으면 최근 메시지, 있으면 그 이전 메시지
    - **limit**: 최대 150
    """
    room_id = Validator.validate_positive_integer(room_id, "room_id")

    if before is None:
        messages = await message_service.load_recent_messages(db, room_id, limit)
    else:
        messages = await message_service.load_older_messages(db, before, room_id, limit)

    return MessageList(
        messages=[to_message_response(m) for m in messages],
        count=len(messages),
        oldest=messages[0].created_at if messages else None
    )


@router.post("/{room_id}/messages", response_model=MessageResult, status_code=status.HTTP_201_CREATED)
async def send_message(
    room_id: int,
    message_data: MessageCreate,
    current_user: UserIdentity = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
) -> MessageResult:
    """
    텍스트 메시지 전송

    - **content**: 1~300자
    """
    room_id = Validator.validate_positive_integer(room_id, "room_id")
    result = await message_service.send_text_message(
        db, message_data.content, current_user.id, current_user.nickname, room_id
    )
    return raise_for_result(result)


@router.post("/{room_id}/attachments", response_model=MessageResult, status_code=status.HTTP_201_CREATED)
async def send_attachment(
    room_id: int,
    file: UploadFile = File(...),
    current_user: UserIdentity = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
) -> MessageResult:
    """
    이미지/동영상 전송

    지원 형식: PNG, JPEG, WebP, GIF (최대 3MB), MP4, WebM, MOV (최대 10MB)
    """
    room_id = Validator.validate_positive_integer(room_id, "room_id")
    data = await read_upload(file)

    upload = await storage_service.upload_attachment(
        current_user.id, file.filename or "upload", file.content_type, data
    )
    result = await message_service.send_attachment_message(
        db, upload, current_user.id, current_user.nickname, room_id
    )

    if not result.success and upload.url:
        # 메시지 저장 실패 시 업로드한 객체 정리
        await storage_service.delete_attachment(upload.url)

    return raise_for_result(result)
