from datetime import datetime
from typing import Optional, List
from pydantic import BaseModel, Field, ConfigDict

from .common import OperationResult


class MessageCreate(BaseModel):
    """텍스트 메시지 전송 스키마"""
    content: str = Field(..., description="메시지 내용 (최대 300자)")


class MessageResponse(BaseModel):
    """메시지 응답 스키마"""
    model_config = ConfigDict(from_attributes=True)

    id: int = Field(..., description="메시지 ID")
    room_id: int = Field(..., description="채팅방 ID")
    user_id: str = Field(..., description="발송자 ID")
    nickname: str = Field(..., description="발송 당시 닉네임")
    type: str = Field(..., description="메시지 타입: text, image, video")
    content: str = Field(..., description="텍스트 또는 첨부파일 URL")
    file_size: Optional[int] = Field(None, description="첨부파일 크기(바이트)")
    created_at: datetime = Field(..., description="생성일시")
    display_time: Optional[str] = Field(None, description="표시용 시각 (HH:MM)")
    relative_time: Optional[str] = Field(None, description="상대적 시간 표기")


class MessageList(BaseModel):
    """메시지 목록 스키마 (오래된 것부터)"""
    messages: List[MessageResponse] = Field(..., description="메시지 목록")
    count: int = Field(..., description="반환된 메시지 수")
    oldest: Optional[datetime] = Field(None, description="다음 페이지 조회용 커서")


class MessageResult(OperationResult):
    """메시지 전송 결과"""
    message: Optional[MessageResponse] = None
