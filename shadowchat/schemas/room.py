from datetime import datetime
from typing import Optional
from pydantic import BaseModel, Field, ConfigDict

from .common import OperationResult


class RoomCreate(BaseModel):
    """채팅방 생성 스키마"""
    name: str = Field(..., description="채팅방 이름 (최대 50자)")
    description: str = Field(default="", description="채팅방 설명")


class RoomUpdate(BaseModel):
    """채팅방 수정 스키마 (부분 수정)"""
    name: Optional[str] = Field(None, description="채팅방 이름")
    description: Optional[str] = Field(None, description="채팅방 설명")
    is_public: Optional[bool] = Field(None, description="공개 여부")


class RoomResponse(BaseModel):
    """채팅방 응답 스키마"""
    model_config = ConfigDict(from_attributes=True)

    id: int = Field(..., description="채팅방 ID")
    name: str = Field(..., description="채팅방 이름")
    description: str = Field(..., description="채팅방 설명")
    creator_id: str = Field(..., description="생성자 ID")
    is_public: bool = Field(..., description="공개 여부")
    created_at: datetime = Field(..., description="생성일시")


class RoomResult(OperationResult):
    """채팅방 작업 결과"""
    room_id: Optional[int] = None
    room: Optional[RoomResponse] = None


class RoomMemberCount(BaseModel):
    room_id: int
    member_count: int
