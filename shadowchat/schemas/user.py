from typing import Optional
from pydantic import BaseModel, Field

from .common import OperationResult


class UserIdentity(BaseModel):
    """사용자 식별 정보 (로컬 캐시와 서버 미러가 공유)"""
    id: str = Field(..., description="클라이언트가 생성한 사용자 ID")
    nickname: str = Field(..., description="닉네임 (최대 20자)")


class NicknameUpdate(BaseModel):
    nickname: str = Field(..., description="새 닉네임")


class NicknameResult(OperationResult):
    nickname: Optional[str] = None


class UserStatus(BaseModel):
    """로컬 사용자 초기화 상태"""
    initialized: bool
    user: Optional[UserIdentity] = None
    error: Optional[str] = None
