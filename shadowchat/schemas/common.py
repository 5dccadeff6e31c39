from typing import Optional
from pydantic import BaseModel, Field


class OperationResult(BaseModel):
    """서비스 작업 결과 (서비스 계층은 예외 대신 이 객체를 반환)"""
    success: bool = Field(..., description="성공 여부")
    error: Optional[str] = Field(None, description="실패 사유")
    error_code: Optional[str] = Field(None, description="실패 분류 코드")

    @classmethod
    def ok(cls, **kwargs):
        return cls(success=True, **kwargs)

    @classmethod
    def fail(cls, error: str, error_code: str, **kwargs):
        return cls(success=False, error=error, error_code=error_code, **kwargs)
