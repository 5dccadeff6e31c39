from typing import Optional
from pydantic import BaseModel, Field


class UploadResult(BaseModel):
    """첨부파일 업로드 결과"""
    url: Optional[str] = Field(None, description="공개 URL")
    file_size: Optional[int] = Field(None, description="업로드된 크기(바이트)")
    kind: Optional[str] = Field(None, description="image | video")
    path: Optional[str] = Field(None, description="버킷 내 경로")
    error: Optional[str] = None
    error_code: Optional[str] = None

    @property
    def success(self) -> bool:
        return self.error is None
