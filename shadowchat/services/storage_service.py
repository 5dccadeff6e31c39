"""
Attachment upload service layer.

Validates image/video attachments and writes them into the ``chat-images``
bucket under ``{userId}/{timestamp}_{random}.{ext}``; the returned URL is
publicly resolvable through the storage mount.
"""

import re
import time
import uuid
from pathlib import Path
from typing import Optional

import aiofiles

from shadowchat.core.config import settings
from shadowchat.core.errors import REMOTE_ERROR, VALIDATION_ERROR, ValidationException
from shadowchat.core.logging import get_logger, log_file_operation
from shadowchat.core.validators import Validator
from shadowchat.schemas.attachment import UploadResult
from shadowchat.services import image_service

logger = get_logger(__name__)


# =============================================================================
# Upload Configuration
# =============================================================================

IMAGE_TYPES = {
    "image/png": "png",
    "image/jpeg": "jpg",
    "image/webp": "webp",
    "image/gif": "gif",
}

VIDEO_TYPES = {
    "video/mp4": "mp4",
    "video/webm": "webm",
    "video/quicktime": "mov",
}

MAX_IMAGE_SIZE = 3 * 1024 * 1024  # 3MB
MAX_VIDEO_SIZE = 10 * 1024 * 1024  # 10MB
# 압축 전 원본 업로드 상한 (이미지는 압축 후 MAX_IMAGE_SIZE 로 다시 검증)
MAX_UPLOAD_SIZE = MAX_VIDEO_SIZE

_SAFE_SEGMENT = re.compile(r"^[A-Za-z0-9_-]+$")


# =============================================================================
# Path / URL Utilities
# =============================================================================

def bucket_dir() -> Path:
    return Path(settings.storage_root) / settings.storage_bucket


def public_url(object_path: str) -> str:
    """버킷 내 경로의 공개 URL"""
    return f"{settings.storage_public_url.rstrip('/')}/{settings.storage_bucket}/{object_path}"


def build_object_path(user_id: str, extension: str, timestamp_ms: Optional[int] = None) -> str:
    """{userId}/{timestamp}_{random}.{ext}"""
    if not _SAFE_SEGMENT.match(user_id or ""):
        raise ValidationException("Invalid user id for upload path")

    timestamp_ms = int(time.time() * 1000) if timestamp_ms is None else timestamp_ms
    random_part = uuid.uuid4().hex[:8]
    return f"{user_id}/{timestamp_ms}_{random_part}.{extension}"


def get_attachment_kind(content_type: Optional[str]) -> Optional[str]:
    if content_type in IMAGE_TYPES:
        return "image"
    if content_type in VIDEO_TYPES:
        return "video"
    return None


def validate_attachment(content_type: Optional[str], file_size: int) -> str:
    """첨부파일 형식/크기 검증 후 종류(image|video) 반환"""
    kind = get_attachment_kind(content_type)
    if kind is None:
        Validator.validate_enum(
            content_type or "",
            list(IMAGE_TYPES) + list(VIDEO_TYPES),
            "content_type",
            message="Unsupported file type. Supported: PNG, JPEG, WebP, GIF, MP4, WebM, MOV"
        )

    max_size = MAX_VIDEO_SIZE if kind == "video" else MAX_IMAGE_SIZE
    Validator.validate_file_size(file_size, max_size)
    return kind


# =============================================================================
# Upload Operations
# =============================================================================

async def upload_attachment(
    user_id: str,
    filename: str,
    content_type: Optional[str],
    data: bytes
) -> UploadResult:
    """첨부파일 업로드 (이미지는 필요 시 압축 후 크기 검증)"""
    extension = IMAGE_TYPES.get(content_type) or VIDEO_TYPES.get(content_type)

    if (
        settings.compress_images
        and get_attachment_kind(content_type) == "image"
        and content_type != "image/gif"  # 애니메이션 유지
    ):
        try:
            compressed = image_service.compress_image(data)
        except image_service.ImageProcessingError as e:
            logger.warning(f"Rejected unreadable image {filename}: {e}")
            return UploadResult(error="Invalid image file", error_code=VALIDATION_ERROR)
        data = compressed.data
        content_type = compressed.content_type
        extension = compressed.extension

    try:
        kind = validate_attachment(content_type, len(data))
        object_path = build_object_path(user_id, extension)
    except ValidationException as e:
        return UploadResult(error=e.message, error_code=VALIDATION_ERROR)

    file_path = bucket_dir() / object_path

    try:
        file_path.parent.mkdir(parents=True, exist_ok=True)
        # 'xb': 기존 객체 덮어쓰기 금지
        async with aiofiles.open(file_path, "xb") as f:
            await f.write(data)
    except OSError as e:
        logger.error(f"Failed to upload {filename} for user {user_id}: {e}")
        if file_path.exists():
            file_path.unlink()
        return UploadResult(error="Upload failed", error_code=REMOTE_ERROR)

    log_file_operation(logger, "upload", object_path, user_id, file_size=len(data), kind=kind)
    return UploadResult(
        url=public_url(object_path),
        file_size=len(data),
        kind=kind,
        path=object_path
    )


async def delete_attachment(url: str) -> bool:
    """공개 URL 에 해당하는 객체 삭제"""
    prefix = public_url("")
    if not url.startswith(prefix):
        return False

    object_path = url[len(prefix):]
    file_path = (bucket_dir() / object_path).resolve()

    # 버킷 밖 경로 차단
    if bucket_dir().resolve() not in file_path.parents:
        return False

    try:
        if file_path.exists():
            file_path.unlink()
            return True
    except OSError as e:
        logger.error(f"Failed to delete attachment {object_path}: {e}")

    return False
