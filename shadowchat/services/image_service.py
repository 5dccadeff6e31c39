"""
Image compression before upload.

Downscales to fit within the max dimensions (aspect ratio kept) and
re-encodes as WebP, falling back to JPEG when this Pillow build has no
WebP support.
"""

from io import BytesIO
from typing import NamedTuple

from PIL import Image, UnidentifiedImageError, features

from shadowchat.core.logging import get_logger

logger = get_logger(__name__)

MAX_WIDTH = 1920
MAX_HEIGHT = 1920
DEFAULT_QUALITY = 80


class ImageProcessingError(Exception):
    """이미지를 읽거나 인코딩할 수 없음"""


class CompressedImage(NamedTuple):
    data: bytes
    content_type: str
    extension: str
    original_size: int
    compressed_size: int

    @property
    def compression_ratio(self) -> float:
        """원본 대비 절감 비율(%)"""
        if not self.original_size:
            return 0.0
        return round((1 - self.compressed_size / self.original_size) * 100, 2)


def supports_webp() -> bool:
    return bool(features.check("webp"))


def output_format() -> tuple:
    """(Pillow 포맷, content type, 확장자)"""
    if supports_webp():
        return "WEBP", "image/webp", "webp"
    return "JPEG", "image/jpeg", "jpg"


def compress_image(
    data: bytes,
    max_width: int = MAX_WIDTH,
    max_height: int = MAX_HEIGHT,
    quality: int = DEFAULT_QUALITY
) -> CompressedImage:
    """이미지 축소 + 재인코딩"""
    try:
        with Image.open(BytesIO(data)) as img:
            img.load()
            img.thumbnail((max_width, max_height), Image.Resampling.LANCZOS)

            pil_format, content_type, extension = output_format()

            if pil_format == "JPEG" or img.mode not in ("RGB", "RGBA"):
                # JPEG 은 알파 채널을 담을 수 없음
                has_alpha = pil_format != "JPEG" and (
                    img.mode in ("LA", "PA") or "transparency" in img.info
                )
                img = img.convert("RGBA" if has_alpha else "RGB")

            output = BytesIO()
            img.save(output, format=pil_format, quality=quality)
    except (UnidentifiedImageError, Image.DecompressionBombError, OSError, ValueError) as e:
        raise ImageProcessingError(f"Cannot process image: {e}") from e

    compressed = output.getvalue()
    result = CompressedImage(
        data=compressed,
        content_type=content_type,
        extension=extension,
        original_size=len(data),
        compressed_size=len(compressed)
    )
    logger.debug(
        f"Compressed image {result.original_size} -> {result.compressed_size} bytes "
        f"({result.compression_ratio}%)"
    )
    return result
