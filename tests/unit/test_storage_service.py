import pytest
from io import BytesIO
from PIL import Image

from shadowchat.core.errors import VALIDATION_ERROR, ValidationException
from shadowchat.services import storage_service
from shadowchat.services.image_service import ImageProcessingError, compress_image

USER_A = "11111111-1111-1111-1111-111111111111"


def make_png(width: int = 64, height: int = 48) -> bytes:
    buffer = BytesIO()
    Image.new("RGB", (width, height), color=(200, 30, 30)).save(buffer, format="PNG")
    return buffer.getvalue()


class TestObjectPath:

    def test_object_path_format(self):
        path = storage_service.build_object_path(USER_A, "png", timestamp_ms=1700000000000)

        user_dir, filename = path.split("/")
        assert user_dir == USER_A
        assert filename.startswith("1700000000000_")
        assert filename.endswith(".png")

    def test_paths_are_unique(self):
        first = storage_service.build_object_path(USER_A, "png", timestamp_ms=1)
        second = storage_service.build_object_path(USER_A, "png", timestamp_ms=1)
        assert first != second

    @pytest.mark.parametrize("user_id", ["", "../etc", "a/b"])
    def test_unsafe_user_id(self, user_id):
        with pytest.raises(ValidationException):
            storage_service.build_object_path(user_id, "png")

    def test_public_url(self):
        assert storage_service.public_url("u/1_a.png") == "/storage/chat-images/u/1_a.png"


class TestValidateAttachment:

    def test_kinds(self):
        assert storage_service.validate_attachment("image/png", 100) == "image"
        assert storage_service.validate_attachment("video/mp4", 100) == "video"

    def test_unsupported_type(self):
        with pytest.raises(ValidationException) as exc_info:
            storage_service.validate_attachment("application/pdf", 100)
        assert "Unsupported file type" in exc_info.value.message

    def test_image_limit(self):
        storage_service.validate_attachment("image/jpeg", storage_service.MAX_IMAGE_SIZE)
        with pytest.raises(ValidationException) as exc_info:
            storage_service.validate_attachment("image/jpeg", storage_service.MAX_IMAGE_SIZE + 1)
        assert exc_info.value.message == "File too large. Maximum size: 3MB"

    def test_video_limit(self):
        storage_service.validate_attachment("video/webm", storage_service.MAX_VIDEO_SIZE)
        with pytest.raises(ValidationException) as exc_info:
            storage_service.validate_attachment("video/webm", storage_service.MAX_VIDEO_SIZE + 1)
        assert exc_info.value.message == "File too large. Maximum size: 10MB"

    def test_empty_file(self):
        with pytest.raises(ValidationException):
            storage_service.validate_attachment("image/png", 0)


class TestImageCompression:

    def test_downscales_large_image(self):
        compressed = compress_image(make_png(4000, 1000))

        with Image.open(BytesIO(compressed.data)) as img:
            assert img.size == (1920, 480)
        assert compressed.content_type in ("image/webp", "image/jpeg")
        assert compressed.original_size > 0

    def test_rejects_non_image(self):
        with pytest.raises(ImageProcessingError):
            compress_image(b"definitely not an image")


class TestUploadAttachment:
    """첨부파일 업로드 테스트"""

    @pytest.mark.asyncio
    async def test_upload_image_is_compressed(self, storage_root):
        result = await storage_service.upload_attachment(USER_A, "cat.png", "image/png", make_png())

        assert result.success is True
        assert result.kind == "image"
        assert result.url.startswith(f"/storage/chat-images/{USER_A}/")
        assert result.path.rsplit(".", 1)[1] in ("webp", "jpg")

        stored = storage_root / "chat-images" / result.path
        assert stored.exists()
        assert stored.stat().st_size == result.file_size

    @pytest.mark.asyncio
    async def test_upload_without_compression(self, storage_root, monkeypatch):
        monkeypatch.setattr(storage_service.settings, "compress_images", False)
        data = make_png()

        result = await storage_service.upload_attachment(USER_A, "cat.png", "image/png", data)

        assert result.path.endswith(".png")
        assert result.file_size == len(data)

    @pytest.mark.asyncio
    async def test_upload_video(self, storage_root):
        data = b"\x00\x00\x00\x18ftypmp42" + b"\x00" * 100

        result = await storage_service.upload_attachment(USER_A, "clip.mp4", "video/mp4", data)

        assert result.kind == "video"
        assert result.path.endswith(".mp4")
        assert (storage_root / "chat-images" / result.path).read_bytes() == data

    @pytest.mark.asyncio
    async def test_video_too_large(self, storage_root):
        data = b"\x00" * (storage_service.MAX_VIDEO_SIZE + 1)

        result = await storage_service.upload_attachment(USER_A, "big.mp4", "video/mp4", data)

        assert result.success is False
        assert result.error_code == VALIDATION_ERROR
        assert result.error == "File too large. Maximum size: 10MB"
        assert not (storage_root / "chat-images").exists()

    @pytest.mark.asyncio
    async def test_unsupported_type(self, storage_root):
        result = await storage_service.upload_attachment(USER_A, "doc.pdf", "application/pdf", b"%PDF")

        assert result.success is False
        assert result.error_code == VALIDATION_ERROR

    @pytest.mark.asyncio
    async def test_broken_image(self, storage_root):
        result = await storage_service.upload_attachment(USER_A, "x.png", "image/png", b"garbage")

        assert result.success is False
        assert result.error == "Invalid image file"

    @pytest.mark.asyncio
    async def test_delete_attachment(self, storage_root):
        upload = await storage_service.upload_attachment(USER_A, "clip.webm", "video/webm", b"webm-bytes")

        assert await storage_service.delete_attachment(upload.url) is True
        assert not (storage_root / "chat-images" / upload.path).exists()
        assert await storage_service.delete_attachment(upload.url) is False

    @pytest.mark.asyncio
    async def test_delete_outside_bucket(self, storage_root):
        assert await storage_service.delete_attachment("/storage/chat-images/../secret.txt") is False
        assert await storage_service.delete_attachment("https://elsewhere/x.png") is False
