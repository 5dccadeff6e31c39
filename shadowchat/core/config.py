"""
Shadow Chat 설정

환경 변수(.env 포함)를 통한 설정 관리. CHAT_SERVICE_URL / CHAT_SERVICE_KEY 가
없으면 import 시점에 ValidationError 로 기동이 중단됩니다.
"""

from typing import List

from dotenv import load_dotenv
from pydantic_settings import BaseSettings, SettingsConfigDict

load_dotenv()  # .env 파일 로드


class Settings(BaseSettings):
    """Shadow Chat 설정"""

    model_config = SettingsConfigDict(
        env_file=".env",
        case_sensitive=False,
        extra="ignore",  # 추가 환경변수 무시
    )

    # Application
    app_name: str = "Shadow Chat"
    version: str = "1.0.0"
    debug: bool = False
    host: str = "0.0.0.0"
    port: int = 8000
    log_dir: str = "logs"

    # Hosted backend (필수)
    chat_service_url: str
    chat_service_key: str

    # Realtime feed
    redis_url: str = "redis://localhost:6379/0"

    # Object storage
    storage_root: str = "storage"
    storage_public_url: str = "/storage"
    storage_bucket: str = "chat-images"
    compress_images: bool = True

    # Local identity cache
    identity_file: str = ".shadow_chat/user.json"

    # Messages
    default_room_id: int = 1

    # Capacity / retention
    db_limit_mb: int = 200
    storage_limit_mb: int = 1024
    cleanup_threshold: float = 0.9
    keep_messages: int = 100_000
    keep_days: int = 90
    cleanup_min_interval_ms: int = 60_000
    cleanup_check_interval_ms: int = 300_000
    cleanup_enabled: bool = True

    # CORS
    cors_origins: List[str] = ["http://localhost:5173"]


settings = Settings()
