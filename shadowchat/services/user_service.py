"""
User identity service layer.

The identity ({id, nickname}) is generated on first use, cached in a local
JSON file and mirrored to the ``users`` table of the hosted store.
"""

import json
import random
import uuid
from pathlib import Path
from typing import Any, Optional, Union

import aiofiles
from pydantic import ValidationError as PydanticValidationError
from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from shadowchat.core.config import settings
from shadowchat.core.errors import REMOTE_ERROR, VALIDATION_ERROR, ValidationException
from shadowchat.core.logging import get_logger
from shadowchat.core.validators import Validator
from shadowchat.models.users import User
from shadowchat.schemas.common import OperationResult
from shadowchat.schemas.user import NicknameResult, UserIdentity, UserStatus

logger = get_logger(__name__)

ANONYMOUS_NAME = "Anonymous"


# =============================================================================
# Local identity cache
# =============================================================================

class LocalIdentityStore:
    """로컬 사용자 식별 정보 캐시 (JSON 파일)"""

    def __init__(self, path: Union[str, Path]):
        self.path = Path(path)

    def exists(self) -> bool:
        return self.path.exists()

    async def load(self) -> Optional[UserIdentity]:
        if not self.path.exists():
            return None
        try:
            async with aiofiles.open(self.path, "r", encoding="utf-8") as f:
                raw = await f.read()
            return UserIdentity.model_validate(json.loads(raw))
        except (OSError, ValueError, PydanticValidationError) as e:
            logger.warning(f"Ignoring unreadable identity cache {self.path}: {e}")
            return None

    async def save(self, user: UserIdentity):
        self.path.parent.mkdir(parents=True, exist_ok=True)
        async with aiofiles.open(self.path, "w", encoding="utf-8") as f:
            await f.write(json.dumps(user.model_dump(), ensure_ascii=False))

    async def clear(self):
        self.path.unlink(missing_ok=True)


_identity_store: Optional[LocalIdentityStore] = None


def get_identity_store() -> LocalIdentityStore:
    """설정된 경로의 LocalIdentityStore 싱글톤"""
    global _identity_store
    if _identity_store is None:
        _identity_store = LocalIdentityStore(settings.identity_file)
    return _identity_store


# =============================================================================
# Identity lifecycle
# =============================================================================

def generate_random_nickname() -> str:
    """User + 최대 4자리 숫자"""
    return f"User{random.randint(0, 9999)}"


async def init_user(db: AsyncSession, store: LocalIdentityStore) -> UserIdentity:
    """로컬 캐시 → 없으면 새 사용자 생성 후 저장소/캐시에 저장"""
    stored = await store.load()
    if stored:
        return stored

    user = UserIdentity(id=str(uuid.uuid4()), nickname=generate_random_nickname())

    # 서버 미러는 선택 사항이므로 실패해도 로컬 식별 정보는 유지
    await save_user_to_database(db, user)
    await store.save(user)

    logger.info(f"Initialized new local user {user.id}")
    return user


async def get_current_user(db: AsyncSession, store: LocalIdentityStore) -> UserIdentity:
    """현재 사용자 (없으면 초기화)"""
    return await init_user(db, store)


async def reset_user(db: AsyncSession, store: LocalIdentityStore) -> UserIdentity:
    """로컬 식별 정보만 지우고 새 사용자 생성 (서버 행은 유지)"""
    await store.clear()
    return await init_user(db, store)


def is_user_initialized(store: LocalIdentityStore) -> bool:
    return store.exists()


async def get_user_status(store: LocalIdentityStore) -> UserStatus:
    """로컬 사용자 초기화 상태"""
    try:
        user = await store.load() if store.exists() else None
    except OSError as e:
        return UserStatus(initialized=False, error=str(e))
    return UserStatus(initialized=user is not None, user=user)


# =============================================================================
# Server mirror
# =============================================================================

async def save_user_to_database(db: AsyncSession, user: UserIdentity) -> OperationResult:
    """사용자 upsert (id 충돌 시 닉네임 갱신)"""
    try:
        await db.merge(User(id=user.id, nickname=user.nickname))
        await db.commit()
    except SQLAlchemyError as e:
        logger.error(f"Failed to save user {user.id}: {e}")
        await db.rollback()
        return OperationResult.fail("Failed to save user", REMOTE_ERROR)
    return OperationResult.ok()


async def get_user_from_database(db: AsyncSession, user_id: str) -> Optional[UserIdentity]:
    """저장소에서 사용자 조회 (없으면 None)"""
    try:
        result = await db.execute(select(User).where(User.id == user_id))
        row = result.scalar_one_or_none()
    except SQLAlchemyError as e:
        logger.error(f"Failed to load user {user_id}: {e}")
        await db.rollback()
        return None
    return UserIdentity(id=row.id, nickname=row.nickname) if row else None


async def sync_local_user_to_database(db: AsyncSession, store: LocalIdentityStore) -> OperationResult:
    """로컬 사용자가 저장소에 없으면 다시 저장"""
    user = await get_current_user(db, store)
    if await get_user_from_database(db, user.id) is None:
        return await save_user_to_database(db, user)
    return OperationResult.ok()


async def update_nickname(
    db: AsyncSession,
    store: LocalIdentityStore,
    user_id: str,
    new_nickname: str
) -> NicknameResult:
    """닉네임 변경: 저장소 갱신 후 로컬 캐시 갱신"""
    try:
        nickname = Validator.validate_nickname(new_nickname)
    except ValidationException as e:
        return NicknameResult.fail(e.message, VALIDATION_ERROR)

    try:
        result = await db.execute(
            update(User).where(User.id == user_id).values(nickname=nickname)
        )
        if not result.rowcount:
            # 미러가 없던 사용자
            await db.merge(User(id=user_id, nickname=nickname))
        await db.commit()
    except SQLAlchemyError as e:
        logger.error(f"Failed to update nickname of user {user_id}: {e}")
        await db.rollback()
        return NicknameResult.fail("Failed to update nickname", REMOTE_ERROR)

    cached = await store.load()
    if cached and cached.id == user_id:
        await store.save(UserIdentity(id=user_id, nickname=nickname))

    logger.info(f"User {user_id} changed nickname", extra={"user_id": user_id})
    return NicknameResult.ok(nickname=nickname)


# =============================================================================
# Helpers
# =============================================================================

def validate_nickname(nickname: Optional[str]) -> OperationResult:
    """닉네임 형식 검증 결과"""
    try:
        Validator.validate_nickname(nickname)
    except ValidationException as e:
        return OperationResult.fail(e.message, VALIDATION_ERROR)
    return OperationResult.ok()


def get_user_display_name(user: Any) -> str:
    """표시 이름 (닉네임이 없으면 Anonymous)"""
    if user is None:
        return ANONYMOUS_NAME
    nickname = user.get("nickname") if isinstance(user, dict) else getattr(user, "nickname", None)
    return nickname or ANONYMOUS_NAME
