from fastapi import Depends
from sqlalchemy.ext.asyncio import AsyncSession

from shadowchat.core.errors import exception_for_error_code
from shadowchat.database.postgres import get_db
from shadowchat.schemas.common import OperationResult
from shadowchat.schemas.user import UserIdentity
from shadowchat.services import user_service
from shadowchat.services.user_service import LocalIdentityStore


def get_identity_store() -> LocalIdentityStore:
    """로컬 식별 정보 캐시"""
    return user_service.get_identity_store()


async def get_current_user(
    db: AsyncSession = Depends(get_db),
    store: LocalIdentityStore = Depends(get_identity_store)
) -> UserIdentity:
    """현재 로컬 사용자 (인증 없는 클라이언트이므로 캐시된 식별 정보 사용)"""
    return await user_service.get_current_user(db, store)


def raise_for_result(result: OperationResult) -> OperationResult:
    """실패한 서비스 결과를 HTTP 예외로 변환"""
    if not result.success:
        raise exception_for_error_code(result.error_code, result.error or "Request failed")
    return result
