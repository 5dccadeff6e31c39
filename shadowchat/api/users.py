from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from shadowchat.api.dependencies import get_current_user, get_identity_store, raise_for_result
from shadowchat.core.errors import ResourceNotFoundException
from shadowchat.database.postgres import get_db
from shadowchat.schemas.common import OperationResult
from shadowchat.schemas.user import NicknameResult, NicknameUpdate, UserIdentity, UserStatus
from shadowchat.services import user_service
from shadowchat.services.user_service import LocalIdentityStore

router = APIRouter(prefix="/users", tags=["Users"])


@router.get("/me", response_model=UserIdentity)
async def get_me(current_user: UserIdentity = Depends(get_current_user)) -> UserIdentity:
    """현재 로컬 사용자 (처음 호출 시 생성)"""
    return current_user


@router.get("/me/status", response_model=UserStatus)
async def get_my_status(store: LocalIdentityStore = Depends(get_identity_store)) -> UserStatus:
    """로컬 사용자 초기화 여부"""
    return await user_service.get_user_status(store)


@router.patch("/me/nickname", response_model=NicknameResult)
async def update_my_nickname(
    payload: NicknameUpdate,
    current_user: UserIdentity = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
    store: LocalIdentityStore = Depends(get_identity_store)
) -> NicknameResult:
    """
    닉네임 변경

    - **nickname**: 1~20자, < > 사용 불가
    """
    result = await user_service.update_nickname(db, store, current_user.id, payload.nickname)
    return raise_for_result(result)


@router.post("/me/reset", response_model=UserIdentity)
async def reset_me(
    db: AsyncSession = Depends(get_db),
    store: LocalIdentityStore = Depends(get_identity_store)
) -> UserIdentity:
    """로컬 사용자 재생성 (개발용)"""
    return await user_service.reset_user(db, store)


@router.post("/me/sync", response_model=OperationResult)
async def sync_me(
    db: AsyncSession = Depends(get_db),
    store: LocalIdentityStore = Depends(get_identity_store)
) -> OperationResult:
    """로컬 사용자를 저장소에 다시 미러링"""
    return raise_for_result(await user_service.sync_local_user_to_database(db, store))


@router.get("/{user_id}", response_model=UserIdentity)
async def get_user(user_id: str, db: AsyncSession = Depends(get_db)) -> UserIdentity:
    """저장소의 사용자 조회"""
    user = await user_service.get_user_from_database(db, user_id)
    if user is None:
        raise ResourceNotFoundException("User")
    return user
