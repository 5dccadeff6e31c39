from typing import List

from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from shadowchat.api.dependencies import get_current_user, raise_for_result
from shadowchat.core.errors import ResourceNotFoundException
from shadowchat.database.postgres import get_db
from shadowchat.schemas.room import RoomCreate, RoomMemberCount, RoomResponse, RoomResult, RoomUpdate
from shadowchat.schemas.user import UserIdentity
from shadowchat.services import room_service

router = APIRouter(prefix="/rooms", tags=["Rooms"])


@router.get("", response_model=List[RoomResponse])
async def list_public_rooms(db: AsyncSession = Depends(get_db)) -> List[RoomResponse]:
    """공개 채팅방 목록 (최신순)"""
    return await room_service.get_public_rooms(db)


@router.post("", response_model=RoomResult, status_code=status.HTTP_201_CREATED)
async def create_room(
    room_data: RoomCreate,
    current_user: UserIdentity = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
) -> RoomResult:
    """
    채팅방 생성

    - **name**: 1~50자
    - **description**: 선택

    공개 채팅방은 최대 10개, 사용자당 참여 방은 최대 3개입니다.
    생성자는 자동으로 참여됩니다.
    """
    result = await room_service.create_room(db, current_user.id, room_data.name, room_data.description)
    return raise_for_result(result)


@router.get("/mine", response_model=List[RoomResponse])
async def list_my_rooms(
    current_user: UserIdentity = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
) -> List[RoomResponse]:
    """내가 참여한 채팅방 목록"""
    return await room_service.get_user_rooms(db, current_user.id)


@router.get("/{room_id}", response_model=RoomResponse)
async def get_room(room_id: int, db: AsyncSession = Depends(get_db)) -> RoomResponse:
    """채팅방 상세 정보"""
    room = await room_service.get_room_details(db, room_id)
    if room is None:
        raise ResourceNotFoundException("Room")
    return room


@router.patch("/{room_id}", response_model=RoomResult)
async def update_room(
    room_id: int,
    updates: RoomUpdate,
    current_user: UserIdentity = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
) -> RoomResult:
    """채팅방 정보 수정 (생성자만)"""
    result = await room_service.update_room(
        db, room_id, current_user.id, updates.model_dump(exclude_unset=True)
    )
    return raise_for_result(result)


@router.delete("/{room_id}", response_model=RoomResult)
async def delete_room(
    room_id: int,
    current_user: UserIdentity = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
) -> RoomResult:
    """채팅방 삭제 (생성자만, 멤버십/메시지 연쇄 삭제)"""
    return raise_for_result(await room_service.delete_room(db, current_user.id, room_id))


@router.post("/{room_id}/join", response_model=RoomResult)
async def join_room(
    room_id: int,
    current_user: UserIdentity = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
) -> RoomResult:
    """채팅방 참여"""
    return raise_for_result(await room_service.join_room(db, current_user.id, room_id))


@router.post("/{room_id}/leave", response_model=RoomResult)
async def leave_room(
    room_id: int,
    current_user: UserIdentity = Depends(get_current_user),
    db: AsyncSession = Depends(get_db)
) -> RoomResult:
    """채팅방 나가기"""
    return raise_for_result(await room_service.leave_room(db, current_user.id, room_id))


@router.get("/{room_id}/members/count", response_model=RoomMemberCount)
async def get_member_count(room_id: int, db: AsyncSession = Depends(get_db)) -> RoomMemberCount:
    """채팅방 멤버 수"""
    count = await room_service.get_room_member_count(db, room_id)
    return RoomMemberCount(room_id=room_id, member_count=count)
