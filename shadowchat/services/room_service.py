"""
Room membership service layer.

Handles chat room creation, membership and creator-only mutations.

- 공개 채팅방은 최대 10개
- 사용자 한 명은 최대 3개 방에 참여

Count and ownership checks are read-then-act against the store without
locking; the (user_id, room_id) unique constraint is what finally rejects a
duplicate membership.
"""

from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import select, delete, update, func, and_
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from shadowchat.core.errors import (
    ALREADY_JOINED,
    CAPACITY_EXCEEDED,
    FORBIDDEN,
    NOT_FOUND,
    REMOTE_ERROR,
    VALIDATION_ERROR,
    ValidationException,
)
from shadowchat.core.logging import get_logger, log_room_event
from shadowchat.core.validators import Validator
from shadowchat.models.rooms import Room
from shadowchat.models.user_rooms import UserRoom
from shadowchat.schemas.room import RoomResponse, RoomResult

logger = get_logger(__name__)

MAX_TOTAL_ROOMS = 10  # 공개 채팅방 총 개수 제한
MAX_USER_ROOMS = 3  # 사용자당 참여 가능한 방 개수

UPDATABLE_FIELDS = ("name", "description", "is_public")

ROOM_NOT_FOUND = "Room does not exist"


# =============================================================================
# 조회
# =============================================================================

async def find_room_by_id(db: AsyncSession, room_id: int) -> Optional[Room]:
    """채팅방 ID로 조회"""
    result = await db.execute(select(Room).where(Room.id == room_id))
    return result.scalar_one_or_none()


async def find_membership(db: AsyncSession, user_id: str, room_id: int) -> Optional[UserRoom]:
    result = await db.execute(
        select(UserRoom).where(
            and_(UserRoom.user_id == user_id, UserRoom.room_id == room_id)
        )
    )
    return result.scalar_one_or_none()


async def count_public_rooms(db: AsyncSession) -> int:
    return await db.scalar(
        select(func.count()).select_from(Room).where(Room.is_public.is_(True))
    ) or 0


async def count_user_rooms(db: AsyncSession, user_id: str) -> int:
    return await db.scalar(
        select(func.count()).select_from(UserRoom).where(UserRoom.user_id == user_id)
    ) or 0


async def get_user_rooms(db: AsyncSession, user_id: str) -> List[Room]:
    """사용자가 참여한 채팅방 목록 (최근 참여순)"""
    try:
        result = await db.execute(
            select(Room)
            .join(UserRoom, UserRoom.room_id == Room.id)
            .where(UserRoom.user_id == user_id)
            .order_by(UserRoom.created_at.desc())
        )
        return list(result.scalars().all())
    except SQLAlchemyError as e:
        logger.error(f"Failed to load rooms of user {user_id}: {e}")
        await db.rollback()
        return []


async def get_public_rooms(db: AsyncSession) -> List[Room]:
    """공개 채팅방 목록 (최신순)"""
    try:
        result = await db.execute(
            select(Room).where(Room.is_public.is_(True)).order_by(Room.created_at.desc())
        )
        return list(result.scalars().all())
    except SQLAlchemyError as e:
        logger.error(f"Failed to load public rooms: {e}")
        await db.rollback()
        return []


async def get_room_details(db: AsyncSession, room_id: int) -> Optional[Room]:
    """채팅방 상세 조회"""
    try:
        return await find_room_by_id(db, room_id)
    except SQLAlchemyError as e:
        logger.error(f"Failed to load room {room_id}: {e}")
        await db.rollback()
        return None


async def get_room_member_count(db: AsyncSession, room_id: int) -> int:
    """채팅방 멤버 수"""
    try:
        return await db.scalar(
            select(func.count()).select_from(UserRoom).where(UserRoom.room_id == room_id)
        ) or 0
    except SQLAlchemyError as e:
        logger.error(f"Failed to count members of room {room_id}: {e}")
        await db.rollback()
        return 0


# =============================================================================
# 생성 / 참여 / 나가기
# =============================================================================

async def create_room(db: AsyncSession, user_id: str, name: str, description: str = "") -> RoomResult:
    """채팅방 생성 후 생성자를 자동으로 참여시킴"""
    try:
        name = Validator.validate_room_name(name)
    except ValidationException as e:
        log_room_event(logger, "create", user_id, success=False, reason=e.message)
        return RoomResult.fail(e.message, VALIDATION_ERROR)

    try:
        if await count_public_rooms(db) >= MAX_TOTAL_ROOMS:
            log_room_event(logger, "create", user_id, success=False, reason=CAPACITY_EXCEEDED)
            return RoomResult.fail(
                f"Public rooms are full (max {MAX_TOTAL_ROOMS})", CAPACITY_EXCEEDED
            )

        if await count_user_rooms(db, user_id) >= MAX_USER_ROOMS:
            log_room_event(logger, "create", user_id, success=False, reason=CAPACITY_EXCEEDED)
            return RoomResult.fail(
                f"You can join at most {MAX_USER_ROOMS} rooms", CAPACITY_EXCEEDED
            )

        room = Room(
            name=name,
            description=(description or "").strip(),
            creator_id=user_id,
            is_public=True
        )
        db.add(room)
        await db.flush()

        # 방과 생성자 멤버십을 같은 트랜잭션으로 커밋
        db.add(UserRoom(user_id=user_id, room_id=room.id))
        await db.commit()
        await db.refresh(room)

    except SQLAlchemyError as e:
        logger.error(f"Failed to create room for user {user_id}: {e}")
        await db.rollback()
        return RoomResult.fail("Failed to create room", REMOTE_ERROR)

    log_room_event(logger, "create", user_id, room.id)
    return RoomResult.ok(room_id=room.id, room=RoomResponse.model_validate(room))


async def join_room(db: AsyncSession, user_id: str, room_id: int) -> RoomResult:
    """채팅방 참여"""
    try:
        if await find_membership(db, user_id, room_id):
            log_room_event(logger, "join", user_id, room_id, success=False, reason=ALREADY_JOINED)
            return RoomResult.fail("Already joined this room", ALREADY_JOINED)

        if await count_user_rooms(db, user_id) >= MAX_USER_ROOMS:
            log_room_event(logger, "join", user_id, room_id, success=False, reason=CAPACITY_EXCEEDED)
            return RoomResult.fail(
                f"You can join at most {MAX_USER_ROOMS} rooms", CAPACITY_EXCEEDED
            )

        if await find_room_by_id(db, room_id) is None:
            return RoomResult.fail(ROOM_NOT_FOUND, NOT_FOUND)

        db.add(UserRoom(user_id=user_id, room_id=room_id))
        await db.commit()

    except IntegrityError:
        # 동시 참여 요청이 유니크 제약에 걸린 경우
        await db.rollback()
        log_room_event(logger, "join", user_id, room_id, success=False, reason=ALREADY_JOINED)
        return RoomResult.fail("Already joined this room", ALREADY_JOINED)
    except SQLAlchemyError as e:
        logger.error(f"Failed to join room {room_id} for user {user_id}: {e}")
        await db.rollback()
        return RoomResult.fail("Failed to join room", REMOTE_ERROR)

    log_room_event(logger, "join", user_id, room_id)
    return RoomResult.ok(room_id=room_id)


async def leave_room(db: AsyncSession, user_id: str, room_id: int) -> RoomResult:
    """채팅방 나가기 (마지막 방이어도 허용)"""
    try:
        await db.execute(
            delete(UserRoom).where(
                and_(UserRoom.user_id == user_id, UserRoom.room_id == room_id)
            )
        )
        await db.commit()
    except SQLAlchemyError as e:
        logger.error(f"Failed to leave room {room_id} for user {user_id}: {e}")
        await db.rollback()
        return RoomResult.fail("Failed to leave room", REMOTE_ERROR)

    log_room_event(logger, "leave", user_id, room_id)
    return RoomResult.ok(room_id=room_id)


# =============================================================================
# 생성자 전용 작업
# =============================================================================

async def _check_creator(
    db: AsyncSession, user_id: str, room_id: int, action: str
) -> Tuple[Optional[Room], Optional[RoomResult]]:
    """생성자 확인. (room, None) 또는 (None, 거절 결과) 반환"""
    room = await find_room_by_id(db, room_id)
    if room is None:
        return None, RoomResult.fail(ROOM_NOT_FOUND, NOT_FOUND)

    if room.creator_id != user_id:
        log_room_event(logger, action, user_id, room_id, success=False, reason=FORBIDDEN)
        return None, RoomResult.fail(f"Only the creator can {action} this room", FORBIDDEN)

    return room, None


async def delete_room(db: AsyncSession, user_id: str, room_id: int) -> RoomResult:
    """채팅방 삭제 (멤버십/메시지는 저장소가 연쇄 삭제)"""
    try:
        _, rejected = await _check_creator(db, user_id, room_id, "delete")
        if rejected:
            return rejected

        await db.execute(delete(Room).where(Room.id == room_id))
        await db.commit()

    except SQLAlchemyError as e:
        logger.error(f"Failed to delete room {room_id}: {e}")
        await db.rollback()
        return RoomResult.fail("Failed to delete room", REMOTE_ERROR)

    log_room_event(logger, "delete", user_id, room_id)
    return RoomResult.ok(room_id=room_id)


async def update_room(db: AsyncSession, room_id: int, user_id: str, updates: Dict[str, Any]) -> RoomResult:
    """채팅방 정보 부분 수정 (name, description, is_public)"""
    try:
        room, rejected = await _check_creator(db, user_id, room_id, "update")
        if rejected:
            return rejected

        changes = {
            key: value for key, value in updates.items()
            if key in UPDATABLE_FIELDS and value is not None
        }

        try:
            if "name" in changes:
                changes["name"] = Validator.validate_room_name(changes["name"])
        except ValidationException as e:
            return RoomResult.fail(e.message, VALIDATION_ERROR)

        if "description" in changes:
            changes["description"] = changes["description"].strip()

        # 비공개 방을 다시 공개로 바꾸는 것도 공개 채팅방 개수 제한 대상
        if changes.get("is_public") is True and not room.is_public:
            if await count_public_rooms(db) >= MAX_TOTAL_ROOMS:
                log_room_event(logger, "update", user_id, room_id, success=False, reason=CAPACITY_EXCEEDED)
                return RoomResult.fail(
                    f"Public rooms are full (max {MAX_TOTAL_ROOMS})", CAPACITY_EXCEEDED
                )

        if changes:
            await db.execute(update(Room).where(Room.id == room_id).values(**changes))
            await db.commit()

        room = await find_room_by_id(db, room_id)
        if room is not None:
            await db.refresh(room)

    except SQLAlchemyError as e:
        logger.error(f"Failed to update room {room_id}: {e}")
        await db.rollback()
        return RoomResult.fail("Failed to update room", REMOTE_ERROR)

    log_room_event(logger, "update", user_id, room_id, fields=sorted(changes))
    return RoomResult.ok(
        room_id=room_id,
        room=RoomResponse.model_validate(room) if room is not None else None
    )
