from .common import OperationResult
from .room import RoomCreate, RoomUpdate, RoomResponse, RoomResult, RoomMemberCount
from .message import MessageCreate, MessageResponse, MessageList, MessageResult
from .user import UserIdentity, NicknameUpdate, NicknameResult, UserStatus
from .capacity import (
    CapacitySnapshot,
    CleanupStepResult,
    CleanupResult,
    CleanupCheckResult,
    CleanupConfig,
    Statistics,
    CapacityMonitorData,
)
from .attachment import UploadResult

__all__ = [
    "OperationResult",
    "RoomCreate",
    "RoomUpdate",
    "RoomResponse",
    "RoomResult",
    "RoomMemberCount",
    "MessageCreate",
    "MessageResponse",
    "MessageList",
    "MessageResult",
    "UserIdentity",
    "NicknameUpdate",
    "NicknameResult",
    "UserStatus",
    "CapacitySnapshot",
    "CleanupStepResult",
    "CleanupResult",
    "CleanupCheckResult",
    "CleanupConfig",
    "Statistics",
    "CapacityMonitorData",
    "UploadResult",
]
