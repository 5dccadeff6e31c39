from .users import User
from .rooms import Room
from .user_rooms import UserRoom
from .messages import Message, MESSAGE_TYPES

__all__ = [
    "User",
    "Room",
    "UserRoom",
    "Message",
    "MESSAGE_TYPES",
]
