"""
Services layer for the hosted store and external communications.

This layer handles:
- Store queries and operations (rooms, messages, users)
- Capacity monitoring and retention cleanup
- Attachment storage
- Realtime message feed
"""

from . import capacity_service
from . import cleanup_service
from . import cleanup_scheduler
from . import room_service
from . import message_service
from . import realtime_service
from . import storage_service
from . import user_service

__all__ = [
    "capacity_service",
    "cleanup_service",
    "cleanup_scheduler",
    "room_service",
    "message_service",
    "realtime_service",
    "storage_service",
    "user_service",
]
