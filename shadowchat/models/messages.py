from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, Text, ForeignKey, Index
from shadowchat.database.postgres import Base


MESSAGE_TYPES = ("text", "image", "video")


class Message(Base):
    __tablename__ = "messages"
    __table_args__ = (
        Index("ix_messages_room_created", "room_id", "created_at"),  # For room message history
        Index("ix_messages_created_id", "created_at", "id"),  # For retention ordering
    )

    id = Column(Integer, primary_key=True)
    room_id = Column(Integer, ForeignKey("rooms.id", ondelete="CASCADE"), nullable=False)
    user_id = Column(String(36), nullable=False, index=True)
    nickname = Column(String(20), nullable=False)
    type = Column(String(10), nullable=False, default="text")
    content = Column(Text, nullable=False)  # 텍스트 또는 첨부파일 URL
    file_size = Column(Integer, nullable=True)
    created_at = Column(DateTime, default=datetime.utcnow, nullable=False)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "room_id": self.room_id,
            "user_id": self.user_id,
            "nickname": self.nickname,
            "type": self.type,
            "content": self.content,
            "file_size": self.file_size,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<Message(id={self.id}, room_id={self.room_id}, user_id={self.user_id}, type={self.type})>"
