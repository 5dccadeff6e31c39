from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, Text, Boolean
from sqlalchemy.orm import relationship
from shadowchat.database.postgres import Base


class Room(Base):
    __tablename__ = "rooms"

    id = Column(Integer, primary_key=True, index=True)
    name = Column(String(50), nullable=False)
    description = Column(Text, nullable=False, default="")
    creator_id = Column(String(36), nullable=False, index=True)
    is_public = Column(Boolean, nullable=False, default=True, index=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    # 방 삭제 시 멤버십/메시지는 저장소의 ON DELETE CASCADE 로 정리됨
    members = relationship("UserRoom", back_populates="room", passive_deletes=True)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "description": self.description,
            "creator_id": self.creator_id,
            "is_public": self.is_public,
            "created_at": self.created_at.isoformat() if self.created_at else None,
        }

    def __repr__(self):
        return f"<Room(id={self.id}, name={self.name}, creator_id={self.creator_id})>"
