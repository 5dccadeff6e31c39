from datetime import datetime
from sqlalchemy import Column, Integer, String, DateTime, ForeignKey, UniqueConstraint
from sqlalchemy.orm import relationship
from shadowchat.database.postgres import Base


class UserRoom(Base):
    __tablename__ = "user_rooms"
    __table_args__ = (
        UniqueConstraint("user_id", "room_id", name="uq_user_rooms_user_room"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(String(36), nullable=False, index=True)
    room_id = Column(Integer, ForeignKey("rooms.id", ondelete="CASCADE"), nullable=False, index=True)
    created_at = Column(DateTime, default=datetime.utcnow)

    room = relationship("Room", back_populates="members")

    def __repr__(self):
        return f"<UserRoom(user_id={self.user_id}, room_id={self.room_id})>"
