from datetime import datetime
from sqlalchemy import Column, String, DateTime
from shadowchat.database.postgres import Base


class User(Base):
    """서버 측 사용자 미러 (식별자는 클라이언트가 생성)"""
    __tablename__ = "users"

    id = Column(String(36), primary_key=True)
    nickname = Column(String(20), nullable=False)
    created_at = Column(DateTime, default=datetime.utcnow)
    updated_at = Column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def to_dict(self) -> dict:
        return {"id": self.id, "nickname": self.nickname}

    def __repr__(self):
        return f"<User(id={self.id}, nickname={self.nickname})>"
