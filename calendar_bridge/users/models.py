# calendar_bridge/users/models.py
from sqlalchemy import Column, Integer, String, Text, DateTime
from sqlalchemy.sql import func

from calendar_bridge.core.database import Base


class User(Base):
    __tablename__ = "users"
    id = Column(Integer, primary_key=True, autoincrement=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    name = Column(String(255), nullable=True)
    access_token = Column(Text, nullable=True)
    refresh_token = Column(Text, nullable=True)
    token_expiry = Column(DateTime(timezone=True), nullable=True)
    last_login = Column(DateTime(timezone=True), server_default=func.now())
    last_logout = Column(DateTime(timezone=True), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    def __repr__(self):
        return f"User(id={self.id}, email='{self.email}', has_refresh_token={bool(self.refresh_token)})"
