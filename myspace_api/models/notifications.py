import uuid
from sqlalchemy import Column, String, DateTime, ForeignKey, Boolean, JSON
from sqlalchemy.dialects.postgresql import JSONB
from ..database import Base
from .user import utcnow

class Notification(Base):
    __tablename__ = "notifications"

    id = Column(String, primary_key=True, index=True, default=lambda: str(uuid.uuid4()))
    user_id = Column(String, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    actor = Column(String, ForeignKey("users.id", ondelete="SET NULL"), nullable=True)
    type = Column(String, nullable=False)  # friend_request, friend_accept, friend_reject
    payload = Column(JSON().with_variant(JSONB, "postgresql"), nullable=True)
    is_read = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)
