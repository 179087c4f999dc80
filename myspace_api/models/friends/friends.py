import uuid
from sqlalchemy import Column, String, DateTime, ForeignKey, UniqueConstraint, CheckConstraint
from myspace_api.database import Base
from myspace_api.models.user import utcnow

class Friend(Base):
    """
    A friendship edge. The pair is stored in canonical order
    (``user_a < user_b``) so the unique constraint covers both directions.
    """
    __tablename__ = "friends"
    __table_args__ = (
        UniqueConstraint("user_a", "user_b", name="uq_friends_pair"),
        CheckConstraint("user_a < user_b", name="ck_friends_canonical_order"),
    )

    id = Column(String, primary_key=True, index=True, default=lambda: str(uuid.uuid4()))
    user_a = Column(String, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    user_b = Column(String, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    created_at = Column(DateTime(timezone=True), default=utcnow)
