from sqlalchemy import Column, String, DateTime, ForeignKey, Enum, Index, CheckConstraint, text
import uuid

from myspace_api.database import Base
from myspace_api.models.user import utcnow
from myspace_api.schemas.friends import FriendRequestStatus

class FriendRequest(Base):
    __tablename__ = "friend_requests"
    __table_args__ = (
        CheckConstraint("requester <> recipient", name="ck_friend_requests_not_self"),
        # One pending request per unordered pair, whichever side sent it
        Index(
            "uq_friend_requests_pending_pair",
            "pair_low",
            "pair_high",
            unique=True,
            postgresql_where=text("status = 'pending'"),
            sqlite_where=text("status = 'pending'"),
        ),
    )

    id = Column(String, primary_key=True, index=True, default=lambda: str(uuid.uuid4()))
    requester = Column(String, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    recipient = Column(String, ForeignKey("users.id", ondelete="CASCADE"), index=True, nullable=False)
    pair_low = Column(String, nullable=False)
    pair_high = Column(String, nullable=False)
    status = Column(
        Enum(
            FriendRequestStatus,
            name="friendrequeststatus",
            values_callable=lambda statuses: [s.value for s in statuses],
        ),
        default=FriendRequestStatus.PENDING,
        nullable=False,
    )
    created_at = Column(DateTime(timezone=True), default=utcnow)
    updated_at = Column(DateTime(timezone=True), onupdate=utcnow)
