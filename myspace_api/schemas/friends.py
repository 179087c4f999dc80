from pydantic import BaseModel, ConfigDict, Field
from typing import Any, List, Optional
from datetime import datetime
from enum import Enum as PyEnum
from .users import UserResponse

class FriendRequestStatus(str, PyEnum):
    PENDING = "pending"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self is not FriendRequestStatus.PENDING

class FriendAction(str, PyEnum):
    ACCEPT = "accept"
    REJECT = "reject"
    CANCEL = "cancel"

# Status each action moves a pending request into
ACTION_TARGET_STATUS = {
    FriendAction.ACCEPT: FriendRequestStatus.ACCEPTED,
    FriendAction.REJECT: FriendRequestStatus.REJECTED,
    FriendAction.CANCEL: FriendRequestStatus.CANCELLED,
}

class RequestDirection(str, PyEnum):
    INCOMING = "incoming"
    OUTGOING = "outgoing"
    ALL = "all"

# Request bodies keep every field optional so the router can answer
# missing input with 400 instead of FastAPI's 422.
class FriendRequestCreate(BaseModel):
    recipient: Optional[Any] = None

class FriendRequestRespond(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    request_id: Optional[Any] = Field(default=None, alias="requestId")
    action: Optional[Any] = None

class FriendRemove(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    friend_id: Optional[Any] = Field(default=None, alias="friendId")

class Top8Update(BaseModel):
    top8: Optional[Any] = None

class FriendRequestResponse(BaseModel):
    id: str
    requester: str
    recipient: str
    status: FriendRequestStatus
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

class FriendRequestEnvelope(BaseModel):
    ok: bool = True
    request: FriendRequestResponse

class FriendRequestListEnvelope(BaseModel):
    ok: bool = True
    requests: List[FriendRequestResponse]

class FriendListEnvelope(BaseModel):
    ok: bool = True
    friends: List[UserResponse]

class FriendStatusResponse(BaseModel):
    is_friend: bool
    pending_request_id: Optional[str] = None
    pending_request_direction: Optional[RequestDirection] = None

class FriendStatusEnvelope(BaseModel):
    ok: bool = True
    status: FriendStatusResponse

class OkResponse(BaseModel):
    ok: bool = True
