from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict
from datetime import datetime
from enum import Enum as PyEnum

class NotificationType(str, PyEnum):
    FRIEND_REQUEST = "friend_request"
    FRIEND_ACCEPT = "friend_accept"
    FRIEND_REJECT = "friend_reject"

class NotificationCreate(BaseModel):
    user_id: str
    actor: Optional[str] = None
    type: NotificationType
    payload: Dict[str, Any] = {}

class NotificationResponse(BaseModel):
    id: str
    user_id: str
    actor: Optional[str] = None
    type: NotificationType
    payload: Optional[Dict[str, Any]] = None
    is_read: bool
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

class NotificationListEnvelope(BaseModel):
    ok: bool = True
    notifications: List[NotificationResponse]

class NotificationMarkRead(BaseModel):
    ids: Optional[Any] = None
