from enum import Enum
from pydantic import BaseModel
from typing import Any, Dict

class WebSocketMessageType(str, Enum):
    NOTIFICATION = "notification"
    HEARTBEAT = "heartbeat"
    PING = "ping"
    PONG = "pong"

class NotificationMessage(BaseModel):
    type: WebSocketMessageType = WebSocketMessageType.NOTIFICATION
    notification: Dict[str, Any]
