from fastapi import WebSocket
from typing import Dict
import logging
import asyncio
from datetime import datetime, timezone

from myspace_api.schemas.websocket import WebSocketMessageType

logger = logging.getLogger(__name__)

class ConnectionManager:
    """Tracks one live notification socket per signed-in user."""

    def __init__(self, heartbeat_interval: float = 30):
        self.active_connections: Dict[str, WebSocket] = {}
        self.heartbeat_tasks: Dict[str, asyncio.Task] = {}
        self.heartbeat_interval = heartbeat_interval

    async def connect(self, websocket: WebSocket, user_id: str):
        await websocket.accept()
        previous = self.active_connections.get(user_id)
        if previous is not None and previous is not websocket:
            await self.disconnect(previous, user_id, reason="replaced by a newer connection")
        self.active_connections[user_id] = websocket
        self.heartbeat_tasks[user_id] = asyncio.create_task(self._start_heartbeat(user_id))

    async def disconnect(self, websocket: WebSocket, user_id: str, reason: str = "client closed"):
        logger.info(f"Disconnecting user {user_id}. Reason: {reason}")
        task = self.heartbeat_tasks.pop(user_id, None)
        if task is not None:
            task.cancel()

        if self.active_connections.get(user_id) is websocket:
            del self.active_connections[user_id]
        try:
            if websocket.client_state.name == "CONNECTED":
                await websocket.close()
        except Exception as e:
            logger.warning(f"Failed to close WebSocket for user {user_id}: {e}")

    async def _start_heartbeat(self, user_id: str):
        while True:
            try:
                await asyncio.sleep(self.heartbeat_interval)
                if user_id not in self.active_connections:
                    break
                await self.send_notification(user_id, {
                    "type": WebSocketMessageType.HEARTBEAT.value,
                    "timestamp": datetime.now(timezone.utc).isoformat()
                })
            except asyncio.CancelledError:
                break

    def is_user_online(self, user_id: str) -> bool:
        return user_id in self.active_connections

    async def send_notification(self, user_id: str, message: dict) -> bool:
        """
        Send a JSON message to the user's socket.

        Returns:
            bool: False when the user is offline or the send failed
        """
        websocket = self.active_connections.get(user_id)
        if websocket is None:
            logger.debug(f"No active WebSocket connection for user {user_id}")
            return False
        try:
            await websocket.send_json(message)
            return True
        except Exception as e:
            logger.warning(f"WebSocket send failed for user {user_id}: {e}")
            await self.disconnect(websocket, user_id, reason="send_json failed")
            return False


manager = ConnectionManager()
