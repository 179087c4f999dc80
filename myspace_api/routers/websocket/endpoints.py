import logging
from typing import Optional
from fastapi import APIRouter, WebSocket, WebSocketDisconnect, status
from myspace_api.common import resolve_identity
from myspace_api.core.websocket.websocket_manager import manager
from myspace_api.exceptions import UnauthenticatedError
from myspace_api.schemas.websocket import WebSocketMessageType

# Set up the logger
logger = logging.getLogger(__name__)

# Create router for WebSocket endpoints
router = APIRouter(prefix="/ws", tags=["web-socket"])

@router.websocket("/notifications")
async def notifications_websocket(websocket: WebSocket, token: Optional[str] = None):
    """
    Live notification feed for the authenticated user.

    The ID token travels as a query parameter since browsers cannot set
    headers on websocket upgrades. Invalid tokens are closed with 1008.
    Clients may send ``{"type": "ping"}`` and receive ``{"type": "pong"}``.
    """
    try:
        user_id = resolve_identity(token)["uid"]
    except UnauthenticatedError:
        await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
        return

    await manager.connect(websocket, user_id)
    logger.info(f"WebSocket connected for user {user_id}")

    try:
        while True:
            message = await websocket.receive_json()
            if isinstance(message, dict) and message.get("type") == WebSocketMessageType.PING.value:
                await websocket.send_json({"type": WebSocketMessageType.PONG.value})
    except WebSocketDisconnect:
        await manager.disconnect(websocket, user_id)
    except Exception as e:
        logger.error(f"Error on WebSocket for user {user_id}: {e}")
        await manager.disconnect(websocket, user_id, reason=str(e))
