import logging
from datetime import datetime, timezone

from .common import app
from .routers.friends.endpoints import router as FriendsEndpoints
from .routers.notifications.endpoints import router as NotificationsEndpoints
from .routers.users.endpoints import router as UsersEndpoints
from .routers.websocket.endpoints import router as WebSocketEndpoints

logger = logging.getLogger(__name__)

# Include routers
app.include_router(UsersEndpoints)
app.include_router(FriendsEndpoints)
app.include_router(NotificationsEndpoints)
app.include_router(WebSocketEndpoints)

@app.get("/health")
async def health_check():
    return {
        "status": "healthy",
        "timestamp": datetime.now(timezone.utc).isoformat()
    }
