import logging
from typing import Optional
from fastapi import APIRouter, Depends
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from myspace_api.init_db import get_db
from myspace_api.common import get_current_user
from myspace_api.exceptions import DependencyError
from myspace_api.schemas.friends import OkResponse
from myspace_api.schemas.notifications import NotificationListEnvelope, NotificationMarkRead, NotificationResponse
from myspace_api.services.notification_service import get_notifications, mark_notifications_read

logger = logging.getLogger(__name__)

# Initialize router with prefix and tags for API documentation
router = APIRouter(prefix="/notifications", tags=["notifications"])

@router.get("/list", response_model=NotificationListEnvelope)
async def get_notifications_api(
    unread_only: bool = False,
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user)
):
    """
    Retrieve the current user's notifications, newest first.

    Args:
        unread_only: Only return notifications not yet marked read
        db: Database session dependency
        current_user: Current authenticated user information
    """
    try:
        notifications = await get_notifications(db, current_user, unread_only=unread_only)
    except SQLAlchemyError as e:
        logger.error(f"Database error listing notifications: {e}")
        raise DependencyError()
    return NotificationListEnvelope(
        notifications=[NotificationResponse.model_validate(n) for n in notifications]
    )

@router.post("/mark-read", response_model=OkResponse)
async def mark_notifications_read_api(
    request: Optional[NotificationMarkRead] = None,
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user)
):
    """
    Mark the given notifications as read.

    Raises:
        HTTPException: 400 if ids is missing or not a list
    """
    try:
        await mark_notifications_read(request.ids if request else None, db, current_user)
    except SQLAlchemyError as e:
        logger.error(f"Database error marking notifications read: {e}")
        await db.rollback()
        raise DependencyError()
    return OkResponse()
