import logging
from typing import Callable, List

from fastapi import BackgroundTasks
from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from myspace_api.core.websocket.websocket_manager import manager
from myspace_api.exceptions import InvalidArgumentError
from myspace_api.models.notifications import Notification
from myspace_api.schemas.notifications import NotificationCreate, NotificationResponse
from myspace_api.schemas.websocket import NotificationMessage

logger = logging.getLogger(__name__)


class NotificationPublisher:
    """
    Outbound queue for notifications raised by state transitions.

    ``publish`` only schedules delivery on the request's background tasks,
    which run after the response has been sent. A delivery failure can
    therefore never fail or roll back the transition that raised it.
    """

    def __init__(self, background_tasks: BackgroundTasks, session_factory: Callable[[], AsyncSession]):
        self.background_tasks = background_tasks
        self.session_factory = session_factory

    def publish(self, event: NotificationCreate) -> None:
        try:
            self.background_tasks.add_task(deliver_notification, event, self.session_factory)
        except Exception:
            logger.exception(f"Failed to enqueue {event.type.value} notification for {event.user_id}")


async def deliver_notification(event: NotificationCreate, session_factory: Callable[[], AsyncSession]) -> None:
    """
    Store a notification and push it to the recipient if they are online.

    Errors are logged and swallowed; nothing retries a failed delivery.
    """
    try:
        async with session_factory() as db:
            notification = Notification(
                user_id=event.user_id,
                actor=event.actor,
                type=event.type.value,
                payload=event.payload,
            )
            db.add(notification)
            await db.commit()
            await db.refresh(notification)
    except Exception:
        logger.exception(f"Failed to store {event.type.value} notification for {event.user_id}")
        return

    logger.info(f"Notification {notification.id} ({event.type.value}) stored for {event.user_id}")

    if manager.is_user_online(event.user_id):
        try:
            message = NotificationMessage(
                notification=NotificationResponse.model_validate(notification).model_dump(mode="json")
            )
            await manager.send_notification(event.user_id, message.model_dump(mode="json"))
        except Exception:
            logger.exception(f"Failed to push notification {notification.id} to {event.user_id}")


async def get_notifications(db: AsyncSession, current_user: dict, unread_only: bool = False) -> List[Notification]:
    """
    Retrieve the current user's notifications, newest first.

    Args:
        db: AsyncSession for database operations
        current_user: Dictionary containing current user information
        unread_only: Only return notifications not yet marked read

    Returns:
        List[Notification]: The user's notifications
    """
    query = select(Notification).where(Notification.user_id == current_user['uid'])
    if unread_only:
        query = query.where(Notification.is_read == False)  # noqa: E712
    result = await db.execute(query.order_by(Notification.created_at.desc()))
    return list(result.scalars().all())


async def mark_notifications_read(ids, db: AsyncSession, current_user: dict) -> int:
    """
    Mark notifications as read. Only rows owned by the caller are touched.

    Args:
        ids: List of notification ids
        db: AsyncSession for database operations
        current_user: Dictionary containing current user information

    Returns:
        int: Number of notifications updated

    Raises:
        InvalidArgumentError: If ids is missing or not a list of strings
    """
    if not isinstance(ids, list) or not all(isinstance(i, str) for i in ids):
        raise InvalidArgumentError("Missing ids")
    if not ids:
        return 0

    stmt = (
        update(Notification)
        .where(Notification.user_id == current_user['uid'], Notification.id.in_(ids))
        .values(is_read=True)
        .execution_options(synchronize_session="fetch")
    )
    result = await db.execute(stmt)
    await db.commit()
    return result.rowcount
