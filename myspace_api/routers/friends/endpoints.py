import logging
from typing import Optional
from fastapi import APIRouter, Depends
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from myspace_api.init_db import get_db
from myspace_api.common import get_current_user, get_notification_publisher
from myspace_api.exceptions import DependencyError, InvalidArgumentError
from myspace_api.schemas.friends import (
    FriendListEnvelope,
    FriendRemove,
    FriendRequestCreate,
    FriendRequestEnvelope,
    FriendRequestListEnvelope,
    FriendRequestResponse,
    FriendRequestRespond,
    FriendStatusEnvelope,
    OkResponse,
    RequestDirection,
    Top8Update,
)
from myspace_api.schemas.users import UserResponse
from myspace_api.services.friends_service import (
    get_friend_requests,
    get_friend_status,
    get_friends,
    remove_friend,
    respond_to_friend_request,
    send_friend_request,
    set_top8,
)
from myspace_api.services.notification_service import NotificationPublisher

# Configure logging for this module
logger = logging.getLogger(__name__)

# Initialize router with prefix and tags for API documentation
router = APIRouter(prefix="/friends", tags=["friends"])

async def _store_unavailable(db: AsyncSession, operation: str, error: SQLAlchemyError) -> DependencyError:
    logger.error(f"Database error during {operation}: {error}")
    await db.rollback()
    return DependencyError()

def _require_string(value, message: str) -> str:
    if not isinstance(value, str) or not value:
        raise InvalidArgumentError(message)
    return value

@router.post("/request", response_model=FriendRequestEnvelope)
async def send_friend_request_api(
    request: Optional[FriendRequestCreate] = None,
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user),
    publisher: NotificationPublisher = Depends(get_notification_publisher)
):
    """
    Send a friend request to another user.

    Returns:
        FriendRequestEnvelope: The created request, in the pending state

    Raises:
        HTTPException: 400 for missing recipient, self-friending or duplicates,
            401 without a valid token, 404 for an unknown recipient
    """
    recipient = _require_string(request.recipient if request else None, "Missing recipient")
    try:
        friend_request = await send_friend_request(recipient, db, current_user, publisher)
    except SQLAlchemyError as e:
        raise await _store_unavailable(db, "send_friend_request", e)
    return FriendRequestEnvelope(request=FriendRequestResponse.model_validate(friend_request))

@router.post("/respond", response_model=OkResponse)
async def respond_to_friend_request_api(
    request: Optional[FriendRequestRespond] = None,
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user),
    publisher: NotificationPublisher = Depends(get_notification_publisher)
):
    """
    Accept, reject or cancel a friend request.

    Raises:
        HTTPException: 400 for missing fields, unknown actions or a request
            that is no longer pending, 401 without a valid token, 403 for the
            wrong actor, 404 for an unknown request
    """
    request_id = _require_string(request.request_id if request else None, "Missing requestId")
    action = _require_string(request.action if request else None, "Missing action")
    try:
        await respond_to_friend_request(request_id, action, db, current_user, publisher)
    except SQLAlchemyError as e:
        raise await _store_unavailable(db, "respond_to_friend_request", e)
    return OkResponse()

@router.post("/delete", response_model=OkResponse)
async def remove_friend_api(
    request: Optional[FriendRemove] = None,
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user)
):
    """
    Remove a friend. Succeeds whether or not the friendship existed.
    """
    friend_id = _require_string(request.friend_id if request else None, "Missing friendId")
    try:
        await remove_friend(friend_id, db, current_user)
    except SQLAlchemyError as e:
        raise await _store_unavailable(db, "remove_friend", e)
    return OkResponse()

@router.get("/list", response_model=FriendListEnvelope)
async def get_friends_api(
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user)
):
    """Get the current user's friends, sorted by display name."""
    try:
        friends = await get_friends(db, current_user)
    except SQLAlchemyError as e:
        raise await _store_unavailable(db, "get_friends", e)
    return FriendListEnvelope(friends=[UserResponse.model_validate(f) for f in friends])

@router.get("/requests", response_model=FriendRequestListEnvelope)
async def get_friend_requests_api(
    direction: RequestDirection = RequestDirection.ALL,
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user)
):
    """
    Retrieve pending friend requests for the current user.

    Args:
        direction: incoming, outgoing or all
    """
    try:
        requests = await get_friend_requests(direction, db, current_user)
    except SQLAlchemyError as e:
        raise await _store_unavailable(db, "get_friend_requests", e)
    return FriendRequestListEnvelope(
        requests=[FriendRequestResponse.model_validate(r) for r in requests]
    )

@router.get("/status/{user_id}", response_model=FriendStatusEnvelope)
async def get_friend_status_api(
    user_id: str,
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user)
):
    """Get the friendship status between the current user and another user."""
    try:
        status = await get_friend_status(user_id, db, current_user)
    except SQLAlchemyError as e:
        raise await _store_unavailable(db, "get_friend_status", e)
    return FriendStatusEnvelope(status=status)

@router.post("/top8", response_model=OkResponse)
async def set_top8_api(
    request: Optional[Top8Update] = None,
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user)
):
    """Replace the current user's Top 8 friends."""
    try:
        await set_top8(request.top8 if request else None, db, current_user)
    except SQLAlchemyError as e:
        raise await _store_unavailable(db, "set_top8", e)
    return OkResponse()
