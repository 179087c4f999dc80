import logging
import uuid
from typing import List, Optional, Set, Tuple

from sqlalchemy import select, and_, or_, delete, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from myspace_api.config import settings
from myspace_api.exceptions import ConflictError, ForbiddenError, InvalidArgumentError, NotFoundError
from myspace_api.models import User, FriendRequest, Friend
from myspace_api.models.user import utcnow
from myspace_api.schemas.friends import (
    ACTION_TARGET_STATUS,
    FriendAction,
    FriendRequestStatus,
    FriendStatusResponse,
    RequestDirection,
)
from myspace_api.schemas.notifications import NotificationCreate, NotificationType
from myspace_api.services.notification_service import NotificationPublisher
from myspace_api.services.user_service import get_user_by_id, get_users_by_ids

# Configure logging for this module
logger = logging.getLogger(__name__)

def canonical_pair(user_id: str, other_id: str) -> Tuple[str, str]:
    """Order an unordered pair lowest-identifier-first."""
    return (user_id, other_id) if user_id < other_id else (other_id, user_id)

def _friend_pair_clause(user_id: str, other_id: str):
    # Reads match either column order so they never depend on how the edge was written
    return or_(
        and_(Friend.user_a == user_id, Friend.user_b == other_id),
        and_(Friend.user_a == other_id, Friend.user_b == user_id),
    )

async def are_friends(db: AsyncSession, user1_id: str, user2_id: str) -> bool:
    """
    Check if two users are friends.

    Args:
        db: AsyncSession for database operations
        user1_id: ID of first user
        user2_id: ID of second user

    Returns:
        bool: True if an edge exists between the two users
    """
    result = await db.execute(select(Friend.id).where(_friend_pair_clause(user1_id, user2_id)))
    return result.first() is not None

async def get_pending_request(db: AsyncSession, user1_id: str, user2_id: str) -> Optional[FriendRequest]:
    """Return the pending request between two users in either direction, if any."""
    low, high = canonical_pair(user1_id, user2_id)
    result = await db.execute(
        select(FriendRequest).where(
            FriendRequest.pair_low == low,
            FriendRequest.pair_high == high,
            FriendRequest.status == FriendRequestStatus.PENDING,
        )
    )
    return result.scalars().first()

async def materialize_friendship(db: AsyncSession, user_id: str, other_id: str) -> bool:
    """
    Write the friendship edge for a pair, at most once.

    The insert targets the canonical pair and skips rows that already exist,
    so repeated or concurrent calls leave exactly one edge and never raise.
    The caller owns the transaction.

    Returns:
        bool: True if a new edge was written, False if it already existed
    """
    user_a, user_b = canonical_pair(user_id, other_id)
    values = {
        "id": str(uuid.uuid4()),
        "user_a": user_a,
        "user_b": user_b,
        "created_at": utcnow(),
    }

    dialect = db.get_bind().dialect.name
    if dialect in ("postgresql", "sqlite"):
        insert = pg_insert if dialect == "postgresql" else sqlite_insert
        stmt = insert(Friend).values(**values).on_conflict_do_nothing(
            index_elements=[Friend.user_a, Friend.user_b]
        )
        result = await db.execute(stmt)
        created = result.rowcount == 1
    else:
        # No upsert construct for this backend; the unique constraint still guards the pair
        created = not await are_friends(db, user_a, user_b)
        if created:
            db.add(Friend(**values))
            await db.flush()

    if created:
        logger.info(f"Friendship materialized: {user_a} <-> {user_b}")
    else:
        logger.info(f"Friendship already exists: {user_a} <-> {user_b}")
    return created

async def send_friend_request(
    recipient: str, db: AsyncSession, current_user: dict, publisher: NotificationPublisher
) -> FriendRequest:
    """
    Send a friend request to another user.

    Args:
        recipient: ID of the user being asked
        db: AsyncSession for database operations
        current_user: Dictionary containing current user information
        publisher: Outbound queue for the recipient's notification

    Returns:
        FriendRequest: The created request, in the pending state

    Raises:
        InvalidArgumentError: If the caller asks themselves
        NotFoundError: If either user has no profile
        ConflictError: If the users are already friends or a request is pending
    """
    requester = current_user['uid']

    # Prevent self-friending
    if requester == recipient:
        raise InvalidArgumentError("Cannot friend yourself")

    if await get_user_by_id(db, recipient) is None:
        raise NotFoundError("User not found")
    if await get_user_by_id(db, requester) is None:
        raise NotFoundError("Create a profile before sending friend requests")

    if await are_friends(db, requester, recipient):
        raise ConflictError("Users are already friends")

    if await get_pending_request(db, requester, recipient) is not None:
        raise ConflictError("Friend request already exists")

    pair_low, pair_high = canonical_pair(requester, recipient)
    friend_request = FriendRequest(
        requester=requester,
        recipient=recipient,
        pair_low=pair_low,
        pair_high=pair_high,
        status=FriendRequestStatus.PENDING,
    )
    db.add(friend_request)
    try:
        await db.commit()
    except IntegrityError:
        # A concurrent request for the same pair won the pending-pair index
        await db.rollback()
        raise ConflictError("Friend request already exists")
    await db.refresh(friend_request)

    logger.info(f"Friend request {friend_request.id} sent: {requester} -> {recipient}")

    publisher.publish(NotificationCreate(
        user_id=recipient,
        actor=requester,
        type=NotificationType.FRIEND_REQUEST,
        payload={"requestId": friend_request.id},
    ))
    return friend_request

def _parse_action(action) -> FriendAction:
    try:
        return FriendAction(action)
    except ValueError:
        raise InvalidArgumentError("Unknown action")

async def respond_to_friend_request(
    request_id: str, action, db: AsyncSession, current_user: dict, publisher: NotificationPublisher
) -> FriendRequest:
    """
    Move a pending friend request into a terminal state.

    Only the recipient may accept or reject; only the requester may cancel.
    Accepting writes the friendship edge and the new status in one
    transaction.

    Args:
        request_id: ID of the friend request
        action: One of accept, reject or cancel
        db: AsyncSession for database operations
        current_user: Dictionary containing current user information
        publisher: Outbound queue for the requester's notification

    Returns:
        FriendRequest: The request in its new state

    Raises:
        InvalidArgumentError: If the action is unknown
        NotFoundError: If the request does not exist
        ForbiddenError: If the caller may not perform this action
        ConflictError: If the request is no longer pending
    """
    action = _parse_action(action)
    uid = current_user['uid']

    result = await db.execute(
        select(FriendRequest)
        .where(FriendRequest.id == request_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    friend_request = result.scalar_one_or_none()
    if friend_request is None:
        raise NotFoundError("Request not found")

    if action == FriendAction.CANCEL and friend_request.requester != uid:
        raise ForbiddenError("Only the sender can cancel the request")
    if action in (FriendAction.ACCEPT, FriendAction.REJECT) and friend_request.recipient != uid:
        raise ForbiddenError("Only the recipient can accept or reject the request")

    if friend_request.status.is_terminal:
        raise ConflictError(f"Friend request is already {friend_request.status.value}")

    target = ACTION_TARGET_STATUS[action]
    try:
        if action == FriendAction.ACCEPT:
            await materialize_friendship(db, friend_request.requester, friend_request.recipient)

        # Only a still-pending row may move, so a concurrent responder loses cleanly
        updated = await db.execute(
            update(FriendRequest)
            .where(FriendRequest.id == request_id, FriendRequest.status == FriendRequestStatus.PENDING)
            .values(status=target, updated_at=utcnow())
            .execution_options(synchronize_session=False)
        )
        if updated.rowcount != 1:
            await db.rollback()
            raise ConflictError("Friend request is no longer pending")

        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("Friend request is no longer pending")
    await db.refresh(friend_request)

    logger.info(f"Friend request {request_id} {target.value} by {uid}")

    if action == FriendAction.ACCEPT:
        publisher.publish(NotificationCreate(
            user_id=friend_request.requester,
            actor=friend_request.recipient,
            type=NotificationType.FRIEND_ACCEPT,
            payload={"requestId": friend_request.id},
        ))
    elif action == FriendAction.REJECT:
        publisher.publish(NotificationCreate(
            user_id=friend_request.requester,
            actor=friend_request.recipient,
            type=NotificationType.FRIEND_REJECT,
            payload={"requestId": friend_request.id},
        ))

    return friend_request

async def remove_friend(friend_id: str, db: AsyncSession, current_user: dict) -> bool:
    """
    Remove the friendship between the current user and another user.

    Removing an edge that does not exist is a successful no-op. Each user is
    also dropped from the other's Top 8.

    Returns:
        bool: True if an edge was deleted
    """
    uid = current_user['uid']
    user_a, user_b = canonical_pair(uid, friend_id)

    result = await db.execute(
        delete(Friend).where(Friend.user_a == user_a, Friend.user_b == user_b)
    )
    removed = result.rowcount > 0

    if removed:
        for owner_id, other_id in ((uid, friend_id), (friend_id, uid)):
            owner = await get_user_by_id(db, owner_id)
            if owner is not None and other_id in (owner.top8 or []):
                owner.top8 = [i for i in owner.top8 if i != other_id]

    await db.commit()

    if removed:
        logger.info(f"Friendship removed: {uid} -x- {friend_id}")
    return removed

async def get_friend_ids(db: AsyncSession, user_id: str) -> Set[str]:
    """Return the ids of everyone sharing an edge with ``user_id``."""
    result = await db.execute(
        select(Friend.user_a, Friend.user_b).where(
            or_(Friend.user_a == user_id, Friend.user_b == user_id)
        )
    )
    return {user_b if user_a == user_id else user_a for user_a, user_b in result.all()}

async def get_friends(db: AsyncSession, current_user: dict) -> List[User]:
    """
    Get the profiles of all friends of the current user.

    Returns:
        List[User]: Friends sorted by display name, then username
    """
    friend_ids = await get_friend_ids(db, current_user['uid'])
    friends = await get_users_by_ids(db, friend_ids)
    return sorted(friends, key=lambda u: ((u.display_name or u.username).lower(), u.username))

async def get_friend_requests(
    direction: RequestDirection, db: AsyncSession, current_user: dict
) -> List[FriendRequest]:
    """
    Retrieve the current user's pending friend requests.

    Args:
        direction: INCOMING (caller is recipient), OUTGOING (caller is requester) or ALL
        db: AsyncSession for database operations
        current_user: Dictionary containing current user information

    Returns:
        List[FriendRequest]: Pending requests, newest first
    """
    uid = current_user['uid']
    if direction == RequestDirection.INCOMING:
        user_condition = FriendRequest.recipient == uid
    elif direction == RequestDirection.OUTGOING:
        user_condition = FriendRequest.requester == uid
    else:
        user_condition = or_(FriendRequest.recipient == uid, FriendRequest.requester == uid)

    result = await db.execute(
        select(FriendRequest)
        .where(user_condition, FriendRequest.status == FriendRequestStatus.PENDING)
        .order_by(FriendRequest.created_at.desc())
    )
    return list(result.scalars().all())

async def get_friend_status(user_id: str, db: AsyncSession, current_user: dict) -> FriendStatusResponse:
    """
    Get the relationship between the current user and another user.

    Returns:
        FriendStatusResponse: Friendship flag plus any pending request and its direction
    """
    uid = current_user['uid']
    is_friend = await are_friends(db, uid, user_id)
    pending = await get_pending_request(db, uid, user_id)

    direction = None
    if pending is not None:
        direction = RequestDirection.OUTGOING if pending.requester == uid else RequestDirection.INCOMING

    return FriendStatusResponse(
        is_friend=is_friend,
        pending_request_id=pending.id if pending else None,
        pending_request_direction=direction,
    )

async def set_top8(top8, db: AsyncSession, current_user: dict) -> List[str]:
    """
    Replace the current user's Top 8 friends.

    Raises:
        InvalidArgumentError: If the list is too long, has duplicates or
            names someone who is not a friend
        NotFoundError: If the caller has no profile
    """
    limit = settings.top_friends_limit
    if not isinstance(top8, list) or len(top8) > limit or not all(isinstance(i, str) for i in top8):
        raise InvalidArgumentError(f"top8 must be array up to {limit} items")
    if len(set(top8)) != len(top8):
        raise InvalidArgumentError("top8 must not contain duplicates")

    user = await get_user_by_id(db, current_user['uid'])
    if user is None:
        raise NotFoundError("User not found")

    strangers = set(top8) - await get_friend_ids(db, user.id)
    if strangers:
        raise InvalidArgumentError("top8 may only contain friends")

    user.top8 = list(top8)
    await db.commit()

    logger.info(f"Top 8 updated for {user.id}")
    return user.top8
