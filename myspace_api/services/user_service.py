import logging
from typing import Iterable, List, Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from myspace_api.exceptions import ConflictError, InvalidArgumentError, NotFoundError
from myspace_api.models import User
from myspace_api.schemas.users import UserCreate

logger = logging.getLogger(__name__)

async def get_user_by_id(db: AsyncSession, user_id: str) -> Optional[User]:
    """
    Retrieve a user by their unique identifier.

    Args:
        db: AsyncSession - Database session for executing queries
        user_id: str - Unique identifier of the user

    Returns:
        Optional[User]: User object if found, None otherwise
    """
    result = await db.execute(select(User).where(User.id == user_id))
    return result.scalar_one_or_none()

async def get_users_by_ids(db: AsyncSession, user_ids: Iterable[str]) -> List[User]:
    ids = list(user_ids)
    if not ids:
        return []
    result = await db.execute(select(User).where(User.id.in_(ids)))
    return list(result.scalars().all())

async def create_profile(request: UserCreate, db: AsyncSession, current_user: dict) -> User:
    """
    Create the profile row for the authenticated caller.

    Raises:
        InvalidArgumentError: If the username is missing or blank
        ConflictError: If the caller already has a profile or the username is taken
    """
    username = request.username.strip() if isinstance(request.username, str) else ""
    if not username:
        raise InvalidArgumentError("Missing username")
    for field in ("email", "display_name"):
        if getattr(request, field) is not None and not isinstance(getattr(request, field), str):
            raise InvalidArgumentError(f"Invalid {field}")

    if await get_user_by_id(db, current_user['uid']) is not None:
        raise ConflictError("Profile already exists")

    user = User(
        id=current_user['uid'],
        username=username,
        email=request.email or current_user.get('email'),
        display_name=request.display_name or username,
        top8=[],
    )
    db.add(user)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError("Username or email already taken")
    await db.refresh(user)

    logger.info(f"Created profile {user.id} ({user.username})")
    return user

async def get_me(db: AsyncSession, current_user: dict) -> User:
    user = await get_user_by_id(db, current_user['uid'])
    if user is None:
        raise NotFoundError("User not found")
    return user
