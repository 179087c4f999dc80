import logging
from typing import Optional
from fastapi import APIRouter, Depends
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from myspace_api.init_db import get_db
from myspace_api.common import get_current_user
from myspace_api.exceptions import DependencyError
from myspace_api.schemas.users import UserCreate, UserEnvelope, UserResponse
from myspace_api.services.user_service import create_profile, get_me

logger = logging.getLogger(__name__)

# Initialize router with prefix and tags for API documentation
router = APIRouter(prefix="/users", tags=["users"])

@router.post("/profile", response_model=UserEnvelope)
async def create_profile_api(
    request: Optional[UserCreate] = None,
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user)
):
    """
    Create the profile for the authenticated user.

    Raises:
        HTTPException: 400 for a missing username, an existing profile or a
            taken username
    """
    try:
        user = await create_profile(request or UserCreate(), db, current_user)
    except SQLAlchemyError as e:
        logger.error(f"Database error creating profile: {e}")
        await db.rollback()
        raise DependencyError()
    return UserEnvelope(user=UserResponse.model_validate(user))

@router.get("/me", response_model=UserEnvelope)
async def get_me_api(
    db: AsyncSession = Depends(get_db),
    current_user: dict = Depends(get_current_user)
):
    """Get the current user's profile."""
    try:
        user = await get_me(db, current_user)
    except SQLAlchemyError as e:
        logger.error(f"Database error loading profile: {e}")
        raise DependencyError()
    return UserEnvelope(user=UserResponse.model_validate(user))
