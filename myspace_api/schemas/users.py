from pydantic import BaseModel, ConfigDict
from typing import Any, Optional, List
from datetime import datetime

class UserCreate(BaseModel):
    username: Optional[Any] = None
    email: Optional[Any] = None
    display_name: Optional[Any] = None

class UserResponse(BaseModel):
    id: str
    username: str
    email: Optional[str] = None
    display_name: Optional[str] = None
    bio: Optional[str] = None
    profile_picture: Optional[str] = None
    top8: List[str] = []
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)

class UserEnvelope(BaseModel):
    ok: bool = True
    user: UserResponse
