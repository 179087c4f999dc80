import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, Depends, BackgroundTasks
from fastapi.middleware.cors import CORSMiddleware
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from firebase_admin import initialize_app, auth
import firebase_admin

from myspace_api.config import settings
from myspace_api.database import AsyncSessionLocal
from myspace_api.exceptions import UnauthenticatedError
from myspace_api.services.notification_service import NotificationPublisher

logging.basicConfig(level=settings.log_level)
logger = logging.getLogger(__name__)

firebase_app = None

@asynccontextmanager
async def lifespan(app: FastAPI):
    global firebase_app
    try:
        if settings.environment == "production":
            from firebase_admin import credentials as fb_credentials
            firebase_app = initialize_app(
                credential=fb_credentials.ApplicationDefault(),
                options={'projectId': settings.firebase_project_id}
            )
        else:
            # Uses FIREBASE_AUTH_EMULATOR_HOST when set
            firebase_app = initialize_app(options={'projectId': settings.firebase_project_id or 'myspace-dev'})
        logger.info(f"Firebase initialized ({settings.environment})")
    except Exception:
        logger.exception("Error initializing Firebase")
        raise

    yield

    if firebase_app:
        firebase_admin.delete_app(firebase_app)
        firebase_app = None

app = FastAPI(title="MySpace API", lifespan=lifespan)
security = HTTPBearer(auto_error=False)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

def resolve_identity(token: Optional[str]) -> dict:
    """
    Resolve a bearer token to the caller's identity.

    Returns:
        dict: The decoded token; ``uid`` is the caller's user id

    Raises:
        UnauthenticatedError: If the token is missing or rejected
    """
    if not token:
        raise UnauthenticatedError("Missing token")
    try:
        decoded_token = auth.verify_id_token(token)
    except Exception as e:
        logger.warning(f"Rejected ID token: {e}")
        raise UnauthenticatedError("Invalid token")
    if not decoded_token.get("uid"):
        raise UnauthenticatedError("Invalid token")
    return decoded_token

# Dependency to get current user from token
async def get_current_user(credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)) -> dict:
    return resolve_identity(credentials.credentials if credentials else None)

def get_notification_publisher(background_tasks: BackgroundTasks) -> NotificationPublisher:
    return NotificationPublisher(background_tasks, AsyncSessionLocal)
