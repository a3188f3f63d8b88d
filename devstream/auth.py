import logging
import secrets
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Cookie, Depends, HTTPException, Response
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from passlib.context import CryptContext

from . import config
from .deps import get_storage
from .models import SessionData, User
from .storage import Storage

logger = logging.getLogger(__name__)

# Security
security = HTTPBearer(auto_error=False)
pwd_context = CryptContext(schemes=["pbkdf2_sha256"], deprecated="auto")

DEFAULT_ADMIN_EMAIL = "admin@devstream.com"
DEFAULT_ADMIN_PASSWORD = "admin123"


def hash_password(password: str) -> str:
    return pwd_context.hash(password)


def verify_password(password: str, password_hash: Optional[str]) -> bool:
    if not password_hash:
        return False
    return pwd_context.verify(password, password_hash)


async def start_session(storage: Storage, user: User, response: Response) -> str:
    token = secrets.token_urlsafe(32)
    expires_at = datetime.now(timezone.utc) + timedelta(days=config.SESSION_TTL_DAYS)
    await storage.create_session(SessionData(session_token=token, user_id=user.id, expires_at=expires_at))

    response.set_cookie(
        config.SESSION_COOKIE,
        token,
        max_age=config.SESSION_TTL_DAYS * 24 * 60 * 60,
        path="/",
        httponly=True,
        secure=config.COOKIE_SECURE,
        samesite="none" if config.COOKIE_SECURE else "lax",
    )
    return token


def clear_session_cookie(response: Response) -> None:
    response.delete_cookie(
        config.SESSION_COOKIE,
        path="/",
        secure=config.COOKIE_SECURE,
        samesite="none" if config.COOKIE_SECURE else "lax",
    )


async def _resolve_user(
    response: Response,
    storage: Storage,
    session_token: Optional[str],
    credentials: Optional[HTTPAuthorizationCredentials],
) -> Optional[User]:
    token = credentials.credentials if credentials else session_token
    if not token:
        return None

    # Check session in storage
    session = await storage.get_session(token)
    if not session or session.expires_at < datetime.now(timezone.utc):
        if session:
            await storage.delete_session(token)
        clear_session_cookie(response)
        raise HTTPException(status_code=401, detail="Session expired")

    user = await storage.get_user(session.user_id)
    if not user:
        raise HTTPException(status_code=404, detail="User not found")
    return user


# Authentication helpers
async def get_current_user(
    response: Response,
    storage: Storage = Depends(get_storage),
    session_token: Optional[str] = Cookie(None, alias=config.SESSION_COOKIE),
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> User:
    user = await _resolve_user(response, storage, session_token, credentials)
    if user is None:
        raise HTTPException(status_code=401, detail="Not authenticated")
    return user


async def get_optional_user(
    response: Response,
    storage: Storage = Depends(get_storage),
    session_token: Optional[str] = Cookie(None, alias=config.SESSION_COOKIE),
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security)
) -> Optional[User]:
    try:
        return await _resolve_user(response, storage, session_token, credentials)
    except HTTPException:
        # Stale credentials on a public endpoint read as anonymous
        return None


async def seed_default_admin(storage: Storage) -> None:
    if await storage.get_user_by_email(DEFAULT_ADMIN_EMAIL):
        return
    logger.info("Creating default admin user...")
    await storage.create_user(User(
        email=DEFAULT_ADMIN_EMAIL,
        username="admin",
        first_name="Admin",
        last_name="User",
        profile_image_url="https://api.dicebear.com/7.x/avataaars/svg?seed=admin",
        password_hash=hash_password(DEFAULT_ADMIN_PASSWORD),
    ))
    logger.info("Default admin user created successfully")
