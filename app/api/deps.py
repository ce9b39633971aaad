"""Shared dependencies: JWT auth and the service singletons injected into routes."""
from datetime import datetime, timedelta
from typing import Annotated, Optional

import bcrypt
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from app.config import settings
from app.models.user import User
from app.services.attendance import BulkAttendanceService
from app.services.cache import TTLCache, invalidate_group
from app.services.notifier import NotificationDispatcher
from app.services.roster import RosterService, safe_object_id
from app.services.store import AttendanceStore, BeanieAttendanceStore

security = HTTPBearer(auto_error=False)


def verify_password(plain: str, hashed: str) -> bool:
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # not a bcrypt hash (placeholder accounts)
        return False


def get_password_hash(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def create_access_token(subject: str, name: str) -> str:
    expire = datetime.utcnow() + timedelta(minutes=settings.jwt_access_token_expire_minutes)
    to_encode = {"sub": subject, "name": name, "exp": expire, "type": "access"}
    return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def create_refresh_token(subject: str) -> str:
    expire = datetime.utcnow() + timedelta(days=settings.jwt_refresh_token_expire_days)
    to_encode = {"sub": subject, "exp": expire, "type": "refresh"}
    return jwt.encode(to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm)


def decode_token(token: str, token_type: str = "access") -> dict:
    """Verify a JWT and return its claims; raises 401 on any problem."""
    try:
        payload = jwt.decode(token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError:
        raise HTTPException(status_code=401, detail="Invalid or expired token")
    if payload.get("type") != token_type:
        raise HTTPException(status_code=401, detail="Invalid token type")
    if not payload.get("sub"):
        raise HTTPException(status_code=401, detail="Invalid token")
    return payload


async def get_current_user(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
) -> User:
    if not credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Not authenticated",
            headers={"WWW-Authenticate": "Bearer"},
        )
    payload = decode_token(credentials.credentials)
    user_id = safe_object_id(payload["sub"])
    if not user_id:
        raise HTTPException(status_code=401, detail="Invalid token")
    user = await User.get(user_id)
    if not user or user.is_placeholder:
        raise HTTPException(status_code=401, detail="User not found")
    return user


# Process-wide collaborators; tests swap them through app.dependency_overrides.
_dispatcher = NotificationDispatcher(queue_size=settings.notification_queue_size)
_cache = TTLCache(settings.cache_ttl_seconds)
_dispatcher.add_listener(lambda group_id, _event: invalidate_group(_cache, group_id))
_store = BeanieAttendanceStore()
_bulk_service = BulkAttendanceService(_store, _dispatcher)
_roster = RosterService(_dispatcher)


def get_dispatcher() -> NotificationDispatcher:
    return _dispatcher


def get_cache() -> TTLCache:
    return _cache


def get_attendance_store() -> AttendanceStore:
    return _store


def get_bulk_service() -> BulkAttendanceService:
    return _bulk_service


def get_roster() -> RosterService:
    return _roster


# Type aliases for route injection
CurrentUser = Annotated[User, Depends(get_current_user)]
Dispatcher = Annotated[NotificationDispatcher, Depends(get_dispatcher)]
Cache = Annotated[TTLCache, Depends(get_cache)]
Store = Annotated[AttendanceStore, Depends(get_attendance_store)]
BulkService = Annotated[BulkAttendanceService, Depends(get_bulk_service)]
Roster = Annotated[RosterService, Depends(get_roster)]
