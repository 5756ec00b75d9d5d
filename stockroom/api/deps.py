from typing import Annotated, Optional
import uuid
import logging

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession

from stockroom.database import get_db
from stockroom.core.enum_utils import status_in
from stockroom.core.exceptions import ForbiddenError, UnauthorizedError
from stockroom.core.security import verify_access_token
from stockroom.models.user import User, UserRole
from stockroom.services.notification_service import NotificationService


logger = logging.getLogger(__name__)

# HTTP Bearer security scheme; missing credentials are reported as {"error": ...}
security = HTTPBearer(auto_error=False)


async def get_current_user(
    credentials: Annotated[Optional[HTTPAuthorizationCredentials], Depends(security)],
    db: Annotated[AsyncSession, Depends(get_db)],
) -> User:
    """
    Dependency to get the current authenticated user.
    Validates the JWT token and returns the user object.
    """
    if credentials is None:
        raise UnauthorizedError()

    user_id = verify_access_token(credentials.credentials)
    if user_id is None:
        logger.warning("Token verification failed - invalid or expired token")
        raise UnauthorizedError()

    try:
        user_uuid = uuid.UUID(user_id)
    except ValueError:
        logger.warning(f"Invalid user_id in token: {user_id}")
        raise UnauthorizedError()

    user = await db.get(User, user_uuid)
    if user is None:
        logger.warning(f"User {user_id} not found")
        raise UnauthorizedError()

    if not user.is_active:
        raise ForbiddenError("User account is deactivated")

    return user


def require_roles(*roles: UserRole):
    """
    Dependency factory to require one of the given roles.

    Usage:
        @router.post("/{id}/approve", dependencies=[Depends(require_roles(UserRole.ADMIN, UserRole.MANAGER))])
        async def approve(...):
            ...
    """
    async def role_checker(user: Annotated[User, Depends(get_current_user)]) -> User:
        if not status_in(user.role, *roles):
            raise ForbiddenError()
        return user

    return role_checker


def get_notifications(db: Annotated[AsyncSession, Depends(get_db)]) -> NotificationService:
    """Per-request notification outbox, flushed after the unit of work commits."""
    return NotificationService(db)


# Type aliases for cleaner dependency injection
CurrentUser = Annotated[User, Depends(get_current_user)]
DB = Annotated[AsyncSession, Depends(get_db)]
Notifications = Annotated[NotificationService, Depends(get_notifications)]
Supervisor = Annotated[User, Depends(require_roles(UserRole.ADMIN, UserRole.MANAGER))]
