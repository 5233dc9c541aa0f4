from collections.abc import Callable
from datetime import UTC, datetime

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy.orm import Session

from venue.core.security import decode_access_token
from venue.db.models.user import User, UserRole
from venue.db.session import get_db
from venue.services.notification_service import NotificationDispatcher, SmsQueueDispatcher

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/login")


def get_now() -> datetime:
    """Request clock; overridden in tests to pin the operating day."""
    return datetime.now(UTC)


def get_notifier() -> NotificationDispatcher:
    return SmsQueueDispatcher()


def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: Session = Depends(get_db),
) -> User:
    unauthorized_exc = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    try:
        payload = decode_access_token(token)
        user_id = int(payload.get("sub", ""))
    except (ValueError, TypeError):
        raise unauthorized_exc from None

    user = db.get(User, user_id)
    if not user or not user.is_active:
        raise unauthorized_exc
    return user


def require_roles(*roles: UserRole | str) -> Callable[[User], User]:
    allowed_roles = {role.value if isinstance(role, UserRole) else role for role in roles}

    def checker(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in allowed_roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Not enough permissions",
            )
        return current_user

    return checker


require_admin = require_roles(UserRole.ADMIN)
