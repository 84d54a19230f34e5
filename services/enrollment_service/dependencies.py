"""
Enrollment Service Dependencies

FastAPI dependencies for the admin gate and the service singletons.
"""

from dataclasses import dataclass
from functools import lru_cache
from uuid import UUID

import structlog
from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt

from services.enrollment_service.assignment_service import AssignmentService
from services.enrollment_service.enrollment_service import EnrollmentService
from services.enrollment_service.notifications import NotificationDispatcher, build_notifier
from services.enrollment_service.store import SqlAlchemyStore
from shared.concurrency.locking import get_lock_manager
from shared.config import get_settings
from shared.database import get_session_factory
from shared.domain.exceptions import AuthenticationError, AuthorizationError

logger = structlog.get_logger(__name__)

# Bearer token scheme (errors are raised as domain exceptions instead)
security = HTTPBearer(auto_error=False)


@dataclass(frozen=True)
class AdminCaller:
    """Authenticated admin making the request."""

    user_id: UUID
    roles: tuple[str, ...]


def decode_admin_token(token: str) -> AdminCaller:
    """
    Validate a bearer token and require the admin role.

    Raises:
        AuthenticationError: Missing, malformed or expired token
        AuthorizationError: Token without the admin role
    """
    settings = get_settings()
    try:
        payload = jwt.decode(token, settings.secret_key, algorithms=[settings.jwt_algorithm])
    except JWTError as e:
        logger.warning("Token validation failed", error=str(e))
        raise AuthenticationError("Could not validate credentials", cause=e)

    subject = payload.get("sub")
    if not subject:
        raise AuthenticationError("Token missing subject (user ID)")
    try:
        user_id = UUID(subject)
    except ValueError as e:
        raise AuthenticationError("Token subject is not a valid user ID", cause=e)

    roles = payload.get("roles") or []
    if isinstance(roles, str):
        roles = [roles]
    user_type = payload.get("user_type")
    if user_type:
        roles = [*roles, user_type]

    if settings.admin_role not in roles:
        raise AuthorizationError(
            "Admin privileges required", resource="enrollment", action="administer"
        )

    return AdminCaller(user_id=user_id, roles=tuple(roles))


async def require_admin(
    credentials: HTTPAuthorizationCredentials | None = Depends(security),
) -> AdminCaller:
    """Dependency that yields the authenticated admin."""
    if credentials is None:
        raise AuthenticationError("Authorization header required")
    return decode_admin_token(credentials.credentials)


@lru_cache
def get_assignment_service() -> AssignmentService:
    return AssignmentService(
        store=SqlAlchemyStore(get_session_factory()),
        locks=get_lock_manager(),
        dispatcher=get_dispatcher(),
    )


@lru_cache
def get_enrollment_service() -> EnrollmentService:
    return EnrollmentService(
        store=SqlAlchemyStore(get_session_factory()),
        locks=get_lock_manager(),
        dispatcher=get_dispatcher(),
    )


@lru_cache
def get_dispatcher() -> NotificationDispatcher:
    settings = get_settings()
    return NotificationDispatcher(build_notifier(settings), settings)
