"""
API dependencies for dependency injection
"""

from typing import Callable
from uuid import UUID

from fastapi import Depends, Request
from sqlalchemy.orm import Session

from app.config import settings
from app.exceptions import ForbiddenError, UnauthorizedError
from domain.enums import UserRole
from domain.models import get_db_session
from repositories import UserRepository
from services.access_policy import Caller


def get_current_caller(request: Request, db: Session = Depends(get_db_session)) -> Caller:
    """
    Resolve the caller from the identity header.

    Authentication happens upstream; this service only trusts the user id it
    is handed and looks up that user's role and school.

    Usage:
        @router.get("/example")
        def example(caller: Caller = Depends(get_current_caller)):
            ...
    """
    raw = request.headers.get(settings.auth_header)
    if not raw:
        raise UnauthorizedError(f"Missing {settings.auth_header} header")
    try:
        user_id = UUID(raw.strip())
    except ValueError:
        raise UnauthorizedError("Invalid user id")

    user = UserRepository(db).get_by_id(user_id)
    if not user:
        raise UnauthorizedError("Unknown user")
    return Caller.from_user(user)


def require_roles(*roles: UserRole) -> Callable[..., Caller]:
    """Dependency allowing only the given roles through"""
    allowed = frozenset(roles)

    def checker(caller: Caller = Depends(get_current_caller)) -> Caller:
        if caller.role not in allowed:
            raise ForbiddenError(
                "Insufficient role for this action",
                details={"required": sorted(r.value for r in allowed)},
            )
        return caller

    return checker
