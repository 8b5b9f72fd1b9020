"""
Request identity and capability checks.

Authentication itself happens upstream (gateway or reverse proxy), which
forwards the authenticated user's id in the X-User-Id header. The routers
resolve that id to an active User and check its role before calling into the
lifecycle engine; the engine performs no authorization of its own.
"""
from typing import Optional

from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from maintenance_api.core.db import get_db
from maintenance_api.core.exceptions import PermissionDeniedError
from maintenance_api.models.catalog import User
from maintenance_api.models.enums import Role


def get_current_user(
    x_user_id: Optional[int] = Header(None, description="Authenticated user id set by the gateway."),
    db: Session = Depends(get_db),
) -> User:
    if x_user_id is None:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing X-User-Id header",
        )
    user = db.get(User, x_user_id)
    if user is None or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Could not validate user",
        )
    return user


def require_roles(*roles: Role):
    """
    Dependency factory for role-based access control.

    Usage:
        @router.delete("/{ticket_id}")
        def delete_ticket(ticket_id: int, current_user: User = Depends(require_roles(Role.ADMIN))):
            ...
    """
    allowed = set(roles)

    def role_checker(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in allowed:
            required = " or ".join(sorted(r.value for r in allowed))
            raise PermissionDeniedError(f"Insufficient permissions. Required role: {required}")
        return current_user

    return role_checker


staff_only = require_roles(Role.ADMIN, Role.TECHNICIAN)
admin_only = require_roles(Role.ADMIN)
