from __future__ import annotations

from fastapi import Depends, HTTPException, status

from jobboard.dependencies.auth import get_current_user
from jobboard.models.user import User, UserRole


def require_admin_user(current_user: User = Depends(get_current_user)) -> User:
    """
    Ensure the authenticated user has admin privileges.
    """
    if current_user.role != UserRole.ADMIN.value:
        raise HTTPException(status.HTTP_403_FORBIDDEN, detail="Admin access required")
    return current_user
