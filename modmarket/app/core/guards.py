"""
Role guards for admin and developer routes.
"""

from typing import Iterable
from fastapi import Depends, HTTPException, status
from modmarket.app.models.enums import UserRole
from modmarket.app.core.dependencies import get_current_user


def require_role(allowed_roles: Iterable[UserRole]):
    """
    Build a dependency that lets only `allowed_roles` through.
    
    Usage:
        @router.post("/admin/users/{user_id}/deposit")
        async def deposit(admin: dict = Depends(require_role([UserRole.ADMIN]))):
            ...
    
    Raises:
        HTTPException 403 if the token's role is missing, unknown or not allowed
    """
    allowed = frozenset(allowed_roles)
    
    async def role_checker(current_user: dict = Depends(get_current_user)) -> dict:
        try:
            role = UserRole(current_user.get("role"))
        except ValueError:
            role = None
        
        if role not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Access denied. Required role: {', '.join(sorted(r.value for r in allowed))}"
            )
        return current_user
    
    return role_checker


require_admin = require_role([UserRole.ADMIN])
