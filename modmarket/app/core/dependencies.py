"""
Request dependencies for authenticated routes.
"""

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from sqlalchemy.ext.asyncio import AsyncSession
from modmarket.app.core.jwt import read_access_token
from modmarket.app.db.session import get_db
from modmarket.app.models.user import User

bearer_scheme = HTTPBearer()


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail=detail,
        headers={"WWW-Authenticate": "Bearer"},
    )


async def get_current_user(
    credentials: HTTPAuthorizationCredentials = Depends(bearer_scheme),
    db: AsyncSession = Depends(get_db)
) -> dict:
    """
    Resolve the bearer token to its claims (`sub`, `user_id`, `role`).
    
    The account is looked up on every request so a deactivated account is
    locked out before its token expires.
    
    Raises:
        HTTPException: 401 for a bad token or unknown account, 403 for an inactive one
    """
    claims = read_access_token(credentials.credentials)
    if claims is None:
        raise _unauthorized("Could not validate credentials")
    
    account = await db.get(User, claims["user_id"])
    if account is None:
        raise _unauthorized("User not found")
    if not account.is_active:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="User account is inactive")
    
    return claims
