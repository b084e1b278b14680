"""
Bearer token helpers.

Accounts sign in through the account service, which issues HS256 tokens
carrying `sub` (login), `user_id` and `role`. The marketplace only verifies
them; `issue_access_token` exists for tooling and tests.
"""

from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any
from jose import JWTError, jwt
from modmarket.app.core.config import settings

REQUIRED_CLAIMS = ("sub", "user_id", "role")


def issue_access_token(claims: Dict[str, Any], lifetime: Optional[timedelta] = None) -> str:
    """Sign `claims` with the shared secret, adding an `exp` claim."""
    lifetime = lifetime or timedelta(minutes=settings.access_token_expire_minutes)
    payload = {**claims, "exp": datetime.now(timezone.utc) + lifetime}
    return jwt.encode(payload, settings.secret_key, algorithm=settings.algorithm)


def read_access_token(token: str) -> Optional[Dict[str, Any]]:
    """
    Verify signature and expiry and return the claims.
    
    Returns None for any invalid token, including one missing a required claim.
    """
    try:
        claims = jwt.decode(token, settings.secret_key, algorithms=[settings.algorithm])
    except JWTError:
        return None
    if any(claims.get(name) in (None, "") for name in REQUIRED_CLAIMS):
        return None
    return claims
