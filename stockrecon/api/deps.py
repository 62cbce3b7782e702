"""
API Dependencies
Common dependencies for API endpoints
"""

from typing import Optional
from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials

from stockrecon.core.database import get_db  # noqa: F401
from stockrecon.core.security import Actor, decode_access_token

# Security scheme
security = HTTPBearer(auto_error=False)


async def get_current_actor(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
) -> Actor:
    """
    Resolve the authenticated actor and tenant from the bearer token.

    The tenant always comes from the token, never from a request body.
    """
    credentials_exception = HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )
    if credentials is None:
        raise credentials_exception

    payload = decode_access_token(credentials.credentials)
    if not payload:
        raise credentials_exception

    return Actor(
        actor_id=str(payload["sub"]),
        tenant_id=str(payload["tenant_id"]),
        username=payload.get("username"),
    )
