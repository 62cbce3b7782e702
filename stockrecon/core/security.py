"""
Security utilities
Bearer token handling and audit trail helpers at the tenant/auth boundary
"""
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional, Dict, Any
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from stockrecon.core.config import settings
from stockrecon.core.logging import get_logger

logger = get_logger("security")


@dataclass(frozen=True)
class Actor:
    """Authenticated caller supplied by the auth boundary"""
    actor_id: str
    tenant_id: str
    username: Optional[str] = None


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create JWT access token"""
    to_encode = data.copy()
    if expires_delta:
        expire = datetime.now(timezone.utc) + expires_delta
    else:
        expire = datetime.now(timezone.utc) + timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)

    to_encode.update({"exp": expire})
    return jwt.encode(to_encode, settings.SECRET_KEY, algorithm=settings.ALGORITHM)


def decode_access_token(token: str) -> Optional[Dict[str, Any]]:
    """
    Verify a JWT access token

    Returns the payload when the token is valid and carries both an actor
    (``sub``) and a ``tenant_id``, otherwise None.
    """
    try:
        payload = jwt.decode(token, settings.SECRET_KEY, algorithms=[settings.ALGORITHM])
    except JWTError as e:
        logger.warning(f"Rejected access token: {e}")
        return None

    if not payload.get("sub") or not payload.get("tenant_id"):
        logger.warning("Rejected access token without actor or tenant")
        return None
    return payload


def log_user_action(
    db: Session,
    actor,
    action: str,
    table: Optional[str] = None,
    key: Optional[str] = None,
    old_values: Optional[Dict] = None,
    new_values: Optional[Dict] = None,
    module: Optional[str] = None
) -> None:
    """
    Log user action to audit trail

    The row joins the caller's transaction; committing is left to the caller
    so an aborted workflow leaves no audit entry behind.
    """
    from stockrecon.models.audit import AuditLog

    audit_entry = AuditLog(
        tenant_id=actor.tenant_id,
        audit_user=str(actor.actor_id),
        audit_action=action,
        audit_table=table,
        audit_key=key,
        audit_old_values=old_values,
        audit_new_values=new_values,
        audit_module=module
    )
    db.add(audit_entry)
