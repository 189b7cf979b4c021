"""JWT authentication and the permission-based authorization gate."""

from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import JWTError, jwt
from sqlalchemy.orm import Session

from access_engine.core.config import settings
from access_engine.core.exceptions import forbidden, unauthorized
from access_engine.db.session import get_db
from access_engine.services.authorization_service import AuthorizationService
from access_engine.services.cache_service import cache_service
from access_engine.services.resolver import permission_key

# JWT bearer scheme
security_scheme = HTTPBearer(auto_error=False)


def create_access_token(data: dict, expires_delta: Optional[timedelta] = None) -> str:
    """Create a JWT access token."""
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.JWT_EXPIRY_MINUTES)
    )
    to_encode.update({"exp": expire, "type": "access"})
    return jwt.encode(to_encode, settings.JWT_SECRET, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> dict:
    """Decode and validate a JWT token."""
    try:
        return jwt.decode(token, settings.JWT_SECRET, algorithms=[settings.JWT_ALGORITHM])
    except JWTError:
        raise unauthorized("Invalid or expired token")


async def get_current_user_id(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security_scheme),
) -> str:
    """Extract user_id from the JWT Bearer token."""
    if credentials is None:
        raise unauthorized()
    payload = decode_token(credentials.credentials)
    user_id = payload.get("sub")
    if user_id is None:
        raise unauthorized("Invalid token payload")
    return str(user_id)


async def get_current_active_user_id(
    user_id: str = Depends(get_current_user_id),
    db: Session = Depends(get_db),
) -> str:
    """The caller's user id, provided the account exists and is active."""
    user = AuthorizationService(db).get_user(user_id)
    if user is None:
        raise unauthorized("User not found")
    if not user.is_active:
        raise forbidden("Account has been deactivated")
    return user_id


class RequirePermission:
    """Dependency that checks the caller holds ``resource:action``.

    Returns the caller's user id so routes can record who acted.
    """

    def __init__(self, resource: str, action: str):
        self.resource = resource
        self.action = action

    async def __call__(
        self,
        user_id: str = Depends(get_current_active_user_id),
        db: Session = Depends(get_db),
    ) -> str:
        auth = AuthorizationService(db, cache_service)
        if not auth.has_permission(user_id, self.resource, self.action):
            raise forbidden(f"Missing permission '{permission_key(self.resource, self.action)}'")
        return user_id


# Convenience dependencies
require_roles_read = RequirePermission("roles", "read")
require_roles_write = RequirePermission("roles", "write")
require_roles_delete = RequirePermission("roles", "delete")
require_users_read = RequirePermission("users", "read")
require_users_manage_roles = RequirePermission("users", "manage_roles")
require_users_manage_permissions = RequirePermission("users", "manage_permissions")
require_audit_read = RequirePermission("audit", "read")
