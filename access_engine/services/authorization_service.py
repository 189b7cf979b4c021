"""Authorization service: resolves what a user may do."""

import math
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from access_engine.core.config import settings
from access_engine.models.override import UserPermissionOverride, as_utc
from access_engine.models.role import Role
from access_engine.models.user import User
from access_engine.services.cache_service import CacheService
from access_engine.services.override_service import OverrideService
from access_engine.services.resolver import permission_key, resolve_permissions, sort_roles
from access_engine.services.user_role_service import UserRoleService
from access_engine.core.exceptions import ResourceNotFoundError, StorageError


class AuthorizationService:
    """Feeds a user's roles and active overrides to the resolver.

    With a ``cache`` the checks made through ``effective_permissions`` and
    ``has_permission`` read and fill it; without one every call resolves
    from storage.
    """

    def __init__(self, db: Session, cache: Optional[CacheService] = None):
        self.db = db
        self.cache = cache

    # ---- storage collaborators ----

    def get_user(self, user_id: str) -> Optional[User]:
        try:
            return self.db.get(User, user_id)
        except SQLAlchemyError as e:
            raise StorageError("Failed to load user") from e

    def get_roles_for_user(self, user_id: str) -> List[Role]:
        return UserRoleService(self.db).list_roles(user_id)

    def get_active_overrides_for_user(
        self, user_id: str, now: Optional[datetime] = None
    ) -> List[UserPermissionOverride]:
        return OverrideService(self.db).list_active(user_id, now)

    def get_user_role_count(self, role_id: str) -> int:
        return UserRoleService(self.db).count_for_role(role_id)

    # ---- exposed to the authorization gate ----

    def resolve_effective_permissions(
        self, user_id: str, now: Optional[datetime] = None
    ) -> frozenset:
        """Effective ``"resource:action"`` keys for ``user_id`` at ``now``.

        Unknown users simply resolve to the empty set.
        """
        permissions, _ = self._resolve(user_id, now or datetime.now(timezone.utc))
        return permissions

    def effective_permissions(self, user_id: str) -> frozenset:
        """Current effective set, going through the cache when there is one.

        A cached entry never outlives the first active override to expire.
        """
        if self.cache is None:
            return self.resolve_effective_permissions(user_id)
        cached = self.cache.get_permissions(user_id)
        if cached is not None:
            return cached

        now = datetime.now(timezone.utc)
        permissions, next_expiry = self._resolve(user_id, now)
        ttl = settings.PERMISSION_CACHE_TTL_SECONDS
        if next_expiry is not None:
            ttl = min(ttl, math.floor((next_expiry - now).total_seconds()))
        if ttl >= 1:
            self.cache.set_permissions(user_id, permissions, ttl)
        return permissions

    def has_permission(self, user_id: str, resource: str, action: str) -> bool:
        return permission_key(resource, action) in self.effective_permissions(user_id)

    def get_access_profile(self, user_id: str, now: Optional[datetime] = None) -> Dict[str, Any]:
        """Roles, active direct overrides and effective permissions of a user.

        Raises:
            ResourceNotFoundError: If the user does not exist.
        """
        user = self.get_user(user_id)
        if user is None:
            raise ResourceNotFoundError("User not found")

        now = now or datetime.now(timezone.utc)
        roles = sort_roles(self.get_roles_for_user(user_id))
        overrides = self.get_active_overrides_for_user(user_id, now)
        return {
            "user": user,
            "roles": roles,
            "overrides": overrides,
            "effective_permissions": sorted(resolve_permissions(roles, overrides)),
        }

    def _resolve(self, user_id: str, now: datetime) -> Tuple[frozenset, Optional[datetime]]:
        """Effective set plus the earliest expiry among the overrides used."""
        overrides = self.get_active_overrides_for_user(user_id, now)
        expiries = [as_utc(o.expires_at) for o in overrides if o.expires_at is not None]
        permissions = resolve_permissions(self.get_roles_for_user(user_id), overrides)
        return permissions, min(expiries, default=None)
