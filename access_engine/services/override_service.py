"""Override service: per-user grant/deny exceptions to role permissions."""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Union

from sqlalchemy import or_
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from access_engine.models.override import OverrideType, UserPermissionOverride, as_utc
from access_engine.models.permission import Permission
from access_engine.models.user import User
from access_engine.core.exceptions import (
    ResourceNotFoundError,
    StorageError,
    ValidationError,
)

logger = logging.getLogger("access_engine")


def coerce_override_type(value: Union[OverrideType, str]) -> OverrideType:
    try:
        return OverrideType(value)
    except ValueError:
        raise ValidationError(f"Override type must be 'grant' or 'deny', got {value!r}")


class OverrideService:
    """Stores direct permission overrides.

    Each ``(user, permission)`` pair holds at most one override: setting a
    deny where a grant exists replaces the grant, and vice versa.
    """

    def __init__(self, db: Session):
        self.db = db

    def set_override(
        self,
        user_id: str,
        permission_id: str,
        override_type: Union[OverrideType, str],
        expires_at: Optional[datetime] = None,
        reason: Optional[str] = None,
        granted_by: Optional[str] = None,
    ) -> UserPermissionOverride:
        """Create or replace the override for ``(user_id, permission_id)``.

        Raises:
            ValidationError: If ``override_type`` is not grant or deny.
            ResourceNotFoundError: If the user or permission does not exist.
        """
        override_type = coerce_override_type(override_type)
        self._check_exists(user_id, [permission_id])
        try:
            override = self._upsert(user_id, permission_id, override_type, expires_at, reason, granted_by)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StorageError("Failed to set permission override") from e

        logger.info(
            "Set %s override on permission %s for user %s (expires %s)",
            override_type.value, permission_id, user_id, expires_at,
        )
        self.db.refresh(override)
        return override

    def assign_overrides(
        self,
        user_id: str,
        items: List[Dict[str, Any]],
        replace_existing: bool = False,
        granted_by: Optional[str] = None,
    ) -> List[UserPermissionOverride]:
        """Upsert several overrides at once.

        Each item carries ``permission_id`` and ``override_type`` and may carry
        ``expires_at`` and ``reason``. With ``replace_existing`` every other
        override of the user is removed in the same transaction.
        """
        parsed = [
            (
                item["permission_id"],
                coerce_override_type(item["override_type"]),
                item.get("expires_at"),
                item.get("reason"),
            )
            for item in items
        ]
        self._check_exists(user_id, [p[0] for p in parsed])
        try:
            if replace_existing:
                self.db.query(UserPermissionOverride).filter(
                    UserPermissionOverride.user_id == user_id
                ).delete(synchronize_session=False)
            for permission_id, override_type, expires_at, reason in parsed:
                self._upsert(user_id, permission_id, override_type, expires_at, reason, granted_by)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StorageError("Failed to assign permission overrides") from e

        logger.info("Assigned %d overrides to user %s", len(parsed), user_id)
        return self.list_for_user(user_id)

    def list_active(self, user_id: str, now: Optional[datetime] = None) -> List[UserPermissionOverride]:
        """Overrides with no expiry or an expiry after ``now``, in storage order."""
        now = as_utc(now) if now is not None else datetime.now(timezone.utc)
        try:
            return (
                self.db.query(UserPermissionOverride)
                .filter(
                    UserPermissionOverride.user_id == user_id,
                    or_(
                        UserPermissionOverride.expires_at.is_(None),
                        UserPermissionOverride.expires_at > now,
                    ),
                )
                .order_by(UserPermissionOverride.created_at)
                .all()
            )
        except SQLAlchemyError as e:
            raise StorageError("Failed to load user permissions") from e

    def list_for_user(self, user_id: str) -> List[UserPermissionOverride]:
        """Every override of the user, expired ones included."""
        try:
            return (
                self.db.query(UserPermissionOverride)
                .filter(UserPermissionOverride.user_id == user_id)
                .order_by(UserPermissionOverride.created_at)
                .all()
            )
        except SQLAlchemyError as e:
            raise StorageError("Failed to load user permissions") from e

    def clear_override(self, user_id: str, permission_id: str) -> bool:
        """Remove the override for the pair. Returns False if there was none."""
        try:
            removed = (
                self.db.query(UserPermissionOverride)
                .filter(
                    UserPermissionOverride.user_id == user_id,
                    UserPermissionOverride.permission_id == permission_id,
                )
                .delete(synchronize_session=False)
            )
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StorageError("Failed to clear permission override") from e
        if removed:
            logger.info("Cleared override on permission %s for user %s", permission_id, user_id)
        return bool(removed)

    def purge_expired(self, now: Optional[datetime] = None) -> int:
        """Delete overrides that expired at or before ``now``."""
        now = as_utc(now) if now is not None else datetime.now(timezone.utc)
        try:
            removed = (
                self.db.query(UserPermissionOverride)
                .filter(
                    UserPermissionOverride.expires_at.isnot(None),
                    UserPermissionOverride.expires_at <= now,
                )
                .delete(synchronize_session=False)
            )
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StorageError("Failed to purge expired overrides") from e
        logger.info("Purged %d expired overrides", removed)
        return removed

    @staticmethod
    def snapshot(override: UserPermissionOverride) -> Dict[str, Any]:
        """Describe an override for audit old/new values."""
        return {
            "user_id": override.user_id,
            "permission": override.permission.key if override.permission else override.permission_id,
            "override_type": OverrideType(override.override_type).value,
            "expires_at": override.expires_at,
            "reason": override.reason,
        }

    def _check_exists(self, user_id: str, permission_ids: List[str]) -> None:
        try:
            if self.db.get(User, user_id) is None:
                raise ResourceNotFoundError("User not found")
            ids = set(permission_ids)
            found = {
                p.id for p in self.db.query(Permission.id).filter(Permission.id.in_(ids)).all()
            } if ids else set()
        except SQLAlchemyError as e:
            raise StorageError("Failed to load permissions") from e
        missing = [pid for pid in permission_ids if pid not in found]
        if missing:
            raise ResourceNotFoundError(f"Permission {missing[0]} not found")

    def _upsert(
        self,
        user_id: str,
        permission_id: str,
        override_type: OverrideType,
        expires_at: Optional[datetime],
        reason: Optional[str],
        granted_by: Optional[str],
    ) -> UserPermissionOverride:
        override = (
            self.db.query(UserPermissionOverride)
            .filter(
                UserPermissionOverride.user_id == user_id,
                UserPermissionOverride.permission_id == permission_id,
            )
            .first()
        )
        if override is None:
            override = UserPermissionOverride(user_id=user_id, permission_id=permission_id)
            self.db.add(override)
        override.override_type = override_type
        override.expires_at = as_utc(expires_at) if expires_at is not None else None
        override.reason = reason
        override.granted_by = granted_by
        self.db.flush()
        return override
