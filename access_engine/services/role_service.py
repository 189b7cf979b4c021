"""Role service: CRUD over roles and their permission assignments."""

import logging
import re
from typing import Any, Dict, Iterable, List, Optional

from sqlalchemy import func
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from access_engine.db.base import generate_id
from access_engine.models.role import Role, RolePermission, DEFAULT_ROLE_PRIORITY
from access_engine.services.user_role_service import UserRoleService
from access_engine.core.exceptions import (
    ForbiddenError,
    ResourceConflictError,
    ResourceNotFoundError,
    StorageError,
    ValidationError,
)

logger = logging.getLogger("access_engine")

ROLE_NAME_PATTERN = re.compile(r"^[a-z_]{1,50}$")
MIN_PRIORITY = 1
MAX_PRIORITY = 999


def validate_role_name(name: str) -> None:
    if not isinstance(name, str) or not ROLE_NAME_PATTERN.match(name):
        raise ValidationError(
            "Role name must be 1-50 characters of lowercase letters and underscores"
        )


def validate_display_name(display_name: str) -> None:
    if not isinstance(display_name, str) or not 1 <= len(display_name) <= 100:
        raise ValidationError("Display name must be 1-100 characters")


def validate_description(description: Optional[str]) -> None:
    if description is not None and len(description) > 500:
        raise ValidationError("Description must be at most 500 characters")


def validate_priority(priority: int) -> None:
    # bool is an int subclass; reject it explicitly
    if isinstance(priority, bool) or not isinstance(priority, int):
        raise ValidationError("Priority must be an integer")
    if not MIN_PRIORITY <= priority <= MAX_PRIORITY:
        raise ValidationError(f"Priority must be between {MIN_PRIORITY} and {MAX_PRIORITY}")


def _unique_ids(permission_ids: Iterable[str]) -> List[str]:
    return list(dict.fromkeys(permission_ids))


class RoleService:
    """Manages roles for one storage session.

    System roles are provisioned by the seeders and are immune to update
    and delete through this service.
    """

    def __init__(self, db: Session):
        self.db = db

    def list_all(self) -> List[Role]:
        """All roles with permissions, highest priority first."""
        try:
            return (
                self.db.query(Role)
                .order_by(Role.priority.desc(), Role.name)
                .all()
            )
        except SQLAlchemyError as e:
            raise StorageError("Failed to fetch roles") from e

    def get(self, role_id: str) -> Role:
        """Get a role with its permissions.

        Raises:
            ResourceNotFoundError: If the role does not exist.
        """
        try:
            role = self.db.get(Role, role_id)
        except SQLAlchemyError as e:
            raise StorageError("Failed to fetch role") from e
        if role is None:
            raise ResourceNotFoundError("Role not found")
        return role

    def get_by_name(self, name: str) -> Optional[Role]:
        try:
            return self.db.query(Role).filter(Role.name == name).first()
        except SQLAlchemyError as e:
            raise StorageError("Failed to fetch role") from e

    def create(
        self,
        name: str,
        display_name: str,
        description: Optional[str] = None,
        priority: Optional[int] = None,
        permission_ids: Optional[List[str]] = None,
    ) -> Role:
        """Create a custom role.

        The role row and its permission rows are written in two steps. If
        the second step fails the role row is deleted again before the
        error is raised, so a role never survives with fewer permissions
        than requested.

        Raises:
            ValidationError: If a field is out of bounds.
            ResourceConflictError: If the role name already exists.
            StorageError: If either write step fails.
        """
        validate_role_name(name)
        validate_display_name(display_name)
        validate_description(description)
        priority = DEFAULT_ROLE_PRIORITY if priority is None else priority
        validate_priority(priority)
        permission_ids = _unique_ids(permission_ids or [])

        if self.get_by_name(name) is not None:
            raise ResourceConflictError("A role with this name already exists")

        role_id = generate_id()
        try:
            self.db.add(Role(
                id=role_id,
                name=name,
                display_name=display_name,
                description=description or None,
                priority=priority,
                is_system_role=False,
            ))
            self.db.commit()
        except IntegrityError as e:
            self.db.rollback()
            raise ResourceConflictError("A role with this name already exists") from e
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StorageError("Failed to create role") from e

        if permission_ids:
            try:
                self._insert_permissions(role_id, permission_ids)
                self.db.commit()
            except SQLAlchemyError as e:
                self.db.rollback()
                self._compensate_create(role_id)
                raise StorageError("Failed to assign permissions to role") from e

        logger.info("Created role %s (%s) with %d permissions", name, role_id, len(permission_ids))
        return self.get(role_id)

    def update(
        self,
        role_id: str,
        display_name: Optional[str] = None,
        description: Optional[str] = None,
        priority: Optional[int] = None,
        permission_ids: Optional[List[str]] = None,
    ) -> Role:
        """Update display fields and optionally replace the permission set.

        ``None`` leaves a field unchanged; an empty ``description`` clears it.
        A non-None ``permission_ids`` replaces every permission of the role
        (an empty list leaves it with none). Field changes and the replace
        commit together.

        Raises:
            ValidationError: If a supplied field is out of bounds.
            ResourceNotFoundError: If the role does not exist.
            ForbiddenError: If the role is a system role.
            StorageError: If the write fails; the previous state is kept.
        """
        if display_name is not None:
            validate_display_name(display_name)
        validate_description(description)
        if priority is not None:
            validate_priority(priority)

        role = self.get(role_id)
        if role.is_system_role:
            raise ForbiddenError("Cannot modify system roles")

        try:
            if display_name is not None:
                role.display_name = display_name
            if description is not None:
                role.description = description or None
            if priority is not None:
                role.priority = priority
            role.updated_at = func.now()

            if permission_ids is not None:
                self.db.query(RolePermission).filter(
                    RolePermission.role_id == role_id
                ).delete(synchronize_session=False)
                self._insert_permissions(role_id, _unique_ids(permission_ids))

            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StorageError("Failed to update role") from e

        logger.info("Updated role %s (%s)", role.name, role_id)
        return self.get(role_id)

    def delete(self, role_id: str) -> None:
        """Delete a custom role that no user holds.

        Raises:
            ResourceNotFoundError: If the role does not exist.
            ForbiddenError: If the role is a system role.
            ResourceConflictError: If the role is assigned to any user.
        """
        role = self.get(role_id)
        if role.is_system_role:
            raise ForbiddenError("Cannot delete system roles")

        if UserRoleService(self.db).count_for_role(role_id) > 0:
            raise ResourceConflictError(
                "Cannot delete role that is assigned to users. Remove role from users first."
            )

        name = role.name
        try:
            self.db.query(RolePermission).filter(
                RolePermission.role_id == role_id
            ).delete(synchronize_session=False)
            self.db.delete(role)
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StorageError("Failed to delete role") from e

        logger.info("Deleted role %s (%s)", name, role_id)

    @staticmethod
    def snapshot(role: Role) -> Dict[str, Any]:
        """Describe a role for audit old/new values."""
        return {
            "id": role.id,
            "name": role.name,
            "display_name": role.display_name,
            "description": role.description,
            "priority": role.priority,
            "is_system_role": role.is_system_role,
            "permissions": sorted(role.permission_keys),
        }

    def _insert_permissions(self, role_id: str, permission_ids: List[str]) -> None:
        self.db.add_all([
            RolePermission(role_id=role_id, permission_id=permission_id)
            for permission_id in permission_ids
        ])
        self.db.flush()

    def _compensate_create(self, role_id: str) -> None:
        """Remove a role whose permission assignment failed.

        Failures here are logged only; the caller re-raises the original error.
        """
        try:
            self.db.query(RolePermission).filter(
                RolePermission.role_id == role_id
            ).delete(synchronize_session=False)
            self.db.query(Role).filter(Role.id == role_id).delete(synchronize_session=False)
            self.db.commit()
            logger.warning("Rolled back role %s after permission assignment failed", role_id)
        except SQLAlchemyError:
            self.db.rollback()
            logger.exception("Compensating delete failed for role %s", role_id)
