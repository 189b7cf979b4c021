"""User-role assignments.

Assignments are owned by user management; this service carries the reads the
engine depends on plus the minimal writes needed to administer them.
"""

import logging
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from access_engine.models.role import Role
from access_engine.models.user import User, UserRole
from access_engine.core.exceptions import ResourceNotFoundError, StorageError

logger = logging.getLogger("access_engine")


class UserRoleService:
    """Reads and writes ``user_roles`` rows."""

    def __init__(self, db: Session):
        self.db = db

    def count_for_role(self, role_id: str) -> int:
        """Number of users holding ``role_id``."""
        try:
            return self.db.query(UserRole).filter(UserRole.role_id == role_id).count()
        except SQLAlchemyError as e:
            raise StorageError("Failed to count role assignments") from e

    def list_roles(self, user_id: str) -> List[Role]:
        """Roles assigned to ``user_id``, permissions loaded."""
        try:
            return (
                self.db.query(Role)
                .join(UserRole, UserRole.role_id == Role.id)
                .filter(UserRole.user_id == user_id)
                .all()
            )
        except SQLAlchemyError as e:
            raise StorageError("Failed to load user roles") from e

    def assign_roles(
        self,
        user_id: str,
        role_ids: List[str],
        replace_existing: bool = False,
        assigned_by: Optional[str] = None,
    ) -> List[Role]:
        """Assign roles to a user, skipping ones already held.

        With ``replace_existing`` the user's current assignments are removed
        first, in the same transaction.

        Raises:
            ResourceNotFoundError: If the user or any role does not exist.
        """
        role_ids = list(dict.fromkeys(role_ids))
        try:
            if self.db.get(User, user_id) is None:
                raise ResourceNotFoundError("User not found")
            found = {
                r.id for r in self.db.query(Role.id).filter(Role.id.in_(role_ids)).all()
            } if role_ids else set()
        except SQLAlchemyError as e:
            raise StorageError("Failed to load roles") from e
        missing = [rid for rid in role_ids if rid not in found]
        if missing:
            raise ResourceNotFoundError(f"Role {missing[0]} not found")

        try:
            if replace_existing:
                self.db.query(UserRole).filter(UserRole.user_id == user_id).delete(
                    synchronize_session=False
                )
                held = set()
            else:
                held = {
                    ur.role_id
                    for ur in self.db.query(UserRole.role_id).filter(UserRole.user_id == user_id)
                }
            for role_id in role_ids:
                if role_id not in held:
                    self.db.add(UserRole(user_id=user_id, role_id=role_id, assigned_by=assigned_by))
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StorageError("Failed to assign roles") from e

        logger.info("Assigned roles %s to user %s", role_ids, user_id)
        return self.list_roles(user_id)

    def remove_role(self, user_id: str, role_id: str) -> bool:
        """Remove one assignment. Returns False if the user did not hold it."""
        try:
            removed = (
                self.db.query(UserRole)
                .filter(UserRole.user_id == user_id, UserRole.role_id == role_id)
                .delete(synchronize_session=False)
            )
            self.db.commit()
        except SQLAlchemyError as e:
            self.db.rollback()
            raise StorageError("Failed to remove role") from e
        if removed:
            logger.info("Removed role %s from user %s", role_id, user_id)
        return bool(removed)
