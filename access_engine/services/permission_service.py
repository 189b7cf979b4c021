"""Permission catalog: read-only access to the definable permissions."""

from typing import Dict, List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from access_engine.models.permission import Permission
from access_engine.core.exceptions import StorageError


class PermissionCatalog:
    """Lists the ``(resource, action)`` pairs administrators have defined."""

    def __init__(self, db: Session):
        self.db = db

    def list_all(self) -> List[Permission]:
        """All permissions sorted by resource, then action."""
        try:
            return (
                self.db.query(Permission)
                .order_by(Permission.resource, Permission.action)
                .all()
            )
        except SQLAlchemyError as e:
            raise StorageError("Failed to fetch permissions") from e

    def group_by_resource(self) -> Dict[str, List[Permission]]:
        """Permissions keyed by resource name, in resource order."""
        grouped: Dict[str, List[Permission]] = {}
        for perm in self.list_all():
            grouped.setdefault(perm.resource, []).append(perm)
        return grouped

    def get_by_key(self, resource: str, action: str) -> Optional[Permission]:
        try:
            return (
                self.db.query(Permission)
                .filter(Permission.resource == resource, Permission.action == action)
                .first()
            )
        except SQLAlchemyError as e:
            raise StorageError("Failed to fetch permission") from e
