"""Audit trail of role, override and role-assignment changes."""

import json
from typing import Any, Dict, List, Optional, Tuple

from fastapi import Request
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from access_engine.models.audit_log import AuditLog
from access_engine.core.exceptions import StorageError

USER_AGENT_MAX = 500


def diff_snapshots(before: Any, after: Any) -> Tuple[Any, Any]:
    """Reduce two dict snapshots to the keys whose values differ.

    Anything other than a pair of dicts (a creation, a deletion, a list of
    overrides) is recorded whole.
    """
    if not isinstance(before, dict) or not isinstance(after, dict):
        return before, after
    changed = sorted(k for k in set(before) | set(after) if before.get(k) != after.get(k))
    return {k: before.get(k) for k in changed}, {k: after.get(k) for k in changed}


def _encode(value: Any) -> Optional[str]:
    if value is None:
        return None
    return json.dumps(value, default=str, sort_keys=True)


class AuditService:
    """Writes one entry per administrative change and serves the admin query."""

    @staticmethod
    def record_change(
        db: Session,
        request: Optional[Request],
        actor_id: Optional[str],
        action: str,
        resource_type: str,
        resource_id: str,
        before: Any = None,
        after: Any = None,
    ) -> AuditLog:
        """Store what changed on ``resource_type``/``resource_id``.

        ``action`` follows ``<resource_type>.<verb>``, e.g. ``role.updated``.
        Commits on its own, after the change it describes has committed.
        """
        old, new = diff_snapshots(before, after)
        entry = AuditLog(
            actor_id=actor_id,
            action=action,
            resource_type=resource_type,
            resource_id=resource_id,
            old_value_json=_encode(old),
            new_value_json=_encode(new),
        )
        if request is not None:
            entry.ip_address = request.client.host if request.client else None
            entry.user_agent = request.headers.get("user-agent", "")[:USER_AGENT_MAX]
        try:
            db.add(entry)
            db.commit()
        except SQLAlchemyError as e:
            db.rollback()
            raise StorageError("Failed to write audit entry") from e
        return entry

    @staticmethod
    def history(
        db: Session,
        resource_type: Optional[str] = None,
        resource_id: Optional[str] = None,
        actor_id: Optional[str] = None,
        action: Optional[str] = None,
        page: int = 1,
        page_size: int = 50,
    ) -> Tuple[List[AuditLog], int]:
        """Newest-first entries matching every given filter, plus the total."""
        filters: Dict[str, Optional[str]] = {
            "resource_type": resource_type,
            "resource_id": resource_id,
            "actor_id": actor_id,
            "action": action,
        }
        query = db.query(AuditLog).filter_by(**{k: v for k, v in filters.items() if v})
        try:
            total = query.count()
            entries = (
                query.order_by(AuditLog.created_at.desc(), AuditLog.id.desc())
                .offset((page - 1) * page_size)
                .limit(page_size)
                .all()
            )
        except SQLAlchemyError as e:
            raise StorageError("Failed to query audit log") from e
        return entries, total


audit_service = AuditService()
