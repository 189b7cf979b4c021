"""Admin / Audit API router."""

import logging
from typing import Optional
from fastapi import APIRouter, Depends, Query
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from access_engine.db.session import get_db
from access_engine.schemas.schemas import AuditLogOut
from access_engine.services.audit_service import audit_service
from access_engine.services.cache_service import cache_service
from access_engine.core.security import require_audit_read

logger = logging.getLogger("access_engine")

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/audit")
async def get_audit_logs(
    resource_type: Optional[str] = Query(None),
    resource_id: Optional[str] = Query(None),
    actor_id: Optional[str] = Query(None),
    action: Optional[str] = Query(None, description="Exact action, e.g. role.updated"),
    page: int = Query(1, ge=1),
    page_size: int = Query(50, ge=1, le=200),
    db: Session = Depends(get_db),
    caller_id: str = Depends(require_audit_read),
):
    """Query the RBAC audit trail."""
    entries, total = audit_service.history(
        db,
        resource_type=resource_type,
        resource_id=resource_id,
        actor_id=actor_id,
        action=action,
        page=page,
        page_size=page_size,
    )
    return {
        "logs": [AuditLogOut.model_validate(entry) for entry in entries],
        "total": total,
        "page": page,
    }


@router.get("/health")
async def health_check(db: Session = Depends(get_db)):
    """System health check for the database and Redis."""
    db_ok = False
    try:
        db.execute(text("SELECT 1"))
        db_ok = True
    except SQLAlchemyError:
        logger.warning("Database health check failed", exc_info=True)

    redis_ok = cache_service.health_check() if cache_service.enabled else None

    return {
        "database": "ok" if db_ok else "error",
        "redis": "disabled" if redis_ok is None else ("ok" if redis_ok else "error"),
        "status": "healthy" if db_ok else "degraded",
    }
