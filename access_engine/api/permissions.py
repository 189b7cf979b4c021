"""Permission catalog API router."""

from typing import List
from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session

from access_engine.db.session import get_db
from access_engine.schemas.schemas import PermissionOut, PermissionGroupsOut
from access_engine.services.permission_service import PermissionCatalog
from access_engine.core.security import require_roles_read

router = APIRouter(prefix="/permissions", tags=["permissions"])


@router.get("/", response_model=List[PermissionOut])
async def list_permissions(
    db: Session = Depends(get_db),
    actor_id: str = Depends(require_roles_read),
):
    """List every definable permission, sorted by resource and action."""
    return PermissionCatalog(db).list_all()


@router.get("/grouped", response_model=PermissionGroupsOut)
async def list_permissions_grouped(
    db: Session = Depends(get_db),
    actor_id: str = Depends(require_roles_read),
):
    """Permissions grouped by resource."""
    grouped = PermissionCatalog(db).group_by_resource()
    return PermissionGroupsOut(groups={
        resource: [PermissionOut.model_validate(p) for p in perms]
        for resource, perms in grouped.items()
    })
