"""Roles API router."""

from typing import List
from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from access_engine.db.session import get_db
from access_engine.schemas.schemas import RoleCreate, RoleUpdate, RoleOut, MessageResponse
from access_engine.services.role_service import RoleService
from access_engine.services.audit_service import audit_service
from access_engine.services.cache_service import cache_service
from access_engine.core.security import (
    require_roles_read, require_roles_write, require_roles_delete,
)

router = APIRouter(prefix="/roles", tags=["roles"])


@router.get("/", response_model=List[RoleOut])
async def list_roles(
    db: Session = Depends(get_db),
    actor_id: str = Depends(require_roles_read),
):
    """List roles with their permissions, highest priority first."""
    return RoleService(db).list_all()


@router.get("/{role_id}", response_model=RoleOut)
async def get_role(
    role_id: str,
    db: Session = Depends(get_db),
    actor_id: str = Depends(require_roles_read),
):
    """Get a single role."""
    return RoleService(db).get(role_id)


@router.post("/", response_model=RoleOut, status_code=201)
async def create_role(
    body: RoleCreate,
    request: Request,
    db: Session = Depends(get_db),
    actor_id: str = Depends(require_roles_write),
):
    """Create a custom role."""
    service = RoleService(db)
    role = service.create(
        name=body.name,
        display_name=body.display_name,
        description=body.description,
        priority=body.priority,
        permission_ids=body.permission_ids,
    )
    out = RoleOut.model_validate(role)
    audit_service.record_change(
        db, request, actor_id, "role.created", "role", role.id,
        after=service.snapshot(role),
    )
    return out


@router.put("/{role_id}", response_model=RoleOut)
async def update_role(
    role_id: str,
    body: RoleUpdate,
    request: Request,
    db: Session = Depends(get_db),
    actor_id: str = Depends(require_roles_write),
):
    """Update a role's display fields and/or replace its permission set."""
    service = RoleService(db)
    before = service.snapshot(service.get(role_id))
    role = service.update(
        role_id,
        display_name=body.display_name,
        description=body.description,
        priority=body.priority,
        permission_ids=body.permission_ids,
    )
    if body.permission_ids is not None:
        cache_service.invalidate_all_permissions()
    out = RoleOut.model_validate(role)
    audit_service.record_change(
        db, request, actor_id, "role.updated", "role", role_id,
        before=before, after=service.snapshot(role),
    )
    return out


@router.delete("/{role_id}", response_model=MessageResponse)
async def delete_role(
    role_id: str,
    request: Request,
    db: Session = Depends(get_db),
    actor_id: str = Depends(require_roles_delete),
):
    """Delete a custom role that no user holds."""
    service = RoleService(db)
    before = service.snapshot(service.get(role_id))
    service.delete(role_id)
    audit_service.record_change(
        db, request, actor_id, "role.deleted", "role", role_id,
        before=before,
    )
    return MessageResponse(message="Role deleted")
