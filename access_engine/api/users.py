"""User access API router: role assignments and per-user overrides."""

from typing import List
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from sqlalchemy.orm import Session

from access_engine.db.session import get_db
from access_engine.schemas.schemas import (
    AccessProfileOut, MessageResponse, OverrideAssign, OverrideOut, OverrideSet,
    PermissionCheckOut, RoleAssign, RoleOut,
)
from access_engine.services.authorization_service import AuthorizationService
from access_engine.services.override_service import OverrideService
from access_engine.services.user_role_service import UserRoleService
from access_engine.services.audit_service import audit_service
from access_engine.services.cache_service import cache_service
from access_engine.services.resolver import permission_key, sort_roles
from access_engine.core.security import (
    get_current_active_user_id,
    require_users_read,
    require_users_manage_roles,
    require_users_manage_permissions,
)

router = APIRouter(prefix="/users", tags=["users"])
me_router = APIRouter(prefix="/me", tags=["me"])


def _profile_out(profile: dict) -> AccessProfileOut:
    return AccessProfileOut(
        user_id=profile["user"].id,
        email=profile["user"].email,
        roles=[RoleOut.model_validate(r) for r in profile["roles"]],
        overrides=[OverrideOut.model_validate(o) for o in profile["overrides"]],
        effective_permissions=profile["effective_permissions"],
    )


@me_router.get("/permissions", response_model=AccessProfileOut)
async def my_permissions(
    db: Session = Depends(get_db),
    user_id: str = Depends(get_current_active_user_id),
):
    """Access profile of the calling user."""
    return _profile_out(AuthorizationService(db).get_access_profile(user_id))


@router.get("/{user_id}/permissions", response_model=AccessProfileOut)
async def get_user_permissions(
    user_id: str,
    db: Session = Depends(get_db),
    actor_id: str = Depends(require_users_read),
):
    """Roles, active overrides and effective permissions of a user."""
    return _profile_out(AuthorizationService(db).get_access_profile(user_id))


@router.get("/{user_id}/permissions/check", response_model=PermissionCheckOut)
async def check_user_permission(
    user_id: str,
    resource: str = Query(..., min_length=1),
    action: str = Query(..., min_length=1),
    db: Session = Depends(get_db),
    actor_id: str = Depends(require_users_read),
):
    """Check a single ``resource:action`` for a user."""
    return PermissionCheckOut(
        user_id=user_id,
        permission=permission_key(resource, action),
        allowed=AuthorizationService(db).has_permission(user_id, resource, action),
    )


@router.get("/{user_id}/overrides", response_model=List[OverrideOut])
async def list_user_overrides(
    user_id: str,
    db: Session = Depends(get_db),
    actor_id: str = Depends(require_users_read),
):
    """Every direct override of a user, expired ones included."""
    return OverrideService(db).list_for_user(user_id)


@router.put("/{user_id}/overrides", response_model=List[OverrideOut])
async def assign_user_overrides(
    user_id: str,
    body: OverrideAssign,
    request: Request,
    db: Session = Depends(get_db),
    actor_id: str = Depends(require_users_manage_permissions),
):
    """Upsert several overrides, optionally replacing the existing set."""
    service = OverrideService(db)
    before = [service.snapshot(o) for o in service.list_for_user(user_id)]
    overrides = service.assign_overrides(
        user_id,
        [item.model_dump() for item in body.permissions],
        replace_existing=body.replace_existing,
        granted_by=actor_id,
    )
    cache_service.invalidate_user(user_id)
    out = [OverrideOut.model_validate(o) for o in overrides]
    audit_service.record_change(
        db, request, actor_id, "user_override.assigned", "user_override", user_id,
        before=before, after=[service.snapshot(o) for o in overrides],
    )
    return out


@router.put("/{user_id}/overrides/{permission_id}", response_model=OverrideOut)
async def set_user_override(
    user_id: str,
    permission_id: str,
    body: OverrideSet,
    request: Request,
    db: Session = Depends(get_db),
    actor_id: str = Depends(require_users_manage_permissions),
):
    """Grant or deny one permission to a user, optionally until ``expires_at``."""
    service = OverrideService(db)
    override = service.set_override(
        user_id,
        permission_id,
        body.override_type,
        expires_at=body.expires_at,
        reason=body.reason,
        granted_by=actor_id,
    )
    cache_service.invalidate_user(user_id)
    out = OverrideOut.model_validate(override)
    audit_service.record_change(
        db, request, actor_id, "user_override.set", "user_override", user_id,
        after=service.snapshot(override),
    )
    return out


@router.delete("/{user_id}/overrides/{permission_id}", response_model=MessageResponse)
async def clear_user_override(
    user_id: str,
    permission_id: str,
    request: Request,
    db: Session = Depends(get_db),
    actor_id: str = Depends(require_users_manage_permissions),
):
    """Remove a user's override, restoring role-derived behaviour."""
    if not OverrideService(db).clear_override(user_id, permission_id):
        raise HTTPException(status_code=404, detail="Override not found")
    cache_service.invalidate_user(user_id)
    audit_service.record_change(
        db, request, actor_id, "user_override.cleared", "user_override", user_id,
        before={"permission_id": permission_id},
    )
    return MessageResponse(message="Override cleared")


@router.get("/{user_id}/roles", response_model=List[RoleOut])
async def list_user_roles(
    user_id: str,
    db: Session = Depends(get_db),
    actor_id: str = Depends(require_users_read),
):
    """Roles held by a user, highest priority first."""
    return sort_roles(UserRoleService(db).list_roles(user_id))


@router.post("/{user_id}/roles", response_model=List[RoleOut])
async def assign_user_roles(
    user_id: str,
    body: RoleAssign,
    request: Request,
    db: Session = Depends(get_db),
    actor_id: str = Depends(require_users_manage_roles),
):
    """Assign roles to a user."""
    service = UserRoleService(db)
    before = sorted(r.name for r in service.list_roles(user_id))
    roles = service.assign_roles(
        user_id,
        body.role_ids,
        replace_existing=body.replace_existing,
        assigned_by=actor_id,
    )
    cache_service.invalidate_user(user_id)
    out = [RoleOut.model_validate(r) for r in sort_roles(roles)]
    audit_service.record_change(
        db, request, actor_id, "user_role.assigned", "user_role", user_id,
        before={"roles": before}, after={"roles": sorted(r.name for r in roles)},
    )
    return out


@router.delete("/{user_id}/roles/{role_id}", response_model=MessageResponse)
async def remove_user_role(
    user_id: str,
    role_id: str,
    request: Request,
    db: Session = Depends(get_db),
    actor_id: str = Depends(require_users_manage_roles),
):
    """Remove one role from a user."""
    if not UserRoleService(db).remove_role(user_id, role_id):
        raise HTTPException(status_code=404, detail="Role assignment not found")
    cache_service.invalidate_user(user_id)
    audit_service.record_change(
        db, request, actor_id, "user_role.removed", "user_role", user_id,
        before={"role_id": role_id},
    )
    return MessageResponse(message="Role removed")
