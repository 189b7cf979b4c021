"""Pydantic schemas for API request/response serialization."""

from pydantic import BaseModel, Field
from typing import Optional, List, Dict
from datetime import datetime

from access_engine.models.override import OverrideType


# ---- Permission ----
class PermissionOut(BaseModel):
    id: str
    resource: str
    action: str
    key: str
    description: Optional[str] = None

    class Config:
        from_attributes = True


class PermissionGroupsOut(BaseModel):
    groups: Dict[str, List[PermissionOut]]


# ---- Role ----
class RoleCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=50, pattern=r"^[a-z_]+$")
    display_name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    priority: int = Field(100, ge=1, le=999)
    permission_ids: List[str] = []


class RoleUpdate(BaseModel):
    display_name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = Field(None, max_length=500)
    priority: Optional[int] = Field(None, ge=1, le=999)
    permission_ids: Optional[List[str]] = None


class RoleOut(BaseModel):
    id: str
    name: str
    display_name: str
    description: Optional[str] = None
    priority: int
    is_system_role: bool
    permissions: List[PermissionOut] = []
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# ---- Overrides ----
class OverrideSet(BaseModel):
    override_type: OverrideType
    expires_at: Optional[datetime] = None
    reason: Optional[str] = Field(None, max_length=500)


class OverrideItem(OverrideSet):
    permission_id: str


class OverrideAssign(BaseModel):
    permissions: List[OverrideItem]
    replace_existing: bool = False


class OverrideOut(BaseModel):
    id: str
    user_id: str
    permission_id: str
    permission: Optional[PermissionOut] = None
    override_type: OverrideType
    expires_at: Optional[datetime] = None
    reason: Optional[str] = None
    granted_by: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# ---- User roles / access ----
class RoleAssign(BaseModel):
    role_ids: List[str] = Field(..., min_length=1)
    replace_existing: bool = False


class AccessProfileOut(BaseModel):
    user_id: str
    email: str
    roles: List[RoleOut]
    overrides: List[OverrideOut]
    effective_permissions: List[str]


class PermissionCheckOut(BaseModel):
    user_id: str
    permission: str
    allowed: bool


# ---- Audit ----
class AuditLogOut(BaseModel):
    id: int
    actor_id: Optional[str] = None
    action: str
    resource_type: str
    resource_id: Optional[str] = None
    old_value_json: Optional[str] = None
    new_value_json: Optional[str] = None
    ip_address: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


# ---- Common ----
class MessageResponse(BaseModel):
    message: str
