"""Pydantic schemas for API request/response models."""

from plura.schemas.agency import AgencyCreate, AgencyRead, AgencyUpdate, SubAccountCreate, SubAccountRead
from plura.schemas.auth import (
    AgencySnapshot,
    AuthContext,
    PermissionRead,
    Principal,
    SidebarOptionRead,
    SidebarViewRead,
    SubAccountSnapshot,
)
from plura.schemas.invite import InviteCreate, InviteRead
from plura.schemas.notification import NotificationRead
from plura.schemas.permission import AccessUpdate, UserPermissionsRead
from plura.schemas.routing import EntryResponse

__all__ = [
    "AccessUpdate",
    "AgencyCreate",
    "AgencyRead",
    "AgencySnapshot",
    "AgencyUpdate",
    "AuthContext",
    "EntryResponse",
    "InviteCreate",
    "InviteRead",
    "NotificationRead",
    "PermissionRead",
    "Principal",
    "SidebarOptionRead",
    "SidebarViewRead",
    "SubAccountCreate",
    "SubAccountRead",
    "SubAccountSnapshot",
    "UserPermissionsRead",
]
