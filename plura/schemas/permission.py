"""Subaccount access schemas."""

from uuid import UUID

from pydantic import BaseModel

from plura.db.enums import Role
from plura.schemas.auth import SubAccountSnapshot


class AccessUpdate(BaseModel):
    """Grant or revoke one user's access to a subaccount."""
    permission_id: UUID | None = None
    user_email: str | None = None
    access: bool


class UserPermissionRead(BaseModel):
    id: UUID
    sub_account_id: UUID
    access: bool
    sub_account: SubAccountSnapshot

    model_config = {"from_attributes": True}


class UserPermissionsRead(BaseModel):
    id: str
    email: str
    name: str
    role: Role
    permissions: list[UserPermissionRead]

    model_config = {"from_attributes": True}
