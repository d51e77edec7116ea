"""Invite-related Pydantic schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, EmailStr, field_validator

from plura.db.enums import Role


class InviteCreate(BaseModel):
    """
    Request schema for creating an invite.

    Validates:
    - Email format
    - Role is valid enum value (ownership is rejected by the service)
    - Email is normalized to lowercase
    """
    email: EmailStr
    role: Role = Role.SUBACCOUNT_USER

    @field_validator("email")
    @classmethod
    def lowercase_email(cls, v: str) -> str:
        """Normalize email to lowercase."""
        return v.lower()


class InviteRead(BaseModel):
    """Response schema for reading an invite."""
    id: UUID
    email: str
    agency_id: UUID
    role: Role
    status: str
    created_at: datetime

    model_config = {"from_attributes": True}
