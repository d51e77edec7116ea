"""Agency and subaccount schemas."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, EmailStr, field_validator


class AgencyCreate(BaseModel):
    """
    Request schema for creating (or re-submitting) an agency.

    The caller becomes the agency owner on first creation.
    """
    id: UUID | None = None
    name: str
    company_email: EmailStr
    company_phone: str | None = None
    agency_logo: str | None = None
    white_label: bool = True
    address: str | None = None
    city: str | None = None
    zip_code: str | None = None
    state: str | None = None
    country: str | None = None
    goal: int = 5

    @field_validator("company_email")
    @classmethod
    def lowercase_email(cls, v: str) -> str:
        """Normalize email to lowercase."""
        return v.lower()


class AgencyUpdate(BaseModel):
    name: str | None = None
    company_email: EmailStr | None = None
    company_phone: str | None = None
    agency_logo: str | None = None
    white_label: bool | None = None
    address: str | None = None
    city: str | None = None
    zip_code: str | None = None
    state: str | None = None
    country: str | None = None
    goal: int | None = None


class AgencyRead(BaseModel):
    id: UUID
    name: str
    company_email: str
    company_phone: str | None
    agency_logo: str | None
    white_label: bool
    goal: int
    created_at: datetime

    model_config = {"from_attributes": True}


class SubAccountCreate(BaseModel):
    id: UUID | None = None
    name: str
    company_email: EmailStr
    company_phone: str | None = None
    sub_account_logo: str | None = None
    address: str | None = None
    city: str | None = None
    zip_code: str | None = None
    state: str | None = None
    country: str | None = None


class SubAccountRead(BaseModel):
    id: UUID
    agency_id: UUID
    name: str
    company_email: str
    sub_account_logo: str | None
    created_at: datetime

    model_config = {"from_attributes": True}
