"""Principal and authorization-context schemas."""

from uuid import UUID

from pydantic import BaseModel

from plura.db.enums import Role


class Principal(BaseModel):
    """
    Identity-provider-verified caller, before tenant resolution.

    Produced by the identity gateway token; carries no tenant information.
    """
    id: str  # Identity provider subject
    email: str  # Normalized to lowercase
    first_name: str = ""
    last_name: str = ""
    avatar_url: str | None = None

    @property
    def full_name(self) -> str:
        name = f"{self.first_name} {self.last_name}".strip()
        return name or self.email.split("@")[0]


class SidebarOptionRead(BaseModel):
    id: UUID
    name: str
    link: str
    icon: str

    model_config = {"from_attributes": True}


class SubAccountSnapshot(BaseModel):
    id: UUID
    agency_id: UUID
    name: str
    company_email: str
    sub_account_logo: str | None
    sidebar_options: list[SidebarOptionRead] = []

    model_config = {"from_attributes": True}


class AgencySnapshot(BaseModel):
    id: UUID
    name: str
    company_email: str
    agency_logo: str | None
    white_label: bool
    sidebar_options: list[SidebarOptionRead] = []
    subaccounts: list[SubAccountSnapshot] = []

    model_config = {"from_attributes": True}


class PermissionRead(BaseModel):
    id: UUID
    email: str
    sub_account_id: UUID
    access: bool

    model_config = {"from_attributes": True}


class AuthContext(BaseModel):
    """
    Resolved, read-only view of a principal's role and visible tenant scope.

    `subaccounts` holds only the subaccounts the user has an explicit
    access=true grant for; `agency.subaccounts` is the full agency list.
    """
    user_id: str
    email: str
    name: str
    avatar_url: str | None
    role: Role
    agency: AgencySnapshot | None
    subaccounts: list[SubAccountSnapshot]
    permissions: list[PermissionRead]
    is_whitelabel: bool

    @property
    def agency_id(self) -> UUID | None:
        return self.agency.id if self.agency else None

    def can_see_subaccount(self, subaccount_id: UUID) -> bool:
        return any(sub.id == subaccount_id for sub in self.subaccounts)


class SidebarViewRead(BaseModel):
    """What the presentation layer needs to render one sidebar."""
    logo: str
    options: list[SidebarOptionRead]
    subaccounts: list[SubAccountSnapshot]
    details_id: UUID
    details_name: str
