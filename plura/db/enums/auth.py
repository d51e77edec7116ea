"""Auth-related enums."""

from enum import Enum


class Role(str, Enum):
    """
    Tenant roles.

    - AGENCY_OWNER: Created with the agency; exactly one per agency
    - AGENCY_ADMIN: Manages the agency, its team and subaccounts
    - SUBACCOUNT_USER: Works inside subaccounts they were granted
    - SUBACCOUNT_GUEST: Read-mostly access to granted subaccounts
    """

    AGENCY_OWNER = "AGENCY_OWNER"
    AGENCY_ADMIN = "AGENCY_ADMIN"
    SUBACCOUNT_USER = "SUBACCOUNT_USER"
    SUBACCOUNT_GUEST = "SUBACCOUNT_GUEST"

    @classmethod
    def has_value(cls, value: str) -> bool:
        """Check if value is a valid role."""
        return value in cls._value2member_map_


class InvitationStatus(str, Enum):
    """Invitation lifecycle. Accepted invitations are deleted, not kept."""

    PENDING = "PENDING"
    # Never written: acceptance deletes the row. Reserved for invitation
    # audit retention, which would archive instead of delete.
    ACCEPTED = "ACCEPTED"


class SidebarView(str, Enum):
    """Which tenant level a sidebar is rendered for."""

    AGENCY = "agency"
    SUBACCOUNT = "subaccount"
