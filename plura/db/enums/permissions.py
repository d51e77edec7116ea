"""Role permission helper sets."""

from plura.db.enums.auth import Role

# Agency-level roles (see the whole agency, routed to the agency dashboard)
AGENCY_ROLES = {Role.AGENCY_OWNER, Role.AGENCY_ADMIN}

# Subaccount-level roles (routed to their subaccounts)
SUBACCOUNT_ROLES = {Role.SUBACCOUNT_USER, Role.SUBACCOUNT_GUEST}

# Roles that can invite new members
ROLES_CAN_INVITE = {Role.AGENCY_OWNER, Role.AGENCY_ADMIN}

# Roles that can grant or revoke subaccount access
ROLES_CAN_MANAGE_ACCESS = {Role.AGENCY_OWNER, Role.AGENCY_ADMIN}

# Roles that can create/update agencies and subaccounts
ROLES_CAN_MANAGE_AGENCY = {Role.AGENCY_OWNER, Role.AGENCY_ADMIN}

# Roles that can delete the agency
ROLES_CAN_DELETE_AGENCY = {Role.AGENCY_OWNER}
