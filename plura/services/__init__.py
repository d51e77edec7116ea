"""Service layer modules."""

from plura.services.auth_context_service import (
    build_sidebar,
    get_user_by_email,
    resolve_context,
)
from plura.services.routing_service import Outcome, OutcomeKind, decide
from plura.services.activity_service import list_notifications, record_activity
from plura.services.identity_service import IdentityProviderClient
from plura.services.permission_service import get_user_permissions, set_access
from plura.services.invite_service import accept_invitation, create_invitation
from plura.services.agency_service import (
    delete_agency,
    init_user,
    update_agency_details,
    upsert_agency,
    upsert_subaccount,
)

__all__ = [
    "IdentityProviderClient",
    "Outcome",
    "OutcomeKind",
    "accept_invitation",
    "build_sidebar",
    "create_invitation",
    "decide",
    "delete_agency",
    "get_user_by_email",
    "get_user_permissions",
    "init_user",
    "list_notifications",
    "record_activity",
    "resolve_context",
    "set_access",
    "update_agency_details",
    "upsert_agency",
    "upsert_subaccount",
]
