"""Authorization context resolution - who the caller is and what they may see."""

import logging
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session, selectinload

from plura.core.config import settings
from plura.core.security import hash_email
from plura.db.enums import Role, SidebarView
from plura.db.models import Agency, SubAccount, User
from plura.db.session import store_call
from plura.schemas.auth import (
    AgencySnapshot,
    AuthContext,
    PermissionRead,
    SidebarOptionRead,
    SidebarViewRead,
)

logger = logging.getLogger(__name__)


def get_user_by_email(db: Session, email: str) -> User | None:
    """Point lookup by the principal's identity key."""
    return db.execute(
        select(User).where(func.lower(User.email) == email.strip().lower())
    ).scalar_one_or_none()


def _load_membership_graph(db: Session, email: str) -> User | None:
    # One read for the whole graph: agency, its sidebar, every subaccount with
    # its sidebar, and the user's own grants
    return db.execute(
        select(User)
        .where(func.lower(User.email) == email.strip().lower())
        .options(
            selectinload(User.agency).selectinload(Agency.sidebar_options),
            selectinload(User.agency)
            .selectinload(Agency.subaccounts)
            .selectinload(SubAccount.sidebar_options),
            selectinload(User.permissions),
        )
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()


def resolve_context(
    db: Session,
    email: str,
    *,
    timeout: float | None = None,
) -> AuthContext | None:
    """
    Resolve the caller's effective tenant view.

    Returns None when the principal has no user row (authenticated with the
    identity provider but not a tenant member). Always reads current state;
    nothing is cached across calls.

    Raises:
        StoreUnavailableError: store failure or timeout (safe to retry)
    """
    with store_call(db, timeout):
        user = _load_membership_graph(db, email)
        if user is None:
            logger.debug("No tenant record for principal %s", hash_email(email))
            return None

        agency = AgencySnapshot.model_validate(user.agency) if user.agency else None
        granted = {p.sub_account_id for p in user.permissions if p.access}
        visible = (
            [sub for sub in agency.subaccounts if sub.id in granted] if agency else []
        )

        return AuthContext(
            user_id=user.id,
            email=user.email,
            name=user.name,
            avatar_url=user.avatar_url,
            role=Role(user.role),
            agency=agency,
            subaccounts=visible,
            permissions=[PermissionRead.model_validate(p) for p in user.permissions],
            is_whitelabel=bool(agency and agency.white_label),
        )


def build_sidebar(
    context: AuthContext,
    view: SidebarView,
    target_id: UUID,
) -> SidebarViewRead | None:
    """
    Compute the sidebar for the agency or one of its subaccounts.

    Logo: agency logo (or the default) unless the agency is not whitelabel
    and a subaccount is shown, in which case the subaccount's own logo wins.
    Returns None when the caller has no agency or the target isn't in it.
    """
    agency = context.agency
    if agency is None:
        return None

    subaccount = None
    if view == SidebarView.AGENCY:
        if agency.id != target_id:
            return None
        options = agency.sidebar_options
        details_id, details_name = agency.id, agency.name
    else:
        subaccount = next((s for s in agency.subaccounts if s.id == target_id), None)
        if subaccount is None:
            return None
        options = subaccount.sidebar_options
        details_id, details_name = subaccount.id, subaccount.name

    logo = agency.agency_logo or settings.DEFAULT_AGENCY_LOGO
    if not agency.white_label and subaccount is not None:
        logo = subaccount.sub_account_logo or agency.agency_logo or settings.DEFAULT_AGENCY_LOGO

    return SidebarViewRead(
        logo=logo,
        options=[SidebarOptionRead.model_validate(o) for o in options],
        subaccounts=context.subaccounts,
        details_id=details_id,
        details_name=details_name,
    )
