"""Tests for authorization context resolution and sidebar projection."""

import uuid

import pytest
from sqlalchemy.exc import OperationalError

from plura.core.config import settings
from plura.core.errors import StoreUnavailableError
from plura.db.enums import Role, SidebarView
from plura.db.models import Agency, Permission, User
from plura.services import auth_context_service


def _add_member(db, agency_id, principal, role=Role.SUBACCOUNT_USER) -> User:
    user = User(
        id=principal.id,
        name=principal.full_name,
        email=principal.email,
        role=role.value,
        agency_id=agency_id,
    )
    db.add(user)
    db.commit()
    return user


def test_unknown_principal_resolves_to_none(db):
    assert auth_context_service.resolve_context(db, "nobody@example.com") is None


def test_owner_sees_agency_and_every_subaccount(db, tenant):
    context = auth_context_service.resolve_context(db, tenant.owner.email)

    assert context is not None
    assert context.role == Role.AGENCY_OWNER
    assert context.agency_id == tenant.agency.id
    assert context.is_whitelabel is True
    # Owner is granted access when each subaccount is created
    assert [s.name for s in context.subaccounts] == ["Alpha", "Beta"]
    assert len(context.agency.sidebar_options) == 6


def test_lookup_is_case_insensitive(db, tenant):
    context = auth_context_service.resolve_context(db, tenant.owner.email.upper())
    assert context is not None
    assert context.user_id == tenant.owner.id


def test_visible_subaccounts_are_exactly_the_granted_ones(db, tenant, principal_factory):
    member = principal_factory("Sam", "Member")
    _add_member(db, tenant.agency.id, member)
    alpha, beta = tenant.subaccounts

    context = auth_context_service.resolve_context(db, member.email)
    assert context.subaccounts == []
    # The agency snapshot still lists every subaccount
    assert len(context.agency.subaccounts) == 2

    db.add(Permission(email=member.email, sub_account_id=alpha.id, access=True))
    db.add(Permission(email=member.email, sub_account_id=beta.id, access=False))
    db.commit()

    context = auth_context_service.resolve_context(db, member.email)
    assert [s.id for s in context.subaccounts] == [alpha.id]
    assert context.can_see_subaccount(alpha.id)
    assert not context.can_see_subaccount(beta.id)
    assert {p.sub_account_id for p in context.permissions} == {alpha.id, beta.id}


def test_user_without_agency_has_empty_scope(db, principal_factory):
    loner = principal_factory("Lone", "User")
    db.add(User(id=loner.id, name=loner.full_name, email=loner.email, role=Role.SUBACCOUNT_USER.value))
    db.commit()

    context = auth_context_service.resolve_context(db, loner.email)

    assert context.agency is None
    assert context.agency_id is None
    assert context.subaccounts == []
    assert context.is_whitelabel is False


def test_store_failure_surfaces_as_store_unavailable(db, tenant, monkeypatch):
    def broken(*args, **kwargs):
        raise OperationalError("SELECT", {}, Exception("connection refused"))

    monkeypatch.setattr(auth_context_service, "_load_membership_graph", broken)

    with pytest.raises(StoreUnavailableError) as exc_info:
        auth_context_service.resolve_context(db, tenant.owner.email)
    assert exc_info.value.retryable is True


# =============================================================================
# Sidebar
# =============================================================================

def test_agency_sidebar_uses_agency_logo_and_options(db, tenant):
    context = auth_context_service.resolve_context(db, tenant.owner.email)

    sidebar = auth_context_service.build_sidebar(context, SidebarView.AGENCY, tenant.agency.id)

    assert sidebar.logo == "/acme.png"
    assert [o.name for o in sidebar.options] == [
        "Dashboard", "Launchpad", "Billing", "Settings", "Sub Accounts", "Team",
    ]
    assert sidebar.details_name == "Acme Agency"
    assert len(sidebar.subaccounts) == 2


def test_whitelabel_agency_keeps_agency_logo_in_subaccount_view(db, tenant):
    alpha = tenant.subaccounts[0]
    alpha.sub_account_logo = "/alpha.png"
    db.commit()
    context = auth_context_service.resolve_context(db, tenant.owner.email)

    sidebar = auth_context_service.build_sidebar(context, SidebarView.SUBACCOUNT, alpha.id)

    assert sidebar.logo == "/acme.png"
    assert sidebar.details_id == alpha.id
    assert len(sidebar.options) == 8


def test_non_whitelabel_agency_shows_subaccount_logo(db, tenant):
    alpha, beta = tenant.subaccounts
    alpha.sub_account_logo = "/alpha.png"
    db.get(Agency, tenant.agency.id).white_label = False
    db.commit()
    context = auth_context_service.resolve_context(db, tenant.owner.email)

    assert auth_context_service.build_sidebar(context, SidebarView.SUBACCOUNT, alpha.id).logo == "/alpha.png"
    # No subaccount logo: fall back to the agency logo
    assert auth_context_service.build_sidebar(context, SidebarView.SUBACCOUNT, beta.id).logo == "/acme.png"


def test_missing_agency_logo_uses_default(db, tenant):
    db.get(Agency, tenant.agency.id).agency_logo = None
    db.commit()
    context = auth_context_service.resolve_context(db, tenant.owner.email)

    sidebar = auth_context_service.build_sidebar(context, SidebarView.AGENCY, tenant.agency.id)

    assert sidebar.logo == settings.DEFAULT_AGENCY_LOGO


def test_sidebar_for_foreign_target_is_none(db, tenant):
    context = auth_context_service.resolve_context(db, tenant.owner.email)
    other_id = uuid.uuid4()

    assert auth_context_service.build_sidebar(context, SidebarView.AGENCY, other_id) is None
    assert auth_context_service.build_sidebar(context, SidebarView.SUBACCOUNT, other_id) is None
