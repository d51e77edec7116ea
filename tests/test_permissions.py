"""Tests for subaccount access grants."""

import uuid

import pytest
from sqlalchemy import func, select

from plura.core.errors import (
    InvalidCallerError,
    MissingTenantReferenceError,
    NoActorError,
    NotAuthorizedError,
)
from plura.db.enums import Role
from plura.db.models import Notification, Permission, User
from plura.schemas.agency import AgencyCreate, SubAccountCreate
from plura.services import agency_service, auth_context_service, permission_service


@pytest.fixture
def member(db, tenant, principal_factory):
    principal = principal_factory("Jane", "Doe")
    db.add(User(
        id=principal.id,
        name=principal.full_name,
        email=principal.email,
        role=Role.SUBACCOUNT_USER.value,
        agency_id=tenant.agency.id,
    ))
    db.commit()
    return principal


def _grants(db, email):
    return db.execute(select(Permission).where(Permission.email == email)).scalars().all()


def _notification_count(db) -> int:
    return db.execute(select(func.count()).select_from(Notification)).scalar_one()


def test_grant_then_revoke_keeps_one_row_per_pair(db, tenant, member):
    alpha = tenant.subaccounts[0]

    granted = permission_service.set_access(
        db, permission_id=None, user_email=member.email, subaccount_id=alpha.id, access=True
    )
    revoked = permission_service.set_access(
        db, permission_id=None, user_email=member.email, subaccount_id=alpha.id, access=False
    )

    assert granted.id == revoked.id
    assert revoked.access is False
    assert len(_grants(db, member.email)) == 1


def test_repeated_grants_converge_on_one_row(db, tenant, member):
    alpha = tenant.subaccounts[0]
    for _ in range(3):
        permission_service.set_access(
            db, permission_id=None, user_email=member.email, subaccount_id=alpha.id, access=True
        )

    grants = _grants(db, member.email)
    assert len(grants) == 1
    assert grants[0].access is True


def test_update_by_permission_id(db, tenant, member):
    alpha = tenant.subaccounts[0]
    created = permission_service.set_access(
        db, permission_id=None, user_email=member.email, subaccount_id=alpha.id, access=True
    )

    updated = permission_service.set_access(
        db, permission_id=created.id, user_email=member.email, subaccount_id=alpha.id, access=False
    )

    assert updated.id == created.id
    assert updated.access is False


def test_unknown_permission_id_is_used_for_the_new_row(db, tenant, member):
    beta = tenant.subaccounts[1]
    chosen_id = uuid.uuid4()

    created = permission_service.set_access(
        db, permission_id=chosen_id, user_email=member.email, subaccount_id=beta.id, access=True
    )

    assert created.id == chosen_id
    assert created.access is True


def test_permission_id_of_another_pair_is_rejected(db, tenant, member):
    alpha, beta = tenant.subaccounts
    owner_grant = db.execute(
        select(Permission).where(Permission.sub_account_id == alpha.id)
    ).scalar_one()

    # Same agency, but the id belongs to the owner's grant on Alpha
    with pytest.raises(NotAuthorizedError):
        permission_service.set_access(
            db, permission_id=owner_grant.id, user_email=member.email, subaccount_id=beta.id, access=True
        )

    db.refresh(owner_grant)
    assert owner_grant.access is True
    assert _grants(db, member.email) == []


def test_permission_id_from_another_agency_is_rejected(
    db, tenant, member, principal_factory, identity_client
):
    rival = principal_factory("Rita", "Rival")
    rival_agency = agency_service.upsert_agency(
        db,
        rival,
        AgencyCreate(name="Rival Agency", company_email="hi@rival-agency.com"),
        identity_client=identity_client,
    )
    gamma = agency_service.upsert_subaccount(
        db,
        rival_agency.id,
        SubAccountCreate(name="Gamma", company_email="gamma@rival-agency.com"),
        principal=rival,
    )
    rival_grant = db.execute(
        select(Permission).where(Permission.sub_account_id == gamma.id)
    ).scalar_one()

    with pytest.raises(NotAuthorizedError):
        permission_service.set_access(
            db,
            permission_id=rival_grant.id,
            user_email=tenant.owner.email,
            subaccount_id=tenant.subaccounts[0].id,
            access=False,
            agency_id=tenant.agency.id,
            actor=tenant.owner,
        )

    db.refresh(rival_grant)
    assert rival_grant.access is True
    assert [s.id for s in auth_context_service.resolve_context(db, rival.email).subaccounts] == [gamma.id]
    assert db.execute(
        select(func.count()).select_from(Notification).where(Notification.notification.contains("access to"))
    ).scalar_one() == 0


def test_missing_email_is_invalid_caller_and_writes_nothing(db, tenant):
    alpha = tenant.subaccounts[0]
    before = db.execute(select(func.count()).select_from(Permission)).scalar_one()

    for email in (None, "", "   "):
        with pytest.raises(InvalidCallerError):
            permission_service.set_access(
                db, permission_id=None, user_email=email, subaccount_id=alpha.id, access=True
            )

    assert db.execute(select(func.count()).select_from(Permission)).scalar_one() == before


def test_unknown_subaccount_is_rejected(db, tenant, member):
    with pytest.raises(MissingTenantReferenceError):
        permission_service.set_access(
            db, permission_id=None, user_email=member.email, subaccount_id=uuid.uuid4(), access=True
        )


def test_agency_context_logs_exactly_one_entry(db, tenant, member):
    alpha = tenant.subaccounts[0]
    before = _notification_count(db)

    permission_service.set_access(
        db,
        permission_id=None,
        user_email=member.email,
        subaccount_id=alpha.id,
        access=True,
        agency_id=tenant.agency.id,
        actor=tenant.owner,
    )

    assert _notification_count(db) == before + 1
    latest = db.execute(
        select(Notification).where(Notification.notification.contains("access to"))
    ).scalar_one()
    assert latest.notification == "Olivia Owner | Gave Jane Doe access to | Alpha"
    assert latest.sub_account_id == alpha.id
    assert latest.user_id == tenant.owner.id


def test_revocation_is_logged_as_removal(db, tenant, member):
    alpha = tenant.subaccounts[0]

    permission_service.set_access(
        db,
        permission_id=None,
        user_email=member.email,
        subaccount_id=alpha.id,
        access=False,
        agency_id=tenant.agency.id,
        actor=tenant.owner,
    )

    latest = db.execute(
        select(Notification).where(Notification.notification.contains("access to"))
    ).scalar_one()
    assert latest.notification == "Olivia Owner | Removed Jane Doe access to | Alpha"


def test_without_agency_context_nothing_is_logged(db, tenant, member):
    before = _notification_count(db)

    permission_service.set_access(
        db,
        permission_id=None,
        user_email=member.email,
        subaccount_id=tenant.subaccounts[0].id,
        access=True,
    )

    assert _notification_count(db) == before


def test_failed_log_entry_rolls_back_the_grant(db, tenant, member, principal_factory):
    ghost = principal_factory("Ghost", "Actor")

    with pytest.raises(NoActorError):
        permission_service.set_access(
            db,
            permission_id=None,
            user_email=member.email,
            subaccount_id=tenant.subaccounts[0].id,
            access=True,
            agency_id=tenant.agency.id,
            actor=ghost,
        )

    assert _grants(db, member.email) == []


def test_resolver_reflects_grant_changes_immediately(db, tenant, member):
    alpha = tenant.subaccounts[0]

    permission_service.set_access(
        db, permission_id=None, user_email=member.email, subaccount_id=alpha.id, access=True
    )
    assert [s.id for s in auth_context_service.resolve_context(db, member.email).subaccounts] == [alpha.id]

    permission_service.set_access(
        db, permission_id=None, user_email=member.email, subaccount_id=alpha.id, access=False
    )
    assert auth_context_service.resolve_context(db, member.email).subaccounts == []


def test_get_user_permissions_includes_subaccounts(db, tenant, member):
    alpha = tenant.subaccounts[0]
    permission_service.set_access(
        db, permission_id=None, user_email=member.email, subaccount_id=alpha.id, access=True
    )

    user = permission_service.get_user_permissions(db, member.id)

    assert user.email == member.email
    assert [(p.sub_account.name, p.access) for p in user.permissions] == [("Alpha", True)]
    assert permission_service.get_user_permissions(db, "user_missing") is None
