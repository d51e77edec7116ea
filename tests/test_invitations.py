"""Tests for invitation issuing and acceptance."""

import json

import pytest
from sqlalchemy import func, select

from plura.core.errors import NotAuthorizedError, RoleConflictError
from plura.db.enums import InvitationStatus, JobStatus, JobType, Role
from plura.db.models import Agency, Invitation, Job, Notification, User
from plura.services import agency_service, auth_context_service, invite_service


def _invite(db, agency_id, email, role=Role.SUBACCOUNT_USER) -> Invitation:
    invitation = Invitation(
        email=email,
        agency_id=agency_id,
        role=role.value,
        status=InvitationStatus.PENDING.value,
    )
    db.add(invitation)
    db.commit()
    return invitation


def _count(db, model, *criteria) -> int:
    return db.execute(select(func.count()).select_from(model).where(*criteria)).scalar_one()


# =============================================================================
# Acceptance
# =============================================================================

def test_accept_creates_user_and_consumes_invitation(
    db, tenant, principal_factory, identity_client, identity_provider
):
    invitee = principal_factory("Jane", "Doe")
    _invite(db, tenant.agency.id, invitee.email)

    agency_id = invite_service.accept_invitation(db, invitee, identity_client=identity_client)

    assert agency_id == tenant.agency.id
    user = auth_context_service.get_user_by_email(db, invitee.email)
    assert user.id == invitee.id
    assert user.name == "Jane Doe"
    assert user.role == Role.SUBACCOUNT_USER.value
    assert user.agency_id == tenant.agency.id
    assert _count(db, Invitation, Invitation.email == invitee.email) == 0

    joined = db.execute(
        select(Notification).where(Notification.user_id == invitee.id)
    ).scalars().all()
    assert [n.notification for n in joined] == ["Jane Doe | Joined"]

    # Role pushed to the identity provider after commit
    pushed = identity_provider.requests[-1]
    assert pushed.method == "PATCH"
    assert pushed.url.path == f"/v1/users/{invitee.id}/metadata"
    assert pushed.headers["Authorization"] == "Bearer test-idp-key"
    assert json.loads(pushed.content) == {"private_metadata": {"role": "SUBACCOUNT_USER"}}


def test_accept_without_invitation_returns_current_membership(db, tenant, principal_factory):
    assert invite_service.accept_invitation(db, tenant.owner) == tenant.agency.id

    stranger = principal_factory("No", "Invite")
    assert invite_service.accept_invitation(db, stranger) is None
    assert _count(db, User, User.email == stranger.email) == 0


def test_repeated_acceptance_creates_exactly_one_user(
    db, tenant, principal_factory, identity_client
):
    invitee = principal_factory("Rita", "Repeat")
    _invite(db, tenant.agency.id, invitee.email, Role.AGENCY_ADMIN)

    first = invite_service.accept_invitation(db, invitee, identity_client=identity_client)
    second = invite_service.accept_invitation(db, invitee, identity_client=identity_client)

    assert first == second == tenant.agency.id
    assert _count(db, User, User.email == invitee.email) == 1
    assert _count(db, Notification, Notification.user_id == invitee.id) == 1
    role_syncs = db.execute(
        select(Job).where(Job.job_type == JobType.IDENTITY_ROLE_SYNC.value)
    ).scalars().all()
    assert [j.payload["user_id"] for j in role_syncs].count(invitee.id) == 1


def test_losing_concurrent_acceptance_falls_back_to_winner(
    db, tenant, principal_factory, identity_client, monkeypatch
):
    invitee = principal_factory("Carl", "Concurrent")
    invitation = _invite(db, tenant.agency.id, invitee.email)
    # Snapshot of the row as the losing caller read it
    stale = Invitation(
        id=invitation.id,
        email=invitation.email,
        agency_id=invitation.agency_id,
        role=invitation.role,
        status=InvitationStatus.PENDING.value,
    )

    winner = invite_service.accept_invitation(db, invitee, identity_client=identity_client)
    monkeypatch.setattr(invite_service, "get_pending_invitation", lambda db, email: stale)
    loser = invite_service.accept_invitation(db, invitee, identity_client=identity_client)

    assert winner == loser == tenant.agency.id
    assert _count(db, User, User.email == invitee.email) == 1
    assert _count(db, Notification, Notification.user_id == invitee.id) == 1


def test_existing_member_of_same_agency_settles_invitation(db, tenant, principal_factory):
    invitee = principal_factory("Eve", "Existing")
    db.add(User(
        id="user_signed_up_earlier",
        name="Eve Existing",
        email=invitee.email,
        role=Role.SUBACCOUNT_GUEST.value,
        agency_id=tenant.agency.id,
    ))
    _invite(db, tenant.agency.id, invitee.email)

    assert invite_service.accept_invitation(db, invitee) == tenant.agency.id
    assert _count(db, User, User.email == invitee.email) == 1
    assert _count(db, Invitation, Invitation.email == invitee.email) == 0
    # The earlier record is kept as is
    assert auth_context_service.get_user_by_email(db, invitee.email).role == Role.SUBACCOUNT_GUEST.value


def test_existing_user_outside_agency_keeps_own_membership(db, tenant, principal_factory):
    invitee = principal_factory("Oscar", "Outside")
    other = Agency(name="Other Agency", company_email="hi@other-agency.com")
    db.add(other)
    db.flush()
    db.add(User(
        id="user_in_other_agency",
        name="Oscar Outside",
        email=invitee.email,
        role=Role.SUBACCOUNT_USER.value,
        agency_id=other.id,
    ))
    _invite(db, tenant.agency.id, invitee.email)

    assert invite_service.accept_invitation(db, invitee) == other.id
    # Not consumed: the invitation stays pending
    assert _count(db, Invitation, Invitation.email == invitee.email) == 1


def test_signed_up_user_without_agency_is_adopted(
    db, tenant, principal_factory, identity_client, identity_provider
):
    invitee = principal_factory("Sam", "Signup")
    agency_service.init_user(db, invitee)
    _invite(db, tenant.agency.id, invitee.email, Role.AGENCY_ADMIN)

    results = [
        invite_service.accept_invitation(db, invitee, identity_client=identity_client)
        for _ in range(3)
    ]

    assert results == [tenant.agency.id] * 3
    user = auth_context_service.get_user_by_email(db, invitee.email)
    assert user.agency_id == tenant.agency.id
    assert user.role == Role.AGENCY_ADMIN.value
    assert _count(db, User, User.email == invitee.email) == 1
    assert _count(db, Invitation, Invitation.email == invitee.email) == 0
    assert _count(db, Notification, Notification.user_id == invitee.id) == 1
    assert json.loads(identity_provider.requests[-1].content) == {
        "private_metadata": {"role": "AGENCY_ADMIN"}
    }


def test_fallback_after_lost_race_runs_in_a_fresh_store_call(
    db, tenant, principal_factory, monkeypatch
):
    invitee = principal_factory("Lou", "Late")
    invitation = _invite(db, tenant.agency.id, invitee.email)
    stale = Invitation(
        id=invitation.id,
        email=invitation.email,
        agency_id=invitation.agency_id,
        role=invitation.role,
        status=InvitationStatus.PENDING.value,
    )
    # Consumed elsewhere between the read and the delete
    db.delete(invitation)
    db.commit()
    monkeypatch.setattr(invite_service, "get_pending_invitation", lambda db, email: stale)

    timeouts = []
    real_store_call = invite_service.store_call

    def recording_store_call(session, timeout=None):
        timeouts.append(timeout)
        return real_store_call(session, timeout)

    monkeypatch.setattr(invite_service, "store_call", recording_store_call)

    assert invite_service.accept_invitation(db, invitee, timeout=2.5) is None
    # Outer call plus the lookup after the rollback, both with the caller's timeout
    assert timeouts == [2.5, 2.5]
    assert _count(db, User, User.email == invitee.email) == 0


def test_owner_invitation_is_rejected_and_left_untouched(db, tenant, principal_factory):
    invitee = principal_factory("Wannabe", "Owner")
    _invite(db, tenant.agency.id, invitee.email, Role.AGENCY_OWNER)

    with pytest.raises(RoleConflictError):
        invite_service.accept_invitation(db, invitee)

    assert _count(db, User, User.email == invitee.email) == 0
    assert _count(db, Invitation, Invitation.email == invitee.email) == 1


def test_identity_sync_failure_keeps_membership_and_leaves_job_pending(
    db, tenant, principal_factory, identity_client, identity_provider
):
    from plura import worker

    invitee = principal_factory("Fay", "Failure")
    _invite(db, tenant.agency.id, invitee.email)
    identity_provider.fail = True

    agency_id = invite_service.accept_invitation(db, invitee, identity_client=identity_client)

    assert agency_id == tenant.agency.id
    assert auth_context_service.get_user_by_email(db, invitee.email) is not None
    job = db.execute(
        select(Job).where(Job.idempotency_key.like(f"{invite_service.ROLE_SYNC_KEY_PREFIX}%"))
    ).scalar_one()
    assert job.status == JobStatus.PENDING.value
    assert job.attempts == 1
    assert "503" in job.last_error

    # Worker retries once the provider is back
    identity_provider.fail = False
    assert worker.run_once(db, identity_client) == 1
    db.refresh(job)
    assert job.status == JobStatus.COMPLETED.value
    assert job.last_error is None


# =============================================================================
# Issuing
# =============================================================================

def test_create_invitation_by_owner(db, tenant):
    context = auth_context_service.resolve_context(db, tenant.owner.email)

    invitation = invite_service.create_invitation(
        db, context, tenant.agency.id, "New.Person@Example.com", Role.AGENCY_ADMIN
    )

    assert invitation.email == "new.person@example.com"
    assert invitation.role == Role.AGENCY_ADMIN.value
    assert invitation.status == InvitationStatus.PENDING.value


def test_create_invitation_rejects_owner_role(db, tenant):
    context = auth_context_service.resolve_context(db, tenant.owner.email)

    with pytest.raises(RoleConflictError):
        invite_service.create_invitation(
            db, context, tenant.agency.id, "boss@example.com", Role.AGENCY_OWNER
        )


def test_create_invitation_rejects_duplicates_and_members(db, tenant):
    context = auth_context_service.resolve_context(db, tenant.owner.email)
    invite_service.create_invitation(db, context, tenant.agency.id, "dup@example.com")

    with pytest.raises(ValueError, match="pending invite"):
        invite_service.create_invitation(db, context, tenant.agency.id, "dup@example.com")
    with pytest.raises(ValueError, match="already a member"):
        invite_service.create_invitation(db, context, tenant.agency.id, tenant.owner.email)


def test_create_invitation_requires_agency_manager(db, tenant, principal_factory):
    member = principal_factory("Sub", "User")
    db.add(User(
        id=member.id,
        name=member.full_name,
        email=member.email,
        role=Role.SUBACCOUNT_USER.value,
        agency_id=tenant.agency.id,
    ))
    db.commit()
    context = auth_context_service.resolve_context(db, member.email)

    with pytest.raises(NotAuthorizedError):
        invite_service.create_invitation(db, context, tenant.agency.id, "x@example.com")


def test_invitation_statuses_are_pending_and_reserved_accepted():
    assert {s.value for s in InvitationStatus} == {"PENDING", "ACCEPTED"}
