"""Invitation issuing and acceptance.

Acceptance turns a pending invitation into a user row. The invitation is
removed with a compare-and-delete in the same transaction that creates the
user, so concurrent or repeated acceptances create exactly one user and
later calls fall back to the steady-state lookup.
"""

import logging
from uuid import UUID

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from plura.core.errors import NotAuthorizedError, RoleConflictError
from plura.core.security import hash_email
from plura.core.structured_logging import build_log_context
from plura.db.enums import ROLES_CAN_INVITE, InvitationStatus, Role
from plura.db.models import Invitation, User
from plura.db.session import store_call
from plura.schemas.auth import AuthContext, Principal
from plura.services import activity_service, identity_service
from plura.services.auth_context_service import get_user_by_email

logger = logging.getLogger(__name__)

# One provider push per consumed invitation
ROLE_SYNC_KEY_PREFIX = "identity_role_sync:invitation:"


def get_pending_invitation(db: Session, email: str) -> Invitation | None:
    return db.execute(
        select(Invitation).where(
            func.lower(Invitation.email) == email.strip().lower(),
            Invitation.status == InvitationStatus.PENDING.value,
        )
    ).scalar_one_or_none()


def _current_agency_id(db: Session, email: str, timeout: float | None) -> UUID | None:
    # Own store call: after a rollback the statement timeout must be set again
    with store_call(db, timeout):
        user = get_user_by_email(db, email)
        return user.agency_id if user else None


def _consume_invitation(db: Session, invitation_id: UUID) -> bool:
    """Delete the invitation only if it is still pending. False if someone else got it."""
    result = db.execute(
        delete(Invitation)
        .where(
            Invitation.id == invitation_id,
            Invitation.status == InvitationStatus.PENDING.value,
        )
        .execution_options(synchronize_session=False)
    )
    return result.rowcount > 0


def _settle_existing_member(
    db: Session,
    email: str,
    invitation_id: UUID,
    agency_id: UUID,
    timeout: float | None,
) -> UUID | None:
    # A user row with an agency already exists (earlier acceptance or another agency)
    with store_call(db, timeout):
        existing = get_user_by_email(db, email)
        if existing is None:
            return None
        if existing.agency_id == agency_id:
            _consume_invitation(db, invitation_id)
            db.commit()
        return existing.agency_id


def accept_invitation(
    db: Session,
    principal: Principal,
    *,
    identity_client: identity_service.IdentityProviderClient | None = None,
    timeout: float | None = None,
) -> UUID | None:
    """
    Accept the principal's pending invitation, if any.

    A user row that exists without an agency (signed up before being
    invited) is adopted into the invitation's agency with its role.

    Returns the agency the principal belongs to afterwards, or None when the
    principal has no membership. Safe to call on every sign-in.

    Raises:
        RoleConflictError: the invitation would grant AGENCY_OWNER (left untouched)
        StoreUnavailableError: store failure or timeout (nothing changed)
    """
    email = principal.email.strip().lower()

    try:
        with store_call(db, timeout):
            invitation = get_pending_invitation(db, email)
            if invitation is None:
                return _current_agency_id(db, email, timeout)

            if invitation.role == Role.AGENCY_OWNER.value:
                raise RoleConflictError("An invitation cannot grant agency ownership")

            invitation_id = invitation.id
            agency_id = invitation.agency_id
            role = invitation.role

            existing = get_user_by_email(db, email)
            if existing is not None and existing.agency_id is not None:
                return _settle_existing_member(db, email, invitation_id, agency_id, timeout)

            if not _consume_invitation(db, invitation_id):
                db.rollback()
                return _current_agency_id(db, email, timeout)

            if existing is not None:
                existing.role = role
                existing.agency_id = agency_id
                user = existing
                db.flush()
            else:
                try:
                    user = User(
                        id=principal.id,
                        name=principal.full_name,
                        email=email,
                        avatar_url=principal.avatar_url,
                        role=role,
                        agency_id=agency_id,
                    )
                    db.add(user)
                    db.flush()
                except IntegrityError:
                    db.rollback()
                    logger.info(
                        "Invitation for %s already settled, resolving existing member",
                        hash_email(email),
                    )
                    return _settle_existing_member(db, email, invitation_id, agency_id, timeout)

            activity_service.record_activity(
                db, "Joined", agency_id=agency_id, principal=principal, timeout=timeout
            )
            user_id = user.id
            job = identity_service.schedule_role_sync(
                db,
                user_id,
                role,
                agency_id=agency_id,
                idempotency_key=f"{ROLE_SYNC_KEY_PREFIX}{invitation_id}",
            )
            db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(
        "Invitation accepted",
        extra=build_log_context(user_id=user_id, agency_id=agency_id),
    )

    # Membership is committed; the provider push is best effort
    identity_service.dispatch_best_effort(db, job, identity_client)
    return agency_id


def create_invitation(
    db: Session,
    context: AuthContext,
    agency_id: UUID,
    email: str,
    role: Role = Role.SUBACCOUNT_USER,
    *,
    timeout: float | None = None,
) -> Invitation:
    """
    Invite an email address into the caller's agency.

    Raises:
        NotAuthorizedError: caller is not an owner/admin of the agency
        RoleConflictError: role is AGENCY_OWNER
        ValueError: already a member, or a pending invitation exists
    """
    if context.agency_id != agency_id or context.role not in ROLES_CAN_INVITE:
        raise NotAuthorizedError()
    if Role(role) == Role.AGENCY_OWNER:
        raise RoleConflictError("An invitation cannot grant agency ownership")

    email = email.strip().lower()

    with store_call(db, timeout):
        existing_user = get_user_by_email(db, email)
        if existing_user and existing_user.agency_id == agency_id:
            raise ValueError("User is already a member of this agency")

        if get_pending_invitation(db, email):
            raise ValueError("A pending invite already exists for this email")

        invitation = Invitation(
            email=email,
            agency_id=agency_id,
            role=Role(role).value,
            status=InvitationStatus.PENDING.value,
        )
        db.add(invitation)
        try:
            db.commit()
        except IntegrityError as exc:
            db.rollback()
            raise ValueError("An invite already exists for this email") from exc
        db.refresh(invitation)

    logger.info(
        "Invitation created for %s",
        hash_email(email),
        extra=build_log_context(user_id=context.user_id, agency_id=agency_id),
    )
    return invitation
