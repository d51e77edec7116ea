"""Activity log recorder - append-only audit entries keyed to agency/subaccount/user."""

import logging
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session, selectinload

from plura.core.errors import MissingTenantReferenceError, NoActorError
from plura.core.structured_logging import build_log_context
from plura.db.models import Notification, SubAccount, User
from plura.db.session import store_call
from plura.schemas.auth import Principal
from plura.services.auth_context_service import get_user_by_email

logger = logging.getLogger(__name__)


def _find_subaccount_member(db: Session, subaccount_id: UUID) -> User | None:
    """Any user of the agency that owns the subaccount (for system actions)."""
    return db.execute(
        select(User)
        .join(SubAccount, SubAccount.agency_id == User.agency_id)
        .where(SubAccount.id == subaccount_id)
        .order_by(User.created_at)
        .limit(1)
    ).scalar_one_or_none()


def _resolve_actor(
    db: Session,
    principal: Principal | None,
    subaccount_id: UUID | None,
) -> User | None:
    if principal is not None:
        return get_user_by_email(db, principal.email)
    if subaccount_id is None:
        return None
    return _find_subaccount_member(db, subaccount_id)


def record_activity(
    db: Session,
    description: str,
    *,
    agency_id: UUID | None = None,
    subaccount_id: UUID | None = None,
    principal: Principal | None = None,
    timeout: float | None = None,
) -> Notification:
    """
    Append an activity entry.

    Args:
        db: Database session
        description: What happened (rendered as "<actor name> | <description>")
        agency_id: Agency context; derived from the subaccount when omitted
        subaccount_id: Subaccount context (optional when agency_id is given)
        principal: Verified caller; None for system/background actions, in
            which case any member of the subaccount's agency is the actor

    Returns:
        The created notification (flushed, caller controls the transaction)

    Raises:
        MissingTenantReferenceError: neither agency_id nor a known subaccount_id
        NoActorError: no user could be attributed
    """
    if agency_id is None and subaccount_id is None:
        raise MissingTenantReferenceError(
            "Provide at least an agency id or a subaccount id"
        )

    with store_call(db, timeout):
        actor = _resolve_actor(db, principal, subaccount_id)
        if actor is None:
            raise NoActorError("Could not find a user to attribute the activity to")

        if agency_id is None:
            subaccount = db.get(SubAccount, subaccount_id)
            if subaccount is None:
                raise MissingTenantReferenceError(f"Subaccount {subaccount_id} not found")
            agency_id = subaccount.agency_id

        entry = Notification(
            notification=f"{actor.name} | {description}",
            agency_id=agency_id,
            sub_account_id=subaccount_id,
            user_id=actor.id,
        )
        db.add(entry)
        db.flush()  # Don't commit - let caller control transaction

    logger.info(
        "Activity recorded",
        extra=build_log_context(
            user_id=actor.id, agency_id=agency_id, subaccount_id=subaccount_id
        ),
    )
    return entry


def list_notifications(
    db: Session,
    agency_id: UUID,
    *,
    subaccount_id: UUID | None = None,
    limit: int = 100,
    timeout: float | None = None,
) -> list[Notification]:
    """Activity feed for an agency (optionally one subaccount), newest first."""
    query = (
        select(Notification)
        .where(Notification.agency_id == agency_id)
        .options(selectinload(Notification.user))
    )
    if subaccount_id is not None:
        query = query.where(Notification.sub_account_id == subaccount_id)
    query = query.order_by(Notification.created_at.desc(), Notification.id.desc()).limit(limit)

    with store_call(db, timeout):
        return list(db.execute(query).scalars().all())
