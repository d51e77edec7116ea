"""Subaccount access grants - one row per (user email, subaccount), mutated by upsert."""

import logging
import uuid
from uuid import UUID

from sqlalchemy import func, select, update
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.orm import Session, selectinload

from plura.core.errors import (
    InvalidCallerError,
    MissingTenantReferenceError,
    NotAuthorizedError,
)
from plura.core.security import hash_email
from plura.core.structured_logging import build_log_context
from plura.db.models import Permission, SubAccount, User
from plura.db.session import store_call
from plura.schemas.auth import Principal
from plura.services import activity_service
from plura.services.auth_context_service import get_user_by_email

logger = logging.getLogger(__name__)


def _dialect_insert(db: Session):
    if db.get_bind().dialect.name == "postgresql":
        return postgresql.insert
    return sqlite.insert


def _upsert(
    db: Session,
    *,
    permission_id: UUID | None,
    email: str,
    subaccount_id: UUID,
    access: bool,
) -> None:
    # Single statement: concurrent grants for the same pair converge on one row
    insert = _dialect_insert(db)
    stmt = insert(Permission).values(
        id=permission_id or uuid.uuid4(),
        email=email,
        sub_account_id=subaccount_id,
        access=access,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=[Permission.email, Permission.sub_account_id],
        set_={"access": stmt.excluded.access},
    )
    db.execute(stmt)


def _read_fresh(db: Session, *criteria) -> Permission:
    return db.execute(
        select(Permission)
        .where(*criteria)
        .execution_options(populate_existing=True)
    ).scalar_one()


def set_access(
    db: Session,
    *,
    permission_id: UUID | None,
    user_email: str | None,
    subaccount_id: UUID,
    access: bool,
    agency_id: UUID | None = None,
    actor: Principal | None = None,
    timeout: float | None = None,
) -> Permission:
    """
    Grant or revoke a user's access to a subaccount.

    With agency_id (agency-level caller) an activity entry is written in the
    same transaction; the grant and the entry commit or roll back together.

    Raises:
        InvalidCallerError: user_email missing
        MissingTenantReferenceError: subaccount does not exist
        NotAuthorizedError: permission_id names a row for another user or subaccount
        NoActorError: activity entry could not be attributed (nothing written)
        StoreUnavailableError: store failure or timeout (nothing written)
    """
    if not user_email or not user_email.strip():
        raise InvalidCallerError("A user email is required to change access")
    email = user_email.strip().lower()

    try:
        with store_call(db, timeout):
            subaccount = db.get(SubAccount, subaccount_id)
            if subaccount is None:
                raise MissingTenantReferenceError(f"Subaccount {subaccount_id} not found")

            updated = 0
            if permission_id is not None:
                # Scoped to the requested pair so an id can never reach another row
                result = db.execute(
                    update(Permission)
                    .where(
                        Permission.id == permission_id,
                        Permission.sub_account_id == subaccount_id,
                        func.lower(Permission.email) == email,
                    )
                    .values(access=access)
                    .execution_options(synchronize_session=False)
                )
                updated = result.rowcount
                if not updated and db.get(Permission, permission_id) is not None:
                    raise NotAuthorizedError()
            if not updated:
                _upsert(
                    db,
                    permission_id=permission_id,
                    email=email,
                    subaccount_id=subaccount_id,
                    access=access,
                )

            if agency_id is not None:
                target = get_user_by_email(db, email)
                target_name = target.name if target else email
                verb = "Gave" if access else "Removed"
                activity_service.record_activity(
                    db,
                    f"{verb} {target_name} access to | {subaccount.name}",
                    agency_id=agency_id,
                    subaccount_id=subaccount_id,
                    principal=actor,
                    timeout=timeout,
                )

            db.commit()
            if updated:
                permission = _read_fresh(db, Permission.id == permission_id)
            else:
                permission = _read_fresh(
                    db, Permission.email == email, Permission.sub_account_id == subaccount_id
                )
    except Exception:
        db.rollback()
        raise

    logger.info(
        "Subaccount access %s for %s",
        "granted" if access else "revoked",
        hash_email(email),
        extra=build_log_context(agency_id=agency_id, subaccount_id=subaccount_id),
    )
    return permission


def get_user_permissions(
    db: Session,
    user_id: str,
    *,
    timeout: float | None = None,
) -> User | None:
    """User with their grants and the granted subaccounts (None if unknown)."""
    with store_call(db, timeout):
        return db.execute(
            select(User)
            .where(User.id == user_id)
            .options(
                selectinload(User.permissions)
                .selectinload(Permission.sub_account)
                .selectinload(SubAccount.sidebar_options)
            )
        ).scalar_one_or_none()
