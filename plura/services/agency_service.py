"""Tenant provisioning - agencies, subaccounts, default sidebars and user records."""

import logging
import uuid
from uuid import UUID

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from plura.core.errors import NotAuthorizedError, RoleConflictError
from plura.core.structured_logging import build_log_context
from plura.db.enums import DEFAULT_ROLE, ROLES_CAN_MANAGE_AGENCY, Role
from plura.db.models import Agency, Job, Permission, SidebarOption, SubAccount, User
from plura.db.session import store_call
from plura.schemas.agency import AgencyCreate, AgencyUpdate, SubAccountCreate
from plura.schemas.auth import Principal
from plura.services import activity_service, identity_service
from plura.services.auth_context_service import get_user_by_email

logger = logging.getLogger(__name__)


# (name, icon, path relative to the agency root)
AGENCY_SIDEBAR_DEFAULTS = [
    ("Dashboard", "category", ""),
    ("Launchpad", "clipboardIcon", "/launchpad"),
    ("Billing", "payment", "/billing"),
    ("Settings", "settings", "/settings"),
    ("Sub Accounts", "person", "/all-subaccounts"),
    ("Team", "shield", "/team"),
]

SUBACCOUNT_SIDEBAR_DEFAULTS = [
    ("Launchpad", "clipboardIcon", "/launchpad"),
    ("Settings", "settings", "/settings"),
    ("Funnels", "pipelines", "/funnels"),
    ("Media", "database", "/media"),
    ("Automations", "chip", "/automations"),
    ("Pipelines", "flag", "/pipelines"),
    ("Contacts", "person", "/contacts"),
    ("Dashboard", "category", ""),
]

_AGENCY_FIELDS = (
    "name",
    "company_email",
    "company_phone",
    "agency_logo",
    "white_label",
    "address",
    "city",
    "zip_code",
    "state",
    "country",
    "goal",
)

_SUBACCOUNT_FIELDS = (
    "name",
    "company_email",
    "company_phone",
    "sub_account_logo",
    "address",
    "city",
    "zip_code",
    "state",
    "country",
)


def _apply(target, values: dict, fields: tuple[str, ...]) -> None:
    for field in fields:
        if field in values:
            setattr(target, field, values[field])


def _is_owner_conflict(exc: IntegrityError) -> bool:
    return "uq_users_agency_owner" in str(exc.orig) or "users.agency_id" in str(exc.orig)


def _dispatch(db: Session, job: Job | None, identity_client) -> None:
    if job is not None:
        identity_service.dispatch_best_effort(db, job, identity_client)


# =============================================================================
# Users
# =============================================================================


def init_user(
    db: Session,
    principal: Principal,
    role: Role | None = None,
    *,
    identity_client: identity_service.IdentityProviderClient | None = None,
    timeout: float | None = None,
) -> User:
    """
    Create or update the principal's user record and push the role to the
    identity provider.

    Raises:
        RoleConflictError: the role change would create a second agency owner
    """
    email = principal.email.strip().lower()

    try:
        with store_call(db, timeout):
            user = get_user_by_email(db, email)
            if user is None:
                user = User(
                    id=principal.id,
                    email=email,
                    name=principal.full_name,
                    avatar_url=principal.avatar_url,
                    role=(role or DEFAULT_ROLE).value,
                )
                db.add(user)
            elif role is not None:
                user.role = role.value

            db.flush()
            job = identity_service.schedule_role_sync(
                db, user.id, user.role, agency_id=user.agency_id
            )
            db.commit()
            db.refresh(user)
    except IntegrityError as exc:
        db.rollback()
        if _is_owner_conflict(exc):
            raise RoleConflictError("Agency already has an owner") from exc
        raise
    except Exception:
        db.rollback()
        raise

    _dispatch(db, job, identity_client)
    return user


# =============================================================================
# Agencies
# =============================================================================


def get_agency(db: Session, agency_id: UUID) -> Agency | None:
    return db.get(Agency, agency_id)


def _default_agency_sidebar(agency_id: UUID) -> list[SidebarOption]:
    return [
        SidebarOption(
            name=name,
            icon=icon,
            link=f"/agency/{agency_id}{path}",
            position=position,
            agency_id=agency_id,
        )
        for position, (name, icon, path) in enumerate(AGENCY_SIDEBAR_DEFAULTS)
    ]


def _default_subaccount_sidebar(subaccount_id: UUID) -> list[SidebarOption]:
    return [
        SidebarOption(
            name=name,
            icon=icon,
            link=f"/subaccount/{subaccount_id}{path}",
            position=position,
            sub_account_id=subaccount_id,
        )
        for position, (name, icon, path) in enumerate(SUBACCOUNT_SIDEBAR_DEFAULTS)
    ]


def upsert_agency(
    db: Session,
    principal: Principal,
    data: AgencyCreate,
    *,
    identity_client: identity_service.IdentityProviderClient | None = None,
    timeout: float | None = None,
) -> Agency | None:
    """
    Create the principal's agency, or update it when `data.id` already exists.

    On create the principal becomes the AGENCY_OWNER and the default agency
    sidebar is created. Returns None when no company email is given.

    Raises:
        NotAuthorizedError: updating an agency the principal cannot manage
        RoleConflictError: the principal already belongs to another agency,
            or the agency already has an owner
    """
    if not data.company_email:
        return None

    values = data.model_dump(exclude={"id"})
    job = None

    try:
        with store_call(db, timeout):
            agency = db.get(Agency, data.id) if data.id else None
            if agency is not None:
                member = get_user_by_email(db, principal.email)
                if (
                    member is None
                    or member.agency_id != agency.id
                    or Role(member.role) not in ROLES_CAN_MANAGE_AGENCY
                ):
                    raise NotAuthorizedError()
                _apply(agency, values, _AGENCY_FIELDS)
                db.commit()
                db.refresh(agency)
                return agency

            agency = Agency(id=data.id or uuid.uuid4())
            _apply(agency, values, _AGENCY_FIELDS)
            db.add(agency)
            db.flush()
            db.add_all(_default_agency_sidebar(agency.id))

            email = principal.email.strip().lower()
            owner = get_user_by_email(db, email)
            if owner is None:
                owner = User(
                    id=principal.id,
                    email=email,
                    name=principal.full_name,
                    avatar_url=principal.avatar_url,
                )
                db.add(owner)
            elif owner.agency_id is not None:
                raise RoleConflictError("User already belongs to an agency")
            owner.role = Role.AGENCY_OWNER.value
            owner.agency_id = agency.id
            db.flush()

            job = identity_service.schedule_role_sync(
                db, owner.id, owner.role, agency_id=agency.id
            )
            db.commit()
            db.refresh(agency)
    except IntegrityError as exc:
        db.rollback()
        if _is_owner_conflict(exc):
            raise RoleConflictError("Agency already has an owner") from exc
        raise
    except Exception:
        db.rollback()
        raise

    logger.info(
        "Agency created",
        extra=build_log_context(user_id=principal.id, agency_id=agency.id),
    )
    _dispatch(db, job, identity_client)
    return agency


def update_agency_details(
    db: Session,
    agency_id: UUID,
    data: AgencyUpdate,
    *,
    timeout: float | None = None,
) -> Agency | None:
    """Partial update; only fields present in the request are written."""
    with store_call(db, timeout):
        agency = db.get(Agency, agency_id)
        if agency is None:
            return None
        _apply(agency, data.model_dump(exclude_unset=True), _AGENCY_FIELDS)
        db.commit()
        db.refresh(agency)
        return agency


def delete_agency(db: Session, agency_id: UUID, *, timeout: float | None = None) -> bool:
    """Delete an agency; subaccounts, users, grants, invitations and logs cascade."""
    with store_call(db, timeout):
        result = db.execute(
            delete(Agency)
            .where(Agency.id == agency_id)
            .execution_options(synchronize_session=False)
        )
        db.commit()
        db.expunge_all()

    if result.rowcount:
        logger.info("Agency deleted", extra=build_log_context(agency_id=agency_id))
    return result.rowcount > 0


# =============================================================================
# Subaccounts
# =============================================================================


def get_agency_owner(db: Session, agency_id: UUID) -> User | None:
    return db.execute(
        select(User).where(
            User.agency_id == agency_id,
            User.role == Role.AGENCY_OWNER.value,
        )
    ).scalar_one_or_none()


def upsert_subaccount(
    db: Session,
    agency_id: UUID,
    data: SubAccountCreate,
    *,
    principal: Principal | None = None,
    timeout: float | None = None,
) -> SubAccount | None:
    """
    Create or update a subaccount of an agency.

    On create the agency owner is granted access and the default subaccount
    sidebar is created. Returns None when the agency has no owner.

    Raises:
        NotAuthorizedError: `data.id` names a subaccount of another agency
    """
    if not data.company_email:
        return None

    values = data.model_dump(exclude={"id"})

    try:
        with store_call(db, timeout):
            owner = get_agency_owner(db, agency_id)
            if owner is None:
                logger.error(
                    "Could not create subaccount: agency has no owner",
                    extra=build_log_context(agency_id=agency_id),
                )
                return None

            subaccount = db.get(SubAccount, data.id) if data.id else None
            if subaccount is not None:
                if subaccount.agency_id != agency_id:
                    raise NotAuthorizedError()
                _apply(subaccount, values, _SUBACCOUNT_FIELDS)
                description = f"Updated sub account | {subaccount.name}"
            else:
                subaccount = SubAccount(id=data.id or uuid.uuid4(), agency_id=agency_id)
                _apply(subaccount, values, _SUBACCOUNT_FIELDS)
                db.add(subaccount)
                db.flush()
                db.add(Permission(email=owner.email, sub_account_id=subaccount.id, access=True))
                db.add_all(_default_subaccount_sidebar(subaccount.id))
                description = f"Created sub account | {subaccount.name}"

            db.flush()
            activity_service.record_activity(
                db,
                description,
                agency_id=agency_id,
                subaccount_id=subaccount.id,
                principal=principal,
                timeout=timeout,
            )
            db.commit()
            db.refresh(subaccount)
    except Exception:
        db.rollback()
        raise

    return subaccount
