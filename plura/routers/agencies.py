"""Agency entry, provisioning and activity feed endpoints."""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.orm import Session

from plura.core.deps import (
    get_auth_context,
    get_db,
    get_identity_client,
    get_principal,
    require_agency_roles,
)
from plura.db.enums import (
    AGENCY_ROLES,
    ROLES_CAN_DELETE_AGENCY,
    ROLES_CAN_MANAGE_AGENCY,
)
from plura.schemas.agency import (
    AgencyCreate,
    AgencyRead,
    AgencyUpdate,
    SubAccountCreate,
    SubAccountRead,
)
from plura.schemas.auth import AuthContext, Principal
from plura.schemas.notification import NotificationRead
from plura.schemas.routing import EntryResponse
from plura.services import (
    activity_service,
    agency_service,
    auth_context_service,
    invite_service,
    routing_service,
)

logger = logging.getLogger(__name__)

router = APIRouter()


@router.get("/agency/entry", response_model=EntryResponse)
async def agency_entry(
    plan: str | None = Query(None),
    state: str | None = Query(None),
    code: str | None = Query(None),
    principal: Principal = Depends(get_principal),
    db: Session = Depends(get_db),
    identity_client=Depends(get_identity_client),
):
    """
    Entry page decision.

    Accepts a pending invitation first (idempotent), then maps the caller's
    role and agency to a navigation outcome.
    """
    agency_id = invite_service.accept_invitation(
        db, principal, identity_client=identity_client
    )
    context = auth_context_service.resolve_context(db, principal.email)
    role = context.role if context else None

    outcome = routing_service.decide(role, agency_id, plan=plan, state=state, code=code)
    return EntryResponse(
        outcome=outcome.kind.value,
        agency_id=outcome.agency_id,
        path=outcome.location(),
    )


# =============================================================================
# Agencies
# =============================================================================


@router.post("/agencies", response_model=AgencyRead, status_code=201)
async def create_agency(
    body: AgencyCreate,
    principal: Principal = Depends(get_principal),
    db: Session = Depends(get_db),
    identity_client=Depends(get_identity_client),
):
    """Create an agency owned by the caller (or update it when `id` exists)."""
    agency = agency_service.upsert_agency(
        db, principal, body, identity_client=identity_client
    )
    if agency is None:
        raise HTTPException(status_code=400, detail="Company email is required")
    return agency


@router.patch("/agencies/{agency_id}", response_model=AgencyRead)
async def update_agency(
    agency_id: UUID,
    body: AgencyUpdate,
    db: Session = Depends(get_db),
    context: AuthContext = Depends(require_agency_roles(ROLES_CAN_MANAGE_AGENCY)),
):
    agency = agency_service.update_agency_details(db, agency_id, body)
    if agency is None:
        raise HTTPException(status_code=404, detail="Agency not found")
    return agency


@router.delete("/agencies/{agency_id}", status_code=204)
async def delete_agency(
    agency_id: UUID,
    db: Session = Depends(get_db),
    context: AuthContext = Depends(require_agency_roles(ROLES_CAN_DELETE_AGENCY)),
):
    """Delete the agency and everything it owns (owner only)."""
    if not agency_service.delete_agency(db, agency_id):
        raise HTTPException(status_code=404, detail="Agency not found")
    return Response(status_code=204)


@router.post(
    "/agencies/{agency_id}/subaccounts",
    response_model=SubAccountRead,
    status_code=201,
)
async def create_subaccount(
    agency_id: UUID,
    body: SubAccountCreate,
    principal: Principal = Depends(get_principal),
    db: Session = Depends(get_db),
    context: AuthContext = Depends(require_agency_roles(ROLES_CAN_MANAGE_AGENCY)),
):
    subaccount = agency_service.upsert_subaccount(db, agency_id, body, principal=principal)
    if subaccount is None:
        raise HTTPException(status_code=404, detail="Agency owner not found")
    return subaccount


# =============================================================================
# Activity feed
# =============================================================================


@router.get("/agencies/{agency_id}/notifications", response_model=list[NotificationRead])
async def list_notifications(
    agency_id: UUID,
    subaccount_id: UUID | None = Query(None),
    limit: int = Query(100, ge=1, le=500),
    db: Session = Depends(get_db),
    context: AuthContext = Depends(get_auth_context),
):
    """
    Activity feed, newest first.

    Agency roles see the whole agency; subaccount roles must name a
    subaccount they have access to.
    """
    if context.agency_id != agency_id:
        raise HTTPException(status_code=403, detail="Not authorized")
    if context.role not in AGENCY_ROLES:
        if subaccount_id is None or not context.can_see_subaccount(subaccount_id):
            raise HTTPException(status_code=403, detail="Not authorized")

    return activity_service.list_notifications(
        db, agency_id, subaccount_id=subaccount_id, limit=limit
    )
