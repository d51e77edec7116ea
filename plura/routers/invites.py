"""Team invitation endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from plura.core.deps import get_db, require_agency_roles
from plura.db.enums import ROLES_CAN_INVITE
from plura.schemas.auth import AuthContext
from plura.schemas.invite import InviteCreate, InviteRead
from plura.services import invite_service

router = APIRouter()


@router.post(
    "/agencies/{agency_id}/invitations",
    response_model=InviteRead,
    status_code=201,
)
async def create_invitation(
    agency_id: UUID,
    body: InviteCreate,
    db: Session = Depends(get_db),
    context: AuthContext = Depends(require_agency_roles(ROLES_CAN_INVITE)),
):
    """Invite an email into the agency (owner/admin only, never as owner)."""
    try:
        return invite_service.create_invitation(
            db, context, agency_id, body.email, body.role
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
