"""Subaccount access management endpoints."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from plura.core.deps import get_auth_context, get_db, get_principal
from plura.db.enums import ROLES_CAN_MANAGE_ACCESS
from plura.schemas.auth import AuthContext, PermissionRead, Principal
from plura.schemas.permission import AccessUpdate, UserPermissionsRead
from plura.services import permission_service

router = APIRouter()


def _agency_owns_subaccount(context: AuthContext, subaccount_id: UUID) -> bool:
    if context.agency is None:
        return False
    return any(sub.id == subaccount_id for sub in context.agency.subaccounts)


@router.put("/subaccounts/{subaccount_id}/permissions", response_model=PermissionRead)
async def set_subaccount_access(
    subaccount_id: UUID,
    body: AccessUpdate,
    principal: Principal = Depends(get_principal),
    db: Session = Depends(get_db),
    context: AuthContext = Depends(get_auth_context),
):
    """Grant or revoke a user's access to a subaccount (agency owner/admin)."""
    if context.role not in ROLES_CAN_MANAGE_ACCESS or not _agency_owns_subaccount(
        context, subaccount_id
    ):
        raise HTTPException(status_code=403, detail="Not authorized")

    return permission_service.set_access(
        db,
        permission_id=body.permission_id,
        user_email=body.user_email,
        subaccount_id=subaccount_id,
        access=body.access,
        agency_id=context.agency_id,
        actor=principal,
    )


@router.get("/users/{user_id}/permissions", response_model=UserPermissionsRead)
async def get_user_permissions(
    user_id: str,
    db: Session = Depends(get_db),
    context: AuthContext = Depends(get_auth_context),
):
    """A user's grants; visible to the user and to their agency's managers."""
    user = permission_service.get_user_permissions(db, user_id)
    if user is None:
        raise HTTPException(status_code=404, detail="User not found")

    is_self = user.id == context.user_id
    is_manager = (
        context.role in ROLES_CAN_MANAGE_ACCESS
        and context.agency_id is not None
        and user.agency_id == context.agency_id
    )
    if not (is_self or is_manager):
        raise HTTPException(status_code=403, detail="Not authorized")
    return user
