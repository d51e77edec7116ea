"""Authorization context endpoints for the presentation layer."""

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from plura.core.deps import get_auth_context, get_db, get_principal
from plura.db.enums import SidebarView
from plura.schemas.auth import AuthContext, Principal, SidebarViewRead
from plura.services import auth_context_service

router = APIRouter()


@router.get("/context", response_model=AuthContext)
async def get_context(
    principal: Principal = Depends(get_principal),
    db: Session = Depends(get_db),
):
    """
    Resolve the caller's role and visible tenant scope.

    404 when the principal has no tenant record yet (not an error: the
    presentation layer shows onboarding).
    """
    context = auth_context_service.resolve_context(db, principal.email)
    if context is None:
        raise HTTPException(status_code=404, detail="User not found")
    return context


@router.get("/sidebar/{view}/{target_id}", response_model=SidebarViewRead)
async def get_sidebar(
    view: SidebarView,
    target_id: UUID,
    context: AuthContext = Depends(get_auth_context),
):
    """Sidebar for the agency or one of its subaccounts."""
    sidebar = auth_context_service.build_sidebar(context, view, target_id)
    if sidebar is None:
        raise HTTPException(status_code=404, detail="Not found")
    return sidebar
