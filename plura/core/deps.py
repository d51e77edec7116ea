"""FastAPI dependencies for authentication, authorization, and database access."""

from typing import Generator
from uuid import UUID

import jwt
from fastapi import Depends, HTTPException, Request
from sqlalchemy.orm import Session

from plura.core.config import settings
from plura.core.security import decode_principal_token, principal_from_claims
from plura.db.session import SessionLocal
from plura.schemas.auth import AuthContext, Principal


def get_db() -> Generator[Session, None, None]:
    """
    Database session dependency.

    Yields a database session and ensures it's closed after the request.
    """
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def _extract_token(request: Request) -> str | None:
    header = request.headers.get("Authorization", "")
    scheme, _, token = header.partition(" ")
    if scheme.lower() == "bearer" and token:
        return token.strip()
    return request.cookies.get(settings.COOKIE_NAME)


def get_principal(request: Request) -> Principal:
    """
    Verified identity-provider principal (bearer header or session cookie).

    Raises:
        HTTPException 401: Missing or invalid token
    """
    token = _extract_token(request)
    if not token:
        raise HTTPException(status_code=401, detail="Not authenticated")

    try:
        return principal_from_claims(decode_principal_token(token))
    except jwt.InvalidTokenError:
        raise HTTPException(status_code=401, detail="Invalid session")


def get_identity_client():
    """Identity provider client (overridden in tests)."""
    from plura.services.identity_service import IdentityProviderClient

    return IdentityProviderClient()


def get_auth_context(
    principal: Principal = Depends(get_principal),
    db: Session = Depends(get_db),
) -> AuthContext:
    """
    Resolved tenant context for the caller.

    This is the PRIMARY auth dependency for tenant endpoints.

    Raises:
        HTTPException 401: Not authenticated
        HTTPException 403: Principal has no tenant record
    """
    # Import here to avoid circular imports
    from plura.services.auth_context_service import resolve_context

    context = resolve_context(db, principal.email)
    if context is None:
        raise HTTPException(status_code=403, detail="Not authorized")
    return context


def require_agency_roles(allowed_roles: set):
    """
    Dependency factory for agency-scoped, role-based authorization.

    The caller must belong to the agency in the `agency_id` path parameter
    and hold one of the allowed roles.

    Usage:
        @router.post("/{agency_id}/x", dependencies=[Depends(require_agency_roles(ROLES_CAN_INVITE))])
    """
    def dependency(
        agency_id: UUID,
        context: AuthContext = Depends(get_auth_context),
    ) -> AuthContext:
        if context.agency_id != agency_id or context.role not in allowed_roles:
            raise HTTPException(status_code=403, detail="Not authorized")
        return context
    return dependency
