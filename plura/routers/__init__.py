"""API routers."""

from plura.routers.agencies import router as agencies_router
from plura.routers.auth import router as auth_router
from plura.routers.invites import router as invites_router
from plura.routers.permissions import router as permissions_router

__all__ = [
    "agencies_router",
    "auth_router",
    "invites_router",
    "permissions_router",
]
