"""
Test configuration and fixtures.

Provides:
- Fresh in-memory database per test
- Principal token minting for authenticated tests
- HTTPX AsyncClient with dependency overrides
- Fake identity provider behind httpx.MockTransport
"""
import os
import uuid
from dataclasses import dataclass, field
from typing import AsyncGenerator, Generator

# Must be set before any plura module builds settings or the engine
os.environ["DATABASE_URL"] = "sqlite+pysqlite:///:memory:"
os.environ["JWT_SECRET"] = "test-principal-secret-0123456789abcdef"
os.environ["IDP_API_URL"] = ""
os.environ["ENV"] = "test"

import httpx
import jwt
import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.orm import Session, sessionmaker

import plura.db.models  # noqa: F401
from plura.core.config import settings
from plura.core.deps import get_db, get_identity_client
from plura.db.base import Base
from plura.db.models import Agency, SubAccount
from plura.db.session import build_engine
from plura.main import app
from plura.schemas.agency import AgencyCreate, SubAccountCreate
from plura.schemas.auth import Principal
from plura.services import agency_service
from plura.services.identity_service import IdentityProviderClient


# =============================================================================
# Database Fixtures
# =============================================================================

@pytest.fixture(scope="function")
def engine():
    """Isolated in-memory database with the full schema."""
    test_engine = build_engine("sqlite+pysqlite:///:memory:")
    Base.metadata.create_all(test_engine)
    yield test_engine
    test_engine.dispose()


@pytest.fixture(scope="function")
def db(engine) -> Generator[Session, None, None]:
    """Session bound to the per-test database. App code may commit freely."""
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    yield session
    session.close()


# =============================================================================
# Identity provider fake
# =============================================================================

@dataclass
class FakeIdentityProvider:
    """Records metadata pushes; answers 503 while `fail` is set."""
    fail: bool = False
    requests: list[httpx.Request] = field(default_factory=list)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.fail:
            return httpx.Response(503, json={"error": "unavailable"})
        return httpx.Response(200, json={"ok": True})

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)


@pytest.fixture(scope="function")
def identity_provider() -> FakeIdentityProvider:
    return FakeIdentityProvider()


@pytest.fixture(scope="function")
def identity_client(identity_provider: FakeIdentityProvider) -> IdentityProviderClient:
    return IdentityProviderClient(
        base_url="https://idp.test/v1",
        api_key="test-idp-key",
        timeout=1.0,
        transport=identity_provider.transport,
    )


# =============================================================================
# Principals and tenants
# =============================================================================

def make_principal(
    first_name: str = "Test",
    last_name: str = "User",
    email: str | None = None,
) -> Principal:
    suffix = uuid.uuid4().hex[:8]
    return Principal(
        id=f"user_{suffix}",
        email=email or f"{first_name.lower()}-{suffix}@example.com",
        first_name=first_name,
        last_name=last_name,
    )


def mint_token(principal: Principal, secret: str | None = None) -> str:
    claims = {
        "sub": principal.id,
        "email": principal.email,
        "given_name": principal.first_name,
        "family_name": principal.last_name,
    }
    return jwt.encode(claims, secret or settings.JWT_SECRET, algorithm="HS256")


def auth_headers(principal: Principal) -> dict[str, str]:
    return {"Authorization": f"Bearer {mint_token(principal)}"}


@pytest.fixture(scope="function")
def principal_factory():
    """Build unique principals: principal_factory("Jane", "Doe")."""
    return make_principal


@pytest.fixture(scope="function")
def headers_for():
    """Bearer headers for a principal: headers_for(principal)."""
    return auth_headers


@pytest.fixture(scope="function")
def token_for():
    """Raw principal token: token_for(principal)."""
    return mint_token


@dataclass
class Tenant:
    """An agency with its owner principal and two subaccounts."""
    agency: Agency
    owner: Principal
    subaccounts: list[SubAccount]


@pytest.fixture(scope="function")
def owner() -> Principal:
    return make_principal("Olivia", "Owner")


@pytest.fixture(scope="function")
def tenant(db: Session, owner: Principal, identity_client: IdentityProviderClient) -> Tenant:
    """Agency provisioned through the service layer (owner, sidebars, grants)."""
    agency = agency_service.upsert_agency(
        db,
        owner,
        AgencyCreate(name="Acme Agency", company_email="hello@acme-agency.com", agency_logo="/acme.png"),
        identity_client=identity_client,
    )
    subaccounts = [
        agency_service.upsert_subaccount(
            db,
            agency.id,
            SubAccountCreate(name=name, company_email=f"{name.lower()}@acme-agency.com"),
            principal=owner,
        )
        for name in ("Alpha", "Beta")
    ]
    return Tenant(agency=agency, owner=owner, subaccounts=subaccounts)


# =============================================================================
# Client Fixtures
# =============================================================================

@pytest.fixture(scope="function")
async def client(
    db: Session,
    identity_client: IdentityProviderClient,
) -> AsyncGenerator[AsyncClient, None]:
    """AsyncClient wired to the per-test database and fake identity provider."""
    def override_get_db():
        yield db

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_identity_client] = lambda: identity_client

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as c:
        yield c

    app.dependency_overrides.clear()
