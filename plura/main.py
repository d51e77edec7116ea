"""FastAPI application entry point."""
import logging

from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from sqlalchemy import text

from plura.core.config import settings
from plura.core.errors import NotAuthorizedError, PluraServiceError, StoreUnavailableError
from plura.db.session import engine

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)

# ============================================================================
# Sentry Integration (optional, for production error tracking)
# ============================================================================

if settings.SENTRY_DSN and settings.ENV != "dev":
    import sentry_sdk
    from sentry_sdk.integrations.fastapi import FastApiIntegration
    from sentry_sdk.integrations.sqlalchemy import SqlalchemyIntegration

    sentry_sdk.init(
        dsn=settings.SENTRY_DSN,
        environment=settings.ENV,
        integrations=[
            FastApiIntegration(transaction_style="endpoint"),
            SqlalchemyIntegration(),
        ],
        traces_sample_rate=0.1,  # 10% of requests for performance monitoring
        send_default_pii=False,  # Don't send PII to Sentry
    )
    logger.info("Sentry initialized for error tracking")


# ============================================================================
# FastAPI App
# ============================================================================

app = FastAPI(
    title="Plura API",
    description="Multi-tenant agency and subaccount membership API",
    version=settings.VERSION,
    docs_url="/docs" if settings.ENV == "dev" else None,
    redoc_url="/redoc" if settings.ENV == "dev" else None,
)

# CORS middleware - must be added before routers
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=True,  # Required for cookies
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Content-Type", "Authorization"],
)


# ============================================================================
# Service error mapping
# ============================================================================

@app.exception_handler(PluraServiceError)
async def service_error_handler(request: Request, exc: PluraServiceError):
    headers = {}
    if isinstance(exc, StoreUnavailableError):
        headers["Retry-After"] = "1"
    # Never leak which resource exists in another tenant
    detail = "Not authorized" if isinstance(exc, NotAuthorizedError) else str(exc)
    if exc.status_code >= 500:
        logger.warning("%s on %s %s", type(exc).__name__, request.method, request.url.path)
    return JSONResponse(
        status_code=exc.status_code,
        content={"detail": detail, "retryable": exc.retryable},
        headers=headers,
    )


# ============================================================================
# Routers
# ============================================================================

from plura.routers import auth, agencies, invites, permissions

app.include_router(auth.router, prefix="/auth", tags=["auth"])
app.include_router(agencies.router, tags=["agencies"])
app.include_router(invites.router, tags=["invites"])
app.include_router(permissions.router, tags=["permissions"])


# ============================================================================
# Health Check
# ============================================================================

@app.get("/health")
def health():
    """
    Health check endpoint.

    Verifies database connectivity and returns environment info.
    """
    with engine.connect() as conn:
        conn.execute(text("SELECT 1"))
    return {"status": "ok", "env": settings.ENV, "version": settings.VERSION}
