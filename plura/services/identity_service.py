"""Identity provider role sync.

Role changes are written to the outbox in the same transaction as the
membership change, then pushed to the provider's user metadata API. A failed
push never undoes the membership change; the job stays pending and the
worker retries it.
"""

import logging

import httpx
from sqlalchemy.orm import Session

from plura.core.config import settings
from plura.core.errors import StoreUnavailableError
from plura.core.structured_logging import build_log_context
from plura.db.enums import JobType
from plura.db.models import Job
from plura.db.session import store_call
from plura.services import job_service

logger = logging.getLogger(__name__)


class IdentityProviderClient:
    """Thin client for the identity provider's user metadata endpoint."""

    def __init__(
        self,
        base_url: str | None = None,
        api_key: str | None = None,
        timeout: float | None = None,
        transport: httpx.BaseTransport | None = None,
    ):
        self.base_url = (settings.IDP_API_URL if base_url is None else base_url).rstrip("/")
        self.api_key = settings.IDP_API_KEY if api_key is None else api_key
        self.timeout = settings.IDP_TIMEOUT_SECONDS if timeout is None else timeout
        self._transport = transport

    @property
    def dry_run(self) -> bool:
        return not self.base_url

    def set_role(self, user_id: str, role: str) -> None:
        """
        Store the role in the user's private metadata.

        Raises:
            httpx.HTTPError: transport failure or timeout
            RuntimeError: provider answered with an error status
        """
        if self.dry_run:
            logger.info("[DRY RUN] Identity role sync skipped for user=%s role=%s", user_id, role)
            return

        with httpx.Client(transport=self._transport, timeout=self.timeout) as client:
            response = client.patch(
                f"{self.base_url}/users/{user_id}/metadata",
                headers={"Authorization": f"Bearer {self.api_key}"},
                json={"private_metadata": {"role": role}},
            )
        if response.status_code >= 400:
            raise RuntimeError(f"Identity provider error {response.status_code}")


def schedule_role_sync(
    db: Session,
    user_id: str,
    role: str,
    *,
    agency_id=None,
    idempotency_key: str | None = None,
) -> Job:
    """Queue a role push in the caller's transaction."""
    return job_service.schedule_job(
        db,
        JobType.IDENTITY_ROLE_SYNC,
        {"user_id": user_id, "role": role},
        agency_id=agency_id,
        idempotency_key=idempotency_key,
    )


def process_role_sync(job: Job, client: IdentityProviderClient) -> None:
    payload = job.payload or {}
    user_id = payload.get("user_id")
    role = payload.get("role")
    if not user_id or not role:
        raise RuntimeError("Missing user_id or role in job payload")
    client.set_role(user_id, role)


def dispatch_role_sync(
    db: Session,
    job: Job,
    client: IdentityProviderClient | None = None,
) -> bool:
    """
    Push one queued role change now.

    Returns True when the provider accepted it. On provider failure the job
    is returned to pending (or failed after max attempts) and False is
    returned; store failures still raise StoreUnavailableError.
    """
    client = client or IdentityProviderClient()
    with store_call(db):
        job_service.mark_job_running(db, job)

    try:
        process_role_sync(job, client)
    except (httpx.HTTPError, RuntimeError) as exc:
        logger.warning(
            "Identity role sync failed for job=%s: %s",
            job.id,
            type(exc).__name__,
            extra=build_log_context(agency_id=job.agency_id),
        )
        with store_call(db):
            job_service.mark_job_failed(db, job, f"{type(exc).__name__}: {exc}")
        return False

    with store_call(db):
        job_service.mark_job_completed(db, job)
    return True


def dispatch_best_effort(
    db: Session,
    job: Job,
    client: IdentityProviderClient | None = None,
) -> bool:
    """dispatch_role_sync for request paths: never raises, leaves the rest to the worker."""
    try:
        return dispatch_role_sync(db, job, client)
    except StoreUnavailableError:
        logger.warning("Identity role sync deferred to worker for job=%s", job.id)
        return False
