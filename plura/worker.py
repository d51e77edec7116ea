"""
Background worker for processing outbox jobs.

Usage:
    python -m plura.worker

The worker polls for pending jobs and processes them. Identity role syncs
that could not be pushed during the request are retried here until they
succeed or run out of attempts.
"""

import asyncio
import logging

from sqlalchemy.orm import Session

from plura.core.config import settings
from plura.core.structured_logging import build_log_context
from plura.db.enums import JobType
from plura.db.models import Job
from plura.db.session import SessionLocal
from plura.services import identity_service, job_service

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s [%(levelname)s] %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger(__name__)

# Worker configuration
POLL_INTERVAL_SECONDS = settings.WORKER_POLL_INTERVAL
BATCH_SIZE = settings.WORKER_BATCH_SIZE


def process_job(
    db: Session,
    job: Job,
    identity_client: identity_service.IdentityProviderClient,
) -> bool:
    """Process a single job based on its type. Returns True on success."""
    logger.info("Processing job %s (type=%s, attempt=%s)", job.id, job.job_type, job.attempts + 1)

    if job.job_type == JobType.IDENTITY_ROLE_SYNC.value:
        return identity_service.dispatch_role_sync(db, job, identity_client)

    job_service.mark_job_running(db, job)
    job_service.mark_job_failed(db, job, f"Unknown job type: {job.job_type}")
    logger.warning("Job %s has unknown type %s", job.id, job.job_type)
    return False


def run_once(
    db: Session,
    identity_client: identity_service.IdentityProviderClient | None = None,
    limit: int = BATCH_SIZE,
) -> int:
    """Process one batch of due jobs. Returns the number that succeeded."""
    identity_client = identity_client or identity_service.IdentityProviderClient()
    jobs = job_service.get_pending_jobs(db, limit=limit)
    if jobs:
        logger.info("Found %s pending jobs", len(jobs))

    succeeded = 0
    for job in jobs:
        if process_job(db, job, identity_client):
            succeeded += 1
            logger.info("Job %s completed successfully", job.id)
        else:
            logger.error(
                "Job %s failed (status=%s)",
                job.id,
                job.status,
                extra=build_log_context(agency_id=job.agency_id),
            )
    return succeeded


async def worker_loop() -> None:
    """Main worker loop - polls for and processes pending jobs."""
    logger.info(
        "Worker starting (poll interval: %ss, batch size: %s)",
        POLL_INTERVAL_SECONDS,
        BATCH_SIZE,
    )

    if not settings.IDP_API_URL:
        logger.warning("IDP_API_URL not set - role syncs will be logged but not sent")

    identity_client = identity_service.IdentityProviderClient()
    while True:
        with SessionLocal() as db:
            try:
                run_once(db, identity_client)
            except Exception as e:
                db.rollback()
                logger.error("Error in worker loop: %s", type(e).__name__)

        await asyncio.sleep(POLL_INTERVAL_SECONDS)


def main() -> None:
    """Entry point for the worker."""
    try:
        asyncio.run(worker_loop())
    except KeyboardInterrupt:
        logger.info("Worker shutting down")


if __name__ == "__main__":
    main()
