"""Job service - outbox scheduling and status transitions for background jobs."""

from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from plura.db.enums import JobStatus, JobType
from plura.db.models import Job


def _now() -> datetime:
    return datetime.now(timezone.utc)


def schedule_job(
    db: Session,
    job_type: JobType,
    payload: dict,
    *,
    agency_id: UUID | None = None,
    run_at: datetime | None = None,
    idempotency_key: str | None = None,
) -> Job:
    """
    Add a pending job to the current transaction.

    The job commits (or rolls back) together with the change it describes.
    If idempotency_key is provided, a duplicate key fails with IntegrityError
    at flush time (caller should catch and handle).
    """
    job = Job(
        agency_id=agency_id,
        job_type=job_type.value,
        payload=payload,
        run_at=run_at or _now(),
        status=JobStatus.PENDING.value,
        idempotency_key=idempotency_key,
    )
    db.add(job)
    db.flush()  # Don't commit - let caller control transaction
    return job


def get_pending_jobs(
    db: Session,
    limit: int = 10,
    job_type: JobType | None = None,
) -> list[Job]:
    """
    Get pending jobs that are due to run.

    Returns jobs where status='pending' and run_at <= now, ordered by run_at.
    """
    query = select(Job).where(
        Job.status == JobStatus.PENDING.value,
        Job.run_at <= _now(),
    )
    if job_type:
        query = query.where(Job.job_type == job_type.value)
    return list(db.execute(query.order_by(Job.run_at).limit(limit)).scalars().all())


def mark_job_running(db: Session, job: Job) -> Job:
    """Mark a job as running (increment attempts)."""
    job.status = JobStatus.RUNNING.value
    job.attempts += 1
    db.commit()
    db.refresh(job)
    return job


def mark_job_completed(db: Session, job: Job) -> Job:
    job.status = JobStatus.COMPLETED.value
    job.completed_at = _now()
    job.last_error = None
    db.commit()
    db.refresh(job)
    return job


def mark_job_failed(db: Session, job: Job, error: str) -> Job:
    """
    Mark a job as failed.

    If attempts < max_attempts, reset to pending for retry.
    """
    job.last_error = error[:1000]
    if job.attempts < job.max_attempts:
        job.status = JobStatus.PENDING.value
    else:
        job.status = JobStatus.FAILED.value
    db.commit()
    db.refresh(job)
    return job
