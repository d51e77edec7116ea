"""Job-related enums."""

from enum import Enum


class JobType(str, Enum):
    """Types of outbox jobs."""

    IDENTITY_ROLE_SYNC = "identity_role_sync"


class JobStatus(str, Enum):
    """Job execution status."""

    PENDING = "pending"
    RUNNING = "running"
    COMPLETED = "completed"
    FAILED = "failed"
