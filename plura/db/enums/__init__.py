"""Enum definitions for application constants."""

from plura.db.enums.auth import InvitationStatus, Role, SidebarView
from plura.db.enums.jobs import JobStatus, JobType
from plura.db.enums.permissions import (
    AGENCY_ROLES,
    ROLES_CAN_DELETE_AGENCY,
    ROLES_CAN_INVITE,
    ROLES_CAN_MANAGE_ACCESS,
    ROLES_CAN_MANAGE_AGENCY,
    SUBACCOUNT_ROLES,
)

DEFAULT_JOB_STATUS: JobStatus = JobStatus.PENDING
DEFAULT_ROLE: Role = Role.SUBACCOUNT_USER

__all__ = [
    "AGENCY_ROLES",
    "DEFAULT_JOB_STATUS",
    "DEFAULT_ROLE",
    "InvitationStatus",
    "JobStatus",
    "JobType",
    "ROLES_CAN_DELETE_AGENCY",
    "ROLES_CAN_INVITE",
    "ROLES_CAN_MANAGE_ACCESS",
    "ROLES_CAN_MANAGE_AGENCY",
    "Role",
    "SUBACCOUNT_ROLES",
    "SidebarView",
]
