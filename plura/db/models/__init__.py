"""SQLAlchemy ORM models."""

from plura.db.models.auth import Invitation, Permission, User
from plura.db.models.jobs import Job
from plura.db.models.notifications import Notification
from plura.db.models.tenancy import Agency, SidebarOption, SubAccount

__all__ = [
    "Agency",
    "Invitation",
    "Job",
    "Notification",
    "Permission",
    "SidebarOption",
    "SubAccount",
    "User",
]
