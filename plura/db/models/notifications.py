"""Activity log entries (append-only)."""

from __future__ import annotations

from typing import TYPE_CHECKING

import uuid
from datetime import datetime

from sqlalchemy import ForeignKey, Index, String, Text, Uuid, func
from sqlalchemy.orm import Mapped, mapped_column, relationship

from plura.db.base import Base
from plura.db.models._defaults import utcnow

if TYPE_CHECKING:
    from plura.db.models.auth import User
    from plura.db.models.tenancy import Agency, SubAccount


class Notification(Base):
    """
    Audit entry keyed to an agency, optionally a subaccount, and the acting user.

    Never updated or deleted by the application; rows only disappear through
    tenant cascades.
    """

    __tablename__ = "notifications"
    __table_args__ = (
        Index("idx_notifications_agency_created", "agency_id", "created_at"),
        Index("idx_notifications_sub_account_id", "sub_account_id"),
        Index("idx_notifications_user_id", "user_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    notification: Mapped[str] = mapped_column(Text, nullable=False)
    agency_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("agencies.id", ondelete="CASCADE"), nullable=False
    )
    sub_account_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("subaccounts.id", ondelete="CASCADE"), nullable=True
    )
    user_id: Mapped[str] = mapped_column(
        String(255), ForeignKey("users.id", ondelete="CASCADE"), nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        default=utcnow, server_default=func.now(), nullable=False
    )

    # Relationships
    agency: Mapped["Agency"] = relationship(back_populates="notifications")
    sub_account: Mapped["SubAccount | None"] = relationship(back_populates="notifications")
    user: Mapped["User"] = relationship(back_populates="notifications")
