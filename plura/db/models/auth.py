"""Membership models: users, subaccount access grants and invitations."""

from __future__ import annotations

from typing import TYPE_CHECKING

import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    String,
    Text,
    UniqueConstraint,
    Uuid,
    false,
    func,
    text,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from plura.db.base import Base
from plura.db.enums import DEFAULT_ROLE, InvitationStatus, Role
from plura.db.models._defaults import utcnow

if TYPE_CHECKING:
    from plura.db.models.notifications import Notification
    from plura.db.models.tenancy import Agency, SubAccount


_ROLE_VALUES = ", ".join(f"'{role.value}'" for role in Role)
_OWNER_ONLY = text(f"role = '{Role.AGENCY_OWNER.value}'")


class User(Base):
    """
    Tenant member.

    Keyed by the identity provider's subject; email is the stable identity
    matched against verified principals. A user belongs to at most one agency.

    Constraint: partial UNIQUE(agency_id) WHERE role = 'AGENCY_OWNER'
    enforces ONE OWNER PER AGENCY.
    """

    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint(f"role IN ({_ROLE_VALUES})", name="role_valid"),
        Index(
            "uq_users_agency_owner",
            "agency_id",
            unique=True,
            postgresql_where=_OWNER_ONLY,
            sqlite_where=_OWNER_ONLY,
        ),
        Index("idx_users_agency_id", "agency_id"),
    )

    id: Mapped[str] = mapped_column(String(255), primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str] = mapped_column(String(320), unique=True, nullable=False)
    avatar_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    role: Mapped[str] = mapped_column(
        String(50), default=DEFAULT_ROLE.value, nullable=False
    )
    agency_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("agencies.id", ondelete="CASCADE"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        default=utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        default=utcnow, onupdate=utcnow, server_default=func.now(), nullable=False
    )

    # Relationships
    agency: Mapped["Agency | None"] = relationship(back_populates="users")
    permissions: Mapped[list["Permission"]] = relationship(
        back_populates="user", cascade="all, delete-orphan", passive_deletes=True
    )
    notifications: Mapped[list["Notification"]] = relationship(
        back_populates="user", cascade="all, delete-orphan", passive_deletes=True
    )


class Permission(Base):
    """
    Grants a user visibility into one subaccount.

    Keyed by user email (reference, not ownership).
    Constraint: UNIQUE(email, sub_account_id) - one row per pair, mutations upsert.
    """

    __tablename__ = "permissions"
    __table_args__ = (
        UniqueConstraint("email", "sub_account_id", name="uq_permissions_email_subaccount"),
        Index("idx_permissions_sub_account_id", "sub_account_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    email: Mapped[str] = mapped_column(
        String(320),
        ForeignKey("users.email", ondelete="CASCADE", onupdate="CASCADE"),
        nullable=False,
    )
    sub_account_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("subaccounts.id", ondelete="CASCADE"), nullable=False
    )
    access: Mapped[bool] = mapped_column(
        Boolean, default=False, server_default=false(), nullable=False
    )

    # Relationships
    user: Mapped["User"] = relationship(back_populates="permissions")
    sub_account: Mapped["SubAccount"] = relationship(back_populates="permissions")


class Invitation(Base):
    """
    Pending offer of agency membership.

    Constraint: One invitation per email GLOBALLY.
    Acceptance deletes the row; deletion is the completion marker.
    """

    __tablename__ = "invitations"
    __table_args__ = (
        CheckConstraint(f"role IN ({_ROLE_VALUES})", name="role_valid"),
        Index("idx_invitations_agency_id", "agency_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    email: Mapped[str] = mapped_column(String(320), unique=True, nullable=False)
    agency_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("agencies.id", ondelete="CASCADE"), nullable=False
    )
    role: Mapped[str] = mapped_column(
        String(50), default=DEFAULT_ROLE.value, nullable=False
    )
    status: Mapped[str] = mapped_column(
        String(20), default=InvitationStatus.PENDING.value, nullable=False
    )
    created_at: Mapped[datetime] = mapped_column(
        default=utcnow, server_default=func.now(), nullable=False
    )

    agency: Mapped["Agency"] = relationship(back_populates="invitations")
