"""Tenant models: agencies, their subaccounts and sidebar menu options."""

from __future__ import annotations

from typing import TYPE_CHECKING

import uuid
from datetime import datetime

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Uuid,
    func,
    true,
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from plura.db.base import Base
from plura.db.models._defaults import utcnow

if TYPE_CHECKING:
    from plura.db.models.auth import Invitation, Permission, User
    from plura.db.models.notifications import Notification


class Agency(Base):
    """
    Tenant root.

    Owns its subaccounts, sidebar options, invitations and notifications;
    deleting an agency cascades to all of them and to its users.
    """

    __tablename__ = "agencies"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    company_email: Mapped[str] = mapped_column(String(320), nullable=False)
    company_phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    agency_logo: Mapped[str | None] = mapped_column(Text, nullable=True)
    white_label: Mapped[bool] = mapped_column(
        Boolean, default=True, server_default=true(), nullable=False
    )
    address: Mapped[str | None] = mapped_column(String(255), nullable=True)
    city: Mapped[str | None] = mapped_column(String(100), nullable=True)
    zip_code: Mapped[str | None] = mapped_column(String(20), nullable=True)
    state: Mapped[str | None] = mapped_column(String(100), nullable=True)
    country: Mapped[str | None] = mapped_column(String(100), nullable=True)
    goal: Mapped[int] = mapped_column(Integer, default=5, server_default="5", nullable=False)
    # Billing provider customer reference (opaque; billing is handled elsewhere)
    customer_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        default=utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        default=utcnow, onupdate=utcnow, server_default=func.now(), nullable=False
    )

    # Relationships
    subaccounts: Mapped[list["SubAccount"]] = relationship(
        back_populates="agency",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="SubAccount.name",
    )
    users: Mapped[list["User"]] = relationship(
        back_populates="agency", cascade="all, delete-orphan", passive_deletes=True
    )
    sidebar_options: Mapped[list["SidebarOption"]] = relationship(
        back_populates="agency",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="SidebarOption.position",
    )
    invitations: Mapped[list["Invitation"]] = relationship(
        back_populates="agency", cascade="all, delete-orphan", passive_deletes=True
    )
    notifications: Mapped[list["Notification"]] = relationship(
        back_populates="agency", cascade="all, delete-orphan", passive_deletes=True
    )


class SubAccount(Base):
    """Workspace owned by exactly one agency."""

    __tablename__ = "subaccounts"
    __table_args__ = (Index("idx_subaccounts_agency_id", "agency_id"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    agency_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("agencies.id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    company_email: Mapped[str] = mapped_column(String(320), nullable=False)
    company_phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    sub_account_logo: Mapped[str | None] = mapped_column(Text, nullable=True)
    address: Mapped[str | None] = mapped_column(String(255), nullable=True)
    city: Mapped[str | None] = mapped_column(String(100), nullable=True)
    zip_code: Mapped[str | None] = mapped_column(String(20), nullable=True)
    state: Mapped[str | None] = mapped_column(String(100), nullable=True)
    country: Mapped[str | None] = mapped_column(String(100), nullable=True)
    created_at: Mapped[datetime] = mapped_column(
        default=utcnow, server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        default=utcnow, onupdate=utcnow, server_default=func.now(), nullable=False
    )

    # Relationships
    agency: Mapped["Agency"] = relationship(back_populates="subaccounts")
    sidebar_options: Mapped[list["SidebarOption"]] = relationship(
        back_populates="sub_account",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="SidebarOption.position",
    )
    permissions: Mapped[list["Permission"]] = relationship(
        back_populates="sub_account", cascade="all, delete-orphan", passive_deletes=True
    )
    notifications: Mapped[list["Notification"]] = relationship(
        back_populates="sub_account", cascade="all, delete-orphan", passive_deletes=True
    )


class SidebarOption(Base):
    """
    Menu entry rendered in the agency or subaccount sidebar.

    Constraint: belongs to exactly one of agency / subaccount.
    """

    __tablename__ = "sidebar_options"
    __table_args__ = (
        CheckConstraint(
            "(agency_id IS NULL) <> (sub_account_id IS NULL)",
            name="single_owner",
        ),
        Index("idx_sidebar_options_agency_id", "agency_id"),
        Index("idx_sidebar_options_sub_account_id", "sub_account_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    link: Mapped[str] = mapped_column(String(500), nullable=False)
    icon: Mapped[str] = mapped_column(String(50), nullable=False, default="info")
    position: Mapped[int] = mapped_column(Integer, default=0, server_default="0", nullable=False)
    agency_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("agencies.id", ondelete="CASCADE"), nullable=True
    )
    sub_account_id: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("subaccounts.id", ondelete="CASCADE"), nullable=True
    )
    created_at: Mapped[datetime] = mapped_column(
        default=utcnow, server_default=func.now(), nullable=False
    )

    agency: Mapped["Agency | None"] = relationship(back_populates="sidebar_options")
    sub_account: Mapped["SubAccount | None"] = relationship(back_populates="sidebar_options")
