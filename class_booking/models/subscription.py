"""
Subscription and member models consumed by the booking core.
"""

import uuid
from datetime import date
from typing import Optional

from sqlalchemy import Date, Enum, ForeignKey, Integer, String, UniqueConstraint, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base
from ..domain import SubscriptionStatus


class MemberRecord(Base):
    """Member contact details."""

    __tablename__ = "members"

    user_id: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid(as_uuid=True), nullable=True, index=True)
    email: Mapped[str] = mapped_column(String(255), nullable=False)
    first_name: Mapped[str] = mapped_column(String(100), nullable=False)
    last_name: Mapped[str] = mapped_column(String(100), nullable=False)
    preferred_language: Mapped[str] = mapped_column(String(5), nullable=False, default="en")


class SubscriptionRecord(Base):
    """A member's plan with its remaining class allowance."""

    __tablename__ = "subscriptions"

    member_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("members.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    status: Mapped[SubscriptionStatus] = mapped_column(
        Enum(SubscriptionStatus),
        default=SubscriptionStatus.ACTIVE,
        nullable=False,
        index=True
    )

    end_date: Mapped[Optional[date]] = mapped_column(Date, nullable=True)

    # NULL means unlimited classes
    classes_remaining: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)


class UserPermissionRecord(Base):
    """A permission key granted to a user within a tenant."""

    __tablename__ = "user_permissions"

    user_id: Mapped[uuid.UUID] = mapped_column(Uuid(as_uuid=True), nullable=False, index=True)
    permission_key: Mapped[str] = mapped_column(String(100), nullable=False)

    __table_args__ = (
        UniqueConstraint("tenant_id", "user_id", "permission_key", name="uq_user_permissions_key"),
    )
