"""
Booking model for class session reservations and waitlist entries.
"""

import uuid
from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, CheckConstraint, DateTime, Enum, ForeignKey, Index, Integer, String, Text, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base
from ..domain import BookingStatus


class BookingRecord(Base):
    """A member's booking for a class session."""

    __tablename__ = "class_bookings"

    # Foreign key relationships
    session_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("class_sessions.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    member_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("members.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    subscription_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("subscriptions.id", ondelete="SET NULL"),
        nullable=True
    )

    status: Mapped[BookingStatus] = mapped_column(
        Enum(BookingStatus),
        nullable=False,
        index=True
    )

    # Only meaningful while WAITLISTED
    waitlist_position: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    class_deducted: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Lifecycle timestamps
    booked_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    checked_in_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    cancelled_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)
    promoted_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True), nullable=True)

    cancellation_reason: Mapped[Optional[str]] = mapped_column(String(500), nullable=True)
    notes: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    booked_by: Mapped[Optional[uuid.UUID]] = mapped_column(Uuid(as_uuid=True), nullable=True)

    __table_args__ = (
        CheckConstraint(
            "waitlist_position IS NULL OR waitlist_position > 0",
            name="ck_class_bookings_waitlist_position_positive"
        ),
        Index("ix_class_bookings_session_member", "session_id", "member_id"),
        Index("ix_class_bookings_session_status_position", "session_id", "status", "waitlist_position"),
    )

    def __repr__(self) -> str:
        """String representation of the booking."""
        return (
            f"<BookingRecord(id={self.id}, member_id={self.member_id}, "
            f"session_id={self.session_id}, status={self.status.value})>"
        )
