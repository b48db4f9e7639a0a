"""
ClassSession model for scheduled class occurrences and their capacity counters.
"""

import uuid
from datetime import date, time

from sqlalchemy import CheckConstraint, Date, Enum, ForeignKey, Integer, Time, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base
from ..domain import SessionStatus


class ClassSessionRecord(Base):
    """A scheduled occurrence of a gym class."""

    __tablename__ = "class_sessions"

    gym_class_id: Mapped[uuid.UUID] = mapped_column(
        Uuid(as_uuid=True),
        ForeignKey("gym_classes.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    # Scheduling window
    session_date: Mapped[date] = mapped_column(Date, nullable=False, index=True)
    start_time: Mapped[time] = mapped_column(Time, nullable=False)
    end_time: Mapped[time] = mapped_column(Time, nullable=False)

    # Capacity management
    max_capacity: Mapped[int] = mapped_column(Integer, nullable=False)
    current_bookings: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    waitlist_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    checked_in_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    status: Mapped[SessionStatus] = mapped_column(
        Enum(SessionStatus),
        default=SessionStatus.SCHEDULED,
        nullable=False,
        index=True
    )

    # Optimistic locking for concurrency control
    version: Mapped[int] = mapped_column(Integer, default=1, nullable=False)

    __mapper_args__ = {"version_id_col": version}

    __table_args__ = (
        CheckConstraint("max_capacity > 0", name="ck_class_sessions_capacity_positive"),
        CheckConstraint(
            "current_bookings >= 0 AND current_bookings <= max_capacity",
            name="ck_class_sessions_bookings_within_capacity"
        ),
        CheckConstraint("waitlist_count >= 0", name="ck_class_sessions_waitlist_non_negative"),
        CheckConstraint("end_time > start_time", name="ck_class_sessions_time_window"),
    )

    def __repr__(self) -> str:
        return (
            f"<ClassSessionRecord(id={self.id}, date={self.session_date}, "
            f"bookings={self.current_bookings}/{self.max_capacity}, waitlist={self.waitlist_count})>"
        )
