"""
GymClass model holding capacity and credit policy for class sessions.
"""

from decimal import Decimal
from typing import Optional

from sqlalchemy import Boolean, CheckConstraint, Integer, Numeric, String
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base


class GymClassRecord(Base):
    """Gym class definition (e.g. "Yoga Basics")."""

    __tablename__ = "gym_classes"

    name: Mapped[str] = mapped_column(String(255), nullable=False)

    # Capacity policy
    max_capacity: Mapped[int] = mapped_column(Integer, nullable=False, default=20)
    waitlist_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    max_waitlist_size: Mapped[int] = mapped_column(Integer, nullable=False, default=5)

    # Subscription policy
    requires_subscription: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    deducts_class_from_plan: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    # Cancellation policy
    cancellation_deadline_hours: Mapped[int] = mapped_column(Integer, nullable=False, default=2)
    late_cancellation_fee: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 2), nullable=True)

    __table_args__ = (
        CheckConstraint("max_capacity > 0", name="ck_gym_classes_capacity_positive"),
        CheckConstraint("max_waitlist_size >= 0", name="ck_gym_classes_waitlist_non_negative"),
    )
