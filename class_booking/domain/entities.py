"""
Plain data structs for sessions, classes, bookings, subscriptions and members.

These carry no persistence behaviour. All state changes go through the
transition functions in ``booking_state_machine`` and are written back with
an explicit repository ``save()``.
"""

import enum
import uuid
from dataclasses import dataclass, field
from datetime import date, datetime, time, timezone
from decimal import Decimal
from typing import Optional


def utcnow() -> datetime:
    """Current time as a timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


class SessionStatus(enum.Enum):
    """Enumeration for class session status."""
    SCHEDULED = "scheduled"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class BookingStatus(enum.Enum):
    """Enumeration for booking status."""
    CONFIRMED = "confirmed"
    WAITLISTED = "waitlisted"
    CHECKED_IN = "checked_in"
    CANCELLED = "cancelled"
    NO_SHOW = "no_show"


ACTIVE_BOOKING_STATUSES = (BookingStatus.CONFIRMED, BookingStatus.WAITLISTED)


class SubscriptionStatus(enum.Enum):
    """Enumeration for subscription status."""
    ACTIVE = "active"
    FROZEN = "frozen"
    EXPIRED = "expired"
    CANCELLED = "cancelled"
    PENDING_PAYMENT = "pending_payment"
    PAST_DUE = "past_due"
    SUSPENDED = "suspended"
    PAUSED = "paused"


@dataclass
class GymClass:
    """Class definition holding the capacity and credit policy for its sessions."""

    id: uuid.UUID
    tenant_id: uuid.UUID
    name: str
    max_capacity: int = 20
    waitlist_enabled: bool = True
    max_waitlist_size: int = 5
    requires_subscription: bool = True
    deducts_class_from_plan: bool = True
    cancellation_deadline_hours: int = 2
    late_cancellation_fee: Optional[Decimal] = None


@dataclass
class ClassSession:
    """A single scheduled occurrence of a gym class."""

    id: uuid.UUID
    tenant_id: uuid.UUID
    gym_class_id: uuid.UUID
    session_date: date
    start_time: time
    end_time: time
    max_capacity: int
    current_bookings: int = 0
    waitlist_count: int = 0
    checked_in_count: int = 0
    status: SessionStatus = SessionStatus.SCHEDULED
    version: int = 1

    def starts_at(self) -> datetime:
        return datetime.combine(self.session_date, self.start_time, tzinfo=timezone.utc)

    def ends_at(self) -> datetime:
        return datetime.combine(self.session_date, self.end_time, tzinfo=timezone.utc)

    def has_available_spots(self) -> bool:
        return self.current_bookings < self.max_capacity

    def can_join_waitlist(self, max_waitlist_size: int) -> bool:
        return self.waitlist_count < max_waitlist_size


@dataclass
class Booking:
    """A member's claim on a session, either confirmed or waitlisted."""

    tenant_id: uuid.UUID
    session_id: uuid.UUID
    member_id: uuid.UUID
    status: BookingStatus
    id: uuid.UUID = field(default_factory=uuid.uuid4)
    subscription_id: Optional[uuid.UUID] = None
    waitlist_position: Optional[int] = None
    class_deducted: bool = False
    booked_at: datetime = field(default_factory=utcnow)
    checked_in_at: Optional[datetime] = None
    cancelled_at: Optional[datetime] = None
    cancellation_reason: Optional[str] = None
    promoted_at: Optional[datetime] = None
    notes: Optional[str] = None
    booked_by: Optional[uuid.UUID] = None

    @property
    def is_active(self) -> bool:
        """Check if the booking still holds a spot or a waitlist position."""
        return self.status in ACTIVE_BOOKING_STATUSES

    @property
    def is_confirmed(self) -> bool:
        return self.status == BookingStatus.CONFIRMED

    @property
    def is_waitlisted(self) -> bool:
        return self.status == BookingStatus.WAITLISTED


@dataclass
class Subscription:
    """A member's plan, read and written through the subscription store.

    ``classes_remaining`` of ``None`` means the plan has unlimited classes.
    """

    id: uuid.UUID
    tenant_id: uuid.UUID
    member_id: uuid.UUID
    status: SubscriptionStatus = SubscriptionStatus.ACTIVE
    end_date: Optional[date] = None
    classes_remaining: Optional[int] = None

    def is_expired(self, today: Optional[date] = None) -> bool:
        if self.status == SubscriptionStatus.EXPIRED:
            return True
        if self.end_date is None:
            return False
        return (today or utcnow().date()) > self.end_date

    def is_active(self, today: Optional[date] = None) -> bool:
        return self.status == SubscriptionStatus.ACTIVE and not self.is_expired(today)

    def has_classes_available(self) -> bool:
        return self.classes_remaining is None or self.classes_remaining > 0


@dataclass
class Member:
    """Member contact details needed for notifications and ownership checks."""

    id: uuid.UUID
    tenant_id: uuid.UUID
    email: str
    first_name: str
    last_name: str
    user_id: Optional[uuid.UUID] = None
    preferred_language: str = "en"

    @property
    def full_name(self) -> str:
        return f"{self.first_name} {self.last_name}".strip()


@dataclass(frozen=True)
class BookingWithSession:
    """An active booking joined with its session and class, used for overlap checks."""

    booking: Booking
    session: ClassSession
    gym_class: GymClass
