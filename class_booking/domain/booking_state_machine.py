"""
Booking lifecycle transitions and the counter updates that go with them.

Every change to a booking's status, a session's capacity counters or a
subscription's remaining classes happens through one of these functions.
Callers persist the touched structs afterwards.
"""

import uuid
from datetime import datetime, timedelta
from typing import Optional

from .entities import (
    Booking,
    BookingStatus,
    ClassSession,
    GymClass,
    Subscription,
    utcnow,
)
from ..utils.exceptions import InvalidStateError, NoCreditsError


# None stands for "no booking yet"
ALLOWED_TRANSITIONS = {
    None: {BookingStatus.CONFIRMED, BookingStatus.WAITLISTED},
    BookingStatus.CONFIRMED: {BookingStatus.CHECKED_IN, BookingStatus.CANCELLED, BookingStatus.NO_SHOW},
    BookingStatus.WAITLISTED: {BookingStatus.CONFIRMED, BookingStatus.CANCELLED},
    BookingStatus.CHECKED_IN: set(),
    BookingStatus.CANCELLED: set(),
    BookingStatus.NO_SHOW: set(),
}


def validate_transition(current: Optional[BookingStatus], target: BookingStatus) -> None:
    """Raise InvalidStateError unless ``current -> target`` is an allowed transition."""
    allowed = ALLOWED_TRANSITIONS.get(current, set())
    if target not in allowed:
        current_name = current.value if current else "none"
        raise InvalidStateError(
            f"Invalid booking state transition: {current_name} -> {target.value}",
            current_state=current_name,
            required_state=" or ".join(
                sorted(s.value for s, targets in ALLOWED_TRANSITIONS.items() if s and target in targets)
            ) or None,
        )


# Booking transitions

def create_confirmed(
    session: ClassSession,
    member_id: uuid.UUID,
    subscription_id: Optional[uuid.UUID] = None,
    booked_by: Optional[uuid.UUID] = None,
    notes: Optional[str] = None,
) -> Booking:
    """Create a CONFIRMED booking and take one spot from the session."""
    validate_transition(None, BookingStatus.CONFIRMED)
    increment_bookings(session)
    return Booking(
        tenant_id=session.tenant_id,
        session_id=session.id,
        member_id=member_id,
        subscription_id=subscription_id,
        status=BookingStatus.CONFIRMED,
        booked_by=booked_by,
        notes=notes,
    )


def create_waitlisted(
    session: ClassSession,
    member_id: uuid.UUID,
    subscription_id: Optional[uuid.UUID] = None,
    booked_by: Optional[uuid.UUID] = None,
    notes: Optional[str] = None,
) -> Booking:
    """Create a WAITLISTED booking at the back of the session's queue."""
    validate_transition(None, BookingStatus.WAITLISTED)
    increment_waitlist(session)
    return Booking(
        tenant_id=session.tenant_id,
        session_id=session.id,
        member_id=member_id,
        subscription_id=subscription_id,
        status=BookingStatus.WAITLISTED,
        waitlist_position=session.waitlist_count,
        booked_by=booked_by,
        notes=notes,
    )


def promote(booking: Booking, session: ClassSession, now: Optional[datetime] = None) -> None:
    """Move a waitlisted booking into a confirmed spot."""
    validate_transition(booking.status, BookingStatus.CONFIRMED)
    increment_bookings(session)
    decrement_waitlist(session)
    booking.status = BookingStatus.CONFIRMED
    booking.waitlist_position = None
    booking.promoted_at = now or utcnow()


def check_in(booking: Booking, session: ClassSession, now: Optional[datetime] = None) -> None:
    validate_transition(booking.status, BookingStatus.CHECKED_IN)
    booking.status = BookingStatus.CHECKED_IN
    booking.checked_in_at = now or utcnow()
    record_check_in(session)


def cancel(booking: Booking, reason: Optional[str] = None, now: Optional[datetime] = None) -> BookingStatus:
    """Cancel a booking and return the status it held before.

    Counter updates depend on the previous status and are left to the caller.
    """
    previous = booking.status
    validate_transition(previous, BookingStatus.CANCELLED)
    booking.status = BookingStatus.CANCELLED
    booking.cancelled_at = now or utcnow()
    booking.cancellation_reason = reason
    booking.waitlist_position = None
    return previous


def mark_no_show(booking: Booking) -> None:
    validate_transition(booking.status, BookingStatus.NO_SHOW)
    booking.status = BookingStatus.NO_SHOW


# Session counters

def increment_bookings(session: ClassSession) -> None:
    if session.current_bookings >= session.max_capacity:
        raise InvalidStateError(
            f"Session {session.id} is at capacity ({session.max_capacity})",
            current_state=f"{session.current_bookings}/{session.max_capacity}",
        )
    session.current_bookings += 1


def decrement_bookings(session: ClassSession) -> None:
    if session.current_bookings <= 0:
        raise InvalidStateError(f"Session {session.id} has no confirmed bookings to release")
    session.current_bookings -= 1


def increment_waitlist(session: ClassSession) -> None:
    session.waitlist_count += 1


def decrement_waitlist(session: ClassSession) -> None:
    if session.waitlist_count <= 0:
        raise InvalidStateError(f"Session {session.id} has an empty waitlist")
    session.waitlist_count -= 1


def record_check_in(session: ClassSession) -> None:
    session.checked_in_count += 1


# Subscription credits

def use_class(subscription: Subscription) -> None:
    """Debit one class; unlimited plans are left untouched."""
    if not subscription.has_classes_available():
        raise NoCreditsError(subscription.id)
    if subscription.classes_remaining is not None:
        subscription.classes_remaining -= 1


def refund_class(subscription: Subscription) -> None:
    if subscription.classes_remaining is not None:
        subscription.classes_remaining += 1


def deduct_for_booking(booking: Booking, subscription: Subscription) -> None:
    """Debit the booking's class exactly once."""
    if booking.class_deducted:
        return
    use_class(subscription)
    booking.class_deducted = True


def refund_for_booking(booking: Booking, subscription: Subscription) -> None:
    """Return the class debited for this booking, if any."""
    if not booking.class_deducted:
        return
    refund_class(subscription)
    booking.class_deducted = False


# Scheduling rules

def sessions_overlap(first: ClassSession, second: ClassSession) -> bool:
    """Half-open interval intersection; back-to-back sessions do not overlap."""
    return first.starts_at() < second.ends_at() and second.starts_at() < first.ends_at()


def is_late_cancellation(session: ClassSession, gym_class: GymClass, now: Optional[datetime] = None) -> bool:
    """True once the cancellation deadline before the session start has passed."""
    deadline = session.starts_at() - timedelta(hours=gym_class.cancellation_deadline_hours)
    return (now or utcnow()) >= deadline
