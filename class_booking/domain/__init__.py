"""Domain structs and booking lifecycle rules."""

from .entities import (
    ACTIVE_BOOKING_STATUSES,
    Booking,
    BookingStatus,
    BookingWithSession,
    ClassSession,
    GymClass,
    Member,
    SessionStatus,
    Subscription,
    SubscriptionStatus,
    utcnow,
)
from . import booking_state_machine

__all__ = [
    "ACTIVE_BOOKING_STATUSES",
    "Booking",
    "BookingStatus",
    "BookingWithSession",
    "ClassSession",
    "GymClass",
    "Member",
    "SessionStatus",
    "Subscription",
    "SubscriptionStatus",
    "utcnow",
    "booking_state_machine",
]
