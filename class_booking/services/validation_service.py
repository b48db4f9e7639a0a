"""
Booking eligibility checks: time overlap, subscription status and credits.
"""

import logging
from dataclasses import dataclass
from datetime import date
from typing import Optional
from uuid import UUID

from ..domain import ClassSession, GymClass, Subscription, booking_state_machine
from ..ports import UnitOfWork
from ..utils.exceptions import (
    NoActiveSubscriptionError,
    NoCreditsError,
    OwnershipError,
    SubscriptionNotActiveError,
    SubscriptionNotFoundError,
    ValidationError,
)

logger = logging.getLogger(__name__)

# Subscription failures reported as a reason rather than raised
ELIGIBILITY_ERRORS = (
    NoActiveSubscriptionError,
    SubscriptionNotFoundError,
    OwnershipError,
    SubscriptionNotActiveError,
    NoCreditsError,
)


@dataclass
class EligibilityResult:
    """Outcome of an eligibility check.

    ``subscription`` is the validated subscription to bind to the booking,
    or None when the class does not require one.
    """

    can_book: bool
    reason: Optional[str] = None
    subscription: Optional[Subscription] = None

    @classmethod
    def denied(cls, reason: str) -> "EligibilityResult":
        return cls(can_book=False, reason=reason)


class BookingValidationService:
    """Decides whether a member may book a session."""

    async def validate_booking_eligibility(
        self,
        uow: UnitOfWork,
        member_id: UUID,
        session: ClassSession,
        gym_class: GymClass,
        subscription_id: Optional[UUID] = None,
        today: Optional[date] = None,
    ) -> EligibilityResult:
        """
        Check overlap, subscription and credits for a prospective booking.

        Args:
            uow: Open unit of work of the booking's tenant
            member_id: Member requesting the booking
            session: Target session
            gym_class: Class the session belongs to
            subscription_id: Explicit subscription to use, if any
            today: Reference date for expiry checks

        Returns:
            EligibilityResult with the reason when booking is not allowed
        """
        conflict = await self._find_conflict(uow, member_id, session)
        if conflict is not None:
            return EligibilityResult.denied(conflict)

        if not gym_class.requires_subscription:
            return EligibilityResult(can_book=True)

        try:
            subscription = await self.validate_subscription_for_booking(
                uow,
                member_id,
                subscription_id,
                requires_class_availability=gym_class.deducts_class_from_plan,
                today=today,
            )
        except ELIGIBILITY_ERRORS as e:
            logger.info(f"Member {member_id} not eligible for session {session.id}: {e.message}")
            return EligibilityResult.denied(e.message)

        return EligibilityResult(can_book=True, subscription=subscription)

    async def validate_no_overlapping_bookings(
        self,
        uow: UnitOfWork,
        member_id: UUID,
        session: ClassSession,
    ) -> None:
        """Raise ValidationError if the member already holds an overlapping booking."""
        conflict = await self._find_conflict(uow, member_id, session)
        if conflict is not None:
            raise ValidationError(conflict)

    async def validate_subscription_for_booking(
        self,
        uow: UnitOfWork,
        member_id: UUID,
        subscription_id: Optional[UUID] = None,
        requires_class_availability: bool = True,
        today: Optional[date] = None,
    ) -> Subscription:
        """
        Resolve and validate the subscription a booking will use.

        Args:
            uow: Open unit of work of the booking's tenant
            member_id: Member the subscription must belong to
            subscription_id: Explicit subscription; the member's active one if omitted
            requires_class_availability: Whether at least one class must remain
            today: Reference date for expiry checks

        Returns:
            The validated subscription

        Raises:
            SubscriptionNotFoundError: Explicit id given but missing
            NoActiveSubscriptionError: No id given and the member has none active
            OwnershipError: Subscription belongs to another member
            SubscriptionNotActiveError: Subscription is not active or has expired
            NoCreditsError: No classes remaining and availability is required
        """
        if subscription_id is not None:
            subscription = await uow.subscriptions.find_by_id(subscription_id)
            if subscription is None:
                raise SubscriptionNotFoundError(subscription_id)
        else:
            subscription = await uow.subscriptions.find_active_by_member_id(member_id)
            if subscription is None:
                raise NoActiveSubscriptionError(member_id)

        if subscription.member_id != member_id:
            raise OwnershipError()

        if not subscription.is_active(today):
            raise SubscriptionNotActiveError(
                subscription.id,
                subscription.status.value,
                expired=subscription.is_expired(today),
            )

        if requires_class_availability and not subscription.has_classes_available():
            raise NoCreditsError(subscription.id)

        return subscription

    async def _find_conflict(
        self,
        uow: UnitOfWork,
        member_id: UUID,
        session: ClassSession,
    ) -> Optional[str]:
        existing = await uow.bookings.find_active_bookings_with_sessions_for_member_on_date(
            member_id, session.session_date
        )
        for item in existing:
            if item.session.id == session.id:
                continue
            if booking_state_machine.sessions_overlap(item.session, session):
                return (
                    f"Booking conflicts with {item.gym_class.name} "
                    f"({item.session.start_time:%H:%M}-{item.session.end_time:%H:%M})"
                )
        return None

