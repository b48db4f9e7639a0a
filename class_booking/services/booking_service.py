"""
Booking service: creation, cancellation, check-in and no-show handling.

Every state-mutating use case runs in its own unit of work. The session row
is locked first (after the booking row where one exists), then the
subscription row, so concurrent requests on the same session serialize on
the database instead of overrunning capacity.
"""

import logging
from datetime import datetime
from decimal import Decimal
from typing import Awaitable, Callable, Dict, Iterable, List, Optional
from uuid import UUID

from ..config import Settings, get_settings
from ..domain import (
    ACTIVE_BOOKING_STATUSES,
    Booking,
    BookingStatus,
    ClassSession,
    GymClass,
    SessionStatus,
    booking_state_machine,
    utcnow,
)
from ..ports import NotificationGateway, UnitOfWork, UnitOfWorkFactory, WebhookEventPublisher
from ..schemas import BookingPayload, BulkOperationResult, CancelBookingCommand, CreateBookingCommand
from ..utils.exceptions import (
    BookingNotFoundError,
    ClassBookingError,
    DuplicateBookingError,
    GymClassNotFoundError,
    InvalidStateError,
    MemberNotFoundError,
    SessionFullError,
    SessionNotFoundError,
    ValidationError,
)
from ..utils.logging_config import log_business_event, tenant_log_context
from ..utils.retry import retry_on_concurrency_error
from .authorization import authorize_booking_cancellation
from .validation_service import BookingValidationService
from .waitlist_service import WaitlistService
from .webhook_service import BookingEvents

logger = logging.getLogger(__name__)


class BookingService:
    """Service for managing class bookings with concurrency control."""

    def __init__(
        self,
        uow_factory: UnitOfWorkFactory,
        notifications: NotificationGateway,
        webhooks: WebhookEventPublisher,
        validation: Optional[BookingValidationService] = None,
        waitlist: Optional[WaitlistService] = None,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.uow_factory = uow_factory
        self.notifications = notifications
        self.webhooks = webhooks
        self.validation = validation or BookingValidationService()
        self.waitlist = waitlist or WaitlistService(uow_factory, notifications)
        self.settings = settings or get_settings()
        self.clock = clock

    # Use cases

    @retry_on_concurrency_error()
    async def create_booking(self, tenant_id: UUID, command: CreateBookingCommand) -> Booking:
        """
        Book a member into a session, or onto its waitlist when it is full.

        Args:
            tenant_id: Tenant owning the session
            command: Session, member and optional subscription to book with

        Returns:
            The CONFIRMED or WAITLISTED booking

        Raises:
            SessionNotFoundError: Session does not exist
            InvalidStateError: Session is cancelled or no longer scheduled
            DuplicateBookingError: Member already holds an active booking for the session
            ValidationError: Eligibility check failed; ``reason`` says why
            SessionFullError: Capacity and waitlist are both exhausted
            ConcurrencyError: Retries were exhausted
        """
        with tenant_log_context(tenant_id):
            logger.info(f"Creating booking for member {command.member_id}, session {command.session_id}")

            async with self.uow_factory(tenant_id) as uow:
                session = await self._get_session(uow, command.session_id, for_update=True)
                if session.status == SessionStatus.CANCELLED:
                    raise InvalidStateError(
                        "Cannot book a cancelled session",
                        current_state=session.status.value,
                        required_state=SessionStatus.SCHEDULED.value,
                    )
                if session.status != SessionStatus.SCHEDULED:
                    raise InvalidStateError(
                        f"Session is {session.status.value} and no longer accepts bookings",
                        current_state=session.status.value,
                        required_state=SessionStatus.SCHEDULED.value,
                    )

                gym_class = await self._get_gym_class(uow, session.gym_class_id)
                member = await uow.members.find_by_id(command.member_id)
                if member is None:
                    raise MemberNotFoundError(command.member_id)

                # Checked under the session row lock
                if await uow.bookings.exists_active_for_session_and_member(
                    session.id, member.id, ACTIVE_BOOKING_STATUSES
                ):
                    raise DuplicateBookingError(session.id, member.id)

                eligibility = await self.validation.validate_booking_eligibility(
                    uow,
                    member.id,
                    session,
                    gym_class,
                    subscription_id=command.subscription_id,
                    today=self.clock().date(),
                )
                if not eligibility.can_book:
                    raise ValidationError(eligibility.reason)

                subscription_id = eligibility.subscription.id if eligibility.subscription else None

                if session.has_available_spots():
                    booking = booking_state_machine.create_confirmed(
                        session, member.id, subscription_id, command.booked_by, command.notes
                    )
                    event_type = BookingEvents.CONFIRMED
                elif gym_class.waitlist_enabled and session.can_join_waitlist(gym_class.max_waitlist_size):
                    booking = booking_state_machine.create_waitlisted(
                        session, member.id, subscription_id, command.booked_by, command.notes
                    )
                    event_type = BookingEvents.CREATED
                else:
                    raise SessionFullError(session.id)

                booking.booked_at = self.clock()
                await uow.bookings.save(booking)
                await uow.sessions.save(session)

                if booking.is_confirmed:
                    self._after_commit(
                        uow,
                        lambda: self.notifications.send_booking_confirmation(member, session, gym_class),
                        "booking confirmation",
                    )
                else:
                    position = booking.waitlist_position
                    self._after_commit(
                        uow,
                        lambda: self.notifications.send_waitlist_added(member, session, gym_class, position),
                        "waitlist added",
                    )
                self._publish_after_commit(uow, event_type, booking)

                await uow.commit()

            logger.info(
                f"Booking {booking.id} {booking.status.value} for member {member.id} "
                f"(session {session.id}: {session.current_bookings}/{session.max_capacity}, "
                f"waitlist {session.waitlist_count})"
            )
            log_business_event(
                "booking_created",
                {
                    "booking_id": str(booking.id),
                    "session_id": str(session.id),
                    "status": booking.status.value,
                    "waitlist_position": booking.waitlist_position,
                    "tenant_id": str(tenant_id),
                },
                user_id=str(command.booked_by) if command.booked_by else None,
            )
            return booking

    @retry_on_concurrency_error()
    async def cancel_booking(
        self,
        tenant_id: UUID,
        command: CancelBookingCommand,
        requesting_user_id: Optional[UUID] = None,
        *,
        trusted: bool = False,
    ) -> Booking:
        """
        Cancel a booking, releasing its spot or waitlist position.

        Cancelling a confirmed booking refunds a deducted class and promotes
        the head of the waitlist; cancelling a waitlisted booking closes the
        gap in the queue.

        Args:
            tenant_id: Tenant owning the booking
            command: Booking to cancel and optional reason
            requesting_user_id: User asking for the cancellation
            trusted: Internal caller acting without a user, audited and gated by settings

        Returns:
            The cancelled booking

        Raises:
            BookingNotFoundError: Booking does not exist
            AccessDeniedError: Requesting user may not cancel this booking
            InvalidStateError: Booking is not confirmed or waitlisted
            ConcurrencyError: Retries were exhausted
        """
        with tenant_log_context(tenant_id):
            logger.info(f"Cancelling booking {command.booking_id}")

            async with self.uow_factory(tenant_id) as uow:
                booking = await self._get_booking(uow, command.booking_id, for_update=True)

                decision = await authorize_booking_cancellation(
                    uow,
                    booking,
                    requesting_user_id,
                    self.settings.cancel_any_permission_key,
                    self.settings.allow_trusted_cancellation,
                    trusted=trusted,
                )
                decision.raise_if_denied(self.settings.cancel_any_permission_key)

                session = await self._get_session(uow, booking.session_id, for_update=True)
                gym_class = await self._get_gym_class(uow, session.gym_class_id)

                now = self.clock()
                previous_status = booking_state_machine.cancel(booking, command.reason, now)

                if previous_status == BookingStatus.CONFIRMED:
                    booking_state_machine.decrement_bookings(session)
                    if booking.class_deducted:
                        await self._refund_class(uow, booking)
                    await uow.bookings.save(booking)
                    await uow.sessions.save(session)
                    await self.waitlist.promote_from_waitlist(uow, session.id, session, gym_class)
                else:
                    booking_state_machine.decrement_waitlist(session)
                    await uow.bookings.save(booking)
                    await uow.sessions.save(session)
                    await self.waitlist.reorder_waitlist(uow, session.id)

                member = await uow.members.find_by_id(booking.member_id)
                if member is not None:
                    self._after_commit(
                        uow,
                        lambda: self.notifications.send_booking_cancellation(member, session, gym_class),
                        "booking cancellation",
                    )
                else:
                    logger.warning(f"Member {booking.member_id} not found; cancellation notification skipped")
                self._publish_after_commit(uow, BookingEvents.CANCELLED, booking)

                await uow.commit()

            late = booking_state_machine.is_late_cancellation(session, gym_class, now)
            if late:
                logger.info(
                    f"Booking {booking.id} cancelled inside the {gym_class.cancellation_deadline_hours}h deadline"
                )
            log_business_event(
                "booking_cancelled",
                {
                    "booking_id": str(booking.id),
                    "session_id": str(session.id),
                    "previous_status": previous_status.value,
                    "late_cancellation": late,
                    "authorization": decision.mode.value,
                    "tenant_id": str(tenant_id),
                },
                user_id=str(requesting_user_id) if requesting_user_id else None,
            )
            return booking

    @retry_on_concurrency_error()
    async def check_in_booking(self, tenant_id: UUID, booking_id: UUID) -> Booking:
        """
        Record attendance for a confirmed booking.

        Debits one class when the class deducts from the plan and the booking
        has not been debited yet. A subscription that can no longer pay is
        logged and the check-in still goes through.

        Raises:
            BookingNotFoundError: Booking does not exist
            InvalidStateError: Booking is not confirmed
        """
        with tenant_log_context(tenant_id):
            async with self.uow_factory(tenant_id) as uow:
                booking = await self._get_booking(uow, booking_id, for_update=True)
                if booking.status != BookingStatus.CONFIRMED:
                    raise InvalidStateError(
                        "Only confirmed bookings can be checked in",
                        current_state=booking.status.value,
                        required_state=BookingStatus.CONFIRMED.value,
                    )

                session = await self._get_session(uow, booking.session_id, for_update=True)
                gym_class = await self._get_gym_class(uow, session.gym_class_id)

                if gym_class.deducts_class_from_plan and booking.subscription_id and not booking.class_deducted:
                    subscription = await uow.subscriptions.find_by_id(booking.subscription_id, for_update=True)
                    today = self.clock().date()
                    if subscription is not None and subscription.is_active(today) and subscription.has_classes_available():
                        booking_state_machine.deduct_for_booking(booking, subscription)
                        await uow.subscriptions.save(subscription)
                    else:
                        logger.warning(
                            f"Subscription {booking.subscription_id} cannot cover booking {booking.id}; "
                            "checking in without deducting a class"
                        )

                booking_state_machine.check_in(booking, session, self.clock())
                await uow.bookings.save(booking)
                await uow.sessions.save(session)
                self._publish_after_commit(uow, BookingEvents.COMPLETED, booking)

                await uow.commit()

            logger.info(f"Booking {booking.id} checked in (class deducted: {booking.class_deducted})")
            return booking

    @retry_on_concurrency_error()
    async def mark_no_show(self, tenant_id: UUID, booking_id: UUID) -> Booking:
        """Mark a confirmed booking as a no-show. No class is refunded."""
        with tenant_log_context(tenant_id):
            async with self.uow_factory(tenant_id) as uow:
                booking = await self._get_booking(uow, booking_id, for_update=True)
                booking_state_machine.mark_no_show(booking)
                await uow.bookings.save(booking)
                self._publish_after_commit(uow, BookingEvents.NO_SHOW, booking)
                await uow.commit()

            logger.info(f"Booking {booking.id} marked as no-show")
            return booking

    @retry_on_concurrency_error()
    async def process_no_shows_for_session(self, tenant_id: UUID, session_id: UUID) -> int:
        """
        Mark every still-confirmed booking of a session as a no-show.

        Returns:
            Number of bookings marked
        """
        with tenant_log_context(tenant_id):
            async with self.uow_factory(tenant_id) as uow:
                await self._get_session(uow, session_id, for_update=True)
                confirmed = await uow.bookings.find_by_session(session_id, BookingStatus.CONFIRMED)
                for booking in confirmed:
                    booking_state_machine.mark_no_show(booking)
                    await uow.bookings.save(booking)
                    self._publish_after_commit(uow, BookingEvents.NO_SHOW, booking)
                await uow.commit()

            if confirmed:
                logger.info(f"Marked {len(confirmed)} no-shows for session {session_id}")
            return len(confirmed)

    @retry_on_concurrency_error()
    async def delete_booking(self, tenant_id: UUID, booking_id: UUID) -> None:
        """
        Permanently remove a booking that no longer holds a spot.

        Raises:
            BookingNotFoundError: Booking does not exist
            InvalidStateError: Booking is not cancelled or a no-show
        """
        with tenant_log_context(tenant_id):
            async with self.uow_factory(tenant_id) as uow:
                booking = await self._get_booking(uow, booking_id, for_update=True)
                if booking.status not in (BookingStatus.CANCELLED, BookingStatus.NO_SHOW):
                    raise InvalidStateError(
                        "Only cancelled or no-show bookings can be deleted",
                        current_state=booking.status.value,
                        required_state="cancelled or no_show",
                    )
                await uow.bookings.delete(booking.id)
                await uow.commit()

            logger.info(f"Booking {booking_id} deleted")

    # Cancellation policy

    @staticmethod
    def is_late_cancellation(
        session: ClassSession,
        gym_class: GymClass,
        now: Optional[datetime] = None,
    ) -> bool:
        """True once ``now`` is inside the class's cancellation deadline."""
        return booking_state_machine.is_late_cancellation(session, gym_class, now)

    async def get_late_cancellation_fee(self, tenant_id: UUID, gym_class_id: UUID) -> Optional[Decimal]:
        async with self.uow_factory(tenant_id) as uow:
            gym_class = await self._get_gym_class(uow, gym_class_id)
            return gym_class.late_cancellation_fee

    # Queries

    async def get_booking(self, tenant_id: UUID, booking_id: UUID) -> Booking:
        async with self.uow_factory(tenant_id) as uow:
            return await self._get_booking(uow, booking_id)

    async def get_bookings_by_session(self, tenant_id: UUID, session_id: UUID) -> List[Booking]:
        async with self.uow_factory(tenant_id) as uow:
            return await uow.bookings.find_by_session(session_id)

    async def get_confirmed_bookings_by_session(self, tenant_id: UUID, session_id: UUID) -> List[Booking]:
        async with self.uow_factory(tenant_id) as uow:
            return await uow.bookings.find_by_session(session_id, BookingStatus.CONFIRMED)

    async def get_waitlist_by_session(self, tenant_id: UUID, session_id: UUID) -> List[Booking]:
        return await self.waitlist.get_waitlist(tenant_id, session_id)

    async def get_bookings_by_member(
        self,
        tenant_id: UUID,
        member_id: UUID,
        limit: int = 50,
        offset: int = 0,
    ) -> List[Booking]:
        async with self.uow_factory(tenant_id) as uow:
            return await uow.bookings.find_by_member(member_id, limit=limit, offset=offset)

    async def get_upcoming_bookings_by_member(self, tenant_id: UUID, member_id: UUID, limit: int = 50) -> List[Booking]:
        async with self.uow_factory(tenant_id) as uow:
            return await uow.bookings.find_by_member(
                member_id, limit=limit, upcoming=True, today=self.clock().date()
            )

    async def get_past_bookings_by_member(self, tenant_id: UUID, member_id: UUID, limit: int = 50) -> List[Booking]:
        async with self.uow_factory(tenant_id) as uow:
            return await uow.bookings.find_by_member(
                member_id, limit=limit, upcoming=False, today=self.clock().date()
            )

    async def get_booking_count_for_session(self, tenant_id: UUID, session_id: UUID) -> int:
        async with self.uow_factory(tenant_id) as uow:
            return await uow.bookings.count_by_session_and_status(session_id)

    async def get_confirmed_count_for_session(self, tenant_id: UUID, session_id: UUID) -> int:
        async with self.uow_factory(tenant_id) as uow:
            return await uow.bookings.count_by_session_and_status(session_id, BookingStatus.CONFIRMED)

    async def get_waitlist_count_for_session(self, tenant_id: UUID, session_id: UUID) -> int:
        async with self.uow_factory(tenant_id) as uow:
            return await uow.bookings.count_by_session_and_status(session_id, BookingStatus.WAITLISTED)

    async def has_member_booked_session(self, tenant_id: UUID, session_id: UUID, member_id: UUID) -> bool:
        """True if the member holds a confirmed or waitlisted booking for the session."""
        async with self.uow_factory(tenant_id) as uow:
            return await uow.bookings.exists_active_for_session_and_member(
                session_id, member_id, ACTIVE_BOOKING_STATUSES
            )

    # Bulk operations

    async def bulk_create_bookings(
        self,
        tenant_id: UUID,
        session_id: UUID,
        member_ids: List[UUID],
        notes: Optional[str] = None,
        booked_by: Optional[UUID] = None,
    ) -> Dict[UUID, BulkOperationResult]:
        """
        Book several members into one session, each in its own transaction.

        Returns:
            Result per member id, in request order
        """
        self._check_bulk_size(member_ids)
        return await self._run_bulk(
            member_ids,
            lambda member_id: self.create_booking(
                tenant_id,
                CreateBookingCommand(session_id=session_id, member_id=member_id, notes=notes, booked_by=booked_by),
            ),
            "create",
        )

    async def bulk_cancel_bookings(
        self,
        tenant_id: UUID,
        booking_ids: List[UUID],
        reason: Optional[str] = None,
        requesting_user_id: Optional[UUID] = None,
        *,
        trusted: bool = False,
    ) -> Dict[UUID, BulkOperationResult]:
        """Cancel several bookings independently. Returns a result per booking id."""
        self._check_bulk_size(booking_ids)
        return await self._run_bulk(
            booking_ids,
            lambda booking_id: self.cancel_booking(
                tenant_id,
                CancelBookingCommand(booking_id=booking_id, reason=reason),
                requesting_user_id,
                trusted=trusted,
            ),
            "cancel",
        )

    async def bulk_check_in_bookings(self, tenant_id: UUID, booking_ids: List[UUID]) -> Dict[UUID, BulkOperationResult]:
        """Check in several bookings independently. Returns a result per booking id."""
        self._check_bulk_size(booking_ids)
        return await self._run_bulk(
            booking_ids,
            lambda booking_id: self.check_in_booking(tenant_id, booking_id),
            "check-in",
        )

    def _check_bulk_size(self, ids: List[UUID]) -> None:
        if len(ids) > self.settings.bulk_operation_limit:
            raise ValidationError(
                f"Bulk operations are limited to {self.settings.bulk_operation_limit} items"
            )

    async def _run_bulk(
        self,
        ids: Iterable[UUID],
        operation: Callable[[UUID], Awaitable[Booking]],
        name: str,
    ) -> Dict[UUID, BulkOperationResult]:
        results: Dict[UUID, BulkOperationResult] = {}
        for item_id in dict.fromkeys(ids):
            try:
                booking = await operation(item_id)
            except ClassBookingError as e:
                logger.info(f"Bulk {name} failed for {item_id}: {e.message}")
                results[item_id] = BulkOperationResult(
                    success=False, error_code=e.error_code.value, error_message=e.message
                )
            else:
                results[item_id] = BulkOperationResult(
                    success=True, booking=BookingPayload.model_validate(booking)
                )

        succeeded = sum(1 for r in results.values() if r.success)
        logger.info(f"Bulk {name}: {succeeded}/{len(results)} succeeded")
        return results

    # Helpers

    async def _get_session(self, uow: UnitOfWork, session_id: UUID, for_update: bool = False) -> ClassSession:
        session = await uow.sessions.find_by_id(session_id, for_update=for_update)
        if session is None:
            raise SessionNotFoundError(session_id)
        return session

    async def _get_gym_class(self, uow: UnitOfWork, gym_class_id: UUID) -> GymClass:
        gym_class = await uow.gym_classes.find_by_id(gym_class_id)
        if gym_class is None:
            raise GymClassNotFoundError(gym_class_id)
        return gym_class

    async def _get_booking(self, uow: UnitOfWork, booking_id: UUID, for_update: bool = False) -> Booking:
        booking = await uow.bookings.find_by_id(booking_id, for_update=for_update)
        if booking is None:
            raise BookingNotFoundError(booking_id)
        return booking

    async def _refund_class(self, uow: UnitOfWork, booking: Booking) -> None:
        if booking.subscription_id is None:
            booking.class_deducted = False
            return
        subscription = await uow.subscriptions.find_by_id(booking.subscription_id, for_update=True)
        if subscription is None:
            logger.warning(f"Subscription {booking.subscription_id} not found; class for booking {booking.id} not refunded")
            return
        booking_state_machine.refund_for_booking(booking, subscription)
        await uow.subscriptions.save(subscription)
        logger.info(f"Refunded one class to subscription {subscription.id} for booking {booking.id}")

    def _after_commit(self, uow: UnitOfWork, send: Callable[[], Awaitable[None]], description: str) -> None:
        async def _notify() -> None:
            try:
                await send()
            except Exception as e:
                logger.warning(f"Failed to queue {description} notification: {e}")

        uow.on_commit(_notify)

    def _publish_after_commit(self, uow: UnitOfWork, event_type: str, booking: Booking) -> None:
        tenant_id = uow.tenant_id

        async def _publish() -> None:
            try:
                await self.webhooks.publish(event_type, booking, tenant_id)
            except Exception as e:
                logger.warning(f"Failed to publish {event_type} for booking {booking.id}: {e}")

        uow.on_commit(_publish)
