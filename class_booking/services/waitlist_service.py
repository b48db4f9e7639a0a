"""
Waitlist service: strict FIFO promotion and position renumbering.
"""

import copy
import logging
from typing import List, Optional
from uuid import UUID

from ..domain import Booking, ClassSession, GymClass, booking_state_machine, utcnow
from ..ports import NotificationGateway, UnitOfWork, UnitOfWorkFactory
from ..utils.exceptions import GymClassNotFoundError, SessionNotFoundError
from ..utils.logging_config import log_business_event

logger = logging.getLogger(__name__)


class WaitlistService:
    """Service for managing session waitlists.

    Mutating methods take an already open unit of work so that promotion and
    renumbering commit together with the cancellation that triggered them.
    """

    def __init__(self, uow_factory: UnitOfWorkFactory, notifications: NotificationGateway):
        self.uow_factory = uow_factory
        self.notifications = notifications

    async def promote_from_waitlist(
        self,
        uow: UnitOfWork,
        session_id: UUID,
        session: Optional[ClassSession] = None,
        gym_class: Optional[GymClass] = None,
    ) -> Optional[Booking]:
        """
        Promote the earliest waitlisted booking of a session into a confirmed spot.

        Args:
            uow: Open unit of work; the session row should already be locked
            session_id: Session to promote into
            session: Loaded session, reused so counter changes stay on one object
            gym_class: Loaded class of the session

        Returns:
            The promoted booking, or None if nobody was waiting or no spot is free

        Raises:
            SessionNotFoundError: If the session is missing
            GymClassNotFoundError: If the session's class is missing
        """
        if session is None:
            session = await uow.sessions.find_by_id(session_id, for_update=True)
            if session is None:
                raise SessionNotFoundError(session_id)

        waitlisted = await uow.bookings.find_waitlisted_ordered_by_position(session_id)
        if not waitlisted:
            logger.debug(f"No waitlisted bookings to promote for session {session_id}")
            return None

        if not session.has_available_spots():
            logger.info(f"Session {session_id} has no free spot; promotion skipped")
            return None

        if gym_class is None:
            gym_class = await uow.gym_classes.find_by_id(session.gym_class_id)
            if gym_class is None:
                raise GymClassNotFoundError(session.gym_class_id)

        booking = waitlisted[0]
        previous_position = booking.waitlist_position
        booking_state_machine.promote(booking, session, utcnow())
        await uow.bookings.save(booking)
        await uow.sessions.save(session)

        await self.reorder_waitlist(uow, session_id)

        logger.info(
            f"Promoted booking {booking.id} from waitlist position {previous_position} "
            f"for session {session_id}"
        )
        log_business_event(
            "waitlist_promotion",
            {
                "booking_id": str(booking.id),
                "session_id": str(session_id),
                "member_id": str(booking.member_id),
                "tenant_id": str(uow.tenant_id),
            },
        )

        member = await uow.members.find_by_id(booking.member_id)
        if member is None:
            logger.warning(f"Member {booking.member_id} not found; promotion notification skipped")
        else:
            session_snapshot = copy.copy(session)

            async def notify_promotion() -> None:
                await self.notifications.send_waitlist_promotion(member, session_snapshot, gym_class)

            uow.on_commit(notify_promotion)

        return booking

    async def reorder_waitlist(self, uow: UnitOfWork, session_id: UUID) -> int:
        """
        Renumber remaining waitlisted bookings to 1..N in their current order.

        Args:
            uow: Open unit of work
            session_id: Session whose waitlist to renumber

        Returns:
            Number of bookings whose position changed
        """
        waitlisted = await uow.bookings.find_waitlisted_ordered_by_position(session_id)

        changed = 0
        for position, booking in enumerate(waitlisted, start=1):
            if booking.waitlist_position != position:
                booking.waitlist_position = position
                await uow.bookings.save(booking)
                changed += 1

        if changed:
            logger.debug(f"Renumbered {changed} waitlist entries for session {session_id}")
        return changed

    async def get_waitlist(self, tenant_id: UUID, session_id: UUID) -> List[Booking]:
        """Waitlisted bookings of a session in queue order."""
        async with self.uow_factory(tenant_id) as uow:
            return await uow.bookings.find_waitlisted_ordered_by_position(session_id)

    async def get_member_position(self, tenant_id: UUID, session_id: UUID, member_id: UUID) -> Optional[int]:
        """Current waitlist position of a member, or None if not waitlisted."""
        waitlist = await self.get_waitlist(tenant_id, session_id)
        for booking in waitlist:
            if booking.member_id == member_id:
                return booking.waitlist_position
        return None
