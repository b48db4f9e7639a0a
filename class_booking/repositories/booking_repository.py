"""
SQLAlchemy-backed booking store.
"""

import uuid
from datetime import date
from typing import Iterable, List, Optional

from sqlalchemy import and_, delete, func, select

from .base import BaseRepository
from .session_repository import gym_class_to_entity, session_to_entity
from ..domain import ACTIVE_BOOKING_STATUSES, Booking, BookingStatus, BookingWithSession
from ..models import BookingRecord, ClassSessionRecord, GymClassRecord


def booking_to_entity(record: BookingRecord) -> Booking:
    return Booking(
        id=record.id,
        tenant_id=record.tenant_id,
        session_id=record.session_id,
        member_id=record.member_id,
        subscription_id=record.subscription_id,
        status=record.status,
        waitlist_position=record.waitlist_position,
        class_deducted=record.class_deducted,
        booked_at=record.booked_at,
        checked_in_at=record.checked_in_at,
        cancelled_at=record.cancelled_at,
        cancellation_reason=record.cancellation_reason,
        promoted_at=record.promoted_at,
        notes=record.notes,
        booked_by=record.booked_by,
    )


class BookingRepository(BaseRepository):
    """Bookings of one tenant."""

    async def find_by_id(self, booking_id: uuid.UUID, for_update: bool = False) -> Optional[Booking]:
        record = await self._get_record(booking_id, for_update)
        return booking_to_entity(record) if record else None

    async def save(self, booking: Booking) -> Booking:
        record = await self._get_record(booking.id)
        if record is None:
            record = BookingRecord(id=booking.id, tenant_id=self.tenant_id)
            self.session.add(record)

        record.session_id = booking.session_id
        record.member_id = booking.member_id
        record.subscription_id = booking.subscription_id
        record.status = booking.status
        record.waitlist_position = booking.waitlist_position
        record.class_deducted = booking.class_deducted
        record.booked_at = booking.booked_at
        record.checked_in_at = booking.checked_in_at
        record.cancelled_at = booking.cancelled_at
        record.cancellation_reason = booking.cancellation_reason
        record.promoted_at = booking.promoted_at
        record.notes = booking.notes
        record.booked_by = booking.booked_by

        await self._flush("booking save")
        return booking

    async def delete(self, booking_id: uuid.UUID) -> None:
        await self.session.execute(
            delete(BookingRecord).where(
                BookingRecord.id == booking_id,
                BookingRecord.tenant_id == self.tenant_id,
            )
        )

    async def exists_active_for_session_and_member(
        self,
        session_id: uuid.UUID,
        member_id: uuid.UUID,
        statuses: Iterable[BookingStatus] = ACTIVE_BOOKING_STATUSES,
    ) -> bool:
        query = select(func.count(BookingRecord.id)).where(
            BookingRecord.tenant_id == self.tenant_id,
            BookingRecord.session_id == session_id,
            BookingRecord.member_id == member_id,
            BookingRecord.status.in_(list(statuses)),
        )
        result = await self.session.execute(query)
        return result.scalar_one() > 0

    async def find_waitlisted_ordered_by_position(self, session_id: uuid.UUID) -> List[Booking]:
        """Waitlisted bookings in queue order; enqueue time breaks any position tie."""
        query = (
            select(BookingRecord)
            .where(
                BookingRecord.tenant_id == self.tenant_id,
                BookingRecord.session_id == session_id,
                BookingRecord.status == BookingStatus.WAITLISTED,
            )
            .order_by(BookingRecord.waitlist_position.asc(), BookingRecord.booked_at.asc())
        )
        result = await self.session.execute(query)
        return [booking_to_entity(r) for r in result.scalars().all()]

    async def find_active_bookings_with_sessions_for_member_on_date(
        self,
        member_id: uuid.UUID,
        on_date: date,
    ) -> List[BookingWithSession]:
        query = (
            select(BookingRecord, ClassSessionRecord, GymClassRecord)
            .join(ClassSessionRecord, BookingRecord.session_id == ClassSessionRecord.id)
            .join(GymClassRecord, ClassSessionRecord.gym_class_id == GymClassRecord.id)
            .where(
                and_(
                    BookingRecord.tenant_id == self.tenant_id,
                    BookingRecord.member_id == member_id,
                    BookingRecord.status.in_(list(ACTIVE_BOOKING_STATUSES)),
                    ClassSessionRecord.session_date == on_date,
                )
            )
            .order_by(ClassSessionRecord.start_time.asc())
        )
        result = await self.session.execute(query)
        return [
            BookingWithSession(
                booking=booking_to_entity(booking),
                session=session_to_entity(session),
                gym_class=gym_class_to_entity(gym_class),
            )
            for booking, session, gym_class in result.all()
        ]

    async def count_by_session_and_status(
        self,
        session_id: uuid.UUID,
        status: Optional[BookingStatus] = None,
    ) -> int:
        query = select(func.count(BookingRecord.id)).where(
            BookingRecord.tenant_id == self.tenant_id,
            BookingRecord.session_id == session_id,
        )
        if status is not None:
            query = query.where(BookingRecord.status == status)
        result = await self.session.execute(query)
        return result.scalar_one()

    async def find_by_session(
        self,
        session_id: uuid.UUID,
        status: Optional[BookingStatus] = None,
    ) -> List[Booking]:
        query = (
            select(BookingRecord)
            .where(
                BookingRecord.tenant_id == self.tenant_id,
                BookingRecord.session_id == session_id,
            )
            .order_by(BookingRecord.booked_at.asc())
        )
        if status is not None:
            query = query.where(BookingRecord.status == status)
        result = await self.session.execute(query)
        return [booking_to_entity(r) for r in result.scalars().all()]

    async def find_by_member(
        self,
        member_id: uuid.UUID,
        limit: int = 50,
        offset: int = 0,
        upcoming: Optional[bool] = None,
        today: Optional[date] = None,
    ) -> List[Booking]:
        """Bookings of a member, newest session first; ``upcoming`` splits on ``today``."""
        query = (
            select(BookingRecord)
            .join(ClassSessionRecord, BookingRecord.session_id == ClassSessionRecord.id)
            .where(
                BookingRecord.tenant_id == self.tenant_id,
                BookingRecord.member_id == member_id,
            )
        )
        if upcoming is True:
            query = query.where(ClassSessionRecord.session_date >= today).order_by(
                ClassSessionRecord.session_date.asc(), ClassSessionRecord.start_time.asc()
            )
        elif upcoming is False:
            query = query.where(ClassSessionRecord.session_date < today).order_by(
                ClassSessionRecord.session_date.desc(), ClassSessionRecord.start_time.desc()
            )
        else:
            query = query.order_by(BookingRecord.booked_at.desc())

        result = await self.session.execute(query.limit(limit).offset(offset))
        return [booking_to_entity(r) for r in result.scalars().all()]

    async def _get_record(self, booking_id: uuid.UUID, for_update: bool = False) -> Optional[BookingRecord]:
        query = select(BookingRecord).where(
            BookingRecord.id == booking_id,
            BookingRecord.tenant_id == self.tenant_id,
        )
        if for_update:
            query = query.with_for_update()
        result = await self.session.execute(query)
        return result.scalar_one_or_none()
