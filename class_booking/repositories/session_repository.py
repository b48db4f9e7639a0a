"""
SQLAlchemy-backed stores for class sessions and gym classes.
"""

import uuid
from typing import Optional

from sqlalchemy import select

from .base import BaseRepository
from ..domain import ClassSession, GymClass
from ..models import ClassSessionRecord, GymClassRecord
from ..utils.exceptions import OptimisticLockError, SessionNotFoundError


def session_to_entity(record: ClassSessionRecord) -> ClassSession:
    return ClassSession(
        id=record.id,
        tenant_id=record.tenant_id,
        gym_class_id=record.gym_class_id,
        session_date=record.session_date,
        start_time=record.start_time,
        end_time=record.end_time,
        max_capacity=record.max_capacity,
        current_bookings=record.current_bookings,
        waitlist_count=record.waitlist_count,
        checked_in_count=record.checked_in_count,
        status=record.status,
        version=record.version,
    )


def gym_class_to_entity(record: GymClassRecord) -> GymClass:
    return GymClass(
        id=record.id,
        tenant_id=record.tenant_id,
        name=record.name,
        max_capacity=record.max_capacity,
        waitlist_enabled=record.waitlist_enabled,
        max_waitlist_size=record.max_waitlist_size,
        requires_subscription=record.requires_subscription,
        deducts_class_from_plan=record.deducts_class_from_plan,
        cancellation_deadline_hours=record.cancellation_deadline_hours,
        late_cancellation_fee=record.late_cancellation_fee,
    )


class SessionRepository(BaseRepository):
    """Class sessions of one tenant."""

    async def find_by_id(self, session_id: uuid.UUID, for_update: bool = False) -> Optional[ClassSession]:
        record = await self._get_record(session_id, for_update)
        return session_to_entity(record) if record else None

    async def save(self, session: ClassSession) -> ClassSession:
        """Write the session's counters and status back to its row.

        The struct must have been read in this transaction's lineage: a
        version mismatch means another transaction changed the row since.
        """
        record = await self._get_record(session.id)
        if record is None:
            raise SessionNotFoundError(session.id)

        if record.version != session.version:
            raise OptimisticLockError("Session", str(session.id))

        record.current_bookings = session.current_bookings
        record.waitlist_count = session.waitlist_count
        record.checked_in_count = session.checked_in_count
        record.status = session.status

        await self._flush("session save")
        session.version = record.version
        return session

    async def _get_record(self, session_id: uuid.UUID, for_update: bool = False) -> Optional[ClassSessionRecord]:
        query = select(ClassSessionRecord).where(
            ClassSessionRecord.id == session_id,
            ClassSessionRecord.tenant_id == self.tenant_id,
        )
        if for_update:
            query = query.with_for_update()
        result = await self.session.execute(query)
        return result.scalar_one_or_none()


class GymClassRepository(BaseRepository):
    """Gym class reference data of one tenant."""

    async def find_by_id(self, gym_class_id: uuid.UUID) -> Optional[GymClass]:
        query = select(GymClassRecord).where(
            GymClassRecord.id == gym_class_id,
            GymClassRecord.tenant_id == self.tenant_id,
        )
        result = await self.session.execute(query)
        record = result.scalar_one_or_none()
        return gym_class_to_entity(record) if record else None
