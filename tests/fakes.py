"""In-memory stores and unit of work for service tests.

Stores hand out copies, so a service only changes stored state through
``save``; the unit of work snapshots the database on entry and restores it
on rollback.
"""

import copy
import uuid
from datetime import date
from typing import Dict, Iterable, List, Optional, Set, Tuple

from class_booking.domain import (
    ACTIVE_BOOKING_STATUSES,
    Booking,
    BookingStatus,
    BookingWithSession,
    ClassSession,
    GymClass,
    Member,
    Subscription,
    SubscriptionStatus,
)
from class_booking.unit_of_work import AbstractUnitOfWork
from class_booking.utils.exceptions import ConcurrencyError, OptimisticLockError


class InMemoryDatabase:
    def __init__(self):
        self.members: Dict[uuid.UUID, Member] = {}
        self.subscriptions: Dict[uuid.UUID, Subscription] = {}
        self.sessions: Dict[uuid.UUID, ClassSession] = {}
        self.gym_classes: Dict[uuid.UUID, GymClass] = {}
        self.bookings: Dict[uuid.UUID, Booking] = {}
        self.permissions: Set[Tuple[uuid.UUID, uuid.UUID, str]] = set()
        self.commits = 0
        self.rollbacks = 0

    def snapshot(self):
        return copy.deepcopy(
            (self.members, self.subscriptions, self.sessions, self.gym_classes, self.bookings, self.permissions)
        )

    def restore(self, state) -> None:
        (
            self.members,
            self.subscriptions,
            self.sessions,
            self.gym_classes,
            self.bookings,
            self.permissions,
        ) = state

    # Seeding helpers; tests read state back through these dicts

    def add(self, entity):
        table = {
            Member: self.members,
            Subscription: self.subscriptions,
            ClassSession: self.sessions,
            GymClass: self.gym_classes,
            Booking: self.bookings,
        }[type(entity)]
        table[entity.id] = copy.deepcopy(entity)
        return entity

    def grant(self, tenant_id: uuid.UUID, user_id: uuid.UUID, permission_key: str) -> None:
        self.permissions.add((tenant_id, user_id, permission_key))


class _Store:
    table_name = ""

    def __init__(self, db: InMemoryDatabase, tenant_id: uuid.UUID):
        self.db = db
        self.tenant_id = tenant_id

    @property
    def table(self) -> dict:
        return getattr(self.db, self.table_name)

    def _get(self, entity_id):
        entity = self.table.get(entity_id)
        if entity is None or entity.tenant_id != self.tenant_id:
            return None
        return copy.deepcopy(entity)

    def _rows(self):
        return [copy.deepcopy(e) for e in self.table.values() if e.tenant_id == self.tenant_id]

    def _put(self, entity):
        self.table[entity.id] = copy.deepcopy(entity)
        return entity


class InMemoryMemberStore(_Store):
    table_name = "members"

    async def find_by_id(self, member_id: uuid.UUID) -> Optional[Member]:
        return self._get(member_id)

    async def find_by_user_id(self, user_id: uuid.UUID) -> Optional[Member]:
        for member in self._rows():
            if member.user_id == user_id:
                return member
        return None


class InMemorySubscriptionStore(_Store):
    table_name = "subscriptions"

    async def find_by_id(self, subscription_id: uuid.UUID, for_update: bool = False) -> Optional[Subscription]:
        return self._get(subscription_id)

    async def find_active_by_member_id(self, member_id: uuid.UUID) -> Optional[Subscription]:
        for subscription in self._rows():
            if subscription.member_id == member_id and subscription.status == SubscriptionStatus.ACTIVE:
                return subscription
        return None

    async def save(self, subscription: Subscription) -> Subscription:
        return self._put(subscription)


class InMemorySessionStore(_Store):
    table_name = "sessions"

    async def find_by_id(self, session_id: uuid.UUID, for_update: bool = False) -> Optional[ClassSession]:
        return self._get(session_id)

    async def save(self, session: ClassSession) -> ClassSession:
        stored = self.table.get(session.id)
        if stored is not None and stored.version != session.version:
            raise OptimisticLockError("Session", str(session.id))
        session.version += 1
        return self._put(session)


class InMemoryGymClassStore(_Store):
    table_name = "gym_classes"

    async def find_by_id(self, gym_class_id: uuid.UUID) -> Optional[GymClass]:
        return self._get(gym_class_id)


class InMemoryBookingStore(_Store):
    table_name = "bookings"

    async def find_by_id(self, booking_id: uuid.UUID, for_update: bool = False) -> Optional[Booking]:
        return self._get(booking_id)

    async def save(self, booking: Booking) -> Booking:
        return self._put(booking)

    async def delete(self, booking_id: uuid.UUID) -> None:
        if self._get(booking_id) is not None:
            del self.table[booking_id]

    async def exists_active_for_session_and_member(
        self,
        session_id: uuid.UUID,
        member_id: uuid.UUID,
        statuses: Iterable[BookingStatus] = ACTIVE_BOOKING_STATUSES,
    ) -> bool:
        statuses = set(statuses)
        return any(
            b.session_id == session_id and b.member_id == member_id and b.status in statuses
            for b in self._rows()
        )

    async def find_waitlisted_ordered_by_position(self, session_id: uuid.UUID) -> List[Booking]:
        waitlisted = [
            b for b in self._rows()
            if b.session_id == session_id and b.status == BookingStatus.WAITLISTED
        ]
        return sorted(waitlisted, key=lambda b: (b.waitlist_position, b.booked_at))

    async def find_active_bookings_with_sessions_for_member_on_date(
        self,
        member_id: uuid.UUID,
        on_date: date,
    ) -> List[BookingWithSession]:
        result = []
        for booking in self._rows():
            if booking.member_id != member_id or booking.status not in ACTIVE_BOOKING_STATUSES:
                continue
            session = self.db.sessions[booking.session_id]
            if session.session_date != on_date:
                continue
            gym_class = self.db.gym_classes[session.gym_class_id]
            result.append(BookingWithSession(booking, copy.deepcopy(session), copy.deepcopy(gym_class)))
        return result

    async def count_by_session_and_status(
        self,
        session_id: uuid.UUID,
        status: Optional[BookingStatus] = None,
    ) -> int:
        return len(await self.find_by_session(session_id, status))

    async def find_by_session(
        self,
        session_id: uuid.UUID,
        status: Optional[BookingStatus] = None,
    ) -> List[Booking]:
        bookings = [
            b for b in self._rows()
            if b.session_id == session_id and (status is None or b.status == status)
        ]
        return sorted(bookings, key=lambda b: b.booked_at)

    async def find_by_member(
        self,
        member_id: uuid.UUID,
        limit: int = 50,
        offset: int = 0,
        upcoming: Optional[bool] = None,
        today: Optional[date] = None,
    ) -> List[Booking]:
        bookings = [b for b in self._rows() if b.member_id == member_id]
        if upcoming is not None:
            bookings = [
                b for b in bookings
                if (self.db.sessions[b.session_id].session_date >= today) == upcoming
            ]
        bookings.sort(key=lambda b: b.booked_at, reverse=True)
        return bookings[offset:offset + limit]


class InMemoryPermissionService:
    def __init__(self, db: InMemoryDatabase, tenant_id: uuid.UUID):
        self.db = db
        self.tenant_id = tenant_id

    async def has_permission(self, user_id: uuid.UUID, permission_key: str) -> bool:
        return (self.tenant_id, user_id, permission_key) in self.db.permissions


class InMemoryUnitOfWork(AbstractUnitOfWork):
    def __init__(self, db: InMemoryDatabase, tenant_id: uuid.UUID, factory=None):
        super().__init__(tenant_id)
        self.db = db
        self.factory = factory
        self.members = InMemoryMemberStore(db, tenant_id)
        self.subscriptions = InMemorySubscriptionStore(db, tenant_id)
        self.sessions = InMemorySessionStore(db, tenant_id)
        self.gym_classes = InMemoryGymClassStore(db, tenant_id)
        self.bookings = InMemoryBookingStore(db, tenant_id)
        self.permissions = InMemoryPermissionService(db, tenant_id)
        self._snapshot = None

    async def __aenter__(self):
        await super().__aenter__()
        self._snapshot = self.db.snapshot()
        return self

    async def _commit(self) -> None:
        if self.factory is not None and self.factory.conflicts > 0:
            self.factory.conflicts -= 1
            raise ConcurrencyError("Simulated serialization failure")
        self.db.commits += 1
        self._snapshot = None

    async def rollback(self) -> None:
        if self._snapshot is not None:
            self.db.restore(self._snapshot)
            self._snapshot = None
        self.db.rollbacks += 1


class InMemoryUnitOfWorkFactory:
    """Callable factory; ``conflicts`` makes the next N commits raise ConcurrencyError."""

    def __init__(self, db: InMemoryDatabase):
        self.db = db
        self.conflicts = 0

    def __call__(self, tenant_id: uuid.UUID) -> InMemoryUnitOfWork:
        return InMemoryUnitOfWork(self.db, tenant_id, self)


class RecordingNotificationGateway:
    """NotificationGateway that records calls as (kind, member_id, extra)."""

    def __init__(self, fail: bool = False):
        self.sent: List[tuple] = []
        self.fail = fail

    async def _record(self, kind, member, extra=None):
        if self.fail:
            raise RuntimeError("notification backend down")
        self.sent.append((kind, member.id, extra))

    async def send_booking_confirmation(self, member, session, gym_class):
        await self._record("confirmation", member)

    async def send_waitlist_added(self, member, session, gym_class, position):
        await self._record("waitlist_added", member, position)

    async def send_booking_cancellation(self, member, session, gym_class):
        await self._record("cancellation", member)

    async def send_waitlist_promotion(self, member, session, gym_class):
        await self._record("promotion", member)

    def kinds(self) -> List[str]:
        return [kind for kind, _, _ in self.sent]


class RecordingWebhookPublisher:
    def __init__(self, fail: bool = False):
        self.events: List[tuple] = []
        self.fail = fail

    async def publish(self, event_type, booking, tenant_id):
        if self.fail:
            raise RuntimeError("webhook backend down")
        self.events.append((event_type, booking.id, tenant_id))

    def types(self) -> List[str]:
        return [event_type for event_type, _, _ in self.events]
