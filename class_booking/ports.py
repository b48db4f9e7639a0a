"""
Interfaces of the collaborators the booking core consumes.

The services depend only on these protocols. ``repositories`` and
``services.notification_service`` / ``services.webhook_service`` ship the
concrete adapters; tests use in-memory stand-ins.
"""

import uuid
from datetime import date
from typing import Awaitable, Callable, Iterable, List, Optional, Protocol

from .domain import (
    Booking,
    BookingStatus,
    BookingWithSession,
    ClassSession,
    GymClass,
    Member,
    Subscription,
)


class MemberStore(Protocol):
    async def find_by_id(self, member_id: uuid.UUID) -> Optional[Member]: ...

    async def find_by_user_id(self, user_id: uuid.UUID) -> Optional[Member]: ...


class SubscriptionStore(Protocol):
    async def find_by_id(self, subscription_id: uuid.UUID, for_update: bool = False) -> Optional[Subscription]: ...

    async def find_active_by_member_id(self, member_id: uuid.UUID) -> Optional[Subscription]: ...

    async def save(self, subscription: Subscription) -> Subscription: ...


class SessionStore(Protocol):
    async def find_by_id(self, session_id: uuid.UUID, for_update: bool = False) -> Optional[ClassSession]: ...

    async def save(self, session: ClassSession) -> ClassSession: ...


class GymClassStore(Protocol):
    async def find_by_id(self, gym_class_id: uuid.UUID) -> Optional[GymClass]: ...


class BookingStore(Protocol):
    async def find_by_id(self, booking_id: uuid.UUID, for_update: bool = False) -> Optional[Booking]: ...

    async def save(self, booking: Booking) -> Booking: ...

    async def delete(self, booking_id: uuid.UUID) -> None: ...

    async def exists_active_for_session_and_member(
        self,
        session_id: uuid.UUID,
        member_id: uuid.UUID,
        statuses: Iterable[BookingStatus],
    ) -> bool: ...

    async def find_waitlisted_ordered_by_position(self, session_id: uuid.UUID) -> List[Booking]: ...

    async def find_active_bookings_with_sessions_for_member_on_date(
        self,
        member_id: uuid.UUID,
        on_date: date,
    ) -> List[BookingWithSession]: ...

    async def count_by_session_and_status(
        self,
        session_id: uuid.UUID,
        status: Optional[BookingStatus] = None,
    ) -> int: ...

    async def find_by_session(
        self,
        session_id: uuid.UUID,
        status: Optional[BookingStatus] = None,
    ) -> List[Booking]: ...

    async def find_by_member(
        self,
        member_id: uuid.UUID,
        limit: int = 50,
        offset: int = 0,
        upcoming: Optional[bool] = None,
        today: Optional[date] = None,
    ) -> List[Booking]: ...


class NotificationGateway(Protocol):
    """Dispatch-only notification interface. Message content is the gateway's concern."""

    async def send_booking_confirmation(self, member: Member, session: ClassSession, gym_class: GymClass) -> None: ...

    async def send_waitlist_added(
        self, member: Member, session: ClassSession, gym_class: GymClass, position: int
    ) -> None: ...

    async def send_booking_cancellation(self, member: Member, session: ClassSession, gym_class: GymClass) -> None: ...

    async def send_waitlist_promotion(self, member: Member, session: ClassSession, gym_class: GymClass) -> None: ...


class WebhookEventPublisher(Protocol):
    async def publish(self, event_type: str, booking: Booking, tenant_id: uuid.UUID) -> None: ...


class PermissionService(Protocol):
    async def has_permission(self, user_id: uuid.UUID, permission_key: str) -> bool: ...


PostCommitCallback = Callable[[], Awaitable[None]]


class UnitOfWork(Protocol):
    """One atomic transaction over the stores of a single tenant.

    ``on_commit`` callbacks run only after a successful commit; their
    failures are logged and never raised.
    """

    tenant_id: uuid.UUID
    members: MemberStore
    subscriptions: SubscriptionStore
    sessions: SessionStore
    gym_classes: GymClassStore
    bookings: BookingStore
    permissions: PermissionService

    async def __aenter__(self) -> "UnitOfWork": ...

    async def __aexit__(self, exc_type, exc_val, exc_tb) -> None: ...

    async def commit(self) -> None: ...

    async def rollback(self) -> None: ...

    def on_commit(self, callback: PostCommitCallback) -> None: ...


UnitOfWorkFactory = Callable[[uuid.UUID], UnitOfWork]
