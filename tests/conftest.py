"""Shared test fixtures."""

import uuid
from datetime import date, time, timedelta

import pytest

from class_booking.domain import ClassSession, GymClass, Member, Subscription
from class_booking.services import BookingService, WaitlistService

from .fakes import (
    InMemoryDatabase,
    InMemoryUnitOfWorkFactory,
    RecordingNotificationGateway,
    RecordingWebhookPublisher,
)

SESSION_DAY = date.today() + timedelta(days=7)


@pytest.fixture
def tenant_id():
    return uuid.uuid4()


@pytest.fixture
def db():
    return InMemoryDatabase()


@pytest.fixture
def uow_factory(db):
    return InMemoryUnitOfWorkFactory(db)


@pytest.fixture
def notifications():
    return RecordingNotificationGateway()


@pytest.fixture
def webhooks():
    return RecordingWebhookPublisher()


@pytest.fixture
def waitlist_service(uow_factory, notifications):
    return WaitlistService(uow_factory, notifications)


@pytest.fixture
def booking_service(uow_factory, notifications, webhooks, waitlist_service):
    return BookingService(uow_factory, notifications, webhooks, waitlist=waitlist_service)


@pytest.fixture
def seed(db, tenant_id):
    """Factory helpers that add entities to the in-memory database."""

    class Seeder:
        def gym_class(self, **overrides) -> GymClass:
            fields = dict(id=uuid.uuid4(), tenant_id=tenant_id, name="Yoga Basics")
            fields.update(overrides)
            return db.add(GymClass(**fields))

        def session(self, gym_class: GymClass, start=time(10, 0), end=time(11, 0), **overrides) -> ClassSession:
            fields = dict(
                id=uuid.uuid4(),
                tenant_id=tenant_id,
                gym_class_id=gym_class.id,
                session_date=SESSION_DAY,
                start_time=start,
                end_time=end,
                max_capacity=gym_class.max_capacity,
            )
            fields.update(overrides)
            return db.add(ClassSession(**fields))

        def member(self, **overrides) -> Member:
            member_id = uuid.uuid4()
            fields = dict(
                id=member_id,
                tenant_id=tenant_id,
                email=f"{member_id.hex[:8]}@example.com",
                first_name="Test",
                last_name="Member",
                user_id=uuid.uuid4(),
            )
            fields.update(overrides)
            return db.add(Member(**fields))

        def subscription(self, member: Member, **overrides) -> Subscription:
            fields = dict(id=uuid.uuid4(), tenant_id=tenant_id, member_id=member.id, classes_remaining=10)
            fields.update(overrides)
            return db.add(Subscription(**fields))

        def member_with_subscription(self, **overrides):
            member = self.member()
            return member, self.subscription(member, **overrides)

    return Seeder()
