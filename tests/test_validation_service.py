"""Eligibility checks: overlap, subscription status and credit gating."""

import uuid
from datetime import date, time, timedelta

import pytest

from class_booking.domain import BookingStatus, SubscriptionStatus, booking_state_machine
from class_booking.services import BookingValidationService
from class_booking.utils.exceptions import (
    NoActiveSubscriptionError,
    NoCreditsError,
    OwnershipError,
    SubscriptionNotActiveError,
    SubscriptionNotFoundError,
    ValidationError,
)


@pytest.fixture
def validator():
    return BookingValidationService()


def _book(db, session, member, status=BookingStatus.CONFIRMED):
    booking = booking_state_machine.create_confirmed(session, member.id)
    booking.status = status
    db.add(session)
    db.add(booking)
    return booking


async def test_overlapping_session_is_rejected_with_conflicting_class(validator, uow_factory, db, seed, tenant_id):
    member, _ = seed.member_with_subscription()
    hiit = seed.gym_class(name="HIIT")
    existing = seed.session(hiit, time(10, 0), time(11, 0))
    _book(db, existing, member)

    yoga = seed.gym_class(name="Yoga")
    requested = seed.session(yoga, time(10, 30), time(11, 30))

    async with uow_factory(tenant_id) as uow:
        result = await validator.validate_booking_eligibility(uow, member.id, requested, yoga)

    assert result.can_book is False
    assert "conflicts" in result.reason
    assert "HIIT" in result.reason


async def test_back_to_back_session_is_allowed(validator, uow_factory, db, seed, tenant_id):
    member, subscription = seed.member_with_subscription()
    gym_class = seed.gym_class()
    earlier = seed.session(gym_class, time(9, 0), time(10, 0))
    _book(db, earlier, member)
    requested = seed.session(gym_class, time(10, 0), time(11, 0))

    async with uow_factory(tenant_id) as uow:
        result = await validator.validate_booking_eligibility(uow, member.id, requested, gym_class)

    assert result.can_book is True
    assert result.subscription.id == subscription.id


async def test_cancelled_booking_does_not_conflict(validator, uow_factory, db, seed, tenant_id):
    member, _ = seed.member_with_subscription()
    gym_class = seed.gym_class()
    existing = seed.session(gym_class, time(10, 0), time(11, 0))
    _book(db, existing, member, status=BookingStatus.CANCELLED)
    requested = seed.session(gym_class, time(10, 30), time(11, 30))

    async with uow_factory(tenant_id) as uow:
        result = await validator.validate_booking_eligibility(uow, member.id, requested, gym_class)

    assert result.can_book is True


async def test_validate_no_overlapping_bookings_raises(validator, uow_factory, db, seed, tenant_id):
    member = seed.member()
    gym_class = seed.gym_class(name="Pilates")
    existing = seed.session(gym_class, time(18, 0), time(19, 0))
    _book(db, existing, member)
    requested = seed.session(gym_class, time(18, 30), time(19, 30))

    async with uow_factory(tenant_id) as uow:
        with pytest.raises(ValidationError) as exc_info:
            await validator.validate_no_overlapping_bookings(uow, member.id, requested)

    assert "Pilates" in exc_info.value.reason


async def test_class_without_subscription_requirement_binds_nothing(validator, uow_factory, seed, tenant_id):
    member = seed.member()
    gym_class = seed.gym_class(requires_subscription=False)
    session = seed.session(gym_class)

    async with uow_factory(tenant_id) as uow:
        result = await validator.validate_booking_eligibility(uow, member.id, session, gym_class)

    assert result.can_book is True
    assert result.subscription is None


async def test_member_without_subscription_is_told_so(validator, uow_factory, seed, tenant_id):
    member = seed.member()
    gym_class = seed.gym_class()
    session = seed.session(gym_class)

    async with uow_factory(tenant_id) as uow:
        result = await validator.validate_booking_eligibility(uow, member.id, session, gym_class)

    assert result.can_book is False
    assert "does not have an active subscription" in result.reason


async def test_expired_subscription_reason_differs_from_missing(validator, uow_factory, seed, tenant_id):
    member = seed.member()
    subscription = seed.subscription(member, end_date=date.today() - timedelta(days=1))
    gym_class = seed.gym_class()
    session = seed.session(gym_class)

    async with uow_factory(tenant_id) as uow:
        result = await validator.validate_booking_eligibility(
            uow, member.id, session, gym_class, subscription_id=subscription.id
        )

    assert result.can_book is False
    assert "expired" in result.reason


async def test_zero_credits_rejected_only_when_class_deducts(validator, uow_factory, seed, tenant_id):
    member, _ = seed.member_with_subscription(classes_remaining=0)
    deducting = seed.gym_class(deducts_class_from_plan=True)
    free = seed.gym_class(deducts_class_from_plan=False)
    deducting_session = seed.session(deducting, time(8, 0), time(9, 0))
    free_session = seed.session(free, time(12, 0), time(13, 0))

    async with uow_factory(tenant_id) as uow:
        rejected = await validator.validate_booking_eligibility(uow, member.id, deducting_session, deducting)
        accepted = await validator.validate_booking_eligibility(uow, member.id, free_session, free)

    assert rejected.can_book is False
    assert "No classes remaining" in rejected.reason
    assert accepted.can_book is True


# ---- validate_subscription_for_booking ----


async def test_unknown_explicit_subscription_is_not_found(validator, uow_factory, seed, tenant_id):
    member = seed.member()
    async with uow_factory(tenant_id) as uow:
        with pytest.raises(SubscriptionNotFoundError):
            await validator.validate_subscription_for_booking(uow, member.id, uuid.uuid4())


async def test_no_active_subscription_is_a_distinct_error(validator, uow_factory, seed, tenant_id):
    member = seed.member()
    async with uow_factory(tenant_id) as uow:
        with pytest.raises(NoActiveSubscriptionError) as exc_info:
            await validator.validate_subscription_for_booking(uow, member.id)

    assert not isinstance(exc_info.value, SubscriptionNotFoundError)


async def test_someone_elses_subscription_is_an_ownership_error(validator, uow_factory, seed, tenant_id):
    member = seed.member()
    _, other_subscription = seed.member_with_subscription()
    async with uow_factory(tenant_id) as uow:
        with pytest.raises(OwnershipError):
            await validator.validate_subscription_for_booking(uow, member.id, other_subscription.id)


async def test_frozen_subscription_is_not_active(validator, uow_factory, seed, tenant_id):
    member, subscription = seed.member_with_subscription(status=SubscriptionStatus.FROZEN)
    async with uow_factory(tenant_id) as uow:
        with pytest.raises(SubscriptionNotActiveError) as exc_info:
            await validator.validate_subscription_for_booking(uow, member.id, subscription.id)

    assert exc_info.value.expired is False


async def test_credit_check_can_be_skipped(validator, uow_factory, seed, tenant_id):
    member, subscription = seed.member_with_subscription(classes_remaining=0)
    async with uow_factory(tenant_id) as uow:
        with pytest.raises(NoCreditsError):
            await validator.validate_subscription_for_booking(uow, member.id, subscription.id)
        resolved = await validator.validate_subscription_for_booking(
            uow, member.id, subscription.id, requires_class_availability=False
        )

    assert resolved.id == subscription.id


async def test_unlimited_plan_always_has_credits(validator, uow_factory, seed, tenant_id):
    member, subscription = seed.member_with_subscription(classes_remaining=None)
    async with uow_factory(tenant_id) as uow:
        resolved = await validator.validate_subscription_for_booking(uow, member.id)

    assert resolved.id == subscription.id
