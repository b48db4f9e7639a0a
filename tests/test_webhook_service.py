"""Webhook events published over Redis."""

import json
import uuid
from unittest.mock import AsyncMock, MagicMock

import pytest
from redis.exceptions import RedisError

from class_booking.cache import RedisClient
from class_booking.domain import Booking, BookingStatus
from class_booking.services import BookingEvents, RedisWebhookEventPublisher


@pytest.fixture
def booking():
    return Booking(
        tenant_id=uuid.uuid4(),
        session_id=uuid.uuid4(),
        member_id=uuid.uuid4(),
        status=BookingStatus.WAITLISTED,
        waitlist_position=2,
    )


@pytest.fixture
def redis_client():
    client = MagicMock(spec=RedisClient)
    client.publish = AsyncMock(return_value=1)
    return client


async def test_publish_sends_event_json(redis_client, booking):
    publisher = RedisWebhookEventPublisher(redis_client, channel="hooks")

    await publisher.publish(BookingEvents.CREATED, booking, booking.tenant_id)

    channel, message = redis_client.publish.call_args[0]
    assert channel == "hooks"
    event = json.loads(message)
    assert event["event_type"] == "booking.created"
    assert event["tenant_id"] == str(booking.tenant_id)
    assert event["booking"]["id"] == str(booking.id)
    assert event["booking"]["status"] == "waitlisted"
    assert event["booking"]["waitlist_position"] == 2
    assert "occurred_at" in event


async def test_disabled_publisher_sends_nothing(redis_client, booking):
    publisher = RedisWebhookEventPublisher(redis_client)
    publisher.enabled = False

    await publisher.publish(BookingEvents.CANCELLED, booking, booking.tenant_id)

    redis_client.publish.assert_not_called()


async def test_publish_errors_propagate(redis_client, booking):
    redis_client.publish.side_effect = RedisError("connection lost")
    publisher = RedisWebhookEventPublisher(redis_client)

    with pytest.raises(RedisError):
        await publisher.publish(BookingEvents.CONFIRMED, booking, booking.tenant_id)


async def test_uninitialized_client_refuses_to_publish():
    with pytest.raises(RuntimeError):
        await RedisClient().publish("hooks", "{}")


async def test_client_publishes_through_redis():
    redis = MagicMock()
    redis.publish = AsyncMock(return_value=3)

    assert await RedisClient(redis).publish("hooks", "{}") == 3
    redis.publish.assert_awaited_once_with("hooks", "{}")
