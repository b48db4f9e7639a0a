"""
Webhook event publication over Redis pub/sub.
"""

import logging
from typing import Optional
from uuid import UUID

from ..cache import RedisClient, get_redis
from ..config import get_settings
from ..domain import Booking
from ..schemas import BookingPayload, WebhookEvent

logger = logging.getLogger(__name__)


class BookingEvents:
    """Webhook event types emitted by the booking core."""
    CREATED = "booking.created"
    CONFIRMED = "booking.confirmed"
    CANCELLED = "booking.cancelled"
    COMPLETED = "booking.completed"
    NO_SHOW = "booking.no_show"


class RedisWebhookEventPublisher:
    """Publishes booking events on a Redis channel consumed by the webhook dispatcher."""

    def __init__(self, redis_client: Optional[RedisClient] = None, channel: Optional[str] = None):
        settings = get_settings()
        self.redis = redis_client or get_redis()
        self.channel = channel or settings.webhook_channel
        self.enabled = settings.enable_webhooks

    async def publish(self, event_type: str, booking: Booking, tenant_id: UUID) -> None:
        """
        Publish a booking event.

        Args:
            event_type: Event name, see ``BookingEvents``
            booking: Booking the event is about
            tenant_id: Tenant owning the booking
        """
        if not self.enabled:
            logger.debug(f"Webhooks disabled, dropping {event_type} for booking {booking.id}")
            return

        event = WebhookEvent(
            event_type=event_type,
            tenant_id=tenant_id,
            booking=BookingPayload.model_validate(booking),
        )
        receivers = await self.redis.publish(self.channel, event.model_dump_json())
        logger.info(f"Published {event_type} for booking {booking.id} to {receivers} subscriber(s)")
