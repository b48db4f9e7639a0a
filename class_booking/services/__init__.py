"""Booking use cases and the adapters they are wired with."""

from typing import Optional

from ..ports import NotificationGateway, UnitOfWorkFactory, WebhookEventPublisher
from .authorization import AuthorizationDecision, AuthorizationMode, authorize_booking_cancellation
from .booking_service import BookingService
from .notification_service import CeleryNotificationGateway, NotificationService
from .validation_service import BookingValidationService, EligibilityResult
from .waitlist_service import WaitlistService
from .webhook_service import BookingEvents, RedisWebhookEventPublisher


def build_booking_service(
    uow_factory: UnitOfWorkFactory,
    notifications: Optional[NotificationGateway] = None,
    webhooks: Optional[WebhookEventPublisher] = None,
) -> BookingService:
    """BookingService wired with the Celery notification gateway and Redis webhook publisher by default."""
    notifications = notifications or CeleryNotificationGateway()
    return BookingService(
        uow_factory,
        notifications,
        webhooks or RedisWebhookEventPublisher(),
        waitlist=WaitlistService(uow_factory, notifications),
    )


__all__ = [
    "AuthorizationDecision",
    "AuthorizationMode",
    "BookingEvents",
    "BookingService",
    "BookingValidationService",
    "CeleryNotificationGateway",
    "EligibilityResult",
    "NotificationService",
    "RedisWebhookEventPublisher",
    "WaitlistService",
    "authorize_booking_cancellation",
    "build_booking_service",
]
