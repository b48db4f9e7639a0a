"""
Celery tasks for notification delivery.
"""

import logging
from typing import Any, Dict

from .celery_app import celery_app
from ..services.notification_service import NotificationService

logger = logging.getLogger(__name__)


@celery_app.task(bind=True, name="send_notification_task", max_retries=3, default_retry_delay=60)
def send_notification_task(self, notification_type: str, payload: Dict[str, Any]):
    """
    Task to render and send one booking notification.

    A failed delivery is retried while SMTP is configured; without SMTP the
    notification is skipped.

    Args:
        notification_type: One of ``NotificationType``
        payload: Template data built by ``build_payload``
    """
    logger.info(f"Sending {notification_type} to member {payload.get('member_id')}")

    notification_service = NotificationService()
    sent = notification_service.send(notification_type, payload)

    if not sent and notification_service.is_configured:
        logger.warning(
            f"Failed to send {notification_type} to member {payload.get('member_id')}, "
            f"attempt {self.request.retries + 1}"
        )
        raise self.retry()

    status = "sent" if sent else "skipped"
    return {"notification_type": notification_type, "member_id": payload.get("member_id"), "status": status}
