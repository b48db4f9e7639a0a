"""
Notification service for booking emails and the Celery-backed gateway.
"""

import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import Any, Dict, Optional, Tuple

from ..config import Settings, get_settings
from ..domain import ClassSession, GymClass, Member

logger = logging.getLogger(__name__)


class NotificationType:
    BOOKING_CONFIRMATION = "booking_confirmation"
    WAITLIST_ADDED = "waitlist_added"
    BOOKING_CANCELLATION = "booking_cancellation"
    WAITLIST_PROMOTION = "waitlist_promotion"


SUPPORTED_LANGUAGES = ("en", "ar")

# (subject, body) per notification type and language
TEMPLATES: Dict[str, Dict[str, Tuple[str, str]]] = {
    NotificationType.BOOKING_CONFIRMATION: {
        "en": (
            "Booking confirmed - {class_name}",
            "Hi {member_name},\n\nYour spot in {class_name} on {session_date} "
            "from {start_time} to {end_time} is confirmed.\n\nSee you there!",
        ),
        "ar": (
            "تم تأكيد الحجز - {class_name}",
            "مرحباً {member_name}،\n\nتم تأكيد مكانك في {class_name} بتاريخ {session_date} "
            "من {start_time} إلى {end_time}.\n\nنراك هناك!",
        ),
    },
    NotificationType.WAITLIST_ADDED: {
        "en": (
            "You're on the waitlist - {class_name}",
            "Hi {member_name},\n\n{class_name} on {session_date} at {start_time} is full. "
            "You are number {position} on the waitlist. We'll let you know if a spot opens up.",
        ),
        "ar": (
            "أنت على قائمة الانتظار - {class_name}",
            "مرحباً {member_name}،\n\nالحصة {class_name} بتاريخ {session_date} الساعة {start_time} ممتلئة. "
            "ترتيبك في قائمة الانتظار هو {position}. سنبلغك عند توفر مكان.",
        ),
    },
    NotificationType.BOOKING_CANCELLATION: {
        "en": (
            "Booking cancelled - {class_name}",
            "Hi {member_name},\n\nYour booking for {class_name} on {session_date} "
            "at {start_time} has been cancelled.",
        ),
        "ar": (
            "تم إلغاء الحجز - {class_name}",
            "مرحباً {member_name}،\n\nتم إلغاء حجزك في {class_name} بتاريخ {session_date} "
            "الساعة {start_time}.",
        ),
    },
    NotificationType.WAITLIST_PROMOTION: {
        "en": (
            "A spot opened up - {class_name}",
            "Hi {member_name},\n\nGood news! You have been moved from the waitlist into "
            "{class_name} on {session_date} from {start_time} to {end_time}. Your booking is confirmed.",
        ),
        "ar": (
            "توفر مكان - {class_name}",
            "مرحباً {member_name}،\n\nخبر سار! تم نقلك من قائمة الانتظار إلى {class_name} "
            "بتاريخ {session_date} من {start_time} إلى {end_time}. حجزك مؤكد.",
        ),
    },
}


def build_payload(
    member: Member,
    session: ClassSession,
    gym_class: GymClass,
    position: Optional[int] = None,
) -> Dict[str, Any]:
    """JSON-serializable template data for a notification task."""
    payload = {
        "member_id": str(member.id),
        "tenant_id": str(member.tenant_id),
        "email": member.email,
        "member_name": member.full_name,
        "language": member.preferred_language,
        "class_name": gym_class.name,
        "session_id": str(session.id),
        "session_date": session.session_date.isoformat(),
        "start_time": session.start_time.strftime("%H:%M"),
        "end_time": session.end_time.strftime("%H:%M"),
    }
    if position is not None:
        payload["position"] = position
    return payload


class NotificationService:
    """Renders and sends booking emails."""

    def __init__(self, settings: Optional[Settings] = None):
        self.settings = settings or get_settings()

    @property
    def is_configured(self) -> bool:
        """True when SMTP settings allow sending mail."""
        return bool(self.settings.smtp_server and self.settings.smtp_username)

    def render(self, notification_type: str, payload: Dict[str, Any]) -> Tuple[str, str]:
        """
        Render subject and body in the member's language.

        Args:
            notification_type: One of ``NotificationType``
            payload: Template data built by ``build_payload``

        Returns:
            Tuple of (subject, body)

        Raises:
            KeyError: If the notification type is unknown
        """
        templates = TEMPLATES[notification_type]
        language = payload.get("language")
        if language not in SUPPORTED_LANGUAGES:
            language = "en"
        subject, body = templates[language]
        return subject.format(**payload), body.format(**payload)

    def send(self, notification_type: str, payload: Dict[str, Any]) -> bool:
        """
        Render and send one notification.

        Returns:
            bool: True if the email was sent
        """
        subject, body = self.render(notification_type, payload)
        sent = self._send_email(payload["email"], subject, body)
        if sent:
            logger.info(f"{notification_type} sent to member {payload.get('member_id')}")
        return sent

    def _send_email(self, to_email: str, subject: str, text_content: str) -> bool:
        """
        Send email using SMTP.

        Returns:
            bool: True if email was sent successfully
        """
        if not self.is_configured:
            logger.warning("Email configuration not available, skipping email send")
            return False

        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = f"{self.settings.notification_from_name} <{self.settings.smtp_username}>"
        msg["To"] = to_email
        msg.attach(MIMEText(text_content, "plain", "utf-8"))

        try:
            with smtplib.SMTP(self.settings.smtp_server, self.settings.smtp_port) as server:
                if self.settings.smtp_use_tls:
                    server.starttls()
                server.login(self.settings.smtp_username, self.settings.smtp_password or "")
                server.send_message(msg)
        except (smtplib.SMTPException, OSError) as e:
            logger.error(f"Failed to send email to {to_email}: {e}")
            return False

        logger.info(f"Email sent successfully to {to_email}")
        return True


class CeleryNotificationGateway:
    """NotificationGateway that queues each notification as a Celery task."""

    async def send_booking_confirmation(self, member: Member, session: ClassSession, gym_class: GymClass) -> None:
        self._enqueue(NotificationType.BOOKING_CONFIRMATION, build_payload(member, session, gym_class))

    async def send_waitlist_added(
        self, member: Member, session: ClassSession, gym_class: GymClass, position: int
    ) -> None:
        self._enqueue(NotificationType.WAITLIST_ADDED, build_payload(member, session, gym_class, position))

    async def send_booking_cancellation(self, member: Member, session: ClassSession, gym_class: GymClass) -> None:
        self._enqueue(NotificationType.BOOKING_CANCELLATION, build_payload(member, session, gym_class))

    async def send_waitlist_promotion(self, member: Member, session: ClassSession, gym_class: GymClass) -> None:
        self._enqueue(NotificationType.WAITLIST_PROMOTION, build_payload(member, session, gym_class))

    def _enqueue(self, notification_type: str, payload: Dict[str, Any]) -> None:
        from ..tasks.notification_tasks import send_notification_task
        send_notification_task.delay(notification_type, payload)
        logger.info(f"{notification_type} notification queued for member {payload['member_id']}")
