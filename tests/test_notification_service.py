"""Notification rendering, SMTP delivery and task queueing."""

import smtplib
import uuid
from datetime import date, time
from unittest.mock import MagicMock, patch

import pytest
from celery.exceptions import Retry

from class_booking.config import Settings
from class_booking.domain import ClassSession, GymClass, Member
from class_booking.services import CeleryNotificationGateway, NotificationService
from class_booking.services.notification_service import NotificationType, build_payload

TENANT = uuid.uuid4()


@pytest.fixture
def member():
    return Member(
        id=uuid.uuid4(),
        tenant_id=TENANT,
        email="sara@example.com",
        first_name="Sara",
        last_name="Ali",
    )


@pytest.fixture
def gym_class():
    return GymClass(id=uuid.uuid4(), tenant_id=TENANT, name="Spin")


@pytest.fixture
def session(gym_class):
    return ClassSession(
        id=uuid.uuid4(),
        tenant_id=TENANT,
        gym_class_id=gym_class.id,
        session_date=date(2030, 3, 4),
        start_time=time(18, 0),
        end_time=time(18, 45),
        max_capacity=gym_class.max_capacity,
    )


@pytest.fixture
def smtp_settings():
    return Settings(smtp_server="smtp.example.com", smtp_username="bookings@example.com", smtp_password="secret")


def test_payload_carries_template_fields(member, session, gym_class):
    payload = build_payload(member, session, gym_class, position=3)

    assert payload["member_name"] == "Sara Ali"
    assert payload["class_name"] == "Spin"
    assert payload["session_date"] == "2030-03-04"
    assert payload["start_time"] == "18:00"
    assert payload["end_time"] == "18:45"
    assert payload["position"] == 3
    assert "position" not in build_payload(member, session, gym_class)


def test_render_english(member, session, gym_class):
    payload = build_payload(member, session, gym_class, position=2)

    subject, body = NotificationService(Settings()).render(NotificationType.WAITLIST_ADDED, payload)

    assert subject == "You're on the waitlist - Spin"
    assert "number 2 on the waitlist" in body


def test_render_arabic(member, session, gym_class):
    member.preferred_language = "ar"
    payload = build_payload(member, session, gym_class)

    subject, body = NotificationService(Settings()).render(NotificationType.BOOKING_CONFIRMATION, payload)

    assert subject.startswith("تم تأكيد الحجز")
    assert "Spin" in body


def test_unknown_language_falls_back_to_english(member, session, gym_class):
    member.preferred_language = "fr"
    payload = build_payload(member, session, gym_class)

    subject, _ = NotificationService(Settings()).render(NotificationType.BOOKING_CANCELLATION, payload)

    assert subject == "Booking cancelled - Spin"


def test_send_without_smtp_config_is_skipped(member, session, gym_class):
    service = NotificationService(Settings(smtp_server=None, smtp_username=None))

    with patch("class_booking.services.notification_service.smtplib.SMTP") as smtp:
        sent = service.send(NotificationType.WAITLIST_PROMOTION, build_payload(member, session, gym_class))

    assert sent is False
    smtp.assert_not_called()


def test_send_delivers_over_smtp(member, session, gym_class, smtp_settings):
    service = NotificationService(smtp_settings)

    with patch("class_booking.services.notification_service.smtplib.SMTP") as smtp:
        sent = service.send(NotificationType.BOOKING_CONFIRMATION, build_payload(member, session, gym_class))

    assert sent is True
    smtp.assert_called_once_with("smtp.example.com", 587)
    server = smtp.return_value.__enter__.return_value
    server.starttls.assert_called_once()
    server.login.assert_called_once_with("bookings@example.com", "secret")
    message = server.send_message.call_args[0][0]
    assert message["To"] == "sara@example.com"
    assert message["Subject"] == "Booking confirmed - Spin"


def test_smtp_failure_returns_false(member, session, gym_class, smtp_settings):
    service = NotificationService(smtp_settings)

    with patch("class_booking.services.notification_service.smtplib.SMTP") as smtp:
        smtp.return_value.__enter__.return_value.send_message.side_effect = smtplib.SMTPException("down")
        sent = service.send(NotificationType.BOOKING_CONFIRMATION, build_payload(member, session, gym_class))

    assert sent is False


# ---- celery gateway ----


async def test_gateway_queues_task_with_payload(member, session, gym_class):
    gateway = CeleryNotificationGateway()

    with patch("class_booking.tasks.notification_tasks.send_notification_task") as task:
        await gateway.send_waitlist_added(member, session, gym_class, 4)

    task.delay.assert_called_once()
    notification_type, payload = task.delay.call_args[0]
    assert notification_type == NotificationType.WAITLIST_ADDED
    assert payload["member_id"] == str(member.id)
    assert payload["position"] == 4


async def test_gateway_maps_each_notification_type(member, session, gym_class):
    gateway = CeleryNotificationGateway()
    task = MagicMock()

    with patch("class_booking.tasks.notification_tasks.send_notification_task", task):
        await gateway.send_booking_confirmation(member, session, gym_class)
        await gateway.send_booking_cancellation(member, session, gym_class)
        await gateway.send_waitlist_promotion(member, session, gym_class)

    assert [c[0][0] for c in task.delay.call_args_list] == [
        NotificationType.BOOKING_CONFIRMATION,
        NotificationType.BOOKING_CANCELLATION,
        NotificationType.WAITLIST_PROMOTION,
    ]


# ---- notification task ----


def _task_service(sent, configured):
    service = MagicMock()
    service.send.return_value = sent
    service.is_configured = configured
    return service


def test_task_retries_failed_delivery(member, session, gym_class):
    from class_booking.tasks.notification_tasks import send_notification_task

    payload = build_payload(member, session, gym_class)
    with patch(
        "class_booking.tasks.notification_tasks.NotificationService",
        return_value=_task_service(sent=False, configured=True),
    ), patch.object(send_notification_task, "retry", side_effect=Retry()) as retry:
        with pytest.raises(Retry):
            send_notification_task(NotificationType.BOOKING_CONFIRMATION, payload)

    retry.assert_called_once()


@pytest.mark.parametrize("sent,configured,status", [(True, True, "sent"), (False, False, "skipped")])
def test_task_does_not_retry_sent_or_unconfigured(member, session, gym_class, sent, configured, status):
    from class_booking.tasks.notification_tasks import send_notification_task

    payload = build_payload(member, session, gym_class)
    with patch(
        "class_booking.tasks.notification_tasks.NotificationService",
        return_value=_task_service(sent=sent, configured=configured),
    ), patch.object(send_notification_task, "retry") as retry:
        result = send_notification_task(NotificationType.WAITLIST_PROMOTION, payload)

    assert result["status"] == status
    retry.assert_not_called()


def test_is_configured_requires_server_and_username(smtp_settings):
    assert NotificationService(smtp_settings).is_configured is True
    assert NotificationService(Settings(smtp_server="smtp.example.com", smtp_username=None)).is_configured is False
