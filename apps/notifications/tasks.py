"""Celery tasks for notification delivery."""

from __future__ import annotations

import logging

from celery import shared_task  # type: ignore
from django.utils import timezone  # type: ignore

from .models import Notification
from .services import send_email_notification

logger = logging.getLogger(__name__)


@shared_task(name="notifications.deliver_notification")
def deliver_notification(notification_id: int) -> bool:
    """Отправляет уведомление по email, если оно ещё не отправлено."""
    try:
        notification = Notification.objects.select_related("user").get(pk=notification_id)
    except Notification.DoesNotExist:
        logger.error(f"Notification {notification_id} not found for delivery")
        return False

    if notification.emailed_at is not None:
        return True

    if not notification.user.email:
        return False

    sent = send_email_notification(notification.user.email, notification.title, notification.message)
    if sent:
        Notification.objects.filter(pk=notification.pk, emailed_at__isnull=True).update(
            emailed_at=timezone.now()
        )
    return sent
