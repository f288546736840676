"""Notification emitter: booking events to in-app notifications and e-mails."""

from __future__ import annotations

import logging
from typing import Any

from django.conf import settings  # type: ignore
from django.core.mail import send_mail  # type: ignore
from django.db import transaction  # type: ignore

from .models import Notification

logger = logging.getLogger(__name__)


# event type -> (recipients, title, message)
# Templates are formatted with the event payload.
MESSAGES: dict[str, tuple[tuple[str, ...], str, str]] = {
    "BookingReserved": (
        ("guest_id", "host_id"),
        "Бронирование #{booking_code} создано",
        "Даты с {start_date} по {end_date} зарезервированы до подтверждения оплаты.",
    ),
    "BookingConfirmed": (
        ("guest_id", "host_id"),
        "Бронирование #{booking_code} подтверждено!",
        "Оплата получена ({paid_amount}). Ждём вас в дату заезда.",
    ),
    "BookingMarkedPaid": (
        ("guest_id",),
        "Бронирование #{booking_code} оплачено",
        "Хост подтвердил расчёт по бронированию.",
    ),
    "BookingActivated": (
        ("guest_id", "host_id"),
        "Бронирование #{booking_code} началось",
        "Аренда активна. Приятного пребывания!",
    ),
    "BookingCheckedOut": (
        ("guest_id", "host_id"),
        "Выезд по бронированию #{booking_code} зафиксирован",
        "Подтвердите завершение бронирования.",
    ),
    "BookingCompleted": (
        ("guest_id", "host_id"),
        "Бронирование #{booking_code} завершено",
        "Спасибо! Оставьте, пожалуйста, отзыв.",
    ),
    "BookingCancelled": (
        ("guest_id", "host_id"),
        "Бронирование #{booking_code} отменено",
        "Бронирование отменено ({cancelled_by}). {reason}",
    ),
    "BookingExpired": (
        ("guest_id", "host_id"),
        "Бронирование #{booking_code} истекло",
        "Ваучер {voucher_number} не был оплачен вовремя, даты освобождены.",
    ),
    "PaymentFailed": (
        ("guest_id",),
        "Оплата бронирования #{booking_code} не прошла",
        "Даты остаются за вами, попробуйте оплатить ещё раз.",
    ),
    "VoucherIssued": (
        ("guest_id",),
        "Ваучер {voucher_number} для оплаты наличными",
        "Оплатите {amount} {currency} до {expires_at}.",
    ),
    "VoucherPaid": (
        ("guest_id", "host_id"),
        "Ваучер {voucher_number} оплачен",
        "Оплата наличными получена, бронирование #{booking_code} подтверждено.",
    ),
    "VoucherReminderDue": (
        ("guest_id",),
        "Осталось {hours_left} ч. на оплату ваучера {voucher_number}",
        "Оплатите ваучер до {expires_at}, иначе бронирование будет отменено.",
    ),
    "DisputeOpened": (
        ("guest_id", "host_id"),
        "Открыт спор по бронированию #{booking_code}",
        "Администратор рассмотрит спор в ближайшее время.",
    ),
}


class _SafeDict(dict):
    def __missing__(self, key: str) -> str:
        return ""


class NotificationEmitter:
    """Fire-and-forget publisher used by the event handlers."""

    def publish(self, event_type: str, payload: dict[str, Any]) -> list[Notification]:
        template = MESSAGES.get(event_type)
        if template is None:
            logger.debug(f"No notification template for {event_type}")
            return []

        recipients_keys, title_tpl, message_tpl = template
        context = _SafeDict(payload)
        title = title_tpl.format_map(context)
        message = message_tpl.format_map(context).strip()

        recipient_ids = []
        for key in recipients_keys:
            user_id = payload.get(key)
            if user_id and user_id not in recipient_ids:
                recipient_ids.append(user_id)

        notifications = [
            Notification.objects.create(
                user_id=user_id,
                event_type=event_type,
                title=title,
                message=message,
                payload=payload,
            )
            for user_id in recipient_ids
        ]

        for notification in notifications:
            transaction.on_commit(lambda pk=notification.pk: _queue_delivery(pk))

        logger.info(
            f"[NOTIFICATION] {event_type} for booking {payload.get('booking_code')} "
            f"-> users {recipient_ids}"
        )
        return notifications


def _queue_delivery(notification_id: int) -> None:
    from .tasks import deliver_notification

    try:
        deliver_notification.delay(notification_id)
    except Exception as e:
        logger.error(f"Failed to queue delivery of notification {notification_id}: {e}", exc_info=True)


def send_email_notification(recipient_email: str, subject: str, message: str) -> bool:
    """
    Отправка email уведомления.

    Returns:
        bool: True если письмо отправлено успешно
    """
    try:
        send_mail(
            subject=subject,
            message=message,
            from_email=settings.DEFAULT_FROM_EMAIL,
            recipient_list=[recipient_email],
            fail_silently=False,
        )
        logger.info(f"Email sent successfully to {recipient_email}: {subject}")
        return True
    except Exception as e:
        logger.error(f"Failed to send email to {recipient_email}: {e}", exc_info=True)
        return False


notification_emitter = NotificationEmitter()
