"""Financial models: audit trail of payment gateway interactions."""

from __future__ import annotations

from django.db import models  # type: ignore
from django.utils.translation import gettext_lazy as _  # type: ignore


class PaymentTransaction(models.Model):
    """История обращений к платёжному шлюзу по бронированию."""

    class Event(models.TextChoices):
        INTENT_CREATED = "intent_created", _("Создано платёжное намерение")
        INTENT_CHECKED = "intent_checked", _("Проверен статус платежа")
        REFUND_REQUESTED = "refund_requested", _("Запрошен возврат")
        VOUCHER_PAID = "voucher_paid", _("Оплачен ваучер")
        GATEWAY_ERROR = "gateway_error", _("Ошибка шлюза")
        CALLBACK_RECEIVED = "callback_received", _("Получено уведомление шлюза")

    booking = models.ForeignKey(
        "bookings.Booking",
        on_delete=models.PROTECT,
        related_name="payment_transactions",
    )
    event = models.CharField(max_length=50, choices=Event.choices)
    intent_id = models.CharField(max_length=128, blank=True)
    payload = models.JSONField(default=dict, blank=True)
    status = models.CharField(max_length=20, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = _("Платёжная транзакция")
        verbose_name_plural = _("Платёжные транзакции")
        ordering = ["-created_at"]

    def __str__(self) -> str:
        return f"{self.event} for booking {self.booking_id}"

    @classmethod
    def record(cls, booking, event: str, *, intent_id: str = "", status: str = "", **payload):
        return cls.objects.create(
            booking=booking,
            event=event,
            intent_id=intent_id or "",
            status=status,
            payload={key: str(value) for key, value in payload.items()},
        )
