"""Booking domain models for the rental marketplace."""

from __future__ import annotations

import secrets
from decimal import Decimal

from django.conf import settings  # type: ignore
from django.db import models  # type: ignore
from django.utils import timezone  # type: ignore
from django.utils.translation import gettext_lazy as _  # type: ignore

from .domain.entities import (
    OCCUPYING_STATUSES,
    TERMINAL_STATUSES,
    BookingStatus,
    PaymentMethod as DomainPaymentMethod,
    PaymentStatus as DomainPaymentStatus,
    display_status,
)


class Booking(models.Model):
    """Бронирование объявления на полуоткрытый интервал дат [start_date, end_date)."""

    class Status(models.TextChoices):
        PENDING_PAYMENT = BookingStatus.PENDING_PAYMENT.value, _("Ожидает оплаты")
        CONFIRMED = BookingStatus.CONFIRMED.value, _("Подтверждено")
        PAID = BookingStatus.PAID.value, _("Оплачено")
        ACTIVE = BookingStatus.ACTIVE.value, _("Активно")
        COMPLETED = BookingStatus.COMPLETED.value, _("Завершено")
        CANCELLED_BY_GUEST = BookingStatus.CANCELLED_BY_GUEST.value, _("Отменено гостем")
        CANCELLED_BY_HOST = BookingStatus.CANCELLED_BY_HOST.value, _("Отменено хостом")
        EXPIRED = BookingStatus.EXPIRED.value, _("Истекло/не оплачено")

    class PaymentStatus(models.TextChoices):
        PENDING = DomainPaymentStatus.PENDING.value, _("Ожидает оплаты")
        PAID = DomainPaymentStatus.PAID.value, _("Оплачено")
        FAILED = DomainPaymentStatus.FAILED.value, _("Ошибка оплаты")
        REFUNDED = DomainPaymentStatus.REFUNDED.value, _("Возврат")
        REFUND_PENDING = DomainPaymentStatus.REFUND_PENDING.value, _("Ожидает возврата")

    class PaymentMethod(models.TextChoices):
        CARD = DomainPaymentMethod.CARD.value, _("Карта")
        CASH = DomainPaymentMethod.CASH.value, _("Наличные (ваучер)")

    class CancellationSource(models.TextChoices):
        GUEST = "guest", _("Гость")
        HOST = "host", _("Хост")
        ADMIN = "admin", _("Администратор")
        SYSTEM = "system", _("Система")

    listing = models.ForeignKey(
        "listings.Listing",
        on_delete=models.PROTECT,
        related_name="bookings",
    )
    guest = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="bookings",
    )
    host = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="hosted_bookings",
    )
    booking_code = models.CharField(max_length=12, unique=True, editable=False)
    start_date = models.DateField()
    end_date = models.DateField()
    guest_count = models.PositiveSmallIntegerField(default=1)
    status = models.CharField(
        max_length=32,
        choices=Status.choices,
        default=Status.PENDING_PAYMENT,
    )

    # Pricing is computed upstream and stored as given
    nights = models.PositiveSmallIntegerField(default=1)
    subtotal = models.DecimalField(max_digits=12, decimal_places=2, default=Decimal("0.00"))
    cleaning_fee = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("0.00"))
    service_fee = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("0.00"))
    total_amount = models.DecimalField(max_digits=12, decimal_places=2)
    currency = models.CharField(max_length=3, default="KZT")

    payment_method = models.CharField(max_length=10, choices=PaymentMethod.choices)
    payment_status = models.CharField(
        max_length=20,
        choices=PaymentStatus.choices,
        default=PaymentStatus.PENDING,
    )
    transaction_id = models.CharField(
        max_length=128,
        blank=True,
        help_text=_("Идентификатор платёжного намерения в шлюзе."),
    )
    paid_amount = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    paid_at = models.DateTimeField(null=True, blank=True)

    check_in_scheduled_time = models.DateTimeField(null=True, blank=True)
    check_in_actual_time = models.DateTimeField(null=True, blank=True)
    check_in_verified = models.BooleanField(default=False)
    check_in_confirmed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    check_in_notes = models.TextField(blank=True)

    check_out_scheduled_time = models.DateTimeField(null=True, blank=True)
    check_out_actual_time = models.DateTimeField(null=True, blank=True)
    check_out_verified = models.BooleanField(default=False)
    check_out_confirmed_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    check_out_notes = models.TextField(blank=True)
    damage_report = models.TextField(blank=True)

    host_confirmed_completion_at = models.DateTimeField(null=True, blank=True)
    guest_confirmed_completion_at = models.DateTimeField(null=True, blank=True)

    activated_at = models.DateTimeField(null=True, blank=True)
    completed_at = models.DateTimeField(null=True, blank=True)
    auto_completed = models.BooleanField(default=False)
    cancelled_at = models.DateTimeField(null=True, blank=True)
    cancelled_by = models.CharField(
        max_length=20,
        choices=CancellationSource.choices,
        blank=True,
    )
    cancellation_reason = models.CharField(max_length=255, blank=True)
    refund_amount = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _("Бронирование")
        verbose_name_plural = _("Бронирования")
        ordering = ["-created_at"]
        constraints = [
            models.CheckConstraint(
                condition=models.Q(end_date__gt=models.F("start_date")),
                name="booking_valid_dates",
            ),
        ]
        indexes = [
            models.Index(fields=["listing", "start_date", "end_date"], name="booking_listing_dates_idx"),
            models.Index(fields=["status", "start_date"], name="booking_status_start_idx"),
            models.Index(fields=["status", "end_date"], name="booking_status_end_idx"),
        ]

    def __str__(self) -> str:
        return f"Booking #{self.booking_code} for listing {self.listing_id}"

    def save(self, *args, **kwargs):  # type: ignore
        if self._state.adding and not self.booking_code:
            self.booking_code = self.generate_booking_code()
        super().save(*args, **kwargs)

    @staticmethod
    def generate_booking_code() -> str:
        return secrets.token_hex(4).upper()

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def is_occupying(self) -> bool:
        return self.status in OCCUPYING_STATUSES

    def display_status(self, now=None) -> str:
        return display_status(self.status, self.start_date, self.end_date, now)

    def is_stakeholder(self, user) -> bool:
        return user.pk in (self.guest_id, self.host_id)


class CashVoucher(models.Model):
    """Ваучер для оплаты наличными через агента, действителен ограниченное время."""

    class Status(models.TextChoices):
        PENDING = "pending", _("Ожидает оплаты")
        PAID = "paid", _("Оплачен")
        EXPIRED = "expired", _("Истёк")
        CANCELLED = "cancelled", _("Отменён")

    class ConfirmationSource(models.TextChoices):
        WEBHOOK = "webhook", _("Вебхук агента")
        ADMIN = "admin", _("Администратор")
        SYSTEM = "system", _("Система")

    booking = models.OneToOneField(
        Booking,
        on_delete=models.PROTECT,
        related_name="voucher",
    )
    voucher_number = models.CharField(max_length=32, unique=True, editable=False)
    amount = models.DecimalField(max_digits=12, decimal_places=2)
    currency = models.CharField(max_length=3, default="KZT")
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.PENDING)
    expires_at = models.DateTimeField()
    qr_payload = models.TextField(blank=True)
    paid_at = models.DateTimeField(null=True, blank=True)
    agency_transaction_id = models.CharField(max_length=128, blank=True)
    paid_at_agency = models.CharField(
        max_length=255,
        blank=True,
        help_text=_("Пункт приёма платежа."),
    )
    confirmed_by = models.CharField(max_length=20, choices=ConfirmationSource.choices, blank=True)
    reminder_24h_sent = models.BooleanField(default=False)
    reminder_6h_sent = models.BooleanField(default=False)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _("Ваучер наличной оплаты")
        verbose_name_plural = _("Ваучеры наличной оплаты")
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status", "expires_at"], name="voucher_status_expires_idx"),
        ]

    def __str__(self) -> str:
        return self.voucher_number

    def is_past_deadline(self, now=None) -> bool:
        return (now or timezone.now()) > self.expires_at
