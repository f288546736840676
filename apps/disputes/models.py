"""Dispute models."""

from __future__ import annotations

from django.conf import settings  # type: ignore
from django.db import models  # type: ignore
from django.utils.translation import gettext_lazy as _  # type: ignore

OPEN_DISPUTE_STATUSES = ("open", "pending")


class Dispute(models.Model):
    """Спор по бронированию между гостем и хостом."""

    class Status(models.TextChoices):
        OPEN = "open", _("Открыт")
        PENDING = "pending", _("На рассмотрении")
        RESOLVED = "resolved", _("Решён")

    class Reason(models.TextChoices):
        DAMAGE = "damage", _("Повреждения")
        NOT_AS_DESCRIBED = "not_as_described", _("Не соответствует описанию")
        PAYMENT = "payment", _("Оплата")
        CANCELLATION = "cancellation", _("Отмена")
        OTHER = "other", _("Другое")

    booking = models.ForeignKey(
        "bookings.Booking",
        on_delete=models.PROTECT,
        related_name="disputes",
    )
    reported_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="reported_disputes",
    )
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.OPEN)
    reason = models.CharField(max_length=30, choices=Reason.choices, default=Reason.OTHER)
    description = models.TextField()
    resolution = models.TextField(blank=True)
    resolved_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        null=True,
        blank=True,
        related_name="+",
    )
    resolved_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _("Спор")
        verbose_name_plural = _("Споры")
        ordering = ["-created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["booking"],
                condition=models.Q(status__in=OPEN_DISPUTE_STATUSES),
                name="dispute_single_open_per_booking",
            ),
        ]

    def __str__(self) -> str:
        return f"Dispute #{self.pk} for booking {self.booking_id} ({self.status})"

    @property
    def is_open(self) -> bool:
        return self.status in OPEN_DISPUTE_STATUSES


class DisputeNote(models.Model):
    """Комментарий участника или администратора к спору."""

    dispute = models.ForeignKey(Dispute, on_delete=models.CASCADE, related_name="notes")
    author = models.ForeignKey(settings.AUTH_USER_MODEL, on_delete=models.PROTECT, related_name="+")
    message = models.TextField()
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["created_at"]

    def __str__(self) -> str:
        return f"Note on dispute {self.dispute_id} by {self.author_id}"
