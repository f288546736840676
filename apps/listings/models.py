"""Listing models for the rental marketplace."""

from __future__ import annotations

from datetime import time
from decimal import Decimal

from django.conf import settings  # type: ignore
from django.db import models  # type: ignore
from django.utils import timezone  # type: ignore
from django.utils.text import slugify  # type: ignore
from django.utils.translation import gettext_lazy as _  # type: ignore


class Listing(models.Model):
    """Объект посуточной аренды: жильё или транспорт."""

    class Category(models.TextChoices):
        STAY = "stay", _("Жильё")
        VEHICLE = "vehicle", _("Транспорт")

    class Status(models.TextChoices):
        DRAFT = "draft", _("Черновик")
        ACTIVE = "active", _("Активен")
        INACTIVE = "inactive", _("Неактивен")
        BLOCKED = "blocked", _("Заблокирован")

    owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.CASCADE,
        related_name="listings",
    )
    category = models.CharField(max_length=20, choices=Category.choices, default=Category.STAY)
    title = models.CharField(max_length=255)
    slug = models.SlugField(max_length=255, unique=True, blank=True)
    description = models.TextField(blank=True)
    status = models.CharField(max_length=20, choices=Status.choices, default=Status.DRAFT)
    city = models.CharField(max_length=100, blank=True)
    address_line = models.CharField(max_length=255, blank=True)
    base_price = models.DecimalField(max_digits=10, decimal_places=2, default=Decimal("0.00"))
    currency = models.CharField(max_length=3, default="KZT")
    max_guests = models.PositiveSmallIntegerField(
        default=1,
        help_text=_("Для транспорта: число пассажиров."),
    )
    check_in_from = models.TimeField(default=time(14, 0))
    check_out_to = models.TimeField(default=time(12, 0))
    published_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = _("Объявление")
        verbose_name_plural = _("Объявления")
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status"], name="listings_li_status_idx"),
            models.Index(fields=["owner", "status"], name="listings_li_owner_status_idx"),
        ]

    def __str__(self) -> str:
        return self.title

    @property
    def is_bookable(self) -> bool:
        return self.status == self.Status.ACTIVE

    def activate(self) -> None:
        if self.status != self.Status.ACTIVE:
            self.status = self.Status.ACTIVE
            self.published_at = timezone.now()
            self.save(update_fields=["status", "published_at"])

    def save(self, *args, **kwargs):  # type: ignore
        if not self.slug:
            base_slug = slugify(self.title)[:200] or self.category
            candidate = base_slug
            counter = 1
            while self.__class__.objects.filter(slug=candidate).exclude(pk=self.pk).exists():
                counter += 1
                candidate = f"{base_slug}-{counter}"
            self.slug = candidate
        super().save(*args, **kwargs)
