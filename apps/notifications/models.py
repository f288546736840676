"""Notification model.

In-app notifications created when booking lifecycle events are published.
Each notification can additionally be delivered by email and marked as read
by its recipient.
"""

from __future__ import annotations

from django.db import models  # type: ignore
from django.utils.translation import gettext_lazy as _  # type: ignore


class Notification(models.Model):
    """Сообщение участнику о событии бронирования."""

    user = models.ForeignKey(
        'users.CustomUser', on_delete=models.CASCADE, related_name='notifications'
    )
    event_type = models.CharField(_('Событие'), max_length=64, db_index=True)
    title = models.CharField(_('Заголовок'), max_length=255)
    message = models.TextField(_('Текст'))
    payload = models.JSONField(default=dict, blank=True)
    is_read = models.BooleanField(default=False)
    emailed_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        verbose_name = _('Уведомление')
        verbose_name_plural = _('Уведомления')
        ordering = ['-created_at']
        indexes = [
            models.Index(fields=['user', 'is_read'], name='notification_user_unread_idx'),
        ]

    def __str__(self) -> str:
        return f"[{self.event_type}] {self.title} -> user {self.user_id}"

    def mark_read(self) -> None:
        if not self.is_read:
            self.is_read = True
            self.save(update_fields=['is_read'])
