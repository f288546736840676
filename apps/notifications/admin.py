"""Admin registration for notifications."""

from __future__ import annotations

from django.contrib import admin  # type: ignore

from .models import Notification


@admin.register(Notification)
class NotificationAdmin(admin.ModelAdmin):
    list_display = ("user", "event_type", "title", "is_read", "emailed_at", "created_at")
    list_filter = ("event_type", "is_read")
    search_fields = ("user__email", "title")
    actions = ["mark_as_read"]

    @admin.action(description="Отметить как прочитанные")
    def mark_as_read(self, request, queryset):  # type: ignore
        for notification in queryset:
            notification.mark_read()
