"""Admin registrations for disputes."""

from __future__ import annotations

from django.contrib import admin

from .models import Dispute, DisputeNote


class DisputeNoteInline(admin.TabularInline):
    model = DisputeNote
    extra = 0
    fields = ("author", "message", "created_at")
    readonly_fields = ("created_at",)


@admin.register(Dispute)
class DisputeAdmin(admin.ModelAdmin):
    list_display = ("id", "booking", "reported_by", "status", "reason", "created_at", "resolved_at")
    list_filter = ("status", "reason")
    search_fields = ("booking__booking_code", "reported_by__email")
    readonly_fields = ("created_at", "updated_at", "resolved_at")
    inlines = [DisputeNoteInline]
