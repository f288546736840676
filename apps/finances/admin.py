"""Admin registration for payment audit records."""

from __future__ import annotations

from django.contrib import admin

from .models import PaymentTransaction


@admin.register(PaymentTransaction)
class PaymentTransactionAdmin(admin.ModelAdmin):
    list_display = ("booking", "event", "intent_id", "status", "created_at")
    list_filter = ("event", "status")
    search_fields = ("booking__booking_code", "intent_id")
    readonly_fields = ("booking", "event", "intent_id", "payload", "status", "created_at")
