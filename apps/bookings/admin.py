"""Admin registration for bookings and cash vouchers."""

from __future__ import annotations

from django.contrib import admin

from .models import Booking, CashVoucher


class CashVoucherInline(admin.StackedInline):
    model = CashVoucher
    extra = 0
    can_delete = False
    readonly_fields = (
        "voucher_number",
        "amount",
        "currency",
        "status",
        "expires_at",
        "paid_at",
        "agency_transaction_id",
        "paid_at_agency",
        "confirmed_by",
    )


@admin.register(Booking)
class BookingAdmin(admin.ModelAdmin):
    """Read-mostly view: status changes go through the API so guards apply."""

    list_display = (
        "booking_code",
        "listing",
        "guest",
        "status",
        "payment_method",
        "payment_status",
        "start_date",
        "end_date",
        "total_amount",
        "created_at",
    )
    list_filter = ("status", "payment_method", "payment_status", "start_date")
    search_fields = ("booking_code", "listing__title", "guest__email", "transaction_id")
    readonly_fields = (
        "booking_code",
        "status",
        "payment_status",
        "transaction_id",
        "paid_amount",
        "paid_at",
        "created_at",
        "updated_at",
    )
    inlines = [CashVoucherInline]

    def has_delete_permission(self, request, obj=None):  # type: ignore
        return False


@admin.register(CashVoucher)
class CashVoucherAdmin(admin.ModelAdmin):
    list_display = ("voucher_number", "booking", "amount", "currency", "status", "expires_at", "paid_at")
    list_filter = ("status", "confirmed_by")
    search_fields = ("voucher_number", "booking__booking_code", "agency_transaction_id")
    readonly_fields = ("voucher_number", "status", "qr_payload", "created_at", "updated_at")
