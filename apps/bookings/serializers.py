"""Serializers for the booking domain."""

from __future__ import annotations

from rest_framework import serializers  # type: ignore

from apps.listings.models import Listing

from .models import Booking, CashVoucher


class BookingCreateSerializer(serializers.Serializer):
    """Входные данные для создания брони (оплата картой или наличными)."""

    listing = serializers.PrimaryKeyRelatedField(queryset=Listing.objects.all())
    start_date = serializers.DateField()
    end_date = serializers.DateField()
    guest_count = serializers.IntegerField(min_value=1, default=1)
    total_amount = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0)
    currency = serializers.CharField(max_length=3, default="KZT")
    subtotal = serializers.DecimalField(max_digits=12, decimal_places=2, min_value=0, required=False)
    cleaning_fee = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=0, required=False)
    service_fee = serializers.DecimalField(max_digits=10, decimal_places=2, min_value=0, required=False)

    def validate(self, attrs):  # type: ignore
        if attrs["start_date"] >= attrs["end_date"]:
            raise serializers.ValidationError("Дата окончания должна быть позже даты начала.")
        return attrs


class VoucherSerializer(serializers.ModelSerializer):
    booking_code = serializers.ReadOnlyField(source="booking.booking_code")
    booking_status = serializers.ReadOnlyField(source="booking.status")

    class Meta:
        model = CashVoucher
        fields = [
            "voucher_number",
            "booking_code",
            "booking_status",
            "amount",
            "currency",
            "status",
            "expires_at",
            "qr_payload",
            "paid_at",
            "paid_at_agency",
            "confirmed_by",
            "created_at",
        ]
        read_only_fields = fields


class VoucherConfirmSerializer(serializers.Serializer):
    transaction_id = serializers.CharField(max_length=128)
    agency = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")


class PaymentCallbackSerializer(serializers.Serializer):
    payment_id = serializers.CharField(max_length=128)
    status = serializers.CharField(max_length=32)
    amount = serializers.IntegerField(required=False, min_value=0)


class PaymentIntentSerializer(serializers.Serializer):
    intent_id = serializers.CharField()
    checkout_url = serializers.CharField()
    status = serializers.CharField()


class BookingSerializer(serializers.ModelSerializer):
    """Детальный сериализатор бронирования."""

    listing_id = serializers.ReadOnlyField(source="listing.id")
    listing_title = serializers.ReadOnlyField(source="listing.title")
    guest_id = serializers.ReadOnlyField(source="guest.id")
    host_id = serializers.ReadOnlyField(source="host.id")
    display_status = serializers.SerializerMethodField()

    class Meta:
        model = Booking
        fields = [
            "id",
            "booking_code",
            "listing_id",
            "listing_title",
            "guest_id",
            "host_id",
            "start_date",
            "end_date",
            "guest_count",
            "status",
            "display_status",
            "nights",
            "subtotal",
            "cleaning_fee",
            "service_fee",
            "total_amount",
            "currency",
            "payment_method",
            "payment_status",
            "transaction_id",
            "paid_amount",
            "paid_at",
            "check_in_scheduled_time",
            "check_in_actual_time",
            "check_in_notes",
            "check_out_scheduled_time",
            "check_out_actual_time",
            "check_out_notes",
            "damage_report",
            "host_confirmed_completion_at",
            "guest_confirmed_completion_at",
            "activated_at",
            "completed_at",
            "auto_completed",
            "cancelled_at",
            "cancelled_by",
            "cancellation_reason",
            "refund_amount",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_display_status(self, obj: Booking) -> str:
        return obj.display_status()


class CancelSerializer(serializers.Serializer):
    reason = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")


class StatusUpdateSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=Booking.Status.choices)
    reason = serializers.CharField(max_length=255, required=False, allow_blank=True, default="")


class CheckInSerializer(serializers.Serializer):
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class CheckOutSerializer(serializers.Serializer):
    notes = serializers.CharField(required=False, allow_blank=True, default="")
    damage_report = serializers.CharField(required=False, allow_blank=True, default="")
