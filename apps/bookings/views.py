"""API views for the booking domain."""

from __future__ import annotations

import logging

from django.db.models import Q  # type: ignore
from rest_framework import permissions, status, viewsets  # type: ignore
from rest_framework.decorators import action  # type: ignore
from rest_framework.response import Response  # type: ignore

from apps.finances.gateways import verify_callback_signature
from apps.users.permissions import IsPlatformAdmin, is_platform_admin

from .application.command_handlers import (
    CancelBookingCommand,
    CancelBookingHandler,
    CheckInCommand,
    CheckInHandler,
    CheckOutCommand,
    CheckOutHandler,
    ConfirmCompletionCommand,
    ConfirmCompletionHandler,
    CreateCardBookingCommand,
    CreateCardBookingHandler,
    CreateCashBookingCommand,
    CreateCashBookingHandler,
    PaymentCallbackCommand,
    PaymentCallbackHandler,
    RetryPaymentCommand,
    RetryPaymentHandler,
    UpdateStatusCommand,
    UpdateStatusHandler,
    VerifyPaymentCommand,
    VerifyPaymentHandler,
)
from .domain.exceptions import UnauthorizedActorError
from .models import Booking, CashVoucher
from .serializers import (
    BookingCreateSerializer,
    BookingSerializer,
    CancelSerializer,
    CheckInSerializer,
    CheckOutSerializer,
    PaymentCallbackSerializer,
    PaymentIntentSerializer,
    StatusUpdateSerializer,
    VoucherConfirmSerializer,
    VoucherSerializer,
)
from .vouchers import voucher_manager

logger = logging.getLogger(__name__)

VOUCHER_NUMBER_PATTERN = r"(?P<voucher_number>[A-Za-z0-9-]+)"
PAYMENT_SIGNATURE_HEADER = "X-Payment-Signature"


class IsBookingStakeholder(permissions.BasePermission):
    """Гость, хост и администраторы имеют доступ к бронированию."""

    def has_object_permission(self, request, view, obj: Booking):  # type: ignore
        user = request.user
        if not user.is_authenticated:
            return False
        if is_platform_admin(user):
            return True
        return obj.is_stakeholder(user)


class BookingViewSet(viewsets.ReadOnlyModelViewSet):
    """Бронирования: создание с оплатой, жизненный цикл и ваучеры."""

    queryset = Booking.objects.select_related("listing", "guest", "host").all()
    serializer_class = BookingSerializer
    permission_classes = [permissions.IsAuthenticated, IsBookingStakeholder]
    filterset_fields = ["status", "payment_method", "payment_status", "listing"]

    def get_queryset(self):  # type: ignore
        user = self.request.user
        qs = super().get_queryset()
        if not user.is_authenticated:
            return qs.none()
        if is_platform_admin(user):
            return qs
        return qs.filter(Q(guest=user) | Q(host=user))

    def _booking_response(self, booking: Booking, http_status=status.HTTP_200_OK, **extra) -> Response:
        data = dict(BookingSerializer(booking, context=self.get_serializer_context()).data)
        data.update(extra)
        return Response(data, status=http_status)

    def _creation_command(self, request, command_class):
        serializer = BookingCreateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = dict(serializer.validated_data)
        listing = data.pop("listing")
        return command_class(listing_id=listing.pk, guest=request.user, **data)

    # --- Создание ------------------------------------------------------------
    @action(detail=False, methods=["post"], url_path="create-with-payment")
    def create_with_payment(self, request):  # type: ignore
        command = self._creation_command(request, CreateCardBookingCommand)
        booking, intent = CreateCardBookingHandler().handle(command)
        return self._booking_response(
            booking,
            status.HTTP_201_CREATED,
            payment=PaymentIntentSerializer(intent).data,
        )

    @action(detail=False, methods=["post"], url_path="create-with-cash")
    def create_with_cash(self, request):  # type: ignore
        command = self._creation_command(request, CreateCashBookingCommand)
        booking, voucher = CreateCashBookingHandler().handle(command)
        return self._booking_response(
            booking,
            status.HTTP_201_CREATED,
            voucher=VoucherSerializer(voucher).data,
        )

    # --- Ваучеры -------------------------------------------------------------
    @action(detail=False, methods=["get"], url_path=f"voucher/{VOUCHER_NUMBER_PATTERN}")
    def voucher(self, request, voucher_number=None):  # type: ignore
        voucher: CashVoucher = voucher_manager.lookup(voucher_number)
        if not (is_platform_admin(request.user) or voucher.booking.is_stakeholder(request.user)):
            raise UnauthorizedActorError()
        return Response(VoucherSerializer(voucher).data)

    @action(
        detail=False,
        methods=["post"],
        url_path=f"voucher/{VOUCHER_NUMBER_PATTERN}/confirm",
        permission_classes=[permissions.IsAuthenticated, IsPlatformAdmin],
    )
    def confirm_voucher(self, request, voucher_number=None):  # type: ignore
        serializer = VoucherConfirmSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        voucher = voucher_manager.confirm_payment(
            voucher_number,
            serializer.validated_data["transaction_id"],
            agency=serializer.validated_data["agency"],
            confirmed_by=CashVoucher.ConfirmationSource.ADMIN,
        )
        return Response(VoucherSerializer(voucher).data)

    # --- Оплата картой -------------------------------------------------------
    @action(detail=True, methods=["get"], url_path="verify-payment")
    def verify_payment(self, request, pk=None):  # type: ignore
        booking = self.get_object()
        booking = VerifyPaymentHandler().handle(VerifyPaymentCommand(booking.pk, request.user))
        return self._booking_response(booking)

    @action(
        detail=False,
        methods=["post"],
        url_path="payment-callback",
        permission_classes=[permissions.AllowAny],
        authentication_classes=[],
    )
    def payment_callback(self, request):  # type: ignore
        """Уведомление платёжного шлюза, подписанное секретным ключом."""
        payload = {key: value for key, value in request.data.items() if key != "signature"}
        signature = request.headers.get(PAYMENT_SIGNATURE_HEADER) or request.data.get("signature", "")
        if not verify_callback_signature(payload, signature):
            logger.error("Payment callback rejected: invalid signature")
            raise UnauthorizedActorError("Неверная подпись уведомления.", code="invalid_signature")

        serializer = PaymentCallbackSerializer(data=payload)
        serializer.is_valid(raise_exception=True)
        booking = PaymentCallbackHandler().handle(
            PaymentCallbackCommand(serializer.validated_data["payment_id"], payload)
        )
        return Response({"booking_id": booking.pk, "status": booking.status, "payment_status": booking.payment_status})

    @action(detail=True, methods=["post"], url_path="retry-payment")
    def retry_payment(self, request, pk=None):  # type: ignore
        booking = self.get_object()
        booking, intent = RetryPaymentHandler().handle(RetryPaymentCommand(booking.pk, request.user))
        return self._booking_response(booking, payment=PaymentIntentSerializer(intent).data)

    # --- Проживание ----------------------------------------------------------
    @action(detail=True, methods=["post"], url_path="check-in")
    def check_in(self, request, pk=None):  # type: ignore
        booking = self.get_object()
        serializer = CheckInSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        booking = CheckInHandler().handle(
            CheckInCommand(booking.pk, request.user, serializer.validated_data["notes"])
        )
        return self._booking_response(booking)

    @action(detail=True, methods=["post"], url_path="check-out")
    def check_out(self, request, pk=None):  # type: ignore
        booking = self.get_object()
        serializer = CheckOutSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        booking = CheckOutHandler().handle(CheckOutCommand(booking.pk, request.user, **serializer.validated_data))
        return self._booking_response(booking)

    @action(detail=True, methods=["post"], url_path="confirm-completion")
    def confirm_completion(self, request, pk=None):  # type: ignore
        booking = self.get_object()
        booking = ConfirmCompletionHandler().handle(ConfirmCompletionCommand(booking.pk, request.user))
        return self._booking_response(booking)

    # --- Отмена и ручная смена статуса ---------------------------------------
    @action(detail=True, methods=["patch"])
    def cancel(self, request, pk=None):  # type: ignore
        booking = self.get_object()
        serializer = CancelSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        booking = CancelBookingHandler().handle(
            CancelBookingCommand(booking.pk, request.user, serializer.validated_data["reason"])
        )
        return self._booking_response(booking)

    @action(detail=True, methods=["patch"], url_path="status", url_name="update-status")
    def update_status(self, request, pk=None):  # type: ignore
        booking = self.get_object()
        serializer = StatusUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        booking = UpdateStatusHandler().handle(
            UpdateStatusCommand(booking.pk, request.user, **serializer.validated_data)
        )
        return self._booking_response(booking)
