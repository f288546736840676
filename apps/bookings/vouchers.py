"""Cash voucher sub-protocol: issue, pay at an agent, expire."""

from __future__ import annotations

import json
import logging
import secrets
from datetime import datetime, timedelta
from decimal import Decimal

from django.conf import settings  # type: ignore
from django.db import IntegrityError, transaction  # type: ignore
from django.utils import timezone  # type: ignore

from shared.application.uow import DjangoUnitOfWork

from . import state_machine
from .domain.entities import BookingAction
from .domain.events import BookingConfirmed, BookingExpired, VoucherIssued, VoucherPaid
from .domain.exceptions import (
    BookingValidationError,
    TerminalStateError,
    VoucherNotFound,
    VoucherStateError,
)
from .models import Booking, CashVoucher

logger = logging.getLogger(__name__)

VOUCHER_PREFIX = "CV"
_NUMBER_ATTEMPTS = 5


def booking_event_kwargs(booking: Booking) -> dict:
    return {
        "aggregate_id": booking.pk,
        "booking_id": booking.pk,
        "booking_code": booking.booking_code,
        "guest_id": booking.guest_id,
        "host_id": booking.host_id,
    }


class CashVoucherManager:
    """
    Issues and settles time-boxed cash vouchers.

    A voucher is valid for CASH_VOUCHER_TTL_HOURS after issue. Paying it
    confirms the booking; an unpaid voucher past its deadline is expired by
    the booking sweep, which releases the booking's dates. Expired vouchers
    are never re-armed.
    """

    @property
    def ttl(self) -> timedelta:
        return timedelta(hours=settings.CASH_VOUCHER_TTL_HOURS)

    @staticmethod
    def generate_voucher_number(now: datetime) -> str:
        return f"{VOUCHER_PREFIX}-{now.year}-{secrets.token_hex(4).upper()}"

    def issue(
        self,
        booking: Booking,
        amount: Decimal | None = None,
        currency: str | None = None,
        *,
        now: datetime | None = None,
    ) -> CashVoucher:
        if booking.is_terminal:
            raise TerminalStateError()
        if booking.status != Booking.Status.PENDING_PAYMENT:
            raise BookingValidationError("Ваучер выдаётся только для неоплаченного бронирования.")
        if booking.payment_method != Booking.PaymentMethod.CASH:
            raise BookingValidationError("Бронирование оплачивается не наличными.")

        now = now or timezone.now()
        amount = booking.total_amount if amount is None else amount
        currency = currency or booking.currency
        expires_at = now + self.ttl

        with DjangoUnitOfWork() as uow:
            voucher = self._create_with_unique_number(booking, amount, currency, expires_at, now)
            uow.add_event(VoucherIssued(
                voucher_number=voucher.voucher_number,
                amount=voucher.amount,
                currency=voucher.currency,
                expires_at=voucher.expires_at,
                **booking_event_kwargs(booking),
            ))

        logger.info(
            f"Issued voucher {voucher.voucher_number} for booking {booking.booking_code}, "
            f"{amount} {currency}, expires {expires_at.isoformat()}"
        )
        return voucher

    def _create_with_unique_number(self, booking, amount, currency, expires_at, now) -> CashVoucher:
        for attempt in range(1, _NUMBER_ATTEMPTS + 1):
            number = self.generate_voucher_number(now)
            payload = json.dumps({
                "voucher": number,
                "booking": booking.booking_code,
                "amount": str(amount),
                "currency": currency,
                "expires_at": expires_at.isoformat(),
            }, sort_keys=True)
            try:
                with transaction.atomic():
                    return CashVoucher.objects.create(
                        booking=booking,
                        voucher_number=number,
                        amount=amount,
                        currency=currency,
                        expires_at=expires_at,
                        qr_payload=payload,
                    )
            except IntegrityError:
                if CashVoucher.objects.filter(booking=booking).exists():
                    raise BookingValidationError("Для бронирования уже выдан ваучер.")
                logger.warning(f"Voucher number collision on attempt {attempt}: {number}")
        raise BookingValidationError("Не удалось сгенерировать номер ваучера.")

    def lookup(self, voucher_number: str) -> CashVoucher:
        try:
            return CashVoucher.objects.select_related("booking", "booking__listing").get(
                voucher_number=voucher_number
            )
        except CashVoucher.DoesNotExist as e:
            raise VoucherNotFound() from e

    def confirm_payment(
        self,
        voucher_number: str,
        external_transaction_id: str,
        *,
        agency: str = "",
        confirmed_by: str = CashVoucher.ConfirmationSource.WEBHOOK,
        now: datetime | None = None,
    ) -> CashVoucher:
        """
        Record an agent's cash receipt and confirm the booking.

        Repeating the call for an already-paid voucher with the same
        transaction id returns the voucher unchanged.
        """
        now = now or timezone.now()

        with DjangoUnitOfWork() as uow:
            try:
                voucher = (
                    CashVoucher.objects.select_for_update()
                    .select_related("booking")
                    .get(voucher_number=voucher_number)
                )
            except CashVoucher.DoesNotExist as e:
                raise VoucherNotFound() from e

            if voucher.status == CashVoucher.Status.PAID:
                if external_transaction_id and voucher.agency_transaction_id not in ("", external_transaction_id):
                    raise VoucherStateError("Ваучер уже оплачен другой транзакцией.")
                logger.info(f"Voucher {voucher_number} already paid, confirmation ignored")
                return voucher

            if voucher.status != CashVoucher.Status.PENDING:
                raise VoucherStateError()
            if voucher.is_past_deadline(now):
                raise VoucherStateError("Срок действия ваучера истёк.")

            booking = voucher.booking
            state_machine.apply(
                booking,
                BookingAction.CASH_PAYMENT_CONFIRMED,
                payment_status=Booking.PaymentStatus.PAID,
                paid_amount=voucher.amount,
                paid_at=now,
            )

            updated = CashVoucher.objects.filter(
                pk=voucher.pk,
                status=CashVoucher.Status.PENDING,
            ).update(
                status=CashVoucher.Status.PAID,
                paid_at=now,
                agency_transaction_id=external_transaction_id or "",
                paid_at_agency=agency,
                confirmed_by=confirmed_by,
                updated_at=now,
            )
            if not updated:
                raise VoucherStateError()

            voucher.refresh_from_db()
            uow.add_event(VoucherPaid(
                voucher_number=voucher.voucher_number,
                agency_transaction_id=voucher.agency_transaction_id,
                confirmed_by=voucher.confirmed_by,
                **booking_event_kwargs(booking),
            ))
            uow.add_event(BookingConfirmed(
                payment_method=booking.payment_method,
                paid_amount=voucher.amount,
                **booking_event_kwargs(booking),
            ))

        logger.info(
            f"Voucher {voucher_number} paid ({confirmed_by}, tx {external_transaction_id}), "
            f"booking {booking.booking_code} confirmed"
        )
        return voucher

    def expire(self, voucher: CashVoucher, *, now: datetime | None = None) -> bool | state_machine.SchedulerNoOp:
        """Expire an unpaid voucher past its deadline and its booking with it."""
        now = now or timezone.now()

        with DjangoUnitOfWork() as uow:
            updated = CashVoucher.objects.filter(
                pk=voucher.pk,
                status=CashVoucher.Status.PENDING,
                expires_at__lt=now,
            ).update(status=CashVoucher.Status.EXPIRED, updated_at=now)
            if not updated:
                return state_machine.SchedulerNoOp(voucher.booking_id, "voucher_expired", "voucher not pending or not due")

            booking = Booking.objects.get(pk=voucher.booking_id)
            result = state_machine.try_apply(
                booking,
                BookingAction.VOUCHER_EXPIRED,
                payment_status=Booking.PaymentStatus.FAILED,
                cancelled_by=Booking.CancellationSource.SYSTEM,
                cancellation_reason="Ваучер не оплачен в срок",
                cancelled_at=now,
            )
            if result:
                uow.add_event(BookingExpired(
                    voucher_number=voucher.voucher_number,
                    **booking_event_kwargs(booking),
                ))
            return result

    def cancel(self, voucher: CashVoucher) -> bool:
        return bool(CashVoucher.objects.filter(
            pk=voucher.pk,
            status=CashVoucher.Status.PENDING,
        ).update(status=CashVoucher.Status.CANCELLED, updated_at=timezone.now()))

    def vouchers_needing_reminder(self, hours_before: int, flag: str, *, now: datetime | None = None):
        now = now or timezone.now()
        return CashVoucher.objects.filter(
            status=CashVoucher.Status.PENDING,
            expires_at__gt=now,
            expires_at__lte=now + timedelta(hours=hours_before),
            **{flag: False},
        ).select_related("booking")


voucher_manager = CashVoucherManager()
