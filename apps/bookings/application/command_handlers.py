"""
Booking Command Handlers

These are the use cases behind the booking API. Each handler runs its
state changes inside a DjangoUnitOfWork so that domain events are only
published once the transaction has committed.

Commands:
- CreateCardBookingCommand: Reserve dates and open a card payment intent
- CreateCashBookingCommand: Reserve dates and issue a cash voucher
- VerifyPaymentCommand: Reconcile the stored intent with the gateway
- PaymentCallbackCommand: Apply an outcome pushed by the gateway
- RetryPaymentCommand: Open a fresh intent for an unpaid card booking
- CancelBookingCommand: Cancel by guest, host or admin
- UpdateStatusCommand: Host/admin status change
- CheckInCommand / CheckOutCommand / ConfirmCompletionCommand
"""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from typing import Optional, Tuple
import logging

from django.db import transaction
from django.utils import timezone

from apps.finances.gateways import PaymentIntent, PaymentOutcome, get_payment_gateway, outcome_from_payload
from apps.finances.models import PaymentTransaction
from apps.listings.models import Listing
from apps.users.permissions import is_platform_admin
from shared.application.uow import DjangoUnitOfWork
from shared.domain.value_objects import DateRange, Money

from apps.bookings import state_machine
from apps.bookings.domain.entities import BookingAction, BookingStatus, resolve_transition
from apps.bookings.domain.events import (
    BookingActivated,
    BookingCancelled,
    BookingCheckedOut,
    BookingCompleted,
    BookingConfirmed,
    BookingMarkedPaid,
    BookingReserved,
    PaymentFailed,
)
from apps.bookings.domain.exceptions import (
    BookingNotFound,
    BookingValidationError,
    GatewayError,
    InvalidTransitionError,
    TerminalStateError,
    UnauthorizedActorError,
)
from apps.bookings.models import Booking, CashVoucher
from apps.bookings.services import availability_guard
from apps.bookings.vouchers import booking_event_kwargs, voucher_manager

logger = logging.getLogger(__name__)

ROLE_GUEST = 'guest'
ROLE_HOST = 'host'
ROLE_ADMIN = 'admin'


def actor_role(booking: Booking, actor) -> Optional[str]:
    """The capacity in which `actor` acts on `booking`, or None"""
    if is_platform_admin(actor):
        return ROLE_ADMIN
    if actor.pk == booking.host_id:
        return ROLE_HOST
    if actor.pk == booking.guest_id:
        return ROLE_GUEST
    return None


def require_role(booking: Booking, actor, *allowed: str) -> str:
    role = actor_role(booking, actor)
    if role not in allowed:
        raise UnauthorizedActorError()
    return role


def load_booking(booking_id) -> Booking:
    try:
        return Booking.objects.select_related('listing').get(pk=booking_id)
    except Booking.DoesNotExist:
        raise BookingNotFound()


# ===== Commands =====

@dataclass
class CreateBookingCommand:
    """
    Reserve a listing for [start_date, end_date)

    Pricing is computed upstream; total_amount is stored as given.
    """
    listing_id: int
    guest: object
    start_date: date
    end_date: date
    total_amount: Decimal
    currency: str = 'KZT'
    guest_count: int = 1
    subtotal: Decimal = Decimal('0')
    cleaning_fee: Decimal = Decimal('0')
    service_fee: Decimal = Decimal('0')


@dataclass
class CreateCardBookingCommand(CreateBookingCommand):
    pass


@dataclass
class CreateCashBookingCommand(CreateBookingCommand):
    pass


@dataclass
class VerifyPaymentCommand:
    booking_id: int
    actor: object


@dataclass
class PaymentCallbackCommand:
    intent_id: str
    payload: dict


@dataclass
class RetryPaymentCommand:
    booking_id: int
    actor: object


@dataclass
class CancelBookingCommand:
    booking_id: int
    actor: object
    reason: str = ''


@dataclass
class UpdateStatusCommand:
    booking_id: int
    actor: object
    status: str
    reason: str = ''


@dataclass
class CheckInCommand:
    booking_id: int
    actor: object
    notes: str = ''


@dataclass
class CheckOutCommand:
    booking_id: int
    actor: object
    notes: str = ''
    damage_report: str = ''


@dataclass
class ConfirmCompletionCommand:
    booking_id: int
    actor: object


# ===== Creation =====

class _CreateBookingHandler:
    payment_method: str = ''

    def _validate(self, command: CreateBookingCommand) -> Tuple[Listing, DateRange, Money]:
        try:
            dates = DateRange(command.start_date, command.end_date)
        except (TypeError, ValueError) as e:
            raise BookingValidationError(str(e))

        if command.start_date < timezone.localdate():
            raise BookingValidationError("Дата начала не может быть в прошлом.")

        try:
            total = Money(command.total_amount, command.currency)
        except (TypeError, ValueError) as e:
            raise BookingValidationError(str(e))
        if total.is_zero:
            raise BookingValidationError("Сумма бронирования должна быть больше нуля.")

        try:
            listing = Listing.objects.get(pk=command.listing_id)
        except Listing.DoesNotExist:
            raise BookingValidationError(f"Объявление {command.listing_id} не найдено.")

        if listing.owner_id == command.guest.pk:
            raise BookingValidationError("Нельзя бронировать собственное объявление.")
        if command.guest_count < 1 or command.guest_count > listing.max_guests:
            raise BookingValidationError(
                f"Количество гостей ({command.guest_count}) превышает вместимость ({listing.max_guests})."
            )
        return listing, dates, total

    def _reserve(self, uow: DjangoUnitOfWork, command: CreateBookingCommand) -> Booking:
        listing, dates, total = self._validate(command)

        logger.info(
            f"Reserving listing {listing.pk} for guest {command.guest.pk}, "
            f"dates {dates}, {total}, {self.payment_method}"
        )

        booking = availability_guard.reserve(
            listing,
            dates.start_date,
            dates.end_date,
            guest=command.guest,
            guest_count=command.guest_count,
            subtotal=command.subtotal,
            cleaning_fee=command.cleaning_fee,
            service_fee=command.service_fee,
            total_amount=total.amount,
            currency=total.currency,
            payment_method=self.payment_method,
            check_in_scheduled_time=_local_datetime(dates.start_date, listing.check_in_from),
            check_out_scheduled_time=_local_datetime(dates.end_date, listing.check_out_to),
        )
        uow.add_event(BookingReserved(
            listing_id=listing.pk,
            start_date=booking.start_date,
            end_date=booking.end_date,
            payment_method=booking.payment_method,
            total_amount=booking.total_amount,
            currency=booking.currency,
            **booking_event_kwargs(booking),
        ))
        return booking


class CreateCardBookingHandler(_CreateBookingHandler):
    """
    Reserve dates, then open a payment intent

    The reservation commits before the gateway is called. If the gateway
    fails the booking stays PENDING_PAYMENT with a failed payment, keeping
    the dates, and the caller can retry the payment.
    """
    payment_method = Booking.PaymentMethod.CARD

    def handle(self, command: CreateCardBookingCommand) -> Tuple[Booking, PaymentIntent]:
        with DjangoUnitOfWork() as uow:
            booking = self._reserve(uow, command)

        intent = open_payment_intent(booking)
        return booking, intent


class CreateCashBookingHandler(_CreateBookingHandler):
    """Reserve dates and issue the voucher in one transaction"""
    payment_method = Booking.PaymentMethod.CASH

    def handle(self, command: CreateCashBookingCommand) -> Tuple[Booking, CashVoucher]:
        with DjangoUnitOfWork() as uow:
            booking = self._reserve(uow, command)
            voucher = voucher_manager.issue(booking)
        return booking, voucher


def open_payment_intent(booking: Booking) -> PaymentIntent:
    """Ask the gateway for a new intent and attach it to the unpaid booking"""
    gateway = get_payment_gateway()
    try:
        intent = gateway.create_intent(booking.total_amount, booking.currency, booking.booking_code)
    except GatewayError as e:
        with DjangoUnitOfWork() as uow:
            Booking.objects.filter(
                pk=booking.pk,
                status=Booking.Status.PENDING_PAYMENT,
            ).update(payment_status=Booking.PaymentStatus.FAILED, updated_at=timezone.now())
            PaymentTransaction.record(booking, PaymentTransaction.Event.GATEWAY_ERROR, status='failed', detail=e.detail)
            uow.add_event(PaymentFailed(reason=e.detail, **booking_event_kwargs(booking)))
        booking.refresh_from_db()
        e.booking_id = booking.pk
        raise

    with transaction.atomic():
        updated = Booking.objects.filter(
            pk=booking.pk,
            status=Booking.Status.PENDING_PAYMENT,
        ).update(
            transaction_id=intent.intent_id,
            payment_status=Booking.PaymentStatus.PENDING,
            updated_at=timezone.now(),
        )
        PaymentTransaction.record(
            booking,
            PaymentTransaction.Event.INTENT_CREATED,
            intent_id=intent.intent_id,
            status=intent.status,
            amount=booking.total_amount,
        )

    booking.refresh_from_db()
    if not updated:
        logger.warning(
            f"Intent {intent.intent_id} created but booking {booking.booking_code} "
            f"is no longer awaiting payment ({booking.status})"
        )
        _raise_for_status(booking)

    logger.info(f"Payment intent {intent.intent_id} attached to booking {booking.booking_code}")
    return intent


def _raise_for_status(booking: Booking):
    if booking.is_terminal:
        raise TerminalStateError()
    raise InvalidTransitionError()


def _local_datetime(day: date, at):
    return timezone.make_aware(datetime.combine(day, at))


# ===== Payment =====

class VerifyPaymentHandler:
    """
    Reconcile a card booking with the gateway

    succeeded -> CONFIRMED with payment PAID; failed -> payment FAILED, the
    booking keeps its dates; pending -> unchanged. A booking that already
    left PENDING_PAYMENT is returned as is.
    """

    def handle(self, command: VerifyPaymentCommand) -> Booking:
        booking = load_booking(command.booking_id)
        require_role(booking, command.actor, ROLE_GUEST, ROLE_HOST, ROLE_ADMIN)

        if booking.status != Booking.Status.PENDING_PAYMENT:
            logger.info(f"Verify on booking {booking.booking_code} in {booking.status}: nothing to reconcile")
            return booking
        if booking.payment_method != Booking.PaymentMethod.CARD:
            raise BookingValidationError("Оплата наличными подтверждается по ваучеру.")
        if not booking.transaction_id:
            raise BookingValidationError("Платёж не создан, повторите оплату.", code='no_payment_intent')

        outcome = get_payment_gateway().confirm(booking.transaction_id)
        return apply_payment_outcome(booking, outcome, PaymentTransaction.Event.INTENT_CHECKED)


class PaymentCallbackHandler:
    """
    Gateway push notification for a card intent

    The signature is verified by the view. Deliveries may repeat; a booking
    that already left PENDING_PAYMENT is returned unchanged.
    """

    def handle(self, command: PaymentCallbackCommand) -> Booking:
        booking = (
            Booking.objects.select_related('listing')
            .filter(transaction_id=command.intent_id, payment_method=Booking.PaymentMethod.CARD)
            .first()
        )
        if booking is None:
            logger.warning(f"Payment callback for unknown intent {command.intent_id}")
            raise BookingNotFound()

        if booking.status != Booking.Status.PENDING_PAYMENT:
            logger.info(
                f"Payment callback for {booking.booking_code} in {booking.status}: already settled"
            )
            return booking

        outcome = outcome_from_payload(command.intent_id, command.payload)
        return apply_payment_outcome(booking, outcome, PaymentTransaction.Event.CALLBACK_RECEIVED)


def apply_payment_outcome(booking: Booking, outcome: PaymentOutcome, event: str) -> Booking:
    """Drive an unpaid card booking from a gateway outcome, tolerating repeats and races"""
    now = timezone.now()

    with DjangoUnitOfWork() as uow:
        PaymentTransaction.record(
            booking,
            event,
            intent_id=outcome.intent_id,
            status=outcome.status,
        )

        if outcome.intent_id != booking.transaction_id:
            logger.warning(f"Gateway answered for {outcome.intent_id}, expected {booking.transaction_id}")
        elif outcome.succeeded:
            result = state_machine.try_apply(
                booking,
                BookingAction.CARD_PAYMENT_CONFIRMED,
                payment_status=Booking.PaymentStatus.PAID,
                paid_amount=outcome.amount if outcome.amount is not None else booking.total_amount,
                paid_at=now,
            )
            if result:
                uow.add_event(BookingConfirmed(
                    payment_method=booking.payment_method,
                    paid_amount=booking.paid_amount,
                    **booking_event_kwargs(booking),
                ))
            else:
                logger.info(f"Card confirmation for {booking.booking_code} was a no-op: {result}")
        elif outcome.failed:
            failed = Booking.objects.filter(
                pk=booking.pk,
                status=Booking.Status.PENDING_PAYMENT,
                transaction_id=outcome.intent_id,
            ).exclude(
                payment_status=Booking.PaymentStatus.FAILED,
            ).update(payment_status=Booking.PaymentStatus.FAILED, updated_at=now)
            if failed:
                uow.add_event(PaymentFailed(reason=outcome.failure_reason, **booking_event_kwargs(booking)))

    booking.refresh_from_db()
    return booking


class RetryPaymentHandler:
    """Open a new intent for an unpaid card booking; availability is not re-checked"""

    def handle(self, command: RetryPaymentCommand) -> Tuple[Booking, PaymentIntent]:
        booking = load_booking(command.booking_id)
        require_role(booking, command.actor, ROLE_GUEST, ROLE_ADMIN)

        if booking.is_terminal:
            raise TerminalStateError()
        if booking.status != Booking.Status.PENDING_PAYMENT:
            raise InvalidTransitionError("Повторная оплата доступна только для неоплаченного бронирования.")
        if booking.payment_method != Booking.PaymentMethod.CARD:
            raise BookingValidationError("Повторная оплата доступна только для оплаты картой.")

        logger.info(f"Retrying payment for booking {booking.booking_code}")
        intent = open_payment_intent(booking)
        return booking, intent


# ===== Cancellation =====

class CancelBookingHandler:
    """
    Cancel a booking that has not started yet

    Host and admin cancellations of a paid booking are refunded in full.
    A guest cancellation of a paid booking is left REFUND_PENDING for
    manual handling.
    """

    def handle(self, command: CancelBookingCommand) -> Booking:
        booking = load_booking(command.booking_id)
        role = require_role(booking, command.actor, ROLE_GUEST, ROLE_HOST, ROLE_ADMIN)

        action = BookingAction.CANCEL_BY_GUEST if role == ROLE_GUEST else BookingAction.CANCEL_BY_HOST
        resolve_transition(booking.status, action)

        if booking.status in (Booking.Status.CONFIRMED, Booking.Status.PAID):
            if timezone.localdate() >= booking.start_date:
                raise InvalidTransitionError("Нельзя отменить бронирование после даты начала.")

        now = timezone.now()
        fields = {
            'cancelled_at': now,
            'cancelled_by': {
                ROLE_GUEST: Booking.CancellationSource.GUEST,
                ROLE_HOST: Booking.CancellationSource.HOST,
                ROLE_ADMIN: Booking.CancellationSource.ADMIN,
            }[role],
            'cancellation_reason': command.reason[:255],
        }

        was_paid = booking.payment_status == Booking.PaymentStatus.PAID
        refund_amount = Decimal('0')
        if was_paid:
            fields['payment_status'] = Booking.PaymentStatus.REFUND_PENDING
            if role != ROLE_GUEST:
                refund_amount = booking.paid_amount or booking.total_amount
                fields['refund_amount'] = refund_amount

        with DjangoUnitOfWork() as uow:
            state_machine.apply(booking, action, **fields)

            voucher = CashVoucher.objects.filter(booking=booking).first()
            if voucher is not None and voucher_manager.cancel(voucher):
                Booking.objects.filter(pk=booking.pk).update(payment_status=Booking.PaymentStatus.FAILED)
                booking.refresh_from_db()

            uow.add_event(BookingCancelled(
                cancelled_by=fields['cancelled_by'],
                reason=fields['cancellation_reason'],
                refund_amount=refund_amount,
                **booking_event_kwargs(booking),
            ))

        if refund_amount and booking.payment_method == Booking.PaymentMethod.CARD and booking.transaction_id:
            self._refund(booking, refund_amount)

        logger.info(f"Booking {booking.booking_code} cancelled by {role}")
        return booking

    def _refund(self, booking: Booking, amount: Decimal) -> None:
        try:
            get_payment_gateway().refund(booking.transaction_id, amount)
        except GatewayError as e:
            logger.error(
                f"Refund of {amount} for booking {booking.booking_code} failed, left refund_pending: {e.detail}",
                exc_info=True,
            )
            PaymentTransaction.record(booking, PaymentTransaction.Event.GATEWAY_ERROR, status='failed', detail=e.detail)
            return

        with transaction.atomic():
            Booking.objects.filter(
                pk=booking.pk,
                payment_status=Booking.PaymentStatus.REFUND_PENDING,
            ).update(payment_status=Booking.PaymentStatus.REFUNDED, updated_at=timezone.now())
            PaymentTransaction.record(
                booking,
                PaymentTransaction.Event.REFUND_REQUESTED,
                intent_id=booking.transaction_id,
                status='succeeded',
                amount=amount,
            )
        booking.refresh_from_db()


# ===== Stay lifecycle =====

class CheckInHandler:
    """Host/admin records arrival: CONFIRMED/PAID -> ACTIVE"""

    def handle(self, command: CheckInCommand) -> Booking:
        booking = load_booking(command.booking_id)
        require_role(booking, command.actor, ROLE_HOST, ROLE_ADMIN)
        return check_in(booking, command.actor, command.notes)


def check_in(booking: Booking, actor, notes: str = '') -> Booking:
    now = timezone.now()
    record = {
        'check_in_actual_time': booking.check_in_actual_time or now,
        'check_in_verified': True,
        'check_in_confirmed_by': actor,
        'check_in_notes': notes or booking.check_in_notes,
    }

    if booking.status == Booking.Status.ACTIVE:
        # Already active through the sweep: only fill in the check-in record
        Booking.objects.filter(pk=booking.pk, status=Booking.Status.ACTIVE).update(updated_at=now, **record)
        booking.refresh_from_db()
        return booking

    with DjangoUnitOfWork() as uow:
        state_machine.apply(booking, BookingAction.ACTIVATE, activated_at=now, **record)
        uow.add_event(BookingActivated(automatic=False, **booking_event_kwargs(booking)))
    return booking


class CheckOutHandler:
    """
    Host/admin records departure on an ACTIVE booking

    A CONFIRMED/PAID booking is checked in first. Completion still needs
    the confirmations of both parties (or the sweep).
    """

    def handle(self, command: CheckOutCommand) -> Booking:
        booking = load_booking(command.booking_id)
        require_role(booking, command.actor, ROLE_HOST, ROLE_ADMIN)

        if booking.status in (Booking.Status.CONFIRMED, Booking.Status.PAID):
            check_in(booking, command.actor)

        if booking.status != Booking.Status.ACTIVE:
            _raise_for_status(booking)

        now = timezone.now()
        with DjangoUnitOfWork() as uow:
            updated = Booking.objects.filter(pk=booking.pk, status=Booking.Status.ACTIVE).update(
                check_out_actual_time=booking.check_out_actual_time or now,
                check_out_verified=True,
                check_out_confirmed_by=command.actor,
                check_out_notes=command.notes or booking.check_out_notes,
                damage_report=command.damage_report or booking.damage_report,
                updated_at=now,
            )
            booking.refresh_from_db()
            if not updated:
                _raise_for_status(booking)
            uow.add_event(BookingCheckedOut(
                damage_reported=bool(booking.damage_report),
                **booking_event_kwargs(booking),
            ))

        logger.info(f"Check-out recorded for booking {booking.booking_code}")
        return booking


class ConfirmCompletionHandler:
    """
    Guest and host each confirm the stay is over; the second confirmation completes

    An admin confirmation counts for both parties.
    """

    def handle(self, command: ConfirmCompletionCommand) -> Booking:
        booking = load_booking(command.booking_id)
        role = require_role(booking, command.actor, ROLE_GUEST, ROLE_HOST, ROLE_ADMIN)

        if booking.status != Booking.Status.ACTIVE:
            _raise_for_status(booking)
        if booking.check_out_actual_time is None:
            raise BookingValidationError("Сначала необходимо зафиксировать выезд.", code='check_out_required')

        now = timezone.now()
        fields = {}
        if role in (ROLE_HOST, ROLE_ADMIN) and booking.host_confirmed_completion_at is None:
            fields['host_confirmed_completion_at'] = now
        if role in (ROLE_GUEST, ROLE_ADMIN) and booking.guest_confirmed_completion_at is None:
            fields['guest_confirmed_completion_at'] = now

        with DjangoUnitOfWork() as uow:
            if fields:
                Booking.objects.filter(pk=booking.pk, status=Booking.Status.ACTIVE).update(updated_at=now, **fields)
                booking.refresh_from_db()

            if booking.host_confirmed_completion_at and booking.guest_confirmed_completion_at:
                result = state_machine.try_apply(
                    booking,
                    BookingAction.COMPLETE,
                    completed_at=now,
                    auto_completed=False,
                )
                if result:
                    uow.add_event(BookingCompleted(automatic=False, **booking_event_kwargs(booking)))
                    logger.info(f"Booking {booking.booking_code} completed by both parties")
                elif booking.status != Booking.Status.COMPLETED:
                    _raise_for_status(booking)

        return booking


# ===== Host/admin status change =====

class UpdateStatusHandler:
    """
    PATCH status endpoint

    Every target goes through the same transition primitive as its
    dedicated endpoint.
    """

    def handle(self, command: UpdateStatusCommand) -> Booking:
        booking = load_booking(command.booking_id)
        role = require_role(booking, command.actor, ROLE_HOST, ROLE_ADMIN)
        if booking.is_terminal:
            raise TerminalStateError()
        target = command.status

        if target == BookingStatus.PAID.value:
            return self._mark_paid(booking)
        if target == BookingStatus.ACTIVE.value:
            return check_in(booking, command.actor)
        if target == BookingStatus.CANCELLED_BY_HOST.value:
            return CancelBookingHandler().handle(
                CancelBookingCommand(booking.pk, command.actor, command.reason)
            )
        if target == BookingStatus.CONFIRMED.value:
            if role != ROLE_ADMIN:
                raise UnauthorizedActorError("Подтвердить оплату вручную может только администратор.")
            return self._confirm_manually(booking)

        raise BookingValidationError(f"Статус '{target}' нельзя установить вручную.")

    def _mark_paid(self, booking: Booking) -> Booking:
        with DjangoUnitOfWork() as uow:
            state_machine.apply(
                booking,
                BookingAction.MARK_PAID,
                payment_status=Booking.PaymentStatus.PAID,
                paid_at=booking.paid_at or timezone.now(),
            )
            uow.add_event(BookingMarkedPaid(**booking_event_kwargs(booking)))
        return booking

    def _confirm_manually(self, booking: Booking) -> Booking:
        voucher = CashVoucher.objects.filter(booking=booking, status=CashVoucher.Status.PENDING).first()
        if voucher is not None:
            voucher_manager.confirm_payment(
                voucher.voucher_number,
                '',
                confirmed_by=CashVoucher.ConfirmationSource.ADMIN,
            )
            booking.refresh_from_db()
            return booking

        now = timezone.now()
        with DjangoUnitOfWork() as uow:
            state_machine.apply(
                booking,
                BookingAction.MANUAL_PAYMENT_CONFIRMED,
                payment_status=Booking.PaymentStatus.PAID,
                paid_amount=booking.total_amount,
                paid_at=now,
            )
            uow.add_event(BookingConfirmed(
                payment_method=booking.payment_method,
                paid_amount=booking.total_amount,
                **booking_event_kwargs(booking),
            ))
        return booking
