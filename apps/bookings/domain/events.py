"""
Booking Domain Events

Events that represent things that have happened in the booking domain.
They are published after successful transaction commits and consumed by
the notification handlers.
"""

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal

from shared.domain.base import DomainEvent


@dataclass
class BookingEvent(DomainEvent):
    """Common payload: who and what the booking is"""
    booking_id: int
    booking_code: str
    guest_id: int
    host_id: int


@dataclass
class BookingReserved(BookingEvent):
    """
    Event: Dates were reserved and the booking awaits payment

    Triggers:
    - Tell the guest how to pay
    - Tell the host a request arrived
    """
    listing_id: int
    start_date: date
    end_date: date
    payment_method: str
    total_amount: Decimal
    currency: str


@dataclass
class BookingConfirmed(BookingEvent):
    """
    Event: Payment confirmed (PENDING_PAYMENT -> CONFIRMED)

    Triggers:
    - Booking confirmation to guest and host
    """
    payment_method: str
    paid_amount: Decimal


@dataclass
class BookingMarkedPaid(BookingEvent):
    """Event: Host or admin settled the booking (CONFIRMED -> PAID)"""


@dataclass
class BookingActivated(BookingEvent):
    """
    Event: Stay or rental started (CONFIRMED/PAID -> ACTIVE)

    `automatic` is True when the scheduler activated it.
    """
    automatic: bool = False


@dataclass
class BookingCheckedOut(BookingEvent):
    """Event: Host recorded the check-out; completion confirmations are now open"""
    damage_reported: bool = False


@dataclass
class BookingCompleted(BookingEvent):
    """
    Event: Booking finished (ACTIVE -> COMPLETED)

    Triggers:
    - Request a review from the guest
    """
    automatic: bool = False


@dataclass
class BookingCancelled(BookingEvent):
    """
    Event: Booking cancelled by guest or host

    Triggers:
    - Notify the other party
    - Refund handling for paid bookings
    """
    cancelled_by: str
    reason: str = ''
    refund_amount: Decimal = Decimal('0')


@dataclass
class BookingExpired(BookingEvent):
    """Event: Cash voucher was not paid in time (PENDING_PAYMENT -> EXPIRED)"""
    voucher_number: str = ''


@dataclass
class PaymentFailed(BookingEvent):
    """Event: Card payment failed; the guest may retry while the range stays reserved"""
    reason: str = ''


# ===== Voucher Events =====

@dataclass
class VoucherIssued(BookingEvent):
    voucher_number: str
    amount: Decimal
    currency: str
    expires_at: datetime


@dataclass
class VoucherPaid(BookingEvent):
    voucher_number: str
    agency_transaction_id: str
    confirmed_by: str


@dataclass
class VoucherReminderDue(BookingEvent):
    """Event: A pending voucher is close to its deadline"""
    voucher_number: str
    expires_at: datetime
    hours_left: int
