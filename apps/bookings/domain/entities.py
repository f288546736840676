"""
Booking Domain Entities

Pure (database free) description of the booking lifecycle:
- BookingStatus: FSM states
- BookingAction: the events that move a booking between states
- TRANSITIONS: the legal edges, keyed by action
- display_status: the read-side status shown to users
"""

from dataclasses import dataclass
from datetime import date, datetime
from enum import Enum
from typing import FrozenSet, Tuple

from django.utils import timezone  # type: ignore

from apps.bookings.domain.exceptions import InvalidTransitionError, TerminalStateError


class BookingStatus(str, Enum):
    """
    Booking Status Finite State Machine

    State transitions:
    - PENDING_PAYMENT -> CONFIRMED (card or cash payment confirmed)
    - PENDING_PAYMENT -> EXPIRED (voucher TTL elapsed)
    - CONFIRMED -> PAID (host or admin marks the booking settled)
    - CONFIRMED/PAID -> ACTIVE (start date reached or host check-in)
    - ACTIVE -> COMPLETED (end date + grace, or both parties confirm)
    - PENDING_PAYMENT/CONFIRMED/PAID -> CANCELLED_BY_GUEST/CANCELLED_BY_HOST
    """
    PENDING_PAYMENT = 'pending_payment'
    CONFIRMED = 'confirmed'
    PAID = 'paid'
    ACTIVE = 'active'
    COMPLETED = 'completed'
    CANCELLED_BY_GUEST = 'cancelled_by_guest'
    CANCELLED_BY_HOST = 'cancelled_by_host'
    EXPIRED = 'expired'


class PaymentStatus(str, Enum):
    PENDING = 'pending'
    PAID = 'paid'
    FAILED = 'failed'
    REFUNDED = 'refunded'
    REFUND_PENDING = 'refund_pending'


class PaymentMethod(str, Enum):
    CARD = 'card'
    CASH = 'cash'


# Statuses that hold the listing's dates
OCCUPYING_STATUSES: FrozenSet[str] = frozenset({
    BookingStatus.PENDING_PAYMENT.value,
    BookingStatus.CONFIRMED.value,
    BookingStatus.PAID.value,
    BookingStatus.ACTIVE.value,
})

TERMINAL_STATUSES: FrozenSet[str] = frozenset({
    BookingStatus.COMPLETED.value,
    BookingStatus.CANCELLED_BY_GUEST.value,
    BookingStatus.CANCELLED_BY_HOST.value,
    BookingStatus.EXPIRED.value,
})


class BookingAction(str, Enum):
    CARD_PAYMENT_CONFIRMED = 'card_payment_confirmed'
    CASH_PAYMENT_CONFIRMED = 'cash_payment_confirmed'
    MANUAL_PAYMENT_CONFIRMED = 'manual_payment_confirmed'
    VOUCHER_EXPIRED = 'voucher_expired'
    MARK_PAID = 'mark_paid'
    ACTIVATE = 'activate'
    COMPLETE = 'complete'
    CANCEL_BY_GUEST = 'cancel_by_guest'
    CANCEL_BY_HOST = 'cancel_by_host'


@dataclass(frozen=True)
class Transition:
    action: BookingAction
    sources: FrozenSet[str]
    target: str


def _edge(action: BookingAction, sources: Tuple[BookingStatus, ...], target: BookingStatus) -> Transition:
    return Transition(action, frozenset(s.value for s in sources), target.value)


_CANCELLABLE = (BookingStatus.PENDING_PAYMENT, BookingStatus.CONFIRMED, BookingStatus.PAID)

TRANSITIONS = {
    t.action: t
    for t in (
        _edge(BookingAction.CARD_PAYMENT_CONFIRMED, (BookingStatus.PENDING_PAYMENT,), BookingStatus.CONFIRMED),
        _edge(BookingAction.CASH_PAYMENT_CONFIRMED, (BookingStatus.PENDING_PAYMENT,), BookingStatus.CONFIRMED),
        _edge(BookingAction.MANUAL_PAYMENT_CONFIRMED, (BookingStatus.PENDING_PAYMENT,), BookingStatus.CONFIRMED),
        _edge(BookingAction.VOUCHER_EXPIRED, (BookingStatus.PENDING_PAYMENT,), BookingStatus.EXPIRED),
        _edge(BookingAction.MARK_PAID, (BookingStatus.CONFIRMED,), BookingStatus.PAID),
        _edge(BookingAction.ACTIVATE, (BookingStatus.CONFIRMED, BookingStatus.PAID), BookingStatus.ACTIVE),
        _edge(BookingAction.COMPLETE, (BookingStatus.ACTIVE,), BookingStatus.COMPLETED),
        _edge(BookingAction.CANCEL_BY_GUEST, _CANCELLABLE, BookingStatus.CANCELLED_BY_GUEST),
        _edge(BookingAction.CANCEL_BY_HOST, _CANCELLABLE, BookingStatus.CANCELLED_BY_HOST),
    )
}


def is_terminal(status: str) -> bool:
    return _value(status) in TERMINAL_STATUSES


def is_occupying(status: str) -> bool:
    return _value(status) in OCCUPYING_STATUSES


def resolve_transition(current: str, action: BookingAction) -> Transition:
    """
    Look up the edge for `action` from `current`

    Raises TerminalStateError when `current` is terminal, and
    InvalidTransitionError when the action has no edge from `current`.
    """
    current = _value(current)
    if current in TERMINAL_STATUSES:
        raise TerminalStateError()
    transition = TRANSITIONS[BookingAction(action)]
    if current not in transition.sources:
        raise InvalidTransitionError(
            f"Переход '{transition.action.value}' недоступен из статуса '{current}'."
        )
    return transition


def display_status(status: str, start_date: date, end_date: date, now=None) -> str:
    """
    Status to show to users, derived from the stored one

    A confirmed or paid booking whose dates have arrived reads as active,
    and one whose end date has passed reads as completed. This never writes;
    the scheduler performs the real transitions.

    `now` may be a date or an aware datetime (reduced to the local date).
    """
    status = _value(status)
    if status not in (BookingStatus.CONFIRMED.value, BookingStatus.PAID.value):
        return status

    today = _as_local_date(now)
    if today > end_date:
        return BookingStatus.COMPLETED.value
    if start_date <= today <= end_date:
        return BookingStatus.ACTIVE.value
    return status


def _as_local_date(now) -> date:
    if now is None:
        return timezone.localdate()
    if isinstance(now, datetime):
        if timezone.is_aware(now):
            return timezone.localtime(now).date()
        return now.date()
    return now


def _value(status) -> str:
    return status.value if isinstance(status, Enum) else str(status)
