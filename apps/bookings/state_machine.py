"""
Persisted booking status transitions.

Every status write in the project goes through ``compare_and_set``: a single
``UPDATE ... WHERE id = ? AND status IN (...)``. Whoever loses a race sees zero
updated rows and nothing is written, so concurrent webhooks, user actions and
scheduler passes cannot double-apply a transition.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Iterable

from django.utils import timezone  # type: ignore

from .domain.entities import BookingAction, is_terminal, resolve_transition
from .domain.exceptions import InvalidTransitionError, TerminalStateError
from .models import Booking

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SchedulerNoOp:
    """A transition that did not happen because the guard no longer held. Falsy."""

    booking_id: int
    action: str
    reason: str

    def __bool__(self) -> bool:
        return False

    def __str__(self) -> str:
        return f"no-op {self.action} on booking {self.booking_id}: {self.reason}"


def compare_and_set(booking_id: int, from_statuses: Iterable[str], to_status: str, **fields: Any) -> bool:
    """Move the booking to `to_status` only if it is still in `from_statuses`."""
    fields.setdefault("updated_at", timezone.now())
    updated = Booking.objects.filter(
        pk=booking_id,
        status__in=list(from_statuses),
    ).update(status=to_status, **fields)
    return updated == 1


def apply(booking: Booking, action: BookingAction, **fields: Any) -> Booking:
    """
    Apply an actor-driven transition.

    Raises TerminalStateError / InvalidTransitionError when the stored status
    does not allow the action, including when a concurrent writer changed it
    between read and write. On success `booking` is refreshed in place.
    """
    transition = resolve_transition(booking.status, action)

    if not compare_and_set(booking.pk, transition.sources, transition.target, **fields):
        current = Booking.objects.filter(pk=booking.pk).values_list("status", flat=True).first()
        logger.info(
            f"Booking {booking.booking_code}: {action.value} lost a race, "
            f"status is now {current}"
        )
        if current is not None and is_terminal(current):
            raise TerminalStateError()
        raise InvalidTransitionError(
            f"Статус бронирования изменился ({current}), повторите действие."
        )

    booking.refresh_from_db()
    logger.info(f"Booking {booking.booking_code}: {action.value} -> {booking.status}")
    return booking


def try_apply(booking: Booking, action: BookingAction, **fields: Any) -> bool | SchedulerNoOp:
    """
    Scheduler flavour of ``apply``: never raises for a failed guard.

    Returns True when the row moved, otherwise a falsy SchedulerNoOp
    describing why nothing happened.
    """
    try:
        transition = resolve_transition(booking.status, action)
    except (TerminalStateError, InvalidTransitionError) as e:
        return SchedulerNoOp(booking.pk, action.value, e.detail)

    if not compare_and_set(booking.pk, transition.sources, transition.target, **fields):
        return SchedulerNoOp(booking.pk, action.value, "status changed concurrently")

    booking.refresh_from_db()
    return True
