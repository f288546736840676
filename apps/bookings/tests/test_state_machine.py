from __future__ import annotations

from datetime import date, datetime, timedelta

import pytest
from django.utils import timezone

from apps.bookings import state_machine
from apps.bookings.domain.entities import (
    BookingAction,
    BookingStatus,
    display_status,
    is_occupying,
    is_terminal,
    resolve_transition,
)
from apps.bookings.domain.exceptions import InvalidTransitionError, TerminalStateError
from apps.bookings.models import Booking
from apps.users.models import User

from .helpers import create_booking, create_listing, create_user, future_date


class TestTransitionTable:
    def test_payment_confirmation_moves_to_confirmed(self):
        transition = resolve_transition("pending_payment", BookingAction.CARD_PAYMENT_CONFIRMED)
        assert transition.target == BookingStatus.CONFIRMED.value

    @pytest.mark.parametrize("status", ["completed", "cancelled_by_guest", "cancelled_by_host", "expired"])
    def test_terminal_statuses_reject_every_action(self, status):
        for action in BookingAction:
            with pytest.raises(TerminalStateError):
                resolve_transition(status, action)

    def test_missing_edge_is_invalid_transition(self):
        with pytest.raises(InvalidTransitionError):
            resolve_transition("pending_payment", BookingAction.ACTIVATE)
        with pytest.raises(InvalidTransitionError):
            resolve_transition("active", BookingAction.CANCEL_BY_GUEST)

    def test_occupying_and_terminal_sets_are_disjoint(self):
        for status in BookingStatus:
            assert not (is_occupying(status) and is_terminal(status))
        assert is_occupying(BookingStatus.ACTIVE)
        assert not is_occupying("expired")


class TestDisplayStatus:
    def test_paid_booking_reads_active_during_stay(self):
        today = date(2026, 3, 10)
        start, end = today - timedelta(days=5), today + timedelta(days=2)

        assert display_status("paid", start, end, today) == "active"
        assert display_status("paid", start, end, start - timedelta(days=1)) == "paid"
        assert display_status("paid", start, end, end + timedelta(days=1)) == "completed"

    def test_end_date_still_reads_active(self):
        start, end = date(2026, 3, 1), date(2026, 3, 5)
        assert display_status("confirmed", start, end, end) == "active"

    def test_other_statuses_are_shown_as_stored(self):
        start, end = date(2026, 3, 1), date(2026, 3, 5)
        for status in ("pending_payment", "active", "expired", "cancelled_by_host"):
            assert display_status(status, start, end, date(2026, 3, 3)) == status

    def test_aware_datetime_is_reduced_to_local_date(self):
        start, end = date(2026, 3, 1), date(2026, 3, 5)
        now = timezone.make_aware(datetime(2026, 3, 2, 12, 0))
        assert display_status("paid", start, end, now) == "active"


@pytest.fixture
def booking(db):
    host = create_user("host@example.com", role=User.RoleChoices.HOST)
    guest = create_user("guest@example.com")
    return create_booking(create_listing(host), guest, future_date(5), future_date(8))


def test_compare_and_set_applies_once(booking):
    assert state_machine.compare_and_set(booking.pk, ["pending_payment"], "confirmed")
    assert not state_machine.compare_and_set(booking.pk, ["pending_payment"], "expired")

    booking.refresh_from_db()
    assert booking.status == Booking.Status.CONFIRMED


def test_apply_refreshes_booking(booking):
    state_machine.apply(booking, BookingAction.CARD_PAYMENT_CONFIRMED, payment_status="paid")

    assert booking.status == Booking.Status.CONFIRMED
    assert booking.payment_status == Booking.PaymentStatus.PAID


def test_apply_on_stale_copy_reports_terminal_state(booking):
    stale = Booking.objects.get(pk=booking.pk)
    state_machine.try_apply(booking, BookingAction.VOUCHER_EXPIRED)

    with pytest.raises(TerminalStateError):
        state_machine.apply(stale, BookingAction.CARD_PAYMENT_CONFIRMED)

    assert Booking.objects.get(pk=booking.pk).status == Booking.Status.EXPIRED


def test_try_apply_returns_falsy_no_op(booking):
    booking.status = Booking.Status.COMPLETED
    booking.save(update_fields=["status"])

    result = state_machine.try_apply(booking, BookingAction.COMPLETE)

    assert not result
    assert isinstance(result, state_machine.SchedulerNoOp)
    assert result.booking_id == booking.pk
