from __future__ import annotations

from datetime import date
from decimal import Decimal
import threading
from unittest import skipUnless
from unittest.mock import patch

import pytest
from django.db import IntegrityError, connection
from django.test import TransactionTestCase
from django.utils import timezone

from apps.bookings.domain.exceptions import BookingValidationError, ConflictError
from apps.bookings.models import Booking
from apps.bookings.services import availability_guard, conflicting_bookings, is_available
from apps.users.models import User

from .helpers import create_booking, create_listing, create_user


@pytest.fixture
def listing(db):
    return create_listing(create_user("host@example.com", role=User.RoleChoices.HOST))


@pytest.fixture
def guest(db):
    return create_user("guest@example.com")


def march(day: int) -> date:
    return date(timezone.localdate().year + 1, 3, day)


def _reserve(listing, guest, start, end, **extra):
    return availability_guard.reserve(
        listing, start, end,
        guest=guest,
        total_amount=Decimal("40000.00"),
        payment_method=Booking.PaymentMethod.CARD,
        **extra,
    )


def test_reserve_creates_pending_booking(listing, guest):
    booking = _reserve(listing, guest, march(1), march(5))

    assert booking.status == Booking.Status.PENDING_PAYMENT
    assert booking.host_id == listing.owner_id
    assert booking.nights == 4
    assert booking.currency == listing.currency
    assert len(booking.booking_code) == 8


def test_half_open_overlap_rules(listing, guest):
    _reserve(listing, guest, march(1), march(5))

    with pytest.raises(ConflictError):
        _reserve(listing, guest, march(4), march(8))

    adjacent = _reserve(listing, guest, march(5), march(8))
    assert adjacent.pk is not None
    assert not is_available(listing, march(2), march(3))
    assert is_available(listing, march(8), march(9))


def test_non_occupying_bookings_are_ignored(listing, guest):
    for status in (Booking.Status.EXPIRED, Booking.Status.CANCELLED_BY_HOST, Booking.Status.COMPLETED):
        create_booking(listing, guest, march(1), march(5), status=status)

    assert not conflicting_bookings(listing.pk, march(1), march(5)).exists()


def test_excluded_booking_does_not_conflict_with_itself(listing, guest):
    booking = _reserve(listing, guest, march(1), march(5))

    assert conflicting_bookings(listing.pk, march(1), march(5), exclude_booking_id=booking.pk).count() == 0
    assert is_available(listing, march(2), march(4), exclude_booking_id=booking.pk)


def test_invalid_range_is_a_validation_error(listing, guest):
    with pytest.raises(BookingValidationError):
        _reserve(listing, guest, march(5), march(1))


def test_storage_constraint_violation_becomes_conflict(listing, guest):
    with patch.object(Booking.objects, "create", side_effect=IntegrityError("booking_no_overlap_per_listing")):
        with pytest.raises(ConflictError):
            _reserve(listing, guest, march(1), march(5))

    assert Booking.objects.count() == 0


@skipUnless(connection.vendor == "postgresql", "row locks need a server database")
class ConcurrentReservationTests(TransactionTestCase):
    """Two writers racing for overlapping dates of the same listing."""

    def setUp(self) -> None:
        self.listing = create_listing(create_user("host@example.com", role=User.RoleChoices.HOST))
        self.guests = [create_user("first@example.com"), create_user("second@example.com")]

    def _race(self, ranges):
        barrier = threading.Barrier(len(ranges))
        results: list = []
        lock = threading.Lock()

        def attempt(guest, start, end):
            try:
                barrier.wait()
                booking = _reserve(self.listing, guest, start, end)
                outcome = booking
            except ConflictError as e:
                outcome = e
            finally:
                connection.close()
            with lock:
                results.append(outcome)

        threads = [
            threading.Thread(target=attempt, args=(guest, start, end))
            for guest, (start, end) in zip(self.guests, ranges)
        ]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join(timeout=30)
        return results

    def test_only_one_overlapping_reservation_wins(self) -> None:
        results = self._race([(march(1), march(5)), (march(4), march(8))])

        created = [r for r in results if isinstance(r, Booking)]
        conflicts = [r for r in results if isinstance(r, ConflictError)]
        self.assertEqual(len(created), 1)
        self.assertEqual(len(conflicts), 1)
        self.assertEqual(
            Booking.objects.filter(listing=self.listing, status=Booking.Status.PENDING_PAYMENT).count(), 1
        )

    def test_adjacent_reservations_both_succeed(self) -> None:
        results = self._race([(march(1), march(5)), (march(5), march(8))])

        self.assertTrue(all(isinstance(r, Booking) for r in results))
        self.assertEqual(Booking.objects.filter(listing=self.listing).count(), 2)
