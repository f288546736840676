"""Availability guard: atomic reservation of listing date ranges."""

from __future__ import annotations

import logging
from datetime import date
from typing import Any

from django.db import IntegrityError, transaction  # type: ignore
from django.db.models import Q  # type: ignore
from django.db.utils import NotSupportedError  # type: ignore

from shared.domain.value_objects import DateRange

from .domain.entities import OCCUPYING_STATUSES
from .domain.exceptions import BookingValidationError, ConflictError
from .models import Booking

logger = logging.getLogger(__name__)


def _lock_queryset_if_possible(queryset):
    """Apply select_for_update when inside transaction.atomic()."""

    if not transaction.get_connection().in_atomic_block:
        return queryset

    try:
        return queryset.select_for_update()
    except NotSupportedError:
        return queryset


def conflicting_bookings(listing_id, start: date, end: date, *, exclude_booking_id=None):
    """Occupying bookings of the listing that overlap [start, end)."""

    qs = Booking.objects.filter(
        listing_id=listing_id,
        status__in=OCCUPYING_STATUSES,
    ).filter(Q(start_date__lt=end) & Q(end_date__gt=start))

    if exclude_booking_id is not None:
        qs = qs.exclude(pk=exclude_booking_id)
    return qs


def is_available(listing, start: date, end: date, *, exclude_booking_id=None) -> bool:
    DateRange(start, end)
    return not conflicting_bookings(
        listing.pk, start, end, exclude_booking_id=exclude_booking_id
    ).exists()


class AvailabilityGuard:
    """
    Reserves a listing's dates without ever letting two occupying bookings overlap.

    Writers for the same listing are serialized on the listing row
    (SELECT ... FOR UPDATE); on PostgreSQL an exclusion constraint backs the
    same rule, and its violation surfaces here as ConflictError.
    """

    def reserve(
        self,
        listing,
        start: date,
        end: date,
        *,
        exclude_booking_id=None,
        **booking_fields: Any,
    ) -> Booking:
        try:
            dates = DateRange(start, end)
        except (TypeError, ValueError) as e:
            raise BookingValidationError(str(e)) from e

        try:
            with transaction.atomic():
                locked_listing = _lock_queryset_if_possible(
                    type(listing).objects.filter(pk=listing.pk)
                ).get()

                if not locked_listing.is_bookable:
                    raise BookingValidationError("Объявление недоступно для бронирования.")

                if conflicting_bookings(
                    locked_listing.pk, start, end, exclude_booking_id=exclude_booking_id
                ).exists():
                    raise ConflictError()

                booking_fields.setdefault("host_id", locked_listing.owner_id)
                booking_fields.setdefault("nights", dates.nights)
                booking_fields.setdefault("currency", locked_listing.currency)
                booking = Booking.objects.create(
                    listing=locked_listing,
                    start_date=start,
                    end_date=end,
                    status=Booking.Status.PENDING_PAYMENT,
                    payment_status=Booking.PaymentStatus.PENDING,
                    **booking_fields,
                )
        except IntegrityError as e:
            # Exclusion constraint lost a race with a concurrent writer
            logger.warning(f"Reservation for listing {listing.pk} {dates} hit a storage constraint: {e}")
            raise ConflictError() from e

        logger.info(f"Reserved listing {listing.pk} for {dates} as booking {booking.booking_code}")
        return booking


availability_guard = AvailabilityGuard()
