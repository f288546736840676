"""Dispute gate: read-only checks consulted before touching disputes."""

from __future__ import annotations

from django.db.models import Q  # type: ignore

from apps.bookings.models import Booking
from apps.users.permissions import is_platform_admin

from .models import OPEN_DISPUTE_STATUSES, Dispute


class DisputeGate:
    """
    Pure reads over bookings and disputes.

    ``can_open`` is also consulted by the completion sweep: a booking with
    an open dispute is not auto-completed.
    """

    def can_open(self, booking_id: int) -> bool:
        return not Dispute.objects.filter(
            booking_id=booking_id,
            status__in=OPEN_DISPUTE_STATUSES,
        ).exists()

    def has_open_dispute(self, booking_id: int) -> bool:
        return not self.can_open(booking_id)

    def authorize(self, booking_id: int, actor) -> bool:
        if is_platform_admin(actor):
            return True
        if not getattr(actor, "is_authenticated", False):
            return False
        return Booking.objects.filter(pk=booking_id).filter(
            Q(guest_id=actor.pk) | Q(host_id=actor.pk)
        ).exists()


dispute_gate = DisputeGate()
