"""Dispute domain events."""

from dataclasses import dataclass

from apps.bookings.domain.events import BookingEvent


@dataclass
class DisputeOpened(BookingEvent):
    dispute_id: int
    reported_by_id: int
    reason: str
