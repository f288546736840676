"""Domain event subscriptions that feed the notification emitter."""

from __future__ import annotations

from apps.bookings.domain import events as booking_events
from apps.disputes.events import DisputeOpened
from shared.application.message_bus import message_bus
from shared.domain.base import DomainEvent

from .services import notification_emitter


@message_bus.subscribe(
    booking_events.BookingReserved,
    booking_events.BookingConfirmed,
    booking_events.BookingMarkedPaid,
    booking_events.BookingActivated,
    booking_events.BookingCheckedOut,
    booking_events.BookingCompleted,
    booking_events.BookingCancelled,
    booking_events.BookingExpired,
    booking_events.PaymentFailed,
    booking_events.VoucherIssued,
    booking_events.VoucherPaid,
    booking_events.VoucherReminderDue,
    DisputeOpened,
)
def notify_participants(event: DomainEvent) -> None:
    data = event.to_dict()
    notification_emitter.publish(data["event_type"], data["payload"])
