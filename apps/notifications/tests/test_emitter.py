from __future__ import annotations

from decimal import Decimal

import pytest
from django.core import mail

from apps.bookings.application.command_handlers import (
    CreateCashBookingCommand,
    CreateCashBookingHandler,
)
from apps.bookings.domain.exceptions import BookingValidationError
from apps.bookings.tests.helpers import create_listing, create_user, future_date
from apps.notifications.models import Notification
from apps.notifications.services import notification_emitter
from apps.users.models import User


@pytest.fixture
def participants(db):
    host = create_user("host@example.com", role=User.RoleChoices.HOST)
    guest = create_user("guest@example.com")
    return guest, host


def test_publish_creates_notification_per_recipient(participants, django_capture_on_commit_callbacks):
    guest, host = participants

    with django_capture_on_commit_callbacks(execute=True):
        created = notification_emitter.publish(
            "BookingConfirmed",
            {"booking_code": "AB12CD34", "guest_id": guest.pk, "host_id": host.pk, "paid_amount": "45000.00"},
        )

    assert {n.user_id for n in created} == {guest.pk, host.pk}
    assert created[0].title == "Бронирование #AB12CD34 подтверждено!"
    assert "45000.00" in created[0].message
    assert len(mail.outbox) == 2
    assert Notification.objects.filter(emailed_at__isnull=False).count() == 2


def test_unknown_event_is_ignored(participants):
    assert notification_emitter.publish("SomethingElse", {"guest_id": participants[0].pk}) == []
    assert Notification.objects.count() == 0


def test_booking_events_reach_participants_after_commit(participants, django_capture_on_commit_callbacks):
    guest, host = participants
    listing = create_listing(host)

    with django_capture_on_commit_callbacks(execute=True):
        booking, voucher = CreateCashBookingHandler().handle(CreateCashBookingCommand(
            listing_id=listing.pk,
            guest=guest,
            start_date=future_date(3),
            end_date=future_date(6),
            total_amount=Decimal("45000.00"),
        ))

    guest_events = set(Notification.objects.filter(user=guest).values_list("event_type", flat=True))
    host_events = set(Notification.objects.filter(user=host).values_list("event_type", flat=True))
    assert guest_events == {"BookingReserved", "VoucherIssued"}
    assert host_events == {"BookingReserved"}
    issued = Notification.objects.get(user=guest, event_type="VoucherIssued")
    assert voucher.voucher_number in issued.title
    assert issued.payload["booking_code"] == booking.booking_code


def test_failed_transaction_sends_nothing(participants, django_capture_on_commit_callbacks):
    guest, host = participants
    listing = create_listing(host, max_guests=1)

    with django_capture_on_commit_callbacks(execute=True):
        with pytest.raises(BookingValidationError):
            CreateCashBookingHandler().handle(CreateCashBookingCommand(
                listing_id=listing.pk,
                guest=guest,
                start_date=future_date(3),
                end_date=future_date(6),
                total_amount=Decimal("45000.00"),
                guest_count=3,
            ))

    assert Notification.objects.count() == 0


def test_mark_read(participants):
    guest, host = participants
    notification, _ = notification_emitter.publish(
        "BookingCancelled",
        {"booking_code": "AB12CD34", "guest_id": guest.pk, "host_id": host.pk, "cancelled_by": "host"},
    )

    notification.mark_read()

    notification.refresh_from_db()
    assert notification.is_read
    assert "host" in notification.message
