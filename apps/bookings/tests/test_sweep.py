from __future__ import annotations

from datetime import datetime, time, timedelta
from decimal import Decimal

import pytest
from django.utils import timezone

from apps.bookings.application.command_handlers import (
    CreateCashBookingCommand,
    CreateCashBookingHandler,
)
from apps.bookings.models import Booking, CashVoucher
from apps.bookings.tasks import (
    activate_started_bookings,
    complete_finished_bookings,
    expire_unpaid_vouchers,
    run_booking_sweep,
    run_sweep,
    send_voucher_reminders,
)
from apps.bookings.vouchers import voucher_manager
from apps.disputes.models import Dispute
from apps.users.models import User
from config.celery import app as celery_app, schedule_booking_sweep

from .helpers import create_booking, create_listing, create_user, future_date


@pytest.fixture
def host(db):
    return create_user("host@example.com", role=User.RoleChoices.HOST)


@pytest.fixture
def guest(db):
    return create_user("guest@example.com")


@pytest.fixture
def listing(host):
    return create_listing(host)


def _cash_booking(listing, guest, start, end):
    return CreateCashBookingHandler().handle(CreateCashBookingCommand(
        listing_id=listing.pk,
        guest=guest,
        start_date=start,
        end_date=end,
        total_amount=Decimal("45000.00"),
    ))


def _local_midnight(day):
    return timezone.make_aware(datetime.combine(day, time.min))


def test_unpaid_voucher_expires_after_ttl_and_frees_dates(listing, guest):
    start, end = future_date(10), future_date(14)
    booking, voucher = _cash_booking(listing, guest, start, end)
    issued_at = voucher.created_at

    early = expire_unpaid_vouchers(issued_at + timedelta(hours=47))
    booking.refresh_from_db()
    assert early["expired"] == 0
    assert booking.status == Booking.Status.PENDING_PAYMENT

    result = expire_unpaid_vouchers(issued_at + timedelta(hours=49))

    booking.refresh_from_db()
    voucher.refresh_from_db()
    assert result["expired"] == 1
    assert booking.status == Booking.Status.EXPIRED
    assert booking.payment_status == Booking.PaymentStatus.FAILED
    assert booking.cancelled_by == Booking.CancellationSource.SYSTEM
    assert voucher.status == CashVoucher.Status.EXPIRED

    other_guest = create_user("second@example.com")
    rebooked, _ = _cash_booking(listing, other_guest, start, end)
    assert rebooked.status == Booking.Status.PENDING_PAYMENT


def test_paid_voucher_is_never_expired(listing, guest):
    booking, voucher = _cash_booking(listing, guest, future_date(3), future_date(5))
    voucher_manager.confirm_payment(voucher.voucher_number, "AG-77")

    result = expire_unpaid_vouchers(timezone.now() + timedelta(hours=72))

    booking.refresh_from_db()
    assert result["expired"] == 0
    assert booking.status == Booking.Status.CONFIRMED


def test_started_bookings_are_activated(listing, guest):
    today = timezone.localdate()
    due = create_booking(listing, guest, today, today + timedelta(days=3), status=Booking.Status.CONFIRMED)
    paid = create_booking(
        listing, guest, today - timedelta(days=1), today + timedelta(days=1), status=Booking.Status.PAID,
    )
    later = create_booking(
        listing, guest, today + timedelta(days=5), today + timedelta(days=7), status=Booking.Status.CONFIRMED,
    )

    result = activate_started_bookings()

    assert result["activated"] == 2
    for booking in (due, paid, later):
        booking.refresh_from_db()
    assert due.status == Booking.Status.ACTIVE
    assert due.activated_at is not None
    assert paid.status == Booking.Status.ACTIVE
    assert later.status == Booking.Status.CONFIRMED


def test_completion_waits_for_grace_window(listing, guest, settings):
    settings.BOOKING_COMPLETION_GRACE_HOURS = 6
    end = timezone.localdate() - timedelta(days=1)
    booking = create_booking(listing, guest, end - timedelta(days=3), end, status=Booking.Status.ACTIVE)

    inside_grace = complete_finished_bookings(_local_midnight(end) + timedelta(hours=5))
    booking.refresh_from_db()
    assert inside_grace["completed"] == 0
    assert booking.status == Booking.Status.ACTIVE

    after_grace = complete_finished_bookings(_local_midnight(end) + timedelta(hours=7))
    booking.refresh_from_db()
    assert after_grace["completed"] == 1
    assert booking.status == Booking.Status.COMPLETED
    assert booking.auto_completed is True


def test_open_dispute_blocks_automatic_completion(listing, guest):
    today = timezone.localdate()
    booking = create_booking(
        listing, guest, today - timedelta(days=6), today - timedelta(days=2), status=Booking.Status.ACTIVE,
    )
    Dispute.objects.create(booking=booking, reported_by=guest, description="Сломан кондиционер")

    result = complete_finished_bookings()

    booking.refresh_from_db()
    assert result["disputed"] == 1
    assert booking.status == Booking.Status.ACTIVE


def test_sweep_runs_phases_in_order_and_is_idempotent(listing, guest):
    today = timezone.localdate()
    now = timezone.now()
    to_activate = create_booking(
        listing, guest, today - timedelta(days=1), today + timedelta(days=2), status=Booking.Status.CONFIRMED,
    )
    to_complete = create_booking(
        listing, guest, today - timedelta(days=8), today - timedelta(days=3), status=Booking.Status.ACTIVE,
    )
    to_expire = create_booking(
        listing, guest, today + timedelta(days=20), today + timedelta(days=22),
        payment_method=Booking.PaymentMethod.CASH,
    )
    CashVoucher.objects.create(
        booking=to_expire,
        voucher_number="CV-2026-EXPIRE01",
        amount=to_expire.total_amount,
        expires_at=now - timedelta(hours=1),
    )

    first = run_sweep(now)

    assert first["expire"]["expired"] == 1
    assert first["activate"]["activated"] == 1
    assert first["complete"]["completed"] == 1
    snapshot = dict(Booking.objects.values_list("pk", "status"))
    assert snapshot[to_activate.pk] == Booking.Status.ACTIVE
    assert snapshot[to_complete.pk] == Booking.Status.COMPLETED
    assert snapshot[to_expire.pk] == Booking.Status.EXPIRED

    second = run_sweep(now)

    assert second["expire"]["expired"] == 0
    assert second["activate"]["activated"] == 0
    assert second["complete"]["completed"] == 0
    assert dict(Booking.objects.values_list("pk", "status")) == snapshot


def test_sweep_task_runs_the_pass(listing, guest):
    today = timezone.localdate()
    booking = create_booking(listing, guest, today, today + timedelta(days=2), status=Booking.Status.PAID)

    result = run_booking_sweep.apply().get()

    booking.refresh_from_db()
    assert result["activate"]["activated"] == 1
    assert booking.status == Booking.Status.ACTIVE


def test_voucher_reminders_are_sent_once(listing, guest):
    now = timezone.now()
    soon = create_booking(
        listing, guest, future_date(3), future_date(5), payment_method=Booking.PaymentMethod.CASH,
    )
    tomorrow = create_booking(
        listing, guest, future_date(8), future_date(9), payment_method=Booking.PaymentMethod.CASH,
    )
    soon_voucher = CashVoucher.objects.create(
        booking=soon, voucher_number="CV-2026-SOON0001", amount=soon.total_amount,
        expires_at=now + timedelta(hours=5),
    )
    tomorrow_voucher = CashVoucher.objects.create(
        booking=tomorrow, voucher_number="CV-2026-TMRW0001", amount=tomorrow.total_amount,
        expires_at=now + timedelta(hours=20),
    )

    assert send_voucher_reminders(now) == {"sent": 2}
    assert send_voucher_reminders(now) == {"sent": 0}

    soon_voucher.refresh_from_db()
    tomorrow_voucher.refresh_from_db()
    assert soon_voucher.reminder_6h_sent and soon_voucher.reminder_24h_sent
    assert tomorrow_voucher.reminder_24h_sent and not tomorrow_voucher.reminder_6h_sent


def test_sweep_beat_entry_follows_interval_setting(settings):
    settings.BOOKING_SWEEP_INTERVAL_SECONDS = 30
    try:
        schedule_booking_sweep(celery_app)

        entry = celery_app.conf.beat_schedule["run-booking-sweep"]
        assert entry["task"] == "bookings.run_booking_sweep"
        assert entry["schedule"] == 30.0
        assert entry["options"]["expires"] == pytest.approx(25.0)
        assert "send-voucher-reminders" in celery_app.conf.beat_schedule
    finally:
        settings.BOOKING_SWEEP_INTERVAL_SECONDS = 60
        schedule_booking_sweep(celery_app)
