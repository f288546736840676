"""Celery tasks for the booking domain: the lifecycle sweep and voucher reminders."""

from __future__ import annotations

import logging
from datetime import datetime, timedelta

from celery import shared_task  # type: ignore
from django.conf import settings  # type: ignore
from django.utils import timezone  # type: ignore

from apps.disputes.gate import dispute_gate
from shared.application.uow import DjangoUnitOfWork

from . import state_machine
from .domain.entities import BookingAction
from .domain.events import BookingActivated, BookingCompleted, VoucherReminderDue
from .models import Booking, CashVoucher
from .vouchers import booking_event_kwargs, voucher_manager

logger = logging.getLogger(__name__)


def _log_no_op(result: state_machine.SchedulerNoOp) -> None:
    logger.info(f"[SWEEP] {result}")


# ============================================================================
# SWEEP PHASES
# ============================================================================

def expire_unpaid_vouchers(now: datetime | None = None) -> dict[str, int]:
    """
    Phase 1: expire pending vouchers past their deadline.

    The booking moves PENDING_PAYMENT -> EXPIRED and stops occupying its dates.
    """
    now = now or timezone.now()
    expired = skipped = failed = 0

    due = CashVoucher.objects.filter(
        status=CashVoucher.Status.PENDING,
        expires_at__lt=now,
        booking__status=Booking.Status.PENDING_PAYMENT,
    ).select_related("booking")

    for voucher in due:
        try:
            result = voucher_manager.expire(voucher, now=now)
        except Exception as e:
            failed += 1
            logger.error(f"Error expiring voucher {voucher.voucher_number}: {e}", exc_info=True)
            continue

        if result:
            expired += 1
            logger.info(
                f"Voucher {voucher.voucher_number} expired, booking {voucher.booking.booking_code} released"
            )
        else:
            skipped += 1
            _log_no_op(result)

    return {"expired": expired, "skipped": skipped, "failed": failed}


def activate_started_bookings(now: datetime | None = None) -> dict[str, int]:
    """Phase 2: CONFIRMED/PAID bookings whose start date has arrived become ACTIVE."""
    now = now or timezone.now()
    today = timezone.localdate(now)
    activated = skipped = failed = 0

    due = Booking.objects.filter(
        status__in=(Booking.Status.CONFIRMED, Booking.Status.PAID),
        start_date__lte=today,
    )

    for booking in due:
        try:
            with DjangoUnitOfWork() as uow:
                result = state_machine.try_apply(booking, BookingAction.ACTIVATE, activated_at=now)
                if result:
                    uow.add_event(BookingActivated(automatic=True, **booking_event_kwargs(booking)))
        except Exception as e:
            failed += 1
            logger.error(f"Error activating booking {booking.pk}: {e}", exc_info=True)
            continue

        if result:
            activated += 1
            logger.info(f"Booking {booking.booking_code} activated")
        else:
            skipped += 1
            _log_no_op(result)

    return {"activated": activated, "skipped": skipped, "failed": failed}


def complete_finished_bookings(now: datetime | None = None) -> dict[str, int]:
    """
    Phase 3: ACTIVE bookings past end date + grace become COMPLETED.

    The grace window is counted from the start of the end date in the local
    time zone. Bookings with an open dispute are left for the admin.
    """
    now = now or timezone.now()
    grace = timedelta(hours=settings.BOOKING_COMPLETION_GRACE_HOURS)
    # end_date + grace <= now  <=>  end_date <= (now - grace) as a local date
    cutoff = timezone.localdate(now - grace)
    completed = skipped = disputed = failed = 0

    due = Booking.objects.filter(status=Booking.Status.ACTIVE, end_date__lte=cutoff)

    for booking in due:
        if dispute_gate.has_open_dispute(booking.pk):
            disputed += 1
            logger.info(f"[SWEEP] Booking {booking.booking_code} has an open dispute, not completing")
            continue

        try:
            with DjangoUnitOfWork() as uow:
                result = state_machine.try_apply(
                    booking,
                    BookingAction.COMPLETE,
                    completed_at=now,
                    auto_completed=True,
                )
                if result:
                    uow.add_event(BookingCompleted(automatic=True, **booking_event_kwargs(booking)))
        except Exception as e:
            failed += 1
            logger.error(f"Error completing booking {booking.pk}: {e}", exc_info=True)
            continue

        if result:
            completed += 1
            logger.info(f"Booking {booking.booking_code} completed automatically")
        else:
            skipped += 1
            _log_no_op(result)

    return {"completed": completed, "skipped": skipped, "disputed": disputed, "failed": failed}


def run_sweep(now: datetime | None = None) -> dict[str, dict[str, int]]:
    """One pass of the lifecycle sweep: expire, then activate, then complete."""
    now = now or timezone.now()
    result = {
        "expire": expire_unpaid_vouchers(now),
        "activate": activate_started_bookings(now),
        "complete": complete_finished_bookings(now),
    }
    changed = result["expire"]["expired"] + result["activate"]["activated"] + result["complete"]["completed"]
    if changed:
        logger.info(f"[SWEEP] pass at {now.isoformat()}: {result}")
    return result


# ============================================================================
# PERIODIC TASKS (запускаются через Celery Beat)
# ============================================================================

@shared_task(name="bookings.run_booking_sweep")
def run_booking_sweep() -> dict[str, dict[str, int]]:
    """
    Периодический проход по бронированиям.

    Запускается раз в BOOKING_SWEEP_INTERVAL_SECONDS. Повторный запуск на
    неизменённых данных ничего не меняет.
    """
    return run_sweep()


@shared_task(name="bookings.expire_unpaid_vouchers")
def expire_unpaid_vouchers_task() -> dict[str, int]:
    return expire_unpaid_vouchers()


@shared_task(name="bookings.activate_started_bookings")
def activate_started_bookings_task() -> dict[str, int]:
    return activate_started_bookings()


@shared_task(name="bookings.complete_finished_bookings")
def complete_finished_bookings_task() -> dict[str, int]:
    return complete_finished_bookings()


# (hours before deadline, flag, flags to set)
VOUCHER_REMINDERS = (
    (6, "reminder_6h_sent", ("reminder_6h_sent", "reminder_24h_sent")),
    (24, "reminder_24h_sent", ("reminder_24h_sent",)),
)


def send_voucher_reminders(now: datetime | None = None) -> dict[str, int]:
    """Remind guests about pending vouchers 24 and 6 hours before the deadline."""
    now = now or timezone.now()
    sent = 0

    for hours, flag, flags_to_set in VOUCHER_REMINDERS:
        for voucher in voucher_manager.vouchers_needing_reminder(hours, flag, now=now):
            try:
                with DjangoUnitOfWork() as uow:
                    claimed = CashVoucher.objects.filter(
                        pk=voucher.pk,
                        status=CashVoucher.Status.PENDING,
                        **{flag: False},
                    ).update(**{name: True for name in flags_to_set})
                    if not claimed:
                        continue
                    hours_left = max(int((voucher.expires_at - now).total_seconds() // 3600), 0)
                    uow.add_event(VoucherReminderDue(
                        voucher_number=voucher.voucher_number,
                        expires_at=voucher.expires_at,
                        hours_left=hours_left,
                        **booking_event_kwargs(voucher.booking),
                    ))
                sent += 1
                logger.info(f"Reminder ({hours}h) queued for voucher {voucher.voucher_number}")
            except Exception as e:
                logger.error(f"Error sending reminder for voucher {voucher.voucher_number}: {e}", exc_info=True)

    return {"sent": sent}


@shared_task(name="bookings.send_voucher_reminders")
def send_voucher_reminders_task() -> dict[str, int]:
    return send_voucher_reminders()
