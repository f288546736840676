import os

from celery import Celery
from celery.schedules import crontab  # type: ignore

os.environ.setdefault("DJANGO_SETTINGS_MODULE", "config.settings.dev")

app = Celery("rental_booking")

app.config_from_object("django.conf:settings", namespace="CELERY")
app.autodiscover_tasks()

# A sweep message older than this share of the interval is dropped, the next one is on its way
SWEEP_EXPIRY_RATIO = 5 / 6


def sweep_expiry(interval: float) -> float:
    return interval * SWEEP_EXPIRY_RATIO


# ============================================================================
# CELERY BEAT SCHEDULE (Periodic Tasks)
# ============================================================================

app.conf.beat_schedule = {
    # 24h / 6h voucher deadline reminders
    "send-voucher-reminders": {
        "task": "bookings.send_voucher_reminders",
        "schedule": crontab(minute="*/15"),
    },
}


@app.on_after_configure.connect
def schedule_booking_sweep(sender, **kwargs):
    """Expire -> activate -> complete, one pass per BOOKING_SWEEP_INTERVAL_SECONDS."""
    from django.conf import settings  # type: ignore

    interval = float(settings.BOOKING_SWEEP_INTERVAL_SECONDS)
    sender.add_periodic_task(
        interval,
        sender.signature("bookings.run_booking_sweep"),
        name="run-booking-sweep",
        expires=sweep_expiry(interval),
    )
