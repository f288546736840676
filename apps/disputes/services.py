"""Dispute use cases guarded by the dispute gate."""

from __future__ import annotations

import logging

from django.db import IntegrityError, transaction  # type: ignore
from django.utils import timezone  # type: ignore

from apps.bookings.domain.exceptions import (
    BookingValidationError,
    ConflictError,
    UnauthorizedActorError,
)
from apps.bookings.models import Booking
from apps.bookings.vouchers import booking_event_kwargs
from shared.application.uow import DjangoUnitOfWork

from .events import DisputeOpened
from .gate import dispute_gate
from .models import Dispute

logger = logging.getLogger(__name__)

# Bookings that have been paid for at some point
DISPUTABLE_STATUSES = (
    Booking.Status.CONFIRMED,
    Booking.Status.PAID,
    Booking.Status.ACTIVE,
    Booking.Status.COMPLETED,
)


def open_dispute(booking: Booking, actor, reason: str, description: str) -> Dispute:
    if not booking.is_stakeholder(actor):
        raise UnauthorizedActorError("Открыть спор может только гость или хост бронирования.")
    if booking.status not in DISPUTABLE_STATUSES:
        raise BookingValidationError("Спор можно открыть только по оплаченному бронированию.")
    try:
        with DjangoUnitOfWork() as uow:
            # Openers of one booking queue on its row; the gate is re-read under the lock
            Booking.objects.select_for_update().get(pk=booking.pk)
            if not dispute_gate.can_open(booking.pk):
                raise ConflictError("По этому бронированию уже открыт спор.", code="dispute_open")
            dispute = Dispute.objects.create(
                booking=booking,
                reported_by=actor,
                reason=reason,
                description=description,
            )
            uow.add_event(DisputeOpened(
                dispute_id=dispute.pk,
                reported_by_id=actor.pk,
                reason=reason,
                **booking_event_kwargs(booking),
            ))
    except IntegrityError as e:
        # Concurrent opener won the partial unique index
        raise ConflictError("По этому бронированию уже открыт спор.", code="dispute_open") from e

    logger.info(f"Dispute {dispute.pk} opened on booking {booking.booking_code} by user {actor.pk}")
    return dispute


def resolve_dispute(dispute: Dispute, admin, resolution: str) -> Dispute:
    with transaction.atomic():
        updated = Dispute.objects.filter(
            pk=dispute.pk,
            status__in=(Dispute.Status.OPEN, Dispute.Status.PENDING),
        ).update(
            status=Dispute.Status.RESOLVED,
            resolution=resolution,
            resolved_by=admin,
            resolved_at=timezone.now(),
            updated_at=timezone.now(),
        )
    dispute.refresh_from_db()
    if not updated:
        raise ConflictError("Спор уже закрыт.", code="dispute_resolved")
    logger.info(f"Dispute {dispute.pk} resolved by admin {admin.pk}")
    return dispute
