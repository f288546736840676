"""DRF exception handler translating booking domain errors into HTTP responses."""

from __future__ import annotations

import logging

from rest_framework.response import Response  # type: ignore
from rest_framework.views import exception_handler as drf_exception_handler  # type: ignore

from .domain.exceptions import BookingError

logger = logging.getLogger(__name__)


def booking_exception_handler(exc, context):  # type: ignore
    if isinstance(exc, BookingError):
        view = context.get("view")
        logger.info(
            f"{exc.__class__.__name__} in {view.__class__.__name__ if view else 'view'}: {exc.detail}"
        )
        data = {"detail": exc.detail, "code": exc.code}
        booking_id = getattr(exc, "booking_id", None)
        if booking_id is not None:
            data["booking_id"] = booking_id
        return Response(data, status=exc.status_code)

    return drf_exception_handler(exc, context)
