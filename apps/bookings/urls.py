"""Booking API routes, mounted under /api/v1/bookings/."""

from __future__ import annotations

from rest_framework.routers import SimpleRouter  # type: ignore

from .views import BookingViewSet

# SimpleRouter: an API root view would shadow the list route on the empty prefix
router = SimpleRouter()
router.register(r"", BookingViewSet, basename="booking")

urlpatterns = router.urls
