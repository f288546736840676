"""URL routing for disputes."""

from __future__ import annotations

from rest_framework.routers import SimpleRouter  # type: ignore

from .views import DisputeViewSet

router = SimpleRouter()
router.register(r"", DisputeViewSet, basename="dispute")

urlpatterns = router.urls
