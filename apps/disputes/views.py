"""API views for disputes."""

from __future__ import annotations

from django.db.models import Q  # type: ignore
from rest_framework import mixins, permissions, status, viewsets  # type: ignore
from rest_framework.decorators import action  # type: ignore
from rest_framework.exceptions import PermissionDenied  # type: ignore
from rest_framework.response import Response  # type: ignore

from apps.users.permissions import IsPlatformAdmin, is_platform_admin

from .gate import dispute_gate
from .models import Dispute, DisputeNote
from .serializers import DisputeNoteSerializer, DisputeResolveSerializer, DisputeSerializer
from .services import open_dispute, resolve_dispute


class DisputeViewSet(
    mixins.CreateModelMixin,
    mixins.ListModelMixin,
    mixins.RetrieveModelMixin,
    viewsets.GenericViewSet,
):
    queryset = Dispute.objects.select_related("booking", "reported_by").prefetch_related("notes")
    serializer_class = DisputeSerializer
    permission_classes = [permissions.IsAuthenticated]
    filterset_fields = ["status", "booking"]

    def get_queryset(self):  # type: ignore
        user = self.request.user
        qs = super().get_queryset()
        if is_platform_admin(user):
            return qs
        return qs.filter(Q(booking__guest=user) | Q(booking__host=user))

    def get_object(self):  # type: ignore
        dispute = super().get_object()
        if not dispute_gate.authorize(dispute.booking_id, self.request.user):
            raise PermissionDenied()
        return dispute

    def create(self, request, *args, **kwargs):  # type: ignore
        serializer = self.get_serializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data
        dispute = open_dispute(data["booking"], request.user, data.get("reason", Dispute.Reason.OTHER), data["description"])
        return Response(self.get_serializer(dispute).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=["post"])
    def notes(self, request, pk=None):  # type: ignore
        dispute = self.get_object()
        serializer = DisputeNoteSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        note = DisputeNote.objects.create(dispute=dispute, author=request.user, **serializer.validated_data)
        return Response(DisputeNoteSerializer(note).data, status=status.HTTP_201_CREATED)

    @action(detail=True, methods=["post"], permission_classes=[permissions.IsAuthenticated, IsPlatformAdmin])
    def resolve(self, request, pk=None):  # type: ignore
        dispute = self.get_object()
        serializer = DisputeResolveSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        dispute = resolve_dispute(dispute, request.user, serializer.validated_data["resolution"])
        return Response(self.get_serializer(dispute).data)
