"""Serializers for disputes."""

from __future__ import annotations

from rest_framework import serializers  # type: ignore

from apps.bookings.models import Booking

from .models import Dispute, DisputeNote


class DisputeNoteSerializer(serializers.ModelSerializer):
    author_id = serializers.ReadOnlyField(source="author.id")

    class Meta:
        model = DisputeNote
        fields = ["id", "author_id", "message", "created_at"]
        read_only_fields = ["id", "author_id", "created_at"]


class DisputeSerializer(serializers.ModelSerializer):
    booking = serializers.PrimaryKeyRelatedField(queryset=Booking.objects.all())
    reported_by_id = serializers.ReadOnlyField(source="reported_by.id")
    notes = DisputeNoteSerializer(many=True, read_only=True)

    class Meta:
        model = Dispute
        fields = [
            "id",
            "booking",
            "reported_by_id",
            "status",
            "reason",
            "description",
            "resolution",
            "resolved_at",
            "notes",
            "created_at",
            "updated_at",
        ]
        read_only_fields = ["id", "reported_by_id", "status", "resolution", "resolved_at", "created_at", "updated_at"]
        # The single-open rule is enforced by open_dispute after authorization
        validators = []


class DisputeResolveSerializer(serializers.Serializer):
    resolution = serializers.CharField()
