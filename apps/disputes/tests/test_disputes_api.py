"""Integration tests for the dispute API."""

from __future__ import annotations

from datetime import timedelta
from unittest.mock import patch

from django.urls import reverse
from django.utils import timezone
from rest_framework import status
from rest_framework.test import APITestCase

from apps.bookings.models import Booking
from apps.bookings.tests.helpers import create_booking, create_listing, create_user
from apps.disputes.gate import dispute_gate
from apps.disputes.models import Dispute
from apps.users.models import User


class DisputeAPITests(APITestCase):
    def setUp(self) -> None:
        self.guest = create_user("guest@example.com")
        self.host = create_user("host@example.com", role=User.RoleChoices.HOST)
        self.stranger = create_user("stranger@example.com")
        self.admin = create_user("admin@example.com", role=User.RoleChoices.ADMIN)
        today = timezone.localdate()
        self.booking = create_booking(
            create_listing(self.host), self.guest, today - timedelta(days=3), today + timedelta(days=1),
            status=Booking.Status.ACTIVE,
        )
        self.list_url = reverse("dispute-list")
        self.client.force_authenticate(self.guest)

    def _open(self, description: str = "Не работает отопление"):
        return self.client.post(
            self.list_url,
            {"booking": self.booking.pk, "reason": Dispute.Reason.NOT_AS_DESCRIBED, "description": description},
            format="json",
        )

    def test_guest_opens_dispute(self) -> None:
        response = self._open()

        self.assertEqual(response.status_code, status.HTTP_201_CREATED, response.data)
        self.assertEqual(response.data["status"], Dispute.Status.OPEN)
        self.assertEqual(response.data["reported_by_id"], self.guest.pk)
        self.assertFalse(dispute_gate.can_open(self.booking.pk))

    def test_only_one_open_dispute_per_booking(self) -> None:
        self._open()
        self.client.force_authenticate(self.host)

        response = self._open("Гость повредил мебель")

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT, response.data)
        self.assertEqual(response.data["code"], "dispute_open")
        self.assertEqual(Dispute.objects.count(), 1)

    def test_unique_index_backs_the_single_open_rule(self) -> None:
        self._open()
        self.client.force_authenticate(self.host)

        # A racing opener that passed the gate before the first insert committed
        with patch.object(dispute_gate, "can_open", return_value=True):
            response = self._open("Гость повредил мебель")

        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT, response.data)
        self.assertEqual(response.data["code"], "dispute_open")
        self.assertEqual(Dispute.objects.count(), 1)

    def test_resolved_dispute_allows_a_new_one(self) -> None:
        dispute_id = self._open().data["id"]
        self.client.force_authenticate(self.admin)
        resolved = self.client.post(
            reverse("dispute-resolve", args=[dispute_id]), {"resolution": "Компенсация 5000"}, format="json"
        )
        self.assertEqual(resolved.status_code, status.HTTP_200_OK, resolved.data)
        self.assertEqual(resolved.data["status"], Dispute.Status.RESOLVED)

        self.client.force_authenticate(self.host)
        self.assertEqual(self._open("Новый спор").status_code, status.HTTP_201_CREATED)

    def test_stranger_cannot_open_or_see_dispute(self) -> None:
        dispute_id = self._open().data["id"]
        self.client.force_authenticate(self.stranger)

        self.assertEqual(self._open().status_code, status.HTTP_403_FORBIDDEN)
        self.assertEqual(
            self.client.get(reverse("dispute-detail", args=[dispute_id])).status_code,
            status.HTTP_404_NOT_FOUND,
        )
        self.assertFalse(dispute_gate.authorize(self.booking.pk, self.stranger))
        self.assertTrue(dispute_gate.authorize(self.booking.pk, self.admin))

    def test_unpaid_booking_cannot_be_disputed(self) -> None:
        Booking.objects.filter(pk=self.booking.pk).update(status=Booking.Status.PENDING_PAYMENT)

        response = self._open()

        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_participants_add_notes(self) -> None:
        dispute_id = self._open().data["id"]
        self.client.force_authenticate(self.host)

        response = self.client.post(
            reverse("dispute-notes", args=[dispute_id]), {"message": "Фото приложены"}, format="json"
        )

        self.assertEqual(response.status_code, status.HTTP_201_CREATED, response.data)
        detail = self.client.get(reverse("dispute-detail", args=[dispute_id]))
        self.assertEqual([note["message"] for note in detail.data["notes"]], ["Фото приложены"])

    def test_only_admin_resolves(self) -> None:
        dispute_id = self._open().data["id"]

        response = self.client.post(
            reverse("dispute-resolve", args=[dispute_id]), {"resolution": "Сам решу"}, format="json"
        )

        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)
