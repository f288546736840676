"""Shared fixtures for booking tests."""

from __future__ import annotations

from datetime import date, timedelta
from decimal import Decimal

from django.utils import timezone

from apps.bookings.domain.exceptions import GatewayError
from apps.bookings.models import Booking
from apps.finances.gateways import OutcomeStatus, PaymentGateway, PaymentIntent, PaymentOutcome
from apps.listings.models import Listing
from apps.users.models import User

PASSWORD = "TestPass123"


def create_user(email: str, role: str = User.RoleChoices.GUEST, **extra) -> User:
    return User.objects.create_user(email=email, password=PASSWORD, role=role, **extra)


def create_listing(owner: User, **extra) -> Listing:
    defaults = {
        "title": "Квартира у парка",
        "city": "Алматы",
        "address_line": "пр. Абая, 10",
        "status": Listing.Status.ACTIVE,
        "base_price": Decimal("20000.00"),
        "max_guests": 4,
    }
    defaults.update(extra)
    return Listing.objects.create(owner=owner, **defaults)


def create_booking(listing: Listing, guest: User, start: date, end: date, **extra) -> Booking:
    """Insert a booking row directly, bypassing the availability guard."""
    defaults = {
        "host": listing.owner,
        "nights": (end - start).days,
        "total_amount": Decimal("60000.00"),
        "payment_method": Booking.PaymentMethod.CARD,
    }
    defaults.update(extra)
    return Booking.objects.create(listing=listing, guest=guest, start_date=start, end_date=end, **defaults)


def future_date(days: int) -> date:
    return timezone.localdate() + timedelta(days=days)


class FakeGateway(PaymentGateway):
    """In-memory card gateway with scriptable outcomes."""

    def __init__(self, outcome: str = OutcomeStatus.SUCCEEDED):
        self.outcome = outcome
        self.fail_create = False
        self.fail_refund = False
        self.intents: list[PaymentIntent] = []
        self.confirmations: list[str] = []
        self.refunds: list[tuple[str, Decimal]] = []

    def create_intent(self, amount, currency, reference):
        if self.fail_create:
            raise GatewayError()
        intent = PaymentIntent(
            intent_id=f"pi_test_{len(self.intents) + 1}",
            checkout_url=f"https://pay.example/{reference}",
        )
        self.intents.append(intent)
        return intent

    def confirm(self, intent_id):
        self.confirmations.append(intent_id)
        return PaymentOutcome(
            intent_id=intent_id,
            status=self.outcome,
            failure_reason="Карта отклонена" if self.outcome == OutcomeStatus.FAILED else "",
        )

    def refund(self, intent_id, amount):
        if self.fail_refund:
            raise GatewayError()
        self.refunds.append((intent_id, amount))
