"""
Card payment gateway integration.

The booking engine only relies on three calls: create a payment intent,
ask for the outcome of an intent, and refund. ``HttpCardGateway`` speaks
the provider's signed JSON API over HTTP; when no API key is configured
(or in DEBUG) it emulates the provider so flows can be exercised locally.
"""

from __future__ import annotations

import hashlib
import hmac
import logging
import uuid
from dataclasses import dataclass
from decimal import Decimal

import requests
from django.conf import settings  # type: ignore

from apps.bookings.domain.exceptions import GatewayError

logger = logging.getLogger(__name__)


class OutcomeStatus:
    SUCCEEDED = "succeeded"
    FAILED = "failed"
    PENDING = "pending"


@dataclass(frozen=True)
class PaymentIntent:
    intent_id: str
    checkout_url: str = ""
    status: str = OutcomeStatus.PENDING


@dataclass(frozen=True)
class PaymentOutcome:
    intent_id: str
    status: str
    amount: Decimal | None = None
    failure_reason: str = ""

    @property
    def succeeded(self) -> bool:
        return self.status == OutcomeStatus.SUCCEEDED

    @property
    def failed(self) -> bool:
        return self.status == OutcomeStatus.FAILED


class PaymentGateway:
    """Interface the booking engine expects from a card payment provider."""

    def create_intent(self, amount: Decimal, currency: str, reference: str) -> PaymentIntent:
        raise NotImplementedError

    def confirm(self, intent_id: str) -> PaymentOutcome:
        raise NotImplementedError

    def refund(self, intent_id: str, amount: Decimal) -> None:
        raise NotImplementedError


def generate_signature(data: dict, secret: str) -> str:
    """SHA256 over the alphabetically sorted ``key=value`` pairs plus the secret."""
    sign_string = "&".join(f"{k}={v}" for k, v in sorted(data.items()))
    sign_string += f"&{secret}"
    return hashlib.sha256(sign_string.encode()).hexdigest()


def verify_callback_signature(data: dict, signature: str, secret: str | None = None) -> bool:
    """Check a provider callback; an unset secret rejects every callback."""
    secret = settings.PAYMENT_GATEWAY_SECRET_KEY if secret is None else secret
    if not secret or not signature:
        return False
    expected = generate_signature(data, secret)
    return hmac.compare_digest(expected, signature)


def outcome_from_payload(intent_id: str, result: dict) -> PaymentOutcome:
    """Map the provider's status payload (poll answer or callback body) to an outcome."""
    raw_status = str(result.get("status", "")).upper()
    if raw_status == "SUCCESS":
        status = OutcomeStatus.SUCCEEDED
    elif raw_status in ("FAILED", "CANCELLED", "DECLINED"):
        status = OutcomeStatus.FAILED
    else:
        status = OutcomeStatus.PENDING

    amount = result.get("amount")
    return PaymentOutcome(
        intent_id=intent_id,
        status=status,
        amount=Decimal(amount) / 100 if amount is not None else None,
        failure_reason=result.get("error_message") or "",
    )


class HttpCardGateway(PaymentGateway):
    """Signed JSON API client for the card provider."""

    timeout = 30

    def __init__(self, base_url: str | None = None, api_key: str | None = None, secret_key: str | None = None):
        self.base_url = (base_url or settings.PAYMENT_GATEWAY_BASE_URL).rstrip("/") + "/"
        self.api_key = settings.PAYMENT_GATEWAY_API_KEY if api_key is None else api_key
        self.secret_key = settings.PAYMENT_GATEWAY_SECRET_KEY if secret_key is None else secret_key

    @property
    def emulated(self) -> bool:
        return settings.DEBUG or not self.api_key

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self.api_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }

    def _request(self, method: str, path: str, payload: dict) -> dict:
        payload = dict(payload)
        payload["signature"] = generate_signature(payload, self.secret_key)
        kwargs = {"params": payload} if method == "GET" else {"json": payload}
        try:
            response = requests.request(
                method,
                f"{self.base_url}{path}",
                headers=self._headers(),
                timeout=self.timeout,
                **kwargs,
            )
            response.raise_for_status()
            return response.json()
        except requests.exceptions.RequestException as e:
            logger.error(f"Payment gateway request {method} {path} failed: {e}")
            raise GatewayError() from e
        except ValueError as e:
            logger.error(f"Payment gateway returned a non-JSON body for {method} {path}: {e}")
            raise GatewayError() from e

    def create_intent(self, amount: Decimal, currency: str, reference: str) -> PaymentIntent:
        logger.info(f"Creating payment intent for {reference}: {amount} {currency}")

        if self.emulated:
            intent_id = f"pi_{uuid.uuid4().hex[:16]}"
            logger.warning("Payment gateway is emulated (DEBUG or no API key)")
            return PaymentIntent(
                intent_id=intent_id,
                checkout_url=f"{settings.SITE_URL}/pay/{intent_id}?amount={amount}",
            )

        result = self._request(
            "POST",
            "payments/create",
            {
                "order_id": reference,
                "transaction_id": f"{reference}_{uuid.uuid4().hex[:8]}",
                "amount": int(Decimal(amount) * 100),
                "currency": currency,
                "return_url": f"{settings.SITE_URL}/payments/return/",
            },
        )
        if not result.get("success"):
            error_msg = result.get("error", {}).get("message", "Unknown error")
            logger.error(f"Payment gateway rejected intent for {reference}: {error_msg}")
            raise GatewayError()

        return PaymentIntent(intent_id=result["payment_id"], checkout_url=result.get("payment_url", ""))

    def confirm(self, intent_id: str) -> PaymentOutcome:
        logger.info(f"Checking payment intent {intent_id}")

        if self.emulated:
            return PaymentOutcome(intent_id=intent_id, status=OutcomeStatus.SUCCEEDED)

        result = self._request("GET", f"payments/{intent_id}/status", {"payment_id": intent_id})
        return outcome_from_payload(intent_id, result)

    def refund(self, intent_id: str, amount: Decimal) -> None:
        logger.info(f"Refunding {amount} on payment intent {intent_id}")

        if self.emulated:
            return

        result = self._request(
            "POST",
            f"payments/{intent_id}/refund",
            {"payment_id": intent_id, "amount": int(Decimal(amount) * 100)},
        )
        if not result.get("success"):
            raise GatewayError()


_gateway: PaymentGateway | None = None


def get_payment_gateway() -> PaymentGateway:
    global _gateway
    if _gateway is None:
        _gateway = HttpCardGateway()
    return _gateway


def set_payment_gateway(gateway: PaymentGateway | None) -> None:
    """Swap the process-wide gateway; ``None`` restores the HTTP client."""
    global _gateway
    _gateway = gateway
