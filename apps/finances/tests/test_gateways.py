from __future__ import annotations

from decimal import Decimal
from unittest.mock import MagicMock, patch

import pytest
import requests

from apps.bookings.domain.exceptions import GatewayError
from apps.finances.gateways import (
    HttpCardGateway,
    OutcomeStatus,
    generate_signature,
    get_payment_gateway,
    outcome_from_payload,
    set_payment_gateway,
    verify_callback_signature,
)

REQUEST_PATH = "apps.finances.gateways.requests.request"


def _response(payload: dict) -> MagicMock:
    response = MagicMock()
    response.json.return_value = payload
    response.raise_for_status.return_value = None
    return response


@pytest.fixture
def live_gateway(settings):
    settings.DEBUG = False
    return HttpCardGateway(base_url="https://pay.test/v1", api_key="key", secret_key="secret")


def test_signature_is_order_independent():
    assert generate_signature({"b": 2, "a": 1}, "s") == generate_signature({"a": 1, "b": 2}, "s")
    assert generate_signature({"a": 1}, "s") != generate_signature({"a": 1}, "t")


def test_callback_signature_requires_matching_secret(settings):
    settings.PAYMENT_GATEWAY_SECRET_KEY = "whsec"
    payload = {"payment_id": "pay_1", "status": "SUCCESS"}
    signature = generate_signature(payload, "whsec")

    assert verify_callback_signature(payload, signature)
    assert not verify_callback_signature({**payload, "status": "FAILED"}, signature)
    assert not verify_callback_signature(payload, "")

    settings.PAYMENT_GATEWAY_SECRET_KEY = ""
    assert not verify_callback_signature(payload, generate_signature(payload, ""))


def test_callback_payload_maps_to_outcome():
    outcome = outcome_from_payload("pay_1", {"status": "success", "amount": 150050})

    assert outcome.succeeded
    assert outcome.amount == Decimal("1500.50")
    assert outcome_from_payload("pay_1", {"status": "DECLINED", "error_message": "limit"}).failure_reason == "limit"
    assert outcome_from_payload("pay_1", {}).status == OutcomeStatus.PENDING


def test_gateway_without_key_is_emulated(settings):
    settings.DEBUG = False
    gateway = HttpCardGateway(api_key="")

    with patch(REQUEST_PATH) as request:
        intent = gateway.create_intent(Decimal("1000.00"), "KZT", "AB12CD34")
        outcome = gateway.confirm(intent.intent_id)
        gateway.refund(intent.intent_id, Decimal("1000.00"))

    request.assert_not_called()
    assert intent.intent_id.startswith("pi_")
    assert outcome.succeeded


def test_create_intent_signs_request(live_gateway):
    with patch(REQUEST_PATH, return_value=_response(
        {"success": True, "payment_id": "pay_1", "payment_url": "https://pay.test/checkout/pay_1"}
    )) as request:
        intent = live_gateway.create_intent(Decimal("1500.50"), "KZT", "AB12CD34")

    assert intent.intent_id == "pay_1"
    method, url = request.call_args.args
    payload = request.call_args.kwargs["json"]
    assert (method, url) == ("POST", "https://pay.test/v1/payments/create")
    assert payload["amount"] == 150050
    assert "signature" in payload


def test_confirm_maps_provider_statuses(live_gateway):
    with patch(REQUEST_PATH, return_value=_response({"status": "SUCCESS", "amount": 150050})):
        outcome = live_gateway.confirm("pay_1")
    assert outcome.status == OutcomeStatus.SUCCEEDED
    assert outcome.amount == Decimal("1500.50")

    with patch(REQUEST_PATH, return_value=_response({"status": "DECLINED", "error_message": "Insufficient funds"})):
        outcome = live_gateway.confirm("pay_1")
    assert outcome.failed
    assert outcome.failure_reason == "Insufficient funds"

    with patch(REQUEST_PATH, return_value=_response({"status": "PROCESSING"})):
        assert live_gateway.confirm("pay_1").status == OutcomeStatus.PENDING


def test_transport_errors_become_gateway_errors(live_gateway):
    with patch(REQUEST_PATH, side_effect=requests.exceptions.ConnectionError("down")):
        with pytest.raises(GatewayError):
            live_gateway.create_intent(Decimal("10"), "KZT", "AB12CD34")


def test_rejected_intent_is_a_gateway_error(live_gateway):
    with patch(REQUEST_PATH, return_value=_response({"success": False, "error": {"message": "bad amount"}})):
        with pytest.raises(GatewayError):
            live_gateway.create_intent(Decimal("10"), "KZT", "AB12CD34")


def test_gateway_can_be_swapped():
    sentinel = HttpCardGateway(api_key="")
    set_payment_gateway(sentinel)
    try:
        assert get_payment_gateway() is sentinel
    finally:
        set_payment_gateway(None)
    assert isinstance(get_payment_gateway(), HttpCardGateway)
