"""
Tests for the Stripe REST adapter, with requests mocked out
"""
from decimal import Decimal

import pytest
import requests

from config import app_config
from core import stripe_service
from core.exceptions import PaymentGatewayError
from core.stripe_service import StripeConfig, StripeService, _flatten, to_minor_units


class FakeResponse:
    def __init__(self, status_code, body=None):
        self.status_code = status_code
        self._body = body

    def json(self):
        if self._body is None:
            raise ValueError("No JSON body")
        return self._body


@pytest.fixture
def calls(monkeypatch):
    """Capture outgoing requests and answer with the queued response."""
    recorded = {"requests": [], "response": FakeResponse(200, {"id": "pi_1", "status": "succeeded"})}

    def fake_post(url, headers=None, data=None, timeout=None):
        recorded["requests"].append({"url": url, "headers": headers, "data": data, "timeout": timeout})
        response = recorded["response"]
        if isinstance(response, Exception):
            raise response
        return response

    monkeypatch.setattr(stripe_service.requests, "post", fake_post)
    return recorded


def _charge():
    return StripeService(secret_key="sk_test_123", base_url="https://stripe.test/v1").create_payment_intent(
        amount=Decimal("100.50"),
        customer_id="cus_1",
        payment_method_id="pm_1",
        metadata={"contract_id": "c-1"},
    )


class TestRequests:

    def test_payment_intent_payload(self, calls):
        intent = _charge()

        assert intent["status"] == "succeeded"
        sent = calls["requests"][0]
        assert sent["url"] == "https://stripe.test/v1/payment_intents"
        assert sent["headers"]["Authorization"] == "Bearer sk_test_123"
        assert sent["data"]["amount"] == 10050
        assert sent["data"]["confirm"] == "true"
        assert sent["data"]["metadata[contract_id]"] == "c-1"
        assert sent["timeout"] > 0

    def test_refund_amount_in_cents(self, calls):
        StripeService(secret_key="sk").create_refund("pi_1", amount=Decimal("9.99"))

        assert calls["requests"][0]["data"] == {
            "payment_intent": "pi_1",
            "reason": "requested_by_customer",
            "amount": 999,
        }


class TestErrorTranslation:

    @pytest.mark.parametrize("status_code,body,reason", [
        (402, {"error": {"type": "card_error", "code": "card_declined", "decline_code": "insufficient_funds"}},
         PaymentGatewayError.INSUFFICIENT_FUNDS),
        (402, {"error": {"type": "card_error", "code": "card_declined", "message": "Your card was declined."}},
         PaymentGatewayError.CARD_DECLINED),
        (500, {"error": {"type": "api_error"}}, PaymentGatewayError.GATEWAY_UNREACHABLE),
        (400, {"error": {"type": "invalid_request_error"}}, PaymentGatewayError.GATEWAY_ERROR),
        (400, None, PaymentGatewayError.GATEWAY_ERROR),
    ])
    def test_error_bodies(self, calls, status_code, body, reason):
        calls["response"] = FakeResponse(status_code, body)

        with pytest.raises(PaymentGatewayError) as exc:
            _charge()

        assert exc.value.reason == reason

    def test_declined_card_is_payment_required(self, calls):
        calls["response"] = FakeResponse(402, {"error": {"type": "card_error", "message": "Your card was declined."}})

        with pytest.raises(PaymentGatewayError) as exc:
            _charge()

        assert exc.value.status_code == 402
        assert exc.value.detail == {"reason": "card_declined", "message": "Your card was declined."}

    @pytest.mark.parametrize("error", [
        requests.exceptions.ConnectionError("refused"),
        requests.exceptions.Timeout("too slow"),
    ])
    def test_unreachable_gateway(self, calls, error):
        calls["response"] = error

        with pytest.raises(PaymentGatewayError) as exc:
            _charge()

        assert exc.value.reason == PaymentGatewayError.GATEWAY_UNREACHABLE
        assert exc.value.status_code == 502


class TestHelpers:

    def test_flatten_nested_form(self):
        assert _flatten({
            "customer": "cus_1",
            "confirm": False,
            "description": None,
            "metadata": {"contract_id": "c-1", "brand": {"id": "b-1"}},
        }) == {
            "customer": "cus_1",
            "confirm": "false",
            "metadata[contract_id]": "c-1",
            "metadata[brand][id]": "b-1",
        }

    @pytest.mark.parametrize("amount,cents", [
        (Decimal("0.01"), 1),
        (Decimal("10"), 1000),
        (Decimal("19.995"), 2000),
    ])
    def test_minor_units(self, amount, cents):
        assert to_minor_units(amount) == cents

    def test_settings_come_from_app_config(self):
        assert StripeConfig.CURRENCY == app_config.PLATFORM_CURRENCY
        assert StripeConfig.BASE_URL == app_config.STRIPE_API_BASE
        assert StripeConfig.TIMEOUT_SECONDS == app_config.STRIPE_TIMEOUT_SECONDS
