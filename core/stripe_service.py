# Stripe Payment Service for contract escrow funding
import requests
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional, Dict, Any
import logging

from config.app_config import (
    PLATFORM_CURRENCY,
    STRIPE_API_BASE,
    STRIPE_PUBLIC_KEY,
    STRIPE_SECRET_KEY,
    STRIPE_TIMEOUT_SECONDS,
)
from core.exceptions import PaymentGatewayError

logger = logging.getLogger(__name__)


class StripeConfig:
    """Stripe configuration"""
    BASE_URL = STRIPE_API_BASE
    SECRET_KEY = STRIPE_SECRET_KEY
    PUBLIC_KEY = STRIPE_PUBLIC_KEY
    CURRENCY = PLATFORM_CURRENCY
    TIMEOUT_SECONDS = STRIPE_TIMEOUT_SECONDS


def to_minor_units(amount: Decimal) -> int:
    """Convert a decimal amount into cents."""
    return int((Decimal(amount) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def _flatten(data: Dict[str, Any], prefix: str = "") -> Dict[str, Any]:
    """Flatten nested dicts into Stripe's bracketed form keys."""
    flat = {}
    for key, value in data.items():
        name = f"{prefix}[{key}]" if prefix else key
        if isinstance(value, dict):
            flat.update(_flatten(value, name))
        elif isinstance(value, bool):
            flat[name] = "true" if value else "false"
        elif value is not None:
            flat[name] = value
    return flat


class StripeService:
    """Card charging through the Stripe REST API"""

    def __init__(self, secret_key: Optional[str] = None, base_url: Optional[str] = None):
        self.base_url = base_url or StripeConfig.BASE_URL
        self.secret_key = secret_key or StripeConfig.SECRET_KEY
        self.timeout = StripeConfig.TIMEOUT_SECONDS
        self.headers = {
            "Authorization": f"Bearer {self.secret_key}",
        }

    def _make_request(self, method: str, endpoint: str, data: Optional[Dict] = None) -> Dict[str, Any]:
        """Make a request to the Stripe API"""
        url = f"{self.base_url}{endpoint}"
        payload = _flatten(data) if data else None
        try:
            if method == "GET":
                response = requests.get(url, headers=self.headers, params=payload, timeout=self.timeout)
            elif method == "POST":
                response = requests.post(url, headers=self.headers, data=payload, timeout=self.timeout)
            else:
                raise ValueError(f"Unsupported method: {method}")
        except (requests.exceptions.ConnectionError, requests.exceptions.Timeout) as e:
            logger.error(f"Stripe unreachable: {e}")
            raise PaymentGatewayError(PaymentGatewayError.GATEWAY_UNREACHABLE, "Payment gateway unreachable")
        except requests.exceptions.RequestException as e:
            logger.error(f"Stripe API error: {e}")
            raise PaymentGatewayError(PaymentGatewayError.GATEWAY_ERROR, str(e))

        if response.status_code >= 400:
            raise self._translate_error(response)
        return response.json()

    @staticmethod
    def _translate_error(response) -> PaymentGatewayError:
        """Map a Stripe error body onto a failure reason."""
        try:
            error = response.json().get("error", {})
        except ValueError:
            error = {}

        code = error.get("code")
        decline_code = error.get("decline_code")
        message = error.get("message") or f"Gateway returned HTTP {response.status_code}"

        logger.warning(
            f"Stripe request failed: status={response.status_code} type={error.get('type')} "
            f"code={code} decline_code={decline_code}"
        )

        if "insufficient_funds" in (code, decline_code):
            return PaymentGatewayError(PaymentGatewayError.INSUFFICIENT_FUNDS, message)
        if error.get("type") == "card_error":
            return PaymentGatewayError(PaymentGatewayError.CARD_DECLINED, message)
        if response.status_code >= 500:
            return PaymentGatewayError(PaymentGatewayError.GATEWAY_UNREACHABLE, message)
        return PaymentGatewayError(PaymentGatewayError.GATEWAY_ERROR, message)

    def create_customer(self, email: str, name: Optional[str] = None, user_id: Optional[str] = None) -> Dict[str, Any]:
        """
        Create a customer on Stripe

        Args:
            email: Customer's email
            name: Display name
            user_id: Internal user ID, stored as metadata

        Returns:
            Customer object
        """
        data = {"email": email, "name": name}
        if user_id:
            data["metadata"] = {"user_id": user_id}
        return self._make_request("POST", "/customers", data)

    def attach_payment_method(self, payment_method_id: str, customer_id: str) -> Dict[str, Any]:
        """Attach a card (payment method) to a customer and return the payment method."""
        return self._make_request(
            "POST",
            f"/payment_methods/{payment_method_id}/attach",
            {"customer": customer_id},
        )

    def create_payment_intent(
        self,
        amount: Decimal,
        customer_id: str,
        payment_method_id: str,
        description: str = "",
        metadata: Optional[Dict] = None,
        confirm: bool = True,
    ) -> Dict[str, Any]:
        """
        Create (and by default confirm) a PaymentIntent that charges a saved card.

        Args:
            amount: Decimal amount in major units
            customer_id: Stripe customer
            payment_method_id: Saved card
            description: Statement description
            metadata: Contract/brand/creator ids

        Returns:
            PaymentIntent object
        """
        data = {
            "amount": to_minor_units(amount),
            "currency": StripeConfig.CURRENCY,
            "customer": customer_id,
            "payment_method": payment_method_id,
            "confirm": confirm,
            "off_session": confirm,
            "description": description,
            "metadata": metadata or {},
        }
        return self._make_request("POST", "/payment_intents", data)

    def retrieve_payment_intent(self, payment_intent_id: str) -> Dict[str, Any]:
        return self._make_request("GET", f"/payment_intents/{payment_intent_id}")

    def create_refund(self, payment_intent_id: str, amount: Optional[Decimal] = None, reason: str = "requested_by_customer") -> Dict[str, Any]:
        """Refund a PaymentIntent, fully unless an amount is given."""
        data = {"payment_intent": payment_intent_id, "reason": reason}
        if amount is not None:
            data["amount"] = to_minor_units(amount)
        return self._make_request("POST", "/refunds", data)


def get_stripe_service() -> StripeService:
    """FastAPI dependency returning the gateway adapter."""
    return StripeService()
