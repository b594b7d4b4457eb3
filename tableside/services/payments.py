import httpx
import logging
from typing import Any, Dict, List, Optional
from tableside.config import settings
from tableside.core.exceptions import PaymentError

logger = logging.getLogger(__name__)

class StripeCheckout:
    """Minimal Stripe Checkout client over the REST API"""

    def __init__(self, secret_key: Optional[str] = None, api_base: Optional[str] = None,
                 transport: Optional[httpx.AsyncBaseTransport] = None):
        self.secret_key = secret_key if secret_key is not None else settings.stripe_secret_key
        self.api_base = (api_base or settings.stripe_api_base).rstrip("/")
        self.transport = transport

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.api_base,
            auth=(self.secret_key or "", ""),
            timeout=20.0,
            transport=self.transport,
        )

    async def create_checkout_session(self, order_id: int, line_items: List[Dict[str, Any]]) -> str:
        """Create a checkout session and return its redirect URL"""
        if not self.secret_key:
            raise PaymentError("Stripe is not configured")
        if not line_items:
            raise PaymentError(f"Order {order_id} has nothing payable")

        order_url = f"{settings.public_base_url.rstrip('/')}/order/{order_id}"
        data = {
            "mode": "payment",
            "payment_method_types[0]": "card",
            "success_url": order_url + "?session_id={CHECKOUT_SESSION_ID}",
            "cancel_url": order_url,
            "metadata[order_id]": str(order_id),
        }
        for i, item in enumerate(line_items):
            data[f"line_items[{i}][price]"] = item["price"]
            data[f"line_items[{i}][quantity]"] = str(item["quantity"])

        async with self._client() as client:
            try:
                response = await client.post("/checkout/sessions", data=data)
            except httpx.HTTPError as e:
                logger.error(f"Stripe request failed for order {order_id}: {e}")
                raise PaymentError("Payment provider unreachable") from e

        if response.status_code != 200:
            logger.error(f"Stripe rejected checkout for order {order_id}: {response.text}")
            raise PaymentError("Failed to create Stripe session")
        url = response.json().get("url")
        if not url:
            raise PaymentError("Failed to create Stripe session")
        return url

    async def retrieve_session(self, session_id: str) -> str:
        """Return the payment intent id of a completed checkout session"""
        if not self.secret_key:
            raise PaymentError("Stripe is not configured")

        async with self._client() as client:
            try:
                response = await client.get(f"/checkout/sessions/{session_id}")
            except httpx.HTTPError as e:
                raise PaymentError("Payment provider unreachable") from e

        if response.status_code != 200:
            raise PaymentError(f"Unknown checkout session {session_id}")
        payment_intent = response.json().get("payment_intent")
        if isinstance(payment_intent, dict):
            payment_intent = payment_intent.get("id")
        if not payment_intent:
            raise PaymentError(f"Checkout session {session_id} has no payment")
        return payment_intent

def get_payment_gateway() -> StripeCheckout:
    return StripeCheckout()
