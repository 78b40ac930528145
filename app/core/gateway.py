# app/core/gateway.py
"""
Payment gateway client (Razorpay-compatible REST API).

Responsibilities:
  - create a gateway order for an amount in minor units
  - verify the signature the gateway attaches to its payment callback

Every call has a bounded timeout; a timeout surfaces as GatewayTimeout so
the caller can retry instead of hanging.
"""

import hashlib
import hmac
import logging
from functools import lru_cache
from typing import Any

import httpx

from app.core.config import get_settings
from app.core.errors import GatewayTimeout, PaymentGatewayError

logger = logging.getLogger(__name__)


class PaymentGateway:
    def __init__(
        self,
        key_id: str,
        key_secret: str,
        api_base: str,
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ):
        self.key_id = key_id
        self._key_secret = key_secret
        self._client = httpx.Client(
            base_url=api_base,
            auth=(key_id, key_secret),
            timeout=timeout,
            transport=transport,
        )

    def create_order(
        self,
        amount_minor: int,
        currency: str,
        receipt: str,
        notes: dict[str, str] | None = None,
    ) -> dict[str, Any]:
        """
        Create an order on the gateway.

        Returns the gateway's order payload (at least `id`, `amount`,
        `currency`, `receipt`).

        Raises:
            GatewayTimeout: no answer within the configured timeout.
            PaymentGatewayError: transport failure or non-2xx response.
        """
        payload: dict[str, Any] = {
            "amount": amount_minor,
            "currency": currency,
            "receipt": receipt,
        }
        if notes:
            payload["notes"] = notes

        try:
            response = self._client.post("/orders", json=payload)
        except httpx.TimeoutException:
            logger.warning("Gateway order creation timed out for receipt %s", receipt)
            raise GatewayTimeout()
        except httpx.HTTPError as exc:
            logger.error("Gateway order creation failed for receipt %s: %s", receipt, exc)
            raise PaymentGatewayError("Failed to create payment order")

        if response.status_code >= 400:
            logger.error(
                "Gateway rejected order for receipt %s: HTTP %s",
                receipt,
                response.status_code,
            )
            raise PaymentGatewayError("Failed to create payment order")

        return response.json()

    def expected_signature(self, gateway_order_id: str, gateway_payment_id: str) -> str:
        body = f"{gateway_order_id}|{gateway_payment_id}"
        return hmac.new(
            self._key_secret.encode(),
            body.encode(),
            hashlib.sha256,
        ).hexdigest()

    def verify_signature(
        self,
        gateway_order_id: str,
        gateway_payment_id: str,
        signature: str,
    ) -> bool:
        expected = self.expected_signature(gateway_order_id, gateway_payment_id)
        return hmac.compare_digest(expected, signature or "")


@lru_cache
def get_gateway() -> PaymentGateway:
    """
    Process-wide gateway client built from settings.
    Routers take it through Depends so tests can override it.
    """
    settings = get_settings()
    return PaymentGateway(
        key_id=settings.PAYMENT_KEY_ID,
        key_secret=settings.PAYMENT_KEY_SECRET,
        api_base=settings.PAYMENT_API_BASE,
        timeout=settings.PAYMENT_TIMEOUT_SECONDS,
    )
