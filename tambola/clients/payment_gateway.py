"""Razorpay checkout: order creation and signature checks."""

from __future__ import annotations

import hashlib
import hmac
import logging
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from tambola.errors import PaymentError, ValidationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class OrderRef:
    """What the browser needs to open checkout."""

    order_id: str
    amount: int  # smallest currency unit (paise)
    currency: str
    receipt: str
    key_id: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "order_id": self.order_id,
            "amount": self.amount,
            "currency": self.currency,
            "receipt": self.receipt,
            "key_id": self.key_id,
        }


def _signature(secret: str, message: str) -> str:
    return hmac.new(secret.encode("utf-8"), message.encode("utf-8"), hashlib.sha256).hexdigest()


class PaymentGateway:
    def __init__(
        self,
        key_id: str,
        key_secret: str,
        webhook_secret: str = "",
        *,
        currency: str = "INR",
        client: Any | None = None,
    ) -> None:
        self.key_id = key_id
        self.currency = currency
        self._key_secret = key_secret
        self._webhook_secret = webhook_secret
        self._client = client

    @classmethod
    def from_config(cls, config: Mapping[str, Any]) -> PaymentGateway:
        return cls(
            str(config.get("RAZORPAY_KEY_ID") or ""),
            str(config.get("RAZORPAY_KEY_SECRET") or ""),
            str(config.get("RAZORPAY_WEBHOOK_SECRET") or ""),
            currency=str(config.get("CURRENCY") or "INR"),
        )

    def _razorpay(self) -> Any:
        if self._client is None:
            if not self.key_id or not self._key_secret:
                raise PaymentError("Payment gateway is not configured")
            import razorpay

            self._client = razorpay.Client(auth=(self.key_id, self._key_secret))
        return self._client

    def create_order(self, amount: int, receipt: str, notes: dict[str, str] | None = None) -> OrderRef:
        """Create an order for ``amount`` whole currency units."""

        if int(amount) <= 0:
            raise ValidationError(message="Invalid amount", details={"amount": ["Must be positive"]})

        client = self._razorpay()
        try:
            order = client.order.create(
                {
                    "amount": int(amount) * 100,
                    "currency": self.currency,
                    "receipt": receipt,
                    "payment_capture": 1,
                    "notes": notes or {},
                }
            )
        except Exception as exc:  # SDK raises its own error types plus requests errors
            logger.error("Order creation failed for %s: %s", receipt, exc)
            raise PaymentError("Failed to create payment order") from exc

        return OrderRef(
            order_id=str(order["id"]),
            amount=int(order["amount"]),
            currency=str(order.get("currency") or self.currency),
            receipt=receipt,
            key_id=self.key_id,
        )

    def verify_payment(self, order_id: str, payment_id: str, signature: str) -> None:
        """Check the checkout callback signature; raises PaymentError on mismatch."""

        if not self._key_secret:
            raise PaymentError("Payment gateway is not configured")
        expected = _signature(self._key_secret, f"{order_id}|{payment_id}")
        if not hmac.compare_digest(expected, str(signature or "")):
            logger.warning("Payment signature mismatch for order %s", order_id)
            raise PaymentError("Payment verification failed: signature mismatch")

    def verify_webhook(self, body: bytes | str, signature: str) -> None:
        if not self._webhook_secret:
            raise PaymentError("Webhook secret is not configured")
        raw = body.decode("utf-8") if isinstance(body, bytes) else body
        expected = _signature(self._webhook_secret, raw)
        if not hmac.compare_digest(expected, str(signature or "")):
            logger.warning("Webhook signature mismatch")
            raise PaymentError("Webhook signature mismatch")
