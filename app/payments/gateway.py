"""
Thin wrapper around Stripe Checkout.

The rest of the app only sees CheckoutSession values, so tests can swap in
a fake gateway on app.state.payment_gateway.
"""
import logging
from dataclasses import dataclass, field
from typing import Any

import stripe
from fastapi import Request

logger = logging.getLogger(__name__)


class PaymentGatewayError(Exception):
    pass


@dataclass
class CheckoutSession:
    id: str
    url: str | None = None
    payment_intent: str | None = None
    payment_status: str = "unpaid"
    amount_total: int = 0
    currency: str = "usd"
    customer_email: str | None = None
    metadata: dict[str, str] = field(default_factory=dict)


def _intent_id(value: Any) -> str | None:
    # expanded sessions carry the PaymentIntent object instead of its id
    if value is None or isinstance(value, str):
        return value
    return getattr(value, "id", None)


class StripeGateway:
    def __init__(self, secret_key: str | None, webhook_secret: str | None = None):
        self.secret_key = secret_key
        self.webhook_secret = webhook_secret

    def _session(self, s) -> CheckoutSession:
        metadata = s.get("metadata") or {}
        return CheckoutSession(
            id=s.id,
            url=s.get("url"),
            payment_intent=_intent_id(s.get("payment_intent")),
            payment_status=s.get("payment_status") or "unpaid",
            amount_total=s.get("amount_total") or 0,
            currency=s.get("currency") or "usd",
            customer_email=s.get("customer_email") or (s.get("customer_details") or {}).get("email"),
            metadata={k: metadata[k] for k in metadata.keys()},
        )

    def create_checkout_session(
        self,
        *,
        name: str,
        amount: int,
        currency: str,
        customer_email: str,
        metadata: dict[str, str],
        success_url: str,
        cancel_url: str,
    ) -> CheckoutSession:
        if not self.secret_key:
            raise PaymentGatewayError("Stripe is not configured")
        try:
            s = stripe.checkout.Session.create(
                api_key=self.secret_key,
                line_items=[{
                    "price_data": {
                        "currency": currency,
                        "unit_amount": amount,
                        "product_data": {"name": name},
                    },
                    "quantity": 1,
                }],
                mode="payment",
                customer_email=customer_email,
                metadata=metadata,
                success_url=success_url,
                cancel_url=cancel_url,
            )
        except stripe.error.StripeError as e:
            logger.warning("stripe checkout create failed: %s", e)
            raise PaymentGatewayError(str(e)) from e
        return self._session(s)

    def retrieve_session(self, session_id: str) -> CheckoutSession:
        if not self.secret_key:
            raise PaymentGatewayError("Stripe is not configured")
        try:
            s = stripe.checkout.Session.retrieve(session_id, api_key=self.secret_key)
        except stripe.error.StripeError as e:
            logger.warning("stripe session retrieve failed for %s: %s", session_id, e)
            raise PaymentGatewayError(str(e)) from e
        return self._session(s)

    def construct_event(self, payload: bytes, sig_header: str | None):
        if not self.webhook_secret:
            raise PaymentGatewayError("Webhook secret not configured")
        try:
            return stripe.Webhook.construct_event(payload, sig_header, self.webhook_secret)
        except ValueError as e:
            raise PaymentGatewayError("Invalid payload") from e
        except stripe.error.SignatureVerificationError as e:
            raise PaymentGatewayError("Invalid signature") from e


# FastAPI dep
def get_gateway(request: Request):
    return request.app.state.payment_gateway
