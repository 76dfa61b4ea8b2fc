import hashlib
import json
import logging

import stripe

from app.exceptions import GatewayError
from app.schemas import CheckoutSession

logger = logging.getLogger("zapshift.gateway")


class StripeGateway:
    """Thin adapter over Stripe Checkout that speaks in CheckoutSession values."""

    def __init__(self, api_key: str, timeout: float = 10):
        self.client = None
        self.sessions = None
        if api_key:
            self.client = stripe.StripeClient(
                api_key,
                http_client=stripe.RequestsClient(timeout=timeout),
            )
            self.sessions = self.client.v1.checkout.sessions

    def _require_sessions(self):
        if self.sessions is None:
            logger.error("STRIPE_SECRET_KEY is not set; checkout is unavailable")
            raise GatewayError("Payment gateway is not configured")
        return self.sessions

    def create_session(
        self,
        *,
        unit_amount: int,
        currency: str,
        product_name: str,
        customer_email: str,
        metadata: dict,
        success_url: str,
        cancel_url: str,
    ) -> CheckoutSession:
        params = {
            "mode": "payment",
            "line_items": [
                {
                    "price_data": {
                        "currency": currency,
                        "unit_amount": unit_amount,
                        "product_data": {"name": product_name},
                    },
                    "quantity": 1,
                }
            ],
            "customer_email": customer_email,
            "metadata": metadata,
            "success_url": success_url,
            "cancel_url": cancel_url,
        }
        sessions = self._require_sessions()
        try:
            session = sessions.create(
                params=params,
                options={"idempotency_key": idempotency_key_for(params)},
            )
        except stripe.StripeError as exc:
            logger.error("Checkout session creation failed: %s", exc, exc_info=True)
            raise GatewayError("Could not create checkout session") from exc
        return to_checkout_session(session)

    def retrieve_session(self, session_id: str) -> CheckoutSession:
        sessions = self._require_sessions()
        try:
            session = sessions.retrieve(session_id)
        except stripe.StripeError as exc:
            logger.error("Checkout session %s retrieval failed: %s", session_id, exc, exc_info=True)
            raise GatewayError("Could not retrieve checkout session", {"sessionId": session_id}) from exc
        return to_checkout_session(session)


def idempotency_key_for(params: dict) -> str:
    """Same parameters, same key; any changed field gets a fresh session."""
    digest = hashlib.sha256(json.dumps(params, sort_keys=True).encode()).hexdigest()
    return f"checkout-{digest}"


def to_checkout_session(session) -> CheckoutSession:
    payment_intent = getattr(session, "payment_intent", None)
    if payment_intent is not None and not isinstance(payment_intent, str):
        # expanded PaymentIntent object
        payment_intent = payment_intent.id
    metadata = getattr(session, "metadata", None) or {}
    return CheckoutSession(
        id=session.id,
        url=getattr(session, "url", None),
        payment_status=getattr(session, "payment_status", None) or "unpaid",
        payment_intent=payment_intent,
        amount_total=getattr(session, "amount_total", None),
        currency=getattr(session, "currency", None),
        customer_email=getattr(session, "customer_email", None),
        metadata={key: str(value) for key, value in dict(metadata).items()},
    )
