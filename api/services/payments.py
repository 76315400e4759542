# SPDX-License-Identifier: Apache-2.0

"""
Card payments through Stripe.

Amounts are given in rupees and sent to Stripe in paisa. Without
``STRIPE_SECRET_KEY`` the service runs in test mode: intents and sessions
cannot be created, and any payment reference verifies.
"""

import os
import logging
from dataclasses import dataclass
from typing import Dict, Optional, Any
from opentelemetry import trace
import stripe

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

DEFAULT_CURRENCY = "pkr"
PRODUCT_NAME = "EcoBite Donation"
PRODUCT_DESCRIPTION = "Support food donation logistics"


class PaymentError(Exception):
    """Raised when Stripe rejects a request."""
    pass


def to_minor_units(amount: float) -> int:
    return int(round(amount * 100))


def from_minor_units(amount: int) -> float:
    return amount / 100


@dataclass
class PaymentVerification:
    verified: bool
    amount: Optional[float] = None


def _metadata(metadata: Optional[Dict[str, Any]]) -> Dict[str, str]:
    return {str(k): str(v) for k, v in (metadata or {}).items() if v is not None}


class PaymentService:
    """Stripe PaymentIntent and Checkout wrapper."""

    def __init__(self, secret_key: Optional[str] = None, frontend_url: Optional[str] = None):
        self.secret_key = secret_key or os.getenv("STRIPE_SECRET_KEY", "")
        self.publishable_key = os.getenv("STRIPE_PUBLISHABLE_KEY", "")
        self.frontend_url = frontend_url or os.getenv("FRONTEND_URL", "http://localhost:5173")

        if self.secret_key:
            stripe.api_key = self.secret_key
            logger.info("Payment service ready (Stripe)")
        else:
            logger.warning("Stripe not configured. Set STRIPE_SECRET_KEY; payments run in test mode")

    def is_configured(self) -> bool:
        return bool(self.secret_key)

    def create_payment_intent(self, amount: float, currency: str = DEFAULT_CURRENCY,
                              metadata: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        """
        Create a PaymentIntent for an in-app card form.

        Returns:
            ``{paymentIntentId, clientSecret, amount, currency, status}``
        """
        with tracer.start_as_current_span("payments.create_intent") as span:
            span.set_attribute("payment.amount", amount)

            try:
                intent = stripe.PaymentIntent.create(
                    amount=to_minor_units(amount),
                    currency=currency.lower(),
                    automatic_payment_methods={"enabled": True},
                    metadata=_metadata(metadata)
                )
            except stripe.StripeError as e:
                span.record_exception(e)
                logger.error(f"Stripe payment intent creation error: {str(e)}")
                raise PaymentError("Failed to create payment intent")

            return {
                "paymentIntentId": intent.id,
                "clientSecret": intent.client_secret,
                "amount": intent.amount / 100,
                "currency": intent.currency,
                "status": intent.status
            }

    def create_checkout_session(self, amount: float, currency: str = DEFAULT_CURRENCY,
                                success_url: Optional[str] = None, cancel_url: Optional[str] = None,
                                metadata: Optional[Dict[str, Any]] = None) -> Dict[str, str]:
        """
        Create a hosted Checkout session.

        Returns:
            ``{sessionId, url}``
        """
        with tracer.start_as_current_span("payments.create_checkout") as span:
            span.set_attribute("payment.amount", amount)

            try:
                session = stripe.checkout.Session.create(
                    mode="payment",
                    payment_method_types=["card"],
                    line_items=[
                        {
                            "price_data": {
                                "currency": currency.lower(),
                                "unit_amount": to_minor_units(amount),
                                "product_data": {
                                    "name": PRODUCT_NAME,
                                    "description": PRODUCT_DESCRIPTION
                                },
                            },
                            "quantity": 1,
                        }
                    ],
                    success_url=success_url or f"{self.frontend_url}/payment/success?session_id={{CHECKOUT_SESSION_ID}}",
                    cancel_url=cancel_url or f"{self.frontend_url}/payment/cancel",
                    metadata=_metadata(metadata)
                )
            except stripe.StripeError as e:
                span.record_exception(e)
                logger.error(f"Stripe checkout session creation error: {str(e)}")
                raise PaymentError("Failed to create checkout session")

            return {"sessionId": session.id, "url": session.url or ""}

    def verify_payment(self, reference: str) -> PaymentVerification:
        """
        Check that a Checkout session is paid or a PaymentIntent succeeded.

        A verified result carries the amount Stripe charged, in rupees. In
        test mode every reference verifies with no amount.
        """
        with tracer.start_as_current_span("payments.verify") as span:
            if not self.is_configured():
                span.set_attribute("payment.test_mode", True)
                logger.warning(f"TEST MODE: skipping payment verification for {reference}")
                return PaymentVerification(verified=True)

            try:
                if reference.startswith("cs_"):
                    session = stripe.checkout.Session.retrieve(reference)
                    verified = session.payment_status == "paid"
                    charged = session.amount_total
                else:
                    intent = stripe.PaymentIntent.retrieve(reference)
                    verified = intent.status == "succeeded"
                    charged = intent.amount_received
            except stripe.StripeError as e:
                span.record_exception(e)
                logger.error(f"Stripe payment verification error: {str(e)}")
                return PaymentVerification(verified=False)

            span.set_attribute("payment.verified", verified)
            if not verified or charged is None:
                return PaymentVerification(verified=False)
            return PaymentVerification(verified=True, amount=from_minor_units(charged))
