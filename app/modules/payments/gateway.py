"""Hosted checkout gateway backed by Stripe."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Protocol

import stripe

from app.core.config import get_settings
from app.shared.exceptions import PaymentProviderException

logger = logging.getLogger(__name__)


@dataclass(frozen=True, slots=True)
class CheckoutSession:
    """Opened checkout session reference."""

    session_id: str
    entry_url: str


class PaymentGateway(Protocol):
    """Protocol for payment providers able to open a hosted checkout."""

    async def create_checkout_session(
        self,
        *,
        amount_minor: int,
        currency: str,
        success_url: str,
        cancel_url: str,
        metadata: dict[str, str],
    ) -> CheckoutSession:
        """Open checkout session and return its id and redirect URL."""

    async def expire_checkout_session(self, session_id: str) -> None:
        """Close an open checkout session so it can no longer be paid."""


class StripeCheckoutGateway:
    """Stripe Checkout in ``payment`` mode with a single inline-priced item."""

    def __init__(self, api_key: str, product_name: str) -> None:
        self.api_key = api_key
        self.product_name = product_name

    async def create_checkout_session(
        self,
        *,
        amount_minor: int,
        currency: str,
        success_url: str,
        cancel_url: str,
        metadata: dict[str, str],
    ) -> CheckoutSession:
        # The Stripe SDK is blocking.
        try:
            session = await asyncio.to_thread(
                stripe.checkout.Session.create,
                api_key=self.api_key,
                mode="payment",
                line_items=[
                    {
                        "quantity": 1,
                        "price_data": {
                            "currency": currency,
                            "unit_amount": amount_minor,
                            "product_data": {"name": self.product_name},
                        },
                    },
                ],
                success_url=success_url,
                cancel_url=cancel_url,
                metadata=metadata,
                payment_intent_data={"metadata": metadata},
                client_reference_id=metadata.get("booking_id"),
            )
        except stripe.StripeError as exc:
            logger.exception("Stripe rejected checkout session request")
            raise PaymentProviderException("Payment provider could not open a checkout session") from exc

        if not session.url:
            raise PaymentProviderException("Payment provider returned a session without a checkout URL")
        return CheckoutSession(session_id=session.id, entry_url=session.url)

    async def expire_checkout_session(self, session_id: str) -> None:
        try:
            await asyncio.to_thread(stripe.checkout.Session.expire, session_id, api_key=self.api_key)
        except stripe.StripeError as exc:
            logger.exception("Stripe rejected expiry of checkout session %s", session_id)
            raise PaymentProviderException("Payment provider could not expire the checkout session") from exc


def get_payment_gateway() -> PaymentGateway:
    """Dependency provider for the configured payment gateway."""
    settings = get_settings()
    return StripeCheckoutGateway(
        api_key=settings.stripe_secret_key,
        product_name=settings.checkout_product_name,
    )
