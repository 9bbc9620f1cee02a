"""Stripe service - Integration with the Stripe API"""

import logging
import threading
from typing import Optional

import stripe

from ...config import STRIPE_PUBLIC_KEY, STRIPE_SECRET_KEY
from ...shared.errors import IntegrationError

logger = logging.getLogger(__name__)


def to_minor_units(amount: float) -> int:
    """Euros to cents"""
    return int(round(amount * 100))


class StripeService:
    """
    Stripe API operations over one process-wide SDK client.

    The client is built on first use and reused afterwards; concurrent first
    callers share a single construction.
    """

    def __init__(self, api_key: Optional[str] = None, public_key: Optional[str] = None):
        self.api_key = api_key if api_key is not None else STRIPE_SECRET_KEY
        self.public_key = public_key if public_key is not None else STRIPE_PUBLIC_KEY
        self._client: Optional[stripe.StripeClient] = None
        self._lock = threading.Lock()

        if not self.api_key:
            logger.warning("STRIPE_SECRET_KEY not set; payment endpoints will fail until configured")

    def is_available(self) -> bool:
        return bool(self.api_key)

    def get_client(self) -> stripe.StripeClient:
        client = self._client
        if client is not None:
            return client

        with self._lock:
            if self._client is None:
                if not self.api_key:
                    raise IntegrationError("Stripe client not configured")
                self._client = stripe.StripeClient(self.api_key)
                logger.info("Stripe client initialized")
            return self._client

    def get_public_config(self) -> dict:
        return {"publishableKey": self.public_key}

    async def create_customer(
        self, email: str, name: Optional[str] = None, metadata: Optional[dict] = None
    ):
        """Create a Stripe customer"""
        client = self.get_client()
        try:
            return await client.customers.create_async(
                params={"email": email, "name": name or "", "metadata": metadata or {}}
            )
        except stripe.StripeError as e:
            logger.error(f"Failed to create Stripe customer for {email}: {e}")
            raise

    async def create_subscription(
        self,
        customer_id: str,
        price_id: str,
        payment_method_id: Optional[str] = None,
        trial_days: Optional[int] = None,
        metadata: Optional[dict] = None,
    ):
        """Create a Stripe subscription for one price"""
        client = self.get_client()
        params = {
            "customer": customer_id,
            "items": [{"price": price_id}],
            "metadata": metadata or {},
        }
        if payment_method_id:
            params["default_payment_method"] = payment_method_id
        if trial_days:
            params["trial_period_days"] = trial_days

        try:
            return await client.subscriptions.create_async(params=params)
        except stripe.StripeError as e:
            logger.error(f"Failed to create Stripe subscription for {customer_id}: {e}")
            raise

    async def cancel_subscription(self, subscription_id: str, cancel_at_period_end: bool = True):
        """Cancel now, or flag the subscription to end with the current period"""
        client = self.get_client()
        try:
            if cancel_at_period_end:
                return await client.subscriptions.update_async(
                    subscription_id, params={"cancel_at_period_end": True}
                )
            return await client.subscriptions.cancel_async(subscription_id)
        except stripe.StripeError as e:
            logger.error(f"Failed to cancel Stripe subscription {subscription_id}: {e}")
            raise

    async def create_payout(
        self,
        amount: float,
        currency: str = "eur",
        method: str = "standard",
        metadata: Optional[dict] = None,
    ):
        """Create a payout; `amount` is in major units"""
        client = self.get_client()
        try:
            return await client.payouts.create_async(
                params={
                    "amount": to_minor_units(amount),
                    "currency": currency,
                    "method": method,
                    "metadata": metadata or {},
                }
            )
        except stripe.StripeError as e:
            logger.error(f"Failed to create Stripe payout of {amount} {currency}: {e}")
            raise


# Singleton instance
stripe_service = StripeService()
