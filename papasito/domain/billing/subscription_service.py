"""Subscription service - Business logic for subscription management"""

import copy
import logging
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy.orm import Session

from ...models import Subscription, SubscriptionEvent, SubscriptionType, User, utcnow
from ...shared.errors import ServiceError, SubscriptionError
from .repository import BillingRepository
from .stripe_service import StripeService, stripe_service

logger = logging.getLogger(__name__)

UNLIMITED = -1
DEFAULT_COMMISSION_RATE = 0.15

# Stripe statuses that keep a subscription usable
ACTIVE_STRIPE_STATUSES = ("active", "trialing")

# Stripe event type -> subscription event log type
SUBSCRIPTION_WEBHOOK_EVENTS = {
    "customer.subscription.created": "created",
    "customer.subscription.updated": "updated",
    "customer.subscription.deleted": "deleted",
    "invoice.payment_succeeded": "payment_succeeded",
    "invoice.payment_failed": "payment_failed",
}

# Usage counter -> (plan section, quota key)
USAGE_QUOTAS = {
    "messagesSent": ("features", "messagesSent"),
    "messagesDaily": ("limits", "dailyMessages"),
    "bookingsThisMonth": ("limits", "monthlyBookings"),
    "profileUpdates": ("limits", "profileUpdates"),
}

# Plan catalogue, in display order
SUBSCRIPTION_PLANS = {
    SubscriptionType.BASIC.value: {
        "name": "Basic",
        "price": 0,
        "features": {
            "profileViews": 100,
            "messagesSent": 50,
            "photosUpload": 10,
            "videosUpload": 0,
            "featuredListing": False,
            "prioritySupport": False,
            "analyticsAccess": False,
            "customBranding": False,
            "apiAccess": False,
            "commissionRate": 0.30,
        },
        "limits": {
            "dailyMessages": 10,
            "monthlyBookings": 5,
            "profileUpdates": 2,
        },
    },
    SubscriptionType.PREMIUM.value: {
        "name": "Premium",
        "price": 29.99,
        "features": {
            "profileViews": 1000,
            "messagesSent": 500,
            "photosUpload": 50,
            "videosUpload": 5,
            "featuredListing": True,
            "prioritySupport": True,
            "analyticsAccess": True,
            "customBranding": False,
            "apiAccess": False,
            "commissionRate": 0.25,
        },
        "limits": {
            "dailyMessages": 50,
            "monthlyBookings": 20,
            "profileUpdates": 10,
        },
    },
    SubscriptionType.VIP.value: {
        "name": "VIP",
        "price": 99.99,
        "features": {
            "profileViews": UNLIMITED,
            "messagesSent": UNLIMITED,
            "photosUpload": UNLIMITED,
            "videosUpload": UNLIMITED,
            "featuredListing": True,
            "prioritySupport": True,
            "analyticsAccess": True,
            "customBranding": True,
            "apiAccess": True,
            "commissionRate": 0.20,
        },
        "limits": {
            "dailyMessages": UNLIMITED,
            "monthlyBookings": UNLIMITED,
            "profileUpdates": UNLIMITED,
        },
    },
}


def _iso(value) -> Optional[str]:
    return value.isoformat() if value else None


def _from_timestamp(value) -> Optional[datetime]:
    """Stripe epoch seconds as a naive UTC datetime"""
    if not value:
        return None
    return datetime.fromtimestamp(value, tz=timezone.utc).replace(tzinfo=None)


def serialize_event(event: SubscriptionEvent) -> dict:
    return {
        "id": event.id,
        "subscriptionId": event.subscription_id,
        "type": event.type,
        "currentData": event.current_data,
        "stripeEventId": event.stripe_event_id,
        "createdAt": _iso(event.created_at),
    }


def serialize_subscription(
    subscription: Subscription,
    user: Optional[User] = None,
    events: Optional[list] = None,
) -> dict:
    data = {
        "id": subscription.id,
        "userId": subscription.user_id,
        "type": subscription.type,
        "price": subscription.price,
        "currency": subscription.currency,
        "billingCycle": subscription.billing_cycle,
        "isActive": subscription.is_active,
        "startDate": _iso(subscription.start_date),
        "endDate": _iso(subscription.end_date),
        "cancelAt": _iso(subscription.cancel_at),
        "canceledAt": _iso(subscription.canceled_at),
        "features": subscription.features,
        "limits": subscription.limits,
        "stripeId": subscription.stripe_id,
        "stripeStatus": subscription.stripe_status,
        "createdAt": _iso(subscription.created_at),
        "updatedAt": _iso(subscription.updated_at),
    }
    if user is not None:
        data["user"] = {"id": user.id, "name": user.name, "email": user.email, "role": user.role}
    if events is not None:
        data["events"] = [serialize_event(event) for event in events]
    return data


class SubscriptionService:
    """Service for subscription management"""

    def __init__(self, db: Session, stripe: Optional[StripeService] = None):
        self.db = db
        self.repo = BillingRepository()
        self.stripe = stripe or stripe_service

    def get_plans(self) -> dict:
        """Plan catalogue keyed by plan type"""
        return copy.deepcopy(SUBSCRIPTION_PLANS)

    def get_plan(self, plan_type: str) -> dict:
        plan = SUBSCRIPTION_PLANS.get(plan_type)
        if plan is None:
            raise SubscriptionError(f"Unknown plan: {plan_type}")
        return copy.deepcopy(plan)

    def _plan_fields(self, plan_type: str) -> dict:
        plan = self.get_plan(plan_type)
        return {
            "type": plan_type,
            "price": plan["price"],
            "features": plan["features"],
            "limits": plan["limits"],
        }

    def _get_or_create_subscription(self, user_id: str) -> Subscription:
        subscription = self.repo.get_subscription(self.db, user_id)
        if subscription is None:
            # New users start on the free plan
            subscription = self.repo.upsert_subscription(
                self.db,
                user_id,
                currency="EUR",
                billing_cycle="monthly",
                is_active=True,
                start_date=utcnow(),
                **self._plan_fields(SubscriptionType.BASIC.value),
            )
            logger.info(f"🆕 Created BASIC subscription for user {user_id}")
        return subscription

    def get_user_subscription(self, user_id: str) -> dict:
        """Current subscription with its owner and 10 most recent events"""
        try:
            subscription = self._get_or_create_subscription(user_id)
            user = self.repo.get_user_by_id(self.db, user_id)
            events = self.repo.get_recent_events(self.db, subscription.id, limit=10)
            return serialize_subscription(subscription, user=user, events=events)
        except Exception as e:
            logger.error(f"[SubscriptionService] Error getting user subscription: {e}")
            raise SubscriptionError("Failed to get user subscription") from e

    async def create_subscription(
        self,
        user_id: str,
        plan_type: str,
        billing_cycle: str = "monthly",
        payment_method_id: Optional[str] = None,
        metadata: Optional[dict] = None,
        trial_days: Optional[int] = None,
    ) -> dict:
        """Subscribe a user to a plan; paid plans go through Stripe"""
        try:
            plan_fields = self._plan_fields(plan_type)

            if plan_type == SubscriptionType.BASIC.value:
                subscription = self.repo.upsert_subscription(
                    self.db,
                    user_id,
                    currency="EUR",
                    billing_cycle=billing_cycle,
                    is_active=True,
                    start_date=utcnow(),
                    stripe_id=None,
                    stripe_status=None,
                    **plan_fields,
                )
                self.repo.add_event(self.db, subscription.id, "created", {"type": plan_type})
                return serialize_subscription(subscription)

            user = self.repo.get_user_by_id(self.db, user_id)
            if not user:
                raise SubscriptionError("User not found")

            customer_id = user.stripe_customer_id
            if not customer_id:
                customer = await self.stripe.create_customer(
                    email=user.email, name=user.name, metadata={"userId": user.id}
                )
                customer_id = customer.id
                self.repo.set_stripe_customer(self.db, user, customer_id)
                logger.info(f"✅ Created Stripe customer {customer_id} for user {user_id}")

            stripe_subscription = await self.stripe.create_subscription(
                customer_id=customer_id,
                price_id=f"price_{plan_type.lower()}",
                payment_method_id=payment_method_id,
                trial_days=trial_days,
                metadata={**(metadata or {}), "userId": user_id, "subscriptionType": plan_type},
            )

            subscription = self.repo.upsert_subscription(
                self.db,
                user_id,
                currency="EUR",
                billing_cycle=billing_cycle,
                is_active=True,
                start_date=utcnow(),
                cancel_at=None,
                canceled_at=None,
                stripe_id=stripe_subscription.id,
                stripe_status=stripe_subscription.status,
                **plan_fields,
            )
            self.repo.add_event(
                self.db,
                subscription.id,
                "created",
                {"type": plan_type, "stripeStatus": stripe_subscription.status},
                stripe_event_id=stripe_subscription.id,
            )

            logger.info(f"✅ Subscribed user {user_id} to {plan_type} ({stripe_subscription.id})")
            return serialize_subscription(subscription)
        except ServiceError:
            raise
        except Exception as e:
            logger.error(f"[SubscriptionService] Error creating subscription: {e}")
            raise SubscriptionError("Failed to create subscription") from e

    async def cancel_subscription(self, user_id: str, cancel_at_period_end: bool = True) -> dict:
        try:
            subscription = self.repo.get_subscription(self.db, user_id)
            if not subscription:
                raise SubscriptionError("Subscription not found")

            if subscription.stripe_id:
                await self.stripe.cancel_subscription(subscription.stripe_id, cancel_at_period_end)

            if cancel_at_period_end:
                fields = {"cancel_at": subscription.end_date}
            else:
                fields = {"is_active": False, "canceled_at": utcnow()}
            subscription = self.repo.upsert_subscription(self.db, user_id, **fields)
            self.repo.add_event(
                self.db, subscription.id, "canceled", {"cancelAtPeriodEnd": cancel_at_period_end}
            )
            return serialize_subscription(subscription)
        except ServiceError:
            raise
        except Exception as e:
            logger.error(f"[SubscriptionService] Error canceling subscription: {e}")
            raise SubscriptionError("Failed to cancel subscription") from e

    def has_feature_access(self, user_id: str, feature: str) -> bool:
        """Boolean features must be True; counted features must be unlimited"""
        try:
            features = self._get_or_create_subscription(user_id).features or {}
            value = features.get(feature)
            return value is True or value == UNLIMITED
        except Exception as e:
            logger.error(f"[SubscriptionService] Error checking feature access: {e}")
            return False

    def check_usage_limit(self, user_id: str, limit_type: str, current_usage: int) -> bool:
        try:
            limits = self._get_or_create_subscription(user_id).limits or {}
            limit = limits.get(limit_type)
            if limit == UNLIMITED:
                return True
            if limit is None:
                return False
            return current_usage < limit
        except Exception as e:
            logger.error(f"[SubscriptionService] Error checking usage limit: {e}")
            return False

    def get_commission_rate(self, user_id: str) -> float:
        try:
            features = self._get_or_create_subscription(user_id).features or {}
            return features.get("commissionRate") or DEFAULT_COMMISSION_RATE
        except Exception as e:
            logger.error(f"[SubscriptionService] Error getting commission rate: {e}")
            return DEFAULT_COMMISSION_RATE

    def record_event(
        self,
        user_id: str,
        event_type: str,
        data: Optional[dict] = None,
        stripe_event_id: Optional[str] = None,
    ) -> dict:
        """Append an entry to the user's subscription event log"""
        subscription = self._get_or_create_subscription(user_id)
        event = self.repo.add_event(self.db, subscription.id, event_type, data, stripe_event_id)
        return serialize_event(event)

    def get_usage_stats(self, user_id: str, usage: Optional[dict] = None) -> dict:
        """
        Usage counters against the plan's quotas.

        `usage` carries the caller's counters (messagesSent, messagesDaily,
        bookingsThisMonth, profileUpdates); missing ones count as 0. A
        remaining value of -1 means the quota is unlimited.
        """
        try:
            subscription = self._get_or_create_subscription(user_id)
            plan = {"features": subscription.features or {}, "limits": subscription.limits or {}}
            counters = {key: int((usage or {}).get(key, 0)) for key in USAGE_QUOTAS}

            remaining = {}
            for key, (section, quota_key) in USAGE_QUOTAS.items():
                quota = plan[section].get(quota_key)
                if quota == UNLIMITED:
                    remaining[key] = UNLIMITED
                else:
                    remaining[key] = max(0, (quota or 0) - counters[key])

            return {
                "subscription": {
                    "type": subscription.type,
                    "isActive": subscription.is_active,
                    "features": plan["features"],
                    "limits": plan["limits"],
                },
                "usage": counters,
                "remaining": remaining,
            }
        except Exception as e:
            logger.error(f"[SubscriptionService] Error getting usage stats: {e}")
            raise SubscriptionError("Failed to get usage statistics") from e

    def process_subscription_webhook(
        self, event_type: str, data: dict, stripe_event_id: Optional[str] = None
    ) -> Optional[dict]:
        """
        Mirror a Stripe subscription or invoice event onto the local subscription.

        Subscription events update the Stripe status, activity flag and billing
        period. Every handled event is appended to the event log once per
        Stripe event id.
        """
        log_type = SUBSCRIPTION_WEBHOOK_EVENTS.get(event_type)
        if log_type is None:
            logger.info(f"[SubscriptionService] Unhandled event: {event_type}")
            return None

        is_invoice = event_type.startswith("invoice.")
        stripe_id = data.get("subscription") if is_invoice else data.get("id")
        try:
            subscription = (
                self.repo.get_subscription_by_stripe_id(self.db, stripe_id) if stripe_id else None
            )
            if subscription is None:
                logger.warning(f"⚠️ No subscription recorded for Stripe subscription {stripe_id}")
                return None

            if stripe_event_id and self.repo.has_stripe_event(
                self.db, subscription.id, stripe_event_id
            ):
                logger.info(f"🔄 Stripe event {stripe_event_id} already processed, skipping")
                return serialize_subscription(subscription)

            if event_type == "customer.subscription.deleted":
                subscription.stripe_status = "canceled"
                subscription.is_active = False
                subscription.canceled_at = utcnow()
            elif not is_invoice:
                status = data.get("status")
                subscription.stripe_status = status
                subscription.is_active = status in ACTIVE_STRIPE_STATUSES
                period_start = _from_timestamp(data.get("current_period_start"))
                period_end = _from_timestamp(data.get("current_period_end"))
                canceled_at = _from_timestamp(data.get("canceled_at"))
                if period_start:
                    subscription.start_date = period_start
                if period_end:
                    subscription.end_date = period_end
                if canceled_at:
                    subscription.canceled_at = canceled_at

            # Commits the status change together with the log entry
            self.repo.add_event(self.db, subscription.id, log_type, data, stripe_event_id)
            self.db.refresh(subscription)

            logger.info(f"✅ Subscription {subscription.id} {log_type} ({stripe_id})")
            return serialize_subscription(subscription)
        except Exception as e:
            self.db.rollback()
            logger.error(f"[SubscriptionService] Error processing webhook: {e}")
            raise SubscriptionError("Failed to process subscription webhook") from e
