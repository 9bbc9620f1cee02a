"""Billing repository - Database operations for subscriptions"""

from typing import Optional

from sqlalchemy.orm import Session

from ...models import Subscription, SubscriptionEvent, User


class BillingRepository:
    """Repository for subscription database operations"""

    @staticmethod
    def get_user_by_id(db: Session, user_id: str) -> Optional[User]:
        return db.query(User).filter(User.id == user_id).first()

    @staticmethod
    def get_subscription(db: Session, user_id: str) -> Optional[Subscription]:
        return db.query(Subscription).filter(Subscription.user_id == user_id).first()

    @staticmethod
    def get_recent_events(db: Session, subscription_id: str, limit: int = 10) -> list:
        return (
            db.query(SubscriptionEvent)
            .filter(SubscriptionEvent.subscription_id == subscription_id)
            .order_by(SubscriptionEvent.created_at.desc())
            .limit(limit)
            .all()
        )

    @staticmethod
    def upsert_subscription(db: Session, user_id: str, **fields) -> Subscription:
        """Create the user's subscription or overwrite the given fields"""
        subscription = db.query(Subscription).filter(Subscription.user_id == user_id).first()
        if subscription is None:
            subscription = Subscription(user_id=user_id, **fields)
            db.add(subscription)
        else:
            for key, value in fields.items():
                setattr(subscription, key, value)

        db.commit()
        db.refresh(subscription)
        return subscription

    @staticmethod
    def add_event(
        db: Session,
        subscription_id: str,
        event_type: str,
        current_data: Optional[dict] = None,
        stripe_event_id: Optional[str] = None,
    ) -> SubscriptionEvent:
        event = SubscriptionEvent(
            subscription_id=subscription_id,
            type=event_type,
            current_data=current_data,
            stripe_event_id=stripe_event_id,
        )
        db.add(event)
        db.commit()
        db.refresh(event)
        return event

    @staticmethod
    def set_stripe_customer(db: Session, user: User, customer_id: str) -> User:
        user.stripe_customer_id = customer_id
        db.commit()
        db.refresh(user)
        return user

    @staticmethod
    def get_subscription_by_stripe_id(db: Session, stripe_id: str) -> Optional[Subscription]:
        return db.query(Subscription).filter(Subscription.stripe_id == stripe_id).first()

    @staticmethod
    def has_stripe_event(db: Session, subscription_id: str, stripe_event_id: str) -> bool:
        return (
            db.query(SubscriptionEvent.id)
            .filter(
                SubscriptionEvent.subscription_id == subscription_id,
                SubscriptionEvent.stripe_event_id == stripe_event_id,
            )
            .first()
            is not None
        )
