import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    DateTime,
    Float,
    ForeignKey,
    String,
    Text,
)
from sqlalchemy.orm import relationship

from .database import Base


def generate_id() -> str:
    """Generate an opaque string identifier"""
    return str(uuid.uuid4())


def utcnow() -> datetime:
    """Naive UTC timestamp (SQLite drops tzinfo anyway)"""
    return datetime.now(timezone.utc).replace(tzinfo=None)


class UserRole(str, enum.Enum):
    USER = "USER"
    ESCORT = "ESCORT"
    ADVERTISER = "ADVERTISER"
    ADMIN = "ADMIN"


class SubscriptionType(str, enum.Enum):
    BASIC = "BASIC"
    PREMIUM = "PREMIUM"
    VIP = "VIP"


class TransactionType(str, enum.Enum):
    PAYMENT = "PAYMENT"
    WITHDRAWAL = "WITHDRAWAL"
    COMMISSION = "COMMISSION"
    REFUND = "REFUND"
    BONUS = "BONUS"
    SUBSCRIPTION = "SUBSCRIPTION"


class PaymentStatus(str, enum.Enum):
    PENDING = "PENDING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"


class PayoutStatus(str, enum.Enum):
    PENDING = "PENDING"
    PROCESSING = "PROCESSING"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class CommissionStatus(str, enum.Enum):
    CALCULATED = "CALCULATED"
    PAID = "PAID"
    CANCELLED = "CANCELLED"


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=generate_id)
    email = Column(String(255), unique=True, index=True, nullable=False)
    name = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    role = Column(String(20), default=UserRole.USER.value, nullable=False)
    verified = Column(Boolean, default=False, nullable=False)
    verification_level = Column(Float, default=0, nullable=False)
    stripe_customer_id = Column(String(255), nullable=True)  # set on first paid subscription
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    wallet = relationship("DigitalWallet", back_populates="user", uselist=False)
    subscription = relationship("Subscription", back_populates="user", uselist=False)


class DigitalWallet(Base):
    __tablename__ = "digital_wallets"

    id = Column(String(36), primary_key=True, default=generate_id)
    user_id = Column(String(36), ForeignKey("users.id"), unique=True, index=True, nullable=False)
    balance = Column(Float, default=0, nullable=False)
    total_earnings = Column(Float, default=0, nullable=False)
    available_earnings = Column(Float, default=0, nullable=False)
    pending_earnings = Column(Float, default=0, nullable=False)
    total_withdrawn = Column(Float, default=0, nullable=False)
    minimum_withdrawal = Column(Float, default=50, nullable=False)
    bank_account_name = Column(String(255), nullable=True)
    bank_account_number = Column(String(255), nullable=True)
    bank_routing_number = Column(String(255), nullable=True)
    bank_swift_code = Column(String(50), nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    is_verified = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    user = relationship("User", back_populates="wallet")


class Transaction(Base):
    __tablename__ = "transactions"

    id = Column(String(36), primary_key=True, default=generate_id)
    user_id = Column(String(36), ForeignKey("users.id"), index=True, nullable=False)
    type = Column(String(20), nullable=False)  # TransactionType
    amount = Column(Float, nullable=False)  # negative for money leaving the wallet
    currency = Column(String(3), default="EUR", nullable=False)
    status = Column(String(20), default=PaymentStatus.PENDING.value, nullable=False)
    description = Column(Text, nullable=True)
    reference = Column(String(255), nullable=True)
    platform_fee = Column(Float, nullable=True)
    net_amount = Column(Float, nullable=True)
    # "metadata" is reserved on declarative classes
    extra = Column("metadata", JSON, nullable=True)
    created_at = Column(DateTime, default=utcnow, index=True, nullable=False)
    completed_at = Column(DateTime, nullable=True)

    user = relationship("User")


class Payout(Base):
    __tablename__ = "payouts"

    id = Column(String(36), primary_key=True, default=generate_id)
    user_id = Column(String(36), ForeignKey("users.id"), index=True, nullable=False)
    amount = Column(Float, nullable=False)
    fee = Column(Float, default=0, nullable=False)
    net_amount = Column(Float, nullable=False)
    currency = Column(String(3), default="EUR", nullable=False)
    method = Column(String(50), nullable=False)  # bank_transfer, paypal, crypto
    status = Column(String(20), default=PayoutStatus.PENDING.value, nullable=False)
    stripe_payout_id = Column(String(255), nullable=True)
    extra = Column("metadata", JSON, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    processed_at = Column(DateTime, nullable=True)

    user = relationship("User")


class Commission(Base):
    __tablename__ = "commissions"

    id = Column(String(36), primary_key=True, default=generate_id)
    recipient_id = Column(String(36), ForeignKey("users.id"), index=True, nullable=False)
    payer_id = Column(String(36), ForeignKey("users.id"), nullable=True)
    booking_id = Column(String(36), nullable=True)
    subscription_id = Column(String(36), nullable=True)
    amount = Column(Float, nullable=False)
    rate = Column(Float, nullable=True)
    status = Column(String(20), default=CommissionStatus.CALCULATED.value, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    paid_at = Column(DateTime, nullable=True)

    recipient = relationship("User", foreign_keys=[recipient_id])
    payer = relationship("User", foreign_keys=[payer_id])


class Subscription(Base):
    __tablename__ = "subscriptions"

    id = Column(String(36), primary_key=True, default=generate_id)
    user_id = Column(String(36), ForeignKey("users.id"), unique=True, index=True, nullable=False)
    type = Column(String(20), default=SubscriptionType.BASIC.value, nullable=False)
    price = Column(Float, default=0, nullable=False)
    currency = Column(String(3), default="EUR", nullable=False)
    billing_cycle = Column(String(20), default="monthly", nullable=False)  # monthly, yearly
    is_active = Column(Boolean, default=True, nullable=False)
    start_date = Column(DateTime, default=utcnow, nullable=False)
    end_date = Column(DateTime, nullable=True)
    cancel_at = Column(DateTime, nullable=True)
    canceled_at = Column(DateTime, nullable=True)
    features = Column(JSON, nullable=True)
    limits = Column(JSON, nullable=True)
    stripe_id = Column(String(255), nullable=True)
    stripe_status = Column(String(50), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    user = relationship("User", back_populates="subscription")
    events = relationship(
        "SubscriptionEvent",
        back_populates="subscription",
        order_by="desc(SubscriptionEvent.created_at)",
    )


class SubscriptionEvent(Base):
    __tablename__ = "subscription_events"

    id = Column(String(36), primary_key=True, default=generate_id)
    subscription_id = Column(String(36), ForeignKey("subscriptions.id"), index=True, nullable=False)
    type = Column(String(50), nullable=False)  # created, updated, canceled, payment_succeeded ...
    current_data = Column(JSON, nullable=True)
    stripe_event_id = Column(String(255), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    subscription = relationship("Subscription", back_populates="events")
