"""Wallet service - Business logic for digital wallets, earnings and withdrawals"""

import calendar
import logging
from datetime import datetime, timedelta
from typing import Optional

from sqlalchemy.orm import Session

from ...models import (
    CommissionStatus,
    DigitalWallet,
    Payout,
    PaymentStatus,
    PayoutStatus,
    Transaction,
    TransactionType,
    utcnow,
)
from ...shared.errors import ServiceError, WalletError
from ..billing.stripe_service import StripeService, stripe_service
from .repository import WalletRepository

logger = logging.getLogger(__name__)

MINIMUM_WITHDRAWAL = 50.0  # EUR
WITHDRAWAL_FEE_RATE = 0.02
WITHDRAWAL_FEE_MIN = 0.25  # EUR
RECENT_TRANSACTIONS = 5
FORECAST_WINDOW_DAYS = 30

PAYOUT_FAILURE_EVENTS = ("payout.failed", "payout.canceled")
PAYOUT_WEBHOOK_EVENTS = ("payout.paid",) + PAYOUT_FAILURE_EVENTS


def shift_months(value: datetime, months: int) -> datetime:
    """Move a timestamp by whole calendar months, clamping the day to the target month"""
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def period_start(now: datetime, period: str) -> datetime:
    """Start of a stats window ending at `now`; unknown periods give an empty window"""
    if period == "week":
        return now - timedelta(days=7)
    if period == "month":
        return shift_months(now, -1)
    if period == "year":
        return shift_months(now, -12)
    return now


def withdrawal_fee(amount: float) -> float:
    return max(amount * WITHDRAWAL_FEE_RATE, WITHDRAWAL_FEE_MIN)


def _empty_wallet_fields() -> dict:
    return {
        "balance": 0,
        "total_earnings": 0,
        "available_earnings": 0,
        "pending_earnings": 0,
        "total_withdrawn": 0,
        "minimum_withdrawal": MINIMUM_WITHDRAWAL,
        "is_active": True,
        "is_verified": False,
    }


def _iso(value) -> Optional[str]:
    return value.isoformat() if value else None


def serialize_transaction(transaction: Transaction, with_user: bool = False) -> dict:
    data = {
        "id": transaction.id,
        "userId": transaction.user_id,
        "type": transaction.type,
        "amount": transaction.amount,
        "currency": transaction.currency,
        "status": transaction.status,
        "description": transaction.description,
        "reference": transaction.reference,
        "platformFee": transaction.platform_fee,
        "netAmount": transaction.net_amount,
        "metadata": transaction.extra,
        "createdAt": _iso(transaction.created_at),
        "completedAt": _iso(transaction.completed_at),
    }
    if with_user:
        user = transaction.user
        data["user"] = {"id": user.id, "name": user.name, "email": user.email} if user else None
    return data


def serialize_payout(payout: Payout) -> dict:
    user = payout.user
    return {
        "id": payout.id,
        "userId": payout.user_id,
        "amount": payout.amount,
        "fee": payout.fee,
        "netAmount": payout.net_amount,
        "currency": payout.currency,
        "paymentMethod": payout.method,
        "status": payout.status,
        "stripePayoutId": payout.stripe_payout_id,
        "createdAt": _iso(payout.created_at),
        "processedAt": _iso(payout.processed_at),
        "user": {"id": user.id, "name": user.name, "email": user.email} if user else None,
    }


def serialize_wallet(wallet: DigitalWallet) -> dict:
    return {
        "id": wallet.id,
        "userId": wallet.user_id,
        "balance": wallet.balance,
        "totalEarnings": wallet.total_earnings,
        "availableEarnings": wallet.available_earnings,
        "pendingEarnings": wallet.pending_earnings,
        "totalWithdrawn": wallet.total_withdrawn,
        "minimumWithdrawal": wallet.minimum_withdrawal,
        "isActive": wallet.is_active,
        "isVerified": wallet.is_verified,
    }


class WalletService:
    """Service for digital wallet operations"""

    def __init__(self, db: Session, stripe: Optional[StripeService] = None):
        self.db = db
        self.repo = WalletRepository()
        self.stripe = stripe or stripe_service

    # ------------------------------------------------------------------
    # Wallets
    # ------------------------------------------------------------------

    def create_wallet(
        self,
        user_id: str,
        bank_account_name: Optional[str] = None,
        bank_account_number: Optional[str] = None,
        bank_routing_number: Optional[str] = None,
        bank_swift_code: Optional[str] = None,
    ) -> DigitalWallet:
        """Create a wallet, or update the bank details of an existing one"""
        try:
            bank_fields = {
                "bank_account_name": bank_account_name,
                "bank_account_number": bank_account_number,
                "bank_routing_number": bank_routing_number,
                "bank_swift_code": bank_swift_code,
                "is_active": True,
            }
            if self.repo.get_wallet(self.db, user_id) is not None:
                return self.repo.upsert_wallet(self.db, user_id, **bank_fields)

            return self.repo.upsert_wallet(
                self.db, user_id, **{**_empty_wallet_fields(), **bank_fields}
            )
        except Exception as e:
            logger.error(f"[WalletService] Error creating wallet: {e}")
            raise WalletError("Failed to create wallet") from e

    def get_wallet(self, user_id: str) -> DigitalWallet:
        """Fetch the user's wallet, creating an empty one on first access"""
        try:
            wallet = self.repo.get_wallet(self.db, user_id)
            if wallet is None:
                wallet = self.create_wallet(user_id)
                logger.info(f"🆕 Created wallet for user {user_id}")
            return wallet
        except ServiceError:
            raise
        except Exception as e:
            logger.error(f"[WalletService] Error getting wallet: {e}")
            raise WalletError("Failed to get wallet") from e

    def verify_wallet(self, user_id: str, verified: bool, admin_notes: Optional[str] = None) -> dict:
        """Admin verification; leaves an audit transaction behind"""
        try:
            wallet = self.repo.get_wallet(self.db, user_id)
            if wallet is None:
                raise WalletError("Wallet not found")

            wallet.is_verified = verified
            self.repo.add_transaction(
                self.db,
                user_id,
                type=TransactionType.BONUS.value,
                amount=0,
                currency="EUR",
                status=PaymentStatus.COMPLETED.value,
                description="Wallet verified" if verified else "Wallet verification revoked",
                reference="admin_verification",
                extra={
                    "adminNotes": admin_notes,
                    "verificationStatus": "verified" if verified else "revoked",
                },
                completed_at=utcnow(),
            )
            self.db.commit()
            self.db.refresh(wallet)
            return serialize_wallet(wallet)
        except ServiceError:
            raise
        except Exception as e:
            self.db.rollback()
            logger.error(f"[WalletService] Error verifying wallet: {e}")
            raise WalletError("Failed to verify wallet") from e

    # ------------------------------------------------------------------
    # Read models
    # ------------------------------------------------------------------

    def get_balance_summary(self, user_id: str) -> dict:
        try:
            wallet = self.get_wallet(user_id)
            pending_commissions = self.repo.commissions_with_status(
                self.db, user_id, CommissionStatus.CALCULATED.value
            )
            recent = self.repo.list_transactions(self.db, user_id, limit=RECENT_TRANSACTIONS)

            return {
                "currentBalance": wallet.balance,
                "availableEarnings": wallet.available_earnings,
                "pendingEarnings": wallet.pending_earnings,
                "totalEarnings": wallet.total_earnings,
                "totalWithdrawn": wallet.total_withdrawn,
                "pendingCommissions": sum(c.amount for c in pending_commissions),
                "minimumWithdrawal": wallet.minimum_withdrawal,
                "isVerified": wallet.is_verified,
                "isActive": wallet.is_active,
                "recentTransactions": [serialize_transaction(t) for t in recent],
            }
        except Exception as e:
            logger.error(f"[WalletService] Error getting balance summary: {e}")
            raise WalletError("Failed to get balance summary") from e

    def get_wallet_stats(self, user_id: str, period: str = "month") -> dict:
        """Aggregate wallet activity over the last week, month or year"""
        try:
            wallet = self.get_wallet(user_id)

            now = utcnow()
            transactions = self.repo.transactions_between(
                self.db, user_id, period_start(now, period), now
            )

            earnings = sum(
                t.amount
                for t in transactions
                if t.type == TransactionType.PAYMENT.value and t.amount > 0
            )
            withdrawals = sum(
                abs(t.amount)
                for t in transactions
                if t.type == TransactionType.WITHDRAWAL.value and t.amount < 0
            )
            commissions = sum(
                t.amount for t in transactions if t.type == TransactionType.COMMISSION.value
            )
            fees = sum(t.platform_fee or 0 for t in transactions)

            pending_payouts = self.repo.payouts_with_status(
                self.db, user_id, PayoutStatus.PENDING.value
            )

            return {
                "wallet": {
                    "balance": wallet.balance,
                    "totalEarnings": wallet.total_earnings,
                    "availableEarnings": wallet.available_earnings,
                    "pendingEarnings": wallet.pending_earnings,
                    "totalWithdrawn": wallet.total_withdrawn,
                },
                "period": {
                    "earnings": earnings,
                    "withdrawals": withdrawals,
                    "commissions": commissions,
                    "fees": fees,
                    "netEarnings": earnings - fees,
                },
                "pending": {
                    "payouts": len(pending_payouts),
                    "amount": sum(p.amount for p in pending_payouts),
                },
                "transactions": len(transactions),
            }
        except Exception as e:
            logger.error(f"[WalletService] Error getting wallet stats: {e}")
            raise WalletError("Failed to get wallet statistics") from e

    def get_transactions(self, user_id: str, limit: int = 50, offset: int = 0) -> dict:
        """Newest-first page of the user's transactions"""
        try:
            transactions = self.repo.list_transactions(
                self.db, user_id, limit=limit, offset=offset, with_user=True
            )
            total = self.repo.count_transactions(self.db, user_id)
            return {
                "transactions": [serialize_transaction(t, with_user=True) for t in transactions],
                "pagination": {
                    "total": total,
                    "limit": limit,
                    "offset": offset,
                    "hasMore": offset + limit < total,
                },
            }
        except Exception as e:
            logger.error(f"[WalletService] Error getting transactions: {e}")
            raise WalletError("Failed to get transactions") from e

    def get_payouts(self, user_id: str, limit: int = 20, offset: int = 0) -> dict:
        try:
            payouts = self.repo.list_payouts(self.db, user_id, limit=limit, offset=offset)
            total = self.repo.count_payouts(self.db, user_id)
            return {
                "payouts": [serialize_payout(p) for p in payouts],
                "pagination": {
                    "total": total,
                    "limit": limit,
                    "offset": offset,
                    "hasMore": offset + limit < total,
                },
            }
        except Exception as e:
            logger.error(f"[WalletService] Error getting payouts: {e}")
            raise WalletError("Failed to get payouts") from e

    # ------------------------------------------------------------------
    # Money movement
    # ------------------------------------------------------------------

    def _locked_wallet(self, user_id: str) -> DigitalWallet:
        """The user's wallet row, locked for this transaction; created (uncommitted) if missing"""
        wallet = self.repo.get_wallet(self.db, user_id, for_update=True)
        if wallet is None:
            wallet = self.repo.add_wallet(self.db, user_id, **_empty_wallet_fields())
            logger.info(f"🆕 Created wallet for user {user_id}")
        return wallet

    def _credit_earnings(
        self, user_id: str, amount: float, source: str, metadata: Optional[dict]
    ) -> DigitalWallet:
        """Credit the wallet and stage a completed PAYMENT transaction; the caller commits"""
        wallet = self._locked_wallet(user_id)
        wallet.balance += amount
        wallet.total_earnings += amount
        wallet.available_earnings += amount

        self.repo.add_transaction(
            self.db,
            user_id,
            type=TransactionType.PAYMENT.value,
            amount=amount,
            currency="EUR",
            status=PaymentStatus.COMPLETED.value,
            description=f"Earnings from {source}",
            reference=source,
            extra=metadata,
            completed_at=utcnow(),
        )
        return wallet

    def add_earnings(
        self, user_id: str, amount: float, source: str, metadata: Optional[dict] = None
    ) -> dict:
        """Credit the wallet and record a completed PAYMENT transaction"""
        try:
            wallet = self._credit_earnings(user_id, amount, source, metadata)
            self.db.commit()
            self.db.refresh(wallet)
            return serialize_wallet(wallet)
        except Exception as e:
            self.db.rollback()
            logger.error(f"[WalletService] Error adding earnings: {e}")
            raise WalletError("Failed to add earnings") from e

    async def request_withdrawal(
        self,
        user_id: str,
        amount: float,
        payment_method: str,
        bank_details: Optional[dict] = None,
    ) -> dict:
        """
        Move `amount` out of the wallet.

        The fee is 2% with a 0.25 EUR floor. The amount is reserved on the
        wallet row before Stripe is asked for the payout, and given back if
        Stripe refuses. The pending payout is then recorded locally together
        with a pending WITHDRAWAL transaction of `-amount`.
        """
        try:
            wallet = self.get_wallet(user_id)

            if not wallet.is_active:
                raise WalletError("Wallet is not active")
            if not wallet.is_verified:
                raise WalletError("Wallet is not verified. Please complete verification first.")
            if amount < MINIMUM_WITHDRAWAL:
                raise WalletError(f"Minimum withdrawal amount is {MINIMUM_WITHDRAWAL:g}€")
            if amount > wallet.available_earnings:
                raise WalletError("Insufficient balance")

            if not self.repo.reserve_withdrawal(self.db, user_id, amount):
                raise WalletError("Insufficient balance")
            self.db.commit()

            fee = withdrawal_fee(amount)
            net_amount = amount - fee

            try:
                stripe_payout = await self.stripe.create_payout(
                    amount=amount,
                    currency="eur",
                    metadata={
                        "userId": user_id,
                        "paymentMethod": payment_method,
                        "fee": str(fee),
                        "netAmount": str(net_amount),
                    },
                )
            except Exception:
                self.repo.release_withdrawal(self.db, user_id, amount)
                self.db.commit()
                raise

            payout = self.repo.add_payout(
                self.db,
                user_id,
                amount=amount,
                fee=fee,
                net_amount=net_amount,
                currency="EUR",
                method=payment_method,
                status=PayoutStatus.PENDING.value,
                stripe_payout_id=stripe_payout.id,
                extra={"bankDetails": bank_details} if bank_details else None,
            )

            self.repo.add_transaction(
                self.db,
                user_id,
                type=TransactionType.WITHDRAWAL.value,
                amount=-amount,
                currency="EUR",
                status=PaymentStatus.PENDING.value,
                description=f"Withdrawal via {payment_method}",
                reference=payout.id,
                platform_fee=fee,
                net_amount=-net_amount,
                extra={"payoutId": payout.id, "paymentMethod": payment_method},
            )
            self.db.commit()

            logger.info(f"💸 Withdrawal of {amount}€ requested by user {user_id} ({payout.id})")
            return {
                "payoutId": payout.id,
                "amount": amount,
                "fee": fee,
                "netAmount": net_amount,
                "status": payout.status,
            }
        except ServiceError:
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            logger.error(f"[WalletService] Error requesting withdrawal: {e}")
            raise WalletError("Failed to request withdrawal") from e

    def process_commission_payment(self, commission_id: str) -> dict:
        """Pay a CALCULATED commission into the recipient's wallet, in one transaction"""
        try:
            commission = self.repo.get_commission(self.db, commission_id, for_update=True)
            if commission is None:
                raise WalletError("Commission not found")
            if commission.status != CommissionStatus.CALCULATED.value:
                raise WalletError("Commission is not ready for payment")

            self._credit_earnings(
                commission.recipient_id,
                commission.amount,
                "commission",
                {
                    "commissionId": commission.id,
                    "bookingId": commission.booking_id,
                    "subscriptionId": commission.subscription_id,
                },
            )
            commission.status = CommissionStatus.PAID.value
            commission.paid_at = utcnow()
            self.db.commit()

            return {
                "id": commission.id,
                "recipientId": commission.recipient_id,
                "amount": commission.amount,
                "status": commission.status,
                "paidAt": _iso(commission.paid_at),
            }
        except ServiceError:
            self.db.rollback()
            raise
        except Exception as e:
            self.db.rollback()
            logger.error(f"[WalletService] Error processing commission payment: {e}")
            raise WalletError("Failed to process commission payment") from e

    def process_payout_webhook(self, event_type: str, stripe_payout: dict) -> Optional[dict]:
        """
        Settle a pending payout from a Stripe `payout.*` event.

        `payout.paid` completes the payout and its WITHDRAWAL transaction.
        `payout.failed` and `payout.canceled` fail both and give the reserved
        amount back to the wallet. Payouts that are already settled are left
        alone, so redelivered events change nothing.
        """
        stripe_payout_id = stripe_payout.get("id")
        try:
            payout = self.repo.get_payout_by_stripe_id(self.db, stripe_payout_id)
            if payout is None:
                logger.warning(f"⚠️ No payout recorded for Stripe payout {stripe_payout_id}")
                return None

            if payout.status not in (PayoutStatus.PENDING.value, PayoutStatus.PROCESSING.value):
                logger.info(f"🔄 Payout {payout.id} already settled ({payout.status}), skipping")
                self.db.rollback()
                return serialize_payout(payout)

            now = utcnow()
            transaction = self.repo.get_withdrawal_transaction(self.db, payout.id)

            if event_type == "payout.paid":
                payout.status = PayoutStatus.COMPLETED.value
                if transaction is not None:
                    transaction.status = PaymentStatus.COMPLETED.value
                    transaction.completed_at = now
            elif event_type in PAYOUT_FAILURE_EVENTS:
                payout.status = PayoutStatus.FAILED.value
                if stripe_payout.get("failure_message"):
                    payout.extra = {
                        **(payout.extra or {}),
                        "failureMessage": stripe_payout["failure_message"],
                    }
                if transaction is not None:
                    transaction.status = PaymentStatus.FAILED.value
                self.repo.release_withdrawal(self.db, payout.user_id, payout.amount)
            else:
                logger.info(f"[WalletService] Ignoring payout event {event_type}")
                self.db.rollback()
                return serialize_payout(payout)

            payout.processed_at = now
            self.db.commit()
            self.db.refresh(payout)

            logger.info(f"✅ Payout {payout.id} settled as {payout.status}")
            return serialize_payout(payout)
        except Exception as e:
            self.db.rollback()
            logger.error(f"[WalletService] Error processing payout webhook: {e}")
            raise WalletError("Failed to process payout webhook") from e

    def get_earnings_forecast(self, user_id: str) -> dict:
        """Project earnings from the daily average of the last 30 days"""
        try:
            wallet = self.get_wallet(user_id)
            earnings = self.repo.earnings_since(
                self.db, user_id, utcnow() - timedelta(days=FORECAST_WINDOW_DAYS)
            )

            daily_average = sum(t.amount for t in earnings) / FORECAST_WINDOW_DAYS
            pending = wallet.pending_earnings
            return {
                "dailyAverage": daily_average,
                "weeklyForecast": daily_average * 7,
                "monthlyForecast": daily_average * 30,
                "pendingEarnings": pending,
                "totalForecast": daily_average * 30 + pending,
            }
        except ServiceError:
            raise
        except Exception as e:
            logger.error(f"[WalletService] Error getting earnings forecast: {e}")
            raise WalletError("Failed to get earnings forecast") from e
