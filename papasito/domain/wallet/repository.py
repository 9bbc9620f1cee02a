"""Wallet repository - Database operations for wallets, transactions and payouts"""

from datetime import datetime
from typing import Optional

from sqlalchemy import func
from sqlalchemy.orm import Session, joinedload

from ...models import Commission, DigitalWallet, Payout, Transaction, TransactionType


class WalletRepository:
    """Repository for wallet database operations"""

    @staticmethod
    def get_wallet(
        db: Session, user_id: str, for_update: bool = False
    ) -> Optional[DigitalWallet]:
        query = db.query(DigitalWallet).filter(DigitalWallet.user_id == user_id)
        if for_update:
            query = query.with_for_update().populate_existing()
        return query.first()

    @staticmethod
    def add_wallet(db: Session, user_id: str, **fields) -> DigitalWallet:
        wallet = DigitalWallet(user_id=user_id, **fields)
        db.add(wallet)
        db.flush()
        return wallet

    @staticmethod
    def upsert_wallet(db: Session, user_id: str, **fields) -> DigitalWallet:
        """Create the user's wallet or overwrite the given fields"""
        wallet = db.query(DigitalWallet).filter(DigitalWallet.user_id == user_id).first()
        if wallet is None:
            wallet = DigitalWallet(user_id=user_id, **fields)
            db.add(wallet)
        else:
            for key, value in fields.items():
                setattr(wallet, key, value)

        db.commit()
        db.refresh(wallet)
        return wallet

    @staticmethod
    def reserve_withdrawal(db: Session, user_id: str, amount: float) -> bool:
        """
        Move `amount` from available earnings to total withdrawn in one UPDATE.

        The row only changes while it still holds enough available earnings, so
        concurrent withdrawals cannot both spend the same funds. Returns False
        when nothing was reserved.
        """
        updated = (
            db.query(DigitalWallet)
            .filter(
                DigitalWallet.user_id == user_id,
                DigitalWallet.available_earnings >= amount,
            )
            .update(
                {
                    DigitalWallet.available_earnings: DigitalWallet.available_earnings - amount,
                    DigitalWallet.total_withdrawn: DigitalWallet.total_withdrawn + amount,
                },
                synchronize_session=False,
            )
        )
        return updated == 1

    @staticmethod
    def release_withdrawal(db: Session, user_id: str, amount: float) -> None:
        """Give back funds taken by `reserve_withdrawal`"""
        db.query(DigitalWallet).filter(DigitalWallet.user_id == user_id).update(
            {
                DigitalWallet.available_earnings: DigitalWallet.available_earnings + amount,
                DigitalWallet.total_withdrawn: DigitalWallet.total_withdrawn - amount,
            },
            synchronize_session=False,
        )

    @staticmethod
    def list_transactions(
        db: Session, user_id: str, limit: int, offset: int = 0, with_user: bool = False
    ) -> list:
        query = db.query(Transaction).filter(Transaction.user_id == user_id)
        if with_user:
            query = query.options(joinedload(Transaction.user))
        return (
            query.order_by(Transaction.created_at.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )

    @staticmethod
    def count_transactions(db: Session, user_id: str) -> int:
        return db.query(func.count(Transaction.id)).filter(Transaction.user_id == user_id).scalar()

    @staticmethod
    def transactions_between(db: Session, user_id: str, start: datetime, end: datetime) -> list:
        return (
            db.query(Transaction)
            .filter(
                Transaction.user_id == user_id,
                Transaction.created_at >= start,
                Transaction.created_at <= end,
            )
            .order_by(Transaction.created_at.desc())
            .all()
        )

    @staticmethod
    def add_transaction(db: Session, user_id: str, **fields) -> Transaction:
        transaction = Transaction(user_id=user_id, **fields)
        db.add(transaction)
        return transaction

    @staticmethod
    def payouts_with_status(db: Session, user_id: str, status: str) -> list:
        return db.query(Payout).filter(Payout.user_id == user_id, Payout.status == status).all()

    @staticmethod
    def list_payouts(db: Session, user_id: str, limit: int, offset: int = 0) -> list:
        return (
            db.query(Payout)
            .options(joinedload(Payout.user))
            .filter(Payout.user_id == user_id)
            .order_by(Payout.created_at.desc())
            .offset(offset)
            .limit(limit)
            .all()
        )

    @staticmethod
    def count_payouts(db: Session, user_id: str) -> int:
        return db.query(func.count(Payout.id)).filter(Payout.user_id == user_id).scalar()

    @staticmethod
    def add_payout(db: Session, user_id: str, **fields) -> Payout:
        payout = Payout(user_id=user_id, **fields)
        db.add(payout)
        db.flush()
        return payout

    @staticmethod
    def earnings_since(db: Session, user_id: str, start: datetime) -> list:
        return (
            db.query(Transaction)
            .filter(
                Transaction.user_id == user_id,
                Transaction.type == TransactionType.PAYMENT.value,
                Transaction.amount > 0,
                Transaction.created_at >= start,
            )
            .all()
        )

    @staticmethod
    def commissions_with_status(db: Session, recipient_id: str, status: str) -> list:
        return (
            db.query(Commission)
            .filter(Commission.recipient_id == recipient_id, Commission.status == status)
            .all()
        )

    @staticmethod
    def get_commission(
        db: Session, commission_id: str, for_update: bool = False
    ) -> Optional[Commission]:
        query = db.query(Commission).filter(Commission.id == commission_id)
        if for_update:
            query = query.with_for_update().populate_existing()
        return query.first()

    @staticmethod
    def get_payout_by_stripe_id(db: Session, stripe_payout_id: str) -> Optional[Payout]:
        return (
            db.query(Payout)
            .filter(Payout.stripe_payout_id == stripe_payout_id)
            .with_for_update()
            .populate_existing()
            .first()
        )

    @staticmethod
    def get_withdrawal_transaction(db: Session, payout_id: str) -> Optional[Transaction]:
        return (
            db.query(Transaction)
            .filter(
                Transaction.type == TransactionType.WITHDRAWAL.value,
                Transaction.reference == payout_id,
            )
            .first()
        )
