import asyncio
from datetime import datetime, timedelta
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock

import pytest
from freezegun import freeze_time

from papasito.domain.wallet.repository import WalletRepository
from papasito.domain.wallet.wallet_service import (
    WalletService,
    period_start,
    shift_months,
    withdrawal_fee,
)
from papasito.models import Commission, DigitalWallet, Payout, Transaction
from papasito.shared.errors import WalletError


@pytest.fixture
def stripe():
    stripe = MagicMock()
    stripe.create_payout = AsyncMock(return_value=SimpleNamespace(id="po_stripe_1"))
    return stripe


@pytest.fixture
def service(db_session, stripe):
    return WalletService(db_session, stripe=stripe)


def add_transaction(db_session, **fields):
    fields.setdefault("user_id", "user-1")
    fields.setdefault("currency", "EUR")
    fields.setdefault("status", "COMPLETED")
    transaction = Transaction(**fields)
    db_session.add(transaction)
    db_session.commit()
    return transaction


def funded_wallet(db_session, available=200.0, verified=True):
    wallet = DigitalWallet(
        user_id="user-1",
        balance=available,
        total_earnings=available,
        available_earnings=available,
        is_verified=verified,
    )
    db_session.add(wallet)
    db_session.commit()
    return wallet


def test_shift_months_clamps_day():
    assert shift_months(datetime(2024, 3, 31, 12), -1) == datetime(2024, 2, 29, 12)
    assert shift_months(datetime(2023, 3, 31), -1) == datetime(2023, 2, 28)
    assert shift_months(datetime(2024, 1, 15), -1) == datetime(2023, 12, 15)
    assert shift_months(datetime(2024, 2, 29), -12) == datetime(2023, 2, 28)


def test_period_start_windows():
    now = datetime(2024, 3, 31, 12)

    assert period_start(now, "week") == datetime(2024, 3, 24, 12)
    assert period_start(now, "month") == datetime(2024, 2, 29, 12)
    assert period_start(now, "year") == datetime(2023, 3, 31, 12)
    assert period_start(now, "decade") == now


def test_withdrawal_fee_has_a_floor():
    assert withdrawal_fee(100) == pytest.approx(2.0)
    assert withdrawal_fee(10) == pytest.approx(0.25)


def test_get_wallet_creates_empty_unverified_wallet(service, user):
    wallet = service.get_wallet("user-1")

    assert wallet.balance == 0
    assert wallet.minimum_withdrawal == 50
    assert wallet.is_active is True
    assert wallet.is_verified is False
    assert service.get_wallet("user-1").id == wallet.id


def test_balance_summary(service, db_session, user):
    funded_wallet(db_session, available=80.0)
    db_session.add_all(
        [
            Commission(recipient_id="user-1", amount=12.5, status="CALCULATED"),
            Commission(recipient_id="user-1", amount=7.5, status="CALCULATED"),
            Commission(recipient_id="user-1", amount=100, status="PAID"),
        ]
    )
    db_session.commit()
    base = datetime(2024, 1, 1)
    for day in range(7):
        add_transaction(db_session, type="PAYMENT", amount=10 + day, created_at=base + timedelta(days=day))

    summary = service.get_balance_summary("user-1")

    assert summary["currentBalance"] == 80.0
    assert summary["pendingCommissions"] == pytest.approx(20.0)
    assert summary["minimumWithdrawal"] == 50
    assert summary["isVerified"] is True
    assert [t["amount"] for t in summary["recentTransactions"]] == [16, 15, 14, 13, 12]


@freeze_time("2024-03-31 12:00:00")
@pytest.mark.parametrize(
    "period, earnings, transactions",
    [("week", 100, 1), ("month", 150, 4), ("year", 220, 5), ("decade", 0, 0)],
)
def test_wallet_stats_windows(service, db_session, user, period, earnings, transactions):
    add_transaction(db_session, type="PAYMENT", amount=100, created_at=datetime(2024, 3, 30))
    add_transaction(db_session, type="PAYMENT", amount=50, created_at=datetime(2024, 2, 29, 13))
    add_transaction(db_session, type="PAYMENT", amount=70, created_at=datetime(2024, 2, 28))
    add_transaction(
        db_session,
        type="WITHDRAWAL",
        amount=-60,
        platform_fee=1.2,
        status="PENDING",
        created_at=datetime(2024, 3, 15),
    )
    add_transaction(db_session, type="COMMISSION", amount=10, created_at=datetime(2024, 3, 20))
    db_session.add(Payout(user_id="user-1", amount=60, fee=1.2, net_amount=58.8, method="paypal"))
    db_session.commit()

    stats = service.get_wallet_stats("user-1", period)

    assert stats["period"]["earnings"] == pytest.approx(earnings)
    assert stats["transactions"] == transactions
    assert stats["pending"] == {"payouts": 1, "amount": 60}


@freeze_time("2024-03-31 12:00:00")
def test_wallet_stats_month_totals(service, db_session, user):
    add_transaction(db_session, type="PAYMENT", amount=100, created_at=datetime(2024, 3, 30))
    add_transaction(
        db_session, type="WITHDRAWAL", amount=-60, platform_fee=1.2, created_at=datetime(2024, 3, 15)
    )
    add_transaction(db_session, type="COMMISSION", amount=10, created_at=datetime(2024, 3, 20))

    period = service.get_wallet_stats("user-1", "month")["period"]

    assert period["withdrawals"] == pytest.approx(60)
    assert period["commissions"] == pytest.approx(10)
    assert period["fees"] == pytest.approx(1.2)
    assert period["netEarnings"] == pytest.approx(98.8)


def test_transactions_are_paginated_newest_first(service, db_session, user):
    base = datetime(2024, 1, 1)
    for day in range(7):
        add_transaction(db_session, type="PAYMENT", amount=day, created_at=base + timedelta(days=day))

    first = service.get_transactions("user-1", limit=5, offset=0)
    second = service.get_transactions("user-1", limit=5, offset=5)

    assert [t["amount"] for t in first["transactions"]] == [6, 5, 4, 3, 2]
    assert first["pagination"] == {"total": 7, "limit": 5, "offset": 0, "hasMore": True}
    assert [t["amount"] for t in second["transactions"]] == [1, 0]
    assert second["pagination"]["hasMore"] is False
    assert first["transactions"][0]["user"] == {
        "id": "user-1",
        "name": "Léa",
        "email": "lea@example.com",
    }


@pytest.mark.asyncio
async def test_request_withdrawal_records_payout_and_transaction(service, db_session, stripe, user):
    wallet = funded_wallet(db_session, available=200.0)

    result = await service.request_withdrawal("user-1", 100.0, "paypal")

    assert result["amount"] == 100.0
    assert result["fee"] == pytest.approx(2.0)
    assert result["netAmount"] == pytest.approx(98.0)
    assert result["status"] == "PENDING"
    stripe.create_payout.assert_awaited_once()
    assert stripe.create_payout.await_args.kwargs["amount"] == 100.0

    payout = db_session.query(Payout).one()
    assert payout.id == result["payoutId"]
    assert payout.stripe_payout_id == "po_stripe_1"

    withdrawal = db_session.query(Transaction).filter(Transaction.type == "WITHDRAWAL").one()
    assert withdrawal.amount == -100.0
    assert withdrawal.status == "PENDING"
    assert withdrawal.platform_fee == pytest.approx(2.0)
    assert withdrawal.net_amount == pytest.approx(-98.0)

    db_session.refresh(wallet)
    assert wallet.available_earnings == pytest.approx(100.0)
    assert wallet.total_withdrawn == pytest.approx(100.0)


@pytest.mark.asyncio
async def test_withdrawal_above_available_earnings(service, db_session, stripe, user):
    funded_wallet(db_session, available=80.0)

    with pytest.raises(WalletError, match="Insufficient balance"):
        await service.request_withdrawal("user-1", 100.0, "paypal")

    stripe.create_payout.assert_not_awaited()
    assert db_session.query(Payout).count() == 0


@pytest.mark.asyncio
async def test_withdrawal_requires_verified_wallet(service, db_session, stripe, user):
    funded_wallet(db_session, verified=False)

    with pytest.raises(WalletError, match="not verified"):
        await service.request_withdrawal("user-1", 100.0, "paypal")


@pytest.mark.asyncio
async def test_withdrawal_below_minimum(service, db_session, user):
    funded_wallet(db_session)

    with pytest.raises(WalletError, match="Minimum withdrawal amount is 50€"):
        await service.request_withdrawal("user-1", 20.0, "paypal")


@pytest.mark.asyncio
async def test_withdrawal_stripe_failure_leaves_wallet_untouched(service, db_session, stripe, user):
    wallet = funded_wallet(db_session, available=200.0)
    stripe.create_payout.side_effect = RuntimeError("stripe down")

    with pytest.raises(WalletError, match="Failed to request withdrawal"):
        await service.request_withdrawal("user-1", 100.0, "crypto")

    db_session.refresh(wallet)
    assert wallet.available_earnings == 200.0
    assert db_session.query(Payout).count() == 0


def test_add_earnings_credits_wallet(service, db_session, user):
    result = service.add_earnings("user-1", 40.0, "booking", {"bookingId": "b-1"})

    assert result["balance"] == 40.0
    assert result["availableEarnings"] == 40.0
    payment = db_session.query(Transaction).one()
    assert payment.type == "PAYMENT"
    assert payment.description == "Earnings from booking"
    assert payment.extra == {"bookingId": "b-1"}


def test_process_commission_payment(service, db_session, user):
    commission = Commission(recipient_id="user-1", amount=25.0, booking_id="b-9")
    db_session.add(commission)
    db_session.commit()

    result = service.process_commission_payment(commission.id)

    assert result["status"] == "PAID"
    assert service.get_wallet("user-1").available_earnings == 25.0
    with pytest.raises(WalletError, match="not ready for payment"):
        service.process_commission_payment(commission.id)


def test_process_unknown_commission(service):
    with pytest.raises(WalletError, match="Commission not found"):
        service.process_commission_payment("missing")


def test_verify_wallet_leaves_audit_trail(service, db_session, user):
    service.get_wallet("user-1")

    result = service.verify_wallet("user-1", True, admin_notes="ID checked")

    assert result["isVerified"] is True
    audit = db_session.query(Transaction).one()
    assert audit.type == "BONUS"
    assert audit.description == "Wallet verified"
    assert audit.extra["adminNotes"] == "ID checked"


def test_get_payouts_paginates(service, db_session, user):
    for index in range(3):
        db_session.add(
            Payout(
                user_id="user-1",
                amount=50 + index,
                net_amount=49 + index,
                method="paypal",
                created_at=datetime(2024, 1, 1 + index),
            )
        )
    db_session.commit()

    page = service.get_payouts("user-1", limit=2)

    assert [p["amount"] for p in page["payouts"]] == [52, 51]
    assert page["pagination"]["hasMore"] is True


@pytest.mark.asyncio
async def test_concurrent_withdrawals_cannot_overdraw(service, db_session, stripe, user):
    funded_wallet(db_session, available=100.0)

    async def slow_payout(**kwargs):
        await asyncio.sleep(0.05)
        return SimpleNamespace(id="po_stripe_1")

    stripe.create_payout.side_effect = slow_payout

    results = await asyncio.gather(
        service.request_withdrawal("user-1", 60.0, "paypal"),
        service.request_withdrawal("user-1", 60.0, "paypal"),
        return_exceptions=True,
    )

    succeeded = [r for r in results if isinstance(r, dict)]
    refused = [r for r in results if isinstance(r, WalletError)]
    assert len(succeeded) == 1
    assert [str(e) for e in refused] == ["Insufficient balance"]
    stripe.create_payout.assert_awaited_once()

    wallet = db_session.query(DigitalWallet).one()
    assert wallet.available_earnings == pytest.approx(40.0)
    assert wallet.total_withdrawn == pytest.approx(60.0)
    assert db_session.query(Payout).count() == 1


def test_reserve_withdrawal_only_spends_available_funds(db_session, user):
    funded_wallet(db_session, available=100.0)

    assert WalletRepository.reserve_withdrawal(db_session, "user-1", 60.0) is True
    assert WalletRepository.reserve_withdrawal(db_session, "user-1", 60.0) is False
    db_session.commit()

    wallet = db_session.query(DigitalWallet).one()
    assert wallet.available_earnings == pytest.approx(40.0)
    assert wallet.total_withdrawn == pytest.approx(60.0)


def test_commission_payment_commits_once(service, db_session, user, monkeypatch):
    commission = Commission(recipient_id="user-1", amount=25.0)
    db_session.add(commission)
    db_session.commit()
    commit = MagicMock(wraps=db_session.commit)
    monkeypatch.setattr(db_session, "commit", commit)

    service.process_commission_payment(commission.id)

    assert commit.call_count == 1


def test_failed_commission_payment_leaves_nothing_behind(service, db_session, user, monkeypatch):
    commission = Commission(recipient_id="user-1", amount=25.0)
    db_session.add(commission)
    db_session.commit()
    monkeypatch.setattr(db_session, "commit", MagicMock(side_effect=RuntimeError("disk full")))

    with pytest.raises(WalletError, match="Failed to process commission payment"):
        service.process_commission_payment(commission.id)

    monkeypatch.undo()
    assert db_session.query(DigitalWallet).count() == 0
    assert db_session.query(Transaction).count() == 0
    assert commission.status == "CALCULATED"

    assert service.process_commission_payment(commission.id)["status"] == "PAID"
    assert service.get_wallet("user-1").available_earnings == 25.0


async def pending_withdrawal(service, db_session) -> dict:
    funded_wallet(db_session, available=200.0)
    return await service.request_withdrawal("user-1", 100.0, "paypal")


@pytest.mark.asyncio
async def test_paid_payout_completes_withdrawal(service, db_session, user):
    requested = await pending_withdrawal(service, db_session)

    result = service.process_payout_webhook("payout.paid", {"id": "po_stripe_1"})

    assert result["id"] == requested["payoutId"]
    assert result["status"] == "COMPLETED"
    assert result["processedAt"] is not None
    withdrawal = db_session.query(Transaction).filter(Transaction.type == "WITHDRAWAL").one()
    assert withdrawal.status == "COMPLETED"
    assert withdrawal.completed_at is not None
    assert db_session.query(DigitalWallet).one().available_earnings == pytest.approx(100.0)


@pytest.mark.asyncio
async def test_failed_payout_returns_funds_once(service, db_session, user):
    await pending_withdrawal(service, db_session)
    event = {"id": "po_stripe_1", "failure_message": "account closed"}

    result = service.process_payout_webhook("payout.failed", event)
    service.process_payout_webhook("payout.failed", event)

    assert result["status"] == "FAILED"
    payout = db_session.query(Payout).one()
    assert payout.extra == {"failureMessage": "account closed"}
    withdrawal = db_session.query(Transaction).filter(Transaction.type == "WITHDRAWAL").one()
    assert withdrawal.status == "FAILED"
    wallet = db_session.query(DigitalWallet).one()
    assert wallet.available_earnings == pytest.approx(200.0)
    assert wallet.total_withdrawn == pytest.approx(0.0)


def test_payout_webhook_for_unknown_payout(service, user):
    assert service.process_payout_webhook("payout.paid", {"id": "po_missing"}) is None


@freeze_time("2024-03-31 12:00:00")
def test_earnings_forecast(service, db_session, user):
    db_session.add(DigitalWallet(user_id="user-1", pending_earnings=12.0))
    db_session.commit()
    add_transaction(db_session, type="PAYMENT", amount=90, created_at=datetime(2024, 3, 20))
    add_transaction(db_session, type="PAYMENT", amount=60, created_at=datetime(2024, 3, 1, 13))
    add_transaction(db_session, type="PAYMENT", amount=500, created_at=datetime(2024, 2, 1))
    add_transaction(db_session, type="WITHDRAWAL", amount=-50, created_at=datetime(2024, 3, 20))

    forecast = service.get_earnings_forecast("user-1")

    assert forecast["dailyAverage"] == pytest.approx(5.0)
    assert forecast["weeklyForecast"] == pytest.approx(35.0)
    assert forecast["monthlyForecast"] == pytest.approx(150.0)
    assert forecast["pendingEarnings"] == 12.0
    assert forecast["totalForecast"] == pytest.approx(162.0)
