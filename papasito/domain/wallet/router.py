"""Wallet router - FastAPI endpoints for the caller's digital wallet"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request
from pydantic import ValidationError
from sqlalchemy.orm import Session

from ...auth import SessionContext, get_session, has_user
from ...database import get_db
from ...shared.params import parse_int
from ...shared.responses import (
    internal_error_response,
    invalid_request_response,
    unauthorized_response,
    validation_details,
)
from .schemas import WithdrawRequest
from .wallet_service import WalletService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/wallet", tags=["Wallet"])


def get_wallet_service(db: Session = Depends(get_db)) -> WalletService:
    """Dependency injection for WalletService"""
    return WalletService(db)


@router.get("/balance")
async def get_wallet_balance(
    session: Optional[SessionContext] = Depends(get_session),
    service: WalletService = Depends(get_wallet_service),
):
    """Balance summary with the five most recent transactions"""
    if not has_user(session):
        return unauthorized_response()

    try:
        return service.get_balance_summary(session.user_id)
    except Exception as e:
        return internal_error_response("[API] Wallet balance error", e)


@router.get("/stats")
async def get_wallet_stats(
    period: Optional[str] = None,
    session: Optional[SessionContext] = Depends(get_session),
    service: WalletService = Depends(get_wallet_service),
):
    """Wallet statistics for `period` (week, month or year; month by default)"""
    if not has_user(session):
        return unauthorized_response()

    try:
        return service.get_wallet_stats(session.user_id, period or "month")
    except Exception as e:
        return internal_error_response("[API] Wallet stats error", e)


@router.get("/transactions")
async def get_wallet_transactions(
    limit: Optional[str] = None,
    offset: Optional[str] = None,
    session: Optional[SessionContext] = Depends(get_session),
    service: WalletService = Depends(get_wallet_service),
):
    """Paginated transaction history, newest first"""
    if not has_user(session):
        return unauthorized_response()

    try:
        return service.get_transactions(
            session.user_id,
            limit=parse_int(limit, "50"),
            offset=parse_int(offset, "0"),
        )
    except Exception as e:
        return internal_error_response("[API] Wallet transactions error", e)


@router.post("/withdraw")
async def request_withdrawal(
    request: Request,
    session: Optional[SessionContext] = Depends(get_session),
    service: WalletService = Depends(get_wallet_service),
):
    """Request a payout of available earnings"""
    if not has_user(session):
        return unauthorized_response()

    try:
        try:
            body = WithdrawRequest.model_validate_json(await request.body())
        except ValidationError as e:
            return invalid_request_response(validation_details(e))

        return await service.request_withdrawal(
            session.user_id,
            body.amount,
            body.payment_method,
            bank_details=body.bank_details.model_dump(by_alias=True) if body.bank_details else None,
        )
    except Exception as e:
        return internal_error_response("[API] Wallet withdraw error", e)
