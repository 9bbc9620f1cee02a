"""Subscription router - FastAPI endpoints for subscription operations"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request
from pydantic import ValidationError
from sqlalchemy.orm import Session

from ...auth import SessionContext, get_session, has_user
from ...database import get_db
from ...shared.responses import (
    internal_error_response,
    invalid_request_response,
    unauthorized_response,
    validation_details,
)
from .schemas import CreateSubscriptionRequest
from .subscription_service import SubscriptionService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/subscription", tags=["Subscription"])


def get_subscription_service(db: Session = Depends(get_db)) -> SubscriptionService:
    """Dependency injection for SubscriptionService"""
    return SubscriptionService(db)


@router.get("/current")
async def get_current_subscription(
    session: Optional[SessionContext] = Depends(get_session),
    service: SubscriptionService = Depends(get_subscription_service),
):
    """Get the caller's subscription"""
    if not has_user(session):
        return unauthorized_response()

    try:
        return service.get_user_subscription(session.user_id)
    except Exception as e:
        return internal_error_response("[API] Current subscription error", e)


@router.get("/plans")
async def get_subscription_plans(
    service: SubscriptionService = Depends(get_subscription_service),
):
    """List the plan catalogue in display order"""
    try:
        return [{"type": plan_type, **plan} for plan_type, plan in service.get_plans().items()]
    except Exception as e:
        return internal_error_response("[API] Subscription plans error", e)


@router.post("/create")
async def create_subscription(
    request: Request,
    session: Optional[SessionContext] = Depends(get_session),
    service: SubscriptionService = Depends(get_subscription_service),
):
    """Subscribe the caller to a paid plan"""
    if not has_user(session):
        return unauthorized_response()

    try:
        try:
            body = CreateSubscriptionRequest.model_validate_json(await request.body())
        except ValidationError as e:
            return invalid_request_response(validation_details(e))

        return await service.create_subscription(
            session.user_id,
            body.plan_type,
            billing_cycle=body.billing_cycle,
            payment_method_id=body.payment_method_id,
            metadata=body.metadata,
        )
    except Exception as e:
        return internal_error_response("[API] Create subscription error", e)
