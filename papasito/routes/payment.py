import json
import logging

import stripe
from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from .. import config
from ..database import get_db
from ..domain.billing.stripe_service import stripe_service
from ..domain.billing.subscription_service import (
    SUBSCRIPTION_WEBHOOK_EVENTS,
    SubscriptionService,
)
from ..domain.wallet.wallet_service import PAYOUT_WEBHOOK_EVENTS, WalletService
from ..shared.responses import error_response, internal_error_response

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/payment", tags=["Payment"])


@router.get("/config")
async def get_payment_config():
    """Publishable Stripe key for client-side payment forms"""
    return stripe_service.get_public_config()


@router.post("/webhook")
async def handle_stripe_webhook(request: Request, db: Session = Depends(get_db)):
    """
    Verify a Stripe webhook and apply it.

    Payout events settle pending withdrawals; subscription and invoice events
    update the local subscription. Other event types are acknowledged and ignored.
    """
    signature = request.headers.get("stripe-signature")
    if not signature:
        return error_response("No signature provided", 400)

    if not config.STRIPE_WEBHOOK_SECRET:
        logger.error("❌ STRIPE_WEBHOOK_SECRET not configured")
        return error_response("Webhook not configured", 500)

    body = await request.body()
    try:
        stripe.Webhook.construct_event(body, signature, config.STRIPE_WEBHOOK_SECRET)
    except (ValueError, stripe.SignatureVerificationError) as e:
        logger.warning(f"⚠️ Stripe webhook signature verification failed: {e}")
        return error_response("Invalid signature", 400)

    event = json.loads(body)
    event_type = event.get("type")
    data = (event.get("data") or {}).get("object") or {}
    logger.info(f"🔔 Stripe webhook received id={event.get('id')} type={event_type}")

    try:
        if event_type in PAYOUT_WEBHOOK_EVENTS:
            WalletService(db).process_payout_webhook(event_type, data)
        elif event_type in SUBSCRIPTION_WEBHOOK_EVENTS:
            SubscriptionService(db).process_subscription_webhook(event_type, data, event.get("id"))
        else:
            logger.info(f"[Stripe Webhook] Unhandled event type: {event_type}")
        return {"received": True}
    except Exception as e:
        return internal_error_response("[Stripe Webhook] Error", e)
