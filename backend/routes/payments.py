"""Checkout, payment status, and the Stripe webhook."""

import json
import logging

from fastapi import APIRouter, Depends, Header, HTTPException, Request
from fastapi.responses import PlainTextResponse

from backend.deps import get_current_user, get_settings, get_storage
from bloxfolio import payments
from bloxfolio.config import Settings
from bloxfolio.models import User
from bloxfolio.storage import Storage

from .models import CheckoutBody

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/payments/checkout")
async def checkout(
    body: CheckoutBody,
    request: Request,
    user: User = Depends(get_current_user),
    settings: Settings = Depends(get_settings),
):
    """Create a Stripe Checkout session for the full or bargain price."""
    try:
        url = await payments.create_checkout_session(
            settings.stripe_secret_key, user.id, body.amount, body.return_url,
            transport=request.app.state.stripe_transport,
        )
    except ValueError as e:
        raise HTTPException(400, str(e))
    except payments.PaymentError as e:
        raise HTTPException(502, str(e))
    return {"url": url}


@router.get("/payments/status")
async def payment_status(
    user: User = Depends(get_current_user),
    storage: Storage = Depends(get_storage),
):
    return {"paid": payments.has_paid(storage, user.id)}


@router.post("/stripe-webhook", response_class=PlainTextResponse)
async def stripe_webhook(
    request: Request,
    stripe_signature: str = Header(""),
    settings: Settings = Depends(get_settings),
    storage: Storage = Depends(get_storage),
):
    """Record completed checkouts. Signed with STRIPE_WEBHOOK_SECRET."""
    if not settings.stripe_webhook_secret:
        logger.error("STRIPE_WEBHOOK_SECRET not configured")
        return PlainTextResponse("Webhook secret not configured", status_code=500)

    body = (await request.body()).decode("utf-8", errors="replace")
    if not payments.verify_signature(body, stripe_signature, settings.stripe_webhook_secret):
        logger.warning("invalid Stripe webhook signature")
        return PlainTextResponse("Invalid signature", status_code=400)

    try:
        event = json.loads(body)
    except json.JSONDecodeError:
        return PlainTextResponse("Invalid JSON", status_code=400)
    if not isinstance(event, dict):
        return PlainTextResponse("Invalid JSON", status_code=400)

    payments.handle_webhook_event(storage, event)
    return "ok"
