"""Stripe checkout and webhook handling.

Checkout sessions are created against the Stripe REST API directly with a
form-encoded POST; there is no Stripe SDK. Completed checkouts arrive via the
webhook and are recorded once per checkout session id.
"""

import hashlib
import hmac
import logging
import re
import time
from typing import Any

import httpx

from bloxfolio.models import Payment
from bloxfolio.storage import Storage, new_id, utc_now

logger = logging.getLogger(__name__)

FULL_PRICE = 899  # cents
BARGAIN_PRICE = 499
SIGNATURE_TOLERANCE = 300  # seconds

CHECKOUT_URL = "https://api.stripe.com/v1/checkout/sessions"
COMPLETED_EVENT = "checkout.session.completed"

_QUERY_RE = re.compile(r"[?#].*$", re.DOTALL)


class PaymentError(RuntimeError):
    """Stripe refused or could not be reached."""


def product_name(amount: int) -> str:
    if amount == BARGAIN_PRICE:
        return "Bloxfolio Builder Access (Bargain Deal)"
    return "Bloxfolio Builder Access"


def checkout_params(user_id: str, amount: int, return_url: str) -> dict[str, str]:
    base = _QUERY_RE.sub("", return_url)
    return {
        "mode": "payment",
        "success_url": f"{base}?payment=success&session_id={{CHECKOUT_SESSION_ID}}",
        "cancel_url": f"{base}?payment=cancel",
        "line_items[0][price_data][currency]": "usd",
        "line_items[0][price_data][product_data][name]": product_name(amount),
        "line_items[0][price_data][unit_amount]": str(amount),
        "line_items[0][quantity]": "1",
        "metadata[userId]": user_id,
        "metadata[amount]": str(amount),
        "client_reference_id": user_id,
    }


async def create_checkout_session(
    secret_key: str,
    user_id: str,
    amount: int,
    return_url: str,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> str:
    """Create a Stripe Checkout session and return its hosted URL."""
    if amount not in (FULL_PRICE, BARGAIN_PRICE):
        raise ValueError("Invalid amount.")
    if not secret_key:
        raise PaymentError("Stripe is not configured. Set STRIPE_SECRET_KEY.")

    async with httpx.AsyncClient(timeout=30.0, transport=transport) as client:
        try:
            resp = await client.post(
                CHECKOUT_URL,
                data=checkout_params(user_id, amount, return_url),
                headers={"Authorization": f"Bearer {secret_key}"},
            )
        except httpx.HTTPError as e:
            raise PaymentError(f"Cannot reach Stripe: {e}") from e

    if resp.is_error:
        logger.error("Stripe checkout error %d: %s", resp.status_code, resp.text[:500])
        raise PaymentError("Failed to create checkout session. Check Stripe configuration.")

    url = resp.json().get("url")
    if not isinstance(url, str) or not url:
        raise PaymentError("Stripe returned no checkout URL.")
    logger.info("checkout session created for user %s amount=%d", user_id, amount)
    return url


def compute_signature(secret: str, timestamp: str, body: str) -> str:
    return hmac.new(
        secret.encode(), f"{timestamp}.{body}".encode(), hashlib.sha256
    ).hexdigest()


def verify_signature(
    body: str,
    header: str,
    secret: str,
    *,
    now: float | None = None,
    tolerance: int = SIGNATURE_TOLERANCE,
) -> bool:
    """Check a Stripe-Signature header of the form "t=<ts>,v1=<hex>"."""
    timestamp = signature = None
    for part in header.split(","):
        key, _, value = part.strip().partition("=")
        if key == "t" and timestamp is None:
            timestamp = value
        elif key == "v1" and signature is None:
            signature = value
    if not timestamp or not signature:
        return False

    try:
        ts = float(timestamp)
    except ValueError:
        return False
    if now is None:
        now = time.time()
    if abs(now - ts) > tolerance:
        return False

    expected = compute_signature(secret, timestamp, body)
    return hmac.compare_digest(expected, signature)


def _event_amount(session: dict[str, Any]) -> int:
    metadata = session.get("metadata") or {}
    for value in (metadata.get("amount"), session.get("amount_total")):
        try:
            amount = int(value)
        except (TypeError, ValueError):
            continue
        if amount:
            return amount
    return FULL_PRICE


def handle_webhook_event(storage: Storage, event: dict[str, Any]) -> bool:
    """Record the payment carried by a completed checkout event.

    Returns True only when a new payment was stored. Other event types,
    unknown users and replays of an already recorded session are ignored.
    """
    if event.get("type") != COMPLETED_EVENT:
        logger.debug("ignoring stripe event type %s", event.get("type"))
        return False

    session = (event.get("data") or {}).get("object") or {}
    metadata = session.get("metadata") or {}
    user_id = metadata.get("userId") or session.get("client_reference_id")
    checkout_id = session.get("id")
    if not user_id or not checkout_id:
        logger.warning("checkout event without user or session id")
        return False
    if storage.get_user(user_id) is None:
        logger.warning("checkout %s references unknown user %s", checkout_id, user_id)
        return False
    if storage.get_payment_by_checkout(checkout_id) is not None:
        logger.info("duplicate checkout event %s ignored", checkout_id)
        return False

    recorded = storage.record_payment(Payment(
        id=new_id(),
        user_id=user_id,
        checkout_session_id=checkout_id,
        amount=_event_amount(session),
        created_at=utc_now(),
    ))
    if recorded:
        logger.info("payment recorded for user %s (checkout %s)", user_id, checkout_id)
    else:
        logger.info("duplicate checkout event %s ignored", checkout_id)
    return recorded


def has_paid(storage: Storage, user_id: str) -> bool:
    return storage.has_completed_payment(user_id)
