"""Tests for bloxfolio.payments: checkout creation, webhook signatures, recording."""

import time
from urllib.parse import parse_qs

import httpx
import pytest

from bloxfolio.payments import (
    BARGAIN_PRICE,
    FULL_PRICE,
    PaymentError,
    compute_signature,
    create_checkout_session,
    handle_webhook_event,
    has_paid,
    verify_signature,
)

SECRET = "whsec_test"
BODY = '{"type": "checkout.session.completed"}'


def _header(body: str, ts: int, secret: str = SECRET) -> str:
    return f"t={ts},v1={compute_signature(secret, str(ts), body)}"


def _event(user_id: str, checkout_id: str = "cs_1", **session) -> dict:
    return {
        "type": "checkout.session.completed",
        "data": {"object": {"id": checkout_id, "metadata": {"userId": user_id}, **session}},
    }


# ---------------------------------------------------------------------------
# Signatures
# ---------------------------------------------------------------------------

def test_valid_signature():
    now = time.time()
    assert verify_signature(BODY, _header(BODY, int(now)), SECRET, now=now)


def test_signature_301_seconds_old_rejected():
    now = 1_700_000_000
    header = _header(BODY, now - 301)
    assert not verify_signature(BODY, header, SECRET, now=now)


def test_signature_300_seconds_old_accepted():
    now = 1_700_000_000
    assert verify_signature(BODY, _header(BODY, now - 300), SECRET, now=now)


def test_future_timestamp_outside_tolerance_rejected():
    now = 1_700_000_000
    assert not verify_signature(BODY, _header(BODY, now + 301), SECRET, now=now)


def test_tampered_body_rejected():
    now = 1_700_000_000
    assert not verify_signature(BODY + " ", _header(BODY, now), SECRET, now=now)


def test_wrong_secret_rejected():
    now = 1_700_000_000
    assert not verify_signature(BODY, _header(BODY, now, "other"), SECRET, now=now)


@pytest.mark.parametrize("header", ["", "t=123", "v1=abc", "t=abc,v1=abc", "garbage"])
def test_malformed_header_rejected(header):
    assert not verify_signature(BODY, header, SECRET, now=123)


# ---------------------------------------------------------------------------
# Webhook events
# ---------------------------------------------------------------------------

def test_completed_checkout_recorded_once(storage, user):
    assert handle_webhook_event(storage, _event(user.id)) is True
    assert handle_webhook_event(storage, _event(user.id)) is False
    assert has_paid(storage, user.id)
    assert storage.get_payment_by_checkout("cs_1").amount == FULL_PRICE


def test_replayed_checkout_keeps_first_payment(storage, user):
    handle_webhook_event(storage, _event(user.id, amount_total=499))
    assert handle_webhook_event(storage, _event(user.id, amount_total=999)) is False
    assert storage.get_payment_by_checkout("cs_1").amount == 499


def test_amount_from_metadata(storage, user):
    event = _event(user.id)
    event["data"]["object"]["metadata"]["amount"] = "499"
    handle_webhook_event(storage, event)
    assert storage.get_payment_by_checkout("cs_1").amount == BARGAIN_PRICE


def test_amount_from_total(storage, user):
    handle_webhook_event(storage, _event(user.id, amount_total=499))
    assert storage.get_payment_by_checkout("cs_1").amount == 499


def test_user_from_client_reference(storage, user):
    event = {"type": "checkout.session.completed",
             "data": {"object": {"id": "cs_2", "client_reference_id": user.id}}}
    assert handle_webhook_event(storage, event)
    assert has_paid(storage, user.id)


def test_unknown_user_ignored(storage):
    assert handle_webhook_event(storage, _event("ghost")) is False
    assert storage.get_payment_by_checkout("cs_1") is None


def test_other_event_types_ignored(storage, user):
    event = _event(user.id)
    event["type"] = "payment_intent.created"
    assert handle_webhook_event(storage, event) is False
    assert not has_paid(storage, user.id)


# ---------------------------------------------------------------------------
# Checkout
# ---------------------------------------------------------------------------

async def test_checkout_posts_form_and_returns_url():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["auth"] = request.headers["Authorization"]
        seen["form"] = parse_qs(request.content.decode())
        return httpx.Response(200, json={"id": "cs_1", "url": "https://checkout.stripe.test/cs_1"})

    url = await create_checkout_session(
        "sk_test", "u1", BARGAIN_PRICE, "https://app.test/builder?x=1#top",
        transport=httpx.MockTransport(handler),
    )
    assert url == "https://checkout.stripe.test/cs_1"
    assert seen["auth"] == "Bearer sk_test"
    form = seen["form"]
    assert form["mode"] == ["payment"]
    assert form["success_url"] == [
        "https://app.test/builder?payment=success&session_id={CHECKOUT_SESSION_ID}"
    ]
    assert form["cancel_url"] == ["https://app.test/builder?payment=cancel"]
    assert form["line_items[0][price_data][unit_amount]"] == ["499"]
    assert form["line_items[0][price_data][product_data][name]"] == [
        "Bloxfolio Builder Access (Bargain Deal)"
    ]
    assert form["metadata[userId]"] == ["u1"]
    assert form["client_reference_id"] == ["u1"]


async def test_checkout_invalid_amount_makes_no_call():
    def handler(request):
        raise AssertionError("no request expected")

    with pytest.raises(ValueError, match="Invalid amount"):
        await create_checkout_session(
            "sk_test", "u1", 100, "https://app.test", transport=httpx.MockTransport(handler)
        )


async def test_checkout_requires_secret_key():
    with pytest.raises(PaymentError, match="not configured"):
        await create_checkout_session("", "u1", FULL_PRICE, "https://app.test")


async def test_checkout_stripe_error():
    transport = httpx.MockTransport(lambda request: httpx.Response(400, json={"error": {}}))
    with pytest.raises(PaymentError, match="Failed to create checkout session"):
        await create_checkout_session(
            "sk_test", "u1", FULL_PRICE, "https://app.test", transport=transport
        )
