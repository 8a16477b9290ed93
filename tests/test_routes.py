"""End-to-end tests for the FastAPI app over mocked LLM and Stripe transports."""

import json
import time

import httpx
import pytest
from fastapi.testclient import TestClient

from backend.app import create_app
from bloxfolio.payments import compute_signature

BRIEF = {
    "robloxUsername": "BuilderBob",
    "primaryRole": "Scripter",
    "signatureStyle": "Clean combat systems",
    "notableProjects": "Sword Sim",
    "skillFocus": "LuaU",
    "targetAudience": "Studio leads",
}
MODEL_JSON = {"headline": "Combat Systems Wizard", "skills": ["LuaU", "ProfileService"]}


def _sse_handler(text: str):
    def handler(request: httpx.Request) -> httpx.Response:
        body = json.loads(request.content)
        if not body.get("stream"):
            reply = json.dumps({"response": "Not bad, kid.", "moodChange": 5})
            return httpx.Response(200, json={"choices": [{"message": {"content": reply}}]})
        frames = [
            "data: " + json.dumps({"choices": [{"delta": {"content": text[i:i + 5]}}]})
            for i in range(0, len(text), 5)
        ]
        return httpx.Response(200, content=("\n\n".join(frames) + "\n\ndata: [DONE]\n\n").encode())
    return handler


def _dropped_handler(request: httpx.Request) -> httpx.Response:
    raise httpx.RemoteProtocolError("peer closed connection", request=request)


def _stripe_handler(request: httpx.Request) -> httpx.Response:
    return httpx.Response(200, json={"id": "cs_test_1", "url": "https://checkout.stripe.test/cs_test_1"})


@pytest.fixture
def client(settings):
    app = create_app(
        settings,
        llm_transport=httpx.MockTransport(_sse_handler("Sure!\n" + json.dumps(MODEL_JSON))),
        stripe_transport=httpx.MockTransport(_stripe_handler),
    )
    return TestClient(app)


@pytest.fixture
def auth_headers(client):
    resp = client.post("/api/auth/signup", json={"username": "builder_bob", "password": "hunter2hunter2"})
    assert resp.status_code == 201
    return {"Authorization": f"Bearer {resp.json()['token']}"}


def _generate(client, headers) -> dict:
    resp = client.post("/api/portfolios/generate", json={"brief": BRIEF}, headers=headers)
    assert resp.status_code == 200, resp.text
    return resp.json()


# ---------------------------------------------------------------------------
# Health and auth
# ---------------------------------------------------------------------------

def test_health(client):
    body = client.get("/api/health").json()
    assert body["status"] == "ok"
    assert body["llmConfigured"] is True
    assert "sk-or" not in json.dumps(body)


def test_signup_login_me_logout(client):
    resp = client.post("/api/auth/signup", json={"username": "robin", "password": "correct-horse"})
    assert resp.status_code == 201
    assert resp.json()["user"]["username"] == "robin"

    resp = client.post("/api/auth/login", json={"username": "robin", "password": "correct-horse"})
    token = resp.json()["token"]
    headers = {"Authorization": f"Bearer {token}"}
    assert client.get("/api/auth/me", headers=headers).json()["username"] == "robin"

    assert client.post("/api/auth/logout", headers=headers).json() == {"ok": True}
    assert client.get("/api/auth/me", headers=headers).status_code == 401


def test_signup_errors(client):
    assert client.post("/api/auth/signup", json={"username": "x", "password": "correct-horse"}).status_code == 400
    client.post("/api/auth/signup", json={"username": "robin", "password": "correct-horse"})
    resp = client.post("/api/auth/signup", json={"username": "ROBIN", "password": "correct-horse"})
    assert resp.status_code == 409


def test_bad_login(client):
    resp = client.post("/api/auth/login", json={"username": "nobody", "password": "whatever1"})
    assert resp.status_code == 401


@pytest.mark.parametrize("path", ["/api/portfolios", "/api/bargain", "/api/payments/status"])
def test_requires_token(client, path):
    assert client.get(path).status_code == 401
    assert client.get(path, headers={"Authorization": "Bearer nope"}).status_code == 401


# ---------------------------------------------------------------------------
# Streams and generation
# ---------------------------------------------------------------------------

def test_logged_out_token_rejected(client, auth_headers):
    assert client.post("/api/auth/logout", headers=auth_headers).status_code == 200
    resp = client.get("/api/portfolios", headers=auth_headers)
    assert resp.status_code == 401
    assert resp.json()["detail"] == "Unauthorized"


def test_generate_returns_normalized_copy(client, auth_headers):
    body = _generate(client, auth_headers)
    assert body["headline"] == "Combat Systems Wizard"
    assert body["skills"] == ["LuaU", "ProfileService"]
    assert len(body["highlightedProjects"]) == 1
    assert set(body["theme"]) == {"bg", "bgSurface", "ink", "accent", "fontBody", "fontDisplay", "radius"}


def test_generate_relays_to_stream(client, auth_headers):
    stream_id = client.post("/api/streams", json={"purpose": "generate"}, headers=auth_headers).json()["streamId"]
    resp = client.post(
        "/api/portfolios/generate", json={"brief": BRIEF, "streamId": stream_id}, headers=auth_headers
    )
    assert resp.status_code == 200
    record = client.get(f"/api/streams/{stream_id}", headers=auth_headers).json()
    assert record["state"] == "completed"
    assert record["text"] == "Sure!\n" + json.dumps(MODEL_JSON)


def test_stream_of_other_user_hidden(client, auth_headers):
    stream_id = client.post("/api/streams", json={"purpose": "revise"}, headers=auth_headers).json()["streamId"]
    other = client.post("/api/auth/signup", json={"username": "other", "password": "password123"}).json()
    headers = {"Authorization": f"Bearer {other['token']}"}
    assert client.get(f"/api/streams/{stream_id}", headers=headers).status_code == 404
    resp = client.post(
        "/api/portfolios/generate", json={"brief": BRIEF, "streamId": stream_id}, headers=headers
    )
    assert resp.status_code == 404


def test_generate_without_api_key(settings, auth_headers):
    app = create_app(settings.model_copy(update={"openrouter_api_key": "bad key!"}))
    client = TestClient(app)
    resp = client.post("/api/portfolios/generate", json={"brief": BRIEF}, headers=auth_headers)
    assert resp.status_code == 400
    assert "OPENROUTER_API_KEY" in resp.json()["detail"]


def test_generate_upstream_failure_is_502(settings, auth_headers):
    app = create_app(settings, llm_transport=httpx.MockTransport(lambda r: httpx.Response(429, text="slow")))
    client = TestClient(app)
    stream_id = client.post("/api/streams", json={"purpose": "generate"}, headers=auth_headers).json()["streamId"]
    resp = client.post(
        "/api/portfolios/generate", json={"brief": BRIEF, "streamId": stream_id}, headers=auth_headers
    )
    assert resp.status_code == 502
    assert client.get(f"/api/streams/{stream_id}", headers=auth_headers).json()["state"] == "error"


def test_generate_dropped_connection_is_502(settings, auth_headers):
    client = TestClient(create_app(settings, llm_transport=httpx.MockTransport(_dropped_handler)))
    stream_id = client.post("/api/streams", json={"purpose": "generate"}, headers=auth_headers).json()["streamId"]
    resp = client.post(
        "/api/portfolios/generate", json={"brief": BRIEF, "streamId": stream_id}, headers=auth_headers
    )
    assert resp.status_code == 502
    assert client.get(f"/api/streams/{stream_id}", headers=auth_headers).json()["state"] == "error"


def test_generate_without_json_is_502(settings, auth_headers):
    app = create_app(settings, llm_transport=httpx.MockTransport(_sse_handler("no json at all")))
    resp = TestClient(app).post("/api/portfolios/generate", json={"brief": BRIEF}, headers=auth_headers)
    assert resp.status_code == 502
    assert "Output snippet: no json at all" in resp.json()["detail"]


def test_revise(client, auth_headers):
    current = _generate(client, auth_headers)
    resp = client.post("/api/portfolios/revise", json={
        "brief": BRIEF, "current": current, "userRequest": "More swagger",
    }, headers=auth_headers)
    assert resp.status_code == 200
    resp = client.post("/api/portfolios/revise", json={
        "brief": BRIEF, "current": current, "userRequest": " ",
    }, headers=auth_headers)
    assert resp.status_code == 400


# ---------------------------------------------------------------------------
# Save, list, publish, public page
# ---------------------------------------------------------------------------

def test_save_publish_and_view(client, auth_headers):
    generated = _generate(client, auth_headers)
    resp = client.post("/api/portfolios", json={"brief": BRIEF, "generated": generated}, headers=auth_headers)
    assert resp.status_code == 201
    portfolio_id = resp.json()["id"]

    listed = client.get("/api/portfolios", headers=auth_headers).json()
    assert [p["id"] for p in listed] == [portfolio_id]

    resp = client.post(f"/api/portfolios/{portfolio_id}/publish", json={"slug": "Bob-Builds"}, headers=auth_headers)
    assert resp.status_code == 200
    assert resp.json()["slug"] == "bob-builds"

    page = client.get("/p/bob-builds")
    assert page.status_code == 200
    assert page.headers["content-type"].startswith("text/html")
    assert "script-src 'none'" in page.headers["content-security-policy"]
    assert "Combat Systems Wizard" in page.text


def test_publish_errors(client, auth_headers):
    generated = _generate(client, auth_headers)
    ids = [
        client.post("/api/portfolios", json={"brief": BRIEF, "generated": generated}, headers=auth_headers).json()["id"]
        for _ in range(2)
    ]
    url = f"/api/portfolios/{ids[0]}/publish"
    assert client.post(url, json={"slug": "no"}, headers=auth_headers).status_code == 400
    assert client.post("/api/portfolios/missing/publish", json={"slug": "valid-slug"},
                       headers=auth_headers).status_code == 404
    client.post(url, json={"slug": "taken-slug"}, headers=auth_headers)
    resp = client.post(f"/api/portfolios/{ids[1]}/publish", json={"slug": "taken-slug"}, headers=auth_headers)
    assert resp.status_code == 409


def test_public_page_not_found(client):
    resp = client.get("/p/nothing-here")
    assert resp.status_code == 404
    assert resp.text == "Not found"


# ---------------------------------------------------------------------------
# Bargain
# ---------------------------------------------------------------------------

def test_bargain_flow(client, auth_headers):
    assert client.get("/api/bargain", headers=auth_headers).json() is None
    session = client.post("/api/bargain", headers=auth_headers).json()
    assert session["mood"] == 20
    assert session["discountUnlocked"] is False

    resp = client.post("/api/bargain/messages", json={
        "sessionId": session["id"], "message": "I made a 10k CCU obby",
    }, headers=auth_headers)
    assert resp.status_code == 200
    updated = resp.json()
    assert updated["mood"] == 25
    assert updated["messageCount"] == 1
    assert updated["messages"][-1] == {"role": "assistant", "text": "Not bad, kid."}

    resp = client.post("/api/bargain/messages", json={
        "sessionId": session["id"], "message": "x" * 401,
    }, headers=auth_headers)
    assert resp.status_code == 400


def test_bargain_without_llm_key(settings, auth_headers):
    client = TestClient(create_app(settings.model_copy(update={"openrouter_api_key": ""})))
    session = client.post("/api/bargain", headers=auth_headers).json()
    resp = client.post("/api/bargain/messages", json={
        "sessionId": session["id"], "message": "hello",
    }, headers=auth_headers)
    assert resp.status_code == 200
    assert "not configured" in resp.json()["messages"][-1]["text"]


def test_bargain_dropped_connection_gives_fallback(settings, auth_headers):
    client = TestClient(create_app(settings, llm_transport=httpx.MockTransport(_dropped_handler)))
    session = client.post("/api/bargain", headers=auth_headers).json()
    resp = client.post("/api/bargain/messages", json={
        "sessionId": session["id"], "message": "hello",
    }, headers=auth_headers)
    assert resp.status_code == 200
    body = resp.json()
    assert body["mood"] == 20
    assert body["messages"][-1]["role"] == "assistant"


# ---------------------------------------------------------------------------
# Payments
# ---------------------------------------------------------------------------

def test_checkout(client, auth_headers):
    resp = client.post("/api/payments/checkout", json={
        "amount": 899, "returnUrl": "https://app.test/build",
    }, headers=auth_headers)
    assert resp.status_code == 200
    assert resp.json() == {"url": "https://checkout.stripe.test/cs_test_1"}
    resp = client.post("/api/payments/checkout", json={
        "amount": 1, "returnUrl": "https://app.test/build",
    }, headers=auth_headers)
    assert resp.status_code == 400


def _signed(body: str, secret: str, ts: int | None = None) -> dict:
    ts = int(time.time()) if ts is None else ts
    return {"Stripe-Signature": f"t={ts},v1={compute_signature(secret, str(ts), body)}"}


def test_webhook_records_payment(client, settings, auth_headers):
    user_id = client.get("/api/auth/me", headers=auth_headers).json()["id"]
    body = json.dumps({
        "type": "checkout.session.completed",
        "data": {"object": {"id": "cs_test_1", "metadata": {"userId": user_id, "amount": "499"}}},
    })
    assert client.get("/api/payments/status", headers=auth_headers).json() == {"paid": False}

    resp = client.post("/api/stripe-webhook", content=body, headers=_signed(body, settings.stripe_webhook_secret))
    assert resp.status_code == 200
    assert resp.text == "ok"
    # replays are acknowledged without a second record
    assert client.post("/api/stripe-webhook", content=body, headers=_signed(body, settings.stripe_webhook_secret)).status_code == 200

    assert client.get("/api/payments/status", headers=auth_headers).json() == {"paid": True}


def test_webhook_rejects_stale_signature(client, settings):
    body = json.dumps({"type": "checkout.session.completed", "data": {"object": {}}})
    resp = client.post("/api/stripe-webhook", content=body,
                       headers=_signed(body, settings.stripe_webhook_secret, int(time.time()) - 301))
    assert resp.status_code == 400
    assert resp.text == "Invalid signature"


def test_webhook_rejects_invalid_json(client, settings):
    body = "not json"
    resp = client.post("/api/stripe-webhook", content=body, headers=_signed(body, settings.stripe_webhook_secret))
    assert resp.status_code == 400
    assert resp.text == "Invalid JSON"


def test_webhook_without_secret(settings):
    client = TestClient(create_app(settings.model_copy(update={"stripe_webhook_secret": ""})))
    assert client.post("/api/stripe-webhook", content="{}").status_code == 500
