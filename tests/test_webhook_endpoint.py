from __future__ import annotations

import hashlib
import hmac
import json

import pytest
from fastapi.testclient import TestClient

from conversion_relay.dependencies import get_client_store, get_event_sender
from conversion_relay.main import app
from conversion_relay.models.clients import Attribution, ClientUpdate
from conversion_relay.models.events import ForwardResult
from conversion_relay.routers import webhooks as webhooks_router
from conversion_relay.stores import InMemoryClientStore


class FakeSender:
    def __init__(self):
        self.calls = []

    def send(self, destination, event, *, request_id=None):
        self.calls.append((destination, event))
        return ForwardResult(delivered=False, event_name=event.name, pixel_id=destination.pixel_id, error="HTTP 500")


class ExplodingStore(InMemoryClientStore):
    def get(self, client_id):
        raise RuntimeError("unexpected driver crash")


@pytest.fixture
def sender():
    return FakeSender()


@pytest.fixture
def store():
    return InMemoryClientStore()


@pytest.fixture
def client(monkeypatch, store, sender):
    monkeypatch.setattr(webhooks_router.settings, "webhook_secret", None)
    app.dependency_overrides[get_client_store] = lambda: store
    app.dependency_overrides[get_event_sender] = lambda: sender
    yield TestClient(app)
    app.dependency_overrides.clear()


def _sign(secret: str, body: bytes) -> str:
    return hmac.new(secret.encode(), body, hashlib.sha256).hexdigest()


def _attribution_update(**attribution) -> ClientUpdate:
    return ClientUpdate(attribution=Attribution(**attribution))


def test_subscribe_for_attributed_client_forwards_and_acknowledges(client, store, sender):
    store.merge("c1", _attribution_update(pixel_id="PX1", access_token="TOK1"))

    response = client.post("/webhook", json={"clientId": "c1", "eventType": "subscribe"})

    assert response.status_code == 200
    assert response.json() == {"status": "accepted"}
    assert len(sender.calls) == 1
    assert sender.calls[0][1].name == "Subscribe"
    assert sender.calls[0][1].custom_data == {}


def test_forwarding_failure_is_invisible_to_caller(client, store, sender):
    store.merge("c1", _attribution_update(pixel_id="PX1", access_token="TOK1"))
    response = client.post("/webhook", json={"clientId": "c1", "eventType": "purchase", "order_value": 3})
    assert response.status_code == 200
    assert response.json() == {"status": "accepted"}


def test_unknown_event_type_still_returns_200(client, sender):
    response = client.post("/webhook", json={"clientId": "c1", "eventType": "message_sent"})
    assert response.status_code == 200
    assert sender.calls == []


def test_purchase_without_destination_makes_no_outbound_call(client, store, sender):
    store.merge("c1", _attribution_update(source="ig"))
    response = client.post("/webhook", json={"clientId": "c1", "eventType": "purchase", "order_value": 10})
    assert response.status_code == 200
    assert sender.calls == []


def test_query_attribution_is_stored_and_used_in_same_request(client, store, sender):
    store.merge("c1", _attribution_update(source="ig"))

    response = client.post(
        "/webhook?utm_fb_pixel=PXNEW&utm_fb_token=TOKNEW&utm_campaign=launch",
        json={"clientId": "c1", "eventType": "purchase", "order_value": 77},
    )

    assert response.status_code == 200
    assert len(sender.calls) == 1
    destination, event = sender.calls[0]
    assert (destination.pixel_id, destination.access_token) == ("PXNEW", "TOKNEW")
    assert event.custom_data == {"value": 77, "currency": "USD"}
    stored = store.get("c1").attribution
    assert stored.source == "ig"
    assert stored.campaign == "launch"


def test_salebot_shaped_payload_on_legacy_path(client, store, sender):
    response = client.post(
        "/salebot-webhook?utm_fb_pixel=PX2&utm_fb_token=TOK2",
        json={"type": "registration", "client": {"id": 42, "name": "Bob", "fbclid": "clk"}},
    )

    assert response.status_code == 200
    record = store.get("42")
    assert record.name == "Bob"
    assert sender.calls[0][1].name == "CompleteRegistration"
    assert sender.calls[0][1].user_data.click_id == "clk"


def test_webhook_without_utm_params_records_client_activity(client, store, sender):
    response = client.post(
        "/webhook",
        json={"clientId": "c5", "eventType": "subscribe", "ip": "1.2.3.4", "client": {"name": "Ann"}},
    )

    assert response.status_code == 200
    record = store.get("c5")
    assert record.name == "Ann"
    assert record.ip == "1.2.3.4"
    assert record.last_activity is not None
    assert sender.calls == []


def test_missing_client_id_is_acknowledged(client, sender):
    response = client.post("/webhook", json={"eventType": "subscribe"})
    assert response.status_code == 200
    assert sender.calls == []


def test_invalid_json_returns_400(client):
    response = client.post("/webhook", content=b"not-json", headers={"Content-Type": "application/json"})
    assert response.status_code == 400


def test_non_object_json_returns_400(client):
    response = client.post("/webhook", json=["subscribe"])
    assert response.status_code == 400


def test_unhandled_failure_returns_500(monkeypatch, sender):
    monkeypatch.setattr(webhooks_router.settings, "webhook_secret", None)
    app.dependency_overrides[get_client_store] = lambda: ExplodingStore()
    app.dependency_overrides[get_event_sender] = lambda: sender
    try:
        response = TestClient(app).post("/webhook", json={"clientId": "c1", "eventType": "subscribe"})
    finally:
        app.dependency_overrides.clear()
    assert response.status_code == 500


def test_signature_enforced_when_secret_set(client, monkeypatch, sender):
    monkeypatch.setattr(webhooks_router.settings, "webhook_secret", "secret123")

    missing = client.post("/webhook", json={"clientId": "c1", "eventType": "subscribe"})
    wrong = client.post(
        "/webhook",
        json={"clientId": "c1", "eventType": "subscribe"},
        headers={"X-Webhook-Signature": "deadbeef"},
    )

    assert missing.status_code == 403
    assert wrong.status_code == 403
    assert sender.calls == []


def test_forged_request_is_rejected_before_store_is_built(monkeypatch, sender):
    monkeypatch.setattr(webhooks_router.settings, "webhook_secret", "secret123")

    def misconfigured_store():
        raise RuntimeError("SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY must be set")

    app.dependency_overrides[get_client_store] = misconfigured_store
    app.dependency_overrides[get_event_sender] = lambda: sender
    try:
        response = TestClient(app).post("/webhook", json={"clientId": "c1", "eventType": "subscribe"})
    finally:
        app.dependency_overrides.clear()

    assert response.status_code == 403
    assert sender.calls == []


def test_valid_signature_is_accepted_with_or_without_prefix(client, monkeypatch, store):
    monkeypatch.setattr(webhooks_router.settings, "webhook_secret", "secret123")
    body = json.dumps({"clientId": "c9", "eventType": "message"}).encode()
    signature = _sign("secret123", body)

    plain = client.post(
        "/webhook?utm_source=ads",
        content=body,
        headers={"Content-Type": "application/json", "X-Webhook-Signature": signature},
    )
    prefixed = client.post(
        "/webhook",
        content=body,
        headers={"Content-Type": "application/json", "X-Webhook-Signature": f"sha256={signature}"},
    )

    assert plain.status_code == 200
    assert prefixed.status_code == 200
    assert store.get("c9").attribution.source == "ads"


def test_request_id_is_echoed(client):
    response = client.post(
        "/webhook",
        json={"clientId": "c1", "eventType": "noop"},
        headers={"X-Request-ID": "req-123"},
    )
    assert response.headers["X-Request-ID"] == "req-123"


def test_health_endpoints():
    client = TestClient(app)
    assert client.get("/health").json() == {"status": "healthy"}
    assert client.get("/").json()["service"] == "conversion-relay"
