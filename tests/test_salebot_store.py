from __future__ import annotations

import json

import httpx
import pytest

from conversion_relay.domain.errors import StoreError
from conversion_relay.models.clients import Attribution, ClientUpdate
from conversion_relay.providers.salebot import client as salebot_client
from conversion_relay.stores import SalebotClientStore


_REAL_CLIENT = httpx.Client


def _install_transport(monkeypatch, handler):
    calls: list[tuple[str, dict]] = []

    def _recording_handler(request: httpx.Request) -> httpx.Response:
        calls.append((str(request.url), json.loads(request.content or b"{}")))
        return handler(request)

    def _client_factory(**kwargs):
        return _REAL_CLIENT(transport=httpx.MockTransport(_recording_handler), **kwargs)

    monkeypatch.setattr(salebot_client.httpx, "Client", _client_factory)
    return calls


def _store() -> SalebotClientStore:
    return SalebotClientStore(api_key="sb-key", base_url="https://salebot.example/api/v1")


def test_get_posts_id_and_api_key(monkeypatch):
    calls = _install_transport(
        monkeypatch,
        lambda request: httpx.Response(
            200,
            json={"client": {"id": "c1", "utm_fb_pixel": "PX1", "utm_fb_token": "TOK1", "last_activity": 1714557600}},
        ),
    )
    record = _store().get("c1")

    assert calls == [("https://salebot.example/api/v1/get_client", {"api_key": "sb-key", "id": "c1"})]
    assert record.attribution.pixel_id == "PX1"
    assert record.last_activity is not None


def test_get_unknown_client_returns_none(monkeypatch):
    _install_transport(monkeypatch, lambda request: httpx.Response(200, json={"client": None}))
    assert _store().get("c404") is None


def test_merge_sends_only_set_fields(monkeypatch):
    calls = _install_transport(monkeypatch, lambda request: httpx.Response(200, json={"status": "ok"}))
    _store().merge("c1", ClientUpdate(attribution=Attribution(pixel_id="PX2", source="fb")))

    url, body = calls[0]
    assert url == "https://salebot.example/api/v1/update_client"
    assert body["client_id"] == "c1"
    assert body["api_key"] == "sb-key"
    assert set(body["update_data"]) == {"utm_fb_pixel", "utm_source", "last_activity"}
    assert body["update_data"]["utm_fb_pixel"] == "PX2"


def test_list_clients_sorted_by_activity(monkeypatch):
    _install_transport(
        monkeypatch,
        lambda request: httpx.Response(
            200,
            json={
                "clients": [
                    {"id": "a", "last_activity": "2024-01-01T00:00:00Z"},
                    {"id": "b", "last_activity": "2024-02-01T00:00:00Z"},
                ]
            },
        ),
    )
    assert [record.id for record in _store().list_clients()] == ["b", "a"]


def test_http_errors_become_store_errors(monkeypatch):
    _install_transport(monkeypatch, lambda request: httpx.Response(503, text="maintenance"))

    with pytest.raises(StoreError) as exc_info:
        _store().merge("c1", ClientUpdate(attribution=Attribution(source="x")))
    assert "HTTP 503" in str(exc_info.value)
    assert exc_info.value.retryable is True


def test_invalid_key_is_terminal(monkeypatch):
    _install_transport(monkeypatch, lambda request: httpx.Response(401, json={"error": "bad key"}))

    with pytest.raises(StoreError) as exc_info:
        _store().get("c1")
    assert exc_info.value.category == "terminal"


def test_missing_api_key_fails_without_network(monkeypatch):
    calls = _install_transport(monkeypatch, lambda request: httpx.Response(200, json={}))

    with pytest.raises(StoreError, match="Missing Salebot API key"):
        SalebotClientStore(api_key=None).get("c1")
    assert calls == []
