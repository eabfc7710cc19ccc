from __future__ import annotations

import hashlib
import hmac
import json
import logging
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Request, status
from fastapi.concurrency import run_in_threadpool

from conversion_relay.config import settings
from conversion_relay.dependencies import get_reconciler
from conversion_relay.domain.attribution import extract_attribution
from conversion_relay.domain.conversions import normalize_event_type
from conversion_relay.domain.reconciler import EventReconciler
from conversion_relay.models.events import InboundWebhook, WebhookAcceptedResponse
from conversion_relay.observability import incr_metric, log_event


router = APIRouter(tags=["webhooks"])

SIGNATURE_HEADER = "X-Webhook-Signature"


def _request_id(request: Request | None) -> str | None:
    if not request:
        return None
    return getattr(getattr(request, "state", None), "request_id", None)


def _first_str(*values: Any) -> str | None:
    for value in values:
        if value is None:
            continue
        text = str(value).strip()
        if text:
            return text
    return None


def _client_section(payload: dict[str, Any]) -> dict[str, Any]:
    client = payload.get("client")
    return client if isinstance(client, dict) else {}


def _extract_client_id(payload: dict[str, Any]) -> str | None:
    client = _client_section(payload)
    return _first_str(payload.get("clientId"), payload.get("client_id"), client.get("id"))


def _extract_event_type(payload: dict[str, Any]) -> str | None:
    return _first_str(
        payload.get("eventType"),
        payload.get("event_type"),
        payload.get("type"),
        payload.get("event"),
    )


def parse_inbound_webhook(payload: dict[str, Any]) -> InboundWebhook:
    client = _client_section(payload)
    return InboundWebhook(
        client_id=_extract_client_id(payload),
        event_type=_extract_event_type(payload),
        name=_first_str(client.get("name")),
        status=_first_str(client.get("status")),
        ip=_first_str(payload.get("ip"), client.get("ip")),
        user_agent=_first_str(
            payload.get("userAgent"),
            payload.get("user_agent"),
            client.get("user_agent"),
        ),
        click_id=_first_str(
            payload.get("fbclid"),
            payload.get("clickId"),
            payload.get("click_id"),
            client.get("fbclid"),
        ),
        raw=payload,
    )


def _verify_signature_or_raise(raw_body: bytes, signature_header: str | None, secret: str | None) -> None:
    if not secret:
        return
    if not signature_header:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Missing webhook signature")

    provided = signature_header.strip()
    if provided.lower().startswith("sha256="):
        provided = provided[len("sha256="):]
    computed = hmac.new(secret.encode(), raw_body, hashlib.sha256).hexdigest()
    if not hmac.compare_digest(computed, provided.lower()):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid webhook signature")


async def verified_webhook_body(request: Request) -> bytes:
    """Read the raw body and reject it before any store or sender is resolved."""
    raw_body = await request.body()
    incr_metric("webhook.events.received")
    try:
        _verify_signature_or_raise(raw_body, request.headers.get(SIGNATURE_HEADER), settings.webhook_secret)
    except HTTPException as exc:
        incr_metric("webhook.events.rejected", reason="signature")
        log_event(
            "webhook_signature_rejected",
            level=logging.WARNING,
            request_id=_request_id(request),
            detail=exc.detail,
        )
        raise
    return raw_body


# Parameter order matters: the signature dependency resolves before the reconciler.
@router.post("/webhook", response_model=WebhookAcceptedResponse)
@router.post("/salebot-webhook", response_model=WebhookAcceptedResponse, include_in_schema=False)
async def ingest_webhook(
    request: Request,
    raw_body: bytes = Depends(verified_webhook_body),
    reconciler: EventReconciler = Depends(get_reconciler),
):
    req_id = _request_id(request)

    try:
        payload = json.loads(raw_body.decode("utf-8"))
    except (UnicodeDecodeError, json.JSONDecodeError) as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid JSON payload") from exc
    if not isinstance(payload, dict):
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Webhook payload must be a JSON object")

    webhook = parse_inbound_webhook(payload)
    attribution = extract_attribution(request.query_params)
    event_type = normalize_event_type(webhook.event_type)
    log_event(
        "webhook_received",
        request_id=req_id,
        client_id=webhook.client_id,
        event_type=event_type,
        has_attribution=not attribution.is_empty(),
    )

    try:
        outcome = await run_in_threadpool(reconciler.reconcile, webhook, attribution, request_id=req_id)
    except Exception as exc:
        incr_metric("webhook.events.failed")
        log_event(
            "webhook_failed",
            level=logging.ERROR,
            request_id=req_id,
            client_id=webhook.client_id,
            event_type=event_type,
            error=str(exc),
        )
        raise HTTPException(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, detail="Webhook processing failed") from exc

    incr_metric("webhook.events.processed", event_type=event_type)
    log_event(
        "webhook_processed",
        request_id=req_id,
        client_id=webhook.client_id,
        event_type=event_type,
        client_merged=outcome.client_merged,
        conversion_event=outcome.conversion_event,
        skipped_reason=outcome.skipped_reason,
        forwarded=bool(outcome.forward and outcome.forward.delivered),
    )
    return WebhookAcceptedResponse()
