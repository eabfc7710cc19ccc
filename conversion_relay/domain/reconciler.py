from __future__ import annotations

import logging
import time
from dataclasses import dataclass
from typing import Callable, Protocol

from conversion_relay.domain.conversions import classify_event, normalize_event_type
from conversion_relay.domain.errors import StoreError
from conversion_relay.models.clients import Attribution, ClientRecord, ClientUpdate
from conversion_relay.models.events import (
    ConversionEvent,
    Destination,
    ForwardResult,
    InboundWebhook,
    UserData,
)
from conversion_relay.observability import incr_metric, log_event
from conversion_relay.stores.base import ClientStore


class EventSender(Protocol):
    def send(
        self,
        destination: Destination,
        event: ConversionEvent,
        *,
        request_id: str | None = None,
    ) -> ForwardResult: ...


@dataclass
class ReconcileOutcome:
    client_id: str
    event_type: str
    client_merged: bool = False
    conversion_event: str | None = None
    skipped_reason: str | None = None
    forward: ForwardResult | None = None


class EventReconciler:
    """Ties an inbound lifecycle event to stored attribution and forwards the
    matching conversion event, if any.

    Every webhook with a client id is merged into the store first (activity
    fields plus any attribution), so a webhook that brings a fresh pixel and
    token can use them for its own conversion.
    """

    def __init__(
        self,
        store: ClientStore,
        sender: EventSender,
        *,
        currency: str = "USD",
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.store = store
        self.sender = sender
        self.currency = currency
        self.clock = clock

    def reconcile(
        self,
        webhook: InboundWebhook,
        attribution: Attribution,
        *,
        request_id: str | None = None,
    ) -> ReconcileOutcome:
        client_id = webhook.client_id or ""
        outcome = ReconcileOutcome(client_id=client_id, event_type=normalize_event_type(webhook.event_type))
        if not client_id:
            outcome.skipped_reason = "missing_client_id"
            return outcome

        outcome.client_merged = self._merge_client(webhook, attribution, request_id=request_id)

        spec = classify_event(webhook.event_type, webhook.raw, currency=self.currency)
        if spec is None:
            outcome.skipped_reason = "unmapped_event_type"
            return outcome
        outcome.conversion_event = spec.name

        record = self._load_client(client_id, request_id=request_id)
        if record is None:
            return self._skip(outcome, "client_not_found", request_id=request_id)
        if not record.attribution.has_destination():
            return self._skip(outcome, "no_destination", request_id=request_id)

        destination = Destination(
            pixel_id=record.attribution.pixel_id,
            access_token=record.attribution.access_token,
        )
        event = ConversionEvent(
            name=spec.name,
            time_seconds=int(self.clock()),
            user_data=UserData(
                ip=webhook.ip or record.ip,
                user_agent=webhook.user_agent or record.user_agent,
                click_id=webhook.click_id or record.click_id,
            ),
            custom_data=spec.custom_data,
        )
        outcome.forward = self.sender.send(destination, event, request_id=request_id)
        return outcome

    def _merge_client(
        self,
        webhook: InboundWebhook,
        attribution: Attribution,
        *,
        request_id: str | None,
    ) -> bool:
        update = ClientUpdate(
            name=webhook.name,
            status=webhook.status,
            ip=webhook.ip,
            user_agent=webhook.user_agent,
            click_id=webhook.click_id,
            attribution=attribution,
        )
        try:
            self.store.merge(webhook.client_id, update)
        except StoreError as exc:
            incr_metric("client_store.merge.failed", category=exc.category)
            log_event(
                "client_merge_failed",
                level=logging.WARNING,
                request_id=request_id,
                client_id=webhook.client_id,
                has_attribution=not attribution.is_empty(),
                category=exc.category,
                error=str(exc),
            )
            return False
        incr_metric("client_store.merge.succeeded")
        return True

    def _load_client(self, client_id: str, *, request_id: str | None) -> ClientRecord | None:
        try:
            return self.store.get(client_id)
        except StoreError as exc:
            incr_metric("client_store.get.failed", category=exc.category)
            log_event(
                "client_lookup_failed",
                level=logging.WARNING,
                request_id=request_id,
                client_id=client_id,
                category=exc.category,
                error=str(exc),
            )
            return None

    def _skip(self, outcome: ReconcileOutcome, reason: str, *, request_id: str | None) -> ReconcileOutcome:
        outcome.skipped_reason = reason
        incr_metric("conversion.skipped", reason=reason)
        log_event(
            "conversion_skipped",
            request_id=request_id,
            client_id=outcome.client_id,
            event_name=outcome.conversion_event,
            reason=reason,
        )
        return outcome
