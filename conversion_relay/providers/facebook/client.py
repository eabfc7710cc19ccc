from __future__ import annotations

import logging
from typing import Any

import httpx

from conversion_relay.domain.errors import ForwardError
from conversion_relay.models.events import ConversionEvent, Destination, ForwardResult
from conversion_relay.observability import incr_metric, log_event


FACEBOOK_GRAPH_API_BASE = "https://graph.facebook.com"
FACEBOOK_GRAPH_API_VERSION = "v12.0"
CLICK_ID_SCHEMA = "fb.1"


class FacebookProviderError(ForwardError):
    """Provider-level exception for Facebook Conversions API failures."""


def format_click_id(click_id: str, timestamp_millis: int) -> str:
    return f"{CLICK_ID_SCHEMA}.{timestamp_millis}.{click_id}"


def build_user_data(event: ConversionEvent) -> dict[str, str]:
    user_data: dict[str, str] = {}
    if event.user_data.ip:
        user_data["client_ip_address"] = event.user_data.ip
    if event.user_data.user_agent:
        user_data["client_user_agent"] = event.user_data.user_agent
    if event.user_data.click_id:
        user_data["fbc"] = format_click_id(event.user_data.click_id, event.time_seconds * 1000)
    return user_data


def build_event_payload(event: ConversionEvent, access_token: str) -> dict[str, Any]:
    data: dict[str, Any] = {
        "event_name": event.name,
        "event_time": event.time_seconds,
        "user_data": build_user_data(event),
    }
    if event.custom_data:
        data["custom_data"] = dict(event.custom_data)
    return {"data": [data], "access_token": access_token}


def _post_json(url: str, json_payload: dict[str, Any], timeout_seconds: float) -> httpx.Response:
    with httpx.Client(timeout=timeout_seconds) as client:
        return client.post(url, json=json_payload)


class FacebookConversionsClient:
    """Best-effort sender for server-side conversion events.

    ``send`` never raises: every outcome comes back as a ForwardResult.
    """

    def __init__(
        self,
        *,
        api_base: str = FACEBOOK_GRAPH_API_BASE,
        api_version: str = FACEBOOK_GRAPH_API_VERSION,
        timeout_seconds: float = 10.0,
    ) -> None:
        self.api_base = api_base.rstrip("/")
        self.api_version = api_version.strip("/")
        self.timeout_seconds = timeout_seconds

    def events_url(self, pixel_id: str) -> str:
        return f"{self.api_base}/{self.api_version}/{pixel_id}/events"

    def _deliver(self, destination: Destination, event: ConversionEvent) -> int:
        payload = build_event_payload(event, destination.access_token)
        try:
            response = _post_json(self.events_url(destination.pixel_id), payload, self.timeout_seconds)
        except httpx.HTTPError as exc:
            raise FacebookProviderError(f"Facebook connectivity error: {exc}") from exc
        if response.status_code in {401, 403}:
            raise FacebookProviderError(f"Invalid Facebook access token (HTTP {response.status_code})")
        if response.status_code >= 400:
            raise FacebookProviderError(
                f"Facebook API returned HTTP {response.status_code}: {response.text[:200]}"
            )
        return response.status_code

    def send(
        self,
        destination: Destination,
        event: ConversionEvent,
        *,
        request_id: str | None = None,
    ) -> ForwardResult:
        try:
            status_code = self._deliver(destination, event)
        except ForwardError as exc:
            incr_metric("conversion.forward.failed", event_name=event.name, category=exc.category)
            log_event(
                "conversion_forward_failed",
                level=logging.WARNING,
                request_id=request_id,
                event_name=event.name,
                pixel_id=destination.pixel_id,
                category=exc.category,
                error=str(exc),
            )
            return ForwardResult(
                delivered=False,
                event_name=event.name,
                pixel_id=destination.pixel_id,
                error=str(exc),
                error_category=exc.category,
            )

        incr_metric("conversion.forward.delivered", event_name=event.name)
        log_event(
            "conversion_forwarded",
            request_id=request_id,
            event_name=event.name,
            pixel_id=destination.pixel_id,
            status_code=status_code,
        )
        return ForwardResult(
            delivered=True,
            event_name=event.name,
            pixel_id=destination.pixel_id,
            status_code=status_code,
        )
