from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from conversion_relay.models.events import ConversionEventName


_EVENT_MAPPING: dict[str, ConversionEventName] = {
    "subscribe": "Subscribe",
    "registration": "CompleteRegistration",
    "purchase": "Purchase",
}


@dataclass(frozen=True)
class ConversionSpec:
    name: ConversionEventName
    custom_data: dict[str, Any] = field(default_factory=dict)


def normalize_event_type(value: str | None) -> str:
    if not value:
        return "unknown"
    return str(value).strip().lower()


def classify_event(
    event_type: str | None,
    payload: dict[str, Any],
    currency: str = "USD",
) -> ConversionSpec | None:
    name = _EVENT_MAPPING.get(normalize_event_type(event_type))
    if name is None:
        return None
    if name == "Purchase":
        custom_data: dict[str, Any] = {"currency": currency}
        if payload.get("order_value") is not None:
            custom_data["value"] = payload["order_value"]
        return ConversionSpec(name=name, custom_data=custom_data)
    return ConversionSpec(name=name)
